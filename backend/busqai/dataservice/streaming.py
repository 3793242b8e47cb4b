"""
Server-sent event parsing for the realtime feed.

WHAT: Turn a raw line stream into (event, data) pairs
WHY: The data service pushes chat changes as text/event-stream
HOW: Async generator that accumulates fields until a blank line
"""

from typing import AsyncIterator


async def iter_sse_events(lines: AsyncIterator[str]) -> AsyncIterator[tuple[str, str]]:
    """
    Parse SSE lines into events.
    
    Comment lines (``:keepalive``) are skipped; multi-line ``data`` fields are
    joined with newlines; an event without data is not emitted.
    
    Args:
        lines: Source lines without trailing newlines
    
    Yields:
        (event name, data) tuples, event name defaulting to "message"
    """
    event_name = "message"
    data_lines: list[str] = []
    
    async for line in lines:
        line = line.rstrip("\r")
        
        if not line:
            if data_lines:
                yield event_name, "\n".join(data_lines)
            event_name = "message"
            data_lines = []
            continue
        
        if line.startswith(":"):
            continue
        
        field, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]
        
        if field == "event":
            event_name = value
        elif field == "data":
            data_lines.append(value)
    
    # Stream closed without a trailing blank line
    if data_lines:
        yield event_name, "\n".join(data_lines)
