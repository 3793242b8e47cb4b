"""
Hosted backend client.

WHAT: REST, RPC and realtime access to the hosted relational backend
WHY: Every durable operation (messages, accept transaction, catalog, wallet) lives server-side
HOW: httpx AsyncClient against PostgREST-style routes, retry on idempotent reads, SSE change feed
"""

import asyncio
import json
from typing import Any, AsyncIterator

import httpx

from .streaming import iter_sse_events
from .types import (
    AuthSession,
    ChangeEvent,
    ServiceStatus,
    DataServiceTimeoutError,
    DataServiceUnavailableError,
    DataServiceResponseError,
)
from ..core.config import settings
from ..utils.exceptions import AuthRequiredError
from ..utils.logger import get_logger

logger = get_logger(__name__)


class SupabaseDataService:
    """Data service client for a Supabase-compatible backend."""

    def __init__(
        self,
        base_url: str | None = None,
        anon_key: str | None = None,
        *,
        timeout: float | None = None,
        max_retries: int | None = None,
        retry_delay: float | None = None,
        client: httpx.AsyncClient | None = None
    ):
        """
        Initialize the client.

        Args:
            base_url: Backend URL (defaults to settings.SUPABASE_URL)
            anon_key: Public API key sent with every request
            timeout: Per-request timeout in seconds
            max_retries: Attempts for idempotent reads
            retry_delay: Base delay for exponential backoff
            client: Pre-built httpx client (tests)
        """
        self.base_url = (base_url or settings.SUPABASE_URL).rstrip("/")
        self.anon_key = anon_key if anon_key is not None else settings.SUPABASE_ANON_KEY
        self.timeout = timeout if timeout is not None else settings.DATA_SERVICE_TIMEOUT
        self.max_retries = max(1, max_retries if max_retries is not None else settings.DATA_SERVICE_MAX_RETRIES)
        self.retry_delay = retry_delay if retry_delay is not None else settings.DATA_SERVICE_RETRY_DELAY
        self.session: AuthSession | None = None

        self.client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout),
            limits=httpx.Limits(max_keepalive_connections=10, max_connections=20),
        )
        logger.info(f"Data service client initialized (base_url: {self.base_url})")

    # ---------- Session ----------

    @property
    def user_id(self) -> str | None:
        """Identity of the signed-in user, if any."""
        return self.session.user_id if self.session else None

    def set_session(self, session: AuthSession) -> None:
        """Authenticate subsequent requests as this user."""
        self.session = session
        logger.info(f"Data service session set for user {session.user_id}")

    def clear_session(self) -> None:
        """Fall back to anonymous requests."""
        self.session = None

    def _require_user(self, action: str) -> str:
        if not self.session:
            raise AuthRequiredError(action)
        return self.session.user_id

    def _headers(self) -> dict[str, str]:
        token = self.session.access_token if self.session else self.anon_key
        return {
            "apikey": self.anon_key,
            "Authorization": f"Bearer {token}",
        }

    # ---------- Transport ----------

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json_body: Any = None,
        headers: dict[str, str] | None = None,
        retry: bool = False
    ) -> httpx.Response:
        """
        Send a request to the backend.

        Args:
            method: HTTP method
            path: Path below the base URL
            params: Query parameters
            json_body: JSON payload
            headers: Extra headers
            retry: Retry timeouts, connection errors and 5xx with backoff (reads only)

        Returns:
            Successful httpx.Response

        Raises:
            DataServiceTimeoutError: Request timed out
            DataServiceUnavailableError: Backend not reachable
            DataServiceResponseError: Backend returned an error status
        """
        url = f"{self.base_url}{path}"
        attempts = self.max_retries if retry else 1
        request_headers = {**self._headers(), **(headers or {})}

        for attempt in range(attempts):
            last_attempt = attempt == attempts - 1
            try:
                response = await self.client.request(
                    method,
                    url,
                    params=params,
                    json=json_body,
                    headers=request_headers
                )
                response.raise_for_status()
                return response

            except httpx.TimeoutException as e:
                logger.warning(f"Data service timeout on {method} {path} (attempt {attempt + 1}/{attempts})")
                if last_attempt:
                    raise DataServiceTimeoutError(f"Request timed out after {attempts} attempt(s)") from e

            except httpx.ConnectError as e:
                logger.error(f"Data service connection refused on {method} {path} (attempt {attempt + 1}/{attempts})")
                if last_attempt:
                    raise DataServiceUnavailableError("Data service is not reachable") from e

            except httpx.HTTPStatusError as e:
                if e.response.status_code >= 500 and not last_attempt:
                    logger.error(f"Data service error {e.response.status_code} on {method} {path} (attempt {attempt + 1}/{attempts})")
                else:
                    raise self._response_error(e.response) from e

            await asyncio.sleep(self.retry_delay * (2 ** attempt))

        # range(attempts) always returns or raises
        raise DataServiceUnavailableError("Data service is not reachable")

    @staticmethod
    def _response_error(response: httpx.Response) -> DataServiceResponseError:
        """Build a typed error from a PostgREST/GoTrue error body."""
        code = None
        message = response.text
        try:
            body = response.json()
            if isinstance(body, dict):
                code = body.get("code") or body.get("error_code")
                message = body.get("message") or body.get("msg") or body.get("error_description") or message
        except (json.JSONDecodeError, httpx.ResponseNotRead):
            pass
        return DataServiceResponseError(
            f"HTTP {response.status_code}: {message}",
            status_code=response.status_code,
            code=str(code) if code is not None else None
        )

    async def ping(self) -> ServiceStatus:
        """
        Check backend availability.

        Returns:
            ServiceStatus, never raises
        """
        try:
            await self.request("GET", "/rest/v1/")
            return ServiceStatus(available=True, base_url=self.base_url)
        except DataServiceTimeoutError:
            return ServiceStatus(available=False, base_url=self.base_url, error="Request timed out")
        except DataServiceUnavailableError:
            return ServiceStatus(available=False, base_url=self.base_url, error="Connection refused")
        except DataServiceResponseError as e:
            return ServiceStatus(available=False, base_url=self.base_url, error=str(e))

    # ---------- Rows ----------

    async def select(
        self,
        table: str,
        *,
        filters: dict[str, str] | None = None,
        columns: str = "*",
        order: str | None = None,
        limit: int | None = None,
        offset: int | None = None,
        single: bool = False
    ) -> Any:
        """
        Read rows from a table.

        Args:
            table: Table name
            filters: PostgREST filters, e.g. {"chat_id": "eq.42"}
            columns: Column/embedding selection
            order: Order clause, e.g. "created_at.desc"
            limit: Max rows
            offset: Rows to skip
            single: Return exactly one object (404-style error when none)

        Returns:
            List of rows, or one row when single=True
        """
        params: dict[str, Any] = dict(filters or {})
        params["select"] = columns
        if order:
            params["order"] = order
        if limit is not None:
            params["limit"] = limit
        if offset is not None:
            params["offset"] = offset

        headers = {"Accept": "application/vnd.pgrst.object+json"} if single else None
        response = await self.request("GET", f"/rest/v1/{table}", params=params, headers=headers, retry=True)
        return response.json()

    async def insert(self, table: str, row: dict[str, Any]) -> dict[str, Any]:
        """Insert one row and return its stored representation."""
        response = await self.request(
            "POST",
            f"/rest/v1/{table}",
            json_body=row,
            headers={"Prefer": "return=representation"}
        )
        data = response.json()
        if isinstance(data, list):
            if not data:
                raise DataServiceResponseError(f"Insert into {table} returned no row")
            return data[0]
        return data

    async def update(self, table: str, values: dict[str, Any], *, filters: dict[str, str]) -> list[dict[str, Any]]:
        """Update rows matching filters and return them."""
        response = await self.request(
            "PATCH",
            f"/rest/v1/{table}",
            params=filters,
            json_body=values,
            headers={"Prefer": "return=representation"}
        )
        return response.json()

    async def rpc(self, function: str, params: dict[str, Any], *, retry: bool = False) -> Any:
        """
        Call a remote procedure.

        Args:
            function: Procedure name
            params: Named arguments
            retry: Only for read-only procedures
        """
        response = await self.request("POST", f"/rest/v1/rpc/{function}", json_body=params, retry=retry)
        if not response.content:
            return None
        return response.json()

    # ---------- Negotiation ----------

    async def load_messages(self, chat_id: str) -> list[dict[str, Any]]:
        """Fetch every message row of a chat, oldest first."""
        rows = await self.select(
            "chat_messages",
            filters={"chat_id": f"eq.{chat_id}"},
            order="created_at.asc,id.asc"
        )
        logger.debug(f"Loaded {len(rows)} messages for chat {chat_id}")
        return rows

    async def append_message(
        self,
        chat_id: str,
        content: str,
        kind: str,
        offer_amount: float | None = None
    ) -> dict[str, Any]:
        """
        Insert a message authored by the signed-in user.

        Raises:
            AuthRequiredError: No signed-in user
        """
        sender_id = self._require_user("sending a message")
        row: dict[str, Any] = {
            "chat_id": chat_id,
            "sender_id": sender_id,
            "message_type": kind,
            "content": content,
        }
        if offer_amount is not None:
            row["offer_price"] = offer_amount

        record = await self.insert("chat_messages", row)
        logger.info(f"Appended {kind} message {record.get('id')} to chat {chat_id}")
        return record

    async def accept_offer(self, chat_id: str, amount: float) -> dict[str, Any]:
        """
        Run the accept-offer transaction (resolve chat, commission, wallets, sale).

        Raises:
            AuthRequiredError: No signed-in user
        """
        self._require_user("accepting an offer")
        result = await self.rpc("process_accepted_offer", {
            "p_chat_id": chat_id,
            "p_final_price": amount,
        })
        logger.info(f"Accept-offer transaction completed for chat {chat_id} at {amount}")
        if isinstance(result, dict):
            return result
        return {"result": result}

    async def stream_changes(self, chat_id: str) -> AsyncIterator[ChangeEvent]:
        """
        Stream realtime events of a chat.

        The stream ends when the server closes it; transport failures raise.

        Yields:
            ChangeEvent for connection, inserted messages, typing and heartbeats

        Raises:
            DataServiceTimeoutError: Connect timed out
            DataServiceUnavailableError: Backend unreachable or stream dropped
            DataServiceResponseError: Subscription refused
        """
        channel = f"chat:{chat_id}"
        try:
            async with self.client.stream(
                "GET",
                f"{self.base_url}/realtime/v1/sse",
                params={"channel": channel},
                headers={**self._headers(), "Accept": "text/event-stream"},
                timeout=httpx.Timeout(self.timeout, read=None)
            ) as response:
                if response.is_error:
                    await response.aread()
                    raise self._response_error(response)

                async for event_name, data in iter_sse_events(response.aiter_lines()):
                    event = self._to_change_event(event_name, data)
                    if event is not None:
                        yield event

            logger.info(f"Realtime stream closed by server ({channel})")

        except httpx.TimeoutException as e:
            raise DataServiceTimeoutError(f"Realtime connect timed out ({channel})") from e
        except httpx.TransportError as e:
            raise DataServiceUnavailableError(f"Realtime stream dropped ({channel}): {e}") from e

    @staticmethod
    def _to_change_event(event_name: str, data: str) -> ChangeEvent | None:
        """Map one SSE event of the feed to a ChangeEvent (None when irrelevant)."""
        if event_name == "heartbeat":
            return ChangeEvent(type="heartbeat")

        try:
            payload = json.loads(data)
        except json.JSONDecodeError:
            logger.warning(f"Invalid realtime payload: {data[:100]}")
            return None
        if not isinstance(payload, dict):
            logger.warning(f"Unexpected realtime payload ({type(payload).__name__}): {data[:100]}")
            return None

        if event_name == "system":
            if payload.get("status") in ("connected", "subscribed"):
                return ChangeEvent(type="connected")
            return None

        if event_name == "postgres_changes":
            record = payload.get("record")
            if payload.get("type") == "INSERT" and payload.get("table") == "chat_messages" and isinstance(record, dict):
                return ChangeEvent(type="insert", record=record)
            return None

        if event_name == "broadcast" and payload.get("event") == "typing":
            body = payload.get("payload")
            if not isinstance(body, dict):
                return None
            return ChangeEvent(type="typing", sender_id=body.get("sender_id"))

        return None

    async def broadcast_typing(self, chat_id: str, sender_id: str) -> None:
        """Broadcast a typing signal on the chat channel (no retry)."""
        await self.request(
            "POST",
            "/realtime/v1/api/broadcast",
            json_body={
                "messages": [{
                    "topic": f"chat:{chat_id}",
                    "event": "typing",
                    "payload": {"sender_id": sender_id},
                }]
            }
        )

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()
