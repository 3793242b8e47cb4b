"""
Data service types, dataclasses, and exceptions.

WHAT: Standard type definitions for hosted-backend interactions
WHY: Ensure consistent contracts between the HTTP client and its callers
HOW: Dataclasses for events/status/session, custom exceptions for transport errors
"""

from dataclasses import dataclass, field
from typing import Any, Literal


ChangeType = Literal["connected", "insert", "typing", "heartbeat"]


@dataclass
class ChangeEvent:
    """One event read from a chat's realtime feed."""
    type: ChangeType
    record: dict[str, Any] = field(default_factory=dict)
    sender_id: str | None = None


@dataclass
class AuthSession:
    """Authenticated identity returned by OTP verification."""
    user_id: str
    access_token: str
    phone: str | None = None
    refresh_token: str | None = None


@dataclass
class ServiceStatus:
    """Health status of the data service."""
    available: bool
    base_url: str
    error: str | None = None


# Transport exceptions
class DataServiceError(Exception):
    """Base class for data service failures."""
    pass


class DataServiceTimeoutError(DataServiceError):
    """Request to the data service timed out."""
    pass


class DataServiceUnavailableError(DataServiceError):
    """Data service is not reachable."""
    pass


class DataServiceResponseError(DataServiceError):
    """Data service returned an error or an invalid response."""
    
    def __init__(self, message: str, status_code: int | None = None, code: str | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.code = code
    
    @property
    def is_not_found(self) -> bool:
        # PGRST116: single row requested, zero rows returned
        return self.status_code == 404 or self.code == "PGRST116"
    
    @property
    def is_permission_denied(self) -> bool:
        return self.status_code in (401, 403) or self.code in ("PGRST301", "42501")
