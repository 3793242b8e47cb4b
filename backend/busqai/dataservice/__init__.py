"""Hosted backend access layer."""

from .types import (
    AuthSession,
    ChangeEvent,
    ServiceStatus,
    DataServiceError,
    DataServiceTimeoutError,
    DataServiceUnavailableError,
    DataServiceResponseError,
)
from .provider import DataService
from .supabase import SupabaseDataService

__all__ = [
    "AuthSession",
    "ChangeEvent",
    "ServiceStatus",
    "DataServiceError",
    "DataServiceTimeoutError",
    "DataServiceUnavailableError",
    "DataServiceResponseError",
    "DataService",
    "SupabaseDataService",
]
