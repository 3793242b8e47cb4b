"""
Business exceptions surfaced to the UI.

WHAT: Domain-specific exceptions that map to HTTP status codes
WHY: Consistent, human-readable error reporting across every screen
HOW: Custom exception classes with error codes, messages and details
"""

from typing import Optional, List, Dict, Any


class BusinessException(Exception):
    """Base class for business logic exceptions."""
    
    def __init__(self, message: str, code: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details


class AuthRequiredError(BusinessException):
    """Raised when an action needs an authenticated identity."""
    
    def __init__(self, action: str = "this action"):
        super().__init__(
            message=f"You must sign in to perform {action}",
            code="AUTH_REQUIRED",
            details={"action": action}
        )


class NotFoundError(BusinessException):
    """Raised when a referenced record does not exist or is not visible."""
    
    def __init__(self, resource: str, resource_id: str):
        super().__init__(
            message=f"{resource.capitalize()} not found: {resource_id}",
            code=f"{resource.upper()}_NOT_FOUND",
            details={"resource": resource, "id": resource_id}
        )


class LoadError(BusinessException):
    """Raised when a negotiation history fetch fails."""
    
    def __init__(self, chat_id: str, reason: str, not_found: bool = False):
        super().__init__(
            message=f"Could not load negotiation {chat_id}: {reason}",
            code="CHAT_NOT_FOUND" if not_found else "LOAD_FAILED",
            details={"chat_id": chat_id, "retryable": not not_found}
        )
        self.chat_id = chat_id
        self.not_found = not_found


class SendError(BusinessException):
    """Raised when an offer, accept, reject or text send fails."""
    
    def __init__(self, action: str, reason: str):
        super().__init__(
            message=f"Could not {action}: {reason}",
            code="SEND_FAILED",
            details={"action": action}
        )
        self.action = action


class SubscriptionError(BusinessException):
    """Raised when the realtime channel cannot be (re)established."""
    
    def __init__(self, chat_id: str, reason: str):
        super().__init__(
            message=f"Live updates unavailable for negotiation {chat_id}: {reason}",
            code="SUBSCRIPTION_FAILED",
            details={"chat_id": chat_id}
        )
        self.chat_id = chat_id


class OfferNotAllowedError(BusinessException):
    """Raised when a negotiation action is refused locally, before any network call."""
    
    def __init__(self, action: str, reason: str, status: Optional[str] = None):
        super().__init__(
            message=f"Cannot {action}: {reason}",
            code="ACTION_NOT_ALLOWED",
            details={"action": action, "status": status}
        )


class ValidationException(BusinessException):
    """Raised for validation errors."""
    
    def __init__(self, message: str, field_errors: Optional[List[Dict[str, str]]] = None):
        super().__init__(
            message=message,
            code="VALIDATION_ERROR",
            details={"field_errors": field_errors} if field_errors else None
        )
