"""
Phone-based authentication.

WHAT: OTP sign-in, code verification, sign-out, profile creation
WHY: Every write to the data service is authored by the signed-in user
HOW: GoTrue-style /auth/v1 routes through the data service client; token kept in the local store
"""

from typing import Any, Literal

from .supabase import SupabaseDataService
from .types import AuthSession, DataServiceResponseError
from ..core.config import settings
from ..core.session_store import SessionTokenStore
from ..models.marketplace import Profile
from ..utils.exceptions import AuthRequiredError, ValidationException
from ..utils.logger import get_logger

logger = get_logger(__name__)


def normalize_phone(phone: str) -> str:
    """
    Prefix a local phone number with the country code.
    
    Args:
        phone: Local number, optionally already prefixed
    
    Returns:
        E.164 phone number
    
    Raises:
        ValidationException: If the number has no digits
    """
    digits = "".join(ch for ch in phone if ch.isdigit())
    if not digits:
        raise ValidationException("Phone number is required", [{"field": "phone", "error": "empty"}])
    
    country = settings.PHONE_COUNTRY_CODE
    if phone.strip().startswith("+"):
        return f"+{digits}"
    return f"{country}{digits}"


class AuthService:
    """Sign-in flow on top of the data service client."""
    
    def __init__(self, data_service: SupabaseDataService, token_store: SessionTokenStore | None = None):
        self.data_service = data_service
        self.token_store = token_store or SessionTokenStore()
    
    @property
    def session(self) -> AuthSession | None:
        return self.data_service.session
    
    def restore(self) -> AuthSession | None:
        """Reuse a stored session, if any."""
        session = self.token_store.load()
        if session:
            self.data_service.set_session(session)
            logger.info(f"Restored session for user {session.user_id}")
        return session
    
    async def send_otp(self, phone: str) -> str:
        """
        Request an SMS code.
        
        Returns:
            Normalized phone number the code was sent to
        """
        normalized = normalize_phone(phone)
        await self.data_service.request(
            "POST",
            "/auth/v1/otp",
            json_body={"phone": normalized, "channel": "sms"}
        )
        logger.info(f"OTP requested for {normalized[:-4]}****")
        return normalized
    
    async def verify_otp(self, phone: str, code: str) -> AuthSession:
        """
        Exchange an SMS code for a session.
        
        Raises:
            ValidationException: Code invalid or expired
        """
        normalized = normalize_phone(phone)
        try:
            response = await self.data_service.request(
                "POST",
                "/auth/v1/verify",
                json_body={"type": "sms", "phone": normalized, "token": code}
            )
        except DataServiceResponseError as e:
            if e.status_code is not None and 400 <= e.status_code < 500:
                logger.warning(f"OTP verification refused: {e}")
                raise ValidationException(
                    "Invalid or expired verification code",
                    [{"field": "code", "error": "invalid"}]
                ) from e
            raise
        
        data = response.json()
        user = data.get("user") or {}
        if not data.get("access_token") or not user.get("id"):
            raise DataServiceResponseError("Verification response carries no session")
        
        session = AuthSession(
            user_id=str(user["id"]),
            access_token=data["access_token"],
            phone=normalized,
            refresh_token=data.get("refresh_token"),
        )
        self.data_service.set_session(session)
        self.token_store.save(session)
        logger.info(f"User {session.user_id} signed in")
        return session
    
    async def sign_out(self) -> None:
        """Revoke the session remotely and forget it locally."""
        if self.data_service.session:
            try:
                await self.data_service.request("POST", "/auth/v1/logout")
            finally:
                self.data_service.clear_session()
                self.token_store.clear()
        logger.info("Signed out")
    
    async def create_profile(self, full_name: str, user_type: Literal["buyer", "seller"]) -> Profile:
        """
        Create the profile of the signed-in user after phone verification.
        
        Raises:
            AuthRequiredError: No signed-in user
        """
        session = self.data_service.session
        if not session:
            raise AuthRequiredError("creating a profile")
        
        data = await self.data_service.rpc("verify_phone_and_create_profile", {
            "p_phone": session.phone,
            "p_full_name": full_name,
            "p_user_type": user_type,
        })
        row: dict[str, Any] = data[0] if isinstance(data, list) and data else (data or {})
        row.setdefault("id", session.user_id)
        row.setdefault("full_name", full_name)
        row.setdefault("user_type", user_type)
        return Profile.model_validate(row)
    
    async def update_location(self, latitude: float, longitude: float, address: str | None = None) -> None:
        """Store the user's coordinates on their profile."""
        session = self.data_service.session
        if not session:
            raise AuthRequiredError("updating your location")
        
        values: dict[str, Any] = {"latitude": latitude, "longitude": longitude}
        if address is not None:
            values["address"] = address
        await self.data_service.update("profiles", values, filters={"id": f"eq.{session.user_id}"})
        logger.info(f"Location updated for user {session.user_id}")
