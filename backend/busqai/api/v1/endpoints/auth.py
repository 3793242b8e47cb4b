"""
Authentication endpoints.

WHAT: Phone OTP sign-in, sign-out, profile creation and location update
WHY: Every negotiation action is authored by the signed-in user
HOW: Thin wrappers over AuthService; sign-out also closes open negotiation screens
"""

from fastapi import APIRouter, Depends

from ....core.app_state import AppState, get_app_state
from ....dataservice.auth import AuthService
from ....models.api_schemas import (
    OTPRequest,
    OTPResponse,
    VerifyOTPRequest,
    SessionResponse,
    CreateProfileRequest,
    UpdateLocationRequest,
)
from ....models.marketplace import Profile
from ....utils.exceptions import BusinessException
from ....utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()


def get_auth_service(state: AppState = Depends(get_app_state)) -> AuthService:
    if state.auth is None:
        raise BusinessException("Authentication is not configured", "AUTH_UNAVAILABLE")
    return state.auth


@router.post("/auth/otp", response_model=OTPResponse)
async def send_otp(request: OTPRequest, auth: AuthService = Depends(get_auth_service)):
    """Send an SMS code to the given phone number."""
    phone = await auth.send_otp(request.phone)
    return OTPResponse(phone=phone)


@router.post("/auth/verify", response_model=SessionResponse)
async def verify_otp(request: VerifyOTPRequest, auth: AuthService = Depends(get_auth_service)):
    """
    Exchange the SMS code for a session.

    The session token is persisted locally and reused after restarts.
    """
    session = await auth.verify_otp(request.phone, request.code)
    return SessionResponse(user_id=session.user_id, phone=session.phone)


@router.post("/auth/signout")
async def sign_out(
    state: AppState = Depends(get_app_state),
    auth: AuthService = Depends(get_auth_service)
):
    """Close every negotiation screen, then drop the session."""
    await state.sessions.close_all()
    await auth.sign_out()
    return {"signed_out": True}


@router.post("/auth/profile", response_model=Profile)
async def create_profile(request: CreateProfileRequest, auth: AuthService = Depends(get_auth_service)):
    """Create the buyer or seller profile of the signed-in user."""
    return await auth.create_profile(request.full_name, request.user_type)


@router.patch("/auth/location")
async def update_location(request: UpdateLocationRequest, auth: AuthService = Depends(get_auth_service)):
    """Store the user's coordinates (used to rank products by distance)."""
    await auth.update_location(request.latitude, request.longitude, request.address)
    return {"updated": True}
