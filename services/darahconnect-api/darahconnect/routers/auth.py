from datetime import timedelta

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from ..core.exceptions import BadRequestError, DarahConnectError, UnauthorizedError
from ..core.security import create_access_token, generate_random_token, verify_token
from ..models.database import get_db
from ..models.schemas import (
    LoginRequest,
    RegisterRequest,
    RequestResetPasswordRequest,
    ResetPasswordRequest,
    TokenResponse,
)
from ..services.mailer import send_reset_password_email, send_verify_email
from ..services.oauth import GoogleOAuthClient
from ..services.user_service import UserService
from ..utils.responses import success_response

logger = structlog.get_logger()
router = APIRouter(tags=["auth"])

OAUTH_STATE_MINUTES = 10


@router.post("/login")
async def login(payload: LoginRequest, db: AsyncSession = Depends(get_db)):
    """Exchange email and password for an access token."""
    token = await UserService(db).login(payload.email, payload.password)
    return success_response("successfully login", TokenResponse(token=token))


@router.post("/register", status_code=201)
async def register(
    payload: RegisterRequest,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db)
):
    """
    Register a new donor account.

    The account stays unverified until the link mailed in the background
    is opened.
    """
    try:
        user = await UserService(db).register(payload)
        background_tasks.add_task(send_verify_email, user.email, user.name, user.verify_email_token)
        return success_response("successfully registered", code=201)
    except DarahConnectError:
        raise
    except Exception as e:
        logger.error("Registration failed", email=payload.email, error=str(e))
        raise HTTPException(status_code=500, detail="Gagal melakukan registrasi")


@router.get("/verify-email/{token}")
async def verify_email(token: str, db: AsyncSession = Depends(get_db)):
    await UserService(db).verify_email(token)
    return success_response("successfully verify email")


@router.post("/request-reset-password")
async def request_reset_password(
    payload: RequestResetPasswordRequest,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db)
):
    user, token = await UserService(db).request_reset_password(payload.email)
    background_tasks.add_task(send_reset_password_email, user.email, user.name, token)
    return success_response("successfully request reset password")


@router.post("/reset-password/{token}")
async def reset_password(
    token: str,
    payload: ResetPasswordRequest,
    db: AsyncSession = Depends(get_db)
):
    await UserService(db).reset_password(token, payload.password)
    return success_response("successfully reset a password")


@router.get("/auth/google/login")
async def google_login():
    """Return the Google consent URL. ``state`` is a short-lived signed token."""
    state = create_access_token(
        {"purpose": "google_oauth", "nonce": generate_random_token(16)},
        expires_delta=timedelta(minutes=OAUTH_STATE_MINUTES),
    )
    url = GoogleOAuthClient().authorization_url(state)
    return success_response("berhasil membuat url login google", {"url": url})


@router.get("/auth/google/callback")
async def google_callback(code: str, state: str, db: AsyncSession = Depends(get_db)):
    """Finish the Google login: check ``state``, exchange ``code``, issue our token."""
    try:
        claims = verify_token(state)
    except UnauthorizedError:
        raise BadRequestError("State login Google tidak valid")
    if claims.get("purpose") != "google_oauth":
        raise BadRequestError("State login Google tidak valid")

    async with GoogleOAuthClient() as client:
        profile = await client.fetch_user(code)

    token = await UserService(db).login_with_google(profile)
    logger.info("Google login completed", email=profile.get("email"))
    return success_response("successfully login", TokenResponse(token=token))
