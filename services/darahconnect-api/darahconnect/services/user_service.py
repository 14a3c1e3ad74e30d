from datetime import timedelta
from typing import Any, Dict, List, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from ..core.config import settings
from ..core.exceptions import (
    BadRequestError,
    ConflictError,
    ExternalServiceError,
    ForbiddenError,
    NotFoundError,
    UnauthorizedError,
)
from ..core.security import (
    ROLE_ADMIN,
    ROLE_USER,
    create_access_token,
    create_user_token,
    generate_random_token,
    get_password_hash,
    verify_password,
    verify_token,
)
from ..models.database import User
from ..models.schemas import RegisterRequest, UserListQuery, UserUpdateRequest
from ..repositories import UserRepository
from .base import collect_changes
from .donor_registration_service import DonorRegistrationService
from .image_storage import CloudinaryClient, validate_image_filename

logger = structlog.get_logger()

PROFILE_FOLDER = "profile"


class UserService:
    """Accounts: authentication, email verification, password reset, profile."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.users = UserRepository(db)

    async def get(self, user_id: int) -> User:
        user = await self.users.get(user_id)
        if user is None:
            raise NotFoundError("User tidak ditemukan")
        return user

    async def login(self, email: str, password: str) -> str:
        """
        Authenticate with email and password.

        Returns:
            str: Signed access token

        Raises:
            BadRequestError: Unknown email or wrong password
            ForbiddenError: Email not verified yet
        """
        user = await self.users.get_by_email(email)
        if user is None or not verify_password(password, user.password):
            raise BadRequestError("Email atau password salah")
        if not user.is_verified:
            raise ForbiddenError("Silahkan verifikasi email terlebih dahulu")

        logger.info("User logged in", user_id=user.id, role=user.role)
        return create_user_token(user)

    async def register(self, payload: RegisterRequest) -> User:
        """Create an unverified ``User`` account with a fresh verification token."""
        if await self.users.get_by_email(payload.email) is not None:
            raise ConflictError("Email sudah digunakan")

        data = payload.model_dump(exclude={"password"})
        user = User(
            **data,
            password=get_password_hash(payload.password),
            role=ROLE_USER,
            is_verified=False,
            verify_email_token=generate_random_token(16),
        )
        try:
            await self.users.add(user)
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise ConflictError("Email sudah digunakan")

        logger.info("User registered", user_id=user.id)
        return await self.get(user.id)

    async def verify_email(self, token: str) -> User:
        user = await self.users.get_by_verify_token(token) if token else None
        if user is None:
            raise BadRequestError("Token verifikasi email salah")

        user.is_verified = True
        user.verify_email_token = None
        await self.db.commit()
        logger.info("User email verified", user_id=user.id)
        return await self.get(user.id)

    async def request_reset_password(self, email: str) -> Tuple[User, str]:
        """Issue and store a short-lived reset token for ``email``."""
        user = await self.users.get_by_email(email)
        if user is None:
            raise NotFoundError("Email tersebut tidak ditemukan")

        token = create_access_token(
            {"id": user.id, "email": user.email, "purpose": "reset_password"},
            expires_delta=timedelta(minutes=settings.RESET_TOKEN_EXPIRE_MINUTES),
        )
        user.reset_password_token = token
        await self.db.commit()
        logger.info("Password reset requested", user_id=user.id)
        return user, token

    async def reset_password(self, token: str, password: str) -> None:
        if not password:
            raise BadRequestError("Password tidak boleh kosong")

        try:
            claims = verify_token(token)
        except UnauthorizedError:
            raise BadRequestError("Token reset password tidak valid")
        if claims.get("purpose") != "reset_password":
            raise BadRequestError("Token reset password tidak valid")

        user = await self.users.get_by_reset_token(token)
        if user is None or user.id != claims.get("id"):
            raise BadRequestError("Token reset password tidak valid")

        user.password = get_password_hash(password)
        user.reset_password_token = None
        await self.db.commit()
        logger.info("Password reset", user_id=user.id)

    async def update_profile(self, user_id: int, payload: UserUpdateRequest) -> User:
        """Apply the non-empty profile fields sent by the client."""
        user = await self.get(user_id)
        changes = collect_changes(payload)

        if "email" in changes and changes["email"].lower() != user.email.lower():
            if await self.users.get_by_email(changes["email"]) is not None:
                raise ConflictError("Email sudah digunakan")
        if "password" in changes:
            changes["password"] = get_password_hash(changes["password"])

        await self.users.update(user, changes)
        await self.db.commit()
        logger.info("User profile updated", user_id=user_id, fields=sorted(changes))
        return await self.get(user_id)

    async def update_picture(self, user_id: int, filename: str, content: bytes) -> User:
        """Upload a new profile picture and drop the previous one from the image host."""
        validate_image_filename(filename)
        user = await self.get(user_id)
        previous_public_id = user.public_id

        async with CloudinaryClient() as storage:
            uploaded = await storage.upload_image(content, filename, PROFILE_FOLDER)
            user.url_file = uploaded["secure_url"]
            user.public_id = uploaded["public_id"]
            await self.db.commit()

            if previous_public_id:
                try:
                    await storage.delete_image(previous_public_id)
                except ExternalServiceError as e:
                    logger.warning(
                        "Previous profile picture kept on image host",
                        user_id=user_id,
                        public_id=previous_public_id,
                        error=e.message
                    )

        logger.info("Profile picture updated", user_id=user_id)
        return await self.get(user_id)

    async def list(self, query: UserListQuery) -> Tuple[List[User], int]:
        return await self.users.list(query)

    async def delete(self, user_id: int) -> None:
        """Delete an account, first releasing the slots its active signups hold."""
        user = await self.get(user_id)
        released = await DonorRegistrationService(self.db).release_user_slots(user_id)
        try:
            await self.users.delete(user)
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise BadRequestError("User masih memiliki data yang digunakan oleh pengguna lain")
        logger.info("User deleted", user_id=user_id, released_slots=released)

    async def login_with_google(self, profile: Dict[str, Any]) -> str:
        """Log in (or sign up) the owner of a verified Google account."""
        google_id = profile.get("sub")
        email = profile.get("email")
        if not google_id or not email or not profile.get("email_verified", False):
            raise BadRequestError("Akun Google belum terverifikasi")

        user = await self.users.get_by_google_id(google_id)
        if user is None:
            user = await self.users.get_by_email(email)
            if user is None:
                user = User(
                    name=profile.get("name") or email.split("@")[0],
                    email=email,
                    role=ROLE_USER,
                    is_verified=True,
                    url_file=profile.get("picture"),
                )
                await self.users.add(user)
                logger.info("User created from Google account", email=email)
            user.google_id = google_id
            user.is_verified = True
            await self.db.commit()

        return create_user_token(user)

    async def ensure_admin(self, email: str, password: str) -> None:
        """Create the bootstrap administrator if the account does not exist yet."""
        if await self.users.get_by_email(email) is not None:
            return
        await self.users.add(User(
            name="Administrator",
            email=email,
            password=get_password_hash(password),
            role=ROLE_ADMIN,
            is_verified=True,
        ))
        await self.db.commit()
        logger.info("Bootstrap administrator created", email=email)
