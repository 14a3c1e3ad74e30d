from datetime import timedelta
from typing import Any, Callable, Dict, Optional
import hashlib
import hmac
import secrets
import string

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from pydantic import BaseModel
import structlog

from .config import settings
from .exceptions import DarahConnectError, ForbiddenError, UnauthorizedError
from ..utils.clock import utcnow

logger = structlog.get_logger()

# Password hashing context
pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

bearer_scheme = HTTPBearer(auto_error=False)

ROLE_USER = "User"
ROLE_ADMIN = "Administrator"

LOGIN_REQUIRED_MESSAGE = "anda harus login untuk megakses resource ini."
FORBIDDEN_MESSAGE = "anda tidak diizinkan untuk mengakses resource ini."


class TokenClaims(BaseModel):
    """Identity carried by an access token."""
    id: int
    email: str
    name: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN


def create_access_token(
    claims: Dict[str, Any],
    expires_delta: Optional[timedelta] = None
) -> str:
    """
    Create a signed JWT.

    Args:
        claims: Custom claims to embed (id, email, name, role)
        expires_delta: Token lifetime, defaults to ACCESS_TOKEN_EXPIRE_MINUTES

    Returns:
        str: The encoded JWT token
    """
    now = utcnow()
    if expires_delta:
        expire = now + expires_delta
    else:
        expire = now + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    to_encode = dict(claims)
    to_encode.update({
        "exp": expire,
        "iat": now,
        "iss": settings.JWT_ISSUER,
    })

    try:
        return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)
    except JWTError as e:
        logger.error("Failed to create access token", error=str(e))
        raise DarahConnectError("Gagal membuat token")


def verify_token(token: str) -> dict:
    """
    Verify and decode a JWT token.

    Args:
        token: The JWT token to verify

    Returns:
        dict: The decoded token payload

    Raises:
        UnauthorizedError: If the token is invalid, expired or from another issuer
    """
    try:
        return jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.ALGORITHM],
            issuer=settings.JWT_ISSUER,
        )
    except JWTError as e:
        logger.warning("JWT verification failed", error=str(e))
        raise UnauthorizedError(LOGIN_REQUIRED_MESSAGE)


def create_user_token(user) -> str:
    return create_access_token({
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "role": user.role,
    })


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verify a plain password against its hash.

    Args:
        plain_password: The plain text password
        hashed_password: The hashed password to verify against

    Returns:
        bool: True if password matches, False otherwise
    """
    if not hashed_password:
        return False
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError as e:
        logger.error("Password verification failed", error=str(e))
        return False


def get_password_hash(password: str) -> str:
    """Hash a plain text password."""
    return pwd_context.hash(password)


def generate_random_token(length: int = 16) -> str:
    """Random alphanumeric token used for email verification links."""
    alphabet = string.ascii_letters + string.digits
    return "".join(secrets.choice(alphabet) for _ in range(length))


def sign_value(value: str) -> str:
    """HMAC-SHA256 of ``value`` keyed with SECRET_KEY, hex encoded."""
    return hmac.new(
        settings.SECRET_KEY.encode(),
        value.encode(),
        hashlib.sha256
    ).hexdigest()


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)
) -> TokenClaims:
    """JWT gate for private routes."""
    if credentials is None or not credentials.credentials:
        raise UnauthorizedError(LOGIN_REQUIRED_MESSAGE)

    payload = verify_token(credentials.credentials)
    try:
        return TokenClaims(**payload)
    except ValueError:
        raise UnauthorizedError(LOGIN_REQUIRED_MESSAGE)


def require_roles(*roles: str) -> Callable:
    """
    Build an RBAC gate allowing only the given roles.

    Usage:
        current_user: TokenClaims = Depends(require_roles(ROLE_ADMIN))
    """
    async def checker(current_user: TokenClaims = Depends(get_current_user)) -> TokenClaims:
        if current_user.role not in roles:
            logger.warning(
                "Role not permitted",
                user_id=current_user.id,
                role=current_user.role,
                allowed=list(roles)
            )
            raise ForbiddenError(FORBIDDEN_MESSAGE)
        return current_user

    return checker


require_user = require_roles(ROLE_USER)
require_admin = require_roles(ROLE_ADMIN)
require_member = require_roles(ROLE_USER, ROLE_ADMIN)
