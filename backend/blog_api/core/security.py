import logging
from datetime import datetime, timedelta, timezone
from typing import Any, NamedTuple, Optional
from jose import JWTError, jwt
from passlib.context import CryptContext
from pydantic import BaseModel, ValidationError
from blog_api.core.config import settings

logger = logging.getLogger(__name__)

# CryptContext handles password hashing using bcrypt
# bcrypt is slow by design to prevent brute-force attacks
pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.BCRYPT_ROUNDS,
)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against a hash using constant-time comparison"""
    # Returns False for a wrong password; a malformed hash raises ValueError
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    """Hash a password using bcrypt"""
    # bcrypt generates a salt per call, so equal passwords give different hashes
    return pwd_context.hash(password)


class TokenPayload(BaseModel):
    """Claims carried by a session token"""
    userId: int
    username: str
    role: str
    iat: int
    exp: int


class TokenResult(NamedTuple):
    """Outcome of a token check: either a payload or a reason"""
    payload: Optional[TokenPayload]
    reason: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.payload is not None


def token_lifetime() -> timedelta:
    return timedelta(days=settings.ACCESS_TOKEN_EXPIRE_DAYS)


def create_access_token(user: Any, issued_at: Optional[datetime] = None) -> tuple[str, datetime]:
    """
    Create a signed session token for a user.

    Returns (token, expires_at). ``issued_at`` defaults to now.
    """
    issued_at = issued_at or datetime.now(timezone.utc)
    expire = issued_at + token_lifetime()

    to_encode = {
        "userId": user.id,
        "username": user.username,
        "role": user.role,
        "iat": int(issued_at.timestamp()),
        "exp": int(expire.timestamp()),
    }

    # Algorithm must match in decode - changing this breaks all existing tokens
    encoded_jwt = jwt.encode(
        to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)
    return encoded_jwt, expire


def verify_access_token(token: str, secret_key: Optional[str] = None) -> TokenResult:
    """Verify signature, expiry and claims of a token. Never raises."""
    try:
        claims = jwt.decode(token, secret_key or settings.SECRET_KEY,
                            algorithms=[settings.ALGORITHM])
    except JWTError as e:
        # Expired, tampered, malformed or signed with another secret
        return TokenResult(None, str(e))

    try:
        return TokenResult(TokenPayload(**claims))
    except ValidationError:
        return TokenResult(None, "Token is missing required claims")


def decode_access_token(token: str) -> Optional[TokenPayload]:
    """Decode and verify a token, returning None if it is invalid"""
    return verify_access_token(token).payload


def check_secret_key() -> bool:
    """Log a warning when the built-in signing secret is in effect"""
    if settings.uses_default_secret():
        logger.warning(
            "SECRET_KEY is set to the built-in default. Anyone can forge session "
            "tokens; set SECRET_KEY in the environment or .env before deploying."
        )
        return False
    return True
