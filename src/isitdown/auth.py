"""
Account sessions: bcrypt password hashes and a signed JWT kept in an
http-only cookie, plus single-use password-reset tokens.
"""
import hashlib
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.ext.asyncio import AsyncSession

from isitdown.config import get_settings
from isitdown.database import get_db
from isitdown.models.user import User

settings = get_settings()
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

COOKIE_NAME = "access_token"


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    return pwd_context.verify(password, password_hash)


def create_session_token(user_id: str, expires_in: Optional[timedelta] = None) -> str:
    lifetime = expires_in or timedelta(minutes=settings.access_token_expire_minutes)
    claims = {"sub": user_id, "exp": datetime.now(timezone.utc) + lifetime}
    return jwt.encode(claims, settings.secret_key, algorithm=settings.jwt_algorithm)


def read_session_token(token: str) -> Optional[str]:
    """User id carried by a valid, unexpired token; None otherwise."""
    if not token:
        return None
    try:
        claims = jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None
    if "purpose" in claims:
        # e.g. a password-reset token, which must not open a session
        return None
    return claims.get("sub")


RESET_PURPOSE = "password-reset"


def password_fingerprint(password_hash: str) -> str:
    # Changes whenever the password does, so a reset token works only once
    return hashlib.sha256(password_hash.encode()).hexdigest()[:16]


def create_reset_token(user: User, expires_in: Optional[timedelta] = None) -> str:
    lifetime = expires_in or timedelta(minutes=settings.password_reset_expire_minutes)
    claims = {
        "sub": user.id,
        "purpose": RESET_PURPOSE,
        "pwd": password_fingerprint(user.password_hash),
        "exp": datetime.now(timezone.utc) + lifetime,
    }
    return jwt.encode(claims, settings.secret_key, algorithm=settings.jwt_algorithm)


def read_reset_token(token: str) -> Optional[tuple[str, str]]:
    """(user id, password fingerprint) of a valid reset token; None otherwise."""
    try:
        claims = jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None
    if claims.get("purpose") != RESET_PURPOSE or not claims.get("sub"):
        return None
    return claims["sub"], claims.get("pwd", "")


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


async def get_current_user(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> User:
    user_id = read_session_token(request.cookies.get(COOKIE_NAME, ""))
    if user_id is None:
        raise _unauthorized("Not authenticated")

    user = await db.get(User, user_id)
    # Deactivated accounts lose their sessions immediately
    if user is None or not user.is_active:
        raise _unauthorized("Session is no longer valid")
    return user
