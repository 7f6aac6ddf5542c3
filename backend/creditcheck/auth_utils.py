"""Bearer-token handling for the credit-report routes.

Tokens are HS256 JWTs whose ``sub`` claim is the applicant's user id.
Only ``type == "access"`` tokens are honoured.
"""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession

from creditcheck.config import settings
from creditcheck.database import get_db
from creditcheck.models.user import User

ALGORITHM = "HS256"
TOKEN_TYPE = "access"

_required_bearer = HTTPBearer()
_optional_bearer = HTTPBearer(auto_error=False)


def create_access_token(
    data: dict,
    expires_delta: Optional[timedelta] = None,
    jti: Optional[str] = None,
) -> str:
    lifetime = expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    claims = {
        **data,
        "exp": datetime.now(timezone.utc) + lifetime,
        "type": TOKEN_TYPE,
        "jti": jti or uuid.uuid4().hex,
    }
    return jwt.encode(claims, settings.secret_key, algorithm=ALGORITHM)


def decode_token(token: str) -> dict:
    """Verify signature and expiry; raises JWTError when either fails."""
    return jwt.decode(token, settings.secret_key, algorithms=[ALGORITHM])


def _user_id_from_token(token: str) -> int | None:
    try:
        claims = decode_token(token)
    except JWTError:
        return None
    if claims.get("type") != TOKEN_TYPE:
        return None
    try:
        return int(claims["sub"])
    except (KeyError, TypeError, ValueError):
        return None


async def _active_user(db: AsyncSession, token: str) -> User | None:
    user_id = _user_id_from_token(token)
    if user_id is None:
        return None
    applicant = await db.get(User, user_id)
    if applicant is None or not applicant.is_active:
        return None
    return applicant


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(_required_bearer),
    db: AsyncSession = Depends(get_db),
) -> User:
    """The applicant behind the bearer token, or 401."""
    applicant = await _active_user(db, credentials.credentials)
    if applicant is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return applicant


async def get_optional_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(_optional_bearer),
    db: AsyncSession = Depends(get_db),
) -> User | None:
    # Lead capture accepts anonymous callers, so a bad token is just "no user"
    if credentials is None:
        return None
    return await _active_user(db, credentials.credentials)
