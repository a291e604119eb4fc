"""API Dependencies - Authentication and request guards"""
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from typing import Dict, Optional

from domain.auth import AdminUser, AdminUserInDB
from infrastructure.config import get_settings
from infrastructure.security import decode_access_token, get_password_hash
from api.schemas import TokenData

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="token")

# Cache for hashed passwords, keyed by (username, plain password)
_password_hash_cache: Dict[tuple, str] = {}


def _get_hashed_password(username: str, plain_password: str) -> str:
    """Lazily hash the configured password on first access"""
    key = (username, plain_password)
    if key not in _password_hash_cache:
        _password_hash_cache[key] = get_password_hash(plain_password)
    return _password_hash_cache[key]


def get_admin_users() -> Dict[str, dict]:
    """Admins known to this deployment; empty unless ADMIN_USER and ADMIN_PASS are set"""
    settings = get_settings()
    if not settings.admin_configured:
        return {}
    return {
        settings.admin_username: {
            "username": settings.admin_username,
            "hashed_password": _get_hashed_password(settings.admin_username, settings.admin_password),
            "disabled": False,
        }
    }


def get_user(db: Dict[str, dict], username: str) -> Optional[AdminUserInDB]:
    if username in db:
        return AdminUserInDB(**db[username])
    return None


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    admin_users: Dict[str, dict] = Depends(get_admin_users)
) -> AdminUserInDB:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = decode_access_token(token)
        username: str = payload.get("sub")
        if username is None:
            raise credentials_exception
        token_data = TokenData(username=username)
    except JWTError:
        raise credentials_exception

    user = get_user(admin_users, username=token_data.username)
    if user is None:
        raise credentials_exception
    return user


async def get_current_active_user(current_user: AdminUser = Depends(get_current_user)):
    if current_user.disabled:
        raise HTTPException(status_code=400, detail="Inactive user")
    return current_user


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    return request.client.host if request.client else "unknown"


async def enforce_booking_rate_limit(request: Request) -> None:
    limiter = request.app.state.booking_rate_limiter
    if not await limiter.hit(client_ip(request)):
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many requests. Please try again later."
        )
