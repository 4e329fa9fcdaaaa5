"""
Authentication dependencies for the Vadiler backend

- Admin panel: JWT bearer tokens (HS256, AUTH_SECRET) carrying a panel role
- Scheduled jobs: static bearer secret (CRON_SECRET)
- Storefront customers: signed session cookie (see core.session)
"""
import hmac
from typing import Optional

from fastapi import Depends, HTTPException, status, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext
from pydantic import BaseModel

from vadiler.core.config import settings
from vadiler.core.session import CUSTOMER_SESSION_COOKIE, verify_customer_session

ADMIN_JWT_ALGORITHM = "HS256"

# Panel roles, highest first; unknown roles rank 0
ROLE_LEVELS = {
    "admin": 3,
    "editor": 2,
    "viewer": 1,
}

security = HTTPBearer(auto_error=False)

# Customer passwords are stored as bcrypt hashes
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


class TokenUser(BaseModel):
    """Admin panel user taken from the bearer token"""
    id: str
    email: str
    name: Optional[str] = None
    role: str = "viewer"


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def decode_admin_token(token: str) -> dict:
    """
    Verify an admin panel JWT and return its claims.

    The panel signs {sub, email, name, role, exp} with AUTH_SECRET.
    """
    if not settings.AUTH_SECRET:
        raise HTTPException(status_code=500, detail="AUTH_SECRET not configured")

    try:
        return jwt.decode(token, settings.AUTH_SECRET, algorithms=[ADMIN_JWT_ALGORITHM],
                          options={"verify_aud": False})
    except ExpiredSignatureError:
        raise _unauthorized("Oturum süresi doldu")
    except JWTError:
        raise _unauthorized("Geçersiz token")


async def get_admin_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> TokenUser:
    if not credentials:
        raise _unauthorized("Authentication required")

    claims = decode_admin_token(credentials.credentials)
    user_id = claims.get("sub") or claims.get("id")
    if not user_id or not claims.get("email"):
        raise _unauthorized("Token is missing the user id or email")

    return TokenUser(
        id=str(user_id),
        email=claims["email"],
        name=claims.get("name"),
        role=claims.get("role") or "viewer",
    )


def require_role(required_role: str):
    """
    Dependency factory: the panel user must hold `required_role` or higher.

    Usage:
        user: TokenUser = Depends(require_role("editor"))
    """
    required_level = ROLE_LEVELS.get(required_role, 0)

    async def role_checker(user: TokenUser = Depends(get_admin_user)) -> TokenUser:
        if ROLE_LEVELS.get(user.role, 0) < required_level:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Bu işlem için {required_role} yetkisi gerekli",
            )
        return user

    return role_checker


require_admin = require_role("admin")


# =============================================================================
# Cron jobs
# =============================================================================

async def verify_cron_secret(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> None:
    """
    Guard for endpoints called by the external scheduler.

    Expects `Authorization: Bearer <CRON_SECRET>`.
    """
    if not settings.CRON_SECRET:
        raise HTTPException(status_code=500, detail="CRON_SECRET not configured")

    provided = credentials.credentials if credentials else ""
    if not hmac.compare_digest(provided.encode(), settings.CRON_SECRET.encode()):
        raise HTTPException(status_code=401, detail="Unauthorized")


# =============================================================================
# Storefront customers
# =============================================================================

def get_customer_session(request: Request) -> Optional[dict]:
    """Return the verified session payload from the cookie, or None."""
    token = request.cookies.get(CUSTOMER_SESSION_COOKIE)
    if not token:
        return None
    return verify_customer_session(token)


async def require_customer(request: Request) -> dict:
    """Dependency for customer-only endpoints."""
    session = get_customer_session(request)
    if not session:
        raise HTTPException(status_code=401, detail="Oturum bulunamadı. Lütfen giriş yapın.")
    return session


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, stored: Optional[str]) -> bool:
    """
    Check a customer password.

    Older accounts were imported with plaintext passwords; those still
    compare equal until the customer resets.
    """
    if not stored or not password:
        return False

    if stored.startswith("$2"):
        try:
            return pwd_context.verify(password, stored)
        except ValueError:
            return False

    return hmac.compare_digest(password.encode(), stored.encode())
