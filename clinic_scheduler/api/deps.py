from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from typing import List

from ..core.config import settings
from ..core.database import get_db, get_redis
from ..core.security import (
    security, verify_token, AuthenticationError,
    AuthorizationError, UserRole, TokenPayload
)
from ..models.user import User
from ..schemas.directory import Principal

async def get_current_user_token(
    credentials: HTTPAuthorizationCredentials = Depends(security)
) -> TokenPayload:
    """Extract and verify JWT token from Authorization header."""
    token_payload = verify_token(credentials.credentials)
    if not token_payload:
        raise AuthenticationError("Invalid or expired token")

    if token_payload.token_type != "access":
        raise AuthenticationError("Invalid token type")

    return token_payload

def get_current_user(
    token_payload: TokenPayload = Depends(get_current_user_token),
    db: Session = Depends(get_db)
) -> User:
    """Load the active directory record behind the token."""
    if not token_payload.sub:
        raise AuthenticationError("Invalid token payload")

    user = db.query(User).filter(User.id == token_payload.sub).first()
    if not user:
        raise AuthenticationError("User not found")

    if not user.is_active:
        raise AuthenticationError("User account is deactivated")

    return user

def get_current_principal(
    current_user: User = Depends(get_current_user)
) -> Principal:
    """The authenticated actor handed to the scheduling engines."""
    return Principal.from_user(current_user)

# Role-based access control dependencies
def require_role(allowed_roles: List[UserRole]):
    """Create a dependency that requires specific user roles."""
    def role_checker(
        principal: Principal = Depends(get_current_principal)
    ) -> Principal:
        if not principal.has_role(*allowed_roles):
            raise AuthorizationError(
                f"Access denied. Required roles: {[role.value for role in allowed_roles]}"
            )
        return principal

    return role_checker

# Specific role dependencies
def get_admin_principal(
    principal: Principal = Depends(require_role([UserRole.ADMIN]))
) -> Principal:
    """Require admin role."""
    return principal

def get_doctor_principal(
    principal: Principal = Depends(require_role([UserRole.DOCTOR, UserRole.ADMIN]))
) -> Principal:
    """Require doctor or admin role."""
    return principal

def get_patient_principal(
    principal: Principal = Depends(require_role([UserRole.PATIENT, UserRole.ADMIN]))
) -> Principal:
    """Require patient or admin role."""
    return principal

def get_booking_principal(
    principal: Principal = Depends(require_role([UserRole.PATIENT]))
) -> Principal:
    """Require patient role; booking provisions a patient profile for the caller."""
    return principal

# Rate limiting dependency
def booking_rate_limit(
    principal: Principal = Depends(get_current_principal),
    redis_client = Depends(get_redis)
) -> None:
    """Per-principal hourly cap on booking requests."""
    key = f"rate_limit:booking:{principal.id}"

    current_requests = redis_client.get(key)
    if current_requests is None:
        redis_client.setex(key, 3600, 1)
    else:
        if int(current_requests) >= settings.BOOKING_RATE_LIMIT_PER_HOUR:
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail="Too many booking requests. Please try again later."
            )
        redis_client.incr(key)
