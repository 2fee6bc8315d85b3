from __future__ import annotations

import enum
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta

from fastapi import Depends, HTTPException, Request
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt

from skillcourses.core.config import settings


oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token", auto_error=False)


class UserRole(str, enum.Enum):
    student = "student"
    faculty = "faculty"
    admin = "admin"


@dataclass(frozen=True)
class Principal:
    """Identity asserted by the campus auth service."""

    id: uuid.UUID
    role: UserRole
    name: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.admin


def create_access_token(*, user_id: str, role: str, name: str | None = None) -> str:
    now = datetime.utcnow()
    expire = now + timedelta(minutes=settings.jwt_access_token_minutes)
    payload = {
        "sub": user_id,
        "role": role,
        "iat": now,
        "exp": expire,
        "iss": str(settings.jwt_issuer),
        "jti": str(uuid.uuid4()),
    }
    if name:
        payload["name"] = name
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def get_current_user(
    request: Request,
    token: str = Depends(oauth2_scheme),
) -> Principal:
    if not token:
        token = request.cookies.get("campus_token")
    if not token:
        raise HTTPException(status_code=401, detail="not authenticated")

    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
            issuer=str(settings.jwt_issuer),
        )
    except JWTError as e:
        raise HTTPException(status_code=401, detail="invalid token") from e

    try:
        user_id = uuid.UUID(str(payload.get("sub") or ""))
        role = UserRole(str(payload.get("role") or ""))
    except ValueError as e:
        raise HTTPException(status_code=401, detail="invalid token") from e

    request.state.user_id = str(user_id)
    return Principal(id=user_id, role=role, name=payload.get("name"))


def require_roles(*roles: UserRole):
    def _dep(user: Principal = Depends(get_current_user)) -> Principal:
        # admin can access everything; other roles only where explicitly allowed
        if user.role == UserRole.admin:
            return user

        if user.role not in roles:
            raise HTTPException(status_code=403, detail="forbidden")
        return user

    return _dep
