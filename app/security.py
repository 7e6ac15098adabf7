from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Mapping
from uuid import uuid4

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from app.errors import ApiError
from app.settings import get_settings

bearer_scheme = HTTPBearer(auto_error=False)

ADMIN_ROLE = "admin"
EMPLOYEE_ROLE = "employee"

ADMIN_PERMISSION_KEYS: tuple[str, ...] = (
    "summaries",
    "leaves",
    "reports",
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def empty_permissions() -> dict[str, dict[str, bool]]:
    return {key: {"read": False, "write": False} for key in ADMIN_PERMISSION_KEYS}


def full_permissions() -> dict[str, dict[str, bool]]:
    return {key: {"read": True, "write": True} for key in ADMIN_PERMISSION_KEYS}


def normalize_permissions(raw: Mapping[str, Any] | None) -> dict[str, dict[str, bool]]:
    normalized = empty_permissions()
    if not isinstance(raw, Mapping):
        return normalized

    for key, value in raw.items():
        if key not in normalized:
            continue
        if isinstance(value, Mapping):
            read = bool(value.get("read"))
            write = bool(value.get("write"))
        else:
            read = bool(value)
            write = bool(value)
        if write:
            read = True
        normalized[key] = {"read": read, "write": write}
    return normalized


def has_permission(claims: Mapping[str, Any], permission: str, *, write: bool = False) -> bool:
    if permission not in ADMIN_PERMISSION_KEYS:
        return False
    if bool(claims.get("is_super_admin")):
        return True

    # Tokens issued without granular permissions carry full admin rights.
    if claims.get("permissions") is None and claims.get("role") == ADMIN_ROLE:
        return True

    permissions = normalize_permissions(claims.get("permissions"))  # type: ignore[arg-type]
    permission_value = permissions.get(permission)
    if not permission_value:
        return False
    if write:
        return bool(permission_value.get("write"))
    return bool(permission_value.get("read") or permission_value.get("write"))


def create_access_token(
    *,
    sub: str,
    username: str | None = None,
    role: str = ADMIN_ROLE,
    employee_id: int | None = None,
    is_super_admin: bool = False,
    permissions: Mapping[str, Any] | None = None,
) -> tuple[str, int, dict[str, Any]]:
    """Mint an access token with the claims this API expects.

    Production tokens come from the identity service; this helper exists for
    local tooling and tests, which need tokens signed with the same secret.
    """
    settings = get_settings()
    now = _utcnow()
    claims: dict[str, Any] = {
        "sub": sub,
        "username": username or sub,
        "role": role,
        "is_super_admin": is_super_admin,
        "iss": settings.jwt_issuer,
        "aud": settings.jwt_audience,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=settings.access_token_minutes)).timestamp()),
        "jti": str(uuid4()),
        "typ": "access",
    }
    if role == ADMIN_ROLE:
        claims["permissions"] = normalize_permissions(permissions) if permissions is not None else None
    if employee_id is not None:
        claims["employee_id"] = employee_id
    token = jwt.encode(claims, settings.jwt_secret, algorithm="HS256")
    return token, settings.access_token_minutes * 60, claims


def decode_token(token: str, *, expected_role: str) -> dict[str, Any]:
    settings = get_settings()
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=["HS256"],
            audience=settings.jwt_audience,
            issuer=settings.jwt_issuer,
            options={"require_sub": True, "require_iat": True, "require_exp": True},
        )
    except JWTError as exc:
        raise ApiError(status_code=401, code="INVALID_TOKEN", message="Token is invalid.") from exc

    if payload.get("typ") != "access":
        raise ApiError(status_code=401, code="INVALID_TOKEN", message="Token type is invalid.")

    subject = payload.get("sub")
    if not isinstance(subject, str) or not subject:
        raise ApiError(status_code=401, code="INVALID_TOKEN", message="Token subject is invalid.")

    if payload.get("role") != expected_role:
        raise ApiError(status_code=403, code="FORBIDDEN", message="Insufficient permissions.")

    return payload


def _bearer_token(credentials: HTTPAuthorizationCredentials | None) -> str:
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise ApiError(status_code=401, code="INVALID_TOKEN", message="Missing bearer token.")
    return credentials.credentials


def require_admin(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> dict[str, Any]:
    payload = decode_token(_bearer_token(credentials), expected_role=ADMIN_ROLE)

    request.state.actor = "admin"
    request.state.actor_id = str(payload.get("username") or payload.get("sub") or "admin")
    return payload


def require_admin_permission(permission: str, *, write: bool = False) -> Callable[..., dict[str, Any]]:
    if permission not in ADMIN_PERMISSION_KEYS:
        raise ValueError(f"Unknown admin permission: {permission}")

    def _dependency(claims: dict[str, Any] = Depends(require_admin)) -> dict[str, Any]:
        if not has_permission(claims, permission, write=write):
            raise ApiError(status_code=403, code="FORBIDDEN", message="Insufficient permissions.")
        return claims

    return _dependency


def require_employee(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> dict[str, Any]:
    payload = decode_token(_bearer_token(credentials), expected_role=EMPLOYEE_ROLE)

    raw_employee_id = payload.get("employee_id")
    if isinstance(raw_employee_id, bool) or not isinstance(raw_employee_id, (int, str)):
        raise ApiError(status_code=401, code="INVALID_TOKEN", message="Token employee is invalid.")
    try:
        employee_id = int(raw_employee_id)
    except ValueError as exc:
        raise ApiError(status_code=401, code="INVALID_TOKEN", message="Token employee is invalid.") from exc
    if employee_id <= 0:
        raise ApiError(status_code=401, code="INVALID_TOKEN", message="Token employee is invalid.")

    payload["employee_id"] = employee_id
    request.state.actor = "employee"
    request.state.actor_id = str(employee_id)
    return payload
