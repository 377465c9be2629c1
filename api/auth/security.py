"""
Access-token verification helpers.
"""

from __future__ import annotations

import os
from typing import Any

import jwt

SUPER_ADMIN_ROLE = "super_admin"


class AuthSecurityError(RuntimeError):
    pass


def jwt_secret() -> str:
    # Local default keeps development simple.
    # In production, set JWT_SECRET in environment.
    return os.environ.get("JWT_SECRET", "dev-change-this-secret").strip() or "dev-change-this-secret"


def jwt_algorithm() -> str:
    return os.environ.get("JWT_ALG", "HS256").strip() or "HS256"


def decode_access_token(token: str) -> dict[str, Any]:
    raw = (token or "").strip()
    if not raw:
        raise AuthSecurityError("Access token is empty.")

    try:
        payload = jwt.decode(raw, jwt_secret(), algorithms=[jwt_algorithm()])
    except jwt.InvalidTokenError as exc:
        raise AuthSecurityError("Invalid access token.") from exc

    token_type = str(payload.get("type") or "").strip().lower()
    if token_type != "access":
        raise AuthSecurityError("Token is not an access token.")

    return payload


def can_access_tenant(claims: dict[str, Any], tenant_id: str) -> bool:
    if str(claims.get("role") or "").strip().lower() == SUPER_ADMIN_ROLE:
        return True
    return str(claims.get("tenant_id") or "") == str(tenant_id)
