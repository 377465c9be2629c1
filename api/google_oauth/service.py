"""
Google OAuth business logic.

Access tokens expire after about an hour. Refresh is not automatic inside the
Sheets adapter: `refresh_access_token` must be called before the stored
expiry. It stores the new token encrypted and drops the tenant's cached
adapters so the next request connects with the new token.
"""

from __future__ import annotations

import logging
import os
from datetime import datetime, timedelta, timezone
from typing import Any
from urllib.parse import urlencode

import httpx
from fastapi import HTTPException

from adapters import repository as config_repository
from adapters.factory import AdapterFactory
from core.http import BackendHTTPError, request_json
from core.vault import CredentialVault, VaultError, generate_token

from . import repository

logger = logging.getLogger(__name__)

AUTHORIZATION_URL = "https://accounts.google.com/o/oauth2/v2/auth"
TOKEN_URL = "https://oauth2.googleapis.com/token"
USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"

SCOPES = (
    "https://www.googleapis.com/auth/spreadsheets",
    "https://www.googleapis.com/auth/drive.readonly",
    "https://www.googleapis.com/auth/userinfo.email",
)

DEFAULT_TOKEN_LIFETIME_S = 3600
STATE_TTL = timedelta(minutes=10)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def client_settings() -> dict[str, str]:
    settings = {
        "client_id": os.environ.get("GOOGLE_CLIENT_ID", "").strip(),
        "client_secret": os.environ.get("GOOGLE_CLIENT_SECRET", "").strip(),
        "redirect_uri": os.environ.get("GOOGLE_REDIRECT_URI", "").strip(),
    }
    if not all(settings.values()):
        raise HTTPException(status_code=500, detail="Google OAuth is not configured on the server.")
    return settings


def build_authorization_url(*, state: str, client_id: str, redirect_uri: str) -> str:
    params = {
        "client_id": client_id,
        "redirect_uri": redirect_uri,
        "response_type": "code",
        "access_type": "offline",
        "prompt": "consent",
        "scope": " ".join(SCOPES),
        "state": state,
    }
    return f"{AUTHORIZATION_URL}?{urlencode(params)}"


def _expires_at(credentials: dict[str, Any]) -> datetime:
    try:
        lifetime = int(credentials.get("expires_in") or DEFAULT_TOKEN_LIFETIME_S)
    except (TypeError, ValueError):
        lifetime = DEFAULT_TOKEN_LIFETIME_S
    return _utc_now() + timedelta(seconds=lifetime)


async def _token_request(
    form: dict[str, str],
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> dict[str, Any]:
    try:
        credentials = await request_json(
            label="Google OAuth",
            method="POST",
            url=TOKEN_URL,
            data=form,
            transport=transport,
        )
    except BackendHTTPError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc

    if not isinstance(credentials, dict) or not credentials.get("access_token"):
        raise HTTPException(status_code=502, detail="Google OAuth returned no access token.")
    return credentials


async def start_authorization(tenant_id: str, *, admin_email: str) -> dict[str, str]:
    settings = client_settings()
    state = generate_token()

    await repository.insert_oauth_state(
        state_token=state,
        tenant_id=tenant_id,
        admin_email=admin_email,
        redirect_uri=settings["redirect_uri"],
        expires_at=_utc_now() + STATE_TTL,
    )
    logger.info("google_oauth_started tenant_id=%s", tenant_id)

    return {
        "authUrl": build_authorization_url(
            state=state,
            client_id=settings["client_id"],
            redirect_uri=settings["redirect_uri"],
        )
    }


async def _fetch_user_email(
    access_token: str,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> str | None:
    try:
        info = await request_json(
            label="Google userinfo",
            method="GET",
            url=USERINFO_URL,
            headers={"Authorization": f"Bearer {access_token}"},
            transport=transport,
        )
    except BackendHTTPError as exc:
        logger.warning("google_userinfo_failed error=%s", exc)
        return None
    return (info or {}).get("email")


async def complete_authorization(
    *,
    code: str,
    state: str,
    vault: CredentialVault,
    factory: AdapterFactory,
    transport: httpx.AsyncBaseTransport | None = None,
) -> dict[str, Any]:
    state_row = await repository.get_oauth_state(state)
    if state_row is None:
        raise HTTPException(status_code=400, detail="Invalid or expired OAuth state.")

    expires_at = state_row.get("expires_at")
    if isinstance(expires_at, datetime) and expires_at <= _utc_now():
        await repository.delete_oauth_state(state)
        raise HTTPException(status_code=400, detail="OAuth state expired. Please try again.")

    settings = client_settings()
    credentials = await _token_request(
        {
            "code": code,
            "client_id": settings["client_id"],
            "client_secret": settings["client_secret"],
            "redirect_uri": settings["redirect_uri"],
            "grant_type": "authorization_code",
        },
        transport=transport,
    )
    refresh_token = credentials.get("refresh_token")
    if not refresh_token:
        raise HTTPException(status_code=502, detail="Google OAuth returned no refresh token.")

    tenant_id = str(state_row["customer_id"])
    email = await _fetch_user_email(credentials["access_token"], transport=transport)

    await config_repository.replace_google_sheets_credentials(
        tenant_id,
        encrypted_access_token=vault.encrypt(credentials["access_token"]),
        encrypted_refresh_token=vault.encrypt(refresh_token),
        expires_at=_expires_at(credentials),
        user_email=email,
    )
    await repository.delete_oauth_state(state)
    factory.clear_cache(tenant_id)

    logger.info("google_oauth_completed tenant_id=%s", tenant_id)
    return {"success": True, "tenantId": tenant_id, "email": email}


async def refresh_access_token(
    tenant_id: str,
    *,
    vault: CredentialVault,
    factory: AdapterFactory,
    transport: httpx.AsyncBaseTransport | None = None,
) -> dict[str, Any]:
    config = await config_repository.get_google_sheets_config(tenant_id)
    if config is None:
        raise HTTPException(status_code=404, detail="Google Sheets configuration not found.")
    if not config.get("oauth_refresh_token"):
        raise HTTPException(status_code=409, detail="No refresh token stored for this tenant.")

    try:
        refresh_token = vault.decrypt(config["oauth_refresh_token"])
    except VaultError as exc:
        logger.error("refresh_token_decrypt_failed tenant_id=%s", tenant_id)
        raise HTTPException(status_code=500, detail="Stored credentials could not be decrypted.") from exc

    settings = client_settings()
    credentials = await _token_request(
        {
            "client_id": settings["client_id"],
            "client_secret": settings["client_secret"],
            "refresh_token": refresh_token,
            "grant_type": "refresh_token",
        },
        transport=transport,
    )

    expires_at = _expires_at(credentials)
    await config_repository.update_access_token(
        int(config["id"]),
        encrypted_access_token=vault.encrypt(credentials["access_token"]),
        expires_at=expires_at,
    )
    factory.clear_cache(tenant_id)

    logger.info("google_token_refreshed tenant_id=%s expires_at=%s", tenant_id, expires_at.isoformat())
    return {"success": True, "expiresAt": expires_at.isoformat()}
