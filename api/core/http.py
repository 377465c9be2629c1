"""
HTTP helpers shared by the backend clients (Teable, Google Sheets, Google OAuth).

Every backend call opens a short-lived `httpx.AsyncClient`. Failures are
explicit `BackendHTTPError`s so callers can tell a backend problem from a
programming error.
"""

from __future__ import annotations

import os
from typing import Any

import httpx

DEFAULT_TIMEOUT_S = 30.0


class BackendHTTPError(RuntimeError):
    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def timeout_s() -> float:
    raw = os.environ.get("ADAPTER_HTTP_TIMEOUT_S", "").strip()
    if not raw:
        return DEFAULT_TIMEOUT_S
    try:
        value = float(raw)
    except ValueError:
        return DEFAULT_TIMEOUT_S
    return value if value > 0 else DEFAULT_TIMEOUT_S


def normalize_base_url(base_url: str | None, *, label: str) -> str:
    base_url = (base_url or "").strip()
    if not base_url:
        raise BackendHTTPError(f"{label} base URL is empty.")
    return base_url.rstrip("/")


async def request_json(
    *,
    label: str,
    method: str,
    url: str,
    base_url: str | None = None,
    headers: dict[str, str] | None = None,
    params: dict[str, Any] | None = None,
    json: Any = None,
    data: dict[str, Any] | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> Any:
    """
    Send one request and return the decoded JSON body (or None for an empty body).
    """
    client_kwargs: dict[str, Any] = {"timeout": timeout_s(), "transport": transport}
    if base_url:
        client_kwargs["base_url"] = base_url

    try:
        async with httpx.AsyncClient(**client_kwargs) as client:
            resp = await client.request(
                method,
                url,
                headers=headers,
                params=params,
                json=json,
                data=data,
            )
    except httpx.HTTPError as exc:
        raise BackendHTTPError(f"{label} request failed: {exc}") from exc

    if resp.status_code >= 400:
        # Keep the message short; some backends return full HTML error pages.
        body = resp.text[:500]
        raise BackendHTTPError(
            f"{label} API error: {resp.status_code} {body}",
            status_code=resp.status_code,
        )

    if not resp.content:
        return None
    try:
        return resp.json()
    except ValueError as exc:
        raise BackendHTTPError(f"{label} returned a non-JSON response.") from exc
