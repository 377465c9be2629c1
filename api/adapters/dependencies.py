"""
FastAPI dependencies exposing the process-wide factory and vault.

Both are built once in the app lifespan (see `api/main.py`) and stored on
`app.state`.
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from core.vault import CredentialVault

from .factory import AdapterFactory


def get_adapter_factory(request: Request) -> AdapterFactory:
    factory = getattr(request.app.state, "adapter_factory", None)
    if factory is None:
        raise HTTPException(status_code=503, detail="Adapter factory is not initialized.")
    return factory


def get_vault(request: Request) -> CredentialVault:
    vault = getattr(request.app.state, "vault", None)
    if vault is None:
        raise HTTPException(status_code=503, detail="Credential vault is not initialized.")
    return vault
