"""
Google OAuth endpoints for connecting a tenant's spreadsheet backend.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, ConfigDict, Field

from adapters.dependencies import get_adapter_factory, get_vault
from adapters.factory import AdapterFactory
from auth import dependencies as auth_dependencies
from auth import security
from core.vault import CredentialVault

from . import service

router = APIRouter(prefix="/auth/google")


class RefreshRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    tenant_id: str = Field(..., min_length=1, alias="tenantId")


def _check_tenant(claims: dict, tenant_id: str) -> None:
    if not security.can_access_tenant(claims, tenant_id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not allowed to access this tenant.",
        )


@router.get("/start")
async def start(
    tenant_id: str = Query(..., min_length=1, alias="tenantId"),
    admin_email: str = Query(..., min_length=3, alias="adminEmail"),
    claims: dict = Depends(auth_dependencies.get_current_claims),
) -> dict:
    _check_tenant(claims, tenant_id)
    return await service.start_authorization(tenant_id, admin_email=admin_email)


@router.get("/callback")
async def callback(
    code: str = Query(..., min_length=1),
    state: str = Query(..., min_length=1),
    vault: CredentialVault = Depends(get_vault),
    factory: AdapterFactory = Depends(get_adapter_factory),
) -> dict:
    # Called by Google's redirect; the state token stands in for the bearer token.
    return await service.complete_authorization(code=code, state=state, vault=vault, factory=factory)


@router.post("/refresh")
async def refresh(
    request: RefreshRequest,
    claims: dict = Depends(auth_dependencies.get_current_claims),
    vault: CredentialVault = Depends(get_vault),
    factory: AdapterFactory = Depends(get_adapter_factory),
) -> dict:
    _check_tenant(claims, request.tenant_id)
    return await service.refresh_access_token(request.tenant_id, vault=vault, factory=factory)
