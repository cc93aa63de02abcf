"""
Admin routes: onboarding, sender policy and health.

The OAuth exchange happens outside this service; whatever completes it
posts the resulting board id and token to ``/tenants``.
"""

from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, HTTPException, Request, status
from loguru import logger
from pydantic import BaseModel, Field

from mailboard.domain.errors import NotFoundError, SchemaResolutionError
from mailboard.infrastructure.services import Services

router = APIRouter()


# ============================================================================
# Request/Response Models
# ============================================================================


class OnboardRequest(BaseModel):
    """Credential handed over once the OAuth exchange completes."""

    tenant_id: str = Field(..., min_length=1, description="monday.com board id")
    access_token: str = Field(..., min_length=1, description="Board-scoped access token")


class TenantResponse(BaseModel):
    tenant_id: str
    field_mapping: dict[str, str]
    allowed_sender: str | None = None
    polling: bool = False


class SenderConfigRequest(BaseModel):
    tenant_id: str = Field(..., min_length=1)
    allowed_sender_email: str = Field(..., min_length=3, pattern=r"^[^@\s]+@[^@\s]+$")


class SenderConfigResponse(BaseModel):
    message: str
    tenant_id: str
    allowed_sender_email: str


def _services(request: Request) -> Services:
    return request.app.state.services


def _tenant_response(services: Services, tenant) -> TenantResponse:
    return TenantResponse(
        tenant_id=tenant.tenant_id,
        field_mapping=dict(tenant.field_mapping),
        allowed_sender=tenant.allowed_sender,
        polling=services.scheduler.is_running(tenant.tenant_id),
    )


# ============================================================================
# Endpoints
# ============================================================================


@router.post("/tenants", response_model=TenantResponse, status_code=status.HTTP_201_CREATED)
async def onboard_tenant(payload: OnboardRequest, request: Request) -> TenantResponse:
    """Resolve the board's intake columns, register the tenant and start polling."""
    services = _services(request)
    try:
        tenant = await services.registry.onboard(payload.tenant_id, payload.access_token)
    except SchemaResolutionError as e:
        logger.error(f"Onboarding failed for {payload.tenant_id}: {e}")
        raise HTTPException(status_code=502, detail=e.message)

    services.scheduler.start(tenant.tenant_id)
    logger.info(f"Tenant {tenant.tenant_id} onboarded")
    return _tenant_response(services, tenant)


@router.get("/tenants/{tenant_id}", response_model=TenantResponse)
async def get_tenant(tenant_id: str, request: Request) -> TenantResponse:
    services = _services(request)
    tenant = services.registry.get(tenant_id)
    if tenant is None:
        raise HTTPException(status_code=404, detail="Board not registered")
    return _tenant_response(services, tenant)


@router.post("/config/sender", response_model=SenderConfigResponse)
async def set_allowed_sender(payload: SenderConfigRequest, request: Request) -> SenderConfigResponse:
    services = _services(request)
    try:
        tenant = services.registry.set_allowed_sender(payload.tenant_id, payload.allowed_sender_email)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Board not registered")

    return SenderConfigResponse(
        message="Allowed sender email saved",
        tenant_id=tenant.tenant_id,
        allowed_sender_email=tenant.allowed_sender,
    )


@router.get("/health")
async def health(request: Request) -> dict[str, Any]:
    services = _services(request)
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "tenants": len(services.registry.tenants()),
        "claimed_messages": len(services.ledger),
        "pollers": services.scheduler.all_stats(),
    }
