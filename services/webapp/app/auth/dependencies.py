# =============================================================================
# Authentication Dependencies
# =============================================================================
# FastAPI dependencies resolving the caller identity.
# =============================================================================

from typing import Optional

from fastapi import Depends, Header, HTTPException, status

from app.auth.providers import Caller, GatewayHeaderProvider
from app.config import Settings, get_settings


def get_identity_provider(settings: Settings = Depends(get_settings)) -> GatewayHeaderProvider:
    """Get the identity provider instance."""
    return GatewayHeaderProvider(cross_tenant_roles=settings.cross_tenant_roles)


def get_current_caller(
    x_tenant_id: Optional[str] = Header(None),
    x_user_id: Optional[str] = Header(None),
    x_user_role: Optional[str] = Header(None),
    provider: GatewayHeaderProvider = Depends(get_identity_provider),
) -> Caller:
    """
    Resolve the caller from the gateway identity headers.

    Raises:
        HTTPException: 401 Unauthorized if tenant or user is missing.
    """
    caller = provider.identify(
        {
            "tenant_id": x_tenant_id,
            "user_id": x_user_id,
            "role": x_user_role,
        }
    )

    if caller is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing caller identity",
        )

    return caller
