# =============================================================================
# Caller Identity Providers
# =============================================================================
# Abstract provider interface with a gateway-header implementation.
# Authentication happens upstream; the gateway forwards the verified
# tenant, user and role of every request.
# =============================================================================

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Iterable, Optional


@dataclass
class Caller:
    """Identity of the caller of a job API."""

    tenant_id: str
    user_id: str
    role: str = ""
    cross_tenant_roles: frozenset[str] = field(default_factory=frozenset, repr=False)

    @property
    def is_cross_tenant(self) -> bool:
        return self.role.upper() in self.cross_tenant_roles

    def can_access_tenant(self, tenant_id: str) -> bool:
        return self.is_cross_tenant or self.tenant_id == tenant_id


class IdentityProvider(ABC):
    """Abstract caller identity provider interface."""

    @abstractmethod
    def identify(self, credentials: dict) -> Optional[Caller]:
        """
        Resolve the caller from request credentials.

        Returns:
            Caller if the identity is complete, None otherwise.
        """
        ...


class GatewayHeaderProvider(IdentityProvider):
    """Trusts identity headers set by the API gateway."""

    def __init__(self, cross_tenant_roles: Iterable[str] = ("SUPER_ADMIN",)) -> None:
        self._cross_tenant_roles = frozenset(r.upper() for r in cross_tenant_roles)

    def identify(self, credentials: dict) -> Optional[Caller]:
        """
        Args:
            credentials: Dict with 'tenant_id', 'user_id' and optional 'role'.
        """
        tenant_id = (credentials.get("tenant_id") or "").strip()
        user_id = (credentials.get("user_id") or "").strip()
        if not tenant_id or not user_id:
            return None

        return Caller(
            tenant_id=tenant_id,
            user_id=user_id,
            role=(credentials.get("role") or "").strip(),
            cross_tenant_roles=self._cross_tenant_roles,
        )
