"""
Query Context
Explicit tenant scope threaded into every config store call
"""

from dataclasses import dataclass
from typing import Optional

from agent_console.core.exceptions import ValidationFailed


@dataclass(frozen=True)
class QueryContext:
    """Caller's tenant and whether tenant filtering is bypassed"""

    tenant_id: Optional[str]
    is_global_user: bool = False

    def scope(self, query, tenant_column):
        """Apply the tenant filter unless the caller is a global user"""
        if self.is_global_user:
            return query
        return query.filter(tenant_column == self.tenant_id)

    def resolve_tenant(self, requested_tenant_id: Optional[str] = None) -> str:
        """
        Tenant that new records are written to

        Tenant users always write to their own tenant. Global users may
        target any tenant and must name one when they have none.
        """
        if self.is_global_user and requested_tenant_id:
            return requested_tenant_id
        if self.tenant_id:
            return self.tenant_id
        raise ValidationFailed("tenantId is required for global users", field="tenantId")
