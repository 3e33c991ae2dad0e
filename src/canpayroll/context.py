"""Security context passed into payroll services."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from uuid import UUID


class Role(str, Enum):
    """Roles allowed to operate payroll."""

    FIRM_ADMIN = "firm_admin"
    FIRM_USER = "firm_user"
    SUPER_ADMIN = "super_admin"


@dataclass(frozen=True)
class TenantContext:
    """Who is acting, and on behalf of which firm.

    Every repository query is scoped to ``tenant_id``; records of other
    tenants are reported as not found.
    """

    tenant_id: UUID
    user_id: UUID | None = None
    role: Role = Role.FIRM_USER
