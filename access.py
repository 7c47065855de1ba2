"""Office scope and category role policy.

Both are pure: they compute restrictions from the caller and hand back
values or SQL predicates; the registry and ledger apply them.
"""

from dataclasses import dataclass
from typing import Iterable, Optional

from sqlalchemy import and_, exists, not_, or_, select

from models import ALL_ROLES, Role
from orm import AssetORM, CategoryRoleORM


@dataclass(frozen=True)
class OfficeScope:
    office_id: Optional[int] = None
    restricted: bool = False

    def allows(self, office_id: Optional[int]) -> bool:
        if not self.restricted:
            return True
        return self.office_id is not None and office_id == self.office_id

    def asset_clause(self):
        """Predicate on ``AssetORM.office_id``, or None when unrestricted."""
        if not self.restricted:
            return None
        return AssetORM.office_id == self.office_id


UNRESTRICTED = OfficeScope()


def scope_for(user, requested_office_id: Optional[int] = None) -> OfficeScope:
    # guards are pinned to their own office; an override is ignored
    if user.role == Role.SECURITY_GUARD:
        return OfficeScope(office_id=user.office_id, restricted=True)
    if requested_office_id:
        return OfficeScope(office_id=requested_office_id, restricted=True)
    return UNRESTRICTED


# ---------- Category policy ----------
def join_roles(roles: Iterable[Role]) -> str:
    picked = set(roles)
    return ",".join(r.value for r in ALL_ROLES if r in picked)


def role_allowed(allowed_roles: Optional[Iterable[Role]], role: Role) -> bool:
    allowed = set(allowed_roles or ())
    if not allowed:
        return True
    return role in allowed


def category_visible_clause(role: Role):
    """Asset-level predicate: the asset's category admits ``role``.

    A category without role rows admits every role.
    """
    any_row = exists(
        select(CategoryRoleORM.id).where(CategoryRoleORM.category_id == AssetORM.category_id)
    )
    own_row = exists(
        select(CategoryRoleORM.id).where(
            and_(
                CategoryRoleORM.category_id == AssetORM.category_id,
                CategoryRoleORM.role == role,
            )
        )
    )
    return or_(not_(any_row), own_row)
