"""Role resolution and the first-admin bootstrap.

resolve_role() is a one-shot read-then-maybe-write: it reads the actor's
assignments, and only when there are none checks whether the actor is the very
first one (empty role store) or the store owner (earliest profile). Either case
attempts a single admin insert. An insert conflict is a lost bootstrap race and
resolves as ``user`` for this call only; the next call re-reads the store.

This is best-effort, not exactly-once: under the default strategy two first
sign-ins racing each other may both become admin. See BOOTSTRAP_STRATEGY.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Optional

from storefront.constants.roles import (
    ROLE_ADMIN, ROLE_USER, ROLE_ORDER, STAFF_ROLES, CAPABILITY_SET, granted_capabilities, permission_set,
    highest_role, is_known_role,
)
from storefront.errors import UnknownCapability
from storefront.services.stores import InsertOutcome

logger = logging.getLogger(__name__)

BOOTSTRAP_FIRST_ACTOR = 'first_actor'
BOOTSTRAP_STORE_OWNER = 'store_owner'


@dataclass(frozen=True)
class RoleResolution:
    role: str
    permissions: Dict[str, bool] = field(hash=False)
    bootstrapped: Optional[str] = None

    @property
    def granted(self) -> FrozenSet[str]:
        return granted_capabilities(self.role)

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES

    def to_dict(self) -> Dict[str, object]:
        return {
            'role': self.role,
            'permissions': dict(self.permissions),
            'is_staff': self.is_staff,
        }


def resolution_for(role: str, bootstrapped: Optional[str] = None) -> RoleResolution:
    return RoleResolution(role=role, permissions=permission_set(role), bootstrapped=bootstrapped)


def anonymous_resolution() -> RoleResolution:
    return resolution_for(ROLE_USER)


def _attempt_bootstrap(actor_id: str, role_store, reason: str) -> RoleResolution:
    outcome = role_store.insert_role_if_absent(actor_id, ROLE_ADMIN, bootstrap=True)
    if outcome is InsertOutcome.INSERTED:
        logger.info('granted bootstrap admin to %s (%s)', actor_id, reason)
        return resolution_for(ROLE_ADMIN, bootstrapped=reason)
    logger.warning('bootstrap admin insert for %s lost a race (%s); resolving as user', actor_id, reason)
    return resolution_for(ROLE_USER)


def resolve_role(actor_id: Optional[str], role_store, profile_store) -> RoleResolution:
    """Resolve (role, permissions) for an authenticated actor.

    Raises AccessStoreError when a store cannot be read or written; the caller
    must then treat the actor as ``user``.
    """
    if not actor_id:
        return anonymous_resolution()
    assigned = role_store.roles_for_actor(actor_id)
    if assigned:
        unknown = [r for r in assigned if not is_known_role(r)]
        if unknown:
            logger.warning('ignoring unknown role values %s for %s', unknown, actor_id)
        return resolution_for(highest_role(assigned))
    if not role_store.any_role_exists():
        return _attempt_bootstrap(actor_id, role_store, BOOTSTRAP_FIRST_ACTOR)
    owner = profile_store.earliest_profile()
    if owner is not None and owner.actor_id == actor_id:
        return _attempt_bootstrap(actor_id, role_store, BOOTSTRAP_STORE_OWNER)
    return resolution_for(ROLE_USER)


def has_capability(permissions: Dict[str, bool], capability: str) -> bool:
    if capability not in CAPABILITY_SET:
        raise UnknownCapability(capability)
    return bool(permissions.get(capability, False))


def grantable_roles():
    """Roles an admin can assign explicitly (``user`` is implicit)."""
    return [r for r in ROLE_ORDER if r != ROLE_USER]


__all__ = [
    'RoleResolution', 'resolve_role', 'has_capability', 'resolution_for', 'anonymous_resolution',
    'grantable_roles', 'BOOTSTRAP_FIRST_ACTOR', 'BOOTSTRAP_STORE_OWNER',
]
