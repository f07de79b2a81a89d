"""SQLAlchemy-backed role, profile and tier configuration stores.

The access resolver only sees the narrow methods below. Role and profile store
failures surface as AccessStoreError; a unique-constraint violation on insert
is reported as InsertOutcome.CONFLICT, never as an error.
"""
from __future__ import annotations
import enum
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import select, func, delete, insert
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from storefront.errors import AccessStoreError
from storefront.models.authz import Profile, UserRole, AdminBootstrap
from storefront.models.vip import VipTier
from storefront.services.thresholds import TierDefinition

logger = logging.getLogger(__name__)

BOOTSTRAP_BEST_EFFORT = 'best_effort'
BOOTSTRAP_MARKER = 'marker'
BOOTSTRAP_STRATEGIES = (BOOTSTRAP_BEST_EFFORT, BOOTSTRAP_MARKER)


class InsertOutcome(str, enum.Enum):
    INSERTED = 'inserted'
    CONFLICT = 'conflict'


@dataclass(frozen=True)
class EarliestProfile:
    actor_id: str
    created_at: datetime


def _default_session():
    from storefront import get_db
    return get_db()


def _default_feed():
    from storefront import change_feed
    return change_feed


class SqlRoleStore:
    def __init__(self, session=None, feed=None, bootstrap_strategy: str = BOOTSTRAP_BEST_EFFORT):
        if bootstrap_strategy not in BOOTSTRAP_STRATEGIES:
            raise ValueError(f'unknown bootstrap strategy {bootstrap_strategy!r}')
        self.session = session if session is not None else _default_session()
        self.feed = feed if feed is not None else _default_feed()
        self.bootstrap_strategy = bootstrap_strategy

    def _fail(self, op: str, exc: Exception):
        self.session.rollback()
        raise AccessStoreError(f'role store {op} failed: {exc.__class__.__name__}') from exc

    def roles_for_actor(self, actor_id: str) -> List[str]:
        try:
            rows = self.session.execute(select(UserRole.role).where(UserRole.user_id == actor_id)).scalars().all()
        except SQLAlchemyError as e:
            self._fail('read', e)
        return list(rows)

    def any_role_exists(self) -> bool:
        try:
            first = self.session.execute(select(UserRole.id).limit(1)).scalar_one_or_none()
        except SQLAlchemyError as e:
            self._fail('read', e)
        return first is not None

    def count_role(self, role: str) -> int:
        try:
            return self.session.execute(select(func.count(UserRole.id)).where(UserRole.role == role)).scalar_one()
        except SQLAlchemyError as e:
            self._fail('read', e)

    def list_assignments(self) -> List[Dict[str, Any]]:
        try:
            rows = self.session.execute(select(UserRole).order_by(UserRole.id.asc())).scalars().all()
        except SQLAlchemyError as e:
            self._fail('read', e)
        return [{'user_id': r.user_id, 'role': r.role, 'granted_by': r.granted_by} for r in rows]

    def insert_role_if_absent(self, actor_id: str, role: str, bootstrap: bool = False,
                              granted_by: Optional[str] = None) -> InsertOutcome:
        """Insert one (actor, role) row in its own transaction.

        With bootstrap=True and the marker strategy the singleton bootstrap row is
        written in the same transaction, so only one bootstrap can ever commit.
        """
        try:
            if bootstrap and self.bootstrap_strategy == BOOTSTRAP_MARKER:
                # Core insert so a second marker fails on the primary key
                self.session.execute(insert(AdminBootstrap).values(id=1, user_id=actor_id))
            self.session.add(UserRole(user_id=actor_id, role=role, granted_by=granted_by))
            self.session.commit()
        except IntegrityError:
            self.session.rollback()
            return InsertOutcome.CONFLICT
        except SQLAlchemyError as e:
            self._fail('write', e)
        self.feed.publish('user_roles', 'insert', {
            'action': 'ROLE.BOOTSTRAP' if bootstrap else 'ROLE.GRANT',
            'id': actor_id,
            'role': role,
            'actor': granted_by,
        })
        return InsertOutcome.INSERTED

    def delete_role(self, actor_id: str, role: str, revoked_by: Optional[str] = None) -> bool:
        try:
            res = self.session.execute(delete(UserRole).where(UserRole.user_id == actor_id, UserRole.role == role))
            self.session.commit()
        except SQLAlchemyError as e:
            self._fail('write', e)
        removed = bool(res.rowcount)
        if removed:
            self.feed.publish('user_roles', 'delete', {'action': 'ROLE.REVOKE', 'id': actor_id, 'role': role, 'actor': revoked_by})
        return removed


class SqlProfileStore:
    def __init__(self, session=None):
        self.session = session if session is not None else _default_session()

    def earliest_profile(self) -> Optional[EarliestProfile]:
        try:
            row = self.session.execute(
                select(Profile.user_id, Profile.created_at).order_by(Profile.created_at.asc(), Profile.id.asc()).limit(1)
            ).first()
        except SQLAlchemyError as e:
            self.session.rollback()
            raise AccessStoreError(f'profile store read failed: {e.__class__.__name__}') from e
        if row is None:
            return None
        return EarliestProfile(actor_id=row.user_id, created_at=row.created_at)


def tier_definition(row: VipTier) -> TierDefinition:
    return TierDefinition(
        id=row.id,
        name_i18n=dict(row.name_i18n or {}),
        min_spend=float(row.min_spend or 0),
        max_spend=float(row.max_spend) if row.max_spend is not None else None,
        discount_percent=float(row.discount_percent or 0),
        benefits_i18n=dict(row.benefits_i18n or {}),
    )


class SqlTierStore:
    def __init__(self, session=None, feed=None):
        self.session = session if session is not None else _default_session()
        self.feed = feed if feed is not None else _default_feed()

    def list_active_tiers(self) -> List[TierDefinition]:
        rows = self.session.execute(
            select(VipTier).where(VipTier.is_active.is_(True)).order_by(VipTier.min_spend.asc(), VipTier.display_order.asc())
        ).scalars().all()
        return [tier_definition(r) for r in rows]

    def replace_tiers(self, definitions: Iterable[Dict[str, Any]], actor: Optional[str] = None) -> List[TierDefinition]:
        """Upsert tiers by id and deactivate active tiers missing from definitions.

        Definitions are validated by the caller. Deactivated tiers are kept so
        pinned memberships pointing at them fall back to the computed tier.
        """
        existing = {t.id: t for t in self.session.execute(select(VipTier)).scalars().all()}
        kept_ids = set()
        for order, d in enumerate(definitions):
            tier = existing.get(d.get('id')) if d.get('id') is not None else None
            if tier is None:
                tier = VipTier()
                self.session.add(tier)
            tier.name_i18n = d.get('name_i18n') or {}
            tier.min_spend = d['min_spend']
            tier.max_spend = d.get('max_spend')
            tier.discount_percent = d.get('discount_percent', 0)
            tier.benefits_i18n = d.get('benefits_i18n') or {}
            tier.display_order = d.get('display_order', order)
            tier.is_active = True
            self.session.flush()
            kept_ids.add(tier.id)
        for tid, tier in existing.items():
            if tid not in kept_ids and tier.is_active:
                tier.is_active = False
        self.session.commit()
        self.feed.publish('vip_tiers', 'update', {'action': 'VIP.TIERS.REPLACE', 'id': None, 'tier_ids': sorted(kept_ids), 'actor': actor})
        return self.list_active_tiers()


__all__ = [
    'InsertOutcome', 'EarliestProfile', 'SqlRoleStore', 'SqlProfileStore', 'SqlTierStore', 'tier_definition',
    'BOOTSTRAP_BEST_EFFORT', 'BOOTSTRAP_MARKER', 'BOOTSTRAP_STRATEGIES',
]
