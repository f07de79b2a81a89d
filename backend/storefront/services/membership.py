"""VIP program: enrollment, spend recording, admin overrides and the card view.

The member's tier is never stored as authoritative. It is recomputed from
total_spend against the active tiers on every read, unless an administrator
pinned a tier (pinned_tier_id), which wins while that tier stays active.
"""
from __future__ import annotations
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from flask import abort
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from storefront import get_db, change_feed
from storefront.models.vip import VipMember, VipTier
from storefront.services.settings import load_settings, VIP_KEY
from storefront.services.stores import SqlTierStore
from storefront.services.thresholds import (
    TierDefinition, TierResolution, resolve_membership_tier, tier_progress, points_for_spend, membership_expiry,
)


def _now():
    return datetime.now(timezone.utc)


def _iso(dt: Optional[datetime]) -> Optional[str]:
    return dt.isoformat() if dt else None


def get_member(user_id: str) -> Optional[VipMember]:
    return get_db().execute(select(VipMember).where(VipMember.user_id == user_id)).scalar_one_or_none()


def get_member_or_404(member_id: int) -> VipMember:
    member = get_db().get(VipMember, member_id)
    if not member:
        abort(404)
    return member


def member_tier(member: VipMember, tiers: List[TierDefinition]) -> TierResolution:
    return resolve_membership_tier(float(member.total_spend or 0), tiers, member.pinned_tier_id)


def enroll(user_id: str) -> VipMember:
    program = load_settings(VIP_KEY)
    if not program.is_enabled:
        abort(409, description='VIP program is disabled')
    if get_member(user_id):
        abort(409, description='already a member')
    session = get_db()
    member = VipMember(user_id=user_id, total_spend=0, points_earned=0, points_redeemed=0, is_active=True, joined_at=_now())
    session.add(member)
    try:
        session.commit()
    except IntegrityError:
        # Concurrent enrollment for the same user
        session.rollback()
        abort(409, description='already a member')
    change_feed.publish('vip_members', 'insert', {'action': 'VIP.ENROLL', 'id': member.id, 'user_id': user_id})
    return member


def record_spend(member: VipMember, amount: float) -> Dict[str, Any]:
    """Add a qualifying order amount; award points and stamp tier changes."""
    if isinstance(amount, bool) or not isinstance(amount, (int, float)) or amount <= 0:
        abort(400, description='amount must be a positive number')
    program = load_settings(VIP_KEY)
    tiers = SqlTierStore().list_active_tiers()
    before = member_tier(member, tiers).tier.id if tiers else None
    member.total_spend = float(member.total_spend or 0) + amount
    points = points_for_spend(amount, program.points_per_unit)
    member.points_earned = (member.points_earned or 0) + points
    after = member_tier(member, tiers).tier.id if tiers else None
    tier_changed = before != after
    if tier_changed:
        member.tier_updated_at = _now()
    get_db().commit()
    change_feed.publish('vip_members', 'update', {
        'action': 'VIP.SPEND', 'id': member.id, 'amount': amount, 'points': points, 'tier_id': after,
    })
    return {'total_spend': member.total_spend, 'points_awarded': points, 'tier_changed': tier_changed, 'tier_id': after}


def pin_tier(member: VipMember, tier_id: Optional[int]) -> VipMember:
    if tier_id is not None:
        tier = get_db().get(VipTier, tier_id)
        if not tier or not tier.is_active:
            abort(400, description='unknown or inactive tier')
    member.pinned_tier_id = tier_id
    member.tier_updated_at = _now()
    get_db().commit()
    change_feed.publish('vip_members', 'update', {'action': 'VIP.TIER.PIN', 'id': member.id, 'tier_id': tier_id})
    return member


def update_points(member: VipMember, earned: Any, redeemed: Any) -> VipMember:
    for name, v in (('points_earned', earned), ('points_redeemed', redeemed)):
        if isinstance(v, bool) or not isinstance(v, int) or v < 0:
            abort(400, description=f'{name} must be a non-negative integer')
    if redeemed > earned:
        abort(400, description='points_redeemed cannot exceed points_earned')
    member.points_earned = earned
    member.points_redeemed = redeemed
    get_db().commit()
    change_feed.publish('vip_members', 'update', {
        'action': 'VIP.POINTS.SET', 'id': member.id, 'points_earned': earned, 'points_redeemed': redeemed,
    })
    return member


def member_json(member: VipMember) -> Dict[str, Any]:
    return {
        'id': member.id,
        'user_id': member.user_id,
        'pinned_tier_id': member.pinned_tier_id,
        'total_spend': float(member.total_spend or 0),
        'points_earned': member.points_earned,
        'points_redeemed': member.points_redeemed,
        'points_balance': (member.points_earned or 0) - (member.points_redeemed or 0),
        'is_active': member.is_active,
        'joined_at': _iso(member.joined_at),
        'tier_updated_at': _iso(member.tier_updated_at),
    }


def membership_card(member: VipMember, locale: str = 'en') -> Dict[str, Any]:
    """Card view: tier, next tier, progress and expiry.

    Raises NoTiersConfigured / InvalidTierConfiguration rather than rendering a
    card with wrong discount math.
    """
    program = load_settings(VIP_KEY)
    tiers = SqlTierStore().list_active_tiers()
    res = member_tier(member, tiers)
    spend = float(member.total_spend or 0)
    progress = tier_progress(spend, res.tier, res.next_tier)
    return {
        'member': member_json(member),
        'tier': res.tier.to_dict(),
        'tier_name': res.tier.name(locale),
        'pinned': res.pinned,
        'discount_percent': res.tier.discount_percent,
        'next_tier': res.next_tier.to_dict() if res.next_tier else None,
        'progress_percent': progress.progress_percent,
        'amount_to_next': progress.amount_to_next,
        'expires_at': _iso(membership_expiry(member.joined_at, member.tier_updated_at, program.validity_months)),
    }


__all__ = [
    'get_member', 'get_member_or_404', 'member_tier', 'enroll', 'record_spend', 'pin_tier', 'update_points',
    'member_json', 'membership_card',
]
