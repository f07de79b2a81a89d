from __future__ import annotations
from flask import Blueprint, request, abort, g
from storefront import get_db
from storefront.decorators.auth import require_capability, current_resolution
from storefront.models.authz import Profile
from storefront.models.vip import VipMember
from storefront.services import membership
from storefront.services.stores import SqlTierStore
from storefront.services.thresholds import TierDefinition, validate_tier_partition
from storefront.utils.listing import apply_pagination, list_response

vip_bp = Blueprint('vip', __name__)


def _caller_locale() -> str:
    profile = get_db().query(Profile).filter_by(user_id=g.actor_id).one_or_none()
    return profile.locale if profile else 'en'


def _parse_tier(raw, index: int) -> TierDefinition:
    if not isinstance(raw, dict):
        abort(400, description=f'tiers[{index}] must be an object')
    def num(key, required=True):
        v = raw.get(key)
        if v is None and not required:
            return None
        if isinstance(v, bool) or not isinstance(v, (int, float)):
            abort(400, description=f'tiers[{index}].{key} must be a number')
        return float(v)
    name_i18n = raw.get('name_i18n')
    if not isinstance(name_i18n, dict) or not name_i18n.get('en'):
        abort(400, description=f'tiers[{index}].name_i18n.en required')
    return TierDefinition(
        id=raw.get('id'),
        name_i18n=name_i18n,
        min_spend=num('min_spend'),
        max_spend=num('max_spend', required=False),
        discount_percent=num('discount_percent'),
        benefits_i18n=raw.get('benefits_i18n') or {},
    )


@vip_bp.get('/tiers')
def list_tiers():
    return {'data': [t.to_dict() for t in SqlTierStore().list_active_tiers()]}


@vip_bp.put('/tiers')
@require_capability('manage_vip')
def replace_tiers():
    raw = (request.json or {}).get('tiers')
    if not isinstance(raw, list):
        abort(400, description='tiers list required')
    parsed = sorted((_parse_tier(t, i) for i, t in enumerate(raw)), key=lambda t: t.min_spend)
    validate_tier_partition(parsed)
    stored = SqlTierStore().replace_tiers([t.to_dict() for t in parsed], actor=g.actor_id)
    return {'data': [t.to_dict() for t in stored]}


@vip_bp.post('/enroll')
def enroll():
    current_resolution()
    member = membership.enroll(g.actor_id)
    return membership.member_json(member), 201


@vip_bp.get('/me')
def my_membership():
    current_resolution()
    member = membership.get_member(g.actor_id)
    if not member:
        abort(404, description='not a VIP member')
    return membership.membership_card(member, _caller_locale())


@vip_bp.get('/members')
@require_capability('manage_vip')
def list_members():
    q = get_db().query(VipMember).order_by(VipMember.total_spend.desc(), VipMember.id.asc())
    paged, total, limit, offset = apply_pagination(q)
    rows = paged.all()
    data = [membership.member_json(m) for m in rows]
    latest = max((m.updated_at for m in rows if m.updated_at), default=None)
    return list_response(data, total, limit, offset, latest)


@vip_bp.put('/members/<int:member_id>/tier')
@require_capability('manage_vip')
def pin_member_tier(member_id: int):
    data = request.json or {}
    if 'tier_id' not in data:
        abort(400, description='tier_id required (null to unpin)')
    tier_id = data['tier_id']
    if tier_id is not None and (isinstance(tier_id, bool) or not isinstance(tier_id, int)):
        abort(400, description='tier_id must be int or null')
    member = membership.pin_tier(membership.get_member_or_404(member_id), tier_id)
    return membership.member_json(member)


@vip_bp.put('/members/<int:member_id>/points')
@require_capability('manage_vip')
def set_member_points(member_id: int):
    data = request.json or {}
    member = membership.update_points(
        membership.get_member_or_404(member_id), data.get('points_earned'), data.get('points_redeemed')
    )
    return membership.member_json(member)


@vip_bp.post('/members/<int:member_id>/spend')
@require_capability('manage_vip')
def add_member_spend(member_id: int):
    amount = (request.json or {}).get('amount')
    return membership.record_spend(membership.get_member_or_404(member_id), amount)
