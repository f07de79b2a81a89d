from __future__ import annotations
from flask import Blueprint, request, abort, g
from storefront.decorators.auth import current_resolution
from storefront.errors import NoTiersConfigured, InvalidTierConfiguration
from storefront.services import membership
from storefront.services.settings import load_settings, SHIPPING_KEY, VIP_KEY
from storefront.services.stores import SqlTierStore
from storefront.services.thresholds import evaluate_free_shipping, shipping_charge, member_discount, validate_tier_partition

cart_bp = Blueprint('cart', __name__)


def _parse_items(raw):
    if not isinstance(raw, list):
        abort(400, description='items list required')
    subtotal = 0.0
    count = 0
    for i, item in enumerate(raw):
        if not isinstance(item, dict):
            abort(400, description=f'items[{i}] must be an object')
        price, qty = item.get('price'), item.get('quantity')
        if isinstance(price, bool) or not isinstance(price, (int, float)) or price < 0:
            abort(400, description=f'items[{i}].price must be a non-negative number')
        if isinstance(qty, bool) or not isinstance(qty, int) or qty < 1:
            abort(400, description=f'items[{i}].quantity must be a positive integer')
        subtotal += price * qty
        count += qty
    return round(subtotal, 2), count


def _vip_section(subtotal: float):
    """Member discount for the authenticated caller, or None for guests/non-members."""
    if current_resolution(optional=True) is None:
        return None
    if not load_settings(VIP_KEY).is_enabled:
        return None
    member = membership.get_member(g.actor_id)
    if not member or not member.is_active:
        return None
    try:
        tiers = SqlTierStore().list_active_tiers()
        validate_tier_partition(tiers)
        res = membership.member_tier(member, tiers)
    except (NoTiersConfigured, InvalidTierConfiguration) as e:
        # Block the discount rather than apply wrong math
        return {'error': e.detail, 'discount': 0}
    return {
        'tier_id': res.tier.id,
        'discount_percent': res.tier.discount_percent,
        'discount': member_discount(subtotal, res.tier),
    }


@cart_bp.post('/quote')
def quote():
    subtotal, count = _parse_items((request.json or {}).get('items'))
    vip = _vip_section(subtotal)
    discount = vip['discount'] if vip else 0
    discounted = round(subtotal - discount, 2)
    policy = load_settings(SHIPPING_KEY)
    evaluation = evaluate_free_shipping(discounted, count, policy)
    shipping = shipping_charge(discounted, count, policy)
    return {
        'subtotal': subtotal,
        'item_count': count,
        'vip': vip,
        'free_shipping': {**evaluation.to_dict(), 'show_progress_bar': policy.show_progress_bar, 'threshold': policy.threshold},
        'shipping': shipping,
        'total': round(discounted + shipping, 2),
    }
