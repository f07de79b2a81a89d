"""Free-shipping and VIP tier arithmetic.

Everything here is pure: no database, no Flask context, inputs are never
mutated and results are frozen dataclasses. Tier ranges are half-open,
``[min_spend, max_spend)``, with ``max_spend=None`` meaning unbounded.
"""
from __future__ import annotations
import calendar
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional, Sequence

from storefront.errors import InvalidTierConfiguration, NoTiersConfigured
from storefront.services.settings import ShippingPolicy


@dataclass(frozen=True)
class ShippingEvaluation:
    qualifies: bool
    amount_remaining: float
    progress_percent: float
    items_remaining: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'qualifies': self.qualifies,
            'amount_remaining': self.amount_remaining,
            'progress_percent': self.progress_percent,
            'items_remaining': self.items_remaining,
        }


@dataclass(frozen=True)
class TierDefinition:
    id: Any
    name_i18n: Dict[str, str]
    min_spend: float
    max_spend: Optional[float]
    discount_percent: float
    benefits_i18n: Dict[str, Any] = field(default_factory=dict, compare=False)

    def contains(self, spend: float) -> bool:
        if spend < self.min_spend:
            return False
        return self.max_spend is None or spend < self.max_spend

    def name(self, locale: str = 'en') -> str:
        return self.name_i18n.get(locale) or self.name_i18n.get('en') or ''

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name_i18n': dict(self.name_i18n),
            'min_spend': self.min_spend,
            'max_spend': self.max_spend,
            'discount_percent': self.discount_percent,
            'benefits_i18n': dict(self.benefits_i18n),
        }


@dataclass(frozen=True)
class TierResolution:
    tier: TierDefinition
    next_tier: Optional[TierDefinition]
    pinned: bool = False


@dataclass(frozen=True)
class TierProgress:
    progress_percent: float
    amount_to_next: float


def evaluate_free_shipping(cart_total: float, item_count: int, policy: ShippingPolicy) -> ShippingEvaluation:
    """Evaluate whether a cart ships free under policy.

    A disabled policy means all shipping is free store-wide. When enabled, both
    the amount threshold and the item-count threshold must hold; a threshold at
    or below zero is ignored.
    """
    if cart_total < 0:
        raise ValueError('cart_total must be >= 0')
    if item_count < 0:
        raise ValueError('item_count must be >= 0')
    if not policy.enabled:
        return ShippingEvaluation(qualifies=True, amount_remaining=0, progress_percent=100)
    threshold = policy.threshold
    meets_amount = threshold <= 0 or cart_total >= threshold
    meets_items = policy.min_items <= 0 or item_count >= policy.min_items
    remaining = max(0, threshold - cart_total)
    progress = min(100, cart_total / threshold * 100) if threshold > 0 else 100
    return ShippingEvaluation(
        qualifies=meets_amount and meets_items,
        amount_remaining=remaining,
        progress_percent=progress,
        items_remaining=max(0, policy.min_items - item_count),
    )


def shipping_charge(cart_total: float, item_count: int, policy: ShippingPolicy) -> float:
    if evaluate_free_shipping(cart_total, item_count, policy).qualifies:
        return 0
    return policy.shipping_cost


def resolve_membership_tier(
    total_spend: float,
    tiers: Sequence[TierDefinition],
    pinned_tier_id: Any = None,
) -> TierResolution:
    """Find the member's tier and the one above it.

    tiers must be sorted ascending by min_spend. A pinned tier id that exists in
    tiers wins over the computed tier; an unknown pinned id is ignored.
    """
    if not tiers:
        raise NoTiersConfigured('no active VIP tiers')
    index = None
    pinned = False
    if pinned_tier_id is not None:
        for i, t in enumerate(tiers):
            if t.id == pinned_tier_id:
                index, pinned = i, True
                break
    if index is None:
        for i, t in enumerate(tiers):
            if t.contains(total_spend):
                index = i
                break
    if index is None:
        # Spend below the lowest minimum (misconfigured partition)
        index = 0
    next_tier = tiers[index + 1] if index + 1 < len(tiers) else None
    return TierResolution(tier=tiers[index], next_tier=next_tier, pinned=pinned)


def tier_progress(
    total_spend: float,
    current_tier: TierDefinition,
    next_tier: Optional[TierDefinition],
) -> TierProgress:
    if next_tier is None:
        return TierProgress(progress_percent=100, amount_to_next=0)
    span = next_tier.min_spend - current_tier.min_spend
    if span == 0:
        raise InvalidTierConfiguration(
            f'tiers {current_tier.id} and {next_tier.id} share min_spend {current_tier.min_spend}'
        )
    progress = min(100, (total_spend - current_tier.min_spend) / span * 100)
    return TierProgress(
        progress_percent=progress,
        amount_to_next=max(0, next_tier.min_spend - total_spend),
    )


def validate_tier_partition(tiers: Sequence[TierDefinition]) -> None:
    """Raise InvalidTierConfiguration unless tiers partition [0, inf) in order."""
    if not tiers:
        raise NoTiersConfigured('tier list is empty')
    if tiers[0].min_spend != 0:
        raise InvalidTierConfiguration('lowest tier must start at 0')
    for i, t in enumerate(tiers):
        if t.min_spend < 0:
            raise InvalidTierConfiguration(f'tier {t.id}: min_spend must be >= 0')
        if not 0 <= t.discount_percent <= 100:
            raise InvalidTierConfiguration(f'tier {t.id}: discount_percent must be within 0..100')
        last = i == len(tiers) - 1
        if last:
            if t.max_spend is not None:
                raise InvalidTierConfiguration('highest tier must have no max_spend')
            continue
        if t.max_spend is None:
            raise InvalidTierConfiguration(f'tier {t.id}: only the highest tier may be unbounded')
        if t.max_spend <= t.min_spend:
            raise InvalidTierConfiguration(f'tier {t.id}: max_spend must exceed min_spend')
        if t.max_spend != tiers[i + 1].min_spend:
            raise InvalidTierConfiguration(
                f'tier {t.id}: max_spend {t.max_spend} leaves a gap or overlap with next tier'
            )


def member_discount(subtotal: float, tier: Optional[TierDefinition]) -> float:
    if tier is None or subtotal <= 0:
        return 0
    return round(subtotal * tier.discount_percent / 100, 2)


def points_for_spend(amount: float, points_per_unit: float) -> int:
    if amount <= 0 or points_per_unit <= 0:
        return 0
    return int(math.floor(amount * points_per_unit))


def _add_months(dt: datetime, months: int) -> datetime:
    month_index = dt.month - 1 + months
    year = dt.year + month_index // 12
    month = month_index % 12 + 1
    day = min(dt.day, calendar.monthrange(year, month)[1])
    return dt.replace(year=year, month=month, day=day)


def membership_expiry(joined_at: datetime, tier_updated_at: Optional[datetime], validity_months: int = 12) -> datetime:
    """Membership card expiry: validity_months after the last tier change (or join)."""
    return _add_months(tier_updated_at or joined_at, validity_months)


__all__ = [
    'ShippingEvaluation', 'TierDefinition', 'TierResolution', 'TierProgress', 'evaluate_free_shipping',
    'shipping_charge', 'resolve_membership_tier', 'tier_progress', 'validate_tier_partition',
    'member_discount', 'points_for_spend', 'membership_expiry',
]
