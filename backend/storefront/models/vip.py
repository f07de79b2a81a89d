from __future__ import annotations
from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import Integer, String, Boolean, JSON, Numeric, ForeignKey, DateTime, func
from typing import Optional, Dict, Any

from .authz import Base, _utcnow

# Money columns come back as float so they mix with threshold arithmetic
Money = Numeric(12, 2, asdecimal=False)


class VipTier(Base):
    __tablename__ = 'vip_tiers'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name_i18n: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict)
    min_spend: Mapped[float] = mapped_column(Money, nullable=False, default=0)
    max_spend: Mapped[Optional[float]] = mapped_column(Money, nullable=True)
    discount_percent: Mapped[float] = mapped_column(Money, nullable=False, default=0)
    benefits_i18n: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    display_order: Mapped[int] = mapped_column(Integer, default=0)
    updated_at: Mapped[str] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class VipMember(Base):
    __tablename__ = 'vip_members'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[str] = mapped_column(String(36), unique=True, nullable=False, index=True)
    # Admin override; the computed tier is used while this is null
    pinned_tier_id: Mapped[Optional[int]] = mapped_column(ForeignKey('vip_tiers.id', ondelete='SET NULL'), nullable=True)
    total_spend: Mapped[float] = mapped_column(Money, nullable=False, default=0)
    points_earned: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    points_redeemed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    joined_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    tier_updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    updated_at: Mapped[str] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
