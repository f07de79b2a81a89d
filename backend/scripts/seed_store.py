#!/usr/bin/env python
"""Idempotent seed script for VIP tiers and site settings.

Usage:
    python backend/scripts/seed_store.py               # seed normally
    python backend/scripts/seed_store.py --show-tiers  # print the active tier ladder after seeding
    python backend/scripts/seed_store.py --dry-run     # run logic then rollback (no DB changes)
    python backend/scripts/seed_store.py --validate    # exit 2 if stored tiers/settings are invalid
"""
from __future__ import annotations
import os, sys, argparse, textwrap
from sqlalchemy import select, text
from sqlalchemy.exc import SQLAlchemyError

# Allow running from repo root
sys.path.append(os.path.abspath('backend'))
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from storefront import create_app, get_db  # type: ignore
from storefront.errors import StorefrontError
from storefront.models.authz import Base, Profile
from storefront.models.settings import SiteSetting
from storefront.models.vip import VipTier
import storefront.models.audit  # noqa: F401
from storefront.services.settings import SETTINGS_TYPES, SHIPPING_KEY, VIP_KEY
from storefront.services.stores import SqlTierStore
from storefront.services.thresholds import validate_tier_partition
from seeds.store_defaults import VIP_TIERS, SHIPPING, VIP_PROGRAM


def ensure_tiers(session) -> int:
    active = session.execute(select(VipTier).where(VipTier.is_active.is_(True))).scalars().all()
    if active:
        return 0
    for order, spec in enumerate(VIP_TIERS):
        session.add(VipTier(display_order=order, is_active=True, **spec))
    session.flush()
    return len(VIP_TIERS)


def ensure_settings(session) -> int:
    created = 0
    for key, doc in ((SHIPPING_KEY, SHIPPING), (VIP_KEY, VIP_PROGRAM)):
        if session.execute(select(SiteSetting).where(SiteSetting.key==key)).scalar_one_or_none():
            continue
        # Validate the seed document the same way the API does
        SETTINGS_TYPES[key].from_document(doc)
        session.add(SiteSetting(key=key, version=1, value=dict(doc)))
        created += 1
    return created


def ensure_store_owner(session):
    """Create the store owner profile; it becomes admin on first login via the owner bootstrap."""
    email = os.getenv('SEED_OWNER_EMAIL')
    if not email:
        return
    if session.execute(select(Profile).where(Profile.email==email)).scalar_one_or_none():
        return
    owner = Profile(full_name='Store Owner', email=email, password_hash='')
    owner.set_password(os.getenv('SEED_OWNER_PASSWORD', 'ChangeMe123!'))
    session.add(owner)
    print(f"[INFO] Created store owner profile {email} with temporary password.")


def validate(session) -> list:
    problems = []
    tiers = SqlTierStore(session=session).list_active_tiers()
    try:
        validate_tier_partition(tiers)
    except StorefrontError as e:
        problems.append(f"VIP tiers: {e.detail}")
    for key, cls in SETTINGS_TYPES.items():
        row = session.execute(select(SiteSetting).where(SiteSetting.key==key)).scalar_one_or_none()
        if not row:
            continue
        try:
            cls.from_document(row.value)
        except StorefrontError as e:
            problems.append(f"settings '{key}': {e.detail}")
    return problems


def print_tiers(session):
    tiers = SqlTierStore(session=session).list_active_tiers()
    if not tiers:
        print("[INFO] No active tiers.")
        return
    print(f"{'Tier'.ljust(12)} | {'Min'.rjust(9)} | {'Max'.rjust(9)} | Discount")
    print('-' * 48)
    for t in tiers:
        upper = f"{t.max_spend:.0f}" if t.max_spend is not None else '-'
        print(f"{t.name().ljust(12)} | {t.min_spend:9.0f} | {upper.rjust(9)} | {t.discount_percent:g}%")


def parse_args():
    p = argparse.ArgumentParser(
        description="Seed VIP tiers & store settings",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent("""Examples:\n  seed normally: seed_store.py\n  dry run: seed_store.py --dry-run\n  show tiers: seed_store.py --show-tiers\n""")
    )
    p.add_argument('--show-tiers', action='store_true', help='Print the active tier ladder after seeding')
    p.add_argument('--dry-run', action='store_true', help='Rollback after operations (no commit)')
    p.add_argument('--validate', action='store_true', help='Validate stored tiers & settings; exits non-zero on problems')
    return p.parse_args()


def main():
    args = parse_args()
    app = create_app()
    with app.app_context():
        session = get_db()
        try:
            session.execute(text('SELECT 1 FROM vip_tiers LIMIT 1'))
        except SQLAlchemyError:
            # Auto-create schema for bootstrap; in real env prefer alembic upgrade
            session.rollback()
            Base.metadata.create_all(session.get_bind())
        try:
            created_t = ensure_tiers(session)
            created_s = ensure_settings(session)
            ensure_store_owner(session)
            if args.validate:
                problems = validate(session)
                if problems:
                    print('\n[VALIDATION] FAIL:')
                    for p in problems:
                        print(' -', p)
                    session.rollback()
                    sys.exit(2)
                print('[VALIDATION] OK: tiers partition [0, inf) and settings documents parse.')
            if args.dry_run:
                session.rollback()
                print(f"[DRY-RUN] (rolled back) Tiers would create: {created_t}, Settings would create: {created_s}")
            else:
                session.commit()
                print(f"[DONE] Tiers created: {created_t}, Settings created: {created_s}")
            if args.show_tiers:
                print('\nVIP Tiers:')
                print_tiers(session)
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

if __name__ == '__main__':
    main()
