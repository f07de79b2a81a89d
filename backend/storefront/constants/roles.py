"""Closed role set and the static role -> capability table.

Roles are ordered by privilege; every role's granted capabilities include all
capabilities of the roles below it. Never rename capability codes silently,
clients read them from the /iam/roles payload.
"""
from __future__ import annotations
from typing import Dict, FrozenSet, List

ROLE_ADMIN = 'admin'
ROLE_STORE_MANAGER = 'store_manager'
ROLE_MODERATOR = 'moderator'
ROLE_USER = 'user'

# Lowest privilege first
ROLE_ORDER: List[str] = [ROLE_USER, ROLE_MODERATOR, ROLE_STORE_MANAGER, ROLE_ADMIN]
ROLE_RANK: Dict[str, int] = {name: rank for rank, name in enumerate(ROLE_ORDER)}
STAFF_ROLES = frozenset({ROLE_ADMIN, ROLE_STORE_MANAGER, ROLE_MODERATOR})

CAPABILITY_GROUPS: Dict[str, List[str]] = {
    'products': ['view_products', 'create_products', 'edit_products', 'delete_products'],
    'orders': ['view_orders', 'edit_orders', 'delete_orders'],
    'customers': ['view_customers', 'edit_customers', 'delete_customers', 'manage_vip'],
    'blog': ['view_blog', 'create_blog', 'edit_blog', 'delete_blog'],
    'categories': ['view_categories', 'edit_categories'],
    'users': ['view_users', 'edit_user_roles', 'create_staff'],
    'settings': ['edit_settings', 'edit_branding', 'edit_payments', 'manage_media'],
    'analytics': ['view_analytics', 'view_reports'],
    'marketing': ['manage_coupons'],
    'content': ['edit_homepage', 'manage_popups', 'manage_announcements'],
}


def build_all_capabilities() -> List[str]:
    codes: List[str] = []
    for caps in CAPABILITY_GROUPS.values():
        codes.extend(caps)
    return codes

ALL_CAPABILITIES = build_all_capabilities()
CAPABILITY_SET: FrozenSet[str] = frozenset(ALL_CAPABILITIES)

# Role -> granted capabilities; anything not listed is denied.
ROLE_GRANTS: Dict[str, List[str]] = {
    ROLE_USER: [],
    # Orders and blog, read access elsewhere
    ROLE_MODERATOR: [
        'view_products',
        'view_orders', 'edit_orders',
        'view_customers',
        'view_blog', 'create_blog', 'edit_blog',
        'view_categories',
        'view_analytics',
    ],
    # Catalogue, orders, customers and VIP; no users, settings or homepage
    ROLE_STORE_MANAGER: [
        'view_products', 'create_products', 'edit_products', 'delete_products',
        'view_orders', 'edit_orders',
        'view_customers', 'edit_customers', 'manage_vip',
        'view_blog', 'create_blog', 'edit_blog', 'delete_blog',
        'view_categories', 'edit_categories',
        'manage_media',
        'view_analytics', 'view_reports',
        'manage_coupons',
    ],
    ROLE_ADMIN: ['*'],
}


def granted_capabilities(role: str) -> FrozenSet[str]:
    """Return the capabilities granted to role; unknown roles get nothing."""
    grants = ROLE_GRANTS.get(role, [])
    if '*' in grants:
        return CAPABILITY_SET
    return frozenset(grants)


def permission_set(role: str) -> Dict[str, bool]:
    """Full capability -> bool mapping for role (every capability present)."""
    granted = granted_capabilities(role)
    return {cap: cap in granted for cap in ALL_CAPABILITIES}


def is_known_role(role: str) -> bool:
    return role in ROLE_RANK


def highest_role(roles) -> str:
    """Highest-privilege known role among roles, defaulting to user."""
    best = ROLE_USER
    for r in roles:
        if r in ROLE_RANK and ROLE_RANK[r] > ROLE_RANK[best]:
            best = r
    return best


__all__ = [
    'ROLE_ADMIN', 'ROLE_STORE_MANAGER', 'ROLE_MODERATOR', 'ROLE_USER', 'ROLE_ORDER', 'ROLE_RANK',
    'STAFF_ROLES', 'ALL_CAPABILITIES', 'CAPABILITY_SET', 'ROLE_GRANTS', 'granted_capabilities',
    'permission_set', 'is_known_role', 'highest_role',
]
