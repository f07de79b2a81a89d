import pytest

from storefront.constants.roles import (
    ROLE_ORDER, ALL_CAPABILITIES, CAPABILITY_SET, ROLE_GRANTS, granted_capabilities, permission_set, highest_role,
)
from storefront.errors import UnknownCapability
from storefront.services.access import has_capability, grantable_roles


def test_capability_codes_are_unique():
    assert len(ALL_CAPABILITIES) == len(CAPABILITY_SET)


def test_grants_reference_known_capabilities_only():
    for role, grants in ROLE_GRANTS.items():
        for cap in grants:
            assert cap == '*' or cap in CAPABILITY_SET, (role, cap)


def test_each_role_is_superset_of_the_one_below():
    for lower, higher in zip(ROLE_ORDER, ROLE_ORDER[1:]):
        assert granted_capabilities(lower) <= granted_capabilities(higher), (lower, higher)


def test_user_gets_nothing_and_admin_everything():
    assert granted_capabilities('user') == frozenset()
    assert granted_capabilities('admin') == CAPABILITY_SET


def test_permission_set_covers_every_capability():
    perms = permission_set('moderator')
    assert set(perms) == CAPABILITY_SET
    assert perms['edit_orders'] is True
    assert perms['edit_user_roles'] is False


def test_store_manager_manages_vip_but_not_users():
    perms = permission_set('store_manager')
    assert perms['manage_vip'] is True
    assert perms['edit_user_roles'] is False
    assert perms['edit_settings'] is False


def test_unknown_role_gets_nothing():
    assert granted_capabilities('superuser') == frozenset()


def test_highest_role_ignores_unknown_values():
    assert highest_role(['moderator', 'store_manager']) == 'store_manager'
    assert highest_role(['superuser', 'moderator']) == 'moderator'
    assert highest_role(['superuser']) == 'user'
    assert highest_role([]) == 'user'


def test_has_capability():
    perms = permission_set('store_manager')
    assert has_capability(perms, 'manage_vip') is True
    assert has_capability(perms, 'edit_settings') is False


def test_has_capability_rejects_unknown_names():
    with pytest.raises(UnknownCapability) as exc:
        has_capability(permission_set('admin'), 'launch_rockets')
    assert exc.value.name == 'launch_rockets'


def test_grantable_roles_exclude_user():
    assert grantable_roles() == ['moderator', 'store_manager', 'admin']
