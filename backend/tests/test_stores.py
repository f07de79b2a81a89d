import pytest
from sqlalchemy.exc import OperationalError

from storefront.errors import AccessStoreError
from storefront.models.audit import AuditLog
from storefront.models.authz import AdminBootstrap, UserRole
from storefront.services.access import resolve_role
from storefront.services.change_feed import ChangeFeed
from storefront.services.stores import InsertOutcome, SqlRoleStore, SqlProfileStore, SqlTierStore
from test_utils_seed import ensure_profile, seed_tiers


class Recorder:
    def __init__(self):
        self.events = []

    def __call__(self, key, event, payload):
        self.events.append((key, event, payload))


@pytest.fixture()
def feed():
    return ChangeFeed()


def test_insert_then_conflict(session, feed):
    store = SqlRoleStore(session=session, feed=feed)
    assert store.insert_role_if_absent('u1', 'admin') is InsertOutcome.INSERTED
    assert store.insert_role_if_absent('u1', 'admin') is InsertOutcome.CONFLICT
    assert store.roles_for_actor('u1') == ['admin']
    assert store.count_role('admin') == 1
    # The session stays usable after a conflict
    assert store.insert_role_if_absent('u1', 'moderator') is InsertOutcome.INSERTED
    assert sorted(store.roles_for_actor('u1')) == ['admin', 'moderator']


def test_any_role_exists(session, feed):
    store = SqlRoleStore(session=session, feed=feed)
    assert store.any_role_exists() is False
    store.insert_role_if_absent('u1', 'moderator')
    assert store.any_role_exists() is True


def test_insert_publishes_grant_and_bootstrap_events(session, feed):
    rec = Recorder()
    feed.subscribe('user_roles', rec)
    store = SqlRoleStore(session=session, feed=feed)
    store.insert_role_if_absent('u1', 'admin', bootstrap=True)
    store.insert_role_if_absent('u2', 'moderator', granted_by='u1')
    store.insert_role_if_absent('u2', 'moderator', granted_by='u1')  # conflict: no event
    assert [(e[1], e[2]['action'], e[2]['id']) for e in rec.events] == [
        ('insert', 'ROLE.BOOTSTRAP', 'u1'),
        ('insert', 'ROLE.GRANT', 'u2'),
    ]


def test_delete_role(session, feed):
    rec = Recorder()
    feed.subscribe('user_roles', rec)
    store = SqlRoleStore(session=session, feed=feed)
    store.insert_role_if_absent('u1', 'moderator')
    assert store.delete_role('u1', 'moderator', revoked_by='boss') is True
    assert store.delete_role('u1', 'moderator') is False
    assert store.roles_for_actor('u1') == []
    assert rec.events[-1][1] == 'delete'
    assert rec.events[-1][2]['actor'] == 'boss'


def test_best_effort_allows_a_second_bootstrap_insert(session, feed):
    store = SqlRoleStore(session=session, feed=feed)
    assert store.insert_role_if_absent('a', 'admin', bootstrap=True) is InsertOutcome.INSERTED
    assert store.insert_role_if_absent('b', 'admin', bootstrap=True) is InsertOutcome.INSERTED
    assert session.query(AdminBootstrap).count() == 0


def test_marker_strategy_allows_exactly_one_bootstrap(marker_app, feed):
    from storefront import get_db
    session = get_db()
    store = SqlRoleStore(session=session, feed=feed, bootstrap_strategy='marker')
    assert store.insert_role_if_absent('a', 'admin', bootstrap=True) is InsertOutcome.INSERTED
    assert store.insert_role_if_absent('b', 'admin', bootstrap=True) is InsertOutcome.CONFLICT
    assert store.roles_for_actor('b') == []
    marker = session.query(AdminBootstrap).one()
    assert marker.user_id == 'a'
    # Explicit grants are not bootstraps and never touch the marker
    assert store.insert_role_if_absent('b', 'admin', granted_by='a') is InsertOutcome.INSERTED


def test_unknown_bootstrap_strategy_rejected(session, feed):
    with pytest.raises(ValueError):
        SqlRoleStore(session=session, feed=feed, bootstrap_strategy='optimistic')


def test_read_failure_raises_access_store_error(session, feed, monkeypatch):
    store = SqlRoleStore(session=session, feed=feed)

    def broken(*a, **kw):
        raise OperationalError('SELECT', {}, Exception('database is locked'))
    monkeypatch.setattr(session, 'execute', broken)
    with pytest.raises(AccessStoreError):
        store.roles_for_actor('u1')
    with pytest.raises(AccessStoreError):
        SqlProfileStore(session=session).earliest_profile()


def test_earliest_profile(session):
    assert SqlProfileStore(session=session).earliest_profile() is None
    first = ensure_profile('first@example.com')
    ensure_profile('second@example.com')
    earliest = SqlProfileStore(session=session).earliest_profile()
    assert earliest.actor_id == first.user_id


def test_resolver_against_sql_stores(session, feed):
    owner = ensure_profile('owner@example.com')
    other = ensure_profile('other@example.com')
    roles = SqlRoleStore(session=session, feed=feed)
    profiles = SqlProfileStore(session=session)
    # Other signs in first while the role store is empty: first-actor bootstrap
    assert resolve_role(other.user_id, roles, profiles).role == 'admin'
    # Owner still gets admin through the store-owner path
    res = resolve_role(owner.user_id, roles, profiles)
    assert res.role == 'admin'
    assert res.bootstrapped == 'store_owner'
    assert session.query(UserRole).filter_by(role='admin').count() == 2


def test_bootstrap_is_audited_through_the_app_feed(session):
    from storefront import change_feed
    roles = SqlRoleStore(session=session, feed=change_feed)
    roles.insert_role_if_absent('u1', 'admin', bootstrap=True)
    log = session.query(AuditLog).filter_by(action='ROLE.BOOTSTRAP').one()
    assert log.entity == 'user_roles'
    assert log.entity_id == 'u1'
    assert log.actor_user_id is None
    assert log.meta == {'role': 'admin'}


def test_tier_store_replace_deactivates_missing(session, feed):
    rec = Recorder()
    feed.subscribe('vip_tiers', rec)
    green, gold, platinum = seed_tiers()
    store = SqlTierStore(session=session, feed=feed)
    assert [t.name() for t in store.list_active_tiers()] == ['Green', 'Gold', 'Platinum']
    result = store.replace_tiers([
        {'id': green.id, 'name_i18n': {'en': 'Green'}, 'min_spend': 0, 'max_spend': 5000, 'discount_percent': 5},
        {'name_i18n': {'en': 'Black'}, 'min_spend': 5000, 'max_spend': None, 'discount_percent': 20},
    ], actor='boss')
    assert [t.name() for t in result] == ['Green', 'Black']
    assert result[0].id == green.id
    session.refresh(gold)
    assert gold.is_active is False
    assert rec.events[0][2]['action'] == 'VIP.TIERS.REPLACE'


def test_failed_audit_commit_leaves_session_usable(session):
    from storefront import change_feed
    # A null action violates audit_logs.action NOT NULL at commit time
    assert change_feed.publish('user_roles', 'insert', {'action': None, 'id': 'u1'}) == 0
    assert session.query(AuditLog).count() == 0
    store = SqlRoleStore(session=session, feed=change_feed)
    assert store.insert_role_if_absent('u1', 'moderator') is InsertOutcome.INSERTED
    assert session.query(AuditLog).filter_by(action='ROLE.GRANT').count() == 1
