import pytest

from storefront.models.audit import AuditLog
from storefront.models.vip import VipMember
from test_utils_seed import seed_owner, seed_user_with_role, seed_tiers

LADDER = [
    {'name_i18n': {'en': 'Green'}, 'min_spend': 0, 'max_spend': 2000, 'discount_percent': 5},
    {'name_i18n': {'en': 'Gold'}, 'min_spend': 2000, 'max_spend': 10000, 'discount_percent': 10},
    {'name_i18n': {'en': 'Platinum'}, 'min_spend': 10000, 'max_spend': None, 'discount_percent': 15},
]


@pytest.fixture()
def staff(client):
    """Owner (admin) plus a store manager; returns the manager's headers."""
    seed_owner(client)
    _, headers = seed_user_with_role(client, 'mgr@example.com', 'store_manager')
    return headers


def enroll_customer(client, email='c@example.com'):
    profile, headers = seed_user_with_role(client, email)
    resp = client.post('/vip/enroll', headers=headers)
    assert resp.status_code == 201, resp.get_json()
    return profile, headers, resp.get_json()['id']


def test_tiers_are_public(client):
    seed_tiers()
    resp = client.get('/vip/tiers')
    assert resp.status_code == 200
    assert [t['name_i18n']['en'] for t in resp.get_json()['data']] == ['Green', 'Gold', 'Platinum']


def test_replace_tiers_requires_manage_vip(client, staff):
    _, user_headers = seed_user_with_role(client, 'plain@example.com')
    assert client.put('/vip/tiers', json={'tiers': LADDER}, headers=user_headers).status_code == 403
    resp = client.put('/vip/tiers', json={'tiers': list(reversed(LADDER))}, headers=staff)
    assert resp.status_code == 200, resp.get_json()
    assert [t['min_spend'] for t in resp.get_json()['data']] == [0, 2000, 10000]


@pytest.mark.parametrize('tiers, status', [
    ([{**LADDER[0], 'max_spend': 1500}, LADDER[1], LADDER[2]], 409),  # gap
    ([LADDER[0], LADDER[1]], 409),  # bounded top tier
    ([], 409),
    ([{**LADDER[0], 'min_spend': 'zero'}], 400),
    ([{**LADDER[0], 'name_i18n': {}}], 400),
])
def test_replace_tiers_rejects_bad_ladders(client, staff, tiers, status):
    resp = client.put('/vip/tiers', json={'tiers': tiers}, headers=staff)
    assert resp.status_code == status, resp.get_json()


def test_enroll_and_card(client, staff):
    seed_tiers()
    profile, headers, member_id = enroll_customer(client)
    assert client.post('/vip/enroll', headers=headers).status_code == 409

    client.post(f'/vip/members/{member_id}/spend', json={'amount': 5000}, headers=staff)
    card = client.get('/vip/me', headers=headers)
    assert card.status_code == 200
    body = card.get_json()
    assert body['tier_name'] == 'Gold'
    assert body['next_tier']['name_i18n']['en'] == 'Platinum'
    assert body['progress_percent'] == pytest.approx(37.5)
    assert body['amount_to_next'] == 5000
    assert body['pinned'] is False
    assert body['member']['points_earned'] == 5000
    assert body['expires_at']


def test_card_for_non_member(client):
    seed_owner(client)
    _, headers = seed_user_with_role(client, 'c@example.com')
    assert client.get('/vip/me', headers=headers).status_code == 404


def test_card_without_tiers_is_conflict(client, staff):
    _, headers, _ = enroll_customer(client)
    resp = client.get('/vip/me', headers=headers)
    assert resp.status_code == 409
    assert resp.get_json()['error']['title'] == 'No VIP Tiers Configured'


def test_enroll_blocked_when_program_disabled(client, staff):
    resp = client.put('/settings/vip', json={'is_enabled': False}, headers=staff)
    assert resp.status_code == 200
    _, headers = seed_user_with_role(client, 'c@example.com')
    assert client.post('/vip/enroll', headers=headers).status_code == 409


def test_spend_updates_tier_and_stamps_change(client, staff, session):
    seed_tiers()
    _, _, member_id = enroll_customer(client)
    small = client.post(f'/vip/members/{member_id}/spend', json={'amount': 100}, headers=staff).get_json()
    assert small['tier_changed'] is False
    big = client.post(f'/vip/members/{member_id}/spend', json={'amount': 2000}, headers=staff).get_json()
    assert big['tier_changed'] is True
    assert big['total_spend'] == 2100
    member = session.get(VipMember, member_id)
    session.refresh(member)
    assert member.tier_updated_at is not None
    assert client.post(f'/vip/members/{member_id}/spend', json={'amount': -5}, headers=staff).status_code == 400


def test_pin_and_unpin_tier(client, staff):
    green, gold, platinum = seed_tiers()
    _, headers, member_id = enroll_customer(client)
    resp = client.put(f'/vip/members/{member_id}/tier', json={'tier_id': platinum.id}, headers=staff)
    assert resp.status_code == 200
    card = client.get('/vip/me', headers=headers).get_json()
    assert card['tier_name'] == 'Platinum'
    assert card['pinned'] is True
    assert card['next_tier'] is None

    assert client.put(f'/vip/members/{member_id}/tier', json={'tier_id': 999}, headers=staff).status_code == 400
    client.put(f'/vip/members/{member_id}/tier', json={'tier_id': None}, headers=staff)
    assert client.get('/vip/me', headers=headers).get_json()['tier_name'] == 'Green'


def test_points_override(client, staff):
    _, _, member_id = enroll_customer(client)
    resp = client.put(f'/vip/members/{member_id}/points', json={'points_earned': 50, 'points_redeemed': 20}, headers=staff)
    assert resp.status_code == 200
    assert resp.get_json()['points_balance'] == 30
    bad = client.put(f'/vip/members/{member_id}/points', json={'points_earned': 5, 'points_redeemed': 20}, headers=staff)
    assert bad.status_code == 400
    assert client.put('/vip/members/999/points', json={'points_earned': 1, 'points_redeemed': 0}, headers=staff).status_code == 404


def test_member_listing_and_audit(client, staff, session):
    _, _, member_id = enroll_customer(client, 'a@example.com')
    enroll_customer(client, 'b@example.com')
    resp = client.get('/vip/members?limit=1', headers=staff)
    assert resp.status_code == 200
    body = resp.get_json()
    assert body['pagination'] == {'total': 2, 'limit': 1, 'offset': 0, 'returned': 1}
    assert session.query(AuditLog).filter_by(action='VIP.ENROLL').count() == 2


def test_member_listing_etag_changes_after_member_edit(client, staff):
    _, _, member_id = enroll_customer(client)
    first = client.get('/vip/members', headers=staff)
    assert first.status_code == 200
    etag = first.headers['ETag']
    assert client.get('/vip/members', headers={**staff, 'If-None-Match': etag}).status_code == 304

    resp = client.put(f'/vip/members/{member_id}/points', json={'points_earned': 50, 'points_redeemed': 0}, headers=staff)
    assert resp.status_code == 200
    again = client.get('/vip/members', headers={**staff, 'If-None-Match': etag})
    assert again.status_code == 200
    assert again.get_json()['data'][0]['points_earned'] == 50
    assert again.headers['ETag'] != etag
