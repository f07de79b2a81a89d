from test_utils_seed import seed_owner, seed_user_with_role


def test_unknown_path_returns_error_json(client):
    resp = client.get('/non-existent-path')
    # Flask default 404 should be wrapped by error handler
    assert resp.status_code == 404
    body = resp.get_json()
    assert 'error' in body
    assert body['error']['status'] == 404
    assert 'detail' in body['error']


def test_healthz(client):
    assert client.get('/healthz').get_json() == {'status': 'ok'}


def test_internal_error_shape(client, monkeypatch):
    _, headers = seed_owner(client)
    # Monkeypatch AFTER login so auth works; only break role granting
    import storefront.routes.iam as iam_mod

    def boom():
        raise RuntimeError('explode')
    monkeypatch.setattr(iam_mod, 'grantable_roles', boom)
    resp = client.post('/iam/users/whoever/roles', json={'role': 'admin'}, headers=headers)
    assert resp.status_code == 500
    body = resp.get_json()
    assert body['error']['status'] == 500
    assert body['error']['title'] == 'Internal Server Error'
    assert body['error']['detail'] == 'Unexpected error'


def test_domain_errors_carry_their_status(client):
    seed_owner(client)
    _, headers = seed_user_with_role(client, 'c@example.com')
    client.post('/vip/enroll', headers=headers)
    # Enrolled, but no tiers configured
    resp = client.get('/vip/me', headers=headers)
    assert resp.status_code == 409
    assert resp.get_json()['error']['status'] == 409
