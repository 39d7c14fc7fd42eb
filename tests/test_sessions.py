import jwt

from qrlock.services.sessions import ACCESS, REFRESH, SessionTokens

SECRET = 's' * 40


def test_access_token_claims():
    tokens = SessionTokens(SECRET)
    claims = tokens.verify(tokens.issue_access('u-1', 'PARENT'), ACCESS)
    assert claims['userId'] == 'u-1'
    assert claims['role'] == 'PARENT'
    assert claims['type'] == 'access'


def test_token_types_are_not_interchangeable():
    tokens = SessionTokens(SECRET)
    assert tokens.verify(tokens.issue_access('u-1', 'PARENT'), REFRESH) is None
    assert tokens.verify(tokens.issue_refresh('u-1'), ACCESS) is None
    assert tokens.verify(tokens.issue_refresh('u-1'), REFRESH)['userId'] == 'u-1'


def test_issue_pair():
    pair = SessionTokens(SECRET).issue_pair('u-1', 'CHILD')
    assert set(pair) == {'accessToken', 'refreshToken'}


def test_rejects_expired_foreign_and_garbage_tokens():
    expired = SessionTokens(SECRET, access_ttl=-5).issue_access('u', 'PARENT')
    assert SessionTokens(SECRET).verify(expired, ACCESS) is None
    foreign = SessionTokens('o' * 40).issue_access('u', 'PARENT')
    assert SessionTokens(SECRET).verify(foreign, ACCESS) is None
    assert SessionTokens(SECRET).verify('not-a-jwt', ACCESS) is None
    assert SessionTokens(SECRET).verify(None, ACCESS) is None


def test_token_without_user_is_rejected():
    token = jwt.encode({'type': 'access'}, SECRET, algorithm='HS256')
    assert SessionTokens(SECRET).verify(token, ACCESS) is None


def test_refresh_token_is_not_a_bearer(client, app):
    with app.app_context():
        from qrlock.services.sessions import sessions
        refresh = sessions().issue_refresh('u-1')
    r = client.post('/qr/generate', json={'duration_minutes': 5}, headers={'Authorization': f'Bearer {refresh}'})
    assert r.status_code == 401
    assert r.get_json() == {'success': False, 'message': 'authentication required'}
