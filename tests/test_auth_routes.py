from qrlock.models import db, User, UserRole
from qrlock.services.sessions import ACCESS, sessions

REGISTER = {'provider': 'KAKAO', 'subject': 'k-42', 'name': 'Parent', 'phone': '010-1234-5678'}


def test_anonymous_bootstrap(app, client):
    r = client.post('/auth/anonymous', json={'deviceData': {'deviceId': 'dev-1', 'platform': 'ios'}})
    body = r.get_json()
    assert r.status_code == 200
    assert body['isLinked'] is False
    assert body['user']['role'] == 'CHILD'
    with app.app_context():
        claims = sessions().verify(body['accessToken'], ACCESS)
        assert claims['userId'] == body['user']['id']
        assert claims['role'] == 'CHILD'


def test_anonymous_without_device(client):
    r = client.post('/auth/anonymous', json={})
    assert r.status_code == 200
    assert r.get_json()['accessToken']


def test_anonymous_reuses_linked_child(client, auth, make_user, scan):
    parent = make_user('PARENT', name='Parent')
    payload = client.post('/parent-child/registration-qr', json={'type': 'CHILD', 'name': 'Minji'},
                          headers=auth(parent)).get_json()['data']['payload']
    child_id = scan(payload, 'dev-1').get_json()['registrationInfo']['principalId']

    body = client.post('/auth/anonymous', json={'deviceData': {'deviceId': 'dev-1'}}).get_json()
    assert body['isLinked'] is True
    assert body['user']['id'] == child_id


def test_anonymous_unlinked_device_gets_fresh_principal(client):
    first = client.post('/auth/anonymous', json={'deviceData': {'deviceId': 'dev-1'}}).get_json()
    second = client.post('/auth/anonymous', json={'deviceData': {'deviceId': 'dev-1'}}).get_json()
    assert first['user']['id'] != second['user']['id']


def test_login_unknown_user_is_new(client):
    r = client.post('/auth/login', json={'provider': 'APPLE', 'subject': 'nobody'})
    assert r.get_json() == {'success': True, 'status': 'NEW_USER'}


def test_register_then_login(client):
    r = client.post('/auth/register', json=REGISTER)
    assert r.status_code == 200
    user = r.get_json()['user']
    assert (user['name'], user['role']) == ('Parent', 'PARENT')

    r = client.post('/auth/login', json={'provider': 'KAKAO', 'subject': 'k-42'})
    body = r.get_json()
    assert body['accessToken']
    assert body['user']['id'] == user['id']


def test_register_is_idempotent(app, client):
    a = client.post('/auth/register', json=REGISTER).get_json()['user']['id']
    b = client.post('/auth/register', json={**REGISTER, 'name': 'Renamed'}).get_json()['user']['id']
    assert a == b
    with app.app_context():
        assert User.query.count() == 1
        assert db.session.get(User, a).display_name == 'Renamed'
        assert UserRole.query.filter_by(user_id=a, role='PARENT').count() == 1


def test_register_rejects_unknown_provider(client):
    assert client.post('/auth/register', json={**REGISTER, 'provider': 'MYSPACE'}).status_code == 400


def test_refresh(app, client, make_user):
    user_id = make_user('TEACHER')
    with app.app_context():
        refresh = sessions().issue_refresh(user_id)
        access = sessions().issue_access(user_id, 'TEACHER')
    r = client.post('/auth/refresh', json={'refreshToken': refresh})
    assert r.status_code == 200
    with app.app_context():
        assert sessions().verify(r.get_json()['accessToken'], ACCESS)['role'] == 'TEACHER'
    assert client.post('/auth/refresh', json={'refreshToken': access}).status_code == 401


def test_refresh_for_unknown_user(app, client):
    with app.app_context():
        refresh = sessions().issue_refresh('ghost')
    assert client.post('/auth/refresh', json={'refreshToken': refresh}).status_code == 404


def test_pin(app, client, auth, make_user):
    user_id = make_user('PARENT')
    headers = auth(user_id)
    assert client.post('/auth/pin/set', json={'pin': '123456'}, headers=headers).get_json()['hasPin'] is True
    with app.app_context():
        assert db.session.get(User, user_id).pin_hash != '123456'
    assert client.post('/auth/pin/verify', json={'pin': '123456'}, headers=headers).get_json()['valid'] is True
    assert client.post('/auth/pin/verify', json={'pin': '000000'}, headers=headers).get_json()['valid'] is False
    assert client.post('/auth/pin/set', json={'pin': '12ab56'}, headers=headers).status_code == 400
    assert client.post('/auth/pin/set', json={'pin': ''}, headers=headers).get_json()['hasPin'] is False
    assert client.post('/auth/pin/verify', json={'pin': '123456'}, headers=headers).get_json()['valid'] is False


def test_pin_requires_sign_in(client):
    assert client.post('/auth/pin/set', json={'pin': '123456'}).status_code == 401
