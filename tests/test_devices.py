from qrlock.models import Device


def test_register_repoints_instead_of_duplicating(app, client, auth, make_user):
    a, b = make_user('CHILD'), make_user('CHILD')
    body = {'device_uuid': 'ABC-1', 'platform': 'android', 'device_model': 'Pixel'}
    first = client.post('/devices/register', json=body, headers=auth(a, 'CHILD')).get_json()['device']
    second = client.post('/devices/register', json={'device_uuid': 'abc-1'},
                         headers=auth(b, 'CHILD')).get_json()['device']
    assert first['id'] == second['id']
    assert second['userId'] == b
    assert second['deviceModel'] == 'Pixel'
    with app.app_context():
        assert Device.query.count() == 1


def test_android_permissions(client, auth, make_user, make_device):
    kid = make_user('CHILD')
    make_device(kid, 'dev-A', platform='ANDROID')
    r = client.patch('/devices/DEV-a/permissions', headers=auth(kid, 'CHILD'),
                     json={'accessibility': True, 'screenTime': True, 'notification': False})
    device = r.get_json()['device']
    assert r.status_code == 200
    assert device['accessibilityPermission'] == 'GRANTED'
    assert device['screenTimePermission'] is None
    assert device['notificationPermission'] == 'DENIED'


def test_ios_permissions(client, auth, make_user, make_device):
    kid = make_user('CHILD')
    make_device(kid, 'dev-i', platform='IOS')
    device = client.patch('/devices/dev-i/permissions', headers=auth(kid, 'CHILD'),
                          json={'accessibility': True}).get_json()['device']
    assert device['accessibilityPermission'] is None
    assert device['screenTimePermission'] == 'NOT_DETERMINED'
    assert device['notificationPermission'] == 'NOT_DETERMINED'


def test_permissions_of_someone_elses_device(client, auth, make_user, make_device):
    owner, other = make_user('CHILD'), make_user('CHILD')
    make_device(owner, 'dev-A')
    r = client.patch('/devices/dev-A/permissions', headers=auth(other, 'CHILD'), json={'notification': True})
    assert r.status_code == 404


def test_permissions_reject_non_boolean(client, auth, make_user, make_device):
    kid = make_user('CHILD')
    make_device(kid, 'dev-A')
    r = client.patch('/devices/dev-A/permissions', headers=auth(kid, 'CHILD'), json={'notification': 'yes'})
    assert r.status_code == 400
