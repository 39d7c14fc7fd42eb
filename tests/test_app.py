import pytest

from qrlock import create_app


def test_health(client):
    assert client.get('/health').get_json() == {'ok': True}


def test_unknown_route_is_json(client):
    r = client.get('/nowhere')
    assert r.status_code == 404
    assert r.get_json() == {'success': False, 'message': 'not found'}


def test_wrong_method_is_json(client):
    r = client.get('/auth/login')
    assert r.status_code == 405
    assert r.get_json()['success'] is False


def test_unexpected_errors_become_500(app, client, auth, make_user, monkeypatch):
    from qrlock import routes_qr

    def boom(*args, **kwargs):
        raise RuntimeError('database went away')

    monkeypatch.setattr(routes_qr, 'issue_policy_token', boom)
    r = client.post('/qr/generate', json={'duration_minutes': 5}, headers=auth(make_user('PARENT')))
    assert r.status_code == 500
    assert r.get_json() == {'success': False, 'message': 'internal error'}


def test_secrets_must_differ(tmp_path):
    with pytest.raises(RuntimeError):
        create_app({
            'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'x.db'}",
            'QR_SECRET_KEY': 'same-secret-0123456789abcdef0123456789',
            'JWT_SECRET': 'same-secret-0123456789abcdef0123456789',
        })
