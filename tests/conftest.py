import json
from datetime import datetime, timezone

import pytest

from qrlock import create_app
from qrlock.models import db
from qrlock.services.accounts import assign_role, create_user
from qrlock.services.device import upsert_device
from qrlock.services.ids import FixedClock, SequenceIds
from qrlock.services.sessions import sessions

# Monday 2024-03-04 00:00 UTC, i.e. 09:00 in Asia/Seoul
START = datetime(2024, 3, 4, 0, 0, tzinfo=timezone.utc)

QR_SECRET = 'test-qr-secret-0123456789abcdef0123456789'
JWT_SECRET = 'test-jwt-secret-0123456789abcdef0123456789'


@pytest.fixture
def clock():
    return FixedClock(START)


@pytest.fixture
def app(tmp_path, clock):
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'qrlock.db'}",
        'USE_REDIS': False,
        'SCAN_RATE_LIMIT': 0,
        'QR_SECRET_KEY': QR_SECRET,
        'JWT_SECRET': JWT_SECRET,
    }, clock=clock, ids=SequenceIds())
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(app):
    def _make(role='PARENT', name=None, **profile):
        with app.app_context():
            user = create_user('KAKAO', display_name=name, **profile)
            assign_role(user.id, role)
            db.session.commit()
            return user.id
    return _make


@pytest.fixture
def auth(app):
    def _auth(user_id, role='PARENT'):
        with app.app_context():
            token = sessions().issue_access(user_id, role)
        return {'Authorization': f'Bearer {token}'}
    return _auth


@pytest.fixture
def make_device(app):
    def _make(user_id, device_uuid, platform='ANDROID'):
        with app.app_context():
            device = upsert_device(user_id, device_uuid, platform=platform)
            db.session.commit()
            return device.id
    return _make


@pytest.fixture
def issue(client):
    """POST /qr/generate and return the payload string."""
    def _issue(headers, **body):
        r = client.post('/qr/generate', json=body, headers=headers)
        assert r.status_code == 200, r.get_json()
        return r.get_json()['payload']
    return _issue


@pytest.fixture
def scan(client):
    def _scan(payload, device_id=None, headers=None):
        if not isinstance(payload, str):
            payload = json.dumps(payload, ensure_ascii=False)
        body = {'qrPayload': payload}
        if device_id is not None:
            body['deviceId'] = device_id
        return client.post('/qr/scan', json=body, headers=headers or {})
    return _scan
