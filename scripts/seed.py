import sys, pathlib
# Ensure project root is on PYTHONPATH when running directly
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from qrlock import create_app
from qrlock.models import db, PresetPolicy, User
from qrlock.services.accounts import assign_role, create_user, mint_session

SYSTEM_PRESETS = [
    {'id': 'preset-study', 'name': 'Study time', 'purpose': 'LOCK_ONLY', 'lock_type': 'FULL',
     'default_duration_minutes': 60, 'allowed_categories': ['EDUCATION']},
    {'id': 'preset-class', 'name': 'Class in session', 'purpose': 'LOCK_AND_ATTENDANCE', 'lock_type': 'FULL',
     'default_duration_minutes': 50, 'time_window': '09:00-09:50', 'days': ['Mon', 'Tue', 'Wed', 'Thu', 'Fri']},
    {'id': 'preset-sleep', 'name': 'Bedtime', 'purpose': 'LOCK_ONLY', 'lock_type': 'FULL',
     'time_window': '22:00-07:00', 'allowed_apps': ['com.apple.mobilephone']},
]

app = create_app()
with app.app_context():
    for preset in SYSTEM_PRESETS:
        if db.session.get(PresetPolicy, preset['id']) is None:
            db.session.add(PresetPolicy(scope='SYSTEM', **preset))

    parent = User.query.filter_by(auth_provider='KAKAO', provider_subject='demo-parent').first()
    if parent is None:
        parent = create_user('KAKAO', 'demo-parent', display_name='Demo Parent', phone_number='010-0000-0000')
    assign_role(parent.id, 'PARENT')
    tokens = mint_session(parent.id, 'PARENT')
    db.session.commit()

    print('parent id:', parent.id)
    print('presets:', ', '.join(p['id'] for p in SYSTEM_PRESETS))
    print('ACCESS_TOKEN=' + tokens['accessToken'])
