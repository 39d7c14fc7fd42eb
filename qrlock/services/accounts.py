"""Principals, role assignments and the credentials minted for them."""
from werkzeug.security import check_password_hash, generate_password_hash

from ..models import db, User, UserRole
from .errors import MalformedPayload, NotFound
from .ids import ids
from .sessions import sessions

GLOBAL = 'GLOBAL'


def create_user(auth_provider: str, provider_subject=None, **profile) -> User:
    user = User(id=ids().new_id(), auth_provider=auth_provider, provider_subject=provider_subject, **profile)
    db.session.add(user)
    db.session.flush()
    return user


def get_user(user_id: str) -> User:
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFound('user not found')
    return user


def assign_role(user_id: str, role: str, scope_type: str = GLOBAL, scope_id: str = '') -> UserRole:
    """Idempotent on (user, role, scope)."""
    existing = UserRole.query.filter_by(user_id=user_id, role=role, scope_id=scope_id or '').first()
    if existing is not None:
        return existing
    ur = UserRole(user_id=user_id, role=role, scope_type=scope_type, scope_id=scope_id or '')
    db.session.add(ur)
    db.session.flush()
    return ur


def primary_role(user_id: str, default=None):
    """Most recently assigned global role, else most recent of any scope."""
    q = UserRole.query.filter_by(user_id=user_id).order_by(UserRole.assigned_at.desc(), UserRole.id.desc())
    ur = q.filter_by(scope_type=GLOBAL).first() or q.first()
    return ur.role if ur is not None else default


def has_role(user_id: str, role: str) -> bool:
    return UserRole.query.filter_by(user_id=user_id, role=role).first() is not None


def mint_session(user_id: str, role=None) -> dict:
    role = role or primary_role(user_id, default='CHILD')
    return sessions().issue_pair(user_id, role)


def user_dict(user: User, role=None) -> dict:
    return {
        'id': user.id,
        'name': user.display_name,
        'email': user.email,
        'phone': user.phone_number,
        'birthYear': user.birth_year,
        'role': role or primary_role(user.id),
        'authProvider': user.auth_provider,
    }


def set_pin(user: User, pin):
    if pin is None or pin == '':
        user.pin_hash = None
        return
    if not (isinstance(pin, str) and len(pin) == 6 and pin.isdigit()):
        raise MalformedPayload('PIN must be 6 digits')
    user.pin_hash = generate_password_hash(pin)


def check_pin(user: User, pin) -> bool:
    if not user.pin_hash or not isinstance(pin, str):
        return False
    return check_password_hash(user.pin_hash, pin)
