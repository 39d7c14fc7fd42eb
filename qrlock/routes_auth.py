from flask import Blueprint, jsonify, request

from .models import db, ParentChildRelation, User
from .schemas import AnonymousRequest, LoginRequest, PinRequest, RefreshRequest, RegisterRequest, parse
from .services.accounts import (assign_role, check_pin, create_user, get_user, has_role, mint_session,
                                primary_role, set_pin, user_dict)
from .services.device import find_device, upsert_device
from .services.errors import NotFound, Unauthenticated
from .services.sessions import REFRESH, require_principal, sessions

bp = Blueprint('auth', __name__)


def _has_parent(user_id):
    return ParentChildRelation.query.filter_by(child_user_id=user_id).first() is not None


@bp.post('/anonymous')
def anonymous():
    req = parse(AnonymousRequest, request.get_json(silent=True))
    data = req.deviceData
    user, linked = None, False
    if data is not None:
        device = find_device(data.deviceId)
        # A known child device that already has a parent keeps its principal
        if device is not None and has_role(device.user_id, 'CHILD') and _has_parent(device.user_id):
            user, linked = get_user(device.user_id), True
    if user is None:
        user = create_user('ANONYMOUS')
        assign_role(user.id, 'CHILD')
    if data is not None:
        upsert_device(user.id, data.deviceId, platform=data.platform, device_model=data.model,
                      os_version=data.osVersion, app_version=data.appVersion)
    tokens = mint_session(user.id, 'CHILD')
    db.session.commit()
    return jsonify({'success': True, **tokens, 'user': user_dict(user, 'CHILD'), 'isLinked': linked})


@bp.post('/login')
def login():
    req = parse(LoginRequest, request.get_json(silent=True))
    user = User.query.filter_by(auth_provider=req.provider, provider_subject=req.subject).first()
    if user is None or not user.is_complete():
        return jsonify({'success': True, 'status': 'NEW_USER'})
    return jsonify({'success': True, **mint_session(user.id), 'user': user_dict(user)})


@bp.post('/register')
def register():
    req = parse(RegisterRequest, request.get_json(silent=True))
    user = User.query.filter_by(auth_provider=req.provider, provider_subject=req.subject).first()
    if user is None:
        user = create_user(req.provider, req.subject)
    user.display_name = req.name
    user.phone_number = req.phone
    if req.email:
        user.email = req.email
    assign_role(user.id, req.role)
    tokens = mint_session(user.id, req.role)
    db.session.commit()
    return jsonify({'success': True, **tokens, 'user': user_dict(user, req.role)})


@bp.post('/refresh')
def refresh():
    req = parse(RefreshRequest, request.get_json(silent=True))
    claims = sessions().verify(req.refreshToken, REFRESH)
    if claims is None:
        raise Unauthenticated('invalid refresh token')
    user = db.session.get(User, claims['userId'])
    if user is None:
        raise NotFound('user not found')
    role = primary_role(user.id, default='CHILD')
    return jsonify({'success': True, 'accessToken': sessions().issue_access(user.id, role)})


@bp.post('/pin/set')
def pin_set():
    principal = require_principal()
    req = parse(PinRequest, request.get_json(silent=True))
    user = get_user(principal.user_id)
    set_pin(user, req.pin)
    db.session.commit()
    return jsonify({'success': True, 'hasPin': user.pin_hash is not None})


@bp.post('/pin/verify')
def pin_verify():
    principal = require_principal()
    req = parse(PinRequest, request.get_json(silent=True))
    return jsonify({'success': True, 'valid': check_pin(get_user(principal.user_id), req.pin)})
