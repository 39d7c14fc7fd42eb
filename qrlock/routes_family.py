import json

from flask import Blueprint, jsonify, request

from .models import db, ParentChildRelation, User
from .schemas import LinkRequest, RegistrationQrRequest, parse
from .services import scan
from .services.errors import MalformedPayload
from .services.issuer import issue_link_token
from .services.linking import resolve_link
from .services.sessions import require_principal

bp = Blueprint('family', __name__)


def _member(user: User, edge: ParentChildRelation) -> dict:
    return {
        'id': user.id,
        'name': user.display_name,
        'nickname': edge.nickname,
        'birthYear': user.birth_year,
        'isPrimary': bool(edge.is_primary),
    }


@bp.get('/children')
def children():
    principal = require_principal()
    rows = (db.session.query(ParentChildRelation, User)
            .join(User, User.id == ParentChildRelation.child_user_id)
            .filter(ParentChildRelation.parent_user_id == principal.user_id)
            .order_by(ParentChildRelation.created_at, ParentChildRelation.id)
            .all())
    return jsonify({'success': True, 'children': [_member(u, e) for e, u in rows]})


@bp.get('/parents')
def parents():
    principal = require_principal()
    rows = (db.session.query(ParentChildRelation, User)
            .join(User, User.id == ParentChildRelation.parent_user_id)
            .filter(ParentChildRelation.child_user_id == principal.user_id)
            .order_by(ParentChildRelation.created_at, ParentChildRelation.id)
            .all())
    return jsonify({'success': True, 'parents': [_member(u, e) for e, u in rows]})


@bp.post('/registration-qr')
def registration_qr():
    principal = require_principal()
    req = parse(RegistrationQrRequest, request.get_json(silent=True))
    payload = issue_link_token(principal, req.type, name=req.name, birth_year=req.birthYear, phone=req.phone)
    return jsonify({'success': True, 'data': {
        'payload': json.dumps(payload, separators=(',', ':'), ensure_ascii=False),
        'qrId': payload['qrId'],
        'exp': payload['exp'],
    }})


@bp.post('/link')
def link():
    principal = require_principal()
    req = parse(LinkRequest, request.get_json(silent=True))
    obj = scan.decode(req.payload)
    if not scan.is_link_payload(obj):
        raise MalformedPayload('not a link QR code')
    payload = scan.verify_link_payload(obj)
    result = resolve_link(principal, payload, req.deviceId)
    db.session.commit()
    return jsonify({'success': True, 'data': result.to_dict()})
