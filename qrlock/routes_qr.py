from flask import Blueprint, jsonify, request

from .models import db, QrCode
from .schemas import IssueRequest, ScanRequest, parse
from .services import ledger, scan
from .services.errors import NotFound
from .services.issuer import issue_policy_token
from .services.rate_limit import check_rate_ip
from .services.sessions import current_principal, require_principal

bp = Blueprint('qr', __name__)


@bp.post('/generate')
def generate():
    principal = require_principal()
    req = parse(IssueRequest, request.get_json(silent=True))
    token = issue_policy_token(principal, req)
    db.session.commit()
    return jsonify({'success': True, 'qr_id': token.qr_id, 'exp': token.exp, 'payload': token.payload})


@bp.post('/scan')
def scan_qr():
    # Scanning needs no session; a bearer token only matters for link payloads
    check_rate_ip(request.remote_addr or '0.0.0.0')
    req = parse(ScanRequest, request.get_json(silent=True))
    return jsonify(scan.redeem(req.qrPayload, req.deviceId, current_principal()))


@bp.get('/<qr_id>')
def detail(qr_id: str):
    principal = require_principal()
    qr = db.session.get(QrCode, qr_id)
    if qr is None or qr.created_by != principal.user_id:
        raise NotFound('QR code not found')
    body = qr.to_dict()
    body['uses'] = ledger.count_uses(qr.id)
    return jsonify({'success': True, 'qr': body})
