"""Token issuance.

Stateful tokens (lock/attendance) persist a ``QrCode`` row, plus a
``LockPolicy`` when lock fields are present, and carry only
``{qr_id, exp, sig}``. Link tokens (child registration, parent link) persist
nothing: the whole payload is signed and travels in the QR code, because the
scanning principal may not exist yet.
"""
import json
import logging
from dataclasses import dataclass

from flask import current_app

from ..models import db, LockPolicy, PresetPolicy, QrCode
from ..schemas import IssueRequest
from .accounts import get_user
from .errors import MalformedPayload, NotFound
from .ids import clock, ids
from .signer import TokenSigner
from .sessions import Principal
from .time_window import parse_window

log = logging.getLogger(__name__)

LOCK_FIELDS = ('title', 'lock_type', 'duration_minutes', 'allowed_apps', 'blocked_apps',
               'allowed_categories', 'blocked_categories')
ATTENDANCE_PURPOSES = ('ATTENDANCE_ONLY', 'LOCK_AND_ATTENDANCE')
LOCK_PURPOSES = ('LOCK_ONLY', 'LOCK_AND_ATTENDANCE')


@dataclass(frozen=True)
class IssuedToken:
    qr_id: str
    exp: int
    sig: str

    @property
    def payload(self) -> str:
        return json.dumps({'qr_id': self.qr_id, 'exp': self.exp, 'sig': self.sig}, separators=(',', ':'))


def signer() -> TokenSigner:
    return current_app.extensions['qrlock.signer']


def _load_preset(preset_id: str, requester: Principal) -> PresetPolicy:
    preset = db.session.get(PresetPolicy, preset_id)
    if preset is None or not preset.is_active:
        raise NotFound('preset not found')
    if preset.scope != 'SYSTEM' and preset.owner_id != requester.user_id:
        raise NotFound('preset not found')
    return preset


def _preset_defaults(preset: PresetPolicy) -> dict:
    return {
        'title': preset.name,
        'lock_type': preset.lock_type,
        'duration_minutes': preset.default_duration_minutes,
        'allowed_apps': preset.allowed_apps,
        'blocked_apps': preset.blocked_apps,
        'allowed_categories': preset.allowed_categories,
        'blocked_categories': preset.blocked_categories,
    }


def _resolve_target(req: IssueRequest, requester: Principal):
    target_type = req.target_type or ('CLASS' if req.class_id else 'DEVICE')
    target_id = req.target_id or req.class_id or requester.user_id
    if req.purpose in ATTENDANCE_PURPOSES and target_type != 'CLASS':
        raise MalformedPayload('attendance tokens need a CLASS target')
    return target_type, target_id


def issue_policy_token(requester: Principal, req: IssueRequest) -> IssuedToken:
    """Persist the policy and token rows and sign ``qr_id:exp``.

    Preset fields are defaults; each explicit override replaces its field
    whole (lists are replaced, not merged).
    """
    preset = _load_preset(req.preset_id, requester) if req.preset_id else None
    lock = _preset_defaults(preset) if preset else {}
    lock.update(req.lock_overrides())
    lock = {k: v for k, v in lock.items() if v is not None}

    if req.time_window or req.days:
        window, days = parse_window(req.time_window, req.days)
    elif preset is not None:
        window, days = parse_window(preset.time_window, preset.days)
    else:
        window, days = None, None

    target_type, target_id = _resolve_target(req, requester)

    policy = None
    if any(f in lock for f in LOCK_FIELDS if f != 'title'):
        policy = LockPolicy(id=ids().new_id(), preset_id=preset.id if preset else None,
                            time_window=window, days=days, created_by=requester.user_id, **lock)
        db.session.add(policy)
    elif req.purpose in LOCK_PURPOSES:
        raise MalformedPayload('lock tokens need a preset or lock fields')

    qr_id = ids().new_id()
    exp = clock().epoch() + current_app.config['POLICY_TOKEN_TTL_SECONDS']
    sig = signer().sign_stateful(qr_id, exp)
    db.session.add(QrCode(
        id=qr_id,
        purpose=req.purpose,
        preset_id=preset.id if preset else None,
        lock_policy_id=policy.id if policy else None,
        target_type=target_type,
        target_id=target_id,
        schedule_mode=req.schedule_mode or ('SCHEDULED' if window else 'IMMEDIATE'),
        time_window=window,
        days=days,
        max_uses=req.max_uses,
        one_device_once=req.one_device_once,
        expires_at=exp,
        hmac_sig=sig,
        status='ACTIVE',
        created_by=requester.user_id,
    ))
    db.session.flush()
    log.info('issued %s token %s by %s', req.purpose, qr_id, requester.user_id)
    return IssuedToken(qr_id=qr_id, exp=exp, sig=sig)


def issue_link_token(requester: Principal, kind: str, name=None, birth_year=None, phone=None) -> dict:
    """Build and sign a self-contained CHILD_REGISTRATION / PARENT_LINK payload.

    For child registration ``name`` is the nickname the parent gives the
    child; it keys idempotent linking on redemption, so it is required.
    """
    issuer = get_user(requester.user_id)
    if kind == 'CHILD':
        if not name:
            raise MalformedPayload('child registration needs the child name')
        payload = {'type': 'CHILD_REGISTRATION', 'issuerId': issuer.id, 'issuerName': name,
                   'birthYear': birth_year, 'phone': phone}
    else:
        payload = {'type': 'PARENT_LINK', 'issuerId': issuer.id, 'issuerName': name or issuer.display_name}
    payload['qrId'] = ids().new_id()
    payload['exp'] = clock().epoch() + current_app.config['LINK_TOKEN_TTL_SECONDS']
    payload = {k: v for k, v in payload.items() if v is not None}
    payload['sig'] = signer().sign_link(payload)
    log.info('issued %s link token by %s', payload['type'], issuer.id)
    return payload
