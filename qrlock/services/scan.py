"""Redemption of scanned QR payloads.

The payload's ``type`` picks the path: link types are verified from the
payload alone and handed to the linking resolver; anything else is a
stateful ``{qr_id, exp, sig}`` token resolved against its server row.
"""
import logging
from dataclasses import dataclass

from flask import current_app

from ..models import db, QrCode
from ..schemas import LINK_TYPES, LinkPayload, StatefulPayload, load_payload, parse
from . import ledger
from .device import find_device
from .errors import Expired, InvalidSignature, MalformedPayload, NotFound, ScheduleViolation, UseLimitExceeded
from .ids import clock
from .issuer import ATTENDANCE_PURPOSES, LOCK_PURPOSES, signer
from .linking import resolve_link
from .time_window import is_within, local_now

log = logging.getLogger(__name__)


@dataclass
class Redemption:
    purpose: str
    qr_id: str
    device_id: str
    lock_policy: dict | None = None
    attendance: dict | None = None

    def to_response(self) -> dict:
        body = {'success': True, 'purpose': self.purpose}
        if self.lock_policy is not None:
            body['lockPolicy'] = self.lock_policy
        return body


def decode(raw) -> dict:
    return load_payload(raw)


def is_link_payload(obj: dict) -> bool:
    return obj.get('type') in LINK_TYPES


def _check_expiry(exp: int):
    # exp == now is still valid
    if exp < clock().epoch():
        raise Expired('token expired')


def verify_link_payload(obj: dict) -> LinkPayload:
    """Signature then expiry of a stateless link token."""
    payload = parse(LinkPayload, obj)
    if not signer().verify_link(payload.signed_fields(), payload.sig):
        log.info('rejected tampered %s token %s', payload.type, payload.qrId)
        raise InvalidSignature('tampered QR code')
    _check_expiry(payload.exp)
    return payload


def verify_stateful_payload(obj: dict) -> StatefulPayload:
    if obj.get('type') is not None:
        raise MalformedPayload(f"unknown QR type: {obj.get('type')!r}")
    payload = parse(StatefulPayload, obj)
    if not signer().verify_stateful(payload.qr_id, payload.exp, payload.sig):
        log.info('rejected tampered token %s', payload.qr_id)
        raise InvalidSignature('tampered QR code')
    _check_expiry(payload.exp)
    return payload


def check_schedule(qr: QrCode):
    if not qr.time_window:
        return
    start, _, end = qr.time_window.partition('-')
    now = local_now(clock().now(), current_app.config['SCHEDULE_TIMEZONE'])
    check = is_within(now, start, end, qr.days, current_app.config['SCHEDULE_LEAD_MINUTES'])
    if not check.valid:
        raise ScheduleViolation(check.reason)


def redeem_stateful(payload: StatefulPayload, device_identifier) -> Redemption:
    """Resolve a verified stateful token for the scanning device.

    Runs inside the request's unit of work; the caller commits. The token row
    is locked for update where the database supports it, and the use slot is
    claimed atomically, so limited tokens cannot be over-redeemed.
    """
    qr = (QrCode.query
          .filter_by(id=payload.qr_id, status='ACTIVE')
          .with_for_update(of=QrCode)
          .first())
    if qr is None:
        raise NotFound('unknown or inactive QR code')

    check_schedule(qr)

    if qr.max_uses is not None and ledger.count_uses(qr.id) >= qr.max_uses:
        raise UseLimitExceeded('use limit exceeded')

    if not device_identifier:
        raise MalformedPayload('deviceId is required')
    device = find_device(device_identifier)
    if device is None:
        raise NotFound('device not registered')

    if qr.one_device_once and ledger.has_device_used(qr.id, device.id):
        raise UseLimitExceeded('QR code already used on this device')

    ledger.claim_use(qr)
    if qr.one_device_once:
        ledger.claim_device(qr.id, device.id)

    attendance = None
    if qr.purpose in ATTENDANCE_PURPOSES:
        row = ledger.record_attendance(qr.id, qr.target_id, device.user_id, device.id)
        attendance = row.to_dict()

    ledger.record_device_usage(qr.id, device.id, device.user_id)

    lock_policy = None
    if qr.purpose in LOCK_PURPOSES and qr.lock_policy is not None:
        lock_policy = qr.lock_policy.to_dict()
        # The token's own window is authoritative for the response
        lock_policy['timeWindow'] = qr.time_window
        lock_policy['days'] = qr.days

    log.info('redeemed %s token %s on device %s', qr.purpose, qr.id, device.id)
    return Redemption(purpose=qr.purpose, qr_id=qr.id, device_id=device.id,
                      lock_policy=lock_policy, attendance=attendance)


def redeem(raw, device_identifier, principal=None) -> dict:
    """Entry point of ``POST /qr/scan``; returns the response body."""
    obj = decode(raw)
    if is_link_payload(obj):
        payload = verify_link_payload(obj)
        link = resolve_link(principal, payload, device_identifier)
        db.session.commit()
        return {'success': True, 'registrationInfo': link.to_dict()}
    payload = verify_stateful_payload(obj)
    result = redeem_stateful(payload, device_identifier)
    db.session.commit()
    return result.to_response()
