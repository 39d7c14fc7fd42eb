"""Redemption facts: device usage and attendance.

Every write here joins the caller's open transaction; nothing commits on its
own, so the gating checks and the writes they gate land together.
"""
import logging

from sqlalchemy import func, or_, update
from sqlalchemy.exc import IntegrityError

from ..models import db, Attendance, DeviceClaim, DeviceUsage, QrCode
from .errors import UseLimitExceeded
from .ids import clock, ids

log = logging.getLogger(__name__)


def count_uses(qr_id: str) -> int:
    return db.session.query(func.count(DeviceUsage.id)).filter(DeviceUsage.qr_id == qr_id).scalar() or 0


def has_device_used(qr_id: str, device_id: str) -> bool:
    return DeviceUsage.query.filter_by(qr_id=qr_id, device_id=device_id).first() is not None


def claim_use(qr: QrCode):
    """Atomically take one redemption slot of ``qr``.

    The conditional increment lets the database arbitrate between concurrent
    scans: of two transactions racing for the last slot only one matches
    ``use_count < max_uses``.
    """
    stmt = (
        update(QrCode)
        .where(QrCode.id == qr.id)
        .where(or_(QrCode.max_uses.is_(None), QrCode.use_count < QrCode.max_uses))
        .values(use_count=QrCode.use_count + 1)
        .execution_options(synchronize_session=False)
    )
    if db.session.execute(stmt).rowcount == 0:
        raise UseLimitExceeded('use limit exceeded')


def claim_device(qr_id: str, device_id: str) -> DeviceClaim:
    """Take the one slot a device has on a one-device-once token; the unique
    (token, device) pair turns a concurrent second redemption into a conflict."""
    try:
        with db.session.begin_nested():
            claim = DeviceClaim(id=ids().new_id(), qr_id=qr_id, device_id=device_id, claimed_at=clock().now())
            db.session.add(claim)
        return claim
    except IntegrityError:
        log.info('device %s already claimed qr %s', device_id, qr_id)
        raise UseLimitExceeded('QR code already used on this device')


def record_device_usage(qr_id: str, device_id, user_id) -> DeviceUsage:
    usage = DeviceUsage(id=ids().new_id(), qr_id=qr_id, device_id=device_id, user_id=user_id,
                        used_at=clock().now())
    db.session.add(usage)
    db.session.flush()
    return usage


def record_attendance(qr_id: str, class_id: str, student_id: str, device_id) -> Attendance:
    """Upsert on (token, student): a rescan refreshes the timestamp."""
    now = clock().now()
    row = Attendance.query.filter_by(qr_id=qr_id, student_id=student_id).first()
    if row is None:
        try:
            with db.session.begin_nested():
                row = Attendance(id=ids().new_id(), qr_id=qr_id, class_id=class_id, student_id=student_id,
                                 device_id=device_id, status='PRESENT', scanned_at=now)
                db.session.add(row)
            return row
        except IntegrityError:
            # A concurrent scan inserted first; fall through to the update
            log.info('attendance insert raced for qr %s student %s', qr_id, student_id)
            row = Attendance.query.filter_by(qr_id=qr_id, student_id=student_id).one()
    row.status = 'PRESENT'
    row.scanned_at = now
    row.device_id = device_id
    db.session.flush()
    return row
