from sqlalchemy import func, or_

from ..models import db, Device
from .errors import NotFound
from .ids import ids


def _permission(value):
    if value is True:
        return 'GRANTED'
    if value is False:
        return 'DENIED'
    return 'NOT_DETERMINED'


def _platform(value):
    return 'IOS' if (value or '').upper() == 'IOS' else 'ANDROID'


def find_device(identifier):
    """Look a device up by internal row id or by client UUID (case-insensitive)."""
    if not identifier:
        return None
    return Device.query.filter(
        or_(Device.id == identifier, func.lower(Device.device_uuid) == identifier.lower())
    ).first()


def upsert_device(user_id: str, device_uuid: str, platform=None, device_model=None, os_version=None, app_version=None):
    """Register ``device_uuid`` for ``user_id``; an already-known UUID changes
    owner instead of producing a second row."""
    device = Device.query.filter(func.lower(Device.device_uuid) == device_uuid.lower()).first()
    if device is None:
        device = Device(id=ids().new_id(), device_uuid=device_uuid, platform=_platform(platform))
        db.session.add(device)
    elif platform:
        device.platform = _platform(platform)
    device.user_id = user_id
    device.is_active = True
    if device_model:
        device.device_model = device_model
    if os_version:
        device.os_version = os_version
    if app_version:
        device.app_version = app_version
    db.session.flush()
    return device


def update_permissions(user_id: str, device_identifier: str, accessibility=None, screen_time=None,
                       notification=None, now=None):
    device = Device.query.filter(
        func.lower(Device.device_uuid) == device_identifier.lower(), Device.user_id == user_id
    ).first()
    if device is None:
        raise NotFound('device not found')
    # Accessibility exists only on Android, screen time only on iOS
    device.accessibility_permission = _permission(accessibility) if device.platform == 'ANDROID' else None
    device.screen_time_permission = _permission(screen_time) if device.platform == 'IOS' else None
    device.notification_permission = _permission(notification)
    device.last_permission_sync = now
    db.session.flush()
    return device
