from flask import Blueprint, jsonify, request

from .models import db
from .schemas import DeviceRegisterRequest, PermissionsRequest, parse
from .services.device import update_permissions, upsert_device
from .services.ids import clock
from .services.sessions import require_principal

bp = Blueprint('devices', __name__)


@bp.post('/register')
def register():
    principal = require_principal()
    req = parse(DeviceRegisterRequest, request.get_json(silent=True))
    device = upsert_device(principal.user_id, req.device_uuid, platform=req.platform,
                           device_model=req.device_model, os_version=req.os_version,
                           app_version=req.app_version)
    db.session.commit()
    return jsonify({'success': True, 'device': device.to_dict()})


@bp.patch('/<device_id>/permissions')
def permissions(device_id: str):
    principal = require_principal()
    req = parse(PermissionsRequest, request.get_json(silent=True))
    device = update_permissions(principal.user_id, device_id, accessibility=req.accessibility,
                                screen_time=req.screenTime, notification=req.notification,
                                now=clock().now())
    db.session.commit()
    return jsonify({'success': True, 'device': device.to_dict()})
