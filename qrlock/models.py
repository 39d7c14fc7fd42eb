from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import func

db = SQLAlchemy()

# Primary keys are client-visible UUID strings supplied by the IdGenerator
# registered on the app (see qrlock.services.ids).


class User(db.Model):
    __tablename__ = 'users'
    id = db.Column(db.String(36), primary_key=True)
    auth_provider = db.Column(db.String(16), nullable=False)  # APPLE|KAKAO|ANONYMOUS
    provider_subject = db.Column(db.String(255), index=True)
    email = db.Column(db.String(255))
    display_name = db.Column(db.String(255))
    phone_number = db.Column(db.String(32), index=True)
    birth_year = db.Column(db.Integer)
    pin_hash = db.Column(db.String(255))
    created_at = db.Column(db.DateTime(timezone=True), server_default=func.now())
    updated_at = db.Column(db.DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        db.UniqueConstraint('auth_provider', 'provider_subject', name='uq_user_provider_subject'),
    )

    def is_complete(self) -> bool:
        return bool(self.phone_number and self.display_name)


class UserRole(db.Model):
    __tablename__ = 'user_roles'
    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    user_id = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=False, index=True)
    role = db.Column(db.String(16), nullable=False)  # PARENT|CHILD|TEACHER|STUDENT
    scope_type = db.Column(db.String(16), nullable=False, default='GLOBAL')  # GLOBAL|ORG|CHILD
    # '' stands for the global scope so the unique constraint also covers it
    scope_id = db.Column(db.String(36), nullable=False, default='')
    assigned_at = db.Column(db.DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        db.UniqueConstraint('user_id', 'role', 'scope_id', name='uq_user_role_scope'),
    )


class ParentChildRelation(db.Model):
    __tablename__ = 'parent_child_relations'
    id = db.Column(db.String(36), primary_key=True)
    parent_user_id = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=False, index=True)
    child_user_id = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=False, index=True)
    nickname = db.Column(db.String(255))
    is_primary = db.Column(db.Boolean, default=False)
    created_at = db.Column(db.DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        db.UniqueConstraint('parent_user_id', 'child_user_id', name='uq_parent_child'),
        db.UniqueConstraint('parent_user_id', 'nickname', name='uq_parent_nickname'),
    )


class Device(db.Model):
    __tablename__ = 'devices'
    id = db.Column(db.String(36), primary_key=True)
    user_id = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=False, index=True)
    device_uuid = db.Column(db.String(64), nullable=False, unique=True)
    platform = db.Column(db.String(16))  # IOS|ANDROID
    device_model = db.Column(db.String(128))
    os_version = db.Column(db.String(64))
    app_version = db.Column(db.String(64))
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    # GRANTED|DENIED|NOT_DETERMINED; accessibility is Android-only, screen time iOS-only
    accessibility_permission = db.Column(db.String(16))
    screen_time_permission = db.Column(db.String(16))
    notification_permission = db.Column(db.String(16))
    last_permission_sync = db.Column(db.DateTime(timezone=True))
    created_at = db.Column(db.DateTime(timezone=True), server_default=func.now())
    updated_at = db.Column(db.DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def to_dict(self):
        return {
            'id': self.id,
            'userId': self.user_id,
            'deviceUuid': self.device_uuid,
            'platform': self.platform,
            'deviceModel': self.device_model,
            'osVersion': self.os_version,
            'appVersion': self.app_version,
            'isActive': self.is_active,
            'accessibilityPermission': self.accessibility_permission,
            'screenTimePermission': self.screen_time_permission,
            'notificationPermission': self.notification_permission,
        }


class PresetPolicy(db.Model):
    __tablename__ = 'preset_policies'
    id = db.Column(db.String(36), primary_key=True)
    scope = db.Column(db.String(16), nullable=False, default='USER')  # SYSTEM|USER
    owner_id = db.Column(db.String(36), db.ForeignKey('users.id'))
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text)
    purpose = db.Column(db.String(32))
    lock_type = db.Column(db.String(32), default='FULL')
    allowed_apps = db.Column(db.JSON)
    blocked_apps = db.Column(db.JSON)
    allowed_categories = db.Column(db.JSON)
    blocked_categories = db.Column(db.JSON)
    default_duration_minutes = db.Column(db.Integer)
    time_window = db.Column(db.String(16))
    days = db.Column(db.JSON)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), server_default=func.now())


class LockPolicy(db.Model):
    """Immutable once written; tokens and lock records reference it by id."""
    __tablename__ = 'lock_policies'
    id = db.Column(db.String(36), primary_key=True)
    preset_id = db.Column(db.String(36), db.ForeignKey('preset_policies.id'))
    title = db.Column(db.String(255))
    lock_type = db.Column(db.String(32))
    duration_minutes = db.Column(db.Integer)
    allowed_apps = db.Column(db.JSON)
    blocked_apps = db.Column(db.JSON)
    allowed_categories = db.Column(db.JSON)
    blocked_categories = db.Column(db.JSON)
    time_window = db.Column(db.String(16))
    days = db.Column(db.JSON)
    created_by = db.Column(db.String(36), db.ForeignKey('users.id'))
    created_at = db.Column(db.DateTime(timezone=True), server_default=func.now())

    def to_dict(self):
        return {
            'title': self.title,
            'lockType': self.lock_type,
            'durationMinutes': self.duration_minutes,
            'allowedApps': self.allowed_apps or [],
            'blockedApps': self.blocked_apps or [],
            'allowedCategories': self.allowed_categories or [],
            'blockedCategories': self.blocked_categories or [],
            'timeWindow': self.time_window,
            'days': self.days,
        }


class QrCode(db.Model):
    __tablename__ = 'qr_codes'
    id = db.Column(db.String(36), primary_key=True)
    qr_type = db.Column(db.String(16), nullable=False, default='DYNAMIC')
    purpose = db.Column(db.String(32), nullable=False)  # LOCK_ONLY|ATTENDANCE_ONLY|LOCK_AND_ATTENDANCE
    preset_id = db.Column(db.String(36), db.ForeignKey('preset_policies.id'))
    lock_policy_id = db.Column(db.String(36), db.ForeignKey('lock_policies.id'))
    target_type = db.Column(db.String(16))  # DEVICE|STUDENT|CLASS
    target_id = db.Column(db.String(64))
    schedule_mode = db.Column(db.String(16), default='IMMEDIATE')
    time_window = db.Column(db.String(16))
    days = db.Column(db.JSON)
    max_uses = db.Column(db.Integer)
    use_count = db.Column(db.Integer, nullable=False, default=0)
    one_device_once = db.Column(db.Boolean, nullable=False, default=False)
    expires_at = db.Column(db.BigInteger, nullable=False)  # epoch seconds
    hmac_sig = db.Column(db.String(64), nullable=False)
    status = db.Column(db.String(16), nullable=False, default='ACTIVE')
    created_by = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), server_default=func.now())

    lock_policy = db.relationship('LockPolicy', lazy='joined')

    def to_dict(self):
        return {
            'id': self.id,
            'purpose': self.purpose,
            'presetId': self.preset_id,
            'targetType': self.target_type,
            'targetId': self.target_id,
            'scheduleMode': self.schedule_mode,
            'timeWindow': self.time_window,
            'days': self.days,
            'maxUses': self.max_uses,
            'oneDeviceOnce': self.one_device_once,
            'exp': self.expires_at,
            'status': self.status,
            'lockPolicy': self.lock_policy.to_dict() if self.lock_policy else None,
        }


class DeviceUsage(db.Model):
    """Append-only: one row per successful redemption."""
    __tablename__ = 'qr_device_usage'
    id = db.Column(db.String(36), primary_key=True)
    qr_id = db.Column(db.String(36), db.ForeignKey('qr_codes.id'), nullable=False, index=True)
    user_id = db.Column(db.String(36), db.ForeignKey('users.id'))
    device_id = db.Column(db.String(36), db.ForeignKey('devices.id'), index=True)
    used_at = db.Column(db.DateTime(timezone=True), nullable=False)


class DeviceClaim(db.Model):
    """The single redemption of a one-device-once token by a device."""
    __tablename__ = 'qr_device_claims'
    id = db.Column(db.String(36), primary_key=True)
    qr_id = db.Column(db.String(36), db.ForeignKey('qr_codes.id'), nullable=False)
    device_id = db.Column(db.String(36), db.ForeignKey('devices.id'), nullable=False)
    claimed_at = db.Column(db.DateTime(timezone=True), nullable=False)

    __table_args__ = (
        db.UniqueConstraint('qr_id', 'device_id', name='uq_device_claim_qr_device'),
    )


class Attendance(db.Model):
    __tablename__ = 'attendance'
    id = db.Column(db.String(36), primary_key=True)
    qr_id = db.Column(db.String(36), db.ForeignKey('qr_codes.id'), nullable=False)
    class_id = db.Column(db.String(64), nullable=False, index=True)
    student_id = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=False, index=True)
    device_id = db.Column(db.String(36), db.ForeignKey('devices.id'))
    status = db.Column(db.String(16), nullable=False, default='PRESENT')
    scanned_at = db.Column(db.DateTime(timezone=True), nullable=False)

    __table_args__ = (
        db.UniqueConstraint('qr_id', 'student_id', name='uq_attendance_qr_student'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'qrId': self.qr_id,
            'classId': self.class_id,
            'studentId': self.student_id,
            'deviceId': self.device_id,
            'status': self.status,
            'scannedAt': self.scanned_at.isoformat() if self.scanned_at else None,
        }
