from __future__ import annotations

import json
from typing import Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from .services.errors import MalformedPayload

PURPOSES = ('LOCK_ONLY', 'ATTENDANCE_ONLY', 'LOCK_AND_ATTENDANCE')
LINK_TYPES = ('CHILD_REGISTRATION', 'PARENT_LINK')


class _Schema(BaseModel):
    model_config = ConfigDict(extra='ignore', populate_by_name=True)


def parse(model, data):
    """Validate ``data`` against ``model``; any failure is MALFORMED."""
    if data is None:
        data = {}
    try:
        return model.model_validate(data)
    except ValidationError as e:
        first = e.errors()[0]
        where = '.'.join(str(p) for p in first.get('loc', ())) or 'body'
        raise MalformedPayload(f"invalid {where}: {first.get('msg')}")


def load_payload(raw) -> dict:
    if not isinstance(raw, str):
        raise MalformedPayload('qrPayload must be a JSON string')
    try:
        obj = json.loads(raw)
    except ValueError:
        raise MalformedPayload('QR payload is not valid JSON')
    if not isinstance(obj, dict):
        raise MalformedPayload('QR payload must be a JSON object')
    return obj


# ---- QR payloads (wire format) ----

class StatefulPayload(_Schema):
    qr_id: str = Field(min_length=1, validation_alias=AliasChoices('qr_id', 'qrId'))
    exp: int
    sig: str = Field(min_length=1)


class LinkPayload(_Schema):
    type: Literal['CHILD_REGISTRATION', 'PARENT_LINK']
    issuerId: str = Field(min_length=1)
    issuerName: Optional[str] = None
    birthYear: Optional[int] = None
    phone: Optional[str] = None
    qrId: str = Field(min_length=1)
    exp: int
    sig: str = Field(min_length=1)

    def signed_fields(self) -> dict:
        return self.model_dump(exclude={'sig'}, exclude_none=True)


# ---- request bodies ----

class IssueRequest(_Schema):
    purpose: Literal['LOCK_ONLY', 'ATTENDANCE_ONLY', 'LOCK_AND_ATTENDANCE'] = 'LOCK_ONLY'
    preset_id: Optional[str] = None
    title: Optional[str] = None
    lock_type: Optional[str] = None
    duration_minutes: Optional[int] = Field(default=None, gt=0)
    allowed_apps: Optional[list[str]] = None
    blocked_apps: Optional[list[str]] = None
    allowed_categories: Optional[list[str]] = None
    blocked_categories: Optional[list[str]] = None
    time_window: Optional[str] = None
    days: Optional[list[str]] = None
    schedule_mode: Optional[str] = None
    max_uses: Optional[int] = Field(default=None, ge=1)
    one_device_once: bool = False
    target_type: Optional[Literal['DEVICE', 'STUDENT', 'CLASS']] = None
    target_id: Optional[str] = None
    class_id: Optional[str] = None

    def lock_overrides(self) -> dict:
        fields = ('title', 'lock_type', 'duration_minutes', 'allowed_apps', 'blocked_apps',
                  'allowed_categories', 'blocked_categories')
        return {f: getattr(self, f) for f in fields if getattr(self, f) is not None}


class ScanRequest(_Schema):
    qrPayload: str
    deviceId: Optional[str] = None


class RegistrationQrRequest(_Schema):
    type: Literal['CHILD', 'PARENT']
    name: Optional[str] = None
    birthYear: Optional[int] = Field(default=None, ge=1900, le=2100)
    phone: Optional[str] = None


class LinkRequest(_Schema):
    payload: str
    deviceId: Optional[str] = None


class DeviceData(_Schema):
    deviceId: str = Field(min_length=1)
    platform: Optional[str] = None
    model: Optional[str] = None
    osVersion: Optional[str] = None
    appVersion: Optional[str] = None


class AnonymousRequest(_Schema):
    deviceData: Optional[DeviceData] = None


class LoginRequest(_Schema):
    provider: Literal['APPLE', 'KAKAO']
    subject: str = Field(min_length=1)


class RegisterRequest(LoginRequest):
    name: str = Field(min_length=1)
    phone: str = Field(min_length=1)
    email: Optional[str] = None
    role: Literal['PARENT', 'TEACHER', 'STUDENT', 'CHILD'] = 'PARENT'


class RefreshRequest(_Schema):
    refreshToken: str = Field(min_length=1)


class PinRequest(_Schema):
    pin: Optional[str] = None


class DeviceRegisterRequest(_Schema):
    device_uuid: str = Field(min_length=1)
    platform: Optional[str] = None
    device_model: Optional[str] = None
    os_version: Optional[str] = None
    app_version: Optional[str] = None


class PermissionsRequest(_Schema):
    accessibility: Optional[bool] = None
    screenTime: Optional[bool] = None
    notification: Optional[bool] = None

    @field_validator('accessibility', 'screenTime', 'notification', mode='before')
    @classmethod
    def _strict_bool(cls, v):
        if v is not None and not isinstance(v, bool):
            raise ValueError('must be true, false or null')
        return v
