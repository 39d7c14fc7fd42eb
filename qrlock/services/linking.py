"""Identity linking from verified CHILD_REGISTRATION / PARENT_LINK payloads.

Child registration is keyed by (parent, nickname): every redemption of a
parent's token for the same child name converges on one child principal,
whichever device scans it and however often.
"""
import logging
from dataclasses import dataclass, field

from sqlalchemy.exc import IntegrityError

from ..models import db, Device, ParentChildRelation, User
from ..schemas import LinkPayload
from .accounts import assign_role, create_user, has_role, mint_session
from .device import find_device, upsert_device
from .errors import Forbidden, MalformedPayload, NotFound, Unauthenticated
from .ids import ids
from .sessions import Principal

log = logging.getLogger(__name__)


@dataclass
class LinkResult:
    kind: str
    principal_id: str
    parent_id: str
    parent_name: str | None = None
    child_name: str | None = None
    child_ids: list = field(default_factory=list)
    transferred: bool = False
    session: dict | None = None

    def to_dict(self) -> dict:
        body = {
            'type': self.kind,
            'principalId': self.principal_id,
            'parentId': self.parent_id,
            'parentName': self.parent_name,
            'childName': self.child_name,
            'childIds': self.child_ids,
            'transferred': self.transferred,
        }
        if self.session:
            body.update(self.session)
        return body


def _issuer(payload: LinkPayload) -> User:
    issuer = db.session.get(User, payload.issuerId)
    if issuer is None:
        raise NotFound('issuer not found')
    return issuer


def _scanning_child(principal, device_identifier) -> str:
    """The principal redeeming a child registration.

    An unauthenticated scanner is identified by its device: a device already
    owned by a child keeps that child, an unknown device gets a new anonymous
    child. A device owned by anyone else is never taken over without a session.
    """
    if principal is not None:
        return principal.user_id
    if not device_identifier:
        raise MalformedPayload('deviceId is required')
    device = find_device(device_identifier)
    if device is not None:
        if has_role(device.user_id, 'CHILD'):
            return device.user_id
        log.warning('unauthenticated child registration from device %s owned by non-child %s',
                    device.id, device.user_id)
        raise Forbidden('device belongs to another account; sign in to register it')
    child = create_user('ANONYMOUS')
    assign_role(child.id, 'CHILD')
    upsert_device(child.id, device_identifier)
    log.info('created anonymous child %s for device %s', child.id, device_identifier)
    return child.id


def transfer_devices(from_user_id: str, to_user_id: str):
    """Move every device of ``from_user_id`` to ``to_user_id``; the target's
    previously owned devices are retired."""
    for d in Device.query.filter_by(user_id=to_user_id).all():
        d.is_active = False
    for d in Device.query.filter_by(user_id=from_user_id).all():
        d.user_id = to_user_id
        d.is_active = True
    db.session.flush()


def _backfill(child: User, payload: LinkPayload):
    if payload.birthYear is not None and child.birth_year is None:
        child.birth_year = payload.birthYear
    if payload.phone and not child.phone_number:
        child.phone_number = payload.phone


def _by_nickname(parent_id, nickname):
    return ParentChildRelation.query.filter_by(parent_user_id=parent_id, nickname=nickname).first()


def _insert_edge(parent_id, child_id, nickname, is_primary=False) -> bool:
    """Insert one parent->child edge; ``False`` when a unique constraint
    says it (or its nickname) already exists."""
    try:
        with db.session.begin_nested():
            db.session.add(ParentChildRelation(id=ids().new_id(), parent_user_id=parent_id,
                                               child_user_id=child_id, nickname=nickname,
                                               is_primary=is_primary))
        return True
    except IntegrityError:
        return False


def _register_child(principal, payload: LinkPayload, device_identifier) -> LinkResult:
    if not payload.issuerName:
        raise MalformedPayload('child registration without a child name')
    issuer = _issuer(payload)
    child_id = _scanning_child(principal, device_identifier)
    if child_id == issuer.id:
        raise MalformedPayload('cannot register yourself as your own child')
    nickname = payload.issuerName
    result = LinkResult(kind=payload.type, principal_id=child_id, parent_id=issuer.id,
                        parent_name=issuer.display_name, child_name=nickname)

    existing = _by_nickname(issuer.id, nickname)
    if existing is None:
        already = ParentChildRelation.query.filter_by(parent_user_id=issuer.id, child_user_id=child_id).first()
        if already is None:
            first_parent = ParentChildRelation.query.filter_by(child_user_id=child_id).first() is None
            if _insert_edge(issuer.id, child_id, nickname, is_primary=first_parent):
                assign_role(issuer.id, 'PARENT', 'CHILD', child_id)
                _backfill(db.session.get(User, child_id), payload)
                log.info('linked child %s to parent %s', child_id, issuer.id)
            else:
                # Another redemption created the (parent, nickname) edge first
                existing = _by_nickname(issuer.id, nickname)

    if existing is not None and existing.child_user_id != child_id:
        log.info('re-registration: moving devices of %s to child %s', child_id, existing.child_user_id)
        transfer_devices(child_id, existing.child_user_id)
        child_id = existing.child_user_id
        result.transferred = True

    result.principal_id = child_id
    result.child_ids = [child_id]
    if principal is None or result.transferred:
        result.session = mint_session(child_id, 'CHILD')
    return result


def _link_parent(principal, payload: LinkPayload) -> LinkResult:
    if principal is None:
        raise Unauthenticated('parent link requires sign-in')
    issuer = _issuer(payload)
    result = LinkResult(kind=payload.type, principal_id=principal.user_id, parent_id=issuer.id,
                        parent_name=issuer.display_name)
    if principal.user_id == issuer.id:
        return result

    for edge in ParentChildRelation.query.filter_by(parent_user_id=issuer.id).all():
        child_id = edge.child_user_id
        if child_id == principal.user_id:
            continue
        result.child_ids.append(child_id)
        if ParentChildRelation.query.filter_by(parent_user_id=principal.user_id, child_user_id=child_id).first():
            continue
        nickname = edge.nickname
        if nickname is not None and _by_nickname(principal.user_id, nickname) is not None:
            nickname = None
        if _insert_edge(principal.user_id, child_id, nickname):
            assign_role(principal.user_id, 'PARENT', 'CHILD', child_id)
            log.info('parent %s now shares child %s with %s', principal.user_id, child_id, issuer.id)
    db.session.flush()
    return result


def resolve_link(principal: Principal | None, payload: LinkPayload, device_identifier=None) -> LinkResult:
    """Apply a verified link payload. Runs in the caller's unit of work."""
    if payload.type == 'CHILD_REGISTRATION':
        return _register_child(principal, payload, device_identifier)
    return _link_parent(principal, payload)
