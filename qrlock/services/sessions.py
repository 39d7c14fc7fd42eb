"""Session bearer tokens (access/refresh JWTs).

Signed with ``JWT_SECRET``, a different key from the QR signer, so a leak in
one trust domain does not let an attacker mint tokens in the other.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import jwt
from flask import current_app, request

from .errors import Unauthenticated

log = logging.getLogger(__name__)

ACCESS = 'access'
REFRESH = 'refresh'


@dataclass(frozen=True)
class Principal:
    user_id: str
    role: str | None


class SessionTokens:
    def __init__(self, secret: str, alg: str = 'HS256', access_ttl: int = 3600, refresh_ttl: int = 7 * 86400):
        self.secret = secret
        self.alg = alg
        self.access_ttl = timedelta(seconds=access_ttl)
        self.refresh_ttl = timedelta(seconds=refresh_ttl)

    def _encode(self, claims: dict, ttl: timedelta) -> str:
        now = datetime.now(timezone.utc)
        payload = {**claims, 'iat': now, 'exp': now + ttl}
        return jwt.encode(payload, self.secret, algorithm=self.alg)

    def issue_access(self, user_id: str, role: str) -> str:
        return self._encode({'userId': user_id, 'role': role, 'type': ACCESS}, self.access_ttl)

    def issue_refresh(self, user_id: str) -> str:
        return self._encode({'userId': user_id, 'type': REFRESH}, self.refresh_ttl)

    def issue_pair(self, user_id: str, role: str) -> dict:
        return {'accessToken': self.issue_access(user_id, role), 'refreshToken': self.issue_refresh(user_id)}

    def verify(self, token, expected_type: str):
        """Return the claims, or ``None`` when the token is invalid, expired,
        or of another type than ``expected_type``."""
        if not token or not isinstance(token, str):
            return None
        try:
            claims = jwt.decode(token, self.secret, algorithms=[self.alg])
        except jwt.ExpiredSignatureError:
            log.info('session token expired')
            return None
        except jwt.InvalidTokenError:
            log.info('session token rejected')
            return None
        if claims.get('type') != expected_type or not claims.get('userId'):
            return None
        return claims


def sessions() -> SessionTokens:
    return current_app.extensions['qrlock.sessions']


def current_principal():
    """Principal from the ``Authorization: Bearer`` header, or ``None``."""
    auth = request.headers.get('Authorization', '')
    if not auth.startswith('Bearer '):
        return None
    claims = sessions().verify(auth[len('Bearer '):].strip(), ACCESS)
    if claims is None:
        return None
    return Principal(user_id=claims['userId'], role=claims.get('role'))


def require_principal() -> Principal:
    principal = current_principal()
    if principal is None:
        raise Unauthenticated()
    return principal
