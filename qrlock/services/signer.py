"""HMAC-SHA256 signatures for QR tokens.

Only a fixed, ordered field tuple is ever signed, never a request body:
stateful tokens sign ``"{qr_id}:{exp}"`` and link tokens sign the compact
JSON of :data:`LINK_FIELDS` in that order, skipping absent fields.
"""
import hashlib
import hmac
import json

LINK_FIELDS = ('type', 'issuerId', 'issuerName', 'birthYear', 'phone', 'qrId', 'exp')


def stateful_message(qr_id: str, exp: int) -> str:
    return f"{qr_id}:{exp}"


def link_message(payload: dict) -> str:
    canonical = {k: payload[k] for k in LINK_FIELDS if payload.get(k) is not None}
    return json.dumps(canonical, separators=(',', ':'), ensure_ascii=False)


class TokenSigner:
    def __init__(self, secret: str):
        self._key = secret.encode()

    def sign(self, message: str) -> str:
        return hmac.new(self._key, message.encode(), hashlib.sha256).hexdigest()

    def verify(self, message: str, signature) -> bool:
        if not isinstance(signature, str) or not signature:
            return False
        return hmac.compare_digest(self.sign(message), signature)

    def sign_stateful(self, qr_id: str, exp: int) -> str:
        return self.sign(stateful_message(qr_id, exp))

    def verify_stateful(self, qr_id: str, exp: int, signature) -> bool:
        return self.verify(stateful_message(qr_id, exp), signature)

    def sign_link(self, payload: dict) -> str:
        return self.sign(link_message(payload))

    def verify_link(self, payload: dict, signature) -> bool:
        return self.verify(link_message(payload), signature)
