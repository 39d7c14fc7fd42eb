#!/usr/bin/env python3
import os, sys, json, time, pathlib

ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from qrlock.schemas import LINK_TYPES
from qrlock.services.signer import TokenSigner

# Usage: QR_SECRET_KEY=... python scripts/check_payload.py '<scanned payload JSON>'
# Validates the signature and expiry of a scanned payload without touching the database.


def err(msg):
    print(f"ERROR: {msg}")
    sys.exit(1)


if len(sys.argv) < 2:
    err("Usage: check_payload.py '<payload JSON>'")

secret = os.environ.get('QR_SECRET_KEY')
if not secret:
    err("QR_SECRET_KEY is not set")

try:
    obj = json.loads(sys.argv[1])
except ValueError as e:
    err(f"json: {e}")
if not isinstance(obj, dict):
    err("payload is not a JSON object")

signer = TokenSigner(secret)
sig = obj.get('sig')
if obj.get('type') in LINK_TYPES:
    fields = {k: v for k, v in obj.items() if k != 'sig'}
    ok = signer.verify_link(fields, sig)
    token_id = obj.get('qrId')
else:
    token_id = obj.get('qr_id') or obj.get('qrId')
    try:
        ok = signer.verify_stateful(token_id, int(obj.get('exp')), sig)
    except (TypeError, ValueError):
        err("exp is not an integer")

exp = int(obj.get('exp') or 0)
print({
    'type': obj.get('type', 'STATEFUL'),
    'qr_id': token_id,
    'signature_ok': ok,
    'exp': exp,
    'expired': exp < int(time.time()),
})
