#!/usr/bin/env python3
import os, sys, json, jwt

# Usage: python scripts/check_jwt.py <JWT> [SECRET|-]
# If '-' or nothing is passed, JWT_SECRET from the environment is used.

if len(sys.argv) < 2:
    print("Usage: check_jwt.py <JWT> [SECRET|-]")
    sys.exit(1)

raw = sys.argv[1].strip()
secret = sys.argv[2].strip() if len(sys.argv) >= 3 and sys.argv[2].strip() != '-' else os.environ.get('JWT_SECRET')
if not secret:
    print("ERROR: no secret available (argument or env JWT_SECRET)")
    sys.exit(1)

try:
    payload = jwt.decode(raw, secret, algorithms=[os.environ.get('JWT_ALG', 'HS256')])
except jwt.InvalidTokenError as e:
    print("ERROR:", e)
    sys.exit(1)

print(json.dumps(payload, indent=2, sort_keys=True))
