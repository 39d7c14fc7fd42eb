import os
import sys
import json
import requests
import qrcode

BASE_URL = os.environ.get('BASE_URL', 'http://localhost:5000')
ACCESS_TOKEN = os.environ.get('ACCESS_TOKEN')

if not ACCESS_TOKEN:
    print('Missing ACCESS_TOKEN in env (see scripts/seed.py)')
    sys.exit(1)

body = {
    'purpose': os.environ.get('QR_PURPOSE', 'LOCK_ONLY'),
    'preset_id': os.environ.get('QR_PRESET_ID', 'preset-study'),
}
if os.environ.get('QR_TIME_WINDOW'):
    body['time_window'] = os.environ['QR_TIME_WINDOW']
if os.environ.get('QR_CLASS_ID'):
    body['class_id'] = os.environ['QR_CLASS_ID']
if os.environ.get('QR_MAX_USES'):
    body['max_uses'] = int(os.environ['QR_MAX_USES'])

r = requests.post(f"{BASE_URL}/qr/generate", headers={'Authorization': f'Bearer {ACCESS_TOKEN}'}, json=body)
if r.status_code != 200:
    print('Error:', r.status_code, r.text)
    sys.exit(1)
res = r.json()
print('qr_id:', res['qr_id'])
print('payload:', res['payload'])

out = os.environ.get('OUT', 'qr.png')
qrcode.make(res['payload']).save(out)
print('PNG saved to', out)
if os.environ.get('VERBOSE') == '1':
    print(json.dumps(res, indent=2))
