import os, sys

import qrcode

# Usage: python scripts/make_qr.py '<payload>' [out.png]
# Without an argument the payload is read from QR_PAYLOAD or stdin.


def get_payload():
    if len(sys.argv) >= 2 and sys.argv[1].strip():
        return sys.argv[1].strip()
    env_payload = os.environ.get("QR_PAYLOAD")
    if env_payload:
        return env_payload.strip()
    data = sys.stdin.read().strip()
    if not data:
        print("No payload given (argument, QR_PAYLOAD or stdin)")
        sys.exit(1)
    return data


def main():
    payload = get_payload()
    out = sys.argv[2] if len(sys.argv) >= 3 else "qr.png"
    qrcode.make(payload).save(out)
    print("QR written to", out)


if __name__ == "__main__":
    main()
