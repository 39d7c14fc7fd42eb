import os

from dotenv import load_dotenv

# .env must be loaded before the Config class body reads the environment
load_dotenv()


def _read_secret_file(name):
    for p in (f'/etc/secrets/{name}', name):
        try:
            with open(p, 'r') as f:
                return f.read().strip()
        except OSError:
            continue
    return None


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY', 'dev')
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL', 'sqlite:///local.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    # Two trust domains: QR HMAC key and session-token key must differ
    QR_SECRET_KEY = os.environ.get('QR_SECRET_KEY')
    JWT_SECRET = os.environ.get('JWT_SECRET')
    JWT_ALG = os.environ.get('JWT_ALG', 'HS256')
    ACCESS_TTL_SECONDS = int(os.environ.get('ACCESS_TTL_SECONDS', '3600'))
    REFRESH_TTL_SECONDS = int(os.environ.get('REFRESH_TTL_SECONDS', str(7 * 86400)))
    POLICY_TOKEN_TTL_SECONDS = int(os.environ.get('POLICY_TOKEN_TTL_SECONDS', '86400'))
    LINK_TOKEN_TTL_SECONDS = int(os.environ.get('LINK_TOKEN_TTL_SECONDS', '3600'))
    SCHEDULE_TIMEZONE = os.environ.get('SCHEDULE_TIMEZONE', 'Asia/Seoul')
    SCHEDULE_LEAD_MINUTES = int(os.environ.get('SCHEDULE_LEAD_MINUTES', '10'))
    REDIS_URL = os.environ.get('REDIS_URL', 'redis://localhost:6379/0')
    USE_REDIS = os.environ.get('USE_REDIS', '1').lower() not in ('0', 'false', 'no')
    SCAN_RATE_LIMIT = int(os.environ.get('SCAN_RATE_LIMIT', '20'))
    SCAN_RATE_WINDOW = int(os.environ.get('SCAN_RATE_WINDOW', '60'))
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')

    def __init__(self):
        # Optional fallbacks to support Secret Files on Render (/etc/secrets)
        if not self.QR_SECRET_KEY:
            self.QR_SECRET_KEY = _read_secret_file('qr_secret_key') or 'dev-qr-secret-change-me-0123456789abcdef'
        if not self.JWT_SECRET:
            self.JWT_SECRET = _read_secret_file('jwt_secret') or 'dev-jwt-secret-change-me-0123456789abcdef'
        if (not self.SECRET_KEY) or self.SECRET_KEY == 'dev':
            self.SECRET_KEY = _read_secret_file('secret_key') or 'dev'
