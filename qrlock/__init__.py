from flask import Flask, jsonify, request
from flask_migrate import Migrate
from werkzeug.exceptions import HTTPException
from werkzeug.middleware.proxy_fix import ProxyFix

from .config import Config
from .models import db
from .services.errors import QrLockError
from .services.ids import SystemClock, UuidGenerator
from .services.sessions import SessionTokens
from .services.signer import TokenSigner


def _check_secrets(app):
    qr_key, jwt_key = app.config['QR_SECRET_KEY'], app.config['JWT_SECRET']
    if qr_key == jwt_key:
        raise RuntimeError('QR_SECRET_KEY and JWT_SECRET must differ')
    for name, value in (('QR_SECRET_KEY', qr_key), ('JWT_SECRET', jwt_key)):
        if len(value.encode()) < 32:
            app.logger.warning('%s is shorter than 256 bits', name)


def _register_error_handlers(app):
    @app.errorhandler(QrLockError)
    def qrlock_error(e):
        db.session.rollback()
        app.logger.info('%s %s -> %s: %s', request.method, request.path, type(e).__name__, e.message)
        return jsonify({'success': False, 'message': e.message}), e.status_code

    @app.errorhandler(404)
    def not_found(e):
        return jsonify({'success': False, 'message': 'not found'}), 404

    @app.errorhandler(HTTPException)
    def http_error(e):
        return jsonify({'success': False, 'message': e.description}), e.code

    @app.errorhandler(Exception)
    def unexpected_error(e):
        db.session.rollback()
        app.logger.exception('unhandled error on %s %s', request.method, request.path)
        return jsonify({'success': False, 'message': 'internal error'}), 500


def create_app(overrides=None, clock=None, ids=None):
    app = Flask(__name__)
    app.config.from_object(Config())
    if overrides:
        app.config.update(overrides)
    app.logger.setLevel(app.config['LOG_LEVEL'])
    _check_secrets(app)

    db.init_app(app)
    Migrate(app, db)
    # Trust reverse proxy headers (Render/Heroku)
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_prefix=1)

    # Secrets are read once here and stay read-only for the process lifetime
    app.extensions['qrlock.signer'] = TokenSigner(app.config['QR_SECRET_KEY'])
    app.extensions['qrlock.sessions'] = SessionTokens(
        app.config['JWT_SECRET'],
        alg=app.config['JWT_ALG'],
        access_ttl=app.config['ACCESS_TTL_SECONDS'],
        refresh_ttl=app.config['REFRESH_TTL_SECONDS'],
    )
    app.extensions['qrlock.ids'] = ids or UuidGenerator()
    app.extensions['qrlock.clock'] = clock or SystemClock()

    with app.app_context():
        db.create_all()

    from .routes_auth import bp as auth_bp
    from .routes_devices import bp as devices_bp
    from .routes_qr import bp as qr_bp
    from .routes_family import bp as family_bp
    from .routes_attendance import bp as attendance_bp
    app.register_blueprint(auth_bp, url_prefix='/auth')
    app.register_blueprint(devices_bp, url_prefix='/devices')
    app.register_blueprint(qr_bp, url_prefix='/qr')
    app.register_blueprint(family_bp, url_prefix='/parent-child')
    app.register_blueprint(attendance_bp, url_prefix='/attendance')
    _register_error_handlers(app)

    @app.get('/health')
    def health():
        return {'ok': True}

    return app
