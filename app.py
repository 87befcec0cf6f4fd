from flask import Flask, jsonify, request
from pydantic import ValidationError as PydanticValidationError
from werkzeug.exceptions import HTTPException
import logging
import os

from auth import init_auth
from config import Settings
from database import engine_options, init_db
from errors import ServiceError
from models import db
from routes import main_bp
from schemas import format_validation_errors

LOG_FORMAT = '%(asctime)s %(levelname)s %(name)s: %(message)s'


def configure_logging(level='INFO'):
    logging.basicConfig(level=getattr(logging, str(level).upper(), logging.INFO), format=LOG_FORMAT)


def register_error_handlers(app):
    @app.errorhandler(ServiceError)
    def _service_error(exc):
        if exc.status_code >= 500:
            logging.error(f'[API] {request.method} {request.path} failed: {exc.message}')
        return jsonify(exc.to_dict()), exc.status_code

    @app.errorhandler(PydanticValidationError)
    def _schema_error(exc):
        return jsonify({'message': 'Invalid request body', 'errors': format_validation_errors(exc)}), 400

    @app.errorhandler(HTTPException)
    def _http_error(exc):
        return jsonify({'message': exc.description or exc.name}), exc.code

    @app.errorhandler(Exception)
    def _unhandled(exc):
        logging.exception(f'[API] Unhandled error on {request.method} {request.path}')
        try:
            db.session.rollback()
        except Exception:
            logging.exception('[DB] Rollback after unhandled error failed')
        return jsonify({'message': 'Internal server error'}), 500


def create_app(settings=None):
    """Build the Flask app for the given settings (environment by default)."""
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)

    app = Flask(__name__, static_url_path='/static')
    app.config['SETTINGS'] = settings
    app.config['SECRET_KEY'] = settings.secret_key
    app.config['SQLALCHEMY_DATABASE_URI'] = settings.database_url
    app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False
    app.config['SQLALCHEMY_ENGINE_OPTIONS'] = engine_options(settings.database_url)
    app.config['MAX_CONTENT_LENGTH'] = settings.max_upload_mb * 1024 * 1024
    app.config['SESSION_COOKIE_HTTPONLY'] = True
    app.config['SESSION_COOKIE_SAMESITE'] = 'Strict'
    app.config['SESSION_COOKIE_SECURE'] = settings.is_production

    if settings.is_production and settings.secret_key == 'change-this-secret':
        logging.warning('[CONFIG] SECRET_KEY is not set; session cookies use the default key')
    logging.info(f"[CONFIG] environment={settings.environment} domain={settings.app_domain} "
                 f"sessions={settings.session_backend}")

    db.init_app(app)
    init_auth(app, settings)
    register_error_handlers(app)
    app.register_blueprint(main_bp)
    init_db(app, db)
    return app


if __name__ == '__main__':
    app = create_app()
    port = int(os.environ.get('PORT', 5000))
    app.run(host='127.0.0.1', port=port, debug=os.environ.get('FLASK_DEBUG', '0') in ('1', 'true', 'True'))
