from flask import Flask
from werkzeug.exceptions import HTTPException
from flask_jwt_extended import JWTManager
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool
from sqlalchemy.orm import sessionmaker, scoped_session
from dotenv import load_dotenv
from typing import Optional, Dict, Any
import os

from .errors import StorefrontError
from .services.change_feed import ChangeFeed

load_dotenv()

db_engine = None
SessionLocal = None
jwt = JWTManager()
change_feed = ChangeFeed()

AUDITED_TABLES = ('user_roles', 'vip_members', 'vip_tiers', 'site_settings')


def _error_payload(status: int, title: str, detail: str):
    return {'error': {'status': status, 'title': title, 'detail': detail}}, status


def create_app(config: Optional[Dict[str, Any]] = None):
    global db_engine, SessionLocal
    app = Flask(__name__)

    app.config['JWT_SECRET_KEY'] = os.getenv('JWT_SECRET_KEY', 'dev-secret')
    app.config['DATABASE_URL'] = os.getenv('DATABASE_URL', 'sqlite:///dev.db')
    app.config['BOOTSTRAP_STRATEGY'] = os.getenv('BOOTSTRAP_STRATEGY', 'best_effort')
    app.config['DEFAULT_LOCALE'] = os.getenv('DEFAULT_LOCALE', 'en')

    if config:
        # allow tests or callers to override default config values
        app.config.update(config)

    from .services.stores import BOOTSTRAP_STRATEGIES
    if app.config['BOOTSTRAP_STRATEGY'] not in BOOTSTRAP_STRATEGIES:
        raise ValueError(f"BOOTSTRAP_STRATEGY must be one of {BOOTSTRAP_STRATEGIES}")

    # Database
    db_url = app.config['DATABASE_URL']
    if db_url.endswith(':memory:'):
        # Ensure a single shared in-memory SQLite database across all sessions
        db_engine = create_engine(
            db_url,
            echo=False,
            future=True,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        db_engine = create_engine(db_url, echo=False, future=True)
    SessionLocal = scoped_session(sessionmaker(bind=db_engine, expire_on_commit=False, autoflush=False))

    jwt.init_app(app)

    # Audit trail for every published change
    from .services.audit import record_change
    change_feed.clear()
    for table in AUDITED_TABLES:
        change_feed.subscribe(table, record_change)

    from .routes.iam import iam_bp
    from .routes.vip import vip_bp
    from .routes.settings import settings_bp
    from .routes.cart import cart_bp
    app.register_blueprint(iam_bp, url_prefix='/iam')
    app.register_blueprint(vip_bp, url_prefix='/vip')
    app.register_blueprint(settings_bp, url_prefix='/settings')
    app.register_blueprint(cart_bp, url_prefix='/cart')

    @app.route('/healthz')
    def health():
        return {'status': 'ok'}

    # Unified error handler producing standardized JSON shape
    @app.errorhandler(Exception)
    def handle_errors(e):  # type: ignore
        if isinstance(e, HTTPException):
            return _error_payload(e.code, e.name, e.description)
        if isinstance(e, StorefrontError):
            if e.status >= 500:
                app.logger.error('%s: %s', e.title, e.detail)
            return _error_payload(e.status, e.title, e.detail)
        # Unhandled exception
        app.logger.exception('Unhandled exception')
        return _error_payload(500, 'Internal Server Error', 'Unexpected error')

    return app


def get_db():
    return SessionLocal()
