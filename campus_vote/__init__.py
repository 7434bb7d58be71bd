# campus_vote/__init__.py

from flask import Flask, jsonify, request
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from werkzeug.middleware.proxy_fix import ProxyFix
from flask_jwt_extended import JWTManager
from logging.config import dictConfig
import os


# Extensions are created unbound and attached to each app in create_app()
db = SQLAlchemy()  # Database ORM
migrate = Migrate()  # DB migrations
jwt = JWTManager()
limiter = Limiter(key_func=get_remote_address, default_limits=["10000/hour"])

MIGRATIONS_DIR = os.path.join(os.path.dirname(__file__), 'database', 'migrations')


def configure_logging(level):
    dictConfig({
        'version': 1,
        'disable_existing_loggers': False,
        'formatters': {
            'default': {
                'format': '%(asctime)s %(levelname)s [%(name)s] %(message)s',
            },
        },
        'handlers': {
            'console': {
                'class': 'logging.StreamHandler',
                'formatter': 'default',
            },
        },
        'root': {'level': level, 'handlers': ['console']},
    })


@jwt.expired_token_loader
def expired_token_callback(jwt_header, jwt_payload):
    return jsonify({"error": "Your session has expired, please sign in again."}), 401


@jwt.invalid_token_loader
def invalid_token_callback(reason):
    return jsonify({"error": "Invalid authentication token."}), 401


@jwt.unauthorized_loader
def missing_token_callback(reason):
    return jsonify({"error": "Authentication required."}), 401


def create_app(config_object=None, **overrides):
    """Build the Flask application.

    ``config_object`` is an import path or class understood by
    ``app.config.from_object``; keyword overrides are applied last so tests
    can point the app at a throwaway database.
    """
    app = Flask(__name__)
    app.config.from_object(config_object or os.environ.get(
        'CAMPUS_VOTE_CONFIG', 'campus_vote.config.DevelopmentConfig'))
    app.config.update(overrides)

    configure_logging(app.config.get('LOG_LEVEL', 'INFO'))

    # Fix proxy headers for HTTPS
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1)

    db.init_app(app)
    migrate.init_app(app, db, directory=MIGRATIONS_DIR)
    jwt.init_app(app)
    limiter.init_app(app)

    # Ensure model modules are imported so SQLAlchemy metadata is populated
    # for Flask-Migrate / Alembic.
    from campus_vote.database import models  # noqa: F401
    from campus_vote.database.models import enable_sqlite_foreign_keys
    from campus_vote.routes import api, register_error_handlers
    from campus_vote.operations.health_monitor import health
    from campus_vote.cli import register_commands
    from campus_vote.voting.events import VoteEventBus

    with app.app_context():
        enable_sqlite_foreign_keys(db.engine)

    app.extensions['vote_events'] = VoteEventBus(
        max_queue_size=app.config.get('RESULTS_STREAM_QUEUE_SIZE', 100))

    app.register_blueprint(api)
    app.register_blueprint(health)
    register_error_handlers(app)
    register_commands(app)

    @app.after_request
    def log_request(response):
        if response.status_code >= 400:
            app.logger.info("%s %s -> %s", request.method, request.path, response.status_code)
        return response

    return app
