import logging
import os
from logging.handlers import RotatingFileHandler

import click
from flask import Flask, has_app_context

from .extensions import bcrypt, celery, db, jwt, limiter, migrate

# Setup basic logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s %(levelname)s: %(message)s'
)
logger = logging.getLogger(__name__)


def _load_config(app, config_name):
    from app.config import config, get_config

    config_class = config.get(config_name, config['default']) if config_name else get_config()
    if hasattr(config_class, 'validate'):
        config_class.validate()
    app.config.from_object(config_class)

    window_seconds = max(app.config['RATE_LIMIT_WINDOW_MS'] // 1000, 1)
    app.config['RATELIMIT_DEFAULT'] = f"{app.config['RATE_LIMIT_MAX_REQUESTS']} per {window_seconds} seconds"


def init_celery(app):
    """Configure the shared Celery app from the Flask config."""
    from app.services.email_queue import EMAIL_QUEUE, SEND_EMAIL_TASK

    queue = app.config.get('EMAIL_QUEUE_NAME', EMAIL_QUEUE)
    celery.conf.update(
        broker_url=app.config['CELERY_BROKER_URL'],
        result_backend=app.config['CELERY_RESULT_BACKEND'],
        task_serializer=app.config['CELERY_TASK_SERIALIZER'],
        accept_content=app.config['CELERY_ACCEPT_CONTENT'],
        result_serializer=app.config['CELERY_RESULT_SERIALIZER'],
        timezone=app.config['CELERY_TIMEZONE'],
        enable_utc=app.config['CELERY_ENABLE_UTC'],
        # at-least-once: ack after the handler returns, redeliver if the worker dies
        task_acks_late=True,
        task_reject_on_worker_lost=True,
        worker_prefetch_multiplier=1,
        broker_transport_options={'visibility_timeout': app.config['CELERY_VISIBILITY_TIMEOUT']},
        task_routes={
            SEND_EMAIL_TASK: {'queue': queue},
            'tasks.dispatch_outbox': {'queue': queue},
            'tasks.queue_appointment_reminders': {'queue': queue},
        },
        beat_schedule={
            'dispatch-outbox': {
                'task': 'tasks.dispatch_outbox',
                'schedule': float(app.config['OUTBOX_POLL_SECONDS']),
            },
            'appointment-reminders': {
                'task': 'tasks.queue_appointment_reminders',
                'schedule': 3600.0,
            },
        },
    )

    # Make celery tasks work with Flask app context
    class FlaskAppContextTask(celery.Task):
        """Make celery tasks work with Flask app context."""
        def __call__(self, *args, **kwargs):
            if has_app_context():
                return self.run(*args, **kwargs)
            with app.app_context():
                return self.run(*args, **kwargs)

    celery.Task = FlaskAppContextTask
    return celery


def init_services(app):
    """Build the pipeline components once from the immutable settings."""
    from app.config import Settings
    from app.services.mail_transport import build_transport
    from app.services.proxy import ProxyRouter
    from app.services.template_renderer import TemplateRenderer
    from app.utils.auth import TokenBlocklist

    settings = Settings.from_config(app.config)
    app.extensions['settings'] = settings
    app.extensions['proxy_router'] = ProxyRouter(settings.proxy_routes, timeout=settings.proxy_timeout)
    app.extensions['template_renderer'] = TemplateRenderer(settings.email_template_dir, settings.mail_sender_domain)
    app.extensions['mail_transport'] = build_transport(settings)
    if settings.jwt_revocation_enabled:
        app.extensions['token_blocklist'] = TokenBlocklist.from_url(settings.redis_url)
    return settings


def register_cli(app):
    """
    Adds small helper CLI commands:
    - flask create-db: create tables using the configured database
    - flask drop-db: drop all tables (use with caution)
    - flask dispatch-outbox: publish pending notification emails now
    """

    @app.cli.command("create-db")
    def create_db_command():
        """Create database tables if they do not exist."""
        db.create_all()
        click.echo("Database tables created.")

    @app.cli.command("drop-db")
    def drop_db_command():
        """Drop all database tables. This is destructive."""
        db.drop_all()
        click.echo("Database tables dropped.")

    @app.cli.command("dispatch-outbox")
    @click.option("--limit", default=100, show_default=True, help="Maximum rows to publish.")
    def dispatch_outbox_command(limit):
        """Publish pending outbox rows to the email queue."""
        from app.services.email_queue import dispatch_pending

        result = dispatch_pending(limit)
        click.echo(f"Published {result['dispatched']} of {result['pending']} pending email(s).")


def _setup_file_logging(app):
    log_file = app.config['LOG_FILE']
    log_dir = os.path.dirname(log_file)
    if log_dir and not os.path.exists(log_dir):
        os.makedirs(log_dir, exist_ok=True)

    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=10240000,
        backupCount=10
    )
    file_handler.setFormatter(logging.Formatter(
        '%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]'
    ))
    file_handler.setLevel(app.config['LOG_LEVEL'])
    app.logger.addHandler(file_handler)
    logging.getLogger('app').addHandler(file_handler)
    logging.getLogger('tasks').addHandler(file_handler)
    app.logger.setLevel(app.config['LOG_LEVEL'])


def create_app(config_name=None):
    """Create Flask application factory"""
    app = Flask(__name__)
    _load_config(app, config_name)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    bcrypt.init_app(app)
    jwt.init_app(app)
    limiter.init_app(app)

    from app.utils.cors import init_cors
    init_cors(app)

    init_celery(app)
    settings = init_services(app)

    from app.errors import register_error_handlers
    register_error_handlers(app)

    from app.middleware import setup_middleware
    setup_middleware(app)
    register_cli(app)

    if not app.debug and not app.testing:
        _setup_file_logging(app)

    with app.app_context():
        from . import models  # noqa: F401 - registers tables

        from .routes import admin_bp, appointment_bp, auth_bp, health_bp, proxy_bp, public_bp
        app.register_blueprint(health_bp)
        app.register_blueprint(auth_bp)
        app.register_blueprint(public_bp)
        app.register_blueprint(admin_bp)
        app.register_blueprint(appointment_bp)
        app.register_blueprint(proxy_bp)

        if app.config['AUTO_CREATE_TABLES']:
            db.create_all()

    logger.info(f"Gateway configured ({settings.env}); clinic -> {app.config['CLINIC_SERVICE_URL']}, "
                f"files -> {app.config['FILES_SERVICE_URL']}")
    return app
