import os
import re
from dataclasses import dataclass
from datetime import timedelta
from typing import Mapping, Optional, Tuple

from dotenv import load_dotenv

load_dotenv()

DEFAULT_JWT_SECRET = 'clinic-super-secret-jwt-key-for-development-only'
DEFAULT_COOKIE_SECRET = 'clinic-cookie-secret-for-development'

_DURATION_RE = re.compile(r'^\s*(\d+)\s*([smhdw]?)\s*$')
_DURATION_UNITS = {
    '': 'seconds',
    's': 'seconds',
    'm': 'minutes',
    'h': 'hours',
    'd': 'days',
    'w': 'weeks',
}


def parse_duration(value, default=timedelta(days=7)):
    """Parse '7d', '12h', '30m', '45s' or a plain number of seconds."""
    if value is None or str(value).strip() == '':
        return default
    match = _DURATION_RE.match(str(value).lower())
    if not match:
        raise ValueError(f"Invalid duration: {value!r}")
    amount, unit = match.groups()
    return timedelta(**{_DURATION_UNITS[unit]: int(amount)})


def _env_bool(name, default='false'):
    return os.getenv(name, default).lower() == 'true'


def _env_list(name, default):
    raw = os.getenv(name)
    if not raw:
        return default
    return [item.strip() for item in raw.split(',') if item.strip()]


def current_env():
    """Environment name; FLASK_ENV wins over NODE_ENV."""
    return os.getenv('FLASK_ENV') or os.getenv('NODE_ENV') or 'development'


class Config:
    """Base configuration"""
    ENV_NAME = current_env()

    # Gateway
    PORT = int(os.getenv('PORT', '3000'))
    CLINIC_PORT = int(os.getenv('CLINIC_PORT', '3001'))
    FILES_PORT = int(os.getenv('FILES_PORT', '3002'))
    CLINIC_SERVICE_URL = os.getenv('CLINIC_SERVICE_URL') or f'http://localhost:{CLINIC_PORT}'
    FILES_SERVICE_URL = os.getenv('FILES_SERVICE_URL') or f'http://localhost:{FILES_PORT}'
    PROXY_TIMEOUT_SECONDS = float(os.getenv('PROXY_TIMEOUT_SECONDS', '30'))
    TRUSTED_PROXY_COUNT = int(os.getenv('TRUSTED_PROXY_COUNT', '0'))  # load balancers in front of the gateway

    # Cookies / sessions
    COOKIE_SECRET = os.getenv('COOKIE_SECRET') or DEFAULT_COOKIE_SECRET
    SECRET_KEY = COOKIE_SECRET
    COOKIE_MAX_AGE = int(os.getenv('COOKIE_MAX_AGE', str(7 * 24 * 60 * 60 * 1000)))  # ms

    # JWT (flask-jwt-extended)
    JWT_SECRET_KEY = os.getenv('JWT_SECRET') or DEFAULT_JWT_SECRET
    JWT_ACCESS_TOKEN_EXPIRES = parse_duration(os.getenv('JWT_EXPIRES_IN', '7d'))
    JWT_TOKEN_LOCATION = ['cookies', 'headers']
    JWT_ACCESS_COOKIE_NAME = 'auth_token'
    JWT_ACCESS_COOKIE_PATH = '/'
    JWT_COOKIE_SAMESITE = 'Strict'
    JWT_COOKIE_SECURE = False
    # SameSite=Strict already covers cross-site submission
    JWT_COOKIE_CSRF_PROTECT = False
    JWT_SESSION_COOKIE = False
    JWT_REVOCATION_ENABLED = _env_bool('JWT_REVOCATION_ENABLED')

    # Password hashing (flask-bcrypt)
    BCRYPT_LOG_ROUNDS = int(os.getenv('BCRYPT_ROUNDS', '12'))

    # CORS
    CORS_ORIGIN = _env_list('CORS_ORIGIN', ['http://localhost:5173', 'http://localhost:3000'])
    CORS_CREDENTIALS = _env_bool('CORS_CREDENTIALS', 'true')

    # Rate limiting (Flask-Limiter)
    RATE_LIMIT_WINDOW_MS = int(os.getenv('RATE_LIMIT_WINDOW_MS', '900000'))  # 15 minutes
    RATE_LIMIT_MAX_REQUESTS = int(os.getenv('RATE_LIMIT_MAX_REQUESTS', '100'))
    RATELIMIT_ENABLED = _env_bool('RATELIMIT_ENABLED', 'true')
    RATELIMIT_STORAGE_URI = os.getenv('RATELIMIT_STORAGE_URI', 'memory://')
    RATELIMIT_HEADERS_ENABLED = True

    # Database
    SQLALCHEMY_DATABASE_URI = os.getenv('DATABASE_URL', 'sqlite:///medcare.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    AUTO_CREATE_TABLES = _env_bool('AUTO_CREATE_TABLES', 'true')

    # Celery Configuration
    REDIS_URL = os.getenv('REDIS_URL', 'redis://localhost:6379/0')
    CELERY_BROKER_URL = REDIS_URL
    CELERY_RESULT_BACKEND = REDIS_URL
    CELERY_ACCEPT_CONTENT = ['json']
    CELERY_TASK_SERIALIZER = 'json'
    CELERY_RESULT_SERIALIZER = 'json'
    CELERY_TIMEZONE = 'UTC'
    CELERY_ENABLE_UTC = True
    CELERY_VISIBILITY_TIMEOUT = int(os.getenv('CELERY_VISIBILITY_TIMEOUT', '3600'))

    # Email pipeline
    EMAIL_QUEUE_NAME = 'emailQueue'
    EMAIL_TEMPLATE_DIR = os.getenv(
        'EMAIL_TEMPLATE_DIR',
        os.path.join(os.path.dirname(os.path.abspath(__file__)), 'email_templates'),
    )
    EMAIL_MAX_RETRIES = int(os.getenv('EMAIL_MAX_RETRIES', '3'))
    OUTBOX_POLL_SECONDS = int(os.getenv('OUTBOX_POLL_SECONDS', '30'))
    OUTBOX_MAX_ATTEMPTS = int(os.getenv('OUTBOX_MAX_ATTEMPTS', '5'))

    # Mail transport
    RESEND_API_KEY = os.getenv('RESEND_API_KEY')
    RESEND_API_URL = os.getenv('RESEND_API_URL', 'https://api.resend.com/emails')
    MAIL_TRANSPORT = os.getenv('MAIL_TRANSPORT') or ('resend' if RESEND_API_KEY else 'console')
    MAIL_SENDER_DOMAIN = os.getenv('MAIL_SENDER_DOMAIN', 'splitsol.tech')
    MAIL_TIMEOUT_SECONDS = float(os.getenv('MAIL_TIMEOUT_SECONDS', '10'))
    MAIL_SERVER = os.getenv('MAIL_SERVER', 'smtp.gmail.com')
    MAIL_PORT = int(os.getenv('MAIL_PORT', '587'))
    MAIL_USE_TLS = _env_bool('MAIL_USE_TLS', 'true')
    MAIL_USERNAME = os.getenv('MAIL_USERNAME')
    MAIL_PASSWORD = os.getenv('MAIL_PASSWORD')

    # Logging
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
    LOG_FILE = os.getenv('LOG_FILE', 'logs/app.log')


class DevelopmentConfig(Config):
    """Development configuration"""
    ENV_NAME = 'development'
    DEBUG = True
    TESTING = False


class ProductionConfig(Config):
    """Production configuration"""
    ENV_NAME = 'production'
    DEBUG = False
    TESTING = False

    JWT_COOKIE_SECURE = True
    AUTO_CREATE_TABLES = _env_bool('AUTO_CREATE_TABLES', 'false')
    SQLALCHEMY_ENGINE_OPTIONS = {
        'pool_pre_ping': True,
        'pool_recycle': 3600,
    }

    # No silent console fallback; console must be chosen explicitly
    MAIL_TRANSPORT = os.getenv('MAIL_TRANSPORT') or ('resend' if Config.RESEND_API_KEY else None)

    LOG_LEVEL = os.getenv('LOG_LEVEL', 'WARNING')

    @classmethod
    def validate(cls):
        """Refuse to start with the development secrets or no mail transport."""
        if cls.JWT_SECRET_KEY == DEFAULT_JWT_SECRET:
            raise ValueError("JWT_SECRET environment variable must be set in production")
        if cls.COOKIE_SECRET == DEFAULT_COOKIE_SECRET:
            raise ValueError("COOKIE_SECRET environment variable must be set in production")
        if not cls.MAIL_TRANSPORT:
            raise ValueError("MAIL_TRANSPORT or RESEND_API_KEY must be set in production")
        if cls.MAIL_TRANSPORT == 'resend' and not cls.RESEND_API_KEY:
            raise ValueError("RESEND_API_KEY must be set when MAIL_TRANSPORT is resend")


class TestingConfig(Config):
    """Testing configuration"""
    ENV_NAME = 'testing'
    TESTING = True
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = os.getenv('TEST_DATABASE_URL', 'sqlite:///:memory:')
    AUTO_CREATE_TABLES = True
    BCRYPT_LOG_ROUNDS = 4
    RATELIMIT_ENABLED = False
    JWT_REVOCATION_ENABLED = False
    JWT_SECRET_KEY = 'testing-jwt-secret-with-enough-length-for-hs256'
    MAIL_TRANSPORT = 'console'
    CLINIC_SERVICE_URL = 'http://clinic.test'
    FILES_SERVICE_URL = 'http://files.test'


# Configuration mapping
config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}


def get_config():
    """Get configuration based on FLASK_ENV / NODE_ENV"""
    return config.get(current_env(), config['default'])


CLINIC_PREFIXES = (
    '/api/appointments',
    '/api/prescriptions',
    '/api/pharmacy',
    '/api/analytics',
    '/api/notifications',
    '/api/patients',
    '/api/doctors',
)
FILES_PREFIXES = ('/api/files',)


@dataclass(frozen=True)
class ProxyRoute:
    prefix: str
    service: str
    target: str


@dataclass(frozen=True)
class Settings:
    """Immutable runtime settings, built once by the app factory."""
    env: str
    port: int
    proxy_routes: Tuple[ProxyRoute, ...]
    proxy_timeout: float
    cookie_max_age: int  # seconds
    jwt_revocation_enabled: bool
    redis_url: str
    email_queue: str
    email_template_dir: str
    email_max_retries: int
    outbox_max_attempts: int
    mail_transport: str
    mail_sender_domain: str
    mail_timeout: float
    resend_api_key: Optional[str]
    resend_api_url: str
    smtp_server: str
    smtp_port: int
    smtp_use_tls: bool
    smtp_username: Optional[str]
    smtp_password: Optional[str]

    @property
    def is_production(self):
        return self.env == 'production'

    @classmethod
    def from_config(cls, cfg: Mapping) -> 'Settings':
        clinic = cfg['CLINIC_SERVICE_URL'].rstrip('/')
        files = cfg['FILES_SERVICE_URL'].rstrip('/')
        routes = tuple(ProxyRoute(p, 'clinic', clinic) for p in CLINIC_PREFIXES)
        routes += tuple(ProxyRoute(p, 'files', files) for p in FILES_PREFIXES)
        return cls(
            env=cfg.get('ENV_NAME', 'development'),
            port=cfg['PORT'],
            proxy_routes=routes,
            proxy_timeout=cfg['PROXY_TIMEOUT_SECONDS'],
            cookie_max_age=cfg['COOKIE_MAX_AGE'] // 1000,
            jwt_revocation_enabled=cfg['JWT_REVOCATION_ENABLED'],
            redis_url=cfg['REDIS_URL'],
            email_queue=cfg['EMAIL_QUEUE_NAME'],
            email_template_dir=cfg['EMAIL_TEMPLATE_DIR'],
            email_max_retries=cfg['EMAIL_MAX_RETRIES'],
            outbox_max_attempts=cfg['OUTBOX_MAX_ATTEMPTS'],
            mail_transport=cfg['MAIL_TRANSPORT'],
            mail_sender_domain=cfg['MAIL_SENDER_DOMAIN'],
            mail_timeout=cfg['MAIL_TIMEOUT_SECONDS'],
            resend_api_key=cfg.get('RESEND_API_KEY'),
            resend_api_url=cfg['RESEND_API_URL'],
            smtp_server=cfg['MAIL_SERVER'],
            smtp_port=cfg['MAIL_PORT'],
            smtp_use_tls=cfg['MAIL_USE_TLS'],
            smtp_username=cfg.get('MAIL_USERNAME'),
            smtp_password=cfg.get('MAIL_PASSWORD'),
        )
