from .auth import auth_bp
from .public import public_bp
from .appointment import appointment_bp
from .admin import admin_bp
from .proxy import proxy_bp
from .health import health_bp

__all__ = ['auth_bp', 'public_bp', 'appointment_bp', 'admin_bp', 'proxy_bp', 'health_bp']
