"""
Request logging and security headers
"""
import logging
import time

from flask import g, request

logger = logging.getLogger(__name__)

CONTENT_SECURITY_POLICY = (
    "default-src 'self'; "
    "style-src 'self' 'unsafe-inline'; "
    "script-src 'self'; "
    "img-src 'self' data: https:"
)


def setup_middleware(app):
    """Register request logging and security header hooks"""

    @app.before_request
    def start_timer():
        g.request_started = time.monotonic()

    @app.after_request
    def after_request(response):
        elapsed_ms = (time.monotonic() - g.get('request_started', time.monotonic())) * 1000
        logger.info(
            f"{request.remote_addr} {request.method} {request.path} "
            f"{response.status_code} {elapsed_ms:.1f}ms"
        )

        response.headers.setdefault('Content-Security-Policy', CONTENT_SECURITY_POLICY)
        response.headers.setdefault('X-Content-Type-Options', 'nosniff')
        response.headers.setdefault('X-Frame-Options', 'DENY')
        response.headers.setdefault('Referrer-Policy', 'strict-origin-when-cross-origin')
        # Only add HSTS if using HTTPS
        if request.is_secure:
            response.headers.setdefault('Strict-Transport-Security', 'max-age=31536000; includeSubDomains')
        return response
