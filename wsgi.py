"""
WSGI entry point for the gateway
Used by Gunicorn, uWSGI, and other WSGI servers:
    gunicorn --bind 0.0.0.0:3000 wsgi:application
"""
from werkzeug.middleware.proxy_fix import ProxyFix

from app import create_app

app = create_app()

# Trust X-Forwarded-* from this many proxies in front of the gateway
trusted = app.config['TRUSTED_PROXY_COUNT']
if trusted:
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=trusted, x_proto=trusted, x_host=trusted)

application = app
