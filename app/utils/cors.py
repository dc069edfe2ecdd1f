"""
CORS Configuration
"""
from flask_cors import CORS

CORS_METHODS = ["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"]
CORS_ALLOW_HEADERS = ["Content-Type", "Authorization", "X-Requested-With"]


def init_cors(app):
    """
    Initialize CORS for the Flask application from CORS_ORIGIN / CORS_CREDENTIALS
    """
    origins = app.config['CORS_ORIGIN']
    CORS(app,
         resources={r"/api/*": {"origins": origins}},
         methods=CORS_METHODS,
         allow_headers=CORS_ALLOW_HEADERS,
         supports_credentials=app.config['CORS_CREDENTIALS'],
         max_age=86400)

    app.logger.info(f"CORS enabled for {', '.join(origins)}")
