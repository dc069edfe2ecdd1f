"""
Health check endpoints for monitoring and load balancers
"""
from datetime import datetime

from flask import Blueprint, jsonify

from app.extensions import celery, db

health_bp = Blueprint('health', __name__)

SERVICE_NAME = 'API Gateway'
VERSION = '1.0.0'


@health_bp.route('/api/health', methods=['GET'])
@health_bp.route('/health', methods=['GET'])
@health_bp.route('/health/ping', methods=['GET'])
def health_check():
    """Basic health check - no database connection"""
    return jsonify({
        'status': 'OK',
        'timestamp': datetime.utcnow().isoformat(),
        'service': SERVICE_NAME,
        'version': VERSION,
    }), 200


def _database_status():
    try:
        db.session.execute(db.text('SELECT 1'))
        return 'connected'
    except Exception as e:
        return f'error: {str(e)}'


def _broker_status():
    try:
        with celery.connection_for_write() as conn:
            conn.ensure_connection(max_retries=1)
        return 'connected'
    except Exception as e:
        return f'error: {str(e)}'


@health_bp.route('/health/ready', methods=['GET'])
def readiness_check():
    """Readiness check - database and queue broker"""
    db_status = _database_status()
    broker_status = _broker_status()
    ready = db_status == 'connected' and broker_status == 'connected'

    return jsonify({
        'status': 'ready' if ready else 'not_ready',
        'database': db_status,
        'queue': broker_status,
        'timestamp': datetime.utcnow().isoformat()
    }), 200 if ready else 503


@health_bp.route('/health/live', methods=['GET'])
def liveness_check():
    """Liveness check for Kubernetes/containers"""
    return jsonify({
        'status': 'alive',
        'timestamp': datetime.utcnow().isoformat()
    }), 200
