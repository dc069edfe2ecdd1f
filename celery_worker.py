#!/usr/bin/env python3
"""
Email Worker Entry Point
Run with: celery -A celery_worker.celery worker -Q emailQueue --concurrency=1 --loglevel=info
Outbox polling and reminders: celery -A celery_worker.celery beat --loglevel=info
Or: python celery_worker.py
"""
from app import create_app
from app.extensions import celery

# Create Flask app to initialize Celery
app = create_app()

# Import tasks so Celery can discover them
from tasks import email_tasks  # noqa: E402,F401

if __name__ == '__main__':
    # Jobs are processed one at a time; run more workers for parallelism
    celery.worker_main([
        'worker',
        '--loglevel=info',
        '--concurrency=1',
        '-Q', app.config['EMAIL_QUEUE_NAME'],
    ])
