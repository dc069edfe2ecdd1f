"""
Email job producer.

Jobs go to the Celery queue ``emailQueue`` as task ``tasks.send_email``. The
gateway never imports the worker code; it publishes by task name only.

Notifications triggered by a domain write are first recorded as OutboxMessage
rows in the same session, then published. A publish failure leaves the row
pending for the periodic dispatcher and is never reported to the HTTP caller.
"""
import json
import logging
from datetime import datetime

from flask import current_app

from app.extensions import celery, db
from app.models import OutboxMessage
from app.notifications import EmailJob

logger = logging.getLogger(__name__)

SEND_EMAIL_TASK = 'tasks.send_email'
EMAIL_QUEUE = 'emailQueue'


def _queue_name():
    settings = current_app.extensions.get('settings')
    return settings.email_queue if settings else EMAIL_QUEUE


def enqueue(job: EmailJob) -> str:
    """Publish one job; returns the task id once the broker accepted it. No dedup."""
    result = celery.send_task(SEND_EMAIL_TASK, kwargs=job.to_payload(), queue=_queue_name())
    logger.info(f"Enqueued {job.template.value} email for {job.to} (task {result.id})")
    return result.id


def record_notification(job: EmailJob, appointment=None) -> OutboxMessage:
    """Add the job to the outbox; committed by the caller with its domain write."""
    message = OutboxMessage(
        template=job.template.value,
        recipient=job.to,
        payload=json.dumps(job.data),
        appointment=appointment,
    )
    db.session.add(message)
    return message


def dispatch_message(message: OutboxMessage, max_attempts=None) -> bool:
    """Publish one outbox row and commit its new state. Returns True when published."""
    if max_attempts is None:
        max_attempts = current_app.extensions['settings'].outbox_max_attempts

    job = EmailJob.from_payload({'template': message.template, 'to': message.recipient, 'data': message.data})
    message.attempts = (message.attempts or 0) + 1
    try:
        message.task_id = enqueue(job)
    except Exception as e:
        logger.warning(f"Failed to enqueue outbox message {message.id} (attempt {message.attempts}): {e}")
        message.last_error = str(e)
        if message.attempts >= max_attempts:
            message.status = OutboxMessage.FAILED
            logger.error(f"Outbox message {message.id} gave up after {message.attempts} attempts")
        db.session.commit()
        return False

    message.status = OutboxMessage.DISPATCHED
    message.dispatched_at = datetime.utcnow()
    message.last_error = None
    db.session.commit()
    return True


def dispatch_pending(limit=100):
    """Publish pending outbox rows, oldest first."""
    pending = (
        OutboxMessage.query
        .filter_by(status=OutboxMessage.PENDING)
        .order_by(OutboxMessage.created_at.asc(), OutboxMessage.id.asc())
        .limit(limit)
        .all()
    )
    published = sum(1 for message in pending if dispatch_message(message))
    return {'pending': len(pending), 'dispatched': published}
