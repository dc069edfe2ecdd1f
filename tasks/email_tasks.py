"""
Celery tasks for the email notification pipeline
"""
import logging
from datetime import datetime, timedelta

from celery.signals import task_failure
from celery.utils.time import get_exponential_backoff_interval
from flask import current_app

from app.errors import EmailPipelineError, InvalidJobError, MailDeliveryError
from app.extensions import celery, db
from app.models import Appointment
from app.notifications import EmailJob, appointment_reminder_job
from app.services.email_queue import dispatch_message, dispatch_pending, record_notification
from app.services.mail_transport import send_templated_email

logger = logging.getLogger(__name__)

# seconds
RETRY_BACKOFF_MAX = 600


@celery.task(
    bind=True,
    name='tasks.send_email',
    max_retries=None,
)
def send_email(self, template, to, data=None):
    """
    Render and send one notification email.

    Args:
        template: TemplateKey value, e.g. 'booking_confirmation'
        to: recipient address
        data: placeholder values for the template

    Returns:
        dict: delivery result

    Transport failures are retried with jittered exponential backoff, up to
    settings.email_max_retries times. A malformed job or unknown template
    fails without retry.
    """
    logger.info(f"Email worker received job {self.request.id}: {template} -> {to}")

    try:
        job = EmailJob.from_payload({'template': template, 'to': to, 'data': data})
    except InvalidJobError as e:
        logger.error(f"Rejected email job {self.request.id}: {e}")
        raise

    try:
        message_id = send_templated_email(job.template, job.to, job.data)
    except MailDeliveryError as e:
        logger.error(
            f"Error processing email job {self.request.id} "
            f"(attempt {self.request.retries + 1}): {e}"
        )
        countdown = get_exponential_backoff_interval(
            factor=1, retries=self.request.retries, maximum=RETRY_BACKOFF_MAX, full_jitter=True,
        )
        raise self.retry(
            exc=e,
            countdown=countdown,
            max_retries=current_app.extensions['settings'].email_max_retries,
        )
    except EmailPipelineError as e:
        logger.error(
            f"Error processing email job {self.request.id} "
            f"(attempt {self.request.retries + 1}): {e}"
        )
        raise

    logger.info(f"Email job completed: {self.request.id}")
    return {
        'success': True,
        'template': job.template.value,
        'to': job.to,
        'message_id': message_id,
    }


@task_failure.connect
def _log_failed_email(sender=None, task_id=None, exception=None, **kwargs):
    if getattr(sender, 'name', None) != 'tasks.send_email':
        return
    logger.error(f"Email job {task_id} failed permanently: {exception}")


@celery.task(name='tasks.dispatch_outbox')
def dispatch_outbox(limit=100):
    """Publish outbox rows that were not enqueued at write time."""
    result = dispatch_pending(limit)
    if result['pending']:
        logger.info(f"Outbox dispatch: {result['dispatched']}/{result['pending']} published")
    return result


@celery.task(name='tasks.queue_appointment_reminders')
def queue_appointment_reminders(hours_ahead=24):
    """Record a reminder email for each upcoming appointment not yet reminded."""
    now = datetime.utcnow()
    upcoming = Appointment.query.filter(
        Appointment.status.in_(['scheduled', 'confirmed']),
        Appointment.scheduled_at > now,
        Appointment.scheduled_at <= now + timedelta(hours=hours_ahead),
        Appointment.reminder_sent_at.is_(None),
    ).all()

    messages = []
    for appointment in upcoming:
        messages.append(record_notification(appointment_reminder_job(appointment), appointment))
        appointment.reminder_sent_at = now
    db.session.commit()

    dispatched = sum(1 for message in messages if dispatch_message(message))
    return {'success': True, 'reminders': len(messages), 'dispatched': dispatched}
