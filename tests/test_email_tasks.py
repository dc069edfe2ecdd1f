from dataclasses import replace
from datetime import datetime, timedelta

import pytest

from app.errors import InvalidJobError, MailDeliveryError
from app.extensions import db
from app.models import Appointment, OutboxMessage
from tasks.email_tasks import dispatch_outbox, queue_appointment_reminders, send_email

JOB = {
    'template': 'booking_confirmation',
    'to': 'jane@medcare.test',
    'data': {'patientName': 'Jane Doe', 'doctorName': 'Dr. John Smith'},
}


class FailingTransport:
    name = 'failing'

    def __init__(self):
        self.calls = 0

    def send(self, to, subject, html, sender):
        self.calls += 1
        raise MailDeliveryError('provider rejected the message')


def test_send_email_delivers_rendered_message(app, mail_outbox):
    result = send_email.apply(kwargs=JOB)

    assert result.successful()
    assert result.result['success'] is True
    assert result.result['template'] == 'booking_confirmation'
    assert len(mail_outbox) == 1
    sent = mail_outbox[0]
    assert sent['to'] == 'jane@medcare.test'
    assert sent['from'] == 'bookings@splitsol.tech'
    assert sent['subject'] == 'Appointment Booking Confirmation - MedCare Clinic'
    assert 'Jane Doe' in sent['html']
    assert result.result['message_id'] == sent['id']


def test_send_email_transport_failure_is_retried_then_fails(app, monkeypatch):
    transport = FailingTransport()
    monkeypatch.setitem(app.extensions, 'mail_transport', transport)

    result = send_email.apply(kwargs=JOB)

    assert result.failed()
    assert isinstance(result.result, MailDeliveryError)
    assert transport.calls == app.extensions['settings'].email_max_retries + 1


def test_send_email_retry_limit_follows_settings(app, monkeypatch):
    transport = FailingTransport()
    monkeypatch.setitem(app.extensions, 'mail_transport', transport)
    monkeypatch.setitem(app.extensions, 'settings', replace(app.extensions['settings'], email_max_retries=1))

    result = send_email.apply(kwargs=JOB)

    assert result.failed()
    assert transport.calls == 2


def test_send_email_direct_call_propagates_transport_error(app, monkeypatch):
    monkeypatch.setitem(app.extensions, 'mail_transport', FailingTransport())
    with pytest.raises(MailDeliveryError):
        send_email(**JOB)


def test_send_email_unknown_template_fails_without_retry(app, mail_outbox):
    result = send_email.apply(kwargs=dict(JOB, template='welcome_email'))

    assert result.failed()
    assert isinstance(result.result, InvalidJobError)
    assert len(mail_outbox) == 0


def test_dispatch_outbox_task_publishes_pending(app, sent_tasks):
    db.session.add(OutboxMessage(template='appointment_reminder', recipient='jane@medcare.test', payload='{}'))
    db.session.commit()

    result = dispatch_outbox.apply()

    assert result.result == {'pending': 1, 'dispatched': 1}
    assert sent_tasks.templates() == ['appointment_reminder']


def test_reminders_are_queued_once(app, sent_tasks, appointment, users):
    past = Appointment(
        appointment_id='APT0999',
        patient=users['patient'],
        doctor=users['doctor'],
        scheduled_at=datetime.utcnow() - timedelta(hours=1),
        status='scheduled',
    )
    db.session.add(past)
    db.session.commit()

    first = queue_appointment_reminders.apply(kwargs={'hours_ahead': 72}).result
    second = queue_appointment_reminders.apply(kwargs={'hours_ahead': 72}).result

    assert first['reminders'] == 1
    assert first['dispatched'] == 1
    assert second['reminders'] == 0
    assert sent_tasks.templates() == ['appointment_reminder']
    assert sent_tasks.sent[0].kwargs['data']['appointmentId'] == 'APT1000'
    assert appointment.reminder_sent_at is not None
