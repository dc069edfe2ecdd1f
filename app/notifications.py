"""
Notification kinds, their template descriptors and the email job payload.

A job travels through the queue as ``{"template": ..., "to": ..., "data": {...}}``.
Jobs are built through the typed builders below rather than by hand, so every
kind carries exactly the data its template expects.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional

from app.errors import InvalidJobError, TemplateNotFoundError

CLINIC_NAME = 'MedCare Clinic'


class TemplateKey(str, Enum):
    BOOKING_CONFIRMATION = 'booking_confirmation'
    APPOINTMENT_CONFIRMED = 'appointment_confirmed'
    APPOINTMENT_RESCHEDULED = 'appointment_rescheduled'
    APPOINTMENT_CANCELLED = 'appointment_cancelled'
    APPOINTMENT_REMINDER = 'appointment_reminder'
    PRESCRIPTION_EMAIL = 'prescription_email'
    PHARMACY_BILL = 'pharmacy_bill'


@dataclass(frozen=True)
class TemplateDescriptor:
    file: str
    subject: str
    sender: str  # local part; the domain comes from MAIL_SENDER_DOMAIN

    def sender_address(self, domain):
        return f"{self.sender}@{domain}"


TEMPLATES = {
    TemplateKey.BOOKING_CONFIRMATION: TemplateDescriptor(
        'booking-confirmation.html', f'Appointment Booking Confirmation - {CLINIC_NAME}', 'bookings'),
    TemplateKey.APPOINTMENT_CONFIRMED: TemplateDescriptor(
        'appointment-confirmed.html', f'Appointment Confirmed - {CLINIC_NAME}', 'appointments'),
    TemplateKey.APPOINTMENT_RESCHEDULED: TemplateDescriptor(
        'appointment-rescheduled.html', f'Appointment Rescheduled - {CLINIC_NAME}', 'appointments'),
    TemplateKey.APPOINTMENT_CANCELLED: TemplateDescriptor(
        'appointment-cancelled.html', f'Appointment Cancelled - {CLINIC_NAME}', 'appointments'),
    TemplateKey.APPOINTMENT_REMINDER: TemplateDescriptor(
        'appointment-reminder.html', f'Appointment Reminder - {CLINIC_NAME}', 'reminders'),
    TemplateKey.PRESCRIPTION_EMAIL: TemplateDescriptor(
        'prescription_email.html', f'Your Prescription Details - {CLINIC_NAME}', 'prescriptions'),
    TemplateKey.PHARMACY_BILL: TemplateDescriptor(
        'pharmacy_bill.html', f'Your Pharmacy Bill and Receipt - {CLINIC_NAME}', 'pharmacy'),
}


def template_key(value) -> TemplateKey:
    """Coerce a string to a TemplateKey, raising TemplateNotFoundError."""
    if isinstance(value, TemplateKey):
        return value
    try:
        return TemplateKey(value)
    except ValueError:
        raise TemplateNotFoundError(value) from None


def get_template(key) -> TemplateDescriptor:
    descriptor = TEMPLATES.get(template_key(key))
    if descriptor is None:
        raise TemplateNotFoundError(key)
    return descriptor


@dataclass(frozen=True)
class EmailJob:
    template: TemplateKey
    to: str
    data: Dict[str, str] = field(default_factory=dict)

    def to_payload(self):
        return {'template': self.template.value, 'to': self.to, 'data': dict(self.data)}

    @classmethod
    def from_payload(cls, payload) -> 'EmailJob':
        if not isinstance(payload, dict):
            raise InvalidJobError('Job payload must be an object')
        try:
            key = template_key(payload.get('template'))
        except TemplateNotFoundError as e:
            raise InvalidJobError(str(e)) from e
        to = payload.get('to') or ''
        if not isinstance(to, str):
            raise InvalidJobError('Job recipient must be a string')
        to = to.strip()
        if not to:
            raise InvalidJobError('Job payload has no recipient')
        data = payload.get('data') or {}
        if not isinstance(data, dict):
            raise InvalidJobError('Job data must be an object')
        return cls(key, to, {str(k): '' if v is None else str(v) for k, v in data.items()})


def _appointment_data(appointment):
    return {
        'patientName': appointment.patient.full_name,
        'doctorName': appointment.doctor.doctor_name,
        'appointmentId': appointment.appointment_id,
        'appointmentDate': appointment.date,
        'appointmentTime': appointment.time,
        'reason': appointment.reason or '',
        'clinicName': CLINIC_NAME,
    }


def booking_confirmation_job(appointment) -> EmailJob:
    return EmailJob(TemplateKey.BOOKING_CONFIRMATION, appointment.patient.email, _appointment_data(appointment))


def appointment_reminder_job(appointment) -> EmailJob:
    return EmailJob(TemplateKey.APPOINTMENT_REMINDER, appointment.patient.email, _appointment_data(appointment))


def status_change_job(appointment, previous_status=None, rescheduled_from=None) -> Optional[EmailJob]:
    """Email for a status/time change, or None when the change is not patient-facing."""
    data = _appointment_data(appointment)
    if appointment.status != previous_status:
        if appointment.status == 'confirmed':
            return EmailJob(TemplateKey.APPOINTMENT_CONFIRMED, appointment.patient.email, data)
        if appointment.status == 'cancelled':
            return EmailJob(TemplateKey.APPOINTMENT_CANCELLED, appointment.patient.email, data)
    if rescheduled_from is not None and rescheduled_from != appointment.scheduled_at:
        data['previousDate'] = rescheduled_from.strftime('%Y-%m-%d')
        data['previousTime'] = rescheduled_from.strftime('%H:%M')
        return EmailJob(TemplateKey.APPOINTMENT_RESCHEDULED, appointment.patient.email, data)
    return None
