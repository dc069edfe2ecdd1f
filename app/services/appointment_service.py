"""
Appointment booking and status transitions.
"""
import logging
import secrets
import time
from datetime import datetime, timezone

from sqlalchemy import func

from app.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from app.extensions import db
from app.models import Appointment, STATUSES, User
from app.notifications import booking_confirmation_job, status_change_job
from app.services.email_queue import dispatch_message, record_notification
from app.utils.request import text_field

logger = logging.getLogger(__name__)

DEFAULT_REASON = 'General consultation'
PLACEHOLDER_PHONE = '+91-0000000000'

# status -> statuses reachable from it
TRANSITIONS = {
    'scheduled': {'confirmed', 'checked-in', 'cancelled', 'no-show'},
    'confirmed': {'checked-in', 'cancelled', 'no-show'},
    'checked-in': {'in-progress', 'cancelled'},
    'in-progress': {'completed'},
    'completed': set(),
    'cancelled': set(),
    'no-show': set(),
}

# role -> target statuses that role may move an appointment into
ROLE_TARGETS = {
    'admin': set(STATUSES),
    'receptionist': {'confirmed', 'checked-in', 'cancelled', 'no-show'},
    'doctor': {'in-progress', 'completed', 'no-show'},
    'patient': {'cancelled'},
    'pharmacist': set(),
}

STATUS_TIMESTAMPS = {
    'confirmed': 'confirmed_at',
    'checked-in': 'checked_in_at',
    'in-progress': 'started_at',
    'completed': 'completed_at',
    'cancelled': 'cancelled_at',
}


def parse_schedule(date_str, time_str):
    try:
        return datetime.strptime(f"{date_str} {time_str}", '%Y-%m-%d %H:%M')
    except (TypeError, ValueError):
        raise ValidationError('Invalid date or time. Use YYYY-MM-DD and HH:MM.', code='INVALID_DATETIME')


def parse_scheduled_at(value):
    """ISO 8601 timestamp, e.g. 2025-11-01T10:30 or 2025-11-01T10:30:00Z (stored naive UTC)."""
    try:
        scheduled_at = datetime.fromisoformat(str(value).replace('Z', '+00:00'))
    except ValueError:
        raise ValidationError('Invalid scheduledAt. Use an ISO 8601 timestamp.', code='INVALID_DATETIME')
    if scheduled_at.tzinfo is not None:
        scheduled_at = scheduled_at.astimezone(timezone.utc).replace(tzinfo=None)
    return scheduled_at.replace(second=0, microsecond=0)


def generate_appointment_id():
    return f"APT{int(time.time() * 1000)}{secrets.randbelow(1000):03d}"


def split_name(full_name):
    parts = full_name.split()
    first = parts[0] if parts else ''
    last = ' '.join(parts[1:])
    return first, last


def find_doctor(doctor_name):
    """Match 'Dr. First Last', 'Dr. Last' or 'First' against active doctors."""
    name = doctor_name.strip()
    if name.lower().startswith('dr.'):
        name = name[3:]
    elif name.lower().startswith('dr '):
        name = name[2:]
    first, last = split_name(name)
    if not first:
        return None

    doctors = User.query.filter_by(role='doctor', is_active=True).order_by(User.id.asc()).all()
    wanted = name.strip().lower()
    for doctor in doctors:
        if doctor.full_name.lower() == wanted:
            return doctor
    surname = (last or first).lower()
    for doctor in doctors:
        if doctor.last_name and doctor.last_name.lower() == surname:
            return doctor
    for doctor in doctors:
        if doctor.first_name.lower() == first.lower():
            return doctor
    return None


def _staff_conflict(user):
    if user.role != 'patient':
        raise ConflictError('Email is registered to a staff account.', code='USER_EXISTS')
    return user


def find_or_create_patient(patient_name, email=None, phone=None):
    """
    Patient by email, else by case-insensitive name, else a new record.

    Booking never attaches a staff account as the patient; an email that
    belongs to staff is a 409 USER_EXISTS.
    """
    first, last = split_name(patient_name)
    email = (email or '').lower() or None

    if email:
        patient = User.query.filter_by(email=email).first()
        if patient is not None:
            return _staff_conflict(patient)

    patient = User.query.filter(
        User.role == 'patient',
        func.lower(User.first_name) == first.lower(),
        func.lower(User.last_name) == last.lower(),
    ).order_by(User.id.asc()).first()
    if patient is not None:
        return patient

    if email is None:
        email = '.'.join(p for p in (first, last) if p).lower() + '@example.com'
        patient = User.query.filter_by(email=email).first()
        if patient is not None:
            return _staff_conflict(patient)

    patient = User(
        email=email,
        first_name=first,
        last_name=last,
        phone=phone or PLACEHOLDER_PHONE,
        role='patient',
        is_active=True,
    )
    # Unusable until the patient resets it
    patient.set_password(secrets.token_urlsafe(16))
    db.session.add(patient)
    logger.info(f"Created patient record for {patient.email}")
    return patient


def book_appointment(data, created_by=None):
    """
    Create an appointment and its booking_confirmation outbox entry in one commit,
    then try to publish the email. The booking stands even if publishing fails.
    """
    fields = {key: text_field(data, key) for key in ('patientName', 'doctorName', 'date', 'time')}
    if not all(fields.values()):
        raise ValidationError('Missing required fields', code='MISSING_FIELDS')

    scheduled_at = parse_schedule(fields['date'], fields['time'])

    doctor = find_doctor(fields['doctorName'])
    if doctor is None:
        raise NotFoundError('Doctor not found', code='DOCTOR_NOT_FOUND')

    patient = find_or_create_patient(
        fields['patientName'],
        text_field(data, 'email') or None,
        text_field(data, 'phone') or None,
    )

    appointment = Appointment(
        appointment_id=generate_appointment_id(),
        patient=patient,
        doctor=doctor,
        scheduled_at=scheduled_at,
        status='scheduled',
        reason=text_field(data, 'reason') or DEFAULT_REASON,
        notes=text_field(data, 'notes', default=None),
        created_by=created_by,
    )
    db.session.add(appointment)
    message = record_notification(booking_confirmation_job(appointment), appointment)
    db.session.commit()
    logger.info(f"Appointment {appointment.appointment_id} booked with {doctor.doctor_name}")

    dispatch_message(message)
    return appointment


def check_transition(current, target, role):
    if target not in STATUSES:
        raise ValidationError(f"Unknown status: {target}", code='INVALID_STATUS')
    if target == current:
        return
    if target not in TRANSITIONS.get(current, set()):
        raise ConflictError(f"Cannot change status from {current} to {target}", code='INVALID_TRANSITION')
    if target not in ROLE_TARGETS.get(role, set()):
        raise ForbiddenError(f"Role {role} cannot set status {target}")


def update_appointment(appointment_id, data, user):
    """Apply a status / schedule / notes change from an authenticated caller."""
    appointment = None
    if str(appointment_id).isdigit():
        appointment = db.session.get(Appointment, int(appointment_id))
    if appointment is None:
        appointment = Appointment.query.filter_by(appointment_id=str(appointment_id)).first()
    if appointment is None:
        raise NotFoundError('Appointment not found', code='APPOINTMENT_NOT_FOUND')

    previous_status = appointment.status
    previous_schedule = appointment.scheduled_at
    rescheduled_from = None

    status = data.get('status')
    if status is not None:
        check_transition(appointment.status, status, user.role)
        if status != appointment.status:
            appointment.status = status
            field = STATUS_TIMESTAMPS.get(status)
            if field:
                setattr(appointment, field, datetime.utcnow())

    if data.get('scheduledAt') or data.get('date') or data.get('time'):
        if previous_status in ('completed', 'cancelled', 'no-show', 'in-progress'):
            raise ConflictError('Appointment can no longer be rescheduled', code='INVALID_TRANSITION')
        if user.role not in ('admin', 'receptionist'):
            raise ForbiddenError(f"Role {user.role} cannot reschedule appointments")
        if data.get('scheduledAt'):
            scheduled_at = parse_scheduled_at(data['scheduledAt'])
        else:
            scheduled_at = parse_schedule(
                data.get('date') or appointment.date,
                data.get('time') or appointment.time,
            )
        if scheduled_at != previous_schedule:
            appointment.scheduled_at = scheduled_at
            rescheduled_from = previous_schedule

    if 'notes' in data:
        appointment.notes = text_field(data, 'notes', default=None)

    job = status_change_job(appointment, previous_status, rescheduled_from)
    message = record_notification(job, appointment) if job else None
    db.session.commit()
    logger.info(
        f"Appointment {appointment.appointment_id} updated by user {user.user_id}: "
        f"{previous_status} -> {appointment.status}"
    )

    if message is not None:
        dispatch_message(message)
    return appointment
