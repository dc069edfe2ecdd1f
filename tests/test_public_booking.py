from app.extensions import db
from app.models import Appointment, OutboxMessage, User

BOOKING = {
    'patientName': 'Jane Doe',
    'doctorName': 'Dr. Smith',
    'date': '2030-11-01',
    'time': '10:30',
    'reason': 'Checkup',
    'email': 'jane@medcare.test',
}


def test_booking_creates_appointment_and_one_confirmation_job(client, users, sent_tasks):
    response = client.post('/api/public/appointments', json=BOOKING)

    assert response.status_code == 201
    body = response.get_json()
    assert body['success'] is True
    data = body['data']
    assert data['appointmentId'].startswith('APT')
    assert data['patientName'] == 'Jane Doe'
    assert data['doctorName'] == 'Dr. John Smith'
    assert data['date'] == '2030-11-01'
    assert data['time'] == '10:30'
    assert data['status'] == 'scheduled'

    assert Appointment.query.count() == 1
    assert len(sent_tasks.sent) == 1
    task = sent_tasks.sent[0]
    assert task.name == 'tasks.send_email'
    assert task.queue == 'emailQueue'
    assert task.kwargs['template'] == 'booking_confirmation'
    assert task.kwargs['to'] == 'jane@medcare.test'
    assert task.kwargs['data']['appointmentId'] == data['appointmentId']

    message = OutboxMessage.query.one()
    assert message.status == OutboxMessage.DISPATCHED
    assert message.task_id == task.id


def test_booking_creates_unknown_patient(client, users):
    payload = dict(BOOKING, patientName='Sam Newcomer', doctorName='John Smith')
    payload.pop('email')
    response = client.post('/api/public/appointments', json=payload)

    assert response.status_code == 201
    patient = User.query.filter_by(first_name='Sam', last_name='Newcomer').one()
    assert patient.role == 'patient'
    assert patient.email == 'sam.newcomer@example.com'
    assert patient.phone == '+91-0000000000'


def test_booking_reuses_existing_patient_by_email(client, users):
    client.post('/api/public/appointments', json=BOOKING)
    assert User.query.filter_by(role='patient').count() == 1


def test_booking_matches_patient_name_case_insensitively(client, users):
    payload = dict(BOOKING, patientName='Sam Newcomer')
    payload.pop('email')
    assert client.post('/api/public/appointments', json=payload).status_code == 201

    response = client.post('/api/public/appointments', json=dict(payload, patientName='sam newcomer'))
    assert response.status_code == 201
    assert User.query.filter_by(email='sam.newcomer@example.com').count() == 1
    assert Appointment.query.count() == 2


def test_booking_reuses_fallback_email_patient(client, users):
    payload = dict(BOOKING, patientName='Sam Newcomer')
    payload.pop('email')
    client.post('/api/public/appointments', json=payload)
    patient = User.query.filter_by(email='sam.newcomer@example.com').one()
    patient.last_name = 'Newcomer-Lee'
    db.session.commit()

    response = client.post('/api/public/appointments', json=payload)
    assert response.status_code == 201
    assert User.query.filter_by(role='patient', first_name='Sam').count() == 1


def test_booking_with_staff_email_is_rejected(client, users, sent_tasks):
    response = client.post('/api/public/appointments', json=dict(BOOKING, email='admin@medcare.test'))
    assert response.status_code == 409
    assert response.get_json()['code'] == 'USER_EXISTS'
    assert Appointment.query.count() == 0
    assert sent_tasks.sent == []


def test_booking_accepts_numeric_text_fields(client, users):
    response = client.post('/api/public/appointments', json=dict(BOOKING, reason=42, phone=9876543210))
    assert response.status_code == 201
    appointment = Appointment.query.one()
    assert appointment.reason == '42'


def test_booking_rejects_object_fields(client, users):
    response = client.post('/api/public/appointments', json=dict(BOOKING, patientName={'first': 'Jane'}))
    assert response.status_code == 400
    assert response.get_json()['code'] == 'INVALID_FIELD'
    assert Appointment.query.count() == 0


def test_booking_missing_fields(client, users, sent_tasks):
    response = client.post('/api/public/appointments', json={'patientName': 'Jane Doe', 'date': '2030-11-01'})
    assert response.status_code == 400
    assert response.get_json()['code'] == 'MISSING_FIELDS'
    assert Appointment.query.count() == 0
    assert sent_tasks.sent == []


def test_booking_invalid_date(client, users):
    response = client.post('/api/public/appointments', json=dict(BOOKING, date='01/11/2030'))
    assert response.status_code == 400
    assert response.get_json()['code'] == 'INVALID_DATETIME'


def test_booking_unknown_doctor(client, users, sent_tasks):
    response = client.post('/api/public/appointments', json=dict(BOOKING, doctorName='Dr. Nobody'))
    assert response.status_code == 404
    assert response.get_json()['code'] == 'DOCTOR_NOT_FOUND'
    assert Appointment.query.count() == 0
    assert sent_tasks.sent == []


def test_booking_survives_queue_outage(client, users, sent_tasks):
    sent_tasks.error = ConnectionError('broker down')
    response = client.post('/api/public/appointments', json=BOOKING)

    assert response.status_code == 201
    assert Appointment.query.count() == 1
    message = OutboxMessage.query.one()
    assert message.status == OutboxMessage.PENDING
    assert message.attempts == 1
    assert 'broker down' in message.last_error


def test_public_doctor_list(client, users):
    users['doctor'].consultation_fee = 500
    inactive = User(email='old@medcare.test', first_name='Old', last_name='Doc', role='doctor', is_active=False)
    inactive.set_password('x')
    db.session.add(inactive)
    db.session.commit()

    response = client.get('/api/public/doctors')
    assert response.status_code == 200
    doctors = response.get_json()['data']
    assert [d['name'] for d in doctors] == ['Dr. John Smith']
    assert doctors[0]['consultationFee'] == 500.0
    assert 'licenseNumber' not in doctors[0]
