import uuid
from datetime import datetime, timedelta

import pytest

from app import create_app
from app.extensions import celery, db
from app.models import Appointment, User
from app.utils.auth import issue_token


class SentTask:
    def __init__(self, name, kwargs, queue):
        self.name = name
        self.kwargs = kwargs
        self.queue = queue
        self.id = str(uuid.uuid4())


class TaskRecorder:
    """Stands in for the broker: records every published task."""

    def __init__(self):
        self.sent = []
        self.error = None

    def __call__(self, name, args=None, kwargs=None, queue=None, **options):
        if self.error is not None:
            raise self.error
        task = SentTask(name, kwargs or {}, queue)
        self.sent.append(task)
        return task

    def templates(self):
        return [task.kwargs['template'] for task in self.sent]


@pytest.fixture
def app():
    app = create_app('testing')
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture(autouse=True)
def sent_tasks(monkeypatch):
    recorder = TaskRecorder()
    monkeypatch.setattr(celery, 'send_task', recorder)
    return recorder


@pytest.fixture
def mail_outbox(app):
    return app.extensions['mail_transport'].outbox


def make_user(role, email, password='secret123', first_name='Test', last_name='User', **fields):
    user = User(email=email, first_name=first_name, last_name=last_name, role=role, is_active=True, **fields)
    user.set_password(password)
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture
def users(app):
    return {
        'admin': make_user('admin', 'admin@medcare.test', first_name='Ada', last_name='Admin'),
        'receptionist': make_user('receptionist', 'desk@medcare.test', first_name='Rita', last_name='Desk'),
        'doctor': make_user(
            'doctor', 'smith@medcare.test', first_name='John', last_name='Smith',
            specialization='General Medicine', license_number='MED-1',
        ),
        'pharmacist': make_user('pharmacist', 'pharma@medcare.test', first_name='Paul', last_name='Pharma'),
        'patient': make_user('patient', 'jane@medcare.test', first_name='Jane', last_name='Doe'),
    }


@pytest.fixture
def auth_headers(users):
    def _headers(role):
        return {'Authorization': f'Bearer {issue_token(users[role])}'}
    return _headers


@pytest.fixture
def appointment(users):
    appt = Appointment(
        appointment_id='APT1000',
        patient=users['patient'],
        doctor=users['doctor'],
        scheduled_at=datetime.utcnow().replace(second=0, microsecond=0) + timedelta(days=2),
        status='scheduled',
        reason='Checkup',
    )
    db.session.add(appt)
    db.session.commit()
    return appt
