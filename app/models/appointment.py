from app.extensions import db
from .base import TimestampMixin, isoformat

STATUSES = ('scheduled', 'confirmed', 'checked-in', 'in-progress', 'completed', 'cancelled', 'no-show')


class Appointment(db.Model, TimestampMixin):
    __tablename__ = 'appointments'

    id = db.Column(db.Integer, primary_key=True)
    appointment_id = db.Column(db.String(32), unique=True, nullable=False, index=True)  # e.g. APT1730455200000123
    patient_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    doctor_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    created_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)

    scheduled_at = db.Column(db.DateTime, nullable=False, index=True)
    status = db.Column(db.String(20), default='scheduled', nullable=False, index=True)
    reason = db.Column(db.String(500), nullable=False, default='General consultation')
    notes = db.Column(db.String(1000))

    # Set on the matching status transition
    confirmed_at = db.Column(db.DateTime)
    checked_in_at = db.Column(db.DateTime)
    started_at = db.Column(db.DateTime)
    completed_at = db.Column(db.DateTime)
    cancelled_at = db.Column(db.DateTime)
    reminder_sent_at = db.Column(db.DateTime)

    patient = db.relationship('User', foreign_keys=[patient_id])
    doctor = db.relationship('User', foreign_keys=[doctor_id])

    @property
    def date(self):
        return self.scheduled_at.strftime('%Y-%m-%d')

    @property
    def time(self):
        return self.scheduled_at.strftime('%H:%M')

    def to_dict(self):
        return {
            'id': self.id,
            'appointmentId': self.appointment_id,
            'patientName': self.patient.full_name if self.patient else None,
            'doctorName': self.doctor.doctor_name if self.doctor else None,
            'date': self.date,
            'time': self.time,
            'status': self.status,
            'reason': self.reason,
            'notes': self.notes,
            'phone': self.patient.phone if self.patient else None,
            'email': self.patient.email if self.patient else None,
            'confirmedAt': isoformat(self.confirmed_at),
            'checkedInAt': isoformat(self.checked_in_at),
            'startedAt': isoformat(self.started_at),
            'completedAt': isoformat(self.completed_at),
            'cancelledAt': isoformat(self.cancelled_at),
        }

    def __repr__(self):
        return f"<Appointment {self.appointment_id} - {self.status} on {self.scheduled_at}>"
