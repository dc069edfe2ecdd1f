"""
Notification outbox: email intents committed in the same transaction as the
domain write that triggered them, then published to the email queue.
"""
import json
from datetime import datetime

from app.extensions import db


class OutboxMessage(db.Model):
    __tablename__ = 'outbox_messages'

    PENDING = 'pending'
    DISPATCHED = 'dispatched'
    FAILED = 'failed'

    id = db.Column(db.Integer, primary_key=True)
    template = db.Column(db.String(64), nullable=False)
    recipient = db.Column(db.String(120), nullable=False)
    payload = db.Column(db.Text, nullable=False)  # JSON data map
    appointment_id = db.Column(db.Integer, db.ForeignKey('appointments.id'), nullable=True, index=True)

    status = db.Column(db.String(16), default=PENDING, nullable=False, index=True)
    attempts = db.Column(db.Integer, default=0, nullable=False)
    last_error = db.Column(db.Text)
    task_id = db.Column(db.String(64))

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)
    dispatched_at = db.Column(db.DateTime)

    appointment = db.relationship('Appointment')

    @property
    def data(self):
        return json.loads(self.payload)

    def __repr__(self):
        return f"<OutboxMessage {self.id} {self.template} -> {self.recipient} ({self.status})>"
