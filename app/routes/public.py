"""
Unauthenticated endpoints used by the public booking page.
"""
from flask import Blueprint, jsonify

from app.models import User
from app.services.appointment_service import book_appointment
from app.utils.request import get_json_body

public_bp = Blueprint('public', __name__, url_prefix='/api/public')


@public_bp.route('/appointments', methods=['POST'])
def create_public_appointment():
    """
    Book an appointment.
    Body: { patientName, doctorName, date: YYYY-MM-DD, time: HH:MM, reason?, phone?, email? }
    """
    appointment = book_appointment(get_json_body())
    return jsonify({
        'success': True,
        'message': 'Appointment created successfully',
        'data': appointment.to_dict(),
    }), 201


@public_bp.route('/doctors', methods=['GET'])
def list_public_doctors():
    doctors = (
        User.query
        .filter_by(role='doctor', is_active=True)
        .order_by(User.last_name.asc(), User.first_name.asc())
        .all()
    )
    return jsonify({
        'success': True,
        'data': [doctor.to_public_doctor_dict() for doctor in doctors],
    }), 200
