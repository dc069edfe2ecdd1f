from flask import Blueprint, jsonify

from app.services.appointment_service import update_appointment
from app.utils.auth import auth_required, current_user
from app.utils.request import get_json_body

# Only PATCH on a single appointment is handled here; every other
# /api/appointments request is proxied to the clinic service.
appointment_bp = Blueprint('appointment', __name__, url_prefix='/api/appointments')


@appointment_bp.route('/<appointment_id>', methods=['PATCH'])
@auth_required
def patch_appointment(appointment_id):
    """
    Change status, schedule or notes.
    Body: { status?, scheduledAt? | date?, time?, notes? }
    """
    appointment = update_appointment(appointment_id, get_json_body(), current_user())
    return jsonify({
        'success': True,
        'message': 'Appointment updated successfully',
        'data': appointment.to_dict(),
    }), 200
