import logging

from flask import Blueprint, jsonify, request

from app.errors import ConflictError, NotFoundError, ValidationError
from app.extensions import db
from app.models import ROLES, User
from app.utils.auth import auth_required, current_user, require_role
from app.utils.request import get_json_body, page_args, text_field

logger = logging.getLogger(__name__)

admin_bp = Blueprint('admin', __name__, url_prefix='/api/admin')


def _parse_fee(value):
    if value in (None, ''):
        return 0
    try:
        fee = float(value)
    except (TypeError, ValueError):
        raise ValidationError('consultationFee must be a number', code='INVALID_FIELD')
    if fee < 0:
        raise ValidationError('consultationFee must not be negative', code='INVALID_FIELD')
    return fee


def _create_staff(role):
    data = get_json_body()
    email = text_field(data, 'email').lower()
    password = text_field(data, 'password', strip=False)
    first_name = text_field(data, 'firstName')
    last_name = text_field(data, 'lastName')

    if not email or not password or not first_name or not last_name:
        raise ValidationError('email, password, firstName and lastName are required.', code='MISSING_FIELDS')

    if User.query.filter_by(email=email).first():
        raise ConflictError('User already exists.', code='USER_EXISTS')

    user = User(
        email=email,
        first_name=first_name,
        last_name=last_name,
        phone=text_field(data, 'phone') or None,
        role=role,
        is_active=True,
    )
    if role == 'doctor':
        license_number = text_field(data, 'licenseNumber') or None
        if license_number and User.query.filter_by(license_number=license_number).first():
            raise ConflictError('License number already registered.', code='USER_EXISTS')
        user.specialization = data.get('specialization')
        user.qualification = data.get('qualification')
        user.license_number = license_number
        user.consultation_fee = _parse_fee(data.get('consultationFee'))

    user.set_password(password)
    db.session.add(user)
    db.session.commit()
    logger.info(f"Admin {current_user().user_id} created {role} {email}")

    return jsonify({'success': True, 'data': user.to_dict()}), 201


@admin_bp.route('/doctors', methods=['POST'])
@auth_required
@require_role('admin')
def create_doctor():
    """
    Create a doctor account.
    Body: { email, password, firstName, lastName, phone?, specialization?, qualification?,
            licenseNumber?, consultationFee? }
    """
    return _create_staff('doctor')


@admin_bp.route('/receptionists', methods=['POST'])
@auth_required
@require_role('admin')
def create_receptionist():
    """Create a receptionist account. Body: { email, password, firstName, lastName, phone? }"""
    return _create_staff('receptionist')


@admin_bp.route('/users', methods=['GET'])
@auth_required
@require_role('admin')
def list_users():
    """
    List users.
    Query params:
        role: filter by role (optional)
        isActive: true/false (optional)
        page, limit: pagination
    """
    page, limit = page_args()
    query = User.query

    role = request.args.get('role')
    if role:
        if role not in ROLES:
            raise ValidationError(f'Unknown role: {role}', code='INVALID_ROLE')
        query = query.filter(User.role == role)

    is_active = request.args.get('isActive')
    if is_active is not None:
        query = query.filter(User.is_active == (is_active.lower() == 'true'))

    pagination = query.order_by(User.created_at.desc(), User.id.desc()).paginate(
        page=page,
        per_page=limit,
        error_out=False
    )

    return jsonify({
        'success': True,
        'data': [user.to_dict() for user in pagination.items],
        'pagination': {
            'page': page,
            'limit': limit,
            'total': pagination.total,
            'pages': pagination.pages,
            'has_next': pagination.has_next,
            'has_prev': pagination.has_prev
        }
    }), 200


@admin_bp.route('/users/<int:user_id>', methods=['PATCH'])
@auth_required
@require_role('admin')
def update_user(user_id):
    """Update role, names, phone or activation. Users are deactivated, never deleted."""
    user = db.session.get(User, user_id)
    if not user:
        raise NotFoundError('User not found.', code='USER_NOT_FOUND')

    data = get_json_body()
    if 'role' in data:
        if data['role'] not in ROLES:
            raise ValidationError(f"Unknown role: {data['role']}", code='INVALID_ROLE')
        user.role = data['role']
    if 'firstName' in data:
        user.first_name = text_field(data, 'firstName') or user.first_name
    if 'lastName' in data:
        user.last_name = text_field(data, 'lastName')
    if 'phone' in data:
        user.phone = text_field(data, 'phone') or None
    if 'isActive' in data:
        if user.id == current_user().user_id and not data['isActive']:
            raise ValidationError('Admins cannot deactivate themselves.', code='INVALID_FIELD')
        user.is_active = bool(data['isActive'])

    db.session.commit()
    logger.info(f"Admin {current_user().user_id} updated user {user.id}: {sorted(data)}")

    return jsonify({'success': True, 'data': user.to_dict()}), 200
