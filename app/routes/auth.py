import logging
from datetime import datetime

from flask import Blueprint, jsonify

from app.errors import (
    ConflictError,
    ForbiddenError,
    InvalidCredentialsError,
    NotFoundError,
    ValidationError,
)
from app.extensions import db
from app.models import ROLES, User
from app.utils.auth import (
    auth_required,
    clear_auth_cookie,
    current_user,
    issue_token,
    revoke_current_token,
    set_auth_cookie,
)
from app.utils.request import get_json_body, text_field

logger = logging.getLogger(__name__)

auth_bp = Blueprint('auth', __name__, url_prefix='/api/auth')

# Roles a visitor may pick for themselves; admins are only created by admins
SELF_REGISTRATION_ROLES = tuple(role for role in ROLES if role != 'admin')


@auth_bp.route('/login', methods=['POST'])
def login():
    """Authenticate by email/password, set the auth_token cookie"""
    data = get_json_body()
    email = text_field(data, 'email').lower()
    password = text_field(data, 'password', strip=False)

    if not email or not password:
        raise ValidationError('Email and password are required.', code='MISSING_CREDENTIALS')

    user = User.query.filter_by(email=email).first()
    if not user or not user.check_password(password):
        logger.info(f"Failed login for {email}")
        raise InvalidCredentialsError()

    if not user.is_active:
        raise ForbiddenError('Account is deactivated.', code='ACCOUNT_DISABLED')

    user.last_login = datetime.utcnow()
    db.session.commit()

    token = issue_token(user)
    response = jsonify({
        'success': True,
        'message': 'Login successful',
        'user': user.to_dict(),
        'token': token,
    })
    return set_auth_cookie(response, token), 200


@auth_bp.route('/register', methods=['POST'])
def register():
    data = get_json_body()
    email = text_field(data, 'email').lower()
    password = text_field(data, 'password', strip=False)
    first_name = text_field(data, 'firstName')
    last_name = text_field(data, 'lastName')
    role = text_field(data, 'role') or 'patient'

    if not email or not password or not first_name or not last_name:
        raise ValidationError('All fields are required.', code='MISSING_FIELDS')
    if role not in ROLES:
        raise ValidationError(f'Unknown role: {role}', code='INVALID_ROLE')
    if role not in SELF_REGISTRATION_ROLES:
        raise ForbiddenError(f'Cannot self-register with role {role}')

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
    user.set_password(password)
    db.session.add(user)
    db.session.commit()
    logger.info(f"Registered {role} {email}")

    token = issue_token(user)
    response = jsonify({
        'success': True,
        'message': 'User registered successfully',
        'user': user.to_dict(),
        'token': token,
    })
    return set_auth_cookie(response, token), 201


@auth_bp.route('/logout', methods=['POST'])
def logout():
    """Clear the auth cookie; the token itself stays valid until expiry unless revocation is enabled."""
    revoked = revoke_current_token()
    response = jsonify({
        'success': True,
        'message': 'Logged out successfully',
        'revoked': revoked,
    })
    return clear_auth_cookie(response), 200


@auth_bp.route('/me', methods=['GET'])
@auth_required
def get_current_user():
    user = db.session.get(User, current_user().user_id)
    if not user:
        raise NotFoundError('User not found.', code='USER_NOT_FOUND')

    return jsonify({'success': True, 'user': user.to_dict()}), 200
