from datetime import datetime
import logging

from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required

from clinic_api.errors import AuthError, ForbiddenError
from clinic_api.extensions import db
from clinic_api.models import User
from clinic_api.schemas import LoginBody
from clinic_api.services.session_service import issue_session, clear_session
from clinic_api.utils.decorators import current_user_id

logger = logging.getLogger(__name__)

auth_bp = Blueprint('auth', __name__, url_prefix='/api/auth')


@auth_bp.route('/login', methods=['POST'])
def login():
    """Login endpoint - verifies credentials and sets the session cookies"""
    body = LoginBody.model_validate(request.get_json(silent=True) or {})

    if not body.email or not body.password:
        raise AuthError('Email and password required')

    user = User.query.filter_by(email=body.email.lower()).first()

    if not user or not user.check_password(body.password):
        logger.info(f"Failed login for {body.email}")
        raise AuthError('Invalid email or password')

    if not user.is_active:
        raise ForbiddenError('Account is deactivated')

    # Update login tracking
    user.last_login = datetime.utcnow()
    db.session.commit()

    response = jsonify({
        'success': True,
        'data': user.to_dict()
    })
    return issue_session(response, user.id), 200


@auth_bp.route('/refresh', methods=['POST'])
@jwt_required(refresh=True, locations=['cookies'])
def refresh():
    """Rotate access, refresh and csrf cookies using the refresh cookie"""
    user = db.session.get(User, current_user_id())
    if not user or not user.is_active:
        raise AuthError('Unauthorized')

    response = jsonify({
        'success': True,
        'data': user.to_dict()
    })
    return issue_session(response, user.id), 200


@auth_bp.route('/logout', methods=['POST'])
def logout():
    """Logout endpoint - clears all session cookies (stateless tokens)"""
    response = jsonify({
        'success': True,
        'message': 'Logged out'
    })
    return clear_session(response), 200
