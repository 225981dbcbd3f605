"""
Current user's profile and avatar
"""
from flask import Blueprint, current_app, request, jsonify, send_from_directory
from flask_jwt_extended import jwt_required
from werkzeug.utils import secure_filename
import logging
import os
import time

from clinic_api.errors import AuthError, ConflictError, ValidationError, file_too_large
from clinic_api.extensions import db
from clinic_api.models import User
from clinic_api.schemas import ProfileUpdate
from clinic_api.utils.db import transaction
from clinic_api.utils.decorators import current_user_id

logger = logging.getLogger(__name__)

profile_bp = Blueprint('profile', __name__, url_prefix='/api/me')
# Registered under /<basename of UPLOAD_DIR> by create_app
uploads_bp = Blueprint('uploads', __name__)

AVATAR_TYPES = {
    'image/png': '.png',
    'image/jpeg': '.jpg',
    'image/gif': '.gif',
    'image/webp': '.webp',
}


def upload_dir():
    return os.path.abspath(current_app.config['UPLOAD_DIR'])


def upload_url_prefix(app_config):
    return '/' + os.path.basename(os.path.normpath(app_config['UPLOAD_DIR']))


def _current_user():
    user = db.session.get(User, current_user_id())
    if not user or not user.is_active:
        raise AuthError('Unauthorized')
    return user


@profile_bp.route('', methods=['GET'])
@jwt_required()
def get_profile():
    return jsonify({
        'success': True,
        'data': _current_user().to_dict()
    }), 200


@profile_bp.route('', methods=['PUT'])
@jwt_required()
def update_profile():
    """Update name, email and/or password (new_password, at least 6 chars)"""
    user = _current_user()
    body = ProfileUpdate.model_validate(request.get_json(silent=True) or {})
    changes = body.changes('name', 'email', 'new_password')

    if 'name' in changes and not changes['name']:
        raise ValidationError('Name cannot be empty')
    if 'email' in changes:
        if not changes['email']:
            raise ValidationError('Email cannot be empty')
        taken = User.query.filter(User.email == changes['email'], User.id != user.id).first()
        if taken:
            raise ConflictError('Email already in use')

    with transaction():
        if changes.get('name'):
            user.name = changes['name']
        if changes.get('email'):
            user.email = changes['email']
        if changes.get('new_password'):
            user.set_password(changes['new_password'])

    return jsonify({
        'success': True,
        'data': user.to_dict()
    }), 200


@profile_bp.route('/avatar', methods=['POST'])
@jwt_required()
def upload_avatar():
    """Multipart field "avatar": png/jpeg/gif/webp, at most AVATAR_MAX_BYTES"""
    user = _current_user()
    avatar = request.files.get('avatar')
    if not avatar or not avatar.filename:
        raise ValidationError('No file uploaded (field "avatar")')

    mimetype = (avatar.mimetype or '').lower()
    if mimetype not in AVATAR_TYPES:
        raise ValidationError(f"Invalid file type. Allowed: {', '.join(sorted(AVATAR_TYPES))}")

    max_bytes = current_app.config['AVATAR_MAX_BYTES']
    content = avatar.stream.read(max_bytes + 1)
    if len(content) > max_bytes:
        raise file_too_large(max_bytes)

    ext = os.path.splitext(secure_filename(avatar.filename))[1].lower()
    if ext not in ('.jpeg', *AVATAR_TYPES.values()):
        ext = AVATAR_TYPES[mimetype]
    filename = f"avatar_{int(time.time() * 1000)}{ext}"

    folder = upload_dir()
    os.makedirs(folder, exist_ok=True)
    with open(os.path.join(folder, filename), 'wb') as fh:
        fh.write(content)

    with transaction():
        user.avatar_url = f"{upload_url_prefix(current_app.config)}/{filename}"

    logger.info(f"Avatar updated for user {user.id}: {filename}")
    return jsonify({
        'success': True,
        'data': user.to_dict()
    }), 200


@uploads_bp.route('/<path:filename>', methods=['GET'])
def serve_upload(filename):
    return send_from_directory(upload_dir(), filename)
