"""
Patient notes - always scoped by the owning patient id
"""
from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required
import logging

from clinic_api.errors import NotFoundError, ValidationError
from clinic_api.models import PatientNote
from clinic_api.routes.patient import get_patient_or_404
from clinic_api.schemas import NoteCreate, NoteUpdate
from clinic_api.utils.db import transaction
from clinic_api.utils.decorators import current_user_id

logger = logging.getLogger(__name__)

note_bp = Blueprint('note', __name__, url_prefix='/api/patients/<int:patient_id>/notes')


def _get_note_or_404(patient_id, note_id):
    note = PatientNote.query.filter_by(id=note_id, patient_id=patient_id).first()
    if not note:
        raise NotFoundError('Note not found')
    return note


@note_bp.route('', methods=['GET'])
@jwt_required()
def list_notes(patient_id):
    """Notes for a patient, newest first"""
    notes = (
        PatientNote.query
        .filter_by(patient_id=patient_id)
        .order_by(PatientNote.created_at.desc(), PatientNote.id.desc())
        .all()
    )
    return jsonify({
        'success': True,
        'data': [n.to_dict() for n in notes]
    }), 200


@note_bp.route('', methods=['POST'])
@jwt_required()
def create_note(patient_id):
    get_patient_or_404(patient_id)
    body = NoteCreate.model_validate(request.get_json(silent=True) or {})

    with transaction() as session:
        note = PatientNote(
            patient_id=patient_id,
            title=body.title,
            content=body.content,
            author_user_id=current_user_id(),
        )
        session.add(note)

    return jsonify({
        'success': True,
        'data': note.to_dict()
    }), 201


@note_bp.route('/<int:note_id>', methods=['PUT'])
@jwt_required()
def update_note(patient_id, note_id):
    note = _get_note_or_404(patient_id, note_id)
    body = NoteUpdate.model_validate(request.get_json(silent=True) or {})
    changes = body.changes('title', 'content')

    if 'title' in changes and not changes['title']:
        raise ValidationError('Title cannot be empty')

    with transaction():
        for field, value in changes.items():
            setattr(note, field, value)

    return jsonify({
        'success': True,
        'data': note.to_dict()
    }), 200


@note_bp.route('/<int:note_id>', methods=['DELETE'])
@jwt_required()
def delete_note(patient_id, note_id):
    note = _get_note_or_404(patient_id, note_id)

    with transaction() as session:
        session.delete(note)

    return jsonify({
        'success': True,
        'message': 'Note deleted'
    }), 200
