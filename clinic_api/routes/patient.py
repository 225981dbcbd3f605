from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required
from sqlalchemy import or_
import logging

from clinic_api.errors import NotFoundError, ValidationError
from clinic_api.extensions import db
from clinic_api.models import Patient
from clinic_api.schemas import PatientCreate, PatientUpdate
from clinic_api.utils.db import transaction
from clinic_api.utils.decorators import require_role

logger = logging.getLogger(__name__)

patient_bp = Blueprint('patient', __name__, url_prefix='/api/patients')

PATIENT_FIELDS = (
    'name', 'email', 'phone', 'gender', 'dob', 'blood_type',
    'allergies', 'medical_info', 'active',
)


def get_patient_or_404(patient_id):
    patient = db.session.get(Patient, patient_id)
    if not patient:
        raise NotFoundError('Patient not found')
    return patient


@patient_bp.route('', methods=['GET'])
@jwt_required()
def list_patients():
    """
    List patients with pagination and search
    Query params: page, limit, query
    """
    # Step 1: Get query parameters
    page = request.args.get('page', 1, type=int)
    limit = request.args.get('limit', 20, type=int)
    search = request.args.get('query', '', type=str).strip()

    # Step 2: Validate pagination
    if page < 1:
        page = 1
    limit = min(100, max(1, limit))

    # Step 3: Apply search filter if provided
    query = Patient.query
    if search:
        like = f'%{search}%'
        query = query.filter(or_(
            Patient.name.ilike(like),
            Patient.email.ilike(like),
            Patient.phone.ilike(like),
            Patient.patient_code.ilike(like),
        ))

    # Step 4: Paginate, newest first
    patients = query.order_by(Patient.created_at.desc(), Patient.id.desc()).paginate(
        page=page,
        per_page=limit,
        error_out=False
    )

    return jsonify({
        'success': True,
        'data': [p.to_dict() for p in patients.items],
        'pagination': {
            'page': page,
            'limit': limit,
            'total': patients.total,
            'pages': patients.pages
        }
    }), 200


@patient_bp.route('/<int:patient_id>', methods=['GET'])
@jwt_required()
def get_patient(patient_id):
    """Get a single patient"""
    patient = get_patient_or_404(patient_id)
    return jsonify({
        'success': True,
        'data': patient.to_dict()
    }), 200


@patient_bp.route('', methods=['POST'])
@jwt_required()
def create_patient():
    """Create a patient; the P-NNN code is assigned on insert"""
    body = PatientCreate.model_validate(request.get_json(silent=True) or {})

    with transaction() as session:
        patient = Patient(**body.changes(*PATIENT_FIELDS))
        patient.name = body.name
        if patient.active is None:
            patient.active = True
        session.add(patient)

    logger.info(f"Patient created: {patient.patient_code}")
    return jsonify({
        'success': True,
        'data': patient.to_dict()
    }), 201


@patient_bp.route('/<int:patient_id>', methods=['PUT'])
@jwt_required()
def update_patient(patient_id):
    """
    Partial update: absent fields keep their value, explicit null/"" clears
    nullable fields
    """
    patient = get_patient_or_404(patient_id)
    body = PatientUpdate.model_validate(request.get_json(silent=True) or {})
    changes = body.changes(*PATIENT_FIELDS)

    if 'name' in changes and changes['name'] is None:
        raise ValidationError('Name cannot be empty')
    if 'active' in changes and changes['active'] is None:
        changes.pop('active')

    with transaction():
        for field, value in changes.items():
            setattr(patient, field, value)

    return jsonify({
        'success': True,
        'data': patient.to_dict()
    }), 200


@patient_bp.route('/<int:patient_id>', methods=['DELETE'])
@jwt_required()
@require_role('admin')
def delete_patient(patient_id):
    """Hard delete (admin only); notes, appointments and payments go with it"""
    patient = get_patient_or_404(patient_id)
    code = patient.patient_code

    with transaction() as session:
        session.delete(patient)

    logger.info(f"Patient deleted: {code}")
    return jsonify({
        'success': True,
        'message': 'Patient deleted'
    }), 200
