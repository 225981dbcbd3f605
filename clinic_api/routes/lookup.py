"""
Lightweight option lists for frontend pickers
"""
from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required
from sqlalchemy import or_

from clinic_api.models import Patient

lookup_bp = Blueprint('lookup', __name__, url_prefix='/api/lookups')

LOOKUP_LIMIT = 200


@lookup_bp.route('/patients', methods=['GET'])
@jwt_required()
def patient_options():
    """[{id, label: "Name (P-001)"}], name ascending"""
    search = request.args.get('query', '', type=str).strip()

    query = Patient.query.with_entities(Patient.id, Patient.name, Patient.patient_code)
    if search:
        like = f'%{search}%'
        query = query.filter(or_(
            Patient.name.ilike(like),
            Patient.patient_code.ilike(like),
        ))

    rows = query.order_by(Patient.name.asc(), Patient.id.asc()).limit(LOOKUP_LIMIT).all()

    return jsonify({
        'success': True,
        'data': [{'id': pid, 'label': f"{name} ({code})"} for pid, name, code in rows]
    }), 200
