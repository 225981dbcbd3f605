from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required
from sqlalchemy import func, or_
import logging

from clinic_api.errors import NotFoundError, ValidationError
from clinic_api.extensions import db
from clinic_api.models import Appointment, Patient, Payment
from clinic_api.routes.patient import get_patient_or_404
from clinic_api.schemas import AppointmentCreate, AppointmentUpdate, AppointmentStatusUpdate
from clinic_api.services.side_effects import invoice_appointment, notify_appointment_created
from clinic_api.utils.db import transaction
from clinic_api.utils.decorators import current_user_id
from clinic_api.utils.resolvers import (
    has_patient_identifier,
    parse_date_range,
    parse_timestamp,
    resolve_patient_identifier,
    resolve_start_timestamp,
)

logger = logging.getLogger(__name__)

appointment_bp = Blueprint('appointment', __name__, url_prefix='/api/appointments')

LIST_LIMIT = 500
UNPAID_STATUSES = ('scheduled', 'completed')


def _paid_subquery():
    """Sum of paid payments per appointment."""
    return (
        db.session.query(
            Payment.appointment_id.label('appointment_id'),
            func.sum(Payment.amount).label('paid'),
        )
        .filter(Payment.status == 'paid', Payment.appointment_id.isnot(None))
        .group_by(Payment.appointment_id)
        .subquery()
    )


def _with_paid():
    """Appointments joined to their patient, each row paired with paid_amount and a due expression."""
    paid_sq = _paid_subquery()
    paid = func.coalesce(paid_sq.c.paid, 0)
    query = (
        db.session.query(Appointment, paid.label('paid_amount'))
        .join(Patient, Patient.id == Appointment.patient_id)
        .outerjoin(paid_sq, paid_sq.c.appointment_id == Appointment.id)
    )
    return query, Appointment.fee - paid


def _search_filter(term):
    like = f'%{term}%'
    return or_(
        Patient.name.ilike(like),
        Patient.patient_code.ilike(like),
        Appointment.appt_code.ilike(like),
    )


def _load_with_paid(appointment_id):
    query, _ = _with_paid()
    row = query.filter(Appointment.id == appointment_id).first()
    if not row:
        raise NotFoundError('Appointment not found')
    return row


def _resolve_patient(body):
    patient_id = resolve_patient_identifier(body.identifier_payload())
    return get_patient_or_404(patient_id)


@appointment_bp.route('', methods=['GET'])
@jwt_required()
def list_appointments():
    """
    List appointments, newest first
    Query params: search, status, from, to (YYYY-MM-DD, inclusive)
    """
    search = request.args.get('search', '', type=str).strip()
    status = request.args.get('status', '', type=str).strip()
    start, end = parse_date_range(request.args)

    query, _ = _with_paid()
    if search:
        query = query.filter(_search_filter(search))
    if status:
        query = query.filter(Appointment.status == status)
    if start:
        query = query.filter(Appointment.start_time >= start)
    if end:
        query = query.filter(Appointment.start_time <= end)

    rows = query.order_by(Appointment.start_time.desc(), Appointment.id.desc()).limit(LIST_LIMIT).all()

    return jsonify({
        'success': True,
        'data': [appt.to_dict(paid_amount=paid) for appt, paid in rows]
    }), 200


@appointment_bp.route('/unpaid', methods=['GET'])
@jwt_required()
def list_unpaid():
    """Scheduled or completed appointments that still have something due"""
    search = request.args.get('q', '', type=str).strip()

    query, due = _with_paid()
    query = query.filter(Appointment.status.in_(UNPAID_STATUSES), due > 0)
    if search:
        query = query.filter(_search_filter(search))

    rows = query.order_by(Appointment.start_time.desc(), Appointment.id.desc()).limit(LIST_LIMIT).all()

    return jsonify({
        'success': True,
        'data': [appt.to_dict(paid_amount=paid) for appt, paid in rows]
    }), 200


@appointment_bp.route('/<int:appointment_id>', methods=['GET'])
@jwt_required()
def get_appointment(appointment_id):
    appt, paid = _load_with_paid(appointment_id)
    return jsonify({
        'success': True,
        'data': appt.to_dict(paid_amount=paid)
    }), 200


@appointment_bp.route('', methods=['POST'])
@jwt_required()
def create_appointment():
    """
    Create an appointment, then (best effort) invoice it through Stripe and
    email the patient a confirmation with a calendar invite.
    """
    # Step 1: Validate body and resolve references
    body = AppointmentCreate.model_validate(request.get_json(silent=True) or {})
    patient = _resolve_patient(body)
    start_time = resolve_start_timestamp(body.start_time, body.date, body.time)

    # Step 2: Persist
    with transaction() as session:
        appt = Appointment(
            patient_id=patient.id,
            start_time=parse_timestamp(start_time),
            duration_min=body.duration_min,
            type=body.type,
            status=body.status,
            fee=body.fee,
            notes=body.notes,
            created_by=current_user_id(),
        )
        session.add(appt)

    logger.info(f"Appointment created: {appt.appt_code} for {patient.patient_code}")

    # Step 3: Side effects (never fail the request)
    items = [item.model_dump() for item in body.items] if body.items else None
    invoice = invoice_appointment(appt, items=items)
    pay_url = invoice.data.get('hosted_url') if invoice.ok else None
    email = notify_appointment_created(appt, pay_url=pay_url)

    appt, paid = _load_with_paid(appt.id)
    return jsonify({
        'success': True,
        'data': appt.to_dict(paid_amount=paid),
        'invoice_sent': invoice.ok,
        'invoice_url': pay_url,
        'email_sent': email.ok
    }), 201


@appointment_bp.route('/<int:appointment_id>', methods=['PUT'])
@jwt_required()
def update_appointment(appointment_id):
    """
    Partial update. The start time is re-resolved only when start_time, date
    or time is sent; the patient only when an identifier is sent.
    """
    appt = db.session.get(Appointment, appointment_id)
    if not appt:
        raise NotFoundError('Appointment not found')

    body = AppointmentUpdate.model_validate(request.get_json(silent=True) or {})
    if not body.model_fields_set:
        raise ValidationError('No fields to update')

    changes = body.changes('duration_min', 'type', 'status', 'fee', 'notes')
    for field in ('duration_min', 'type', 'status', 'fee'):
        if field in changes and changes[field] is None:
            raise ValidationError(f'{field} cannot be null')

    if body.has_start():
        changes['start_time'] = parse_timestamp(
            resolve_start_timestamp(body.start_time, body.date, body.time)
        )
    if has_patient_identifier(body.identifier_payload()):
        changes['patient_id'] = _resolve_patient(body).id

    with transaction():
        for field, value in changes.items():
            setattr(appt, field, value)

    appt, paid = _load_with_paid(appointment_id)
    return jsonify({
        'success': True,
        'data': appt.to_dict(paid_amount=paid)
    }), 200


@appointment_bp.route('/<int:appointment_id>/status', methods=['PATCH'])
@jwt_required()
def update_status(appointment_id):
    appt = db.session.get(Appointment, appointment_id)
    if not appt:
        raise NotFoundError('Appointment not found')

    body = AppointmentStatusUpdate.model_validate(request.get_json(silent=True) or {})

    with transaction():
        appt.status = body.status

    appt, paid = _load_with_paid(appointment_id)
    return jsonify({
        'success': True,
        'data': appt.to_dict(paid_amount=paid)
    }), 200


@appointment_bp.route('/<int:appointment_id>', methods=['DELETE'])
@jwt_required()
def delete_appointment(appointment_id):
    """Delete an appointment; its payments are kept with appointment_id cleared"""
    appt = db.session.get(Appointment, appointment_id)
    if not appt:
        raise NotFoundError('Appointment not found')

    with transaction() as session:
        session.delete(appt)

    return jsonify({
        'success': True,
        'message': 'Appointment deleted'
    }), 200
