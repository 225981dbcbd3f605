from flask import Blueprint, Response, current_app, request, jsonify
from flask_jwt_extended import jwt_required
from sqlalchemy import or_
from sqlalchemy.orm import joinedload
import logging

from clinic_api.errors import NotFoundError, ValidationError
from clinic_api.extensions import db
from clinic_api.models import Appointment, Patient, Payment
from clinic_api.routes.patient import get_patient_or_404
from clinic_api.schemas import PaymentCreate, PaymentUpdate
from clinic_api.services.side_effects import notify_payment_created
from clinic_api.utils.csv_export import to_csv
from clinic_api.utils.db import transaction
from clinic_api.utils.resolvers import has_patient_identifier, parse_date_range, resolve_patient_identifier

logger = logging.getLogger(__name__)

payment_bp = Blueprint('payment', __name__, url_prefix='/api/payments')

LIST_LIMIT = 1000

CSV_HEADERS = (
    'Payment Code', 'Patient', 'Patient Code', 'Appointment Code', 'Date',
    'Amount', 'Currency', 'Method', 'Status', 'Description',
)


def _get_payment_or_404(payment_id):
    payment = db.session.get(Payment, payment_id)
    if not payment:
        raise NotFoundError('Payment not found')
    return payment


def _check_appointment(appointment_id, patient_id):
    """Linked appointment must exist and belong to the same patient."""
    if appointment_id is None:
        return
    appt = db.session.get(Appointment, appointment_id)
    if not appt:
        raise NotFoundError('Appointment not found')
    if appt.patient_id != patient_id:
        raise ValidationError('Appointment belongs to a different patient')


def _filtered_query():
    """Payments matching search/method/status/from/to query params, newest first."""
    search = request.args.get('search', '', type=str).strip()
    method = request.args.get('method', '', type=str).strip()
    status = request.args.get('status', '', type=str).strip()
    start, end = parse_date_range(request.args)

    query = (
        Payment.query
        .join(Patient, Patient.id == Payment.patient_id)
        .options(joinedload(Payment.patient), joinedload(Payment.appointment))
    )
    if search:
        like = f'%{search}%'
        query = query.filter(or_(
            Payment.payment_code.ilike(like),
            Patient.name.ilike(like),
            Patient.patient_code.ilike(like),
        ))
    if method:
        query = query.filter(Payment.method == method)
    if status:
        query = query.filter(Payment.status == status)
    if start:
        query = query.filter(Payment.created_at >= start)
    if end:
        query = query.filter(Payment.created_at <= end)

    return query.order_by(Payment.created_at.desc(), Payment.id.desc())


@payment_bp.route('', methods=['GET'])
@jwt_required()
def list_payments():
    """
    List payments
    Query params: search, method, status, from, to
    """
    payments = _filtered_query().limit(LIST_LIMIT).all()
    return jsonify({
        'success': True,
        'data': [p.to_dict() for p in payments]
    }), 200


@payment_bp.route('/export/csv', methods=['GET'])
@jwt_required()
def export_csv():
    """Same filters as the list, no row limit, as a payments.csv download"""
    rows = []
    for p in _filtered_query().all():
        rows.append((
            p.payment_code,
            p.patient.name if p.patient else '',
            p.patient.patient_code if p.patient else '',
            p.appointment.appt_code if p.appointment else '',
            p.created_at.strftime('%Y-%m-%d %H:%M:%S') if p.created_at else '',
            f'{float(p.amount):.2f}',
            p.currency,
            p.method,
            p.status,
            p.description,
        ))

    return Response(
        to_csv(CSV_HEADERS, rows),
        mimetype='text/csv',
        headers={'Content-Disposition': 'attachment; filename="payments.csv"'}
    )


@payment_bp.route('/<int:payment_id>', methods=['GET'])
@jwt_required()
def get_payment(payment_id):
    payment = _get_payment_or_404(payment_id)
    return jsonify({
        'success': True,
        'data': payment.to_dict()
    }), 200


@payment_bp.route('', methods=['POST'])
@jwt_required()
def create_payment():
    """Record a payment, then (best effort) email the patient a receipt"""
    body = PaymentCreate.model_validate(request.get_json(silent=True) or {})
    patient = get_patient_or_404(resolve_patient_identifier(body.identifier_payload()))
    _check_appointment(body.appointment_id, patient.id)

    with transaction() as session:
        payment = Payment(
            patient_id=patient.id,
            appointment_id=body.appointment_id,
            amount=body.amount,
            currency=body.currency or current_app.config['DEFAULT_CURRENCY'],
            method=body.method,
            status=body.status,
            description=body.description,
            transaction_ref=body.transaction_ref,
            last4=body.last4,
        )
        session.add(payment)

    logger.info(f"Payment recorded: {payment.payment_code} ({payment.status})")

    email = notify_payment_created(payment)

    return jsonify({
        'success': True,
        'data': payment.to_dict(),
        'email_sent': email.ok
    }), 201


@payment_bp.route('/<int:payment_id>', methods=['PUT'])
@jwt_required()
def update_payment(payment_id):
    """Partial update; explicit null/"" clears nullable fields"""
    payment = _get_payment_or_404(payment_id)
    body = PaymentUpdate.model_validate(request.get_json(silent=True) or {})
    if not body.model_fields_set:
        raise ValidationError('No fields to update')

    changes = body.changes(
        'appointment_id', 'amount', 'currency', 'method', 'status',
        'description', 'transaction_ref', 'last4',
    )
    for field in ('amount', 'currency', 'method', 'status'):
        if field in changes and changes[field] is None:
            raise ValidationError(f'{field} cannot be null')

    if has_patient_identifier(body.identifier_payload()):
        changes['patient_id'] = get_patient_or_404(
            resolve_patient_identifier(body.identifier_payload())
        ).id

    patient_id = changes.get('patient_id', payment.patient_id)
    appointment_id = changes.get('appointment_id', payment.appointment_id)
    if 'patient_id' in changes or 'appointment_id' in changes:
        _check_appointment(appointment_id, patient_id)

    with transaction():
        for field, value in changes.items():
            setattr(payment, field, value)

    return jsonify({
        'success': True,
        'data': payment.to_dict()
    }), 200


@payment_bp.route('/<int:payment_id>/refund', methods=['PATCH'])
@jwt_required()
def refund_payment(payment_id):
    """Mark as refunded; repeating the call is a no-op with the same response"""
    payment = _get_payment_or_404(payment_id)

    if payment.status != 'refunded':
        with transaction():
            payment.status = 'refunded'
        logger.info(f"Payment refunded: {payment.payment_code}")

    return jsonify({
        'success': True,
        'data': payment.to_dict()
    }), 200


@payment_bp.route('/<int:payment_id>', methods=['DELETE'])
@jwt_required()
def delete_payment(payment_id):
    payment = _get_payment_or_404(payment_id)

    with transaction() as session:
        session.delete(payment)

    return jsonify({
        'success': True,
        'message': 'Payment deleted'
    }), 200
