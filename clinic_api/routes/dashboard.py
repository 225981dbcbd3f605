"""
Dashboard statistics
"""
from datetime import datetime
from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required
from sqlalchemy import func

from clinic_api.extensions import db
from clinic_api.models import Appointment, Patient, Payment
from clinic_api.utils.resolvers import parse_date_range

dashboard_bp = Blueprint('dashboard', __name__, url_prefix='/api/dashboard')


def _between(column, start, end):
    conditions = []
    if start:
        conditions.append(column >= start)
    if end:
        conditions.append(column <= end)
    return conditions


def _paid_sum(*conditions):
    total = (
        db.session.query(func.coalesce(func.sum(Payment.amount), 0))
        .filter(Payment.status == 'paid', *conditions)
        .scalar()
    )
    return float(total or 0)


def _month_start(now):
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


@dashboard_bp.route('/stats', methods=['GET'])
@jwt_required()
def stats():
    """
    Counts and revenue for the optional from/to range plus all-time and
    current-month revenue
    """
    start, end = parse_date_range(request.args)

    patients_count = (
        db.session.query(func.count(Patient.id))
        .filter(*_between(Patient.created_at, start, end))
        .scalar()
    )
    total_appointments = (
        db.session.query(func.count(Appointment.id))
        .filter(*_between(Appointment.start_time, start, end))
        .scalar()
    )
    average_payment = (
        db.session.query(func.avg(Payment.amount))
        .filter(*_between(Payment.created_at, start, end))
        .scalar()
    )

    month_start = _month_start(datetime.utcnow())

    return jsonify({
        'success': True,
        'data': {
            'patients_count': patients_count or 0,
            'total_appointments': total_appointments or 0,
            'revenue_in_range': _paid_sum(*_between(Payment.created_at, start, end)),
            'average_payment': float(average_payment or 0),
            'total_revenue': _paid_sum(),
            'monthly_revenue': _paid_sum(Payment.created_at >= month_start),
        }
    }), 200
