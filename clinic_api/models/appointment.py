from decimal import Decimal

from clinic_api.extensions import db
from .base import TimestampMixin, assign_code_after_insert, format_timestamp, to_number

APPOINTMENT_TYPES = ('consultation', 'follow-up', 'checkup', 'urgent')
APPOINTMENT_STATUSES = ('scheduled', 'completed', 'cancelled', 'no-show')


class Appointment(db.Model, TimestampMixin):
    __tablename__ = 'appointments'

    id = db.Column(db.Integer, primary_key=True)
    appt_code = db.Column(db.String(20), unique=True, nullable=True, index=True)  # e.g., APT-000123
    patient_id = db.Column(db.Integer, db.ForeignKey('patients.id', ondelete='CASCADE'), nullable=False, index=True)

    start_time = db.Column(db.DateTime, nullable=False, index=True)
    duration_min = db.Column(db.Integer, nullable=False, default=30)
    type = db.Column(db.String(20), nullable=False)
    status = db.Column(db.String(20), nullable=False, default='scheduled', index=True)
    fee = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    notes = db.Column(db.Text)

    created_by = db.Column(db.Integer, db.ForeignKey('app_users.id', ondelete='SET NULL'), nullable=True)

    # Payments survive an appointment delete with appointment_id cleared
    payments = db.relationship('Payment', backref='appointment', lazy=True)

    @property
    def reference(self):
        """Human reference used on invoices and emails."""
        return f"#APT-{self.id:06d}"

    def to_dict(self, paid_amount=None):
        data = {
            'id': self.id,
            'appt_code': self.appt_code,
            'patient_id': self.patient_id,
            'patient_name': self.patient.name if self.patient else None,
            'patient_code': self.patient.patient_code if self.patient else None,
            'start_time': format_timestamp(self.start_time),
            'duration_min': self.duration_min,
            'type': self.type,
            'status': self.status,
            'fee': to_number(self.fee),
            'notes': self.notes,
            'created_by': self.created_by,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }
        if paid_amount is not None:
            # due is derived on every read and may go negative on overpayment
            paid = Decimal(str(paid_amount))
            data['paid_amount'] = float(paid)
            data['due'] = float(Decimal(str(self.fee or 0)) - paid)
        return data

    def __repr__(self):
        return f"<Appointment {self.appt_code} patient={self.patient_id} at {self.start_time}>"


assign_code_after_insert(Appointment, 'appt_code', 'APT-{id:06d}')
