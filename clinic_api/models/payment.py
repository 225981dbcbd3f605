from clinic_api.extensions import db
from .base import TimestampMixin, assign_code_after_insert, to_number

PAYMENT_METHODS = ('cash', 'card', 'online', 'bank-transfer')
PAYMENT_STATUSES = ('paid', 'pending', 'failed', 'refunded')


class Payment(db.Model, TimestampMixin):
    __tablename__ = 'payments'

    id = db.Column(db.Integer, primary_key=True)
    payment_code = db.Column(db.String(20), unique=True, nullable=True, index=True)  # e.g., PAY-000042
    patient_id = db.Column(db.Integer, db.ForeignKey('patients.id', ondelete='CASCADE'), nullable=False, index=True)
    appointment_id = db.Column(db.Integer, db.ForeignKey('appointments.id', ondelete='SET NULL'), nullable=True, index=True)

    amount = db.Column(db.Numeric(10, 2), nullable=False)
    currency = db.Column(db.String(3), nullable=False)
    method = db.Column(db.String(20), nullable=False)
    status = db.Column(db.String(20), nullable=False, index=True)  # paid, pending, failed, refunded

    description = db.Column(db.Text)
    transaction_ref = db.Column(db.String(100))
    last4 = db.Column(db.String(4))

    def to_dict(self):
        return {
            'id': self.id,
            'payment_code': self.payment_code,
            'patient_id': self.patient_id,
            'patient_name': self.patient.name if self.patient else None,
            'patient_code': self.patient.patient_code if self.patient else None,
            'appointment_id': self.appointment_id,
            'appt_code': self.appointment.appt_code if self.appointment else None,
            'amount': to_number(self.amount),
            'currency': self.currency,
            'method': self.method,
            'status': self.status,
            'description': self.description,
            'transaction_ref': self.transaction_ref,
            'last4': self.last4,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<Payment {self.payment_code} {self.amount} {self.currency} ({self.status})>"


assign_code_after_insert(Payment, 'payment_code', 'PAY-{id:06d}')
