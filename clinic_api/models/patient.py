from clinic_api.extensions import db
from .base import TimestampMixin, assign_code_after_insert

GENDERS = ('male', 'female', 'other')
BLOOD_TYPES = ('A+', 'A-', 'B+', 'B-', 'AB+', 'AB-', 'O+', 'O-')


class Patient(db.Model, TimestampMixin):
    __tablename__ = 'patients'

    id = db.Column(db.Integer, primary_key=True)
    patient_code = db.Column(db.String(20), unique=True, nullable=True, index=True)  # e.g., P-004

    # Personal
    name = db.Column(db.String(150), nullable=False, index=True)
    email = db.Column(db.String(120))
    phone = db.Column(db.String(30))
    gender = db.Column(db.String(10))
    dob = db.Column(db.Date)

    # Clinical
    blood_type = db.Column(db.String(3))
    allergies = db.Column(db.Text)
    medical_info = db.Column(db.Text)

    active = db.Column(db.Boolean, default=True, nullable=False)
    last_visit_at = db.Column(db.DateTime)

    # Relationships (hard delete of a patient removes everything attached to it)
    notes = db.relationship('PatientNote', backref='patient', lazy=True, cascade='all, delete-orphan')
    appointments = db.relationship('Appointment', backref='patient', lazy=True, cascade='all, delete-orphan')
    payments = db.relationship('Payment', backref='patient', lazy=True, cascade='all, delete-orphan')

    def to_dict(self):
        return {
            'id': self.id,
            'patient_code': self.patient_code,
            'name': self.name,
            'email': self.email,
            'phone': self.phone,
            'gender': self.gender,
            'dob': self.dob.isoformat() if self.dob else None,
            'blood_type': self.blood_type,
            'allergies': self.allergies,
            'medical_info': self.medical_info,
            'active': bool(self.active),
            'last_visit_at': self.last_visit_at.isoformat() if self.last_visit_at else None,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<Patient {self.name} ({self.patient_code})>"


assign_code_after_insert(Patient, 'patient_code', 'P-{id:03d}')
