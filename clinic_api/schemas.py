"""Request schemas - Pydantic models for body validation"""

import re
from datetime import date
from decimal import Decimal
from typing import List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

_EMAIL = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')

Gender = Literal['male', 'female', 'other']
BloodType = Literal['A+', 'A-', 'B+', 'B-', 'AB+', 'AB-', 'O+', 'O-']
AppointmentType = Literal['consultation', 'follow-up', 'checkup', 'urgent']
AppointmentStatus = Literal['scheduled', 'completed', 'cancelled', 'no-show']
PaymentMethod = Literal['cash', 'card', 'online', 'bank-transfer']
PaymentStatus = Literal['paid', 'pending', 'failed', 'refunded']
Money = Decimal


def _blank_to_none(v):
    if isinstance(v, str) and not v.strip():
        return None
    return v.strip() if isinstance(v, str) else v


def _check_email(v):
    if v is None:
        return v
    if not _EMAIL.match(v):
        raise ValueError('Invalid email address')
    return v.lower()


class RequestModel(BaseModel):
    """Unknown keys are ignored; strings are trimmed."""
    model_config = ConfigDict(extra='ignore', str_strip_whitespace=True)

    def changes(self, *fields):
        """Values the client actually sent (explicit nulls included)."""
        return {name: getattr(self, name) for name in fields if name in self.model_fields_set}


class PatientIdentifier(RequestModel):
    """Any of these may carry the patient reference; see utils.resolvers."""
    patient_id: Optional[Union[int, str]] = None
    patientId: Optional[Union[int, str]] = None
    patient_code: Optional[str] = None
    patientCode: Optional[str] = None

    def identifier_payload(self):
        return {
            key: getattr(self, key)
            for key in ('patient_id', 'patientId', 'patient_code', 'patientCode')
            if getattr(self, key) is not None
        }


# ---- Auth / profile -------------------------------------------------------

class LoginBody(RequestModel):
    email: Optional[str] = None
    password: Optional[str] = None


class ProfileUpdate(RequestModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=120)
    email: Optional[str] = None
    new_password: Optional[str] = Field(default=None, min_length=6)

    @field_validator('email')
    @classmethod
    def validate_email(cls, v):
        return _check_email(v)


# ---- Patients -------------------------------------------------------------

class PatientFields(RequestModel):
    email: Optional[str] = None
    phone: Optional[str] = Field(default=None, max_length=30)
    gender: Optional[Gender] = None
    dob: Optional[date] = None
    blood_type: Optional[BloodType] = None
    allergies: Optional[str] = None
    medical_info: Optional[str] = None
    active: Optional[bool] = None

    @field_validator('email', 'phone', 'allergies', 'medical_info', mode='before')
    @classmethod
    def blank_strings(cls, v):
        return _blank_to_none(v)

    @field_validator('gender', mode='before')
    @classmethod
    def lower_gender(cls, v):
        v = _blank_to_none(v)
        return v.lower() if isinstance(v, str) else v

    @field_validator('blood_type', mode='before')
    @classmethod
    def upper_blood_type(cls, v):
        v = _blank_to_none(v)
        return v.upper() if isinstance(v, str) else v

    @field_validator('dob', mode='before')
    @classmethod
    def date_part(cls, v):
        # Accept "1990-05-01T00:00:00Z" from date pickers
        v = _blank_to_none(v)
        return v[:10] if isinstance(v, str) else v

    @field_validator('email')
    @classmethod
    def validate_email(cls, v):
        return _check_email(v)


class PatientCreate(PatientFields):
    name: str = Field(min_length=1, max_length=150)


class PatientUpdate(PatientFields):
    name: Optional[str] = Field(default=None, min_length=1, max_length=150)


# ---- Notes ----------------------------------------------------------------

class NoteCreate(RequestModel):
    title: str = Field(min_length=1, max_length=200)
    content: Optional[str] = None


class NoteUpdate(RequestModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    content: Optional[str] = None


# ---- Appointments ---------------------------------------------------------

class InvoiceItem(RequestModel):
    description: Optional[str] = None
    amount: Money = Field(ge=0)
    quantity: int = Field(default=1, ge=1)
    currency: Optional[str] = Field(default=None, min_length=3, max_length=3)


class AppointmentFields(PatientIdentifier):
    start_time: Optional[str] = None
    date: Optional[str] = None
    time: Optional[str] = None
    notes: Optional[str] = None

    @field_validator('notes', mode='before')
    @classmethod
    def blank_notes(cls, v):
        return _blank_to_none(v)

    def has_start(self):
        return bool(self.start_time or self.date or self.time)


class AppointmentCreate(AppointmentFields):
    duration_min: int = Field(default=30, gt=0, le=24 * 60)
    type: AppointmentType = 'consultation'
    status: AppointmentStatus = 'scheduled'
    fee: Money = Field(default=Decimal('0'), ge=0)
    items: Optional[List[InvoiceItem]] = None


class AppointmentUpdate(AppointmentFields):
    duration_min: Optional[int] = Field(default=None, gt=0, le=24 * 60)
    type: Optional[AppointmentType] = None
    status: Optional[AppointmentStatus] = None
    fee: Optional[Money] = Field(default=None, ge=0)


class AppointmentStatusUpdate(RequestModel):
    status: AppointmentStatus


# ---- Payments -------------------------------------------------------------

class PaymentFields(PatientIdentifier):
    appointment_id: Optional[int] = None
    currency: Optional[str] = Field(default=None, min_length=3, max_length=3)
    description: Optional[str] = None
    transaction_ref: Optional[str] = Field(default=None, max_length=100)
    last4: Optional[str] = Field(default=None, min_length=4, max_length=4)

    @field_validator('appointment_id', 'description', 'transaction_ref', 'last4', 'currency', mode='before')
    @classmethod
    def blank_strings(cls, v):
        return _blank_to_none(v)

    @field_validator('currency')
    @classmethod
    def upper_currency(cls, v):
        return v.upper() if v else v


class PaymentCreate(PaymentFields):
    amount: Money = Field(ge=0)
    method: PaymentMethod = 'cash'
    status: PaymentStatus = 'paid'


class PaymentUpdate(PaymentFields):
    amount: Optional[Money] = Field(default=None, ge=0)
    method: Optional[PaymentMethod] = None
    status: Optional[PaymentStatus] = None
