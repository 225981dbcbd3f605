from .user import User
from .patient import Patient
from .appointment import Appointment
from .payment import Payment
from .note import PatientNote

__all__ = ["User", "Patient", "Appointment", "Payment", "PatientNote"]
