from .auth import auth_bp
from .health import health_bp
from .patient import patient_bp
from .note import note_bp
from .appointment import appointment_bp
from .payment import payment_bp
from .lookup import lookup_bp
from .profile import profile_bp, uploads_bp
from .dashboard import dashboard_bp

__all__ = [
    'auth_bp', 'health_bp', 'patient_bp', 'note_bp', 'appointment_bp',
    'payment_bp', 'lookup_bp', 'profile_bp', 'uploads_bp', 'dashboard_bp',
]
