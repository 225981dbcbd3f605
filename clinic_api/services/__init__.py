from .session_service import issue_session, clear_session, init_jwt_callbacks

from .email_service import Mailer, build_appointment_confirmation, build_payment_receipt

from .billing_service import StripeBilling

from .side_effects import (
    SideEffectResult,
    invoice_appointment,
    notify_appointment_created,
    notify_payment_created,
)

__all__ = [
    # Session
    "issue_session",
    "clear_session",
    "init_jwt_callbacks",
    # Email
    "Mailer",
    "build_appointment_confirmation",
    "build_payment_receipt",
    # Billing
    "StripeBilling",
    # Side effects
    "SideEffectResult",
    "invoice_appointment",
    "notify_appointment_created",
    "notify_payment_created",
]
