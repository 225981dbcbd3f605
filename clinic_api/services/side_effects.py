"""
Best-effort follow-ups that run after a row is committed: Stripe invoice
and patient email. Nothing here raises; callers turn the results into
response flags.
"""
import logging
from dataclasses import dataclass, field

from flask import current_app

from clinic_api.services.billing_service import get_billing
from clinic_api.services.email_service import (
    build_appointment_confirmation,
    build_payment_receipt,
    get_mailer,
)

logger = logging.getLogger(__name__)


@dataclass
class SideEffectResult:
    ok: bool
    detail: str = ''
    data: dict = field(default_factory=dict)

    @classmethod
    def skipped(cls, reason):
        return cls(ok=False, detail=reason)


def run_side_effect(name, func, *args, **kwargs):
    """Call ``func`` and wrap its outcome; failures are logged, never raised."""
    try:
        outcome = func(*args, **kwargs)
    except Exception as e:
        logger.error(f"{name} failed: {e}", exc_info=True)
        return SideEffectResult(ok=False, detail=str(e))

    if isinstance(outcome, SideEffectResult):
        return outcome
    if isinstance(outcome, dict):
        return SideEffectResult(ok=True, detail='ok', data=outcome)
    if outcome is False:
        return SideEffectResult(ok=False, detail='not sent')
    return SideEffectResult(ok=True, detail='ok')


def invoice_appointment(appointment, items=None):
    """Invoice chain for a new appointment."""
    billing = get_billing()
    if billing is None or not billing.configured:
        return SideEffectResult.skipped('billing not configured')
    if not appointment.patient or not appointment.patient.email:
        return SideEffectResult.skipped('patient has no email')

    return run_side_effect(
        f"Invoice for appointment {appointment.id}",
        billing.invoice_appointment,
        appointment,
        items=items,
    )


def _configured_mailer(name):
    mailer = get_mailer()
    if mailer is None or not mailer.configured:
        logger.info(f"{name} skipped: SMTP not configured")
        return None
    return mailer


def notify_appointment_created(appointment, pay_url=None):
    """Confirmation email with calendar invite (and QR when pay_url is given)."""
    patient = appointment.patient
    if not patient or not patient.email:
        return SideEffectResult.skipped('patient has no email')

    name = f"Confirmation for appointment {appointment.id}"
    mailer = _configured_mailer(name)
    if mailer is None:
        return SideEffectResult.skipped('mail not configured')

    config = current_app.config
    try:
        msg = build_appointment_confirmation(
            appointment,
            clinic_name=config['CLINIC_NAME'],
            tz_name=config['CLINIC_TZ'],
            org_domain=config['ORG_DOMAIN'],
            pay_url=pay_url,
        )
    except Exception as e:
        logger.error(f"Could not compose confirmation for appointment {appointment.id}: {e}", exc_info=True)
        return SideEffectResult(ok=False, detail=str(e))

    return run_side_effect(name, mailer.send, patient.email, msg)


def notify_payment_created(payment):
    """Receipt email for a recorded payment."""
    patient = payment.patient
    if not patient or not patient.email:
        return SideEffectResult.skipped('patient has no email')

    name = f"Receipt for payment {payment.id}"
    mailer = _configured_mailer(name)
    if mailer is None:
        return SideEffectResult.skipped('mail not configured')

    config = current_app.config
    try:
        msg = build_payment_receipt(
            payment,
            clinic_name=config['CLINIC_NAME'],
            tz_name=config['CLINIC_TZ'],
        )
    except Exception as e:
        logger.error(f"Could not compose receipt for payment {payment.id}: {e}", exc_info=True)
        return SideEffectResult(ok=False, detail=str(e))

    return run_side_effect(name, mailer.send, patient.email, msg)
