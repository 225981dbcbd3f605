"""
Stripe invoicing for appointments
"""
import logging
import math
from datetime import timedelta
from decimal import Decimal

import stripe
from flask import current_app

from clinic_api.errors import IntegrationError

logger = logging.getLogger(__name__)

# Currencies Stripe bills in whole units
ZERO_DECIMAL_CURRENCIES = {
    'bif', 'clp', 'djf', 'gnf', 'jpy', 'kmf', 'krw', 'mga',
    'pyg', 'rwf', 'ugx', 'vnd', 'vuv', 'xaf', 'xof', 'xpf',
}


def to_minor(amount, currency):
    """Convert a major-unit amount to Stripe's integer minor units."""
    value = Decimal(str(amount or 0))
    if currency.lower() in ZERO_DECIMAL_CURRENCIES:
        return int(value.quantize(Decimal('1')))
    return int((value * 100).quantize(Decimal('1')))


def days_until_due(invoice_date, due_date):
    """Whole days between the two dates, rounded up, never less than 1."""
    seconds = (due_date - invoice_date).total_seconds()
    return max(1, math.ceil(seconds / 86400))


class StripeBilling:
    """
    Invoice chain: find-or-create customer, draft invoice, line items,
    finalize, then optionally ask Stripe to email it.
    """

    def __init__(self, api_key, currency='usd', auto_email=True):
        self.api_key = api_key
        self.currency = (currency or 'usd').lower()
        self.auto_email = auto_email

    @classmethod
    def from_config(cls, config):
        return cls(
            api_key=config.get('STRIPE_SECRET_KEY'),
            currency=config.get('STRIPE_DEFAULT_CURRENCY', 'usd'),
            auto_email=config.get('STRIPE_AUTO_EMAIL', True),
        )

    def init_app(self, app):
        app.extensions['clinic_billing'] = self

    @property
    def configured(self):
        return bool(self.api_key)

    def find_or_create_customer(self, patient, appointment_id=None):
        found = stripe.Customer.list(email=patient.email, limit=1, api_key=self.api_key)
        if found.data:
            return found.data[0]

        metadata = {'patient_code': patient.patient_code or ''}
        if appointment_id is not None:
            metadata['appointment_id'] = str(appointment_id)

        customer = stripe.Customer.create(
            email=patient.email,
            name=patient.name,
            phone=patient.phone or None,
            metadata=metadata,
            api_key=self.api_key,
        )
        logger.info(f"Created Stripe customer {customer.id} for {patient.patient_code}")
        return customer

    def invoice_appointment(self, appointment, items=None):
        """
        Create, finalize and (optionally) send an invoice for ``appointment``.

        Args:
            appointment: Appointment row with .patient loaded
            items: optional list of {description, amount, quantity, currency}

        Returns:
            dict: invoice_id, status, hosted_url, pdf_url, customer_id
        """
        patient = appointment.patient
        reference = appointment.reference
        customer = self.find_or_create_customer(patient, appointment.id)

        invoice_date = appointment.start_time
        due_date = invoice_date + timedelta(days=1)

        draft = stripe.Invoice.create(
            customer=customer.id,
            collection_method='send_invoice',
            days_until_due=days_until_due(invoice_date, due_date),
            auto_advance=False,
            currency=self.currency,
            description=f"Invoice {reference}",
            metadata={
                'appointment_id': str(appointment.id),
                'appt_code': appointment.appt_code or '',
                'patient_code': patient.patient_code or '',
            },
            api_key=self.api_key,
        )
        if not getattr(draft, 'id', None):
            raise IntegrationError('Stripe did not return a draft invoice id')
        logger.info(f"Draft invoice {draft.id} created for appointment {appointment.id}")

        if items:
            for item in items:
                currency = (item.get('currency') or self.currency).lower()
                quantity = int(item.get('quantity') or 1)
                stripe.InvoiceItem.create(
                    customer=customer.id,
                    invoice=draft.id,
                    currency=currency,
                    amount=to_minor(item.get('amount'), currency) * quantity,
                    description=item.get('description') or f"{appointment.type} appointment",
                    api_key=self.api_key,
                )
        elif appointment.fee and Decimal(str(appointment.fee)) > 0:
            stripe.InvoiceItem.create(
                customer=customer.id,
                invoice=draft.id,
                currency=self.currency,
                amount=to_minor(appointment.fee, self.currency),
                description=f"{appointment.type.capitalize()} - {patient.name} ({reference})",
                api_key=self.api_key,
            )

        invoice = stripe.Invoice.finalize_invoice(draft.id, api_key=self.api_key)
        logger.info(f"Invoice {invoice.id} finalized ({invoice.status})")

        if self.auto_email:
            invoice = stripe.Invoice.send_invoice(invoice.id, api_key=self.api_key)
            logger.info(f"Invoice {invoice.id} sent by Stripe")

        return {
            'invoice_id': invoice.id,
            'status': invoice.status,
            'hosted_url': getattr(invoice, 'hosted_invoice_url', None),
            'pdf_url': getattr(invoice, 'invoice_pdf', None),
            'customer_id': customer.id,
        }


def get_billing():
    return current_app.extensions.get('clinic_billing')
