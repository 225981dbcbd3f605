"""
Message composition (confirmation with invite and QR, receipt) and SMTP delivery.
"""

from datetime import datetime
from decimal import Decimal
from email.mime.text import MIMEText
from types import SimpleNamespace
from unittest.mock import patch

from clinic_api.services.email_service import (
    Mailer,
    build_appointment_confirmation,
    build_payment_receipt,
    normalize_pay_url,
)


def make_patient():
    return SimpleNamespace(name='Jane <Doe>', email='jane@example.com', patient_code='P-001')


def make_appointment(notes='Bring reports'):
    return SimpleNamespace(
        id=7,
        reference='#APT-000007',
        type='consultation',
        notes=notes,
        start_time=datetime(2025, 8, 30, 9, 0),
        duration_min=30,
        patient=make_patient(),
    )


def parts_by_type(msg):
    return {part.get_content_type(): part for part in msg.walk()}


class TestAppointmentConfirmation:

    def test_with_pay_link(self):
        msg = build_appointment_confirmation(
            make_appointment(), 'Test Clinic', 'Asia/Colombo', 'test.clinic',
            pay_url='pay.stripe.test/i/7',
        )
        parts = parts_by_type(msg)

        assert msg['Subject'] == 'Test Clinic - Appointment confirmed (Sat, 30 Aug 2025, 09:00)'
        assert {'multipart/mixed', 'multipart/related', 'multipart/alternative',
                'text/plain', 'text/html', 'image/png', 'text/calendar'} <= set(parts)

        html = parts['text/html'].get_payload(decode=True).decode()
        assert 'href="https://pay.stripe.test/i/7"' in html
        assert 'cid:pay-qr' in html
        assert 'Jane &lt;Doe&gt;' in html

        qr = parts['image/png']
        assert qr['Content-ID'] == '<pay-qr>'
        assert qr.get_payload(decode=True).startswith(b'\x89PNG')

        invite = parts['text/calendar']
        assert invite.get_param('method') == 'PUBLISH'
        assert invite.get_filename() == 'appointment.ics'
        ics = invite.get_payload(decode=True).decode()
        # 09:00 in Colombo (UTC+05:30) is 03:30 UTC
        assert 'DTSTART:20250830T033000Z' in ics
        assert 'DTEND:20250830T040000Z' in ics
        assert 'DESCRIPTION:Bring reports' in ics

    def test_without_pay_link_has_no_qr(self):
        msg = build_appointment_confirmation(make_appointment(notes=None), 'Test Clinic', 'UTC', 'test.clinic')
        parts = parts_by_type(msg)

        assert 'image/png' not in parts
        assert 'text/calendar' in parts
        text = parts['text/plain'].get_payload(decode=True).decode()
        assert 'Pay now' not in text
        assert 'Reference: #APT-000007' in text


class TestPaymentReceipt:

    def test_receipt_content(self):
        payment = SimpleNamespace(
            id=3,
            amount=Decimal('1250.5'),
            currency='lkr',
            method='card',
            last4='4242',
            transaction_ref='tx_9',
            appointment_id=None,
            created_at=datetime(2025, 8, 30, 3, 30),
            patient=make_patient(),
        )
        msg = build_payment_receipt(payment, 'Test Clinic', 'Asia/Colombo')
        parts = parts_by_type(msg)

        assert msg['Subject'] == 'Test Clinic - Payment Receipt #3'
        text = parts['text/plain'].get_payload(decode=True).decode()
        assert 'Amount: LKR 1,250.50' in text
        assert 'Method: CARD (****4242)' in text
        assert 'Date: 30/08/2025, 09:00:00 (Asia/Colombo)' in text
        assert 'Appointment:' not in text


class TestNormalizePayUrl:

    def test_scheme_is_added(self):
        assert normalize_pay_url('pay.example/x') == 'https://pay.example/x'
        assert normalize_pay_url('http://pay.example/x') == 'http://pay.example/x'
        assert normalize_pay_url('  ') == ''
        assert normalize_pay_url(None) == ''


class TestMailer:

    def _msg(self):
        msg = MIMEText('hello')
        msg['Subject'] = 'Hi'
        return msg

    def test_unconfigured_skips(self):
        with patch('smtplib.SMTP') as smtp:
            assert Mailer(server=None).send('a@example.com', self._msg()) is False
        smtp.assert_not_called()

    def test_starttls_on_submission_port(self):
        mailer = Mailer('smtp.test', 587, 'user', 'pass', 'clinic@test')
        with patch('clinic_api.services.email_service.smtplib.SMTP') as smtp:
            server = smtp.return_value.__enter__.return_value
            server.has_extn.return_value = True

            assert mailer.send('a@example.com', self._msg()) is True

        smtp.assert_called_once_with('smtp.test', 587, timeout=30)
        server.starttls.assert_called_once()
        server.login.assert_called_once_with('user', 'pass')
        sender, recipients, body = server.sendmail.call_args.args
        assert sender == 'clinic@test' and recipients == ['a@example.com']
        assert 'To: a@example.com' in body

    def test_implicit_tls_on_465(self):
        mailer = Mailer('smtp.test', 465, sender='clinic@test', use_ssl=True)
        with patch('clinic_api.services.email_service.smtplib.SMTP_SSL') as smtp_ssl:
            server = smtp_ssl.return_value.__enter__.return_value
            mailer.send('a@example.com', self._msg())

        server.starttls.assert_not_called()
        server.login.assert_not_called()
        server.sendmail.assert_called_once()

    def test_from_config(self):
        mailer = Mailer.from_config({
            'MAIL_SERVER': 'smtp.test', 'MAIL_PORT': 465, 'MAIL_USE_SSL': True,
            'MAIL_USERNAME': None, 'MAIL_PASSWORD': None, 'MAIL_DEFAULT_SENDER': 'x@test',
        })
        assert mailer.configured and mailer.use_ssl and mailer.port == 465
