"""
Email Service for appointment confirmations and payment receipts
"""
import io
import logging
import smtplib
from datetime import timezone
from email.mime.image import MIMEImage
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape
from zoneinfo import ZoneInfo

import qrcode
from flask import current_app

from clinic_api.utils.ics import appointment_window, build_ics

logger = logging.getLogger(__name__)

_FONT = "font-family: system-ui, -apple-system, Segoe UI, Roboto, Helvetica, Arial, sans-serif;"


class Mailer:
    """
    SMTP sender built once from configuration and shared for the process.

    Port 465 uses implicit TLS; any other port upgrades with STARTTLS when
    the server offers it.
    """

    def __init__(self, server, port=587, username=None, password=None,
                 sender=None, use_ssl=False, timeout=30):
        self.server = server
        self.port = port
        self.username = username
        self.password = password
        self.sender = sender
        self.use_ssl = use_ssl
        self.timeout = timeout

    @classmethod
    def from_config(cls, config):
        return cls(
            server=config.get('MAIL_SERVER'),
            port=config.get('MAIL_PORT', 587),
            username=config.get('MAIL_USERNAME'),
            password=config.get('MAIL_PASSWORD'),
            sender=config.get('MAIL_DEFAULT_SENDER'),
            use_ssl=config.get('MAIL_USE_SSL', False),
        )

    def init_app(self, app):
        app.extensions['clinic_mailer'] = self

    @property
    def configured(self):
        return bool(self.server)

    def send(self, to_email, msg):
        """
        Deliver ``msg``. Returns False when SMTP is not configured;
        transport errors propagate to the caller.
        """
        if not self.configured:
            logger.warning(f"Email not configured. Skipping message to {to_email}")
            return False

        msg['From'] = self.sender
        msg['To'] = to_email

        smtp_cls = smtplib.SMTP_SSL if self.use_ssl else smtplib.SMTP
        with smtp_cls(self.server, self.port, timeout=self.timeout) as server:
            if not self.use_ssl:
                server.ehlo()
                if server.has_extn('starttls'):
                    server.starttls()
                    server.ehlo()
            if self.username and self.password:
                server.login(self.username, self.password)
            server.sendmail(self.sender, [to_email], msg.as_string())

        logger.info(f"Email sent to {to_email}: {msg['Subject']}")
        return True


def get_mailer():
    return current_app.extensions.get('clinic_mailer')


def normalize_pay_url(raw):
    """Treat the value as a payment link; add https:// when no scheme is present."""
    url = str(raw).strip() if raw is not None else ''
    if not url:
        return ''
    if url.lower().startswith(('http://', 'https://')):
        return url
    return f'https://{url}'


def render_qr_png(data):
    """PNG bytes of a QR code encoding ``data``."""
    qr = qrcode.QRCode(version=None, box_size=8, border=1)
    qr.add_data(data)
    qr.make(fit=True)

    img = qr.make_image(fill_color="black", back_color="white")
    buffer = io.BytesIO()
    img.save(buffer, format="PNG")
    return buffer.getvalue()


def format_money(amount, currency):
    return f"{currency.upper()} {float(amount):,.2f}"


def format_when(dt):
    return dt.strftime('%a, %d %b %Y, %H:%M')


def _alternative(text, html):
    alt = MIMEMultipart('alternative')
    alt.attach(MIMEText(text, 'plain', 'utf-8'))
    alt.attach(MIMEText(html, 'html', 'utf-8'))
    return alt


def build_payment_receipt(payment, clinic_name, tz_name):
    """
    Receipt for a freshly recorded payment.

    Args:
        payment: Payment row (with .patient loaded)
        clinic_name: Display name used in subject and heading
        tz_name: Clinic timezone for the payment date

    Returns:
        MIMEMultipart: message without From/To (set by Mailer.send)
    """
    patient = payment.patient
    amount = format_money(payment.amount, payment.currency)
    method = payment.method.upper() + (f" (****{payment.last4})" if payment.last4 else '')
    created = payment.created_at.replace(tzinfo=timezone.utc).astimezone(ZoneInfo(tz_name))
    when = created.strftime('%d/%m/%Y, %H:%M:%S')
    title = f"{clinic_name} - Payment Receipt #{payment.id}"

    text = '\n'.join(line for line in [
        title,
        '',
        f"Hi {patient.name},",
        '',
        "Thank you for your payment.",
        f"Amount: {amount}",
        f"Method: {method}",
        f"Transaction Ref: {payment.transaction_ref}" if payment.transaction_ref else None,
        f"Appointment: {payment.appointment_id}" if payment.appointment_id else None,
        f"Patient: {patient.name} ({patient.patient_code})",
        f"Date: {when} ({tz_name})",
        '',
        "If you have any questions, reply to this email.",
    ] if line is not None)

    rows = [
        ('Amount', f'<strong>{escape(amount)}</strong>'),
        ('Method', escape(method)),
    ]
    if payment.transaction_ref:
        rows.append(('Transaction Ref', escape(payment.transaction_ref)))
    if payment.appointment_id:
        rows.append(('Appointment', str(payment.appointment_id)))
    rows.append(('Patient', f"{escape(patient.name)} ({escape(patient.patient_code or '')})"))
    rows.append(('Date', f"{when} ({escape(tz_name)})"))
    table = ''.join(
        f'<tr><td style="padding:6px 0; color:#555">{label}</td><td style="padding:6px 0">{value}</td></tr>'
        for label, value in rows
    )

    html = f"""
<div style="{_FONT} line-height:1.5;">
  <h2 style="margin:0 0 8px">{escape(title)}</h2>
  <p>Hi {escape(patient.name)},</p>
  <p>Thank you for your payment.</p>
  <table style="border-collapse:collapse; width:100%; max-width:520px"><tbody>{table}</tbody></table>
  <p style="margin-top:16px">If you have any questions, just reply to this email.</p>
</div>
    """.strip()

    msg = MIMEMultipart('mixed')
    msg['Subject'] = title
    msg.attach(_alternative(text, html))
    return msg


def build_appointment_confirmation(appointment, clinic_name, tz_name, org_domain,
                                   pay_url=None, location=None):
    """
    Confirmation with an .ics invite and, when a payment link is known,
    a "Pay now" button plus an inline QR code (cid:pay-qr).
    """
    patient = appointment.patient
    when = format_when(appointment.start_time)
    reference = appointment.reference
    pay_url = normalize_pay_url(pay_url)
    who = patient.name + (f" ({patient.patient_code})" if patient.patient_code else '')
    subject = f"{clinic_name} - Appointment confirmed ({when})"

    text = '\n'.join(line for line in [
        f"{clinic_name} - Appointment Confirmation",
        '',
        f"Hi {who},",
        "Your appointment has been scheduled.",
        f"When: {when} ({tz_name})",
        f"Type: {appointment.type}",
        f"Location: {location}" if location else None,
        f"Reference: {reference}",
        f"Notes: {appointment.notes}" if appointment.notes else None,
        f"Pay now: {pay_url}" if pay_url else None,
        "Or scan the attached QR code to pay." if pay_url else None,
        '',
        "A calendar invite is attached.",
    ] if line is not None)

    pay_block = ''
    if pay_url:
        pay_block = f"""
  <div style="margin:16px 0 8px;">
    <a href="{escape(pay_url)}" target="_blank" rel="noopener noreferrer"
       style="display:inline-block;background:#0ea5e9;color:#fff;text-decoration:none;padding:10px 16px;border-radius:8px;font-weight:600;">Pay now</a>
    <div style="font-size:12px;color:#666;margin-top:8px;">Or scan this QR code to pay:</div>
    <img src="cid:pay-qr" alt="Scan to pay" width="160" height="160" style="display:block;margin-top:6px;border:0;outline:none;" />
  </div>"""

    location_row = (
        f'<tr><td style="padding:4px 12px 4px 0; color:#666;">Location</td><td style="padding:4px 0;">{escape(location)}</td></tr>'
        if location else ''
    )
    notes_block = (
        f'<p style="margin-top:12px"><strong>Notes:</strong> {escape(appointment.notes)}</p>'
        if appointment.notes else ''
    )

    html = f"""
<div style="{_FONT} line-height:1.6;">
  <h2 style="margin:0 0 8px;">{escape(clinic_name)} - Appointment Confirmation</h2>
  <p>Hi {escape(who)},</p>
  <p>Your appointment has been scheduled.</p>
  <table style="border-collapse: collapse;">
    <tr><td style="padding:4px 12px 4px 0; color:#666;">When</td><td style="padding:4px 0;">{when} ({escape(tz_name)})</td></tr>
    <tr><td style="padding:4px 12px 4px 0; color:#666;">Type</td><td style="padding:4px 0; text-transform:capitalize;">{escape(appointment.type)}</td></tr>
    {location_row}
    <tr><td style="padding:4px 12px 4px 0; color:#666;">Reference</td><td style="padding:4px 0;">{reference}</td></tr>
  </table>
  {notes_block}
  {pay_block}
  <p style="margin-top:16px;">We've attached a calendar invite. We look forward to seeing you!</p>
</div>
    """.strip()

    start, end = appointment_window(appointment.start_time, appointment.duration_min, tz_name)
    ics = build_ics(
        event_id=appointment.id,
        start=start,
        end=end,
        summary=f"{clinic_name}: {appointment.type} with {patient.name}",
        description=appointment.notes,
        location=location,
        org_domain=org_domain,
        product_name=clinic_name,
    )

    related = MIMEMultipart('related')
    related.attach(_alternative(text, html))
    if pay_url:
        qr = MIMEImage(render_qr_png(pay_url), 'png')
        qr.add_header('Content-ID', '<pay-qr>')
        qr.add_header('Content-Disposition', 'inline', filename='pay-qr.png')
        related.attach(qr)

    invite = MIMEText(ics, 'calendar', 'utf-8')
    invite.set_param('method', 'PUBLISH')
    invite.add_header('Content-Disposition', 'attachment', filename='appointment.ics')

    msg = MIMEMultipart('mixed')
    msg['Subject'] = subject
    msg.attach(related)
    msg.attach(invite)
    return msg
