"""
Single-event iCalendar documents attached to appointment confirmations.
"""
import secrets
from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo


def to_utc(local_dt, tz_name):
    """Interpret a naive clinic-local datetime in ``tz_name`` and convert to UTC."""
    if local_dt.tzinfo is None:
        local_dt = local_dt.replace(tzinfo=ZoneInfo(tz_name))
    return local_dt.astimezone(timezone.utc)


def format_ics_datetime(dt):
    """YYYYMMDDTHHMMSSZ in UTC."""
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc)
    return dt.strftime('%Y%m%dT%H%M%SZ')


def build_ics(event_id, start, end, summary, org_domain, product_name,
              description=None, location=None, now=None):
    """
    Render a METHOD:PUBLISH calendar with one VEVENT.

    ``start``/``end`` must already be timezone-aware (or UTC). The UID gets a
    random suffix so every send is a distinct invite.
    """
    uid = f"{event_id}-{secrets.token_hex(6)}@{org_domain}"
    stamp = now or datetime.now(timezone.utc)

    lines = [
        'BEGIN:VCALENDAR',
        'VERSION:2.0',
        f'PRODID:-//{product_name}//Appointments//EN',
        'CALSCALE:GREGORIAN',
        'METHOD:PUBLISH',
        'BEGIN:VEVENT',
        f'UID:{uid}',
        f'DTSTAMP:{format_ics_datetime(stamp)}',
        f'DTSTART:{format_ics_datetime(start)}',
        f'DTEND:{format_ics_datetime(end)}',
        f'SUMMARY:{summary}',
    ]
    if location:
        lines.append('LOCATION:' + location.replace('\r', ' ').replace('\n', ' '))
    if description:
        lines.append('DESCRIPTION:' + description.replace('\r\n', '\n').replace('\n', '\\n'))
    lines += ['END:VEVENT', 'END:VCALENDAR']
    return '\r\n'.join(lines)


def appointment_window(start_local, duration_min, tz_name):
    start = to_utc(start_local, tz_name)
    return start, start + timedelta(minutes=int(duration_min or 30))
