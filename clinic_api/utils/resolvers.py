"""
Normalisation of loosely-shaped client input into canonical values:
patient identifiers and appointment start timestamps.
"""
import re
from datetime import datetime
from typing import NamedTuple, Optional, Union

from clinic_api.errors import NotFoundError, ValidationError
from clinic_api.models import Patient
from clinic_api.models.base import CANONICAL_TIMESTAMP

_DIGITS = re.compile(r'^\d+$')
_TIME = re.compile(r'^\d{2}:\d{2}(:\d{2})?$')


class NumericId(NamedTuple):
    id: int


class PatientCode(NamedTuple):
    code: str


class Missing(NamedTuple):
    pass


PatientRef = Union[NumericId, PatientCode, Missing]


def _as_int(value) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and _DIGITS.match(value.strip()):
        return int(value.strip())
    return None


def _as_code(value) -> Optional[str]:
    if isinstance(value, str) and value.strip() and not _DIGITS.match(value.strip()):
        return value.strip()
    return None


def normalize_patient_identifier(payload: dict) -> PatientRef:
    """
    Classify whatever the client sent as a patient reference.

    A numeric id (int or digit string) in patient_id/patientId wins. Otherwise a
    code is taken from patient_code/patientCode, or from a non-numeric string
    that was put in the id field by mistake.
    """
    for key in ('patient_id', 'patientId'):
        numeric = _as_int(payload.get(key))
        if numeric is not None:
            return NumericId(numeric)

    for key in ('patient_code', 'patientCode', 'patient_id', 'patientId'):
        code = _as_code(payload.get(key))
        if code is not None:
            return PatientCode(code)

    return Missing()


def has_patient_identifier(payload: dict) -> bool:
    return not isinstance(normalize_patient_identifier(payload), Missing)


def resolve_patient_identifier(payload: dict) -> int:
    """
    Return the patient primary key referenced by ``payload``.

    Raises NotFoundError when a code matches no patient and ValidationError
    when the payload carries no usable identifier at all.
    """
    ref = normalize_patient_identifier(payload)
    if isinstance(ref, NumericId):
        return ref.id
    if isinstance(ref, PatientCode):
        patient_id = (
            Patient.query.with_entities(Patient.id)
            .filter(Patient.patient_code == ref.code)
            .scalar()
        )
        if patient_id is None:
            raise NotFoundError(f'Patient with code {ref.code} not found')
        return patient_id
    raise ValidationError('Invalid or missing patient identifier')


def _parse_combined(value: str) -> Optional[str]:
    text = value.strip()
    if not text:
        return None
    candidate = text.replace('T', ' ', 1)
    if candidate.endswith('Z'):
        candidate = candidate[:-1]
    # Drop fractional seconds and any UTC offset
    candidate = re.sub(r'(\d{2}:\d{2}(:\d{2})?)(\.\d+)?([+-]\d{2}:?\d{2})?$', r'\1', candidate)
    for fmt in (CANONICAL_TIMESTAMP, '%Y-%m-%d %H:%M'):
        try:
            return datetime.strptime(candidate, fmt).strftime(CANONICAL_TIMESTAMP)
        except ValueError:
            continue
    return None


def resolve_start_timestamp(start_time=None, date=None, time=None) -> str:
    """
    Build the canonical 'YYYY-MM-DD HH:MM:SS' start timestamp.

    Either a pre-combined timestamp or a date + time pair is accepted. Only
    the first 10 characters of ``date`` matter ("2025-08-30T00:00:00Z" works),
    and ``time`` must be HH:MM or HH:MM:SS.
    """
    if isinstance(start_time, str) and start_time.strip():
        combined = _parse_combined(start_time)
        if combined is None:
            raise ValidationError('Invalid date/time')
        return combined

    if date and time:
        date_only = str(date).strip()[:10]
        time_str = str(time).strip()
        if not _TIME.match(time_str):
            raise ValidationError('Invalid date/time')
        if len(time_str) == 5:
            time_str = f'{time_str}:00'
        try:
            return datetime.strptime(f'{date_only} {time_str}', CANONICAL_TIMESTAMP).strftime(CANONICAL_TIMESTAMP)
        except ValueError:
            raise ValidationError('Invalid date/time')

    raise ValidationError('Invalid date/time')


def parse_timestamp(value: str) -> datetime:
    return datetime.strptime(value, CANONICAL_TIMESTAMP)


def parse_day_bound(value, end=False) -> Optional[datetime]:
    """
    'YYYY-MM-DD' query value to the first (or, with ``end``, last) second of
    that day. Empty means no bound; anything else is a ValidationError.
    """
    if value is None or not str(value).strip():
        return None
    try:
        day = datetime.strptime(str(value).strip(), '%Y-%m-%d')
    except ValueError:
        raise ValidationError('Dates must be YYYY-MM-DD')
    if end:
        return day.replace(hour=23, minute=59, second=59)
    return day


def parse_date_range(args):
    """Inclusive (from, to) bounds from request args; either may be None."""
    return parse_day_bound(args.get('from')), parse_day_bound(args.get('to'), end=True)
