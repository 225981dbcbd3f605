from datetime import datetime

from sqlalchemy import event
from sqlalchemy.orm.attributes import set_committed_value

from clinic_api.extensions import db

CANONICAL_TIMESTAMP = '%Y-%m-%d %H:%M:%S'


class TimestampMixin:
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


def format_timestamp(value):
    """Render a datetime in the canonical 'YYYY-MM-DD HH:MM:SS' form."""
    return value.strftime(CANONICAL_TIMESTAMP) if value else None


def to_number(value):
    return float(value) if value is not None else None


def assign_code_after_insert(model, column, template):
    """
    Fill a human-readable code derived from the new primary key,
    e.g. P-004 or APT-000123, in the same flush as the INSERT.
    """
    table = model.__table__

    @event.listens_for(model, 'after_insert')
    def _assign_code(mapper, connection, target):
        if getattr(target, column):
            return
        code = template.format(id=target.id)
        connection.execute(
            table.update().where(table.c.id == target.id).values({column: code})
        )
        set_committed_value(target, column, code)

    return _assign_code
