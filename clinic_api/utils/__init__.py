from .decorators import require_role, current_user_id

from .db import transaction

from .resolvers import (
    normalize_patient_identifier,
    resolve_patient_identifier,
    resolve_start_timestamp,
)

__all__ = [
    # Decorators
    "require_role",
    "current_user_id",
    # Database
    "transaction",
    # Resolvers
    "normalize_patient_identifier",
    "resolve_patient_identifier",
    "resolve_start_timestamp",
]
