"""
Transaction helper over the Flask-SQLAlchemy session.
"""
import logging
from contextlib import contextmanager

from clinic_api.extensions import db

logger = logging.getLogger(__name__)


@contextmanager
def transaction():
    """
    Run a unit of work: commit when the block exits cleanly, roll back on
    any exception and re-raise. The connection goes back to the pool when
    the app context tears down the scoped session.

    Usage:
        with transaction() as session:
            session.add(obj)
    """
    session = db.session
    try:
        yield session
        session.commit()
    except Exception:
        logger.debug("Rolling back transaction", exc_info=True)
        session.rollback()
        raise
