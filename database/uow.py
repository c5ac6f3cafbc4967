import contextlib
import logging
from typing import Optional

from sqlalchemy.orm import sessionmaker

from database.database import SessionLocal
from database.repository import PipelineRepository

logger = logging.getLogger(__name__)


@contextlib.contextmanager
def pipeline_uow(session_factory: Optional[sessionmaker] = None):
    """Per-unit-of-work transaction scope.

    Yields a PipelineRepository bound to a fresh Session. Commits on success,
    rolls back on exception, always closes.

    Usage:
        with pipeline_uow() as repo:
            repo.postings.upsert_posting(record)
        # commit happens automatically on successful exit
    """
    session = (session_factory or SessionLocal)()
    try:
        yield PipelineRepository(session)
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
