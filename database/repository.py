from sqlalchemy import text
from sqlalchemy.orm import Session

from database.repositories import PostingRepository, MatchRepository


class PipelineRepository:
    """Facade over the per-table repositories, bound to one Session.

    Usage:
        with pipeline_uow() as repo:
            repo.postings.upsert_posting(record)
            repo.matches.upsert_match(...)
    """

    def __init__(self, db: Session):
        self.db = db
        self.postings = PostingRepository(db)
        self.matches = MatchRepository(db)

    def ping(self) -> None:
        """Round-trip to the store; raises OperationalError when it is unreachable."""
        self.db.execute(text("SELECT 1"))
