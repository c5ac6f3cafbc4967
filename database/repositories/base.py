from sqlalchemy.orm import Session


class BaseRepository:
    """Thin wrapper around a Session owned by the enclosing unit of work."""

    def __init__(self, db: Session):
        self.db = db
