from database.repositories.base import BaseRepository
from database.repositories.posting import PostingRepository, UPSERT_INSERTED, UPSERT_UPDATED
from database.repositories.match import MatchRepository

__all__ = [
    'BaseRepository',
    'PostingRepository',
    'MatchRepository',
    'UPSERT_INSERTED',
    'UPSERT_UPDATED',
]
