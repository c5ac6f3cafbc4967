from .base import Base, JSONType
from .posting import Posting
from .match import PostingMatch

__all__ = [
    'Base',
    'JSONType',
    'Posting',
    'PostingMatch',
]
