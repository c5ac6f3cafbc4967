from sqlalchemy import Column, Text, TIMESTAMP, ForeignKey, Integer, Numeric, Index, func
from sqlalchemy.orm import relationship

from .base import Base, JSONType


class PostingMatch(Base):
    """
    One user's match against one posting.

    Keyed by (user_key, posting_hash): a re-run for the same pair updates the
    row in place. Rows from older runs stay until a newer run touches them.
    """
    __tablename__ = 'posting_match'

    user_key = Column(Text, primary_key=True)
    posting_hash = Column(Text, ForeignKey('posting.hash', ondelete='CASCADE'), primary_key=True)

    score = Column(Numeric(4, 3, asdecimal=False), nullable=False)  # 0-1
    rationale = Column(Text)
    quality_tier = Column(Text)  # excellent|good|fair|poor
    tags = Column(JSONType, nullable=False, default=list)
    scoring_method = Column(Text, nullable=False, default='ai')  # ai|rule_based
    rank = Column(Integer)

    run_id = Column(Text)
    matched_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now())

    posting = relationship("Posting", back_populates="matches")

    __table_args__ = (
        Index('idx_posting_match_user', 'user_key'),
        Index('idx_posting_match_score', 'score'),
    )
