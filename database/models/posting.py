from sqlalchemy import Column, Text, TIMESTAMP, Boolean, Index, func
from sqlalchemy.orm import relationship

from .base import Base, JSONType


class Posting(Base):
    """
    One job opening, keyed by its content hash.

    A posting is either active, inactive with a ``filtered_reason`` (a hard
    eligibility rule fired), or inactive without one (it went stale).
    """
    __tablename__ = 'posting'

    # Identity
    hash = Column(Text, primary_key=True)
    title = Column(Text, nullable=False)
    employer_raw = Column(Text, nullable=False)
    employer_display = Column(Text, nullable=True)  # cleared for job-board employers

    # Location
    location = Column(Text, nullable=False)  # "City, CC" or "remote"
    city = Column(Text)
    country_code = Column(Text)
    is_remote = Column(Boolean, nullable=False, default=False)
    work_environment = Column(Text, nullable=False, default='on-site')  # remote|hybrid|on-site

    # Content / provenance
    description = Column(Text)
    source_url = Column(Text)
    origin_source = Column(Text)
    extras = Column(JSONType, nullable=False, default=dict)
    language_requirements = Column(JSONType, nullable=False, default=list)

    # Classification
    categories = Column(JSONType, nullable=False, default=list)
    is_internship = Column(Boolean, nullable=False, default=False)
    is_graduate_program = Column(Boolean, nullable=False, default=False)
    visa_friendly = Column(Boolean, nullable=True)  # None = unknown

    # Eligibility state
    active = Column(Boolean, nullable=False, default=True)
    status = Column(Text, nullable=False, default='active')  # active|inactive
    filtered_reason = Column(Text, nullable=True)

    posted_at = Column(TIMESTAMP(timezone=True))
    last_seen_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now())
    created_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now())

    matches = relationship("PostingMatch", back_populates="posting", cascade="all, delete-orphan")

    __table_args__ = (
        Index('idx_posting_active', 'active'),
        Index('idx_posting_city', 'city'),
        Index('idx_posting_last_seen', 'last_seen_at'),
        Index('idx_posting_origin_source', 'origin_source'),
    )
