"""Option model backing the durable key-value store."""

from datetime import datetime

from sqlalchemy import JSON, Column, DateTime, Index, Integer, Text
from sqlalchemy.dialects.postgresql import JSONB

from scanjobs.database import Base


class Option(Base):
    """Option holds one named value; ephemeral tokens also carry an expiry."""

    __tablename__ = "options"

    name = Column(Text, primary_key=True)
    value = Column(JSON().with_variant(JSONB, "postgresql"))
    expires_at = Column(Integer)  # UNIX timestamp, NULL for durable options
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("idx_options_expires_at", "expires_at"),
    )
