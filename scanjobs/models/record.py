"""Record and record metadata models."""

from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from scanjobs.database import Base


class Record(Base):
    """Record is a scannable item, filtered by record_type (selector)."""

    __tablename__ = "records"

    id = Column(Integer, primary_key=True, autoincrement=True)
    record_type = Column(Text, nullable=False)  # 'post', 'page', ...
    status = Column(Text, nullable=False, default="publish")  # 'publish', 'draft', ...
    title = Column(Text, nullable=False, default="")
    created_at = Column(DateTime, default=datetime.utcnow)

    meta = relationship("RecordMeta", back_populates="record", cascade="all, delete-orphan")

    __table_args__ = (
        Index("idx_records_type_status", "record_type", "status"),
    )


class RecordMeta(Base):
    """Key/value metadata attached to a record."""

    __tablename__ = "record_meta"

    meta_pk = Column(Integer, primary_key=True, autoincrement=True)
    record_id = Column(Integer, ForeignKey("records.id", ondelete="CASCADE"), nullable=False)
    meta_key = Column(Text, nullable=False)
    meta_value = Column(Text)

    record = relationship("Record", back_populates="meta")

    __table_args__ = (
        UniqueConstraint("record_id", "meta_key", name="uq_record_meta_key"),
    )
