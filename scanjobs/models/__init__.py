"""SQLAlchemy ORM models."""

from scanjobs.models.option import Option
from scanjobs.models.record import Record, RecordMeta

__all__ = [
    "Option",
    "Record",
    "RecordMeta",
]
