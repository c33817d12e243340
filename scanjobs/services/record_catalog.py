"""Record selection and the per-record scan stamp."""

import logging
import re
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Union

from sqlalchemy.orm import Session, sessionmaker

from scanjobs.config import settings
from scanjobs.models.record import Record, RecordMeta

logger = logging.getLogger(__name__)

LAST_SCAN_META_KEY = "scanjobs_last_scan"
PUBLISHED = "publish"

_KEY_RE = re.compile(r"[^a-z0-9_\-]")


def sanitize_key(value) -> str:
    """Lowercase and strip everything but ``[a-z0-9_-]``."""
    return _KEY_RE.sub("", str(value).strip().lower())


class RecordCatalog:
    """Answers which record types are scannable and which ids match them."""

    def __init__(
        self,
        session_factory: sessionmaker,
        supported_types: Optional[Dict[str, str]] = None,
        default_types: Optional[List[str]] = None,
    ):
        self.session_factory = session_factory
        self.supported_types = dict(
            settings.SUPPORTED_RECORD_TYPES if supported_types is None else supported_types
        )
        self.default_types = list(
            settings.DEFAULT_RECORD_TYPES if default_types is None else default_types
        )

    def get_supported_types(self) -> Dict[str, str]:
        """Return supported selectors as slug -> label, dropping empty labels."""
        return {slug: label for slug, label in self.supported_types.items() if label}

    def get_default_types(self) -> List[str]:
        """Default selectors that are also supported, in default order."""
        supported = self.get_supported_types()
        return [slug for slug in self.default_types if slug in supported]

    def sanitize_types(self, raw: Union[str, Iterable[str], None]) -> List[str]:
        """Keep only supported selectors, de-duplicated, order preserved.

        Accepts a list or a comma-separated string.
        """
        if raw is None:
            return []
        if isinstance(raw, str):
            raw = raw.split(",")

        supported = self.get_supported_types()
        selected: List[str] = []
        for value in raw:
            slug = sanitize_key(value)
            if slug in supported and slug not in selected:
                selected.append(slug)
        return selected

    def find_ids(self, record_types: List[str]) -> List[int]:
        """Return ids of published records of the given types, ascending."""
        if not record_types:
            return []
        db: Session = self.session_factory()
        try:
            rows = (
                db.query(Record.id)
                .filter(Record.record_type.in_(record_types), Record.status == PUBLISHED)
                .order_by(Record.id.asc())
                .all()
            )
            return [row[0] for row in rows]
        finally:
            db.close()

    def stamp(self, record_id: int, when: Optional[datetime] = None) -> Optional[str]:
        """Write the last-scan timestamp (UTC, ``YYYY-MM-DD HH:MM:SS``).

        Returns the written value, or None when the record no longer exists.
        """
        when = when or datetime.now(timezone.utc)
        value = when.strftime("%Y-%m-%d %H:%M:%S")

        db: Session = self.session_factory()
        try:
            if db.get(Record, record_id) is None:
                logger.debug(f"Record {record_id} vanished before it was stamped")
                return None
            meta = (
                db.query(RecordMeta)
                .filter(RecordMeta.record_id == record_id, RecordMeta.meta_key == LAST_SCAN_META_KEY)
                .first()
            )
            if meta is None:
                meta = RecordMeta(record_id=record_id, meta_key=LAST_SCAN_META_KEY)
                db.add(meta)
            meta.meta_value = value
            db.commit()
            return value
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def get_last_scan(self, record_id: int) -> Optional[str]:
        """Return the last-scan stamp of a record, or None."""
        db: Session = self.session_factory()
        try:
            meta = (
                db.query(RecordMeta)
                .filter(RecordMeta.record_id == record_id, RecordMeta.meta_key == LAST_SCAN_META_KEY)
                .first()
            )
            return meta.meta_value if meta else None
        finally:
            db.close()
