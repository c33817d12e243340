"""Durable key-value store with ephemeral (expiring) tokens."""

import logging
import secrets
import time
from typing import Any, Callable, Optional

from sqlalchemy.orm import Session, sessionmaker

from scanjobs.config import settings
from scanjobs.models.option import Option

logger = logging.getLogger(__name__)

TOKEN_PREFIX = "_token_"
STATE_TOKEN_PREFIX = "scanjobs_state_"


class StateStore:
    """Reads and writes whole JSON values keyed by fixed names.

    Every call runs in its own session and commits before returning, so a
    single call is atomic. Store errors are rolled back and re-raised.
    """

    def __init__(self, session_factory: sessionmaker, clock: Callable[[], float] = time.time):
        self.session_factory = session_factory
        self.clock = clock

    def _now(self) -> int:
        return int(self.clock())

    def get(self, name: str, default: Any = None) -> Any:
        """Return the stored value for ``name`` or ``default``."""
        db: Session = self.session_factory()
        try:
            option = db.get(Option, name)
            if option is None or option.expires_at is not None:
                return default
            return option.value
        finally:
            db.close()

    def set(self, name: str, value: Any) -> None:
        """Replace the stored value for ``name``."""
        self._write(name, value, expires_at=None)

    def delete(self, name: str) -> bool:
        """Delete ``name``. Returns True if a value existed."""
        db: Session = self.session_factory()
        try:
            option = db.get(Option, name)
            if option is None:
                return False
            db.delete(option)
            db.commit()
            return True
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def set_token(self, name: str, value: Any, ttl: Optional[int] = None) -> None:
        """Store an ephemeral value that expires after ``ttl`` seconds."""
        if ttl is None:
            ttl = settings.EPHEMERAL_TOKEN_TTL_SECONDS
        self._write(TOKEN_PREFIX + name, value, expires_at=self._now() + max(0, int(ttl)))

    def get_token(self, name: str, default: Any = None) -> Any:
        """Return an ephemeral value, or ``default`` if missing or expired."""
        key = TOKEN_PREFIX + name
        db: Session = self.session_factory()
        try:
            option = db.get(Option, key)
            if option is None:
                return default
            if option.expires_at is not None and option.expires_at <= self._now():
                db.delete(option)
                db.commit()
                logger.debug(f"Expired token removed: {name}")
                return default
            return option.value
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def delete_token(self, name: str) -> bool:
        return self.delete(TOKEN_PREFIX + name)

    def generate_state_token(self, ttl: Optional[int] = None) -> str:
        """Create a single-use state token (CSRF-style)."""
        token = secrets.token_urlsafe(24)
        self.set_token(STATE_TOKEN_PREFIX + token, 1, ttl=ttl)
        return token

    def validate_state_token(self, token: str) -> bool:
        """Check and consume a state token. Each token validates once."""
        if not token:
            return False
        name = STATE_TOKEN_PREFIX + token
        if self.get_token(name) is None:
            return False
        self.delete_token(name)
        return True

    def purge_expired_tokens(self) -> int:
        """Delete all expired tokens. Returns the number removed."""
        db: Session = self.session_factory()
        try:
            removed = (
                db.query(Option)
                .filter(Option.expires_at.isnot(None), Option.expires_at <= self._now())
                .delete(synchronize_session=False)
            )
            db.commit()
            if removed:
                logger.info(f"Purged {removed} expired tokens")
            return removed
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def _write(self, name: str, value: Any, expires_at: Optional[int]) -> None:
        db: Session = self.session_factory()
        try:
            option = db.get(Option, name)
            if option is None:
                option = Option(name=name)
                db.add(option)
            option.value = value
            option.expires_at = expires_at
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()
