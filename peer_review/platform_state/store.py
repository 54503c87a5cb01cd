"""
Local snapshot store: one serialized PlatformState blob under a fixed key.
Save overwrites; load falls back to the baseline when nothing usable is stored.
"""
import json
import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Column, String, DateTime, Text, select, delete

from peer_review.core.db import Base, Database

from .baseline import base_state
from .errors import MalformedPayload
from .models import PlatformState
from .normalizer import normalize_platform_state

logger = logging.getLogger(__name__)

DEFAULT_SNAPSHOT_KEY = "peerReview_platformData"


class SnapshotRecord(Base):
    """One persisted snapshot. data is the JSON text of the platform state (wire form)."""
    __tablename__ = "platform_snapshots"

    key = Column(String(255), primary_key=True)
    saved_at = Column(DateTime(timezone=False), nullable=False)
    data = Column(Text, nullable=False)


class SnapshotStore:
    def __init__(self, database: Database, key: str = DEFAULT_SNAPSHOT_KEY):
        self.database = database
        self.key = key

    def _read_blob(self) -> Optional[str]:
        with self.database.session_scope() as session:
            row = session.execute(
                select(SnapshotRecord).where(SnapshotRecord.key == self.key)
            ).scalars().first()
            return row.data if row else None

    def load(self) -> PlatformState:
        """Last saved state, or the baseline if nothing (usable) is stored."""
        raw = self._read_blob()
        if not raw:
            return base_state()
        try:
            return normalize_platform_state(json.loads(raw))
        except (ValueError, MalformedPayload) as e:
            # json.JSONDecodeError is a ValueError
            logger.warning(f"Ignoring unreadable snapshot '{self.key}': {e}")
            return base_state()

    def save(self, state: PlatformState) -> None:
        """Replace the stored snapshot with state."""
        blob = json.dumps(state.to_payload())
        saved_at = datetime.now(timezone.utc).replace(tzinfo=None)
        with self.database.session_scope() as session:
            session.execute(delete(SnapshotRecord).where(SnapshotRecord.key == self.key))
            session.add(SnapshotRecord(key=self.key, saved_at=saved_at, data=blob))
        logger.debug(f"Saved snapshot '{self.key}' ({len(blob)} bytes)")

    def write_raw(self, blob: str) -> None:
        """Store a blob without validating it."""
        with self.database.session_scope() as session:
            session.execute(delete(SnapshotRecord).where(SnapshotRecord.key == self.key))
            session.add(SnapshotRecord(
                key=self.key,
                saved_at=datetime.now(timezone.utc).replace(tzinfo=None),
                data=blob,
            ))

    def clear(self) -> None:
        with self.database.session_scope() as session:
            session.execute(delete(SnapshotRecord).where(SnapshotRecord.key == self.key))

    def last_saved_at(self) -> Optional[datetime]:
        with self.database.session_scope() as session:
            row = session.execute(
                select(SnapshotRecord.saved_at).where(SnapshotRecord.key == self.key)
            ).first()
            return row[0] if row else None
