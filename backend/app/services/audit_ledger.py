"""AuditLedger — append-only notes attached to a schedule.

Entries are only ever inserted. Ordering is the autoincrement ``note_id``,
so a listing always reflects insertion order.
"""
import logging
from collections.abc import Iterator
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.orm import Session

from app.models.schedule_note import ScheduleNote

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NoteEntry:
    author_id: str
    message: str
    created_at: datetime


class NoteHistory:
    """Lazy view of a schedule's notes.

    Nothing is fetched until iteration, and every iteration re-runs the
    query, so the same object can be walked again after new appends.
    """

    def __init__(self, db: Session, schedule_id: str, batch_size: int = 100):
        self._db = db
        self._schedule_id = schedule_id
        self._batch_size = batch_size

    def __iter__(self) -> Iterator[ScheduleNote]:
        query = (
            self._db.query(ScheduleNote)
            .filter(ScheduleNote.schedule_id == self._schedule_id)
            .order_by(ScheduleNote.note_id)
            .yield_per(self._batch_size)
        )
        yield from query


class AuditLedger:
    def __init__(self, db: Session):
        self.db = db

    def append(self, schedule_id: str, entry: NoteEntry) -> ScheduleNote:
        """Stage a new note. The caller owns the transaction."""
        note = ScheduleNote(
            schedule_id=schedule_id,
            author_id=entry.author_id,
            message=entry.message,
            created_at=entry.created_at,
        )
        self.db.add(note)
        self.db.flush()
        logger.debug("Appended note %s to schedule %s", note.note_id, schedule_id)
        return note

    def list(self, schedule_id: str) -> NoteHistory:
        return NoteHistory(self.db, schedule_id)
