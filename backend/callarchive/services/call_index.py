"""Persistent index of archived calls.

The unique constraint on ``calls.relative_path`` is what makes ingestion
idempotent: a second insert for the same path becomes an update of
``duration``/``size`` in a single ``INSERT ... ON CONFLICT`` statement, so
concurrent ingestions of one file cannot produce duplicate rows.
"""

from __future__ import annotations

import logging
import time
from typing import List, Optional

from sqlalchemy import func, inspect
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from ..db.base import Base
from ..db.database import make_session_factory
from ..models.call import Call
from ..models.index_state import IndexState
from .errors import IndexWriteFailure

logger = logging.getLogger(__name__)

REBUILD_MARKER = "rebuild"

_UPSERT_DIALECTS = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}


class CallIndex:
    """Read/write access to the ``calls`` table."""

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        self.SessionLocal = make_session_factory(engine)
        try:
            self._insert = _UPSERT_DIALECTS[engine.dialect.name]
        except KeyError:
            raise ValueError(f"Unsupported database dialect: {engine.dialect.name}") from None

    def create_schema(self) -> bool:
        """Create the index tables if absent.

        Returns ``True`` while the index still has to be rebuilt from the
        archive, i.e. until :meth:`mark_rebuilt` has been recorded.  An
        interrupted rebuild is therefore repeated on the next start.
        """
        existed = inspect(self.engine).has_table(Call.__tablename__)
        Base.metadata.create_all(bind=self.engine)
        if not existed:
            logger.info("Created table %s", Call.__tablename__)
        return not self.is_rebuilt()

    def is_rebuilt(self) -> bool:
        db = self.SessionLocal()
        try:
            return db.get(IndexState, REBUILD_MARKER) is not None
        finally:
            db.close()

    def mark_rebuilt(self) -> None:
        """Record that every archived file has been indexed."""
        db = self.SessionLocal()
        try:
            db.merge(IndexState(name=REBUILD_MARKER, completed_at=int(time.time())))
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            raise IndexWriteFailure(f"cannot record {REBUILD_MARKER} marker: {exc}") from exc
        finally:
            db.close()

    def upsert(self, freq: str, time: int, duration: float, size: int, relative_path: str) -> None:
        """Insert a call, or refresh ``duration``/``size`` of the existing row for ``relative_path``."""
        stmt = self._insert(Call).values(
            freq=freq,
            time=time,
            duration=duration,
            size=size,
            relative_path=relative_path,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["relative_path"],
            set_={"duration": stmt.excluded.duration, "size": stmt.excluded.size},
        )
        db = self.SessionLocal()
        try:
            db.execute(stmt)
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            raise IndexWriteFailure(f"upsert failed for {relative_path}: {exc}") from exc
        finally:
            db.close()

    def query(
        self,
        freq: Optional[str] = None,
        after_time: Optional[int] = None,
        before_time: Optional[int] = None,
    ) -> List[Call]:
        """Calls matching every given filter, oldest first. Time bounds are exclusive."""
        db = self.SessionLocal()
        try:
            q = db.query(Call)
            if freq is not None:
                q = q.filter(Call.freq == freq)
            if after_time is not None:
                q = q.filter(Call.time > after_time)
            if before_time is not None:
                q = q.filter(Call.time < before_time)
            return q.order_by(Call.time.asc(), Call.id.asc()).all()
        finally:
            db.close()

    def total_size(self) -> int:
        db = self.SessionLocal()
        try:
            return int(db.query(func.coalesce(func.sum(Call.size), 0)).scalar())
        finally:
            db.close()

    def find_id_by_path(self, relative_path: str) -> Optional[int]:
        """Return the id of the call stored at ``relative_path``, or ``None``."""
        db = self.SessionLocal()
        try:
            return db.query(Call.id).filter(Call.relative_path == relative_path).scalar()
        finally:
            db.close()

    def delete_by_id(self, call_id: int) -> bool:
        """Delete one call. Returns ``False`` when no row had ``call_id``."""
        db = self.SessionLocal()
        try:
            deleted = db.query(Call).filter(Call.id == call_id).delete(synchronize_session=False)
            db.commit()
            return deleted > 0
        except SQLAlchemyError:
            db.rollback()
            raise
        finally:
            db.close()
