"""SQLAlchemy model for index bookkeeping."""

from sqlalchemy import BigInteger, Column, String

from callarchive.db.base import Base


class IndexState(Base):
    """
    Named markers about the index itself.

    A ``rebuild`` row exists once every file in the archive has been walked
    into ``calls``.  Until then each start-up repeats the walk.
    """
    __tablename__ = "index_state"

    name = Column(String(64), primary_key=True, comment="Marker name.")
    completed_at = Column(BigInteger, nullable=False, comment="Epoch seconds when the marker was set.")

    def __repr__(self) -> str:
        return f"<IndexState name={self.name} completed_at={self.completed_at}>"
