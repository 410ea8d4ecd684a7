"""SQLAlchemy model for indexed calls."""

from sqlalchemy import BigInteger, Column, Integer, Numeric, String, Text

from callarchive.db.base import Base


class Call(Base):
    """
    Represents one archived call.

    ``freq`` and ``time`` come from the capture filename and are never
    rewritten once the row exists.  ``relative_path`` locates the file under
    the archive root and is the natural key ingestion upserts on.
    """
    __tablename__ = "calls"

    id = Column(Integer, primary_key=True, autoincrement=True, comment="Surrogate key assigned on insert.")
    freq = Column(String(64), nullable=False, index=True, comment="Frequency identifier taken from the filename.")
    time = Column(BigInteger, nullable=False, index=True, comment="Capture time in epoch seconds.")
    duration = Column(Numeric(asdecimal=False), nullable=False, comment="Audio duration in seconds.")
    size = Column(BigInteger, nullable=False, comment="File size in bytes at archival time.")
    relative_path = Column(Text, nullable=False, unique=True, comment="YYYY/MM/DD/<freq>_<epoch>.<ext> under the archive root.")

    def __repr__(self) -> str:
        return f"<Call id={self.id} freq={self.freq} time={self.time} path={self.relative_path}>"
