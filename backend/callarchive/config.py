"""Application-wide configuration loader.

Every setting comes from an environment variable and falls back to an in-code
default.  The idiom

    os.getenv(KEY) or DEFAULT

is used throughout so that *falsy* values ("" injected by a compose file or a
systemd unit with an empty ``Environment=``) are replaced by the default
instead of overriding it.

Other modules import the module-level ``settings`` singleton; tests build a
fresh :class:`Settings` after patching the environment.
"""

import os
from pathlib import Path


class Settings:
    """Snapshot of the environment taken at construction time."""

    def __init__(self) -> None:
        self.WATCH_DIR: Path = Path(os.getenv('WATCH_DIR') or 'data/incoming')
        self.ARCHIVE_DIR: Path = Path(os.getenv('ARCHIVE_DIR') or 'data/archive')
        self.DATABASE_URL: str = os.getenv('DATABASE_URL') or 'sqlite:///./db.v1.sqlite'
        self.DB_ECHO: bool = (os.getenv('DB_ECHO') or '0').lower() in ('1', 'true', 'yes')

        # Ingestion
        self.MIN_CALL_LENGTH: float = float(os.getenv('MIN_CALL_LENGTH') or '3.5')
        self.RESCAN_INTERVAL: float = float(os.getenv('RESCAN_INTERVAL') or '20')
        self.STABILITY_THRESHOLD: float = float(os.getenv('STABILITY_THRESHOLD') or '1.0')
        self.STABILITY_POLL_INTERVAL: float = float(os.getenv('STABILITY_POLL_INTERVAL') or '0.2')
        self.INGEST_WORKERS: int = int(os.getenv('INGEST_WORKERS') or '4')

        # Query surface
        self.CAPACITY_CACHE_TTL: float = float(os.getenv('CAPACITY_CACHE_TTL') or '3600')
        self.PORT: int = int(os.getenv('PORT') or '8080')


settings = Settings()
