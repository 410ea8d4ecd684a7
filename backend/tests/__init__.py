# Test-wide environment defaults, applied before any callarchive module is imported
from __future__ import annotations

import os
import tempfile

# Use an in-memory SQLite DB for the import-time app unless overridden
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("DB_ECHO", "0")
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="callarchive-logs-"))
