"""Radio call capture archive: ingestion pipeline, call index and query API."""

__version__ = "0.1.0"
