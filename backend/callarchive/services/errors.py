"""Exceptions raised by the ingestion and index services."""


class CallArchiveError(Exception):
    """Base class for every domain error in the archive."""


class UnreadableHeader(CallArchiveError):
    """The audio header could not be parsed into a positive byte rate."""


class PlacementFailure(CallArchiveError):
    """Creating the archive directory or moving the capture failed.

    The capture is left where it was so a later rescan can retry it.
    """


class IndexWriteFailure(CallArchiveError):
    """The call index rejected an upsert for a reason other than the path conflict."""
