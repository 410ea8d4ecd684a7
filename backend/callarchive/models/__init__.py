# Namespace for ORM models.
from .call import Call
from .index_state import IndexState

__all__ = ["Call", "IndexState"]
