# Models package (re-export feature modules for stable imports)
from .state.stored_state import StoredState

__all__ = [
    "StoredState",
]
