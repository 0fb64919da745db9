"""scopedref: scope-bound values with self-invalidating watchers."""

from importlib.metadata import version as _version

__version__ = _version("scopedref")

from scopedref.errors import (
    ScopedRefError,
    InvalidReferenceError,
    HolderClosedError,
    KeySpaceExhaustedError,
)
from scopedref.watcher import Watcher
from scopedref.holder import Holder, set_key_limit, get_key_limit
# textual NOT auto-imported — opt-in only

__all__ = [
    "Holder",
    "Watcher",
    "set_key_limit",
    "get_key_limit",
    "ScopedRefError",
    "InvalidReferenceError",
    "HolderClosedError",
    "KeySpaceExhaustedError",
]
