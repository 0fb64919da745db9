"""Holder — the exclusive owner of a single value.

A Holder is scoped: it lives until it is closed, leaves its ``with`` block,
or is garbage collected. At that point every Watcher still bound to it is
invalidated and reports ``is_valid == False``.

The value lives on the Holder itself; registration state lives in _anchor,
keyed by the Holder's _id. Nothing global refers to the value, so a value
that refers back to its own Holder is still collected.
"""

from __future__ import annotations

import logging
import weakref
from typing import Callable, Generic, TypeVar

from scopedref import _anchor, _registry
from scopedref.errors import HolderClosedError
from scopedref.watcher import Watcher

T = TypeVar("T")

_UNSET = object()

logger = logging.getLogger("scopedref.holder")


def set_key_limit(limit: int) -> None:
    """Set the largest registration key a Holder may issue.

    Applies to keys issued after the call. Binding past the limit raises
    KeySpaceExhaustedError instead of wrapping around.
    """
    if limit < 1:
        raise ValueError(f"key limit must be at least 1, got {limit}")
    _anchor.key_limit = limit


def get_key_limit() -> int:
    return _anchor.key_limit


class Holder(Generic[T]):
    """Owns one value and invalidates its Watchers when it goes away.

    Usage:
        with Holder(54325) as h:
            w = Watcher(h)
            w.get()  # 54325
        w.is_valid  # False
    """

    __slots__ = ("_id", "_value", "_finalizer", "_moved", "__weakref__")

    def __init__(
        self,
        value: object = _UNSET,
        *,
        default_factory: Callable[[], T] | None = None,
    ) -> None:
        if default_factory is not None:
            if value is not _UNSET:
                raise TypeError("pass either a value or a default_factory, not both")
            value = default_factory()
        elif value is _UNSET:
            value = None
        self._attach(_registry.open_slot(), value)

    def _attach(self, holder_id: int, value: T) -> None:
        self._id = holder_id
        self._value = value
        self._moved = False
        # Runs on close() or when the handle is collected, whichever is first.
        self._finalizer = weakref.finalize(self, _registry.release, holder_id)

    def _check_open(self) -> None:
        if not _anchor.is_open(self._id):
            state = "moved from" if self._moved else "closed"
            raise HolderClosedError(f"holder {self._id} has been {state}")

    @property
    def closed(self) -> bool:
        return not _anchor.is_open(self._id)

    @property
    def moved(self) -> bool:
        return self._moved

    def get(self) -> T:
        """Read the owned value."""
        self._check_open()
        return self._value

    def set(self, value: T) -> None:
        """Replace the owned value in place. Bound Watchers see the new value."""
        self._check_open()
        self._value = value

    def watch(self, *, callback: Callable[[Watcher[T]], None] | None = None) -> Watcher[T]:
        """Create a Watcher bound to this Holder."""
        return Watcher(self, callback=callback)

    @property
    def watcher_count(self) -> int:
        return len(_registry.live_watchers(self._id))

    def watchers(self) -> dict[int, Watcher[T]]:
        """Registered Watchers by registration key. Empty once closed."""
        return _registry.live_watchers(self._id)

    def move(self) -> Holder[T]:
        """Transfer the value, key counter and Watchers to a new Holder.

        Watchers keep their keys and now point at the returned Holder. This
        Holder is left closed; using it afterwards raises HolderClosedError.
        """
        self._check_open()
        new = type(self).__new__(type(self))
        new_id = _anchor.new_id()
        watchers = _registry.transfer(self._id, new_id)
        new._attach(new_id, self._value)
        self._value = None
        for watcher in watchers.values():
            watcher._retarget(new)
        self._moved = True
        self._finalizer.detach()
        logger.debug("Holder %d moved into %d", self._id, new_id)
        return new

    def close(self) -> None:
        """Destroy the value and invalidate all bound Watchers. Idempotent."""
        self._finalizer()
        self._value = None

    def __enter__(self) -> Holder[T]:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def __copy__(self):
        raise TypeError("Holder cannot be copied; use move() to transfer ownership")

    def __deepcopy__(self, memo):
        raise TypeError("Holder cannot be copied; use move() to transfer ownership")

    def __reduce_ex__(self, protocol):
        raise TypeError("Holder cannot be pickled")

    def __repr__(self) -> str:
        if self.closed:
            state = "moved" if self._moved else "closed"
            return f"Holder(<{state}>)"
        return f"Holder({self._value!r}, watchers={self.watcher_count})"
