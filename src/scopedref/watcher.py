"""Watcher — a non-owning, checkable reference to a Holder's value.

A Watcher is either Unbound or Bound to a live Holder. Binding registers it
with the Holder; reset, rebind and collection deregister it. When the Holder
is closed it invalidates the Watcher, which then reports ``is_valid == False``
and refuses to dereference.

Watchers are pinned: they cannot be copied or pickled, since each one owns a
unique registration with its Holder. Rebinding is the only way to point a
Watcher somewhere else.
"""

from __future__ import annotations

import weakref
from typing import TYPE_CHECKING, Callable, Generic, TypeVar

from scopedref import _registry
from scopedref.errors import InvalidReferenceError

if TYPE_CHECKING:
    from scopedref.holder import Holder

T = TypeVar("T")


class Watcher(Generic[T]):
    """A reference to a Holder's value that knows when the Holder is gone.

    Usage:
        h = Holder(1)
        w = Watcher(h)
        if w:
            w.get()  # 1
        h.close()
        bool(w)  # False

    callback, if given, is called with the Watcher after the Holder it was
    bound to has been closed, like the callback of weakref.ref.
    """

    __slots__ = ("_holder_ref", "_holder_id", "_key", "_callback", "__weakref__")

    def __init__(
        self,
        holder: Holder[T] | None = None,
        *,
        callback: Callable[[Watcher[T]], None] | None = None,
    ) -> None:
        self._holder_ref: weakref.ref | None = None
        self._holder_id: int | None = None
        self._key: int | None = None
        self._callback = callback
        self.bind(holder)

    @property
    def is_valid(self) -> bool:
        """True while bound to a live Holder. Check before dereferencing."""
        return self._holder_ref is not None

    def __bool__(self) -> bool:
        return self._holder_ref is not None

    @property
    def holder(self) -> Holder[T] | None:
        return self._live_holder()

    @property
    def key(self) -> int | None:
        """Registration key issued by the current Holder, None while unbound."""
        return self._key

    def bind(self, holder: Holder[T] | None) -> Watcher[T]:
        """Point this Watcher at holder, dropping any current binding.

        Binding to None leaves the Watcher unbound. Rebinding to the same
        Holder re-registers and yields a new key. A closed Holder is rejected
        with HolderClosedError before the current binding is touched.
        """
        if holder is not None:
            holder._check_open()
        self.reset()
        if holder is not None:
            self._key = _registry.add_viewer(holder._id, self)
            self._holder_id = holder._id
            self._holder_ref = weakref.ref(holder)
        return self

    def reset(self) -> None:
        """Deregister from the current Holder, if any."""
        if self._holder_ref is not None:
            _registry.remove_viewer(self._holder_id, self._key)
            self._clear()

    close = reset

    def _live_holder(self) -> Holder[T] | None:
        # The weak reference dies just before the finalizer releases the slot.
        if self._holder_ref is None:
            return None
        return self._holder_ref()

    def get(self) -> T:
        """Read the watched value. Raises InvalidReferenceError when unbound."""
        holder = self._live_holder()
        if holder is None:
            raise InvalidReferenceError("watcher is not bound to a live holder")
        return holder._value

    def set(self, value: T) -> None:
        """Write through to the Holder. Raises InvalidReferenceError when unbound."""
        holder = self._live_holder()
        if holder is None:
            raise InvalidReferenceError("watcher is not bound to a live holder")
        holder._value = value

    def __call__(self) -> T | None:
        """The watched value, or None when unbound."""
        holder = self._live_holder()
        if holder is None:
            return None
        return holder._value

    def _clear(self) -> None:
        self._holder_ref = None
        self._holder_id = None
        self._key = None

    def _invalidate(self) -> None:
        """Called by the registry when the bound Holder is released."""
        self._clear()
        if self._callback is not None:
            self._callback(self)

    def _retarget(self, holder: Holder[T]) -> None:
        """Called when the bound Holder is moved; the key is unchanged."""
        self._holder_id = holder._id
        self._holder_ref = weakref.ref(holder)

    def __enter__(self) -> Watcher[T]:
        return self

    def __exit__(self, *exc_info) -> None:
        self.reset()

    def __copy__(self):
        raise TypeError("Watcher cannot be copied; bind a new Watcher instead")

    def __deepcopy__(self, memo):
        raise TypeError("Watcher cannot be copied; bind a new Watcher instead")

    def __reduce_ex__(self, protocol):
        raise TypeError("Watcher cannot be pickled")

    def __repr__(self) -> str:
        if self._holder_ref is None:
            return "Watcher(<unbound>)"
        return f"Watcher(holder={self._holder_id}, key={self._key})"
