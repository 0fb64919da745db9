"""Exceptions raised by scopedref."""


class ScopedRefError(Exception):
    """Base class for all scopedref errors."""


class InvalidReferenceError(ScopedRefError, ReferenceError):
    """Dereferenced a Watcher that is not bound to a live Holder."""


class HolderClosedError(ScopedRefError):
    """Used a Holder after it was closed or moved from."""


class KeySpaceExhaustedError(ScopedRefError):
    """A Holder has issued every registration key it is allowed to."""
