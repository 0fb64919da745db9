"""Textual integration for scopedref. Opt-in — requires textual.

Widgets often keep a Watcher on state owned by a screen or another widget.
deref() reads through such a Watcher only when both the Watcher and the
app's widget tree are in a usable state.
"""

from contextlib import contextmanager

from textual.css.query import NoMatches

# Module-owned pause state, keyed by id(app) so multiple apps work in tests.
_paused_apps: set[int] = set()


@contextmanager
def pause(app):
    """Suspend guarded dereferences during widget replacement."""
    key = id(app)
    _paused_apps.add(key)
    try:
        yield
    finally:
        _paused_apps.discard(key)


def is_safe(app) -> bool:
    """Is the widget tree in a queryable state?"""
    return app.is_running and id(app) not in _paused_apps


def deref(app, watcher, fn) -> bool:
    """Call fn(watcher.get()) if the app is safe and the watcher is valid.

    NoMatches raised by widget queries inside fn is swallowed; anything else
    propagates. Returns True when fn ran to completion.
    """
    if not is_safe(app) or not watcher.is_valid:
        return False
    try:
        fn(watcher.get())
    except NoMatches:
        return False
    return True
