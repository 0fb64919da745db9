"""Registration engine — the bookkeeping between Holders and Watchers.

Each Holder slot maps registration keys to weak references of the Watchers
bound to it. A Watcher registers when it binds and deregisters when it is
reset, rebound or collected. Releasing a slot invalidates every Watcher
still registered.

Only holder.py and watcher.py call into this module.
"""

from __future__ import annotations

import logging
import weakref
from typing import TYPE_CHECKING

from scopedref import _anchor
from scopedref.errors import KeySpaceExhaustedError

if TYPE_CHECKING:
    from scopedref.watcher import Watcher

logger = logging.getLogger("scopedref.registry")


def open_slot() -> int:
    """Allocate an empty registration slot. Returns the new holder id."""
    holder_id = _anchor.new_id()
    _anchor.registries[holder_id] = {}
    _anchor.next_keys[holder_id] = 0
    logger.debug("Opened holder %d", holder_id)
    return holder_id


def _entry(watcher: Watcher, holder_id: int, key: int) -> weakref.ref:
    # Collecting the watcher drops its own registration.
    return weakref.ref(watcher, lambda _ref: remove_viewer(holder_id, key))


def add_viewer(holder_id: int, watcher: Watcher) -> int:
    """Register watcher with the holder and return its key.

    Keys are pre-incremented, so the first key issued is 1, and are never
    reused for the lifetime of the slot.
    """
    key = _anchor.next_keys[holder_id] + 1
    if key > _anchor.key_limit:
        raise KeySpaceExhaustedError(
            f"holder {holder_id} has issued all {_anchor.key_limit} registration keys"
        )
    _anchor.next_keys[holder_id] = key
    _anchor.registries[holder_id][key] = _entry(watcher, holder_id, key)
    logger.debug("Registered watcher key %d on holder %d", key, holder_id)
    return key


def remove_viewer(holder_id: int, key: int) -> None:
    """Drop a registration. Absent keys and released slots are ignored."""
    registry = _anchor.registries.get(holder_id)
    if registry is not None and registry.pop(key, None) is not None:
        logger.debug("Removed watcher key %d from holder %d", key, holder_id)


def live_watchers(holder_id: int) -> dict[int, Watcher]:
    """Snapshot of the Watchers currently registered with a slot."""
    result = {}
    for key, ref in list(_anchor.registries.get(holder_id, {}).items()):
        watcher = ref()
        if watcher is not None:
            result[key] = watcher
    return result


def transfer(old_id: int, new_id: int) -> dict[int, Watcher]:
    """Hand a slot's key counter and registrations to new_id.

    The old slot ceases to exist. Returns the transferred Watchers by key;
    the caller is responsible for pointing them at their new Holder.
    """
    watchers = live_watchers(old_id)
    _anchor.next_keys[new_id] = _anchor.next_keys.pop(old_id)
    del _anchor.registries[old_id]
    _anchor.registries[new_id] = {
        key: _entry(watcher, new_id, key) for key, watcher in watchers.items()
    }
    logger.debug(
        "Moved holder %d to %d with %d watchers", old_id, new_id, len(watchers)
    )
    return watchers


def release(holder_id: int) -> int:
    """Discard a slot and invalidate every Watcher still registered with it.

    The registry is detached from the anchor before the walk, so Watchers
    that react to invalidation see a closed Holder. A failing invalidation
    callback is logged and the walk continues. Returns the number of
    Watchers invalidated; releasing a missing slot returns 0.
    """
    registry = _anchor.registries.pop(holder_id, None)
    if registry is None:
        return 0
    _anchor.next_keys.pop(holder_id, None)

    invalidated = 0
    for key, ref in list(registry.items()):
        watcher = ref()
        if watcher is None:
            continue
        invalidated += 1
        try:
            watcher._invalidate()
        except Exception:
            logger.exception(
                "Invalidation callback failed for watcher key %d of holder %d",
                key, holder_id,
            )
    logger.debug("Released holder %d, invalidated %d watchers", holder_id, invalidated)
    return invalidated
