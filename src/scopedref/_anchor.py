"""Data anchor — plain Python structures that hold registration state.

Every open Holder owns one slot here, keyed by its integer id. A slot holds
weak references to Watchers and a key counter, never the owned value, so
nothing here keeps a Holder or its value alive. Moving a Holder hands a
slot's contents to a new id.
"""

import itertools

registries: dict[int, dict] = {}  # holder_id -> {key: weakref to Watcher}
next_keys: dict[int, int] = {}  # holder_id -> last issued key

# Largest registration key a single Holder may issue.
key_limit: int = 65535

_id_counter = itertools.count(1)


def new_id() -> int:
    return next(_id_counter)


def is_open(holder_id: int) -> bool:
    return holder_id in registries
