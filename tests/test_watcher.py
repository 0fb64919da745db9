"""Tests for Watcher — binding, validity, dereference, invalidation."""

import copy
import gc
import logging
import pickle

import pytest

from scopedref import Holder, Watcher, InvalidReferenceError, HolderClosedError


class TestBinding:
    def test_default_is_unbound(self):
        w = Watcher()
        assert not w.is_valid
        assert not w
        assert w.holder is None
        assert w.key is None

    def test_none_leaves_unbound(self):
        w = Watcher(None)
        assert not w.is_valid
        h = Holder(1)
        w.bind(h)
        w.bind(None)
        assert not w.is_valid
        assert h.watcher_count == 0

    def test_first_key_is_one(self):
        h = Holder(1)
        w = Watcher(h)
        assert w.key == 1
        assert w.holder is h

    def test_rebind_same_holder_issues_new_key(self):
        h = Holder(1)
        w = Watcher(h)
        w.bind(h)
        assert w.key == 2
        assert h.watchers() == {2: w}

    def test_rebind_moves_registration(self):
        h1 = Holder(1)
        h2 = Holder(2)
        other = Watcher(h2)
        w = Watcher(h1)
        assert (h1.watcher_count, h2.watcher_count) == (1, 1)
        w.bind(h2)
        assert (h1.watcher_count, h2.watcher_count) == (0, 2)
        assert w.get() == 2
        assert h2.watchers() == {other.key: other, w.key: w}

    def test_bind_returns_self(self):
        h = Holder(1)
        w = Watcher()
        assert w.bind(h) is w

    def test_bind_to_closed_holder_keeps_current_binding(self):
        h1 = Holder(1)
        h2 = Holder(2)
        h2.close()
        w = Watcher(h1)
        with pytest.raises(HolderClosedError):
            w.bind(h2)
        assert w.holder is h1
        assert w.key == 1

    def test_keys_never_reused(self):
        h = Holder(0)
        seen = []
        for _ in range(5):
            w = Watcher(h)
            seen.append(w.key)
            w.reset()
        assert seen == [1, 2, 3, 4, 5]

    def test_simultaneous_keys_are_distinct(self):
        h = Holder(0)
        watchers = [Watcher(h) for _ in range(10)]
        keys = [w.key for w in watchers]
        assert len(set(keys)) == 10
        assert set(h.watchers()) == set(keys)


class TestReset:
    def test_reset_deregisters(self):
        h = Holder(1)
        w = Watcher(h)
        w.reset()
        assert not w.is_valid
        assert h.watcher_count == 0

    def test_reset_unbound_is_noop(self):
        w = Watcher()
        w.reset()
        w.reset()
        assert not w.is_valid

    def test_reset_after_holder_closed_is_noop(self):
        h = Holder(1)
        w = Watcher(h)
        h.close()
        w.reset()
        assert not w.is_valid

    def test_context_manager_resets(self):
        h = Holder(1)
        with Watcher(h) as w:
            assert h.watcher_count == 1
        assert not w.is_valid
        assert h.watcher_count == 0

    def test_collection_deregisters(self):
        h = Holder(1)
        w = Watcher(h)
        del w
        gc.collect()
        assert h.watcher_count == 0


class TestDereference:
    def test_get_and_call(self):
        h = Holder("value")
        w = Watcher(h)
        assert w.get() == "value"
        assert w() == "value"

    def test_set_writes_through(self):
        h = Holder(1)
        w = Watcher(h)
        w.set(7)
        assert h.get() == 7

    def test_unbound_get_raises(self):
        w = Watcher()
        with pytest.raises(InvalidReferenceError):
            w.get()
        with pytest.raises(InvalidReferenceError):
            w.set(1)

    def test_invalid_reference_is_reference_error(self):
        with pytest.raises(ReferenceError):
            Watcher().get()

    def test_call_returns_none_when_unbound(self):
        assert Watcher()() is None

    def test_sees_holder_mutations(self):
        h = Holder([1])
        w = Watcher(h)
        h.get().append(2)
        assert w.get() == [1, 2]


class TestInvalidation:
    def test_close_invalidates(self):
        h = Holder(1)
        w = Watcher(h)
        h.close()
        assert not w.is_valid
        assert w.holder is None
        assert w.key is None
        assert w() is None

    def test_holder_collection_invalidates(self):
        h = Holder(1)
        w = Watcher(h)
        del h
        gc.collect()
        assert not w.is_valid

    def test_watcher_does_not_keep_holder_alive(self):
        w = Watcher(Holder(1))
        gc.collect()
        assert not w.is_valid

    def test_callback_runs_on_invalidation(self):
        h = Holder(1)
        log = []
        w = Watcher(h, callback=log.append)
        h.close()
        assert log == [w]

    def test_callback_sees_invalid_watcher(self):
        h = Holder(1)
        states = []
        w = Watcher(h, callback=lambda w: states.append((w.is_valid, w.key)))
        h.close()
        assert states == [(False, None)]
        assert not w.is_valid

    def test_callback_not_run_on_reset(self):
        h = Holder(1)
        log = []
        w = Watcher(h, callback=log.append)
        w.reset()
        h.close()
        assert log == []

    def test_rebind_after_invalidation(self):
        h1 = Holder(1)
        w = Watcher(h1)
        h1.close()
        h2 = Holder(2)
        w.bind(h2)
        assert w.is_valid
        assert w.get() == 2

    def test_failing_callback_is_logged(self, caplog):
        """A raising callback does not stop the remaining invalidations."""
        h = Holder(1)

        def _boom(w):
            raise RuntimeError("boom")

        first = Watcher(h, callback=_boom)
        second = Watcher(h)
        with caplog.at_level(logging.ERROR, logger="scopedref.registry"):
            h.close()

        assert not first.is_valid
        assert not second.is_valid
        assert "Invalidation callback failed" in caplog.text


class TestPinned:
    def test_not_copyable(self):
        w = Watcher(Holder(1))
        with pytest.raises(TypeError):
            copy.copy(w)
        with pytest.raises(TypeError):
            copy.deepcopy(w)

    def test_not_picklable(self):
        with pytest.raises(TypeError):
            pickle.dumps(Watcher())

    def test_repr(self):
        assert repr(Watcher()) == "Watcher(<unbound>)"
        h = Holder(1)
        w = Watcher(h)
        assert repr(w) == f"Watcher(holder={h._id}, key=1)"
