# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""Tests for lazy import patterns in __init__.py modules.

These tests cover the __getattr__ lazy import mechanisms used for the
optional Redis store.
"""

import pytest


class TestTopLevelLazyImports:
    """Test lazy imports from the top-level ticket_reservation module."""

    def test_lazy_redis_store_import(self):
        """Cover __getattr__ lazy import of RedisStore from top-level module."""
        pytest.importorskip("redis")
        from ticket_reservation import RedisStore
        from ticket_reservation.stores.redis import RedisStore as direct

        assert RedisStore is direct

    def test_unknown_attribute_error_message_format(self):
        import ticket_reservation

        with pytest.raises(
            AttributeError,
            match=r"module 'ticket_reservation' has no attribute 'FakeClass'",
        ):
            _ = ticket_reservation.FakeClass


class TestStoresLazyImports:
    """Test lazy imports from ticket_reservation.stores."""

    def test_lazy_redis_store_import(self):
        pytest.importorskip("redis")
        from ticket_reservation.stores import RedisStore

        assert RedisStore.__name__ == "RedisStore"

    def test_unknown_attribute_raises_attribute_error(self):
        import ticket_reservation.stores

        with pytest.raises(AttributeError, match=r"has no attribute"):
            _ = ticket_reservation.stores.NonExistentAttribute

    def test_eager_exports_do_not_need_redis(self):
        from ticket_reservation.stores import BaseStore, MemoryStore

        assert issubclass(MemoryStore, BaseStore)
