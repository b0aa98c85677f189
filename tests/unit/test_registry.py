"""
Unit Tests for the connection registry.

Test Coverage:
- Claim returns the evictable previous holder
- Only the holder can release
- Weak references and active session listing
"""

import gc

from termrelay.backend.terminal.registry import ConnectionRegistry


class StubConnection:
    def __init__(self, is_open: bool = True):
        self.is_open = is_open


class TestConnectionRegistry:

    def test_first_claim_has_no_previous(self):
        registry = ConnectionRegistry()
        assert registry.claim("s", StubConnection()) is None

    def test_second_claim_returns_previous_open_holder(self):
        registry = ConnectionRegistry()
        first, second = StubConnection(), StubConnection()

        registry.claim("s", first)

        assert registry.claim("s", second) is first
        assert registry.get("s") is second

    def test_closed_previous_holder_is_not_returned(self):
        registry = ConnectionRegistry()
        first = StubConnection()
        registry.claim("s", first)
        first.is_open = False

        assert registry.claim("s", StubConnection()) is None

    def test_reclaim_by_same_connection(self):
        registry = ConnectionRegistry()
        conn = StubConnection()
        registry.claim("s", conn)
        assert registry.claim("s", conn) is None

    def test_release_by_holder(self):
        registry = ConnectionRegistry()
        conn = StubConnection()
        registry.claim("s", conn)

        assert registry.release("s", conn) is True
        assert registry.get("s") is None
        assert len(registry) == 0

    def test_release_by_evicted_connection_keeps_replacement(self):
        """Test a late cleanup from an evicted connection is a no-op."""
        registry = ConnectionRegistry()
        old, new = StubConnection(), StubConnection()
        registry.claim("s", old)
        registry.claim("s", new)

        assert registry.release("s", old) is False
        assert registry.get("s") is new

    def test_release_unknown_session(self):
        assert ConnectionRegistry().release("missing", StubConnection()) is False

    def test_active_session_names_skips_closed(self):
        registry = ConnectionRegistry()
        open_conn, closed_conn = StubConnection(), StubConnection(is_open=False)
        registry.claim("a", open_conn)
        registry.claim("b", closed_conn)

        assert registry.active_session_names() == {"a"}

    def test_entries_do_not_keep_connections_alive(self):
        registry = ConnectionRegistry()
        registry.claim("s", StubConnection())
        gc.collect()

        assert registry.get("s") is None
        assert len(registry) == 0
