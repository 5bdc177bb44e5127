"""
Unit tests for the single-use confirmation token store.

Run: pytest tests/unit/test_confirmation_store_service.py -v
"""

import threading
import pytest

from exceptions import ConfirmationNotFoundError, InvalidSelectionError
from services.confirmation_store_service import ConfirmationStore


class TestConfirmationStore:
    """Tests for ConfirmationStore"""

    def test_create_returns_token_and_expiry(self, clock):
        store = ConfirmationStore("Confirmation", ttl_minutes=10, clock=clock)

        token, expires_at = store.create({"item": "milk"})

        assert token
        assert (expires_at - clock()).total_seconds() == 600
        assert len(store) == 1

    def test_consume_is_single_use(self, clock):
        """Should succeed once and then raise NotFound."""
        store = ConfirmationStore("Confirmation", clock=clock)
        token, _ = store.create("payload")

        assert store.consume(token) == "payload"
        with pytest.raises(ConfirmationNotFoundError) as exc_info:
            store.consume(token)

        assert exc_info.value.status_code == 404
        assert exc_info.value.message == "Confirmation request expired or not found"

    def test_expired_token_is_not_consumable(self, clock):
        store = ConfirmationStore("Brand selection", ttl_minutes=10, clock=clock)
        token, _ = store.create("payload")

        clock.advance(minutes=10)

        with pytest.raises(ConfirmationNotFoundError) as exc_info:
            store.consume(token)
        assert exc_info.value.message == "Brand selection request expired or not found"

    def test_token_valid_just_before_expiry(self, clock):
        store = ConfirmationStore(clock=clock)
        token, _ = store.create("payload")

        clock.advance(minutes=9, seconds=59)

        assert store.consume(token) == "payload"

    def test_expired_entries_swept_on_create(self, clock):
        """Should purge stale tokens lazily."""
        store = ConfirmationStore(clock=clock)
        store.create("old")
        clock.advance(minutes=11)

        store.create("new")

        assert len(store) == 1

    def test_reject_removes_token(self, clock):
        store = ConfirmationStore(clock=clock)
        token, _ = store.create("payload")

        store.reject(token)

        with pytest.raises(ConfirmationNotFoundError):
            store.consume(token)

    def test_reject_unknown_token(self, clock):
        store = ConfirmationStore(clock=clock)

        with pytest.raises(ConfirmationNotFoundError):
            store.reject("no-such-token")

    def test_failed_check_keeps_token(self, clock):
        """Should leave the token pending when the check raises."""
        store = ConfirmationStore(clock=clock)
        token, _ = store.create({"options": ["A"]})

        def check(payload):
            raise InvalidSelectionError("B", "brand")

        with pytest.raises(InvalidSelectionError):
            store.consume(token, check=check)

        assert store.consume(token) == {"options": ["A"]}

    def test_concurrent_consume_succeeds_once(self):
        """Should let exactly one of many concurrent consumers win."""
        store = ConfirmationStore()
        token, _ = store.create("payload")
        wins = []
        losses = []

        def worker():
            try:
                wins.append(store.consume(token))
            except ConfirmationNotFoundError:
                losses.append(1)

        threads = [threading.Thread(target=worker) for _ in range(20)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(wins) == 1
        assert len(losses) == 19
