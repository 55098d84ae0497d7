"""Tests for the SQLite bot store."""

import sys
import os

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from core.store import BotRecord, BotStore, StoreError

TOKEN = "123456:SECRET"


# ── Bot records ──────────────────────────────────────────────────────────────


class TestBotRecords:
    """Insert, read, list and delete bot rows."""

    def test_unknown_token(self, store) -> None:
        assert store.get_by_token(TOKEN) is None

    def test_insert_and_get(self, store) -> None:
        assert store.insert(TOKEN, 100) is True
        record = store.get_by_token(TOKEN)
        assert record == BotRecord(TOKEN, 100, set(), {})

    def test_duplicate_insert_is_ignored(self, store) -> None:
        assert store.insert(TOKEN, 100) is True
        assert store.insert(TOKEN, 999) is False
        assert store.get_by_token(TOKEN).creator_id == 100
        assert store.list_bots() == [(TOKEN, 100)]

    def test_upsert_updates_creator(self, store) -> None:
        store.upsert(TOKEN, 100)
        store.upsert(TOKEN, 200)
        assert store.list_bots() == [(TOKEN, 200)]

    def test_list_bots_in_insertion_order(self, store) -> None:
        store.insert("1:a", 10)
        store.insert("2:b", 20)
        assert store.list_bots() == [("1:a", 10), ("2:b", 20)]

    def test_delete(self, store) -> None:
        store.insert(TOKEN, 100)
        assert store.delete(TOKEN) is True
        assert store.delete(TOKEN) is False
        assert store.get_by_token(TOKEN) is None

    def test_delete_cascades_ban_rows(self, store) -> None:
        store.insert(TOKEN, 100)
        store.add_blocked(TOKEN, 42)
        store.increment_appeal_count(TOKEN, 42)
        store.delete(TOKEN)
        store.insert(TOKEN, 100)
        assert store.get_by_token(TOKEN) == BotRecord(TOKEN, 100, set(), {})

    def test_creates_parent_directory(self, tmp_path) -> None:
        path = tmp_path / "nested" / "dir" / "bots.db"
        BotStore(path)
        assert path.exists()

    def test_data_survives_reopen(self, tmp_path) -> None:
        path = tmp_path / "bots.db"
        first = BotStore(path)
        first.insert(TOKEN, 100)
        first.add_blocked(TOKEN, 42)
        first.increment_appeal_count(TOKEN, 42)

        second = BotStore(path)
        assert second.get_by_token(TOKEN) == BotRecord(TOKEN, 100, {42}, {42: 1})


# ── Ban / appeal fields ──────────────────────────────────────────────────────


class TestBanFields:
    """Blocked-user set and appeal counters."""

    @pytest.fixture(autouse=True)
    def _bot(self, store) -> None:
        store.insert(TOKEN, 100)

    def test_add_and_remove_blocked(self, store) -> None:
        assert store.add_blocked(TOKEN, 42) is True
        assert store.add_blocked(TOKEN, 42) is False
        assert store.is_blocked(TOKEN, 42) is True
        assert store.list_blocked(TOKEN) == [42]

        assert store.remove_blocked(TOKEN, 42) is True
        assert store.remove_blocked(TOKEN, 42) is False
        assert store.is_blocked(TOKEN, 42) is False

    def test_list_blocked_is_per_bot(self, store) -> None:
        store.insert("2:other", 200)
        store.add_blocked(TOKEN, 1)
        store.add_blocked("2:other", 2)
        assert store.list_blocked(TOKEN) == [1]
        assert store.list_blocked("2:other") == [2]

    def test_block_on_unknown_bot_raises(self, store) -> None:
        with pytest.raises(StoreError):
            store.add_blocked("999:missing", 42)

    def test_remove_blocked_resets_appeal_count(self, store) -> None:
        store.add_blocked(TOKEN, 42)
        store.increment_appeal_count(TOKEN, 42)
        store.increment_appeal_count(TOKEN, 42)
        store.remove_blocked(TOKEN, 42)
        assert store.get_appeal_count(TOKEN, 42) == 0

    def test_appeal_count_defaults_to_zero(self, store) -> None:
        assert store.get_appeal_count(TOKEN, 42) == 0

    def test_increment_without_limit(self, store) -> None:
        counts = [store.increment_appeal_count(TOKEN, 42) for _ in range(5)]
        assert counts == [1, 2, 3, 4, 5]

    def test_increment_is_clamped(self, store) -> None:
        counts = [store.increment_appeal_count(TOKEN, 42, limit=3) for _ in range(5)]
        assert counts == [1, 2, 3, 3, 3]
        assert store.get_appeal_count(TOKEN, 42) == 3
