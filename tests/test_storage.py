"""
Tests for storage.py - row store primitives and transactions.
"""

import pytest

from jobbookings.errors import Conflict, StoreUnavailable
from jobbookings.storage import BookingStore, run_transaction


def _insert(date_key, booking_id, position, job):
    run_transaction(lambda store: store.insert({
        "id": booking_id,
        "date_key": date_key,
        "position": position,
        "job": job,
    }))


class TestSelect:
    """Ordered reads."""

    def test_group_ordered_by_position(self, db_url):
        _insert("2024-05-01", "b", 1, {"title": "B"})
        _insert("2024-05-01", "a", 0, {"title": "A"})
        _insert("2024-05-01", "c", 2, {"title": "C"})

        rows = run_transaction(lambda store: store.select_by_date_key_ordered("2024-05-01"))
        assert [r["id"] for r in rows] == ["a", "b", "c"]
        assert rows[0]["job"] == {"title": "A"}

    def test_select_all_ordered_by_date_then_position(self, db_url):
        _insert("2024-05-02", "x", 0, {"title": "X"})
        _insert("2024-05-01", "b", 1, {"title": "B"})
        _insert("2024-05-01", "a", 0, {"title": "A"})

        rows = run_transaction(lambda store: store.select_all_ordered())
        assert [(r["date_key"], r["id"]) for r in rows] == [
            ("2024-05-01", "a"),
            ("2024-05-01", "b"),
            ("2024-05-02", "x"),
        ]

    def test_select_missing_group_is_empty(self, db_url):
        assert run_transaction(lambda store: store.select_by_date_key_ordered("1999-01-01")) == []

    def test_date_key_of(self, db_url):
        _insert("2024-05-01", "a", 0, {})

        assert run_transaction(lambda store: store.date_key_of("a")) == "2024-05-01"
        assert run_transaction(lambda store: store.date_key_of("missing")) is None

    def test_next_position(self, db_url):
        assert run_transaction(lambda store: store.next_position("2024-05-01")) == 0
        _insert("2024-05-01", "a", 0, {})
        _insert("2024-05-01", "b", 4, {})
        assert run_transaction(lambda store: store.next_position("2024-05-01")) == 5


class TestMutations:
    """Row-level writes and their affected counts."""

    def test_delete_by_id_counts(self, db_url):
        _insert("2024-05-01", "a", 0, {})

        assert run_transaction(lambda store: store.delete_by_id("a")) == 1
        assert run_transaction(lambda store: store.delete_by_id("a")) == 0

    def test_delete_by_date_key_only_touches_group(self, db_url):
        _insert("2024-05-01", "a", 0, {})
        _insert("2024-05-01", "b", 1, {})
        _insert("2024-05-02", "x", 0, {})

        assert run_transaction(lambda store: store.delete_by_date_key("2024-05-01")) == 2
        rows = run_transaction(lambda store: store.select_all_ordered())
        assert [r["id"] for r in rows] == ["x"]

    def test_update_by_id(self, db_url):
        _insert("2024-05-01", "a", 0, {"title": "A"})

        assert run_transaction(lambda store: store.update_by_id("a", {"title": "A2"})) == 1
        rows = run_transaction(lambda store: store.select_by_date_key_ordered("2024-05-01"))
        assert rows[0]["job"] == {"title": "A2"}

    def test_update_by_id_filtered_by_date_key(self, db_url):
        _insert("2024-05-01", "a", 0, {"title": "A"})

        assert run_transaction(lambda store: store.update_by_id("a", {"title": "Z"}, "2024-05-02")) == 0
        rows = run_transaction(lambda store: store.select_by_date_key_ordered("2024-05-01"))
        assert rows[0]["job"] == {"title": "A"}

    def test_replace_group_renumbers_and_keeps_ids(self, db_url):
        _insert("2024-05-01", "a", 3, {"title": "A"})
        _insert("2024-05-01", "b", 7, {"title": "B"})

        def body(store: BookingStore):
            rows = store.select_by_date_key_ordered("2024-05-01")
            store.replace_group("2024-05-01", list(reversed(rows)))

        run_transaction(body)
        rows = run_transaction(lambda store: store.select_by_date_key_ordered("2024-05-01"))
        assert [(r["id"], r["position"]) for r in rows] == [("b", 0), ("a", 1)]


class TestRunTransaction:
    """Commit, rollback and error translation."""

    def test_returns_body_result(self, db_url):
        assert run_transaction(lambda store: 42) == 42

    def test_ensure_schema_through_store(self, db_url):
        _insert("2024-05-01", "a", 0, {})
        run_transaction(lambda store: store.ensure_schema())
        assert len(run_transaction(lambda store: store.select_all_ordered())) == 1

    def test_duplicate_insert_raises_conflict(self, db_url):
        _insert("2024-05-01", "a", 0, {})

        with pytest.raises(Conflict):
            _insert("2024-06-01", "a", 0, {})

    def test_rollback_on_error(self, db_url):
        """A failure after the delete must leave the group untouched."""
        _insert("2024-05-01", "a", 0, {"title": "A"})

        def body(store: BookingStore):
            store.delete_by_date_key("2024-05-01")
            raise RuntimeError("crash between delete and reinsert")

        with pytest.raises(RuntimeError):
            run_transaction(body)

        rows = run_transaction(lambda store: store.select_by_date_key_ordered("2024-05-01"))
        assert [r["id"] for r in rows] == ["a"]

    def test_database_failure_raises_store_unavailable(self, tmp_path):
        """An unopenable database surfaces as StoreUnavailable."""
        from jobbookings.database import configure, dispose_engine

        # a directory cannot be opened as a SQLite file
        configure(f"sqlite:///{tmp_path}")
        try:
            with pytest.raises(StoreUnavailable):
                run_transaction(lambda store: store.select_all_ordered())
        finally:
            dispose_engine()
