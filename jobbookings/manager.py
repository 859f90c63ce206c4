"""
Booking collection manager.

Translates the six booking operations into row store calls. Groups of rows
sharing a date_key are ordered, and index-addressed operations resolve their
position against a fresh read of the group inside the same transaction that
rewrites it. Row ids survive every positional rewrite.
"""

import uuid
from typing import Any, Callable, Dict, List, Optional

from .errors import InvalidIndex, NotFound
from .schema import split_job_id
from .storage import BookingStore, run_transaction


def new_booking_id() -> str:
    return uuid.uuid4().hex


def _check_index(rows: List[Dict[str, Any]], date_key: str, index: int) -> None:
    if not 0 <= index < len(rows):
        raise InvalidIndex(
            f"Index {index} out of range for {date_key} ({len(rows)} bookings)"
        )


def _lock_row_group(store: BookingStore, booking_id: str) -> None:
    # wait out any rewrite of the row's group so the row is not seen mid-reinsert
    date_key = store.date_key_of(booking_id)
    if date_key is not None:
        store.lock_group(date_key)


class BookingManager:
    """Owns no state between calls; everything lives in the row store."""

    def __init__(self, transaction: Callable = run_transaction):
        self._transaction = transaction

    def list_bookings(self) -> Dict[str, List[Dict[str, Any]]]:
        """Return {date_key: [job with id, ...]} in group order."""
        rows = self._transaction(lambda store: store.select_all_ordered())
        grouped: Dict[str, List[Dict[str, Any]]] = {}
        for row in rows:
            grouped.setdefault(row["date_key"], []).append({**(row["job"] or {}), "id": row["id"]})
        return grouped

    def add(self, date_key: str, job: Dict[str, Any], booking_id: Optional[str] = None) -> str:
        """
        Append a job to the date group.

        Args:
            date_key: Group key
            job: Job document; an embedded 'id' is used when booking_id is not given
            booking_id: Optional caller-supplied id

        Returns:
            The supplied or generated id

        Raises:
            Conflict: If a row with that id already exists
        """
        embedded_id, job = split_job_id(job)
        booking_id = booking_id or embedded_id or new_booking_id()

        def body(store: BookingStore) -> str:
            store.lock_group(date_key)
            store.insert({
                "id": booking_id,
                "date_key": date_key,
                "position": store.next_position(date_key),
                "job": job,
            })
            return booking_id

        return self._transaction(body)

    def update_by_index(self, date_key: str, index: int, job: Dict[str, Any]) -> None:
        """Replace the job at a position and rewrite the whole group in one transaction."""
        _, job = split_job_id(job)

        def body(store: BookingStore) -> None:
            store.lock_group(date_key)
            rows = store.select_by_date_key_ordered(date_key, for_update=True)
            _check_index(rows, date_key, index)
            rows[index] = {**rows[index], "job": job}
            store.replace_group(date_key, rows)

        self._transaction(body)

    def update_by_id(self, booking_id: str, job: Dict[str, Any], date_key: Optional[str] = None) -> None:
        """
        Replace the job of one row.

        Raises:
            NotFound: If no row has that id (within date_key when given)
        """
        _, job = split_job_id(job)

        def body(store: BookingStore) -> int:
            _lock_row_group(store, booking_id)
            return store.update_by_id(booking_id, job, date_key)

        affected = self._transaction(body)
        if affected == 0:
            raise NotFound(f"Booking {booking_id} not found")

    def delete_by_index(self, date_key: str, index: int) -> None:
        """Remove the job at a position; remaining rows keep their ids and order."""

        def body(store: BookingStore) -> None:
            store.lock_group(date_key)
            rows = store.select_by_date_key_ordered(date_key, for_update=True)
            _check_index(rows, date_key, index)
            del rows[index]
            store.replace_group(date_key, rows)

        self._transaction(body)

    def delete_by_id(self, booking_id: str) -> None:
        def body(store: BookingStore) -> int:
            _lock_row_group(store, booking_id)
            return store.delete_by_id(booking_id)

        affected = self._transaction(body)
        if affected == 0:
            raise NotFound(f"Booking {booking_id} not found")
