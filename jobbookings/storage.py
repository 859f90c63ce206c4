"""
Row store for job bookings.

Row-level operations over one SQLAlchemy session. Every method runs inside
the caller's transaction; run_transaction() owns commit and rollback.
"""

from typing import Any, Callable, Dict, List, Optional, TypeVar

from sqlalchemy import delete, func, insert, select, text, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from .database import JobBooking, ensure_schema, session_scope
from .errors import Conflict, StoreUnavailable
from .retry import is_transient_error

T = TypeVar("T")

bookings = JobBooking.__table__

ROW_ORDER = (bookings.c.date_key, bookings.c.position, bookings.c.created_at, bookings.c.id)


class BookingStore:
    """Row store bound to a single session/transaction."""

    def __init__(self, session: Session):
        self.session = session

    @property
    def dialect(self) -> str:
        return self.session.get_bind().dialect.name

    def ensure_schema(self) -> None:
        ensure_schema(self.session.get_bind())

    def lock_group(self, date_key: str) -> None:
        """
        Serialize writers of one date group until the transaction ends.

        PostgreSQL takes a transaction-scoped advisory lock keyed on the date.
        SQLite transactions already hold the write lock (BEGIN IMMEDIATE)
        from their first statement.
        """
        if self.dialect == "postgresql":
            self.session.execute(
                text("SELECT pg_advisory_xact_lock(hashtext(:date_key))"),
                {"date_key": date_key},
            )

    def insert(self, row: Dict[str, Any]) -> None:
        self.session.execute(insert(bookings).values(**row))

    def next_position(self, date_key: str) -> int:
        current = self.session.execute(
            select(func.max(bookings.c.position)).where(bookings.c.date_key == date_key)
        ).scalar()
        return 0 if current is None else current + 1

    def date_key_of(self, booking_id: str) -> Optional[str]:
        return self.session.execute(
            select(bookings.c.date_key).where(bookings.c.id == booking_id)
        ).scalar()

    def select_by_date_key_ordered(self, date_key: str, for_update: bool = False) -> List[Dict[str, Any]]:
        stmt = select(bookings).where(bookings.c.date_key == date_key).order_by(*ROW_ORDER)
        if for_update:
            stmt = stmt.with_for_update()
        return [dict(r) for r in self.session.execute(stmt).mappings()]

    def select_all_ordered(self) -> List[Dict[str, Any]]:
        stmt = select(bookings).order_by(*ROW_ORDER)
        return [dict(r) for r in self.session.execute(stmt).mappings()]

    def delete_by_id(self, booking_id: str) -> int:
        result = self.session.execute(delete(bookings).where(bookings.c.id == booking_id))
        return result.rowcount

    def delete_by_date_key(self, date_key: str) -> int:
        result = self.session.execute(delete(bookings).where(bookings.c.date_key == date_key))
        return result.rowcount

    def update_by_id(self, booking_id: str, job: Dict[str, Any], date_key: Optional[str] = None) -> int:
        stmt = update(bookings).where(bookings.c.id == booking_id)
        if date_key is not None:
            stmt = stmt.where(bookings.c.date_key == date_key)
        result = self.session.execute(stmt.values(job=job))
        return result.rowcount

    def replace_group(self, date_key: str, rows: List[Dict[str, Any]]) -> None:
        """Delete every row of the date group, then reinsert rows in order."""
        self.delete_by_date_key(date_key)
        for position, row in enumerate(rows):
            self.insert({
                "id": row["id"],
                "date_key": date_key,
                "position": position,
                "job": row["job"],
                "created_at": row["created_at"],
            })


def run_transaction(body: Callable[[BookingStore], T]) -> T:
    """
    Run body against a store inside one transaction.

    Raises:
        Conflict: On a primary key collision
        StoreUnavailable: On any other database failure
    """
    try:
        with session_scope() as session:
            return body(BookingStore(session))
    except IntegrityError as e:
        raise Conflict("A booking with this id already exists") from e
    except SQLAlchemyError as e:
        if is_transient_error(e):
            raise StoreUnavailable("Database busy, retry the request") from e
        raise StoreUnavailable("Database unavailable") from e
