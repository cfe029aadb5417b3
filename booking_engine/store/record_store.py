"""SQLite-backed booking record store.

The single source of truth for what is booked. Every mutation commits
before returning, and ``create`` is an atomic insert-if-no-conflict: the
overlap checks and the insert run inside one ``BEGIN IMMEDIATE``
transaction, with a partial unique index on confirmed
``(resource_id, start_instant)`` rows as the storage-level backstop.
"""

import logging
import sqlite3
import uuid
from contextlib import contextmanager
from datetime import date, datetime, timezone
from typing import Iterator, Optional

from booking_engine.config import StoreConfig, settings
from booking_engine.errors import (
    DuplicateBookingError,
    SlotUnavailableError,
    StoreUnavailableError,
)
from booking_engine.schemas.booking_schema import (
    BookingRecord,
    BookingStatus,
    NewBookingRecord,
)
from booking_engine.utils import normalize_email, normalize_time_of_day

logger = logging.getLogger(__name__)

_DB_FORMAT = "%Y-%m-%dT%H:%M:%SZ"

_SCHEMA = """
    CREATE TABLE IF NOT EXISTS bookings (
        id TEXT PRIMARY KEY,
        resource_id TEXT NOT NULL,
        date TEXT NOT NULL,
        time_of_day TEXT NOT NULL,
        start_instant TEXT NOT NULL,
        end_instant TEXT NOT NULL,
        service_offering_id TEXT NOT NULL,
        customer_name TEXT NOT NULL,
        customer_email TEXT NOT NULL,
        customer_key TEXT NOT NULL,
        customer_phone TEXT,
        service_address TEXT,
        notes TEXT,
        external_job_id TEXT,
        status TEXT NOT NULL DEFAULT 'confirmed'
            CHECK(status IN ('confirmed', 'cancelled')),
        created_at TEXT NOT NULL
    );

    CREATE UNIQUE INDEX IF NOT EXISTS uq_bookings_confirmed_slot
        ON bookings(resource_id, start_instant) WHERE status = 'confirmed';

    CREATE INDEX IF NOT EXISTS idx_bookings_resource_date
        ON bookings(resource_id, date);

    CREATE INDEX IF NOT EXISTS idx_bookings_customer_start
        ON bookings(customer_key, start_instant);
"""


def to_db_instant(value: datetime) -> str:
    """Serialize an aware datetime as fixed-width UTC text so SQL comparisons order correctly."""
    if value.tzinfo is None:
        raise ValueError("booking instants must be timezone-aware")
    return value.astimezone(timezone.utc).strftime(_DB_FORMAT)


def from_db_instant(value: str) -> datetime:
    return datetime.strptime(value, _DB_FORMAT).replace(tzinfo=timezone.utc)


def generate_booking_id() -> str:
    return f"BK-{uuid.uuid4().hex[:12].upper()}"


def _row_to_record(row: sqlite3.Row) -> BookingRecord:
    return BookingRecord(
        id=row["id"],
        resource_id=row["resource_id"],
        date=row["date"],
        time_of_day=row["time_of_day"],
        start_instant=from_db_instant(row["start_instant"]),
        end_instant=from_db_instant(row["end_instant"]),
        service_offering_id=row["service_offering_id"],
        customer_name=row["customer_name"],
        customer_email=row["customer_email"],
        customer_phone=row["customer_phone"],
        service_address=row["service_address"],
        notes=row["notes"],
        external_job_id=row["external_job_id"],
        status=BookingStatus(row["status"]),
        created_at=from_db_instant(row["created_at"]),
    )


class BookingRecordStore:
    """Durable CRUD for booking records on a SQLite file."""

    def __init__(self, db_path: Optional[str] = None, config: Optional[StoreConfig] = None) -> None:
        """
        Args:
            db_path: Path to the SQLite file. Defaults to ``DATABASE_PATH``.
            config: Store settings. Defaults to the global settings.
        """
        self._config = config or settings.store
        self.db_path = db_path or self._config.database_path

    # ------------------------------------------------------------------ #
    # Connection handling
    # ------------------------------------------------------------------ #

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        """One connection per operation, in autocommit mode with explicit transactions."""
        try:
            conn = sqlite3.connect(
                self.db_path,
                timeout=self._config.busy_timeout_sec,
                isolation_level=None,
            )
        except sqlite3.Error as exc:
            logger.error("Cannot open booking store at %s: %s", self.db_path, exc)
            raise StoreUnavailableError(f"Booking store unavailable: {exc}") from exc
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        except sqlite3.IntegrityError:
            raise
        except sqlite3.Error as exc:
            logger.error("Booking store error on %s: %s", self.db_path, exc)
            raise StoreUnavailableError(f"Booking store unavailable: {exc}") from exc
        finally:
            conn.close()

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        """Write transaction holding SQLite's reserved lock from the first statement."""
        with self._connect() as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                if conn.in_transaction:
                    conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")

    def init_schema(self) -> None:
        """Create tables and indexes if they don't exist."""
        with self._connect() as conn:
            conn.execute("PRAGMA journal_mode=WAL")
            conn.executescript(_SCHEMA)
        logger.info("Booking store ready at %s", self.db_path)

    # ------------------------------------------------------------------ #
    # Writes
    # ------------------------------------------------------------------ #

    def create(self, new_record: NewBookingRecord) -> BookingRecord:
        """
        Persist a confirmed booking unless it conflicts.

        Raises:
            DuplicateBookingError: The same customer already holds an overlapping booking.
            SlotUnavailableError: The resource is already booked for an overlapping range.
            StoreUnavailableError: The database could not be reached.
        """
        start = to_db_instant(new_record.start_instant)
        end = to_db_instant(new_record.end_instant)
        customer_key = normalize_email(new_record.customer_email)
        record = BookingRecord(
            **new_record.model_dump(exclude={"time_of_day"}),
            time_of_day=normalize_time_of_day(new_record.time_of_day),
            id=generate_booking_id(),
            status=BookingStatus.CONFIRMED,
            created_at=datetime.now(timezone.utc).replace(microsecond=0),
        )

        try:
            with self._transaction() as conn:
                own = conn.execute(
                    """SELECT * FROM bookings
                       WHERE customer_key = ? AND status = 'confirmed'
                         AND start_instant < ? AND end_instant > ?
                       ORDER BY start_instant LIMIT 1""",
                    (customer_key, end, start),
                ).fetchone()
                if own is not None:
                    existing = _row_to_record(own)
                    raise DuplicateBookingError(
                        "You already have a booking at this time.", existing
                    )

                taken = conn.execute(
                    """SELECT * FROM bookings
                       WHERE resource_id = ? AND status = 'confirmed'
                         AND start_instant < ? AND end_instant > ?
                       ORDER BY start_instant LIMIT 1""",
                    (record.resource_id, end, start),
                ).fetchone()
                if taken is not None:
                    existing = _row_to_record(taken)
                    raise SlotUnavailableError(
                        f"This time slot is already booked by {existing.customer_name}.",
                        existing,
                    )

                conn.execute(
                    """INSERT INTO bookings
                       (id, resource_id, date, time_of_day, start_instant, end_instant,
                        service_offering_id, customer_name, customer_email, customer_key,
                        customer_phone, service_address, notes, external_job_id,
                        status, created_at)
                       VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 'confirmed', ?)""",
                    (
                        record.id, record.resource_id, record.date, record.time_of_day,
                        start, end, record.service_offering_id, record.customer_name,
                        record.customer_email, customer_key, record.customer_phone,
                        record.service_address, record.notes, record.external_job_id,
                        to_db_instant(record.created_at),
                    ),
                )
        except sqlite3.IntegrityError as exc:
            logger.warning(
                "Unique slot constraint rejected %s on %s at %s",
                record.id, record.resource_id, start,
            )
            raise SlotUnavailableError("This time slot is already booked.") from exc

        logger.info(
            "Booking stored: %s on %s at %s %s",
            record.id, record.resource_id, record.date, record.time_of_day,
        )
        return record

    def cancel(self, booking_id: str, requesting_customer_id: str) -> bool:
        """Flip a booking to cancelled if the requester owns it. Never deletes."""
        with self._transaction() as conn:
            cursor = conn.execute(
                """UPDATE bookings SET status = 'cancelled'
                   WHERE id = ? AND customer_key = ? AND status = 'confirmed'""",
                (booking_id, normalize_email(requesting_customer_id)),
            )
            changed = cursor.rowcount > 0
        if changed:
            logger.info("Booking cancelled: %s", booking_id)
        else:
            logger.info("Cancel refused or no-op for %s", booking_id)
        return changed

    def attach_external_job_id(self, booking_id: str, external_job_id: str) -> Optional[BookingRecord]:
        """Record the job sink's identifier on a stored booking."""
        with self._transaction() as conn:
            conn.execute(
                "UPDATE bookings SET external_job_id = ? WHERE id = ?",
                (external_job_id, booking_id),
            )
        return self.get(booking_id)

    # ------------------------------------------------------------------ #
    # Reads
    # ------------------------------------------------------------------ #

    def get(self, booking_id: str) -> Optional[BookingRecord]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM bookings WHERE id = ?", (booking_id,)).fetchone()
        return _row_to_record(row) if row is not None else None

    def find_by_resource_and_date(self, resource_id: str, day: date | str) -> list[BookingRecord]:
        """All confirmed bookings for a resource on a business-local day."""
        day_str = day if isinstance(day, str) else day.isoformat()
        with self._connect() as conn:
            rows = conn.execute(
                """SELECT * FROM bookings
                   WHERE resource_id = ? AND date = ? AND status = 'confirmed'
                   ORDER BY start_instant""",
                (resource_id, day_str),
            ).fetchall()
        return [_row_to_record(row) for row in rows]

    def find_by_customer_email_and_date(
        self, email: str, day: date | str, time_of_day: Optional[str] = None
    ) -> list[BookingRecord]:
        """Confirmed bookings for an email on a day, optionally at an exact time of day."""
        day_str = day if isinstance(day, str) else day.isoformat()
        query = """SELECT * FROM bookings
                   WHERE customer_key = ? AND date = ? AND status = 'confirmed'"""
        params: list = [normalize_email(email), day_str]
        if time_of_day:
            query += " AND time_of_day = ?"
            params.append(normalize_time_of_day(time_of_day))
        query += " ORDER BY start_instant"
        with self._connect() as conn:
            rows = conn.execute(query, params).fetchall()
        return [_row_to_record(row) for row in rows]

    def find_by_customer_email_in_range(
        self, email: str, start: datetime, end: datetime
    ) -> list[BookingRecord]:
        """Confirmed bookings for an email lying within or overlapping [start, end]."""
        with self._connect() as conn:
            rows = conn.execute(
                """SELECT * FROM bookings
                   WHERE customer_key = ? AND status = 'confirmed'
                     AND start_instant <= ? AND end_instant >= ?
                   ORDER BY start_instant""",
                (normalize_email(email), to_db_instant(end), to_db_instant(start)),
            ).fetchall()
        return [_row_to_record(row) for row in rows]

    def list_customer_bookings(self, email: str) -> list[BookingRecord]:
        """Every booking a customer has made, cancelled ones included, by start time."""
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM bookings WHERE customer_key = ? ORDER BY start_instant",
                (normalize_email(email),),
            ).fetchall()
        return [_row_to_record(row) for row in rows]
