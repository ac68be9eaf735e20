"""Repository layer responsible for all database access."""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional, Sequence

from backend.domain.constraints import check_slot_capacity
from backend.domain.models import ROLE_DEFAULT, ROLE_OFFICE_ADMIN, Booking, Office, OfficeSlot, UserRecord
from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)


class RepositoryError(RuntimeError):
    """Raised when the database cannot serve a request."""


class DuplicateBookingError(RepositoryError):
    """Raised when the user already holds an active booking on that date."""


class WeeklyQuotaExceededError(RepositoryError):
    """Raised when the user has no weekly quota left."""


_BOOKING_COLUMNS = """
    b.id,
    b.user_email,
    b.date,
    b.parking,
    b.created_at,
    b.last_cancellation,
    b.cancelled_at,
    o.id AS office_id,
    o.name AS office_name,
    o.quota AS office_quota,
    o.parking_quota AS office_parking_quota
"""


class DataRepository:
    """Encapsulates SQLite access so business logic stays storage-agnostic."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self._settings = settings or get_settings()
        self._db_path = Path(self._settings.database_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def database_path(self) -> Path:
        return self._db_path

    def _connect(self) -> sqlite3.Connection:
        connection = sqlite3.connect(self._db_path)
        connection.row_factory = sqlite3.Row
        connection.execute("PRAGMA foreign_keys = ON;")
        return connection

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        """Serialize writers with BEGIN IMMEDIATE so counter checks stay valid."""
        connection = self._connect()
        connection.isolation_level = None
        try:
            connection.execute("BEGIN IMMEDIATE;")
            try:
                yield connection
            except BaseException:
                connection.execute("ROLLBACK;")
                raise
            connection.execute("COMMIT;")
        finally:
            connection.close()

    def initialize_database(self) -> None:
        """Create all persistence artifacts before API startup."""
        try:
            with self._connect() as conn:
                cursor = conn.cursor()
                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS Offices (
                        id TEXT PRIMARY KEY,
                        name TEXT NOT NULL,
                        quota INTEGER NOT NULL CHECK (quota > 0),
                        parking_quota INTEGER NOT NULL DEFAULT 0 CHECK (parking_quota >= 0),
                        active INTEGER NOT NULL DEFAULT 1 CHECK (active IN (0,1))
                    );
                    """
                )
                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS OfficeSlots (
                        office_id TEXT NOT NULL,
                        date TEXT NOT NULL,
                        booked INTEGER NOT NULL DEFAULT 0 CHECK (booked >= 0),
                        booked_parking INTEGER NOT NULL DEFAULT 0 CHECK (booked_parking >= 0),
                        PRIMARY KEY (office_id, date),
                        FOREIGN KEY (office_id) REFERENCES Offices(id)
                    );
                    """
                )
                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS Users (
                        email TEXT PRIMARY KEY,
                        quota INTEGER,
                        role TEXT NOT NULL DEFAULT 'Default',
                        created_at DATETIME DEFAULT CURRENT_TIMESTAMP
                    );
                    """
                )
                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS OfficeAdminAssignments (
                        email TEXT NOT NULL,
                        office_id TEXT NOT NULL,
                        PRIMARY KEY (email, office_id),
                        FOREIGN KEY (email) REFERENCES Users(email) ON DELETE CASCADE,
                        FOREIGN KEY (office_id) REFERENCES Offices(id)
                    );
                    """
                )
                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS Bookings (
                        id TEXT PRIMARY KEY,
                        user_email TEXT NOT NULL,
                        office_id TEXT NOT NULL,
                        date TEXT NOT NULL,
                        parking INTEGER NOT NULL DEFAULT 0 CHECK (parking IN (0,1)),
                        created_at TEXT NOT NULL,
                        last_cancellation TEXT NOT NULL,
                        cancelled_at TEXT,
                        FOREIGN KEY (office_id) REFERENCES Offices(id)
                    );
                    """
                )
                cursor.execute(
                    """
                    CREATE UNIQUE INDEX IF NOT EXISTS idx_bookings_active_user_date
                    ON Bookings(user_email, date) WHERE cancelled_at IS NULL;
                    """
                )
                cursor.execute(
                    """
                    CREATE INDEX IF NOT EXISTS idx_bookings_office_date
                    ON Bookings(office_id, date);
                    """
                )
                conn.commit()
            logger.info("Database initialized at %s", self._db_path)
        except sqlite3.Error as exc:
            raise RepositoryError(f"Database initialization failed: {exc}") from exc

    # Offices

    def sync_offices(self, offices: Sequence[Office]) -> None:
        """Upsert configured offices and deactivate the ones no longer configured."""
        try:
            with self._connect() as conn:
                cursor = conn.cursor()
                cursor.executemany(
                    """
                    INSERT INTO Offices (id, name, quota, parking_quota, active)
                    VALUES (?, ?, ?, ?, 1)
                    ON CONFLICT(id) DO UPDATE SET
                        name = excluded.name,
                        quota = excluded.quota,
                        parking_quota = excluded.parking_quota,
                        active = 1;
                    """,
                    [(o.office_id, o.name, o.quota, o.parking_quota) for o in offices],
                )
                placeholders = ",".join("?" for _ in offices) or "''"
                cursor.execute(
                    f"UPDATE Offices SET active = 0 WHERE id NOT IN ({placeholders});",
                    [o.office_id for o in offices],
                )
                conn.commit()
            logger.info("Synchronised %s configured offices", len(offices))
        except sqlite3.Error as exc:
            raise RepositoryError(f"Office synchronisation failed: {exc}") from exc

    def list_offices(self) -> list[Office]:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT id, name, quota, parking_quota
                FROM Offices
                WHERE active = 1
                ORDER BY name ASC;
                """
            )
            return [self._office_from_row(row) for row in cursor.fetchall()]

    def get_office(self, office_id: str) -> Optional[Office]:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT id, name, quota, parking_quota FROM Offices WHERE id = ? AND active = 1;",
                (office_id,),
            )
            row = cursor.fetchone()
            return None if row is None else self._office_from_row(row)

    def list_slots(self, office_id: str, start_date: str, end_date: str) -> dict[str, OfficeSlot]:
        """Return stored slots keyed by date; dates without bookings are absent."""
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT date, booked, booked_parking
                FROM OfficeSlots
                WHERE office_id = ? AND date >= ? AND date <= ?
                ORDER BY date ASC;
                """,
                (office_id, start_date, end_date),
            )
            return {
                str(row["date"]): OfficeSlot(
                    date=str(row["date"]),
                    booked=int(row["booked"]),
                    booked_parking=int(row["booked_parking"]),
                )
                for row in cursor.fetchall()
            }

    def get_slot(self, office_id: str, date: str) -> OfficeSlot:
        slots = self.list_slots(office_id, date, date)
        return slots.get(date, OfficeSlot(date=date))

    # Users

    def get_user(self, email: str) -> Optional[UserRecord]:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT email, quota, role, created_at FROM Users WHERE email = ?;",
                (email,),
            )
            row = cursor.fetchone()
            if row is None:
                return None
            return self._user_from_row(row, self._office_ids_for(cursor, [email]).get(email, ()))

    def create_user(self, email: str) -> bool:
        """Insert a default user; returns False when the email already exists."""
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "INSERT OR IGNORE INTO Users (email, role) VALUES (?, ?);",
                (email, ROLE_DEFAULT),
            )
            conn.commit()
            created = cursor.rowcount == 1
        if created:
            logger.info("Created user %s", email)
        return created

    def save_user(
        self,
        email: str,
        *,
        quota: Optional[int],
        role_name: str,
        office_ids: Sequence[str],
    ) -> UserRecord:
        """Upsert quota and role, replacing any office admin assignments."""
        with self._transaction() as conn:
            conn.execute(
                """
                INSERT INTO Users (email, quota, role) VALUES (?, ?, ?)
                ON CONFLICT(email) DO UPDATE SET quota = excluded.quota, role = excluded.role;
                """,
                (email, quota, role_name),
            )
            conn.execute("DELETE FROM OfficeAdminAssignments WHERE email = ?;", (email,))
            if role_name == ROLE_OFFICE_ADMIN:
                conn.executemany(
                    "INSERT INTO OfficeAdminAssignments (email, office_id) VALUES (?, ?);",
                    [(email, office_id) for office_id in office_ids],
                )
        record = self.get_user(email)
        if record is None:
            raise RepositoryError(f"User {email} vanished after update")
        return record

    def query_users(
        self,
        *,
        role_name: Optional[str] = None,
        only_emails: Optional[Sequence[str]] = None,
        exclude_emails: Sequence[str] = (),
        custom_quota: bool = False,
        email_prefix: Optional[str] = None,
        after_email: Optional[str] = None,
        limit: int,
    ) -> list[UserRecord]:
        """Filter persisted users ordered by email, returning at most `limit` rows."""
        clauses: list[str] = []
        params: list[object] = []
        if role_name is not None:
            clauses.append("role = ?")
            params.append(role_name)
        if only_emails is not None:
            if not only_emails:
                return []
            clauses.append(f"email IN ({','.join('?' for _ in only_emails)})")
            params.extend(only_emails)
        if exclude_emails:
            clauses.append(f"email NOT IN ({','.join('?' for _ in exclude_emails)})")
            params.extend(exclude_emails)
        if custom_quota:
            clauses.append("quota IS NOT NULL")
        if email_prefix:
            clauses.append("substr(email, 1, ?) = ?")
            params.extend([len(email_prefix), email_prefix])
        if after_email is not None:
            clauses.append("email > ?")
            params.append(after_email)

        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        params.append(limit)
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"""
                SELECT email, quota, role, created_at
                FROM Users
                {where}
                ORDER BY email ASC
                LIMIT ?;
                """,
                params,
            )
            rows = cursor.fetchall()
            assignments = self._office_ids_for(cursor, [str(row["email"]) for row in rows])
            return [
                self._user_from_row(row, assignments.get(str(row["email"]), ()))
                for row in rows
            ]

    def count_users(self) -> int:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT COUNT(*) AS count FROM Users;")
            return int(cursor.fetchone()["count"])

    # Bookings

    def create_booking(self, booking: Booking, *, weekly_quota: int, week_start: str, week_end: str) -> OfficeSlot:
        """Insert a booking and increment slot counters in one transaction.

        Returns the slot as it stands after the increment.
        """
        office = booking.office
        with self._transaction() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT COUNT(*) AS count FROM Bookings
                WHERE user_email = ? AND date = ? AND cancelled_at IS NULL;
                """,
                (booking.user, booking.date),
            )
            if int(cursor.fetchone()["count"]) > 0:
                raise DuplicateBookingError(f"{booking.user} already has a booking on {booking.date}")

            cursor.execute(
                """
                SELECT COUNT(*) AS count FROM Bookings
                WHERE user_email = ? AND date >= ? AND date <= ? AND cancelled_at IS NULL;
                """,
                (booking.user, week_start, week_end),
            )
            if int(cursor.fetchone()["count"]) >= weekly_quota:
                raise WeeklyQuotaExceededError(f"{booking.user} has reached their weekly quota")

            cursor.execute(
                "INSERT OR IGNORE INTO OfficeSlots (office_id, date) VALUES (?, ?);",
                (office.office_id, booking.date),
            )
            cursor.execute(
                "SELECT booked, booked_parking FROM OfficeSlots WHERE office_id = ? AND date = ?;",
                (office.office_id, booking.date),
            )
            row = cursor.fetchone()
            slot = OfficeSlot(
                date=booking.date,
                booked=int(row["booked"]),
                booked_parking=int(row["booked_parking"]),
            )
            check_slot_capacity(office, slot, booking.parking)

            cursor.execute(
                """
                UPDATE OfficeSlots
                SET booked = booked + 1, booked_parking = booked_parking + ?
                WHERE office_id = ? AND date = ?;
                """,
                (1 if booking.parking else 0, office.office_id, booking.date),
            )
            cursor.execute(
                """
                INSERT INTO Bookings
                    (id, user_email, office_id, date, parking, created_at, last_cancellation)
                VALUES (?, ?, ?, ?, ?, ?, ?);
                """,
                (
                    booking.booking_id,
                    booking.user,
                    office.office_id,
                    booking.date,
                    1 if booking.parking else 0,
                    booking.created,
                    booking.last_cancellation,
                ),
            )
        return OfficeSlot(
            date=booking.date,
            booked=slot.booked + 1,
            booked_parking=slot.booked_parking + (1 if booking.parking else 0),
        )

    def cancel_booking(self, booking_id: str, cancelled_at: str) -> bool:
        """Mark an active booking cancelled and release its slot counters."""
        with self._transaction() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT office_id, date, parking FROM Bookings
                WHERE id = ? AND cancelled_at IS NULL;
                """,
                (booking_id,),
            )
            row = cursor.fetchone()
            if row is None:
                return False
            cursor.execute(
                "UPDATE Bookings SET cancelled_at = ? WHERE id = ?;",
                (cancelled_at, booking_id),
            )
            cursor.execute(
                """
                UPDATE OfficeSlots
                SET booked = MAX(booked - 1, 0),
                    booked_parking = MAX(booked_parking - ?, 0)
                WHERE office_id = ? AND date = ?;
                """,
                (int(row["parking"]), row["office_id"], row["date"]),
            )
        return True

    def get_booking(self, booking_id: str) -> Optional[Booking]:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"""
                SELECT {_BOOKING_COLUMNS}
                FROM Bookings AS b
                INNER JOIN Offices AS o ON o.id = b.office_id
                WHERE b.id = ?;
                """,
                (booking_id,),
            )
            row = cursor.fetchone()
            return None if row is None else self._booking_from_row(row)

    def list_bookings(
        self,
        *,
        user_email: Optional[str] = None,
        office_ids: Optional[Sequence[str]] = None,
        date: Optional[str] = None,
    ) -> list[Booking]:
        """Return active bookings matching every provided filter."""
        clauses = ["b.cancelled_at IS NULL"]
        params: list[object] = []
        if user_email is not None:
            clauses.append("b.user_email = ?")
            params.append(user_email)
        if office_ids is not None:
            if not office_ids:
                return []
            clauses.append(f"b.office_id IN ({','.join('?' for _ in office_ids)})")
            params.extend(office_ids)
        if date is not None:
            clauses.append("b.date = ?")
            params.append(date)
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"""
                SELECT {_BOOKING_COLUMNS}
                FROM Bookings AS b
                INNER JOIN Offices AS o ON o.id = b.office_id
                WHERE {' AND '.join(clauses)}
                ORDER BY b.date ASC, b.created_at ASC;
                """,
                params,
            )
            return [self._booking_from_row(row) for row in cursor.fetchall()]

    def purge_before(self, cutoff_date: str) -> tuple[int, int]:
        """Delete bookings and slots dated before `cutoff_date`."""
        with self._transaction() as conn:
            cursor = conn.cursor()
            cursor.execute("DELETE FROM Bookings WHERE date < ?;", (cutoff_date,))
            bookings_deleted = cursor.rowcount
            cursor.execute("DELETE FROM OfficeSlots WHERE date < ?;", (cutoff_date,))
            slots_deleted = cursor.rowcount
        return bookings_deleted, slots_deleted

    # Row mapping

    @staticmethod
    def _office_from_row(row: sqlite3.Row) -> Office:
        return Office(
            office_id=str(row["id"]),
            name=str(row["name"]),
            quota=int(row["quota"]),
            parking_quota=int(row["parking_quota"]),
        )

    @staticmethod
    def _user_from_row(row: sqlite3.Row, office_ids: tuple[str, ...]) -> UserRecord:
        return UserRecord(
            email=str(row["email"]),
            quota=None if row["quota"] is None else int(row["quota"]),
            role_name=str(row["role"]),
            office_ids=office_ids,
            created_at=None if row["created_at"] is None else str(row["created_at"]),
        )

    @staticmethod
    def _office_ids_for(cursor: sqlite3.Cursor, emails: Sequence[str]) -> dict[str, tuple[str, ...]]:
        if not emails:
            return {}
        cursor.execute(
            f"""
            SELECT email, office_id FROM OfficeAdminAssignments
            WHERE email IN ({','.join('?' for _ in emails)})
            ORDER BY office_id ASC;
            """,
            list(emails),
        )
        assignments: dict[str, list[str]] = {}
        for row in cursor.fetchall():
            assignments.setdefault(str(row["email"]), []).append(str(row["office_id"]))
        return {email: tuple(ids) for email, ids in assignments.items()}

    @staticmethod
    def _booking_from_row(row: sqlite3.Row) -> Booking:
        return Booking(
            booking_id=str(row["id"]),
            user=str(row["user_email"]),
            date=str(row["date"]),
            office=Office(
                office_id=str(row["office_id"]),
                name=str(row["office_name"]),
                quota=int(row["office_quota"]),
                parking_quota=int(row["office_parking_quota"]),
            ),
            parking=bool(row["parking"]),
            created=str(row["created_at"]),
            last_cancellation=str(row["last_cancellation"]),
            cancelled=None if row["cancelled_at"] is None else str(row["cancelled_at"]),
        )
