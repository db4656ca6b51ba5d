"""Repository layer responsible for all database access."""

from __future__ import annotations

import json
import sqlite3
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Optional

from space_rental.domain.models import PaymentStatus, Reservation, Room
from space_rental.utils.config import Settings, get_settings
from space_rental.utils.logger import get_logger


logger = get_logger(__name__)


# Reservation table column order is fixed; append-only writers rely on it.
RESERVATION_COLUMNS: tuple[str, ...] = (
    "reservation_number",
    "created_at",
    "date",
    "start_time",
    "end_time",
    "duration_hours",
    "room",
    "name",
    "company",
    "phone",
    "email",
    "headcount",
    "vehicle_count",
    "tax_invoice",
    "referral_source",
    "activity",
    "base_price",
    "extra_person_fee",
    "subtotal",
    "vat",
    "total",
    "payment_confirmed",
    "payment_confirmed_at",
    "document_url",
    "calendar_event_id",
    "notification_status",
    "notes",
)


@dataclass(frozen=True)
class CalendarEventRecord:
    event_id: str
    title: str
    start_at: str
    end_at: str
    description: str
    location: str


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
        connection = sqlite3.connect(
            self._db_path,
            timeout=self._settings.sqlite_timeout_seconds,
        )
        connection.row_factory = sqlite3.Row
        return connection

    def initialize_database(self) -> None:
        """Create all persistence artifacts before API startup."""
        try:
            with self._connect() as conn:
                cursor = conn.cursor()

                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS Reservations (
                        reservation_number TEXT PRIMARY KEY,
                        created_at TEXT NOT NULL,
                        date TEXT NOT NULL,
                        start_time TEXT NOT NULL,
                        end_time TEXT NOT NULL,
                        duration_hours REAL NOT NULL CHECK (duration_hours > 0),
                        room TEXT NOT NULL CHECK (room IN ('A', 'B', 'A+B')),
                        name TEXT NOT NULL,
                        company TEXT NOT NULL DEFAULT '',
                        phone TEXT NOT NULL,
                        email TEXT NOT NULL DEFAULT '',
                        headcount INTEGER NOT NULL CHECK (headcount > 0),
                        vehicle_count INTEGER NOT NULL DEFAULT 0,
                        tax_invoice INTEGER NOT NULL DEFAULT 0 CHECK (tax_invoice IN (0,1)),
                        referral_source TEXT NOT NULL DEFAULT '',
                        activity TEXT NOT NULL DEFAULT '',
                        base_price INTEGER NOT NULL,
                        extra_person_fee INTEGER NOT NULL,
                        subtotal INTEGER NOT NULL,
                        vat INTEGER NOT NULL,
                        total INTEGER NOT NULL,
                        payment_confirmed TEXT NOT NULL DEFAULT 'N'
                            CHECK (payment_confirmed IN ('Y','N')),
                        payment_confirmed_at TEXT NOT NULL DEFAULT '',
                        document_url TEXT NOT NULL DEFAULT '',
                        calendar_event_id TEXT NOT NULL DEFAULT '',
                        notification_status TEXT NOT NULL DEFAULT '',
                        notes TEXT NOT NULL DEFAULT ''
                    );
                    """
                )

                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS Settings (
                        name TEXT PRIMARY KEY,
                        value TEXT NOT NULL
                    );
                    """
                )

                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS ActivityLogs (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        action TEXT NOT NULL,
                        detail TEXT NOT NULL,
                        logged_at DATETIME DEFAULT CURRENT_TIMESTAMP
                    );
                    """
                )

                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS CalendarEvents (
                        event_id TEXT PRIMARY KEY,
                        title TEXT NOT NULL,
                        start_at TEXT NOT NULL,
                        end_at TEXT NOT NULL,
                        description TEXT NOT NULL DEFAULT '',
                        location TEXT NOT NULL DEFAULT '',
                        created_at DATETIME DEFAULT CURRENT_TIMESTAMP
                    );
                    """
                )

                cursor.execute(
                    """
                    CREATE INDEX IF NOT EXISTS idx_reservations_date_confirmed
                    ON Reservations(date, payment_confirmed);
                    """
                )
                conn.commit()
            logger.info("Database initialized at %s", self._db_path)
        except sqlite3.Error as exc:
            raise RuntimeError(f"Database initialization failed: {exc}") from exc

    def seed_default_settings(self, defaults: Mapping[str, str]) -> None:
        """Insert missing settings rows without overwriting operator edits."""
        try:
            with self._connect() as conn:
                cursor = conn.cursor()
                cursor.executemany(
                    "INSERT OR IGNORE INTO Settings (name, value) VALUES (?, ?);",
                    list(defaults.items()),
                )
                conn.commit()
            logger.info("Default settings ensured (%s keys)", len(defaults))
        except sqlite3.Error as exc:
            raise RuntimeError(f"Settings seeding failed: {exc}") from exc

    def read_settings(self) -> dict[str, str]:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT name, value FROM Settings;")
            return {str(row["name"]): str(row["value"]) for row in cursor.fetchall()}

    def upsert_setting(self, name: str, value: str) -> None:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT INTO Settings (name, value) VALUES (?, ?)
                ON CONFLICT(name) DO UPDATE SET value = excluded.value;
                """,
                (name, value),
            )
            conn.commit()

    def append_reservation(self, reservation: Reservation) -> None:
        """Append one reservation row; numbers are unique by primary key."""
        payload = reservation.to_dict()
        payload["tax_invoice"] = 1 if reservation.tax_invoice else 0
        values = tuple(payload[column] for column in RESERVATION_COLUMNS)
        placeholders = ",".join("?" for _ in RESERVATION_COLUMNS)
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"""
                INSERT INTO Reservations ({",".join(RESERVATION_COLUMNS)})
                VALUES ({placeholders});
                """,
                values,
            )
            conn.commit()

    def list_reservations(self) -> list[Reservation]:
        """Return every reservation row in insertion order."""
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"SELECT {','.join(RESERVATION_COLUMNS)} FROM Reservations ORDER BY rowid ASC;"
            )
            return [_row_to_reservation(row) for row in cursor.fetchall()]

    def get_reservation(self, reservation_number: str) -> Optional[Reservation]:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"""
                SELECT {','.join(RESERVATION_COLUMNS)}
                FROM Reservations
                WHERE reservation_number = ?;
                """,
                (reservation_number,),
            )
            row = cursor.fetchone()
            if row is None:
                return None
            return _row_to_reservation(row)

    def list_reservation_numbers(self, prefix: str) -> list[str]:
        """Return existing reservation numbers starting with ``prefix``."""
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT reservation_number
                FROM Reservations
                WHERE substr(reservation_number, 1, ?) = ?
                ORDER BY rowid ASC;
                """,
                (len(prefix), prefix),
            )
            return [str(row["reservation_number"]) for row in cursor.fetchall()]

    def confirm_reservation(
        self,
        reservation_number: str,
        confirmed_at: str,
        calendar_event_id: str,
        notification_status: str,
    ) -> bool:
        """Apply the PENDING -> CONFIRMED transition as one conditional write.

        Returns False when the row is missing or already confirmed.
        """
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                UPDATE Reservations
                SET payment_confirmed = ?,
                    payment_confirmed_at = ?,
                    calendar_event_id = ?,
                    notification_status = ?
                WHERE reservation_number = ?
                  AND payment_confirmed = ?;
                """,
                (
                    PaymentStatus.CONFIRMED.value,
                    confirmed_at,
                    calendar_event_id,
                    notification_status,
                    reservation_number,
                    PaymentStatus.PENDING.value,
                ),
            )
            conn.commit()
            return cursor.rowcount == 1

    def append_activity_log(self, action: str, detail: Mapping[str, Any]) -> None:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "INSERT INTO ActivityLogs (action, detail) VALUES (?, ?);",
                (action, json.dumps(dict(detail), ensure_ascii=False, default=str)),
            )
            conn.commit()

    def count_activity_logs(self, action: Optional[str] = None) -> int:
        with self._connect() as conn:
            cursor = conn.cursor()
            if action is None:
                cursor.execute("SELECT COUNT(*) AS count FROM ActivityLogs;")
            else:
                cursor.execute(
                    "SELECT COUNT(*) AS count FROM ActivityLogs WHERE action = ?;",
                    (action,),
                )
            return int(cursor.fetchone()["count"])

    def insert_calendar_event(self, event: CalendarEventRecord) -> None:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT INTO CalendarEvents (
                    event_id,
                    title,
                    start_at,
                    end_at,
                    description,
                    location
                )
                VALUES (?, ?, ?, ?, ?, ?);
                """,
                (
                    event.event_id,
                    event.title,
                    event.start_at,
                    event.end_at,
                    event.description,
                    event.location,
                ),
            )
            conn.commit()

    def delete_calendar_event(self, event_id: str) -> bool:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute("DELETE FROM CalendarEvents WHERE event_id = ?;", (event_id,))
            conn.commit()
            return cursor.rowcount == 1

    def get_calendar_event(self, event_id: str) -> Optional[CalendarEventRecord]:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT event_id, title, start_at, end_at, description, location
                FROM CalendarEvents
                WHERE event_id = ?;
                """,
                (event_id,),
            )
            row = cursor.fetchone()
            if row is None:
                return None
            return CalendarEventRecord(
                event_id=str(row["event_id"]),
                title=str(row["title"]),
                start_at=str(row["start_at"]),
                end_at=str(row["end_at"]),
                description=str(row["description"]),
                location=str(row["location"]),
            )

    def count_calendar_events(self) -> int:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT COUNT(*) AS count FROM CalendarEvents;")
            return int(cursor.fetchone()["count"])


def _row_to_reservation(row: sqlite3.Row) -> Reservation:
    return Reservation(
        reservation_number=str(row["reservation_number"]),
        created_at=str(row["created_at"]),
        date=str(row["date"]),
        start_time=str(row["start_time"]),
        end_time=str(row["end_time"]),
        duration_hours=float(row["duration_hours"]),
        room=Room.parse(str(row["room"])),
        name=str(row["name"]),
        company=str(row["company"]),
        phone=str(row["phone"]),
        email=str(row["email"]),
        headcount=int(row["headcount"]),
        vehicle_count=int(row["vehicle_count"]),
        tax_invoice=bool(row["tax_invoice"]),
        referral_source=str(row["referral_source"]),
        activity=str(row["activity"]),
        base_price=int(row["base_price"]),
        extra_person_fee=int(row["extra_person_fee"]),
        subtotal=int(row["subtotal"]),
        vat=int(row["vat"]),
        total=int(row["total"]),
        payment_status=PaymentStatus.from_flag(str(row["payment_confirmed"])),
        payment_confirmed_at=str(row["payment_confirmed_at"]),
        document_url=str(row["document_url"]),
        calendar_event_id=str(row["calendar_event_id"]),
        notification_status=str(row["notification_status"]),
        notes=str(row["notes"]),
    )