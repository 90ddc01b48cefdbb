"""SQLite-backed run history helpers."""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

from openpyxl import Workbook

from .models import Snapshot


SQLITE_PREFIX = "sqlite://"
EXPORT_COLUMNS = (
    "executed_at",
    "checkin_date",
    "is_available",
    "price",
    "currency",
    "error",
)


def resolve_sqlite_path(database_url: str) -> Path:
    """Translate a DATABASE_URL into a filesystem path."""
    if not database_url:
        raise ValueError("DATABASE_URL must not be empty")

    if database_url.startswith(SQLITE_PREFIX):
        raw_path = database_url[len(SQLITE_PREFIX) :]
        # Allow sqlite:///path/to/file and sqlite://path/to/file styles.
        if raw_path.startswith("/"):
            raw_path = raw_path[1:]
        path = Path(raw_path)
    else:
        path = Path(database_url)

    if not path.is_absolute():
        path = Path.cwd() / path

    return path.expanduser().resolve()


@dataclass
class Observation:
    """One persisted per-date result of a past run."""

    executed_at: str
    checkin_date: str
    is_available: bool
    price: Optional[int]
    currency: Optional[str]
    error: Optional[str]


@dataclass
class Database:
    """Thin wrapper around sqlite3 for storing runs and observations."""

    path: Path

    def connect(self) -> sqlite3.Connection:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        return sqlite3.connect(self.path)

    def initialize(self) -> None:
        with self.connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS runs (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    executed_at TEXT NOT NULL,
                    status TEXT NOT NULL,
                    notes TEXT
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS observations (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    executed_at TEXT NOT NULL,
                    checkin_date TEXT NOT NULL,
                    is_available INTEGER NOT NULL,
                    price INTEGER,
                    currency TEXT,
                    error TEXT
                )
                """
            )
            conn.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_observations_date
                ON observations (checkin_date, executed_at)
                """
            )
            conn.commit()

    def add_run(self, executed_at: str, status: str, notes: str | None) -> None:
        with self.connect() as conn:
            conn.execute(
                "INSERT INTO runs (executed_at, status, notes) VALUES (?, ?, ?)",
                (executed_at, status, notes),
            )
            conn.commit()

    def recent_runs(self, limit: int = 10) -> Iterable[Tuple[str, str, str | None]]:
        with self.connect() as conn:
            cursor = conn.execute(
                "SELECT executed_at, status, notes FROM runs ORDER BY id DESC LIMIT ?",
                (limit,),
            )
            yield from cursor.fetchall()

    def record_snapshot(self, executed_at: str, snapshot: Snapshot) -> None:
        """Append one observation row per date of ``snapshot``."""
        with self.connect() as conn:
            conn.executemany(
                """
                INSERT INTO observations (executed_at, checkin_date, is_available, price, currency, error)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                [
                    (
                        executed_at,
                        record.date,
                        int(record.is_available),
                        record.price,
                        record.currency,
                        record.error,
                    )
                    for record in snapshot.values()
                ],
            )
            conn.commit()

    def fetch_observations(self, checkin_date: str | None = None) -> List[Observation]:
        """Return observations ordered by run time, optionally for one date."""
        query = """
            SELECT executed_at, checkin_date, is_available, price, currency, error
            FROM observations
        """
        params: tuple = ()
        if checkin_date:
            query += " WHERE checkin_date = ?"
            params = (checkin_date,)
        query += " ORDER BY executed_at, checkin_date, id"

        with self.connect() as conn:
            cursor = conn.execute(query, params)
            return [
                Observation(
                    executed_at=row[0],
                    checkin_date=row[1],
                    is_available=bool(row[2]),
                    price=int(row[3]) if row[3] is not None else None,
                    currency=row[4],
                    error=row[5],
                )
                for row in cursor.fetchall()
            ]

    def price_history(self, checkin_date: str) -> List[Tuple[str, int, str]]:
        """Return (executed_at, price, currency) for available, priced observations."""
        return [
            (obs.executed_at, obs.price, obs.currency)
            for obs in self.fetch_observations(checkin_date)
            if obs.is_available and obs.price is not None and obs.currency
        ]

    def export_history_to_xlsx(self, path: Path) -> None:
        """Write every observation to an xlsx workbook at ``path``."""
        workbook = Workbook()
        worksheet = workbook.active
        worksheet.title = "history"
        worksheet.append(list(EXPORT_COLUMNS))
        for obs in self.fetch_observations():
            worksheet.append(
                [
                    obs.executed_at,
                    obs.checkin_date,
                    obs.is_available,
                    obs.price,
                    obs.currency,
                    obs.error,
                ]
            )
        path.parent.mkdir(parents=True, exist_ok=True)
        workbook.save(path)
