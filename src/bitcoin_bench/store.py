"""SQLite persistence for hyperfine measurements.

Rows are append-only: the table is created on first use, never altered or
dropped, and every measurement becomes exactly one new row.
"""

import json
import logging
import sqlite3
from pathlib import Path
from types import TracebackType

from .errors import StoreError
from .runner.results import MeasurementRecord

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS benchmarks (
    id INTEGER PRIMARY KEY,
    commit_hash TEXT NOT NULL,
    command TEXT NOT NULL,
    mean REAL,
    stddev REAL,
    median REAL,
    user REAL,
    system REAL,
    min REAL,
    max REAL,
    times TEXT,
    exit_codes TEXT,
    parameters TEXT
)
"""

_INSERT_SQL = """
INSERT INTO benchmarks (
    commit_hash, command, mean, stddev, median, user, system, min, max,
    times, exit_codes, parameters
) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
"""


def effective_commit(record: MeasurementRecord, revision: str) -> str:
    """Prefer hyperfine's ``commit`` parameter over the requested revision."""
    commit = record.commit
    return commit if commit is not None else revision


class ResultStore:
    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        try:
            self._conn = sqlite3.connect(str(self.path))
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to open results database {self.path}: {exc}") from exc

    def __enter__(self) -> "ResultStore":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def close(self) -> None:
        self._conn.close()

    def ensure_schema(self) -> None:
        try:
            with self._conn:
                self._conn.execute(SCHEMA_SQL)
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to create benchmarks table in {self.path}: {exc}") from exc

    def append(self, commit_hash: str, record: MeasurementRecord) -> int:
        """Insert one measurement and return its row id.

        Raises:
            StoreError: If serialization or the insert fails; nothing is written.
        """
        try:
            row = (
                commit_hash,
                record.command,
                record.mean,
                record.stddev,
                record.median,
                record.user,
                record.system,
                record.min,
                record.max,
                json.dumps(list(record.times), allow_nan=False),
                json.dumps(list(record.exit_codes)),
                json.dumps(record.parameters, allow_nan=False),
            )
        except (TypeError, ValueError) as exc:
            raise StoreError(f"Failed to serialize benchmark result: {exc}") from exc

        try:
            with self._conn:
                cursor = self._conn.execute(_INSERT_SQL, row)
        except sqlite3.Error as exc:
            raise StoreError(
                f"Failed to insert benchmark result into database {self.path}: {exc}"
            ) from exc

        row_id = cursor.lastrowid
        if row_id is None:
            raise StoreError(f"Insert into {self.path} returned no row id")
        logger.debug("Stored row %d for %s (%s)", row_id, commit_hash, record.command)
        return row_id


__all__ = ["SCHEMA_SQL", "ResultStore", "effective_commit"]
