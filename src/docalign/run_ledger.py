"""DuckDB ledger of batch alignment runs.

One row per processed document, so a batch that keeps going past a bad
document still leaves a queryable record of what failed and why.

Tables:
    _schema_version: schema version tracking
    alignment_runs : per-document outcome rows
"""
from __future__ import annotations

import contextlib
import importlib
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any
from uuid import uuid4

# Dynamic DuckDB import for pyright compatibility
_duckdb_mod = importlib.import_module("duckdb")

SCHEMA_VERSION = "1.0.0"

STATUS_OK = "ok"
STATUS_FAILED = "failed"

_SCHEMA_DDL = """
CREATE TABLE IF NOT EXISTS _schema_version (
    table_name VARCHAR PRIMARY KEY,
    version VARCHAR NOT NULL
);

CREATE TABLE IF NOT EXISTS alignment_runs (
    run_id VARCHAR NOT NULL,
    document_name VARCHAR NOT NULL,
    status VARCHAR NOT NULL,
    sections_annotated INTEGER,
    error_type VARCHAR,
    error_message VARCHAR,
    recorded_at TIMESTAMP NOT NULL
)
"""


class LedgerSchemaError(RuntimeError):
    """Raised when an existing ledger has an unexpected schema version."""


def generate_run_id(prefix: str = "align") -> str:
    """Generate a compact run id suitable for artifact naming."""
    ts = datetime.now(UTC).strftime("%Y%m%dT%H%M%SZ")
    return f"{prefix}_{ts}_{uuid4().hex[:8]}"


@dataclass(frozen=True, slots=True)
class RunSummary:
    run_id: str
    total: int
    succeeded: int
    failed: int


class RunLedger:
    """Append-only writer for ``alignment_runs``."""

    def __init__(self, db_path: Path, *, run_id: str | None = None) -> None:
        self._db_path = db_path
        self.run_id = run_id or generate_run_id()
        db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn: Any = _duckdb_mod.connect(str(db_path))
        try:
            self._create_schema()
        except Exception:
            self._conn.close()
            raise

    def _create_schema(self) -> None:
        for stmt in _SCHEMA_DDL.split(";"):
            stmt = stmt.strip()
            if stmt:
                self._conn.execute(stmt)
        row = self._conn.execute(
            "SELECT version FROM _schema_version WHERE table_name = 'alignment_runs'"
        ).fetchone()
        if row is None:
            self._conn.execute(
                "INSERT INTO _schema_version VALUES ('alignment_runs', ?)",
                [SCHEMA_VERSION],
            )
        elif str(row[0]) != SCHEMA_VERSION:
            raise LedgerSchemaError(
                f"Schema version mismatch in {self._db_path}: "
                f"expected {SCHEMA_VERSION}, got {row[0]}"
            )

    def record_success(self, document_name: str, *, sections_annotated: int) -> None:
        self._insert(document_name, STATUS_OK, sections_annotated, None, None)

    def record_failure(self, document_name: str, error: BaseException) -> None:
        self._insert(
            document_name, STATUS_FAILED, None, type(error).__name__, str(error),
        )

    def _insert(
        self,
        document_name: str,
        status: str,
        sections_annotated: int | None,
        error_type: str | None,
        error_message: str | None,
    ) -> None:
        self._conn.execute(
            "INSERT INTO alignment_runs VALUES (?, ?, ?, ?, ?, ?, ?)",
            [
                self.run_id,
                document_name,
                status,
                sections_annotated,
                error_type,
                error_message,
                datetime.now(UTC).replace(tzinfo=None),
            ],
        )

    def summary(self) -> RunSummary:
        row = self._conn.execute(
            """
            SELECT
                COUNT(*),
                COUNT(*) FILTER (WHERE status = 'ok'),
                COUNT(*) FILTER (WHERE status = 'failed')
            FROM alignment_runs
            WHERE run_id = ?
            """,
            [self.run_id],
        ).fetchone()
        total, ok, failed = (int(v) for v in row) if row else (0, 0, 0)
        return RunSummary(run_id=self.run_id, total=total, succeeded=ok, failed=failed)

    def failures(self) -> list[dict[str, Any]]:
        cols = ["document_name", "error_type", "error_message"]
        rows = self._conn.execute(
            f"SELECT {', '.join(cols)} FROM alignment_runs "
            "WHERE run_id = ? AND status = 'failed' ORDER BY document_name",
            [self.run_id],
        ).fetchall()
        return [dict(zip(cols, r, strict=True)) for r in rows]

    def close(self) -> None:
        with contextlib.suppress(Exception):
            self._conn.close()

    def __enter__(self) -> RunLedger:
        return self

    def __exit__(self, *_args: object) -> None:
        self.close()
