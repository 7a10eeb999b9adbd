"""Tests for docalign.run_ledger: DuckDB batch outcome ledger."""
from __future__ import annotations

from pathlib import Path

import duckdb
import pytest

from docalign.errors import StreamLengthMismatchError
from docalign.run_ledger import (
    SCHEMA_VERSION,
    LedgerSchemaError,
    RunLedger,
    generate_run_id,
)


class TestRunLedger:
    def test_records_and_summarizes(self, tmp_path: Path) -> None:
        db = tmp_path / "ledger.duckdb"
        with RunLedger(db, run_id="run-1") as ledger:
            ledger.record_success("a.json", sections_annotated=3)
            ledger.record_failure(
                "b.json", StreamLengthMismatchError("records", expected=3, actual=2),
            )
            summary = ledger.summary()
            failures = ledger.failures()
        assert (summary.total, summary.succeeded, summary.failed) == (2, 1, 1)
        assert failures == [{
            "document_name": "b.json",
            "error_type": "StreamLengthMismatchError",
            "error_message": "records: expected 3, got 2",
        }]

    def test_rows_readable_with_duckdb(self, tmp_path: Path) -> None:
        db = tmp_path / "ledger.duckdb"
        with RunLedger(db, run_id="run-1") as ledger:
            ledger.record_success("a.json", sections_annotated=2)
        con = duckdb.connect(str(db), read_only=True)
        try:
            rows = con.execute(
                "SELECT run_id, document_name, status, sections_annotated FROM alignment_runs"
            ).fetchall()
            version = con.execute("SELECT version FROM _schema_version").fetchone()
        finally:
            con.close()
        assert rows == [("run-1", "a.json", "ok", 2)]
        assert version == (SCHEMA_VERSION,)

    def test_runs_are_separated(self, tmp_path: Path) -> None:
        db = tmp_path / "ledger.duckdb"
        with RunLedger(db, run_id="first") as ledger:
            ledger.record_success("a.json", sections_annotated=1)
        with RunLedger(db, run_id="second") as ledger:
            assert ledger.summary().total == 0

    def test_schema_mismatch(self, tmp_path: Path) -> None:
        db = tmp_path / "ledger.duckdb"
        with RunLedger(db):
            pass
        con = duckdb.connect(str(db))
        con.execute("UPDATE _schema_version SET version = '0.0.1'")
        con.close()
        with pytest.raises(LedgerSchemaError):
            RunLedger(db)


class TestGenerateRunId:
    def test_prefix_and_uniqueness(self) -> None:
        a, b = generate_run_id(), generate_run_id()
        assert a.startswith("align_")
        assert a != b
