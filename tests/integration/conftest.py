"""Integration test fixtures.

Each test gets its own data directory under tmp_path; set stores are real
SQLite files created by the ingestion pipeline.
"""

from __future__ import annotations

import asyncio
import csv
from pathlib import Path
from typing import Callable

import pytest

from checklist_etl.config import Settings
from checklist_etl.ingest import IngestResult, ingest_checklist
from checklist_etl.shared import RejectWriter, RunCounters


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        data_dir=tmp_path / "data",
        rejects_path=tmp_path / "artifacts" / "rejects.csv",
        reports_dir=tmp_path / "artifacts" / "reports",
        max_concurrent_rows=4,
    )


@pytest.fixture
def write_csv(tmp_path: Path) -> Callable[..., Path]:
    """Write headers + rows to a CSV under tmp_path and return its path."""

    def _write(headers: list[str], rows: list[list[str]], name: str = "checklist.csv") -> Path:
        path = tmp_path / "uploads" / name
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", newline="", encoding="utf-8") as fh:
            writer = csv.writer(fh)
            writer.writerow(headers)
            writer.writerows(rows)
        return path

    return _write


@pytest.fixture
def ingest(settings: Settings) -> Callable[..., IngestResult]:
    """Run ingest_checklist synchronously with fresh counters."""

    def _ingest(sport: str, set_name: str, csv_path: Path, **kwargs) -> IngestResult:
        counters = RunCounters()
        rejects = RejectWriter(settings.rejects_path)
        try:
            return asyncio.run(ingest_checklist(
                sport, set_name, csv_path, settings, counters, rejects,
                run_id="test", **kwargs,
            ))
        finally:
            rejects.close()

    return _ingest
