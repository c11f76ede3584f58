"""checklist_etl.shared

Shared utilities used by the ingestion and query sides.
Includes the error types, RejectWriter, RunCounters, and
report-writing support.
"""

from __future__ import annotations

import csv
import json
from dataclasses import asdict, dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class MissingParameterError(ValueError):
    """Raised when a required identifying input (sport, set, athlete) is blank."""

    def __init__(self, missing: list[str]) -> None:
        self.missing = list(missing)
        super().__init__(f"Missing {', '.join(self.missing)} parameter")


class StoreNotFoundError(LookupError):
    """Raised when no set store exists for the requested (sport, set)."""

    def __init__(self, sport: str, set_name: str, path: Path) -> None:
        self.sport = sport
        self.set_name = set_name
        self.path = path
        super().__init__(f"Checklist not found: sport={sport!r} set={set_name!r}")


class StoreQueryError(RuntimeError):
    """Raised for unexpected failures talking to a set store."""


def require_params(**params: str | None) -> None:
    """Raise MissingParameterError naming every blank parameter."""
    missing = [name for name, value in params.items() if value is None or not str(value).strip()]
    if missing:
        raise MissingParameterError(missing)


# ---------------------------------------------------------------------------
# RejectWriter
# ---------------------------------------------------------------------------

class RejectWriter:
    """Lazy-open CSV writer for rejected rows."""

    def __init__(self, path: Path) -> None:
        self._path = path
        self._fh = None
        self._writer = None

    @property
    def path(self) -> Path:
        return self._path

    def write(self, row: dict[str, str], reason: str) -> None:
        if self._fh is None:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._fh = open(self._path, "w", newline="", encoding="utf-8")
            fieldnames = list(row.keys()) + ["_reject_reason"]
            self._writer = csv.DictWriter(
                self._fh, fieldnames=fieldnames, extrasaction="ignore"
            )
            self._writer.writeheader()
        out = dict(row)
        out["_reject_reason"] = reason
        self._writer.writerow(out)
        self._fh.flush()

    def close(self) -> None:
        if self._fh:
            self._fh.close()
            self._fh = None
            self._writer = None


# ---------------------------------------------------------------------------
# RunCounters
# ---------------------------------------------------------------------------

@dataclass
class RunCounters:
    rows_read: int = 0
    rows_rejected: int = 0
    cards_inserted: int = 0
    parallels_inserted: int = 0
    rows_without_parallels: int = 0
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


# ---------------------------------------------------------------------------
# Report writer
# ---------------------------------------------------------------------------

def write_run_report(
    reports_dir: Path,
    run_id: str,
    started_at: str,
    mode: str,
    source_paths: dict[str, str],
    counters: RunCounters,
) -> Path:
    report = {
        "run_id": run_id,
        "mode": mode,
        "started_at": started_at,
        "finished_at": datetime.utcnow().isoformat(),
        **source_paths,
        "counters": counters.to_dict(),
    }
    report_path = Path(reports_dir) / f"{run_id}.json"
    report_path.parent.mkdir(parents=True, exist_ok=True)
    report_path.write_text(json.dumps(report, indent=2, default=str))
    return report_path
