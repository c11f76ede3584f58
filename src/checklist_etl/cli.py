"""checklist_etl.cli

Unified CLI entrypoint for checklist ingestion and queries.

Modes (--mode):
  upload           replace the (sport, set) store from a checklist CSV
  list_sets        set names stored for a sport
  checklist        all cards joined with parallels
  checklist_page   raw card rows, one page at a time
  athletes         distinct athlete names in a set
  athlete_summary  per-athlete rookie flag and numbering totals

Usage (upload):
    python -m checklist_etl.cli \\
        --mode upload \\
        --sport "Football" \\
        --set-name "2024 Prizm" \\
        --csv-path "exports/2024_prizm_checklist.csv"

Usage (athlete_summary):
    python -m checklist_etl.cli \\
        --mode athlete_summary \\
        --sport "Football" --set-name "2024 Prizm" --athlete "Jane Doe"

Query modes print JSON to stdout.  Exit codes: 0 ok, 1 checklist not found
or fatal error, 2 missing parameter, 3 store query error.
"""

from __future__ import annotations

import asyncio
import json
import locale
import logging
import sys
import uuid
from datetime import datetime
from pathlib import Path
from typing import Any

import click

from checklist_etl.catalog import list_sets
from checklist_etl.config import Settings, SettingsValidationError, load_settings
from checklist_etl.ingest import ingest_checklist
from checklist_etl.service import (
    get_athlete_summary,
    get_athletes,
    get_checklist,
    get_checklist_page,
)
from checklist_etl.shared import (
    MissingParameterError,
    RejectWriter,
    RunCounters,
    StoreNotFoundError,
    StoreQueryError,
    write_run_report,
)

log = logging.getLogger(__name__)

EXIT_NOT_FOUND = 1
EXIT_MISSING_PARAMETER = 2
EXIT_QUERY_ERROR = 3


@click.command()
@click.option(
    "--mode",
    required=True,
    type=click.Choice([
        "upload", "list_sets", "checklist", "checklist_page",
        "athletes", "athlete_summary",
    ]),
    help="Operation to run",
)
@click.option("--sport", default=None)
@click.option("--set-name", default=None)
@click.option("--athlete", default=None, help="[athlete_summary] Athlete name (case-insensitive)")
@click.option("--csv-path", default=None, type=click.Path(), help="[upload] Checklist CSV")
@click.option(
    "--remove-source/--keep-source",
    default=False,
    show_default=True,
    help="[upload] Delete the CSV after ingestion",
)
@click.option("--page", default=1, type=int, show_default=True, help="[checklist_page] 1-based page")
# shared flags
@click.option("--config", "config_path", default=None, type=click.Path(), help="YAML settings file")
@click.option("--data-dir", default=None, type=click.Path(), help="Directory holding set stores")
@click.option("--rejects-path", default=None, type=click.Path())
@click.option("--run-id", default=None, help="Override UUID for log correlation")
@click.option(
    "--log-level",
    default="WARNING",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]),
    show_default=True,
)
def main(
    mode: str,
    sport: str | None,
    set_name: str | None,
    athlete: str | None,
    csv_path: str | None,
    remove_source: bool,
    page: int,
    config_path: str | None,
    data_dir: str | None,
    rejects_path: str | None,
    run_id: str | None,
    log_level: str,
) -> None:
    """Sports card checklist ingestion and query CLI."""
    logging.basicConfig(
        level=getattr(logging, log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    run_id = run_id or str(uuid.uuid4())
    _use_system_collation()

    try:
        settings = load_settings(Path(config_path) if config_path else None)
    except (SettingsValidationError, FileNotFoundError) as exc:
        click.echo(f"[{run_id}] FATAL: invalid settings: {exc}", err=True)
        sys.exit(1)
    settings = settings.with_overrides(data_dir=data_dir, rejects_path=rejects_path)

    try:
        if mode == "upload":
            _run_upload(run_id, settings, sport, set_name, csv_path, remove_source)
        elif mode == "list_sets":
            _echo_json(list_sets(settings.data_dir, sport))
        elif mode == "checklist":
            _echo_json(asyncio.run(get_checklist(settings.data_dir, sport, set_name)))
        elif mode == "checklist_page":
            _echo_json(asyncio.run(get_checklist_page(
                settings.data_dir, sport, set_name, page, settings.page_size,
            )))
        elif mode == "athletes":
            _echo_json(asyncio.run(get_athletes(settings.data_dir, sport, set_name)))
        elif mode == "athlete_summary":
            summary = asyncio.run(get_athlete_summary(settings.data_dir, sport, set_name, athlete))
            _echo_json(summary.to_dict())
    except MissingParameterError as exc:
        click.echo(f"[{run_id}] ERROR: {exc}", err=True)
        sys.exit(EXIT_MISSING_PARAMETER)
    except StoreNotFoundError:
        click.echo(f"[{run_id}] ERROR: Checklist not found", err=True)
        sys.exit(EXIT_NOT_FOUND)
    except StoreQueryError as exc:
        click.echo(f"[{run_id}] ERROR: {exc}", err=True)
        sys.exit(EXIT_QUERY_ERROR)


# ---------------------------------------------------------------------------
# Upload
# ---------------------------------------------------------------------------

def _validate_upload_flags(csv_path: str | None, run_id: str) -> None:
    if not csv_path:
        click.echo(f"[{run_id}] FATAL: upload mode requires: --csv-path", err=True)
        sys.exit(EXIT_MISSING_PARAMETER)
    if not Path(csv_path).is_file():
        click.echo(f"[{run_id}] FATAL: --csv-path not found: {csv_path}", err=True)
        sys.exit(1)


def _run_upload(
    run_id: str,
    settings: Settings,
    sport: str | None,
    set_name: str | None,
    csv_path: str | None,
    remove_source: bool,
) -> None:
    _validate_upload_flags(csv_path, run_id)
    started_at = datetime.utcnow().isoformat()
    counters = RunCounters()
    rejects = RejectWriter(Path(settings.rejects_path))

    click.echo(f"[{run_id}] Starting upload run (sport={sport!r}, set={set_name!r})")
    try:
        result = asyncio.run(ingest_checklist(
            sport, set_name, Path(csv_path),  # type: ignore[arg-type]
            settings, counters, rejects,
            run_id=run_id,
            remove_source=remove_source,
        ))
    finally:
        rejects.close()

    source_paths = {"csv_path": str(csv_path), "store_path": str(result.store_path)}
    if counters.rows_rejected:
        source_paths["rejects_path"] = str(rejects.path)
    report_path = write_run_report(
        settings.reports_dir, run_id, started_at, "upload", source_paths, counters,
    )
    click.echo(
        f"[{run_id}] Done: {counters.rows_read} rows read, "
        f"{counters.rows_rejected} rejected, "
        f"{counters.cards_inserted} cards inserted, "
        f"{counters.parallels_inserted} parallels inserted"
    )
    click.echo(f"[{run_id}] Store: {result.store_path}")
    if counters.rows_rejected:
        click.echo(f"[{run_id}] Rejects: {rejects.path}")
    click.echo(f"[{run_id}] Run report: {report_path}")


def _use_system_collation() -> None:
    """list_sets orders by LC_COLLATE; take it from the environment."""
    try:
        locale.setlocale(locale.LC_COLLATE, "")
    except locale.Error as exc:
        log.warning("Could not set collation locale, falling back to C ordering: %s", exc)


def _echo_json(payload: Any) -> None:
    click.echo(json.dumps(payload, indent=2, default=str))


if __name__ == "__main__":
    main()
