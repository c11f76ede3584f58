"""checklist_etl.ingest

Checklist CSV ingestion pipeline.

Consumes one checklist export for a (sport, set) pair and produces a fresh
set store:
  - cards      one row per input row
  - parallels  one row per non-blank parallel-name cell, linked to its card

Ingestion is whole-file replace: the existing store (if any) is deleted and
recreated before any row is written.  Rows are then streamed in batches of
Settings.max_concurrent_rows; each row awaits its card insert (and its id)
before issuing that card's parallel inserts.  A failing row is logged,
rejected, and its partial writes removed; the remaining rows continue.
A record the csv module cannot parse (a field over csv.field_size_limit()) is
rejected the same way.  Bytes that are not UTF-8 are replaced with U+FFFD and
the row is kept with a warning.
"""

from __future__ import annotations

import asyncio
import csv
import logging
import sqlite3
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Iterable, Iterator

from checklist_etl.classify import HeaderLayout, classify_headers
from checklist_etl.config import Settings
from checklist_etl.normalize import normalize_header
from checklist_etl.shared import RejectWriter, RunCounters, require_params
from checklist_etl.store import SetStore, replace_store, store_path

log = logging.getLogger(__name__)

# errors="replace" marker for bytes that are not UTF-8
UNDECODABLE = "\ufffd"

INSERT_CARD_SQL = """
INSERT INTO cards (card_number, athlete_name, rookie, subset, card_type)
VALUES (?, ?, ?, ?, ?)
"""

INSERT_PARALLEL_SQL = """
INSERT INTO parallels (card_id, parallel_name, parallel_numbering)
VALUES (?, ?, ?)
"""


@dataclass
class IngestResult:
    store_path: Path
    layout: HeaderLayout
    rows_read: int
    cards_inserted: int
    parallels_inserted: int
    rows_rejected: int


# ---------------------------------------------------------------------------
# Per-row processing
# ---------------------------------------------------------------------------

async def _ingest_row(
    store: SetStore,
    layout: HeaderLayout,
    row: dict[str, str | None],
    row_num: int,
    run_id: str,
    counters: RunCounters,
    rejects: RejectWriter,
) -> None:
    """Write one card and its parallels.  Failures are absorbed, never raised."""
    card_id: int | None = None
    try:
        card_id = await store.execute(INSERT_CARD_SQL, layout.identity.card_values(row))
        parallels = layout.parallel_values(row)
        for parallel_name, numbering in parallels:
            await store.execute(INSERT_PARALLEL_SQL, (card_id, parallel_name, numbering))
    except Exception as exc:
        await _discard_card(store, card_id, row_num)
        _reject_row(row, row_num, exc, run_id, counters, rejects)
        return

    counters.cards_inserted += 1
    counters.parallels_inserted += len(parallels)
    if not parallels:
        counters.rows_without_parallels += 1


def _reject_row(
    row: dict[str, str | None],
    row_num: int,
    exc: Exception,
    run_id: str,
    counters: RunCounters,
    rejects: RejectWriter,
) -> None:
    log.warning("[%s] row %d dropped: %s: %s", run_id, row_num, type(exc).__name__, exc)
    clean = {k: v for k, v in row.items() if k is not None}
    rejects.write({**clean, "_row_num": str(row_num)}, f"{type(exc).__name__}: {exc}")
    counters.rows_rejected += 1
    counters.warnings.append(f"[{run_id}] row {row_num} {type(exc).__name__}: {exc}")


def _records(
    reader: csv.DictReader,
) -> Iterator[tuple[dict[str, str | None] | None, csv.Error | None]]:
    """Yield (row, None) per record, or (None, error) for a record csv cannot parse.

    The csv reader resets its parser on every call, so reading resumes at
    the next line after an error.
    """
    while True:
        try:
            row = next(reader)
        except StopIteration:
            return
        except csv.Error as exc:
            yield None, exc
            continue
        yield row, None


def _has_replaced_bytes(row: dict[str, str | None]) -> bool:
    return any(isinstance(v, str) and UNDECODABLE in v for v in row.values())


async def _discard_card(store: SetStore, card_id: int | None, row_num: int) -> None:
    """Remove whatever a failed row managed to write."""
    if card_id is None:
        return
    try:
        await store.execute("DELETE FROM parallels WHERE card_id = ?", (card_id,))
        await store.execute("DELETE FROM cards WHERE id = ?", (card_id,))
    except sqlite3.Error as exc:
        log.error("row %d: could not discard partial card id=%s: %s", row_num, card_id, exc)


async def _gather(tasks: Iterable[Awaitable[None]]) -> None:
    tasks = list(tasks)
    if not tasks:
        return
    await asyncio.gather(*tasks)


# ---------------------------------------------------------------------------
# Main entry point
# ---------------------------------------------------------------------------

async def ingest_checklist(
    sport: str | None,
    set_name: str | None,
    csv_path: Path,
    settings: Settings,
    counters: RunCounters,
    rejects: RejectWriter,
    *,
    run_id: str = "",
    remove_source: bool = False,
) -> IngestResult:
    """Replace the (sport, set) store with the contents of csv_path.

    Raises:
        MissingParameterError: sport or set_name is blank (no side effects).
        FileNotFoundError: csv_path does not exist (existing store untouched).
    """
    require_params(sport=sport, set=set_name)
    csv_path = Path(csv_path)
    target = store_path(settings.data_dir, sport, set_name)
    batch_size = max(1, settings.max_concurrent_rows)

    try:
        with csv_path.open(encoding="utf-8-sig", errors="replace", newline="") as fh:
            reader = csv.DictReader(fh)
            headers = [normalize_header(h) for h in (reader.fieldnames or [])]
            if headers:
                reader.fieldnames = headers
            layout = classify_headers(headers)
            log.info(
                "[%s] %s: %d headers, %d parallel pair(s)",
                run_id, csv_path.name, len(headers), len(layout.parallels),
            )

            store = await replace_store(target)
            try:
                batch: list[Awaitable[None]] = []
                try:
                    records = _records(reader) if headers else iter(())
                    for row_num, (row, error) in enumerate(records, start=1):
                        counters.rows_read += 1
                        if error is not None:
                            _reject_row(
                                dict.fromkeys(headers, ""), row_num, error,
                                run_id, counters, rejects,
                            )
                            continue
                        if _has_replaced_bytes(row):
                            log.warning("[%s] row %d: undecodable bytes replaced", run_id, row_num)
                            counters.warnings.append(
                                f"[{run_id}] row {row_num} undecodable bytes replaced"
                            )
                        batch.append(_ingest_row(
                            store, layout, row, row_num, run_id, counters, rejects,
                        ))
                        if len(batch) >= batch_size:
                            await _gather(batch)
                            batch = []
                finally:
                    # rows already queued are written and kept even if reading fails
                    await _gather(batch)
                    await store.commit()
            finally:
                await store.close()
    finally:
        if remove_source:
            csv_path.unlink(missing_ok=True)

    log.info(
        "[%s] %s ingested: %d rows, %d cards, %d parallels, %d rejected",
        run_id, target.name, counters.rows_read, counters.cards_inserted,
        counters.parallels_inserted, counters.rows_rejected,
    )
    return IngestResult(
        store_path=target,
        layout=layout,
        rows_read=counters.rows_read,
        cards_inserted=counters.cards_inserted,
        parallels_inserted=counters.parallels_inserted,
        rows_rejected=counters.rows_rejected,
    )
