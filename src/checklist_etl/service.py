"""checklist_etl.service

Query entry points keyed by (sport, set), with the caller-facing error policy:

  - MissingParameterError  blank sport/set/athlete, raised before any I/O
  - StoreNotFoundError     no store file for (sport, set), raised before any query
  - StoreQueryError        any sqlite3 failure while opening or querying

Schema gaps never raise; they come back as zero/empty results.
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator

from checklist_etl.aggregate import AthleteSummary, athlete_summary
from checklist_etl.catalog import athlete_names, checklist_page, checklist_rows
from checklist_etl.shared import StoreNotFoundError, StoreQueryError, require_params
from checklist_etl.store import SetStore, store_path

log = logging.getLogger(__name__)


async def open_set_store(data_dir: Path, sport: str | None, set_name: str | None) -> SetStore:
    require_params(sport=sport, set=set_name)
    path = store_path(data_dir, sport, set_name)
    if not path.is_file():
        raise StoreNotFoundError(sport or "", set_name or "", path)
    try:
        return await SetStore.open(path)
    except sqlite3.Error as exc:
        log.error("Could not open set store %s: %s", path, exc)
        raise StoreQueryError("DB query error") from exc


@asynccontextmanager
async def query_store(
    data_dir: Path, sport: str | None, set_name: str | None
) -> AsyncIterator[SetStore]:
    """Open a store for reading; wrap sqlite3 failures; always close."""
    store = await open_set_store(data_dir, sport, set_name)
    async with store:
        try:
            yield store
        except sqlite3.Error as exc:
            log.error("Query against %s failed: %s", store.path, exc)
            raise StoreQueryError("DB query error") from exc


async def get_checklist(data_dir: Path, sport: str | None, set_name: str | None) -> list[dict[str, Any]]:
    async with query_store(data_dir, sport, set_name) as store:
        return await checklist_rows(store)


async def get_checklist_page(
    data_dir: Path,
    sport: str | None,
    set_name: str | None,
    page: int = 1,
    page_size: int = 50,
) -> dict[str, Any]:
    async with query_store(data_dir, sport, set_name) as store:
        return await checklist_page(store, page, page_size)


async def get_athletes(data_dir: Path, sport: str | None, set_name: str | None) -> dict[str, Any]:
    async with query_store(data_dir, sport, set_name) as store:
        athletes = await athlete_names(store)
    return {"sport": sport, "set": set_name, "count": len(athletes), "athletes": athletes}


async def get_athlete_summary(
    data_dir: Path,
    sport: str | None,
    set_name: str | None,
    athlete: str | None,
) -> AthleteSummary:
    require_params(sport=sport, set=set_name, athlete=athlete)
    async with query_store(data_dir, sport, set_name) as store:
        return await athlete_summary(store, athlete)  # type: ignore[arg-type]
