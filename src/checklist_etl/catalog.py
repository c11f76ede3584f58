"""checklist_etl.catalog

Read-side listings: sets per sport, checklist rows, paged cards, athletes.
"""

from __future__ import annotations

import locale
import logging
import math
from pathlib import Path
from typing import Any

from checklist_etl.normalize import sanitize_name
from checklist_etl.schema_detect import SchemaRoles, detect_schema
from checklist_etl.shared import MissingParameterError, StoreQueryError
from checklist_etl.store import STORE_SUFFIX, SetStore

log = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Sets for a sport (filesystem only)
# ---------------------------------------------------------------------------

def list_sets(data_dir: Path, sport: str | None) -> list[str]:
    """Display names of every stored set for a sport, ordered by the current LC_COLLATE.

    'football_2023_update.db' -> '2023 update' for sport 'Football'.
    """
    if not sport or not sport.strip():
        raise MissingParameterError(["sport"])
    prefix = sanitize_name(sport) + "_"
    data_dir = Path(data_dir)
    if not data_dir.is_dir():
        return []
    try:
        names = [p.name for p in data_dir.iterdir() if p.is_file()]
    except OSError as exc:
        log.error("Error reading data directory %s: %s", data_dir, exc)
        raise StoreQueryError("Could not list sets") from exc

    sets = [
        name[len(prefix):-len(STORE_SUFFIX)].replace("_", " ")
        for name in names
        if name.lower().startswith(prefix) and name.endswith(STORE_SUFFIX)
    ]
    return sorted(sets, key=locale.strxfrm)


# ---------------------------------------------------------------------------
# Checklist rows
# ---------------------------------------------------------------------------

async def checklist_rows(
    store: SetStore, roles: SchemaRoles | None = None
) -> list[dict[str, Any]]:
    """Every card joined with its parallels, ordered by subset then athlete.

    Stores without a parallels table or numbering column return card-only
    rows with NULL parallel fields.
    """
    if roles is None:
        roles = await detect_schema(store)
    if roles.has_numbering:
        sql = f"""
            SELECT c.subset, c.athlete_name, c.card_type,
                   p.parallel_name, p.{roles.numbering_col} AS parallel_numbering
            FROM cards c
            LEFT JOIN parallels p ON c.id = p.card_id
            ORDER BY LOWER(c.subset), LOWER(c.athlete_name)
        """
    else:
        sql = """
            SELECT c.subset, c.athlete_name, c.card_type,
                   NULL AS parallel_name, NULL AS parallel_numbering
            FROM cards c
            ORDER BY LOWER(c.subset), LOWER(c.athlete_name)
        """
    return await store.fetchall(sql)


async def checklist_page(store: SetStore, page: int = 1, page_size: int = 50) -> dict[str, Any]:
    """Raw card rows by id, one page at a time (1-based)."""
    page = max(1, int(page))
    page_size = max(1, int(page_size))
    count_row = await store.fetchone("SELECT COUNT(*) AS count FROM cards")
    count = count_row["count"] if count_row else 0
    cards = await store.fetchall(
        "SELECT * FROM cards ORDER BY id LIMIT ? OFFSET ?",
        (page_size, (page - 1) * page_size),
    )
    return {"cards": cards, "totalPages": math.ceil(count / page_size)}


# ---------------------------------------------------------------------------
# Athletes
# ---------------------------------------------------------------------------

async def athlete_names(store: SetStore) -> list[str]:
    rows = await store.fetchall(
        """
        SELECT DISTINCT c.athlete_name AS name
        FROM cards c
        WHERE c.athlete_name IS NOT NULL AND TRIM(c.athlete_name) <> ''
        ORDER BY LOWER(c.athlete_name) ASC
        """
    )
    return [r["name"] for r in rows]
