"""checklist_etl.store

Per-(sport, set) SQLite set stores.

Each checklist lives in its own database file named
    sanitize_name(sport) + "_" + sanitize_name(set_name) + ".db"
inside the data directory.  The file's existence is the only record that a
checklist exists.

SetStore wraps one sqlite3 connection behind a single-worker thread pool so
callers await every store operation.  Operations on one store run one at a
time in submission order; coroutines awaiting them may interleave.

Replacing a store that another caller is reading is undefined behavior.
No cross-request locking is provided.
"""

from __future__ import annotations

import asyncio
import functools
import logging
import sqlite3
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Callable, Sequence

from checklist_etl.normalize import sanitize_name

log = logging.getLogger(__name__)

STORE_SUFFIX = ".db"

CARDS_DDL = """
CREATE TABLE cards (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  card_number TEXT,
  athlete_name TEXT,
  rookie TEXT,
  subset TEXT,
  card_type TEXT
)
"""

PARALLELS_DDL = """
CREATE TABLE parallels (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  card_id INTEGER,
  parallel_name TEXT,
  parallel_numbering TEXT,
  FOREIGN KEY(card_id) REFERENCES cards(id)
)
"""


# ---------------------------------------------------------------------------
# Naming
# ---------------------------------------------------------------------------

def store_filename(sport: str | None, set_name: str | None) -> str:
    return f"{sanitize_name(sport)}_{sanitize_name(set_name)}{STORE_SUFFIX}"


def store_path(data_dir: Path, sport: str | None, set_name: str | None) -> Path:
    return Path(data_dir) / store_filename(sport, set_name)


# ---------------------------------------------------------------------------
# SetStore
# ---------------------------------------------------------------------------

class SetStore:
    """Async facade over one set-store database file."""

    def __init__(
        self,
        path: Path,
        conn: sqlite3.Connection,
        executor: ThreadPoolExecutor,
    ) -> None:
        self._path = path
        self._conn = conn
        self._executor = executor
        self._closed = False

    @property
    def path(self) -> Path:
        return self._path

    # -- lifecycle ----------------------------------------------------------

    @classmethod
    async def open(cls, path: Path, *, create: bool = False) -> SetStore:
        """Open a store.  With create=False a missing file raises sqlite3.OperationalError."""
        path = Path(path)
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="set-store")
        loop = asyncio.get_running_loop()
        try:
            conn = await loop.run_in_executor(
                executor, functools.partial(_connect, path, create)
            )
        except BaseException:
            executor.shutdown(wait=False)
            raise
        return cls(path, conn, executor)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            await self._run(self._conn.close)
        finally:
            self._executor.shutdown(wait=True)

    async def __aenter__(self) -> SetStore:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    # -- operations ---------------------------------------------------------

    async def execute(self, sql: str, params: Sequence[Any] = ()) -> int | None:
        """Run one statement; return the cursor's lastrowid."""
        def op() -> int | None:
            return self._conn.execute(sql, params).lastrowid
        return await self._run(op)

    async def executescript(self, script: str) -> None:
        await self._run(functools.partial(self._conn.executescript, script))

    async def fetchall(self, sql: str, params: Sequence[Any] = ()) -> list[dict[str, Any]]:
        def op() -> list[dict[str, Any]]:
            return [dict(r) for r in self._conn.execute(sql, params).fetchall()]
        return await self._run(op)

    async def fetchone(self, sql: str, params: Sequence[Any] = ()) -> dict[str, Any] | None:
        def op() -> dict[str, Any] | None:
            row = self._conn.execute(sql, params).fetchone()
            return dict(row) if row is not None else None
        return await self._run(op)

    async def commit(self) -> None:
        await self._run(self._conn.commit)

    async def table_exists(self, table: str) -> bool:
        row = await self.fetchone(
            "SELECT name FROM sqlite_master WHERE type='table' AND name = ?",
            (table,),
        )
        return row is not None

    async def column_names(self, table: str) -> list[str]:
        """Column names of a table via PRAGMA table_info; [] if the table is absent."""
        rows = await self.fetchall(f"PRAGMA table_info('{table}')")
        return [str(r["name"]) for r in rows]

    async def _run(self, fn: Callable[[], Any]) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, fn)


# ---------------------------------------------------------------------------
# Whole-file replace
# ---------------------------------------------------------------------------

async def replace_store(path: Path) -> SetStore:
    """Delete any existing store at path and return a fresh one with the card schema.

    This is the only atomic boundary of an upload; it completes before any
    row is written.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    if path.exists():
        log.info("Replacing existing set store %s", path)
        path.unlink()
    store = await SetStore.open(path, create=True)
    try:
        await store.executescript(CARDS_DDL + ";\n" + PARALLELS_DDL + ";")
    except BaseException:
        await store.close()
        raise
    return store


def _connect(path: Path, create: bool) -> sqlite3.Connection:
    if create:
        conn = sqlite3.connect(str(path))
    else:
        conn = sqlite3.connect(f"{path.resolve().as_uri()}?mode=rw", uri=True)
    conn.row_factory = sqlite3.Row
    return conn
