"""checklist_etl.schema_detect

Resolve which concrete columns play the rookie-flag and numbering roles in an
existing set store.  Stores written by older ingestion versions used other
names for the same fields; a missing column degrades results, it is never an
error.
"""

from __future__ import annotations

from dataclasses import dataclass

from checklist_etl.store import SetStore

CARDS_TABLE = "cards"
PARALLELS_TABLE = "parallels"

# Preferred name first.
ROOKIE_COLUMNS = ("rookie", "is_rookie")
NUMBERING_COLUMNS = ("parallel_numbering", "numbering")


@dataclass(frozen=True)
class SchemaRoles:
    rookie_col: str | None
    numbering_col: str | None
    has_parallels: bool

    @property
    def has_numbering(self) -> bool:
        return self.has_parallels and self.numbering_col is not None


def _pick(columns: list[str], candidates: tuple[str, ...]) -> str | None:
    lowered = {c.lower() for c in columns}
    for name in candidates:
        if name in lowered:
            return name
    return None


async def detect_schema(store: SetStore) -> SchemaRoles:
    card_cols = await store.column_names(CARDS_TABLE)
    has_parallels = await store.table_exists(PARALLELS_TABLE)
    par_cols = await store.column_names(PARALLELS_TABLE) if has_parallels else []
    return SchemaRoles(
        rookie_col=_pick(card_cols, ROOKIE_COLUMNS),
        numbering_col=_pick(par_cols, NUMBERING_COLUMNS),
        has_parallels=has_parallels,
    )
