"""checklist_etl.aggregate

Per-athlete summary over one set store.

The athlete name matches case-insensitively and exactly.  Rookie status is
read from cards alone so the one-to-many join to parallels cannot double
count it.  Numbering totals are grouped by (subset, card_type); unparseable
numbering counts as 0.  Missing columns (see schema_detect) give the
zero-filled summary instead of an error.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from checklist_etl.normalize import parse_numbering
from checklist_etl.schema_detect import SchemaRoles, detect_schema
from checklist_etl.store import SetStore

AUTOGRAPH_SUBSET = "autograph"
AUTOGRAPH_RELIC_SUBSET = "autograph relic"


@dataclass(frozen=True)
class BreakdownGroup:
    subset: str
    card_type: str
    total: int | float

    def to_dict(self) -> dict[str, Any]:
        return {"subset": self.subset, "cardType": self.card_type, "total": self.total}


@dataclass(frozen=True)
class AthleteSummary:
    athlete: str
    is_rookie: bool = False
    card_type_count: int = 0
    total_parallel_cards: int | float = 0
    autograph_count: int | float = 0
    autograph_relic_count: int | float = 0
    breakdown: list[BreakdownGroup] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "athlete": self.athlete,
            "isRookie": self.is_rookie,
            "cardTypeCount": self.card_type_count,
            "totalParallelCards": self.total_parallel_cards,
            "autographCount": self.autograph_count,
            "autographRelicCount": self.autograph_relic_count,
            "breakdown": [g.to_dict() for g in self.breakdown],
        }


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

async def rookie_flag(store: SetStore, roles: SchemaRoles, athlete: str) -> bool:
    if roles.rookie_col is None:
        return False
    row = await store.fetchone(
        f"""
        SELECT MAX(CASE WHEN LOWER(TRIM({roles.rookie_col})) = 'rookie' THEN 1 ELSE 0 END) AS flag
        FROM cards
        WHERE LOWER(athlete_name) = LOWER(?)
        """,
        (athlete,),
    )
    return bool(row and row["flag"] == 1)


async def numbering_rows(
    store: SetStore, roles: SchemaRoles, athlete: str
) -> list[dict[str, Any]]:
    """(subset, card_type, numbering) for every card x parallel of the athlete."""
    return await store.fetchall(
        f"""
        SELECT c.subset, c.card_type, p.{roles.numbering_col} AS numbering
        FROM cards c
        LEFT JOIN parallels p ON c.id = p.card_id
        WHERE LOWER(c.athlete_name) = LOWER(?)
        """,
        (athlete,),
    )


# ---------------------------------------------------------------------------
# Grouping
# ---------------------------------------------------------------------------

def summarize_rows(athlete: str, is_rookie: bool, rows: list[dict[str, Any]]) -> AthleteSummary:
    """Fold joined rows into an AthleteSummary.  Pure; groups keep first-seen order."""
    if not rows:
        return AthleteSummary(athlete=athlete, is_rookie=is_rookie)

    groups: dict[tuple[str, str], int | float] = {}
    autograph = 0
    autograph_relic = 0
    for r in rows:
        key = (r.get("subset") or "", r.get("card_type") or "")
        n = parse_numbering(r.get("numbering"))
        groups[key] = groups.get(key, 0) + n

        subset_lc = key[0].lower()
        if subset_lc == AUTOGRAPH_SUBSET:
            autograph += n
        elif subset_lc == AUTOGRAPH_RELIC_SUBSET:
            autograph_relic += n

    breakdown = [
        BreakdownGroup(subset=subset, card_type=card_type, total=total)
        for (subset, card_type), total in groups.items()
    ]
    card_types = {g.card_type.strip() for g in breakdown if g.card_type.strip()}
    return AthleteSummary(
        athlete=athlete,
        is_rookie=is_rookie,
        card_type_count=len(card_types),
        total_parallel_cards=sum(g.total for g in breakdown),
        autograph_count=autograph,
        autograph_relic_count=autograph_relic,
        breakdown=breakdown,
    )


async def athlete_summary(
    store: SetStore,
    athlete: str,
    roles: SchemaRoles | None = None,
) -> AthleteSummary:
    """Summarize one athlete.  Pass roles to reuse an earlier detect_schema()."""
    if roles is None:
        roles = await detect_schema(store)

    is_rookie = await rookie_flag(store, roles, athlete)
    if not roles.has_numbering:
        return AthleteSummary(athlete=athlete, is_rookie=is_rookie)

    rows = await numbering_rows(store, roles, athlete)
    return summarize_rows(athlete, is_rookie, rows)
