"""checklist_etl.classify

Column classification for checklist exports.

Checklist files arrive with free-form, per-exporter headers.  After
normalize_header() has been applied, this module decides:

  - which header feeds each card identity field (first-match priority lists)
  - which headers name parallels, and which numbering column belongs to each

Parallel pairing is positional.  A header is a parallel-name column when it
contains "parallel" and not "numbering"; its numbering column is the header
immediately after it, and only if that header contains "numbering".
Reordering a file's columns changes the result.

Usage:
    layout = classify_headers(["card_number", "athlete", "parallel_1",
                               "parallel_1_numbering"])
    layout.identity.card_values(row)
    layout.parallel_values(row)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Sequence

from checklist_etl.normalize import trim

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

PARALLEL_TOKEN = "parallel"
NUMBERING_TOKEN = "numbering"

ATHLETE_NAME_HEADERS = ("athlete_full_name", "athlete_name", "athlete")
CARD_TYPE_HEADERS = ("type", "card_type")
CARD_NUMBER_HEADERS = ("card_number",)
ROOKIE_HEADERS = ("rookie",)
SUBSET_HEADERS = ("subset",)


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ParallelPair:
    name_header: str
    numbering_header: str | None = None


@dataclass(frozen=True)
class IdentityColumns:
    """Candidate headers per card field, in priority order, as present in the file."""

    card_number: tuple[str, ...] = ()
    athlete_name: tuple[str, ...] = ()
    rookie: tuple[str, ...] = ()
    subset: tuple[str, ...] = ()
    card_type: tuple[str, ...] = ()

    def card_values(
        self, row: Mapping[str, str | None]
    ) -> tuple[str | None, str | None, str | None, str | None, str | None]:
        """Return (card_number, athlete_name, rookie, subset, card_type) for a row."""
        return (
            _first_value(row, self.card_number),
            _first_value(row, self.athlete_name),
            _first_value(row, self.rookie),
            _first_value(row, self.subset),
            _first_value(row, self.card_type),
        )


@dataclass(frozen=True)
class HeaderLayout:
    headers: tuple[str, ...]
    identity: IdentityColumns
    parallels: tuple[ParallelPair, ...]

    def parallel_values(self, row: Mapping[str, str | None]) -> list[tuple[str, str]]:
        """Return [(parallel_name, numbering), ...] for one row.

        A blank parallel-name cell produces no entry.  A missing numbering
        column or blank numbering cell produces numbering "".
        """
        out: list[tuple[str, str]] = []
        for pair in self.parallels:
            name = row.get(pair.name_header)
            if trim(name) is None:
                continue
            numbering = ""
            if pair.numbering_header is not None:
                numbering = row.get(pair.numbering_header) or ""
            out.append((name, numbering))
        return out


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------

def is_parallel_name_header(header: str) -> bool:
    h = header.lower()
    return PARALLEL_TOKEN in h and NUMBERING_TOKEN not in h


def is_numbering_header(header: str | None) -> bool:
    return header is not None and NUMBERING_TOKEN in header.lower()


def pair_parallel_headers(headers: Sequence[str]) -> tuple[ParallelPair, ...]:
    """Single left-to-right scan building (name, numbering-or-None) pairs."""
    pairs: list[ParallelPair] = []
    for idx, header in enumerate(headers):
        if not is_parallel_name_header(header):
            continue
        nxt = headers[idx + 1] if idx + 1 < len(headers) else None
        pairs.append(ParallelPair(header, nxt if is_numbering_header(nxt) else None))
    return tuple(pairs)


def classify_headers(headers: Sequence[str]) -> HeaderLayout:
    """Classify normalized headers (in file order) into identity + parallel roles."""
    present = set(headers)

    def pick(candidates: tuple[str, ...]) -> tuple[str, ...]:
        return tuple(c for c in candidates if c in present)

    identity = IdentityColumns(
        card_number=pick(CARD_NUMBER_HEADERS),
        athlete_name=pick(ATHLETE_NAME_HEADERS),
        rookie=pick(ROOKIE_HEADERS),
        subset=pick(SUBSET_HEADERS),
        card_type=pick(CARD_TYPE_HEADERS),
    )
    return HeaderLayout(
        headers=tuple(headers),
        identity=identity,
        parallels=pair_parallel_headers(headers),
    )


def _first_value(row: Mapping[str, str | None], candidates: tuple[str, ...]) -> str | None:
    # blanks fall through; the last candidate's raw cell is kept when none is set
    value = None
    for header in candidates:
        value = row.get(header)
        if value:
            return value
    return value
