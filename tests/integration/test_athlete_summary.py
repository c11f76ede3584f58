"""Integration tests for schema detection and the athlete summary."""

from __future__ import annotations

import asyncio
import sqlite3
from pathlib import Path

import pytest

from checklist_etl.schema_detect import SchemaRoles, detect_schema
from checklist_etl.service import get_athlete_summary, open_set_store
from checklist_etl.shared import MissingParameterError, StoreNotFoundError
from checklist_etl.store import store_path

HEADERS = [
    "card_number", "athlete_full_name", "rookie", "subset", "type",
    "parallel_1", "parallel_1_numbering",
]


def _summary(settings, athlete, sport="football", set_name="2024") -> dict:
    return asyncio.run(get_athlete_summary(settings.data_dir, sport, set_name, athlete)).to_dict()


def _roles(settings, sport="football", set_name="2024") -> SchemaRoles:
    async def run():
        store = await open_set_store(settings.data_dir, sport, set_name)
        try:
            return await detect_schema(store)
        finally:
            await store.close()
    return asyncio.run(run())


def _legacy_store(settings, ddl: str, inserts: list[tuple[str, tuple]]) -> Path:
    """Create a store by hand, as an older ingestion version would have."""
    path = store_path(settings.data_dir, "football", "2024")
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path))
    try:
        conn.executescript(ddl)
        for sql, params in inserts:
            conn.execute(sql, params)
        conn.commit()
    finally:
        conn.close()
    return path


# ---------------------------------------------------------------------------
# End-to-end
# ---------------------------------------------------------------------------

class TestEndToEnd:
    def test_jane_doe(self, ingest, write_csv, settings):
        ingest("football", "2024", write_csv(HEADERS, [["1", "Jane Doe", "Rookie", "Base", "Base", "Gold", "25"]]))
        assert _summary(settings, "Jane Doe") == {
            "athlete": "Jane Doe",
            "isRookie": True,
            "cardTypeCount": 1,
            "totalParallelCards": 25,
            "autographCount": 0,
            "autographRelicCount": 0,
            "breakdown": [{"subset": "Base", "cardType": "Base", "total": 25}],
        }

    def test_athlete_match_is_case_insensitive(self, ingest, write_csv, settings):
        ingest("football", "2024", write_csv(HEADERS, [["1", "Jane Doe", "Rookie", "Base", "Base", "Gold", "25"]]))
        summary = _summary(settings, "jane doe")
        assert summary["athlete"] == "jane doe"
        assert summary["totalParallelCards"] == 25

    def test_athlete_match_is_exact(self, ingest, write_csv, settings):
        ingest("football", "2024", write_csv(HEADERS, [["1", "Jane Doe", "Rookie", "Base", "Base", "Gold", "25"]]))
        assert _summary(settings, "Jane")["breakdown"] == []


# ---------------------------------------------------------------------------
# Rookie flag
# ---------------------------------------------------------------------------

class TestRookieFlag:
    @pytest.mark.parametrize("value", ["Rookie", "ROOKIE ", "  rookie"])
    def test_trimmed_case_insensitive_match(self, ingest, write_csv, settings, value):
        ingest("football", "2024", write_csv(HEADERS, [["1", "Jane Doe", value, "Base", "Base", "", ""]]))
        assert _summary(settings, "Jane Doe")["isRookie"] is True

    @pytest.mark.parametrize("value", ["", "RC", "Rookie Card", "yes"])
    def test_other_values_do_not_count(self, ingest, write_csv, settings, value):
        ingest("football", "2024", write_csv(HEADERS, [["1", "Jane Doe", value, "Base", "Base", "", ""]]))
        assert _summary(settings, "Jane Doe")["isRookie"] is False

    def test_one_rookie_card_is_enough(self, ingest, write_csv, settings):
        rows = [
            ["1", "Jane Doe", "", "Base", "Base", "Gold", "10"],
            ["2", "Jane Doe", "Rookie", "Insert", "Insert", "Red", "5"],
        ]
        ingest("football", "2024", write_csv(HEADERS, rows))
        assert _summary(settings, "Jane Doe")["isRookie"] is True

    def test_rookie_not_double_counted_by_join(self, ingest, write_csv, settings):
        headers = HEADERS + ["parallel_2", "parallel_2_numbering"]
        ingest("football", "2024", write_csv(
            headers, [["1", "Jane Doe", "Rookie", "Base", "Base", "Gold", "10", "Red", "5"]],
        ))
        summary = _summary(settings, "Jane Doe")
        assert summary["isRookie"] is True
        assert summary["totalParallelCards"] == 15
        assert summary["breakdown"] == [{"subset": "Base", "cardType": "Base", "total": 15}]


# ---------------------------------------------------------------------------
# Totals
# ---------------------------------------------------------------------------

class TestTotals:
    def test_breakdown_and_autograph_counts(self, ingest, write_csv, settings):
        rows = [
            ["1", "Jane Doe", "", "Base", "Base", "Gold", "25"],
            ["2", "Jane Doe", "", "Autograph", "Auto", "Gold", "10"],
            ["3", "Jane Doe", "", "autograph relic", "Auto", "Gold", "5"],
            ["4", "Jane Doe", "", "Autographs", "Auto", "Gold", "7"],
            ["5", "Jane Doe", "", "Base", "Base", "Blue", "/99"],
            ["6", "John Roe", "", "Base", "Base", "Gold", "1000"],
        ]
        ingest("football", "2024", write_csv(HEADERS, rows))
        summary = _summary(settings, "Jane Doe")
        assert summary["breakdown"] == [
            {"subset": "Base", "cardType": "Base", "total": 25},
            {"subset": "Autograph", "cardType": "Auto", "total": 10},
            {"subset": "autograph relic", "cardType": "Auto", "total": 5},
            {"subset": "Autographs", "cardType": "Auto", "total": 7},
        ]
        assert summary["totalParallelCards"] == 47
        assert summary["autographCount"] == 10
        assert summary["autographRelicCount"] == 5
        assert summary["cardTypeCount"] == 2
        assert summary["totalParallelCards"] == sum(g["total"] for g in summary["breakdown"])

    def test_card_without_parallels_still_grouped(self, ingest, write_csv, settings):
        ingest("football", "2024", write_csv(HEADERS, [["1", "Jane Doe", "", "Base", "Base", "", ""]]))
        summary = _summary(settings, "Jane Doe")
        assert summary["breakdown"] == [{"subset": "Base", "cardType": "Base", "total": 0}]
        assert summary["cardTypeCount"] == 1
        assert summary["totalParallelCards"] == 0

    def test_unknown_athlete_is_zero_filled(self, ingest, write_csv, settings):
        ingest("football", "2024", write_csv(HEADERS, [["1", "Jane Doe", "Rookie", "Base", "Base", "Gold", "25"]]))
        assert _summary(settings, "Nobody") == {
            "athlete": "Nobody",
            "isRookie": False,
            "cardTypeCount": 0,
            "totalParallelCards": 0,
            "autographCount": 0,
            "autographRelicCount": 0,
            "breakdown": [],
        }


# ---------------------------------------------------------------------------
# Schema drift
# ---------------------------------------------------------------------------

class TestSchemaDetection:
    def test_current_schema(self, ingest, write_csv, settings):
        ingest("football", "2024", write_csv(HEADERS, []))
        assert _roles(settings) == SchemaRoles(
            rookie_col="rookie", numbering_col="parallel_numbering", has_parallels=True,
        )

    def test_legacy_column_names(self, settings):
        _legacy_store(
            settings,
            """
            CREATE TABLE cards (id INTEGER PRIMARY KEY AUTOINCREMENT, card_number TEXT,
                                athlete_name TEXT, IS_ROOKIE TEXT, subset TEXT, card_type TEXT);
            CREATE TABLE parallels (id INTEGER PRIMARY KEY AUTOINCREMENT, card_id INTEGER,
                                    parallel_name TEXT, numbering TEXT);
            """,
            [
                ("INSERT INTO cards (athlete_name, is_rookie, subset, card_type) VALUES (?, ?, ?, ?)",
                 ("Jane Doe", "rookie", "Base", "Base")),
                ("INSERT INTO parallels (card_id, parallel_name, numbering) VALUES (?, ?, ?)",
                 (1, "Gold", "25")),
            ],
        )
        assert _roles(settings) == SchemaRoles(
            rookie_col="is_rookie", numbering_col="numbering", has_parallels=True,
        )
        summary = _summary(settings, "Jane Doe")
        assert summary["isRookie"] is True
        assert summary["totalParallelCards"] == 25

    def test_missing_numbering_column_is_zero_filled_but_keeps_rookie(self, settings):
        _legacy_store(
            settings,
            """
            CREATE TABLE cards (id INTEGER PRIMARY KEY AUTOINCREMENT, athlete_name TEXT,
                                rookie TEXT, subset TEXT, card_type TEXT);
            CREATE TABLE parallels (id INTEGER PRIMARY KEY AUTOINCREMENT, card_id INTEGER,
                                    parallel_name TEXT, print_run TEXT);
            """,
            [("INSERT INTO cards (athlete_name, rookie, subset, card_type) VALUES (?, ?, ?, ?)",
              ("Jane Doe", "Rookie", "Base", "Base"))],
        )
        assert _roles(settings).numbering_col is None
        summary = _summary(settings, "Jane Doe")
        assert summary["isRookie"] is True
        assert summary["cardTypeCount"] == 0
        assert summary["totalParallelCards"] == 0
        assert summary["breakdown"] == []

    def test_missing_rookie_column_and_parallels_table(self, settings):
        _legacy_store(
            settings,
            "CREATE TABLE cards (id INTEGER PRIMARY KEY, athlete_name TEXT, subset TEXT, card_type TEXT);",
            [("INSERT INTO cards (athlete_name, subset, card_type) VALUES (?, ?, ?)",
              ("Jane Doe", "Base", "Base"))],
        )
        assert _roles(settings) == SchemaRoles(rookie_col=None, numbering_col=None, has_parallels=False)
        summary = _summary(settings, "Jane Doe")
        assert summary["isRookie"] is False
        assert summary["breakdown"] == []


# ---------------------------------------------------------------------------
# Error signals
# ---------------------------------------------------------------------------

class TestErrors:
    def test_missing_store_raises_not_found(self, settings):
        with pytest.raises(StoreNotFoundError):
            _summary(settings, "Jane Doe", set_name="1999")

    @pytest.mark.parametrize("athlete", [None, "", "   "])
    def test_missing_athlete_raises(self, settings, athlete):
        with pytest.raises(MissingParameterError, match="athlete"):
            _summary(settings, athlete)

    def test_missing_sport_checked_before_store(self, settings):
        with pytest.raises(MissingParameterError, match="sport"):
            _summary(settings, "Jane Doe", sport="")
