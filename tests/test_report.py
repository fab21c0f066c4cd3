"""
Tests for the JSON/CSV report writers.
"""

import csv
import json

import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from boq_tools.budget_summary import summarize
from boq_tools.models import CatalogEntry, ItemKind, MatchKind, PricedMeasurementItem, trim_entry
from boq_tools.report import CSV_COLUMNS, group_by_chapter, result_to_dict, write_csv_report, write_json_report


def priced_items():
    entry = trim_entry(CatalogEntry(
        code="DEM010", description="Demolición de tabique", unit="m2", price=12.45,
        kind=ItemKind.LABOR, score=0.92, metadata={"vector_id": "abc"}
    ))
    return [
        PricedMeasurementItem(
            order=1, description="Demolición de tabique", unit="m2", quantity=10, unit_price=12.45,
            match_confidence=95, match_kind=MatchKind.LABOR, chapter="01 DEMOLICIONES",
            matched_code="DEM010", matched_entry=entry, candidates=[entry], page=1
        ),
        PricedMeasurementItem(
            order=2, description="Aire acondicionado", unit="ud", quantity=1, unit_price=50.0,
            match_confidence=30, match_kind=MatchKind.ESTIMATE, chapter="Unknown"
        ),
        PricedMeasurementItem(
            order=3, description="Retirada de puerta", unit="ud", quantity=2, unit_price=18.2,
            match_confidence=85, match_kind=MatchKind.LABOR, chapter="01 DEMOLICIONES"
        ),
    ]


class TestGroupByChapter:
    """Tests for chapter grouping."""

    def test_first_seen_order(self):
        groups = group_by_chapter(priced_items())

        assert [g["name"] for g in groups] == ["01 DEMOLICIONES", "General"]
        assert [g["order"] for g in groups] == [1, 2]
        assert [item.order for item in groups[0]["items"]] == [1, 3]
        assert groups[0]["total"] == 10 * 12.45 + 2 * 18.2


class TestWriters:
    """Tests for the report files."""

    def test_json_report(self, tmp_path):
        items = priced_items()
        data = result_to_dict(items, summarize(items), "demolition-heavy", extra={"page_count": 1})

        path = write_json_report(data, tmp_path / "out", "mediciones")

        assert path.name == "mediciones_budget.json"
        loaded = json.loads(path.read_text(encoding="utf-8"))
        assert loaded["project_type_guess"] == "demolition-heavy"
        assert loaded["page_count"] == 1
        assert loaded["summary"]["total_items"] == 3
        assert loaded["items"][0]["matched_entry"]["code"] == "DEM010"
        assert "score" not in loaded["items"][0]["matched_entry"]
        assert loaded["items"][1]["is_estimate"] is True
        assert loaded["chapters"][1] == {"name": "General", "order": 2, "total": 50.0, "item_orders": [2]}

    def test_csv_report(self, tmp_path):
        path = write_csv_report(priced_items(), tmp_path, "mediciones")

        with open(path, newline="", encoding="utf-8") as f:
            rows = list(csv.reader(f))

        assert rows[0] == CSV_COLUMNS
        assert len(rows) == 4
        first = dict(zip(CSV_COLUMNS, rows[1]))
        assert first["Total Price"] == "124.50"
        assert first["Matched Code"] == "DEM010"
        assert first["Estimate"] == "no"
        assert dict(zip(CSV_COLUMNS, rows[2]))["Page"] == ""
