"""
Report writers for pipeline results.

JSON carries the full result; CSV is one row per priced item for
spreadsheets.
"""

import csv
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from .models import BudgetSummary, PricedMeasurementItem

logger = logging.getLogger(__name__)


DEFAULT_CHAPTER = "General"

CSV_COLUMNS = [
    "Order", "Code", "Chapter", "Section", "Page", "Description", "Unit", "Quantity",
    "Unit Price", "Total Price", "Match Kind", "Matched Code", "Confidence", "Estimate",
]


def group_by_chapter(items: Sequence[PricedMeasurementItem]) -> List[Dict[str, Any]]:
    """
    Group items by chapter in first-seen order.

    Items without a chapter (or with the "Unknown" placeholder) go to "General".
    """
    chapters: Dict[str, Dict[str, Any]] = {}
    for item in items:
        name = item.chapter if item.chapter and item.chapter != "Unknown" else DEFAULT_CHAPTER
        if name not in chapters:
            chapters[name] = {"name": name, "order": len(chapters) + 1, "items": [], "total": 0.0}
        chapters[name]["items"].append(item)
        chapters[name]["total"] += item.total_price
    return list(chapters.values())


def result_to_dict(
    items: Sequence[PricedMeasurementItem],
    summary: BudgetSummary,
    project_type_guess: str,
    extra: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    data = {
        "project_type_guess": project_type_guess,
        "summary": summary.to_dict(),
        "chapters": [
            {
                "name": chapter["name"],
                "order": chapter["order"],
                "total": chapter["total"],
                "item_orders": [item.order for item in chapter["items"]],
            }
            for chapter in group_by_chapter(items)
        ],
        "items": [item.to_dict() for item in items],
    }
    if extra:
        data.update(extra)
    return data


def write_json_report(data: Dict[str, Any], output_dir: Path, stem: str) -> Path:
    """Write the result dict as pretty-printed JSON. Returns the file path."""
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    path = output_dir / f"{stem}_budget.json"

    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)

    logger.info(f"JSON report written to {path}")
    return path


def write_csv_report(items: Sequence[PricedMeasurementItem], output_dir: Path, stem: str) -> Path:
    """Write one CSV row per priced item. Returns the file path."""
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    path = output_dir / f"{stem}_budget.csv"

    with open(path, "w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(CSV_COLUMNS)
        for item in items:
            writer.writerow([
                item.order,
                item.code or "",
                item.chapter or "",
                item.section or "",
                item.page if item.page is not None else "",
                item.description,
                item.unit,
                item.quantity,
                f"{item.unit_price:.2f}",
                f"{item.total_price:.2f}",
                item.match_kind.value,
                item.matched_code or "",
                item.match_confidence,
                "yes" if item.is_estimate else "no",
            ])

    logger.info(f"CSV report written to {path}")
    return path
