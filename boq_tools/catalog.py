"""
Catalog Search Port and a local CSV-backed catalog.

The production catalog is a vector index behind a service; the pipeline only
needs ranked top-K candidates for a text query. CsvCatalog ranks lexically and
serves the CLI and the tests.
"""

import csv
import difflib
import json
import logging
import re
import unicodedata
from abc import ABC, abstractmethod
from dataclasses import replace
from pathlib import Path
from typing import Dict, List, Optional, Set

from .errors import CatalogError
from .models import CatalogEntry, ItemKind
from .numbers import parse_decimal

logger = logging.getLogger(__name__)


MIN_SCORE = 0.15
CATEGORY_HINT_BOOST = 0.1

# Sample price book shipped inside the package
SAMPLE_CATALOG_PATH = Path(__file__).parent / "data" / "catalog_sample.csv"

# Spanish filler words that carry no matching signal
STOPWORDS = {
    "de", "del", "la", "las", "el", "los", "con", "por", "para", "en", "y", "o",
    "un", "una", "sin", "segun", "incluso", "mediante", "sobre", "hasta",
}


class CatalogSearchPort(ABC):
    """Ranked catalog lookup."""

    @abstractmethod
    def search(
        self,
        query: str,
        limit: int,
        category_hint: Optional[str] = None,
        kind_filter: Optional[ItemKind] = None
    ) -> List[CatalogEntry]:
        """
        Find catalog entries for a free-text query.

        Args:
            query: Item description to match
            limit: Maximum number of entries to return
            category_hint: Chapter of the item, used as ranking context
            kind_filter: Preferred entry kind

        Returns:
            Entries ranked best first
        """
        pass


def normalize_text(text: str) -> str:
    """Lowercase and strip accents ("Demolición" -> "demolicion")."""
    decomposed = unicodedata.normalize("NFKD", text or "")
    return "".join(c for c in decomposed if not unicodedata.combining(c)).lower()


def tokenize(text: str) -> Set[str]:
    """Meaningful word tokens of a text."""
    words = re.findall(r"[a-z0-9]+", normalize_text(text))
    return {w for w in words if len(w) > 2 and w not in STOPWORDS and not w.isdigit()}


class CsvCatalog(CatalogSearchPort):
    """
    Catalog loaded from a CSV price book.

    Expected columns: code, description, name, unit, price, kind, category,
    breakdown (JSON list, optional).
    """

    def __init__(self, entries: Optional[List[CatalogEntry]] = None):
        self.entries: List[CatalogEntry] = []
        self._tokens: List[Set[str]] = []
        self._normalized: List[str] = []
        for entry in entries or []:
            self.add(entry)

    @classmethod
    def from_csv(cls, csv_path: Path) -> "CsvCatalog":
        """
        Load catalog from a CSV file, skipping malformed rows.

        Raises:
            CatalogError: if the file cannot be read
        """
        catalog = cls()
        skipped = 0

        try:
            with open(csv_path, "r", encoding="utf-8") as f:
                reader = csv.DictReader(f)
                for row in reader:
                    entry = parse_row(row)
                    if entry:
                        catalog.add(entry)
                    else:
                        skipped += 1
        except (OSError, UnicodeDecodeError) as e:
            raise CatalogError(f"Cannot read catalog {csv_path}: {e}") from e

        if skipped:
            logger.warning(f"Skipped {skipped} malformed catalog rows in {csv_path}")
        logger.info(f"Loaded {len(catalog)} catalog entries from {csv_path}")
        return catalog

    def add(self, entry: CatalogEntry):
        self.entries.append(entry)
        self._tokens.append(tokenize(f"{entry.name} {entry.description}"))
        self._normalized.append(normalize_text(entry.description))

    def search(
        self,
        query: str,
        limit: int,
        category_hint: Optional[str] = None,
        kind_filter: Optional[ItemKind] = None
    ) -> List[CatalogEntry]:
        query_tokens = tokenize(query)
        if not query_tokens or limit <= 0:
            return []

        normalized_query = normalize_text(query)
        hint_tokens = tokenize(category_hint) if category_hint else set()

        scored = []
        for index, entry in enumerate(self.entries):
            overlap = len(query_tokens & self._tokens[index]) / len(query_tokens)
            if overlap == 0:
                continue
            similarity = difflib.SequenceMatcher(None, normalized_query, self._normalized[index]).ratio()
            score = 0.7 * overlap + 0.3 * similarity
            if hint_tokens and entry.category and hint_tokens & tokenize(entry.category):
                score += CATEGORY_HINT_BOOST
            if score >= MIN_SCORE:
                scored.append((score, index))

        # Preferred kind first, then by score; other kinds fill the remaining slots
        scored.sort(key=lambda pair: (
            kind_filter is not None and self.entries[pair[1]].kind != kind_filter,
            -pair[0],
            pair[1]
        ))

        return [
            replace(self.entries[index], score=round(score, 4))
            for score, index in scored[:limit]
        ]

    def __len__(self):
        return len(self.entries)

    def __iter__(self):
        return iter(self.entries)


def parse_row(row: Dict[str, str]) -> Optional[CatalogEntry]:
    """Parse a CSV row into a CatalogEntry."""
    try:
        code = (row.get("code") or "").strip()
        description = (row.get("description") or "").strip()
        if not code or not description:
            return None

        kind_raw = (row.get("kind") or ItemKind.LABOR.value).strip().upper()
        kind = ItemKind(kind_raw)

        breakdown_raw = (row.get("breakdown") or "").strip()
        breakdown = json.loads(breakdown_raw) if breakdown_raw else []

        return CatalogEntry(
            code=code,
            description=description,
            name=(row.get("name") or "").strip(),
            unit=(row.get("unit") or "").strip(),
            price=parse_decimal(row.get("price") or ""),
            kind=kind,
            category=(row.get("category") or "").strip() or None,
            breakdown=breakdown if isinstance(breakdown, list) else []
        )
    except (ValueError, KeyError):
        # json.JSONDecodeError is a ValueError
        return None
