"""
Domain model for bill-of-quantities extraction and pricing.

MeasurementItem is what the extractors produce, PricedMeasurementItem is what
the pricing engine returns. CatalogEntry is the read-only view of the external
catalog; only its trimmed MatchedEntry projection ever reaches priced output.
"""

from dataclasses import dataclass, field, asdict, replace
from enum import Enum
from typing import Any, Dict, List, Optional


UNKNOWN_CONTEXT = "Unknown"

# Headings shorter than this are treated as noise ("1", "A.", "--")
MIN_HEADING_CHARS = 4


class ItemKind(str, Enum):
    """Kind of a catalog entry or extracted line item."""
    LABOR = "LABOR_ITEM"          # Work task: labor + materials
    MATERIAL = "MATERIAL_ITEM"    # Pure supply, no embedded labor


class MatchKind(str, Enum):
    """How a priced item obtained its unit price."""
    LABOR = "LABOR_ITEM"
    MATERIAL = "MATERIAL_ITEM"
    ESTIMATE = "ESTIMATE"


def is_heading(text: Optional[str]) -> bool:
    """True if text is long enough to count as a chapter/section heading."""
    return bool(text) and len(text.strip()) >= MIN_HEADING_CHARS


@dataclass
class MeasurementItem:
    """One line ("partida") of a bill of quantities as extracted."""
    order: int
    description: str
    unit: str
    quantity: float
    code: Optional[str] = None
    kind: Optional[ItemKind] = None
    page: Optional[int] = None
    chapter: Optional[str] = None
    section: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["kind"] = self.kind.value if self.kind else None
        return data


@dataclass
class CatalogEntry:
    """
    A catalog record as returned by the Catalog Search Port.

    score and metadata are internal ranking details and must not be attached
    to priced items; use trim_entry() for that.
    """
    code: str
    description: str
    unit: str
    price: float
    kind: ItemKind
    name: str = ""
    category: Optional[str] = None
    breakdown: List[Dict[str, Any]] = field(default_factory=list)
    score: float = 0.0
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def display_name(self) -> str:
        return self.name or self.description


@dataclass(frozen=True)
class MatchedEntry:
    """Minimal public projection of a catalog record."""
    code: str
    name: str
    description: str
    price: float
    unit: str
    kind: ItemKind
    breakdown: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "name": self.name,
            "description": self.description,
            "price": self.price,
            "unit": self.unit,
            "kind": self.kind.value,
            "breakdown": list(self.breakdown),
        }


def trim_entry(entry: CatalogEntry) -> MatchedEntry:
    """Project a catalog entry onto the fields priced output is allowed to carry."""
    return MatchedEntry(
        code=entry.code,
        name=entry.display_name,
        description=entry.description,
        price=entry.price,
        unit=entry.unit,
        kind=entry.kind,
        breakdown=list(entry.breakdown or []),
    )


@dataclass(frozen=True)
class PricedMeasurementItem:
    """
    A MeasurementItem enriched with pricing.

    total_price and is_estimate are derived so the invariants
    total_price == quantity * unit_price and is_estimate == (match_kind == ESTIMATE)
    cannot drift.
    """
    order: int
    description: str
    unit: str
    quantity: float
    unit_price: float
    match_confidence: int
    match_kind: MatchKind
    code: Optional[str] = None
    kind: Optional[ItemKind] = None
    page: Optional[int] = None
    chapter: Optional[str] = None
    section: Optional[str] = None
    matched_code: Optional[str] = None
    matched_entry: Optional[MatchedEntry] = None
    candidates: List[MatchedEntry] = field(default_factory=list)

    @property
    def total_price(self) -> float:
        return self.quantity * self.unit_price

    @property
    def is_estimate(self) -> bool:
        return self.match_kind == MatchKind.ESTIMATE

    @classmethod
    def from_item(cls, item: MeasurementItem, **pricing: Any) -> "PricedMeasurementItem":
        return cls(
            order=item.order,
            description=item.description,
            unit=item.unit,
            quantity=item.quantity,
            code=item.code,
            kind=item.kind,
            page=item.page,
            chapter=item.chapter,
            section=item.section,
            **pricing,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "order": self.order,
            "code": self.code,
            "description": self.description,
            "unit": self.unit,
            "quantity": self.quantity,
            "kind": self.kind.value if self.kind else None,
            "page": self.page,
            "chapter": self.chapter,
            "section": self.section,
            "unit_price": self.unit_price,
            "total_price": self.total_price,
            "matched_code": self.matched_code,
            "match_confidence": self.match_confidence,
            "is_estimate": self.is_estimate,
            "match_kind": self.match_kind.value,
            "matched_entry": self.matched_entry.to_dict() if self.matched_entry else None,
            "candidates": [c.to_dict() for c in self.candidates],
        }


@dataclass(frozen=True)
class BudgetSummary:
    """Aggregate of a priced item set. Recomputed, never patched."""
    total_items: int
    matched_items: int
    estimated_items: int
    subtotal: float
    overhead_amount: float
    profit_amount: float
    taxable_base: float
    tax_amount: float
    total: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ExtractionContext:
    """
    Running chapter/section state threaded through the page/chunk loop.

    Immutable: every update returns a new context, last heading wins.
    """
    current_chapter: str = UNKNOWN_CONTEXT
    current_section: str = UNKNOWN_CONTEXT

    def with_chapter(self, chapter: Optional[str]) -> "ExtractionContext":
        if not is_heading(chapter):
            return self
        return replace(self, current_chapter=chapter.strip())

    def with_section(self, section: Optional[str]) -> "ExtractionContext":
        if not is_heading(section):
            return self
        return replace(self, current_section=section.strip())

    def absorb(self, chapter: Optional[str], section: Optional[str] = None) -> "ExtractionContext":
        """Apply an item's explicit chapter/section, if it names any."""
        return self.with_chapter(chapter).with_section(section)


@dataclass(frozen=True)
class PageChunk:
    """Page-aligned slice of a document's text layer."""
    page_number: int
    text: str
