"""
Budget Summary Calculator

Rolls priced items into subtotal, overhead (gastos generales), profit
(beneficio industrial), tax (IVA) and grand total.
"""

import logging
from typing import List, Optional, Sequence

from .catalog import normalize_text
from .config import MarginConfig
from .models import BudgetSummary, PricedMeasurementItem

logger = logging.getLogger(__name__)


# Checked in order; first hit wins
PROJECT_TYPE_KEYWORDS = [
    ("demolition-heavy", ("demolicion", "retirada")),
    ("structural", ("cimentacion", "estructura")),
    ("bathroom", ("bano", "sanitario")),
    ("kitchen", ("cocina",)),
]
DEFAULT_PROJECT_TYPE = "general"


def summarize(items: Sequence[PricedMeasurementItem], margins: Optional[MarginConfig] = None) -> BudgetSummary:
    """
    Compute the budget summary of a priced item set.

    Pure: the same items and margins always give the same summary.
    """
    margins = margins or MarginConfig()

    subtotal = sum(item.total_price for item in items)
    overhead = subtotal * margins.overhead_rate
    profit = subtotal * margins.profit_rate
    taxable_base = subtotal + overhead + profit
    tax = taxable_base * margins.tax_rate

    estimated = sum(1 for item in items if item.is_estimate)

    return BudgetSummary(
        total_items=len(items),
        matched_items=len(items) - estimated,
        estimated_items=estimated,
        subtotal=subtotal,
        overhead_amount=overhead,
        profit_amount=profit,
        taxable_base=taxable_base,
        tax_amount=tax,
        total=taxable_base + tax
    )


def detect_project_type(items: List) -> str:
    """
    Coarse project label from keywords in the item descriptions.

    Advisory only, never used for pricing. Accepts extracted or priced items.
    """
    text = normalize_text(" ".join(item.description for item in items))
    for label, keywords in PROJECT_TYPE_KEYWORDS:
        if any(keyword in text for keyword in keywords):
            return label
    return DEFAULT_PROJECT_TYPE
