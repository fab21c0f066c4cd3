"""
Structured output schemas for generation calls.

Every generation call names one of these models; providers validate the
model's JSON against it before returning.
"""

import logging
from typing import List, Optional, Union

from pydantic import BaseModel, Field, field_validator

from .numbers import parse_decimal

logger = logging.getLogger(__name__)


class ExtractedItemOutput(BaseModel):
    """One measurement line as returned by the extraction model."""
    order: int = Field(0, description="Sequence number in the document")
    code: Optional[str] = Field(None, description="Item code if present (e.g. 1.1, 02.03)")
    description: str = Field(..., description="Full, untruncated description of the work item")
    unit: str = Field("", description="Unit of measure as written (m2, m, ud, kg...)")
    quantity: float = Field(0.0, description="Measured quantity with decimal-point semantics")
    type: Optional[str] = Field(
        None, description="LABOR_ITEM (labor + materials) or MATERIAL_ITEM (supply only)"
    )
    chapter: Optional[str] = Field(None, description="Chapter heading this item belongs to")
    section: Optional[str] = Field(None, description="Section heading this item belongs to")
    page: Optional[int] = Field(None, description="Page number, only when the whole document is analyzed at once")

    @field_validator("quantity", mode="before")
    @classmethod
    def _normalise_quantity(cls, value: Union[str, int, float, None]) -> float:
        if value is None or value == "":
            return 0.0
        try:
            return parse_decimal(value)
        except ValueError:
            # "s/m", "10-20" and the like: keep the line, unmeasured
            logger.debug(f"Unreadable quantity {value!r}, using 0")
            return 0.0

    @field_validator("order", mode="before")
    @classmethod
    def _coerce_order(cls, value) -> int:
        if value is None or value == "":
            return 0
        try:
            return int(float(value))
        except (TypeError, ValueError):
            return 0

    @field_validator("page", mode="before")
    @classmethod
    def _coerce_page(cls, value) -> Optional[int]:
        try:
            return int(float(value)) if value not in (None, "") else None
        except (TypeError, ValueError):
            return None

    @field_validator("unit", mode="before")
    @classmethod
    def _coerce_unit(cls, value) -> str:
        return (value or "").strip()


class PageExtractionOutput(BaseModel):
    """Items found in one text chunk or one page image."""
    items: List[ExtractedItemOutput] = Field(default_factory=list)
    detected_chapter: Optional[str] = Field(
        None, description="Chapter heading visible in this block, if any"
    )
    detected_section: Optional[str] = Field(
        None, description="Section heading visible in this block, if any"
    )
    continuation_description: Optional[str] = Field(
        None,
        description="Text at the top of this block that completes the description "
                    "of the last item of the previous block",
    )

    @field_validator("items", mode="before")
    @classmethod
    def _null_items(cls, value):
        return value or []


class DimensionalInferenceOutput(BaseModel):
    """Literal dimensions found in an item description."""
    has_dimensions: bool = Field(..., description="True if literal numeric dimensions were found")
    area_m2: Optional[float] = Field(None, description="Surface area in m2, if stated")
    thickness_m: Optional[float] = Field(None, description="Thickness/depth in metres, if stated")
    length_m: Optional[float] = Field(None, description="Single length in metres, if that is the only dimension")
    volume_m3: Optional[float] = Field(None, description="Volume in m3, if stated explicitly")
    implies_volume: bool = Field(
        False, description="True if the work is excavation, bulk removal or fill, or is paid by volume"
    )
    inferred_unit: Optional[str] = Field(None, description="Physical unit (m2, m3, m, kg)")
    inferred_quantity: Optional[float] = Field(None, description="Quantity in inferred_unit")
    reasoning: str = Field("", description="Short explanation of the calculation")

    @field_validator("area_m2", "thickness_m", "length_m", "volume_m3", "inferred_quantity", mode="before")
    @classmethod
    def _normalise_numbers(cls, value):
        if value is None or value == "":
            return None
        return parse_decimal(value)


class CandidateSelectionOutput(BaseModel):
    """Single-shot disambiguation between catalog candidates."""
    selected_index: int = Field(..., description="1-based index of the best candidate, 0 if none is acceptable")
    reason: str = Field("", description="Reason for the selection")
