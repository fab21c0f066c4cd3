"""
Dimensional Inference Interceptor

Post-pass over extracted items. Items measured in a generic unit ("ud", "pa")
cannot be priced against a per-m2/m3/m catalog, so the model is asked for the
literal dimensions written in the description and a deterministic rule turns
them into a physical unit and quantity.
"""

import logging
import re
from dataclasses import dataclass
from typing import Iterable, List, Optional

from .catalog import normalize_text
from .config import DEFAULT_GENERIC_UNITS, ExtractionConfig
from .generation_providers import GenerationClient, GenerationRequest
from .models import MeasurementItem
from .progress import ProgressSink, notify_message
from .prompts import dimensional_inference_prompt
from .schemas import DimensionalInferenceOutput

logger = logging.getLogger(__name__)


ANNOTATION_TEMPLATE = "\n\n[Dimensional inference: converted from {old_quantity} {old_unit} to {new_quantity} {new_unit} by calculation: {reasoning}]"

# Work paid by volume even when the source states an area and a depth
VOLUMETRIC_KEYWORDS = (
    "excavacion", "excavation", "vaciado", "relleno", "terraplen", "desmonte",
    "zanja", "movimiento de tierras", "fill",
)


@dataclass(frozen=True)
class InferredMeasure:
    unit: str
    quantity: float
    reasoning: str


def is_generic_unit(unit: Optional[str], generic_units: Iterable[str] = DEFAULT_GENERIC_UNITS) -> bool:
    """True for non-physical units such as "ud", "u.", "PA", " unidad "."""
    normalized = (unit or "").strip().lower()
    return bool(normalized) and normalized in {u.lower() for u in generic_units}


def is_volumetric_work(description: str) -> bool:
    text = normalize_text(description)
    return any(re.search(rf"\b{keyword}", text) for keyword in VOLUMETRIC_KEYWORDS)


def _positive(value: Optional[float]) -> bool:
    return value is not None and value > 0


def format_quantity(value: float) -> str:
    """Compact quantity for the audit note (50.0 -> 50, 0.125 -> 0.125)."""
    return f"{value:.4f}".rstrip("0").rstrip(".")


def resolve_inferred_measure(
    output: DimensionalInferenceOutput,
    description: str
) -> Optional[InferredMeasure]:
    """
    Turn literal dimensions into a physical unit and quantity.

    Area and thickness keep the area as the quantity (m2); the thickness is
    descriptive. Only excavation, bulk removal or fill, or an original unit
    that already implied volume, multiply them into m3.

    Returns:
        InferredMeasure, or None to leave the item unmodified
    """
    if not output.has_dimensions:
        return None

    reasoning = (output.reasoning or "").strip()

    if _positive(output.area_m2) and _positive(output.thickness_m):
        if output.implies_volume or is_volumetric_work(description):
            volume = round(output.area_m2 * output.thickness_m, 4)
            return InferredMeasure("m3", volume, reasoning or (
                f"{format_quantity(output.area_m2)} m2 x {format_quantity(output.thickness_m)} m"
            ))
        return InferredMeasure("m2", output.area_m2, reasoning or (
            f"surface of {format_quantity(output.area_m2)} m2, thickness is descriptive"
        ))

    if _positive(output.volume_m3):
        return InferredMeasure("m3", output.volume_m3, reasoning or "explicit volume")

    if _positive(output.area_m2):
        return InferredMeasure("m2", output.area_m2, reasoning or "explicit surface")

    if _positive(output.length_m):
        return InferredMeasure("m", output.length_m, reasoning or "single length")

    unit = (output.inferred_unit or "").strip()
    if unit and _positive(output.inferred_quantity) and not is_generic_unit(unit):
        return InferredMeasure(unit, output.inferred_quantity, reasoning)

    return None


class DimensionalInferenceInterceptor:
    """
    Rewrites generic-unit items into physical units.

    Args:
        client: Generation client for the inference calls
        config: Extraction config (generic unit set)
        progress: Optional progress sink
    """

    def __init__(
        self,
        client: GenerationClient,
        config: Optional[ExtractionConfig] = None,
        progress: Optional[ProgressSink] = None
    ):
        self.client = client
        self.config = config or ExtractionConfig()
        self.progress = progress

    def refine(self, items: List[MeasurementItem], subscriber_key: Optional[str] = None) -> List[MeasurementItem]:
        """
        Infer physical units for every generic-unit item, in place.

        Returns:
            The same list, same order
        """
        candidates = [item for item in items if is_generic_unit(item.unit, self.config.generic_units)]
        if not candidates:
            return items

        notify_message(
            self.progress, subscriber_key,
            f"Checking dimensions of {len(candidates)} items measured by unit..."
        )

        converted = 0
        for item in candidates:
            try:
                if self.refine_item(item):
                    converted += 1
            except Exception as e:
                logger.warning(f"Dimensional inference failed for item {item.order}: {e}")

        logger.info(f"Dimensional inference converted {converted}/{len(candidates)} generic-unit items")
        return items

    def refine_item(self, item: MeasurementItem) -> bool:
        """Run inference on one item. Returns True if the item was rewritten."""
        request = GenerationRequest(text=dimensional_inference_prompt(item.description, item.unit))
        output = self.client.generate(request, DimensionalInferenceOutput)

        measure = resolve_inferred_measure(output, item.description)
        if measure is None:
            logger.debug(f"Item {item.order}: no literal dimensions")
            return False

        note = ANNOTATION_TEMPLATE.format(
            old_quantity=format_quantity(item.quantity),
            old_unit=item.unit,
            new_quantity=format_quantity(measure.quantity),
            new_unit=measure.unit,
            reasoning=measure.reasoning
        )
        logger.debug(f"Item {item.order}: {item.quantity} {item.unit} -> {measure.quantity} {measure.unit}")

        item.unit = measure.unit
        item.quantity = measure.quantity
        item.description = f"{item.description}{note}"
        return True
