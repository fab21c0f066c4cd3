"""
Pricing Engine

Prices extracted items against the catalog. Items are processed in batches:
parallel within a batch, batches one after another, which caps the load on
the catalog and generation services while still overlapping their latency.

Match priority per item:
    1. Verified catalog match (model picked a candidate): labor 95, material 75
    2. Labor candidate: 85
    3. Material candidate, price x 1.4 for installation labor: 60
    4. Per-unit heuristic estimate: 30
Any error while pricing an item yields the heuristic estimate with confidence 0.
"""

import logging
import re
from concurrent.futures import ThreadPoolExecutor
from typing import Iterator, List, Optional, Sequence, Tuple

from .catalog import CatalogSearchPort
from .config import PricingConfig
from .generation_providers import GenerationClient, GenerationRequest
from .models import (
    CatalogEntry,
    ItemKind,
    MatchKind,
    MeasurementItem,
    PricedMeasurementItem,
    trim_entry,
)
from .progress import ProgressSink, notify_message
from .prompts import candidate_verification_prompt
from .schemas import CandidateSelectionOutput

logger = logging.getLogger(__name__)


ANNOTATION_RE = re.compile(r"\[.*?\]", re.DOTALL)


def make_batches(items: Sequence, size: int) -> Iterator[List]:
    """Split items into consecutive batches of at most size elements."""
    if size < 1:
        raise ValueError(f"Batch size must be positive, got {size}")
    for start in range(0, len(items), size):
        yield list(items[start:start + size])


def strip_annotations(description: str) -> str:
    """Remove bracketed notes (e.g. the dimensional inference audit trail) before searching."""
    return re.sub(r"\s+", " ", ANNOTATION_RE.sub("", description or "")).strip()


def estimate_fallback_price(unit: Optional[str], config: Optional[PricingConfig] = None) -> float:
    """Heuristic unit price keyed off the unit, used when nothing in the catalog fits."""
    config = config or PricingConfig()
    key = (unit or "").strip().lower()
    return config.fallback_unit_prices.get(key, config.default_fallback_price)


class PricingEngine:
    """
    Prices MeasurementItems against a catalog.

    Args:
        catalog: Catalog Search Port
        client: Generation client for candidate verification
        config: Pricing constants
        progress: Optional progress sink
    """

    def __init__(
        self,
        catalog: CatalogSearchPort,
        client: Optional[GenerationClient] = None,
        config: Optional[PricingConfig] = None,
        progress: Optional[ProgressSink] = None
    ):
        self.catalog = catalog
        self.client = client
        self.config = config or PricingConfig()
        self.progress = progress

    def price(
        self,
        items: List[MeasurementItem],
        use_verification: bool = True,
        subscriber_key: Optional[str] = None
    ) -> List[PricedMeasurementItem]:
        """
        Price every item.

        Args:
            items: Extracted (and refined) items; not modified
            use_verification: Ask the model to pick among catalog candidates
            subscriber_key: Optional key for progress events

        Returns:
            One PricedMeasurementItem per input item, in input order
        """
        batches = list(make_batches(items, self.config.batch_size))
        priced: List[PricedMeasurementItem] = []
        verify = use_verification and self.client is not None

        logger.info(f"Pricing {len(items)} items in {len(batches)} batches of {self.config.batch_size}")

        for number, batch in enumerate(batches, start=1):
            notify_message(
                self.progress, subscriber_key,
                f"Matching catalog entries (batch {number} of {len(batches)})"
            )
            with ThreadPoolExecutor(max_workers=len(batch)) as executor:
                # map preserves submission order
                priced.extend(executor.map(lambda item: self.price_item(item, verify), batch))

        matched = sum(1 for item in priced if not item.is_estimate)
        logger.info(f"Pricing complete: {matched}/{len(priced)} matched to the catalog")
        return priced

    def price_item(self, item: MeasurementItem, use_verification: bool = True) -> PricedMeasurementItem:
        """Price one item. Never raises."""
        try:
            return self._price_item(item, use_verification)
        except Exception as e:
            logger.error(f"Error pricing item {item.order} ({item.description[:60]}): {e}")
            return PricedMeasurementItem.from_item(
                item,
                unit_price=estimate_fallback_price(item.unit, self.config),
                match_confidence=self.config.error_confidence,
                match_kind=MatchKind.ESTIMATE
            )

    def _price_item(self, item: MeasurementItem, use_verification: bool) -> PricedMeasurementItem:
        query = strip_annotations(item.description)
        candidates = self.catalog.search(
            query,
            self.config.candidate_limit,
            category_hint=item.chapter,
            kind_filter=ItemKind.LABOR
        )

        selection = None
        if use_verification and candidates:
            selection = self.verify_candidates(query, candidates)

        if selection is not None:
            entry, confidence = selection, self._verified_confidence(selection)
        else:
            entry, confidence = self._heuristic_match(candidates)

        trimmed_candidates = [trim_entry(c) for c in candidates]

        if entry is None:
            return PricedMeasurementItem.from_item(
                item,
                unit_price=estimate_fallback_price(item.unit, self.config),
                match_confidence=confidence,
                match_kind=MatchKind.ESTIMATE,
                candidates=trimmed_candidates
            )

        if entry.kind == ItemKind.MATERIAL:
            unit_price = entry.price * self.config.material_labor_markup
            match_kind = MatchKind.MATERIAL
        else:
            unit_price = entry.price
            match_kind = MatchKind.LABOR

        return PricedMeasurementItem.from_item(
            item,
            unit_price=unit_price,
            match_confidence=confidence,
            match_kind=match_kind,
            matched_code=entry.code,
            matched_entry=trim_entry(entry),
            candidates=trimmed_candidates
        )

    def verify_candidates(self, description: str, candidates: List[CatalogEntry]) -> Optional[CatalogEntry]:
        """
        Single-shot disambiguation: ask the model which candidate fits.

        Returns:
            The selected entry, or None if the model rejected all of them or failed
        """
        request = GenerationRequest(text=candidate_verification_prompt(description, candidates))
        try:
            output = self.client.generate(request, CandidateSelectionOutput)
        except Exception as e:
            logger.warning(f"Candidate verification failed, using heuristic match: {e}")
            return None

        index = output.selected_index
        if 1 <= index <= len(candidates):
            logger.debug(f"Verified candidate {index}: {candidates[index - 1].code} ({output.reason})")
            return candidates[index - 1]

        if index != 0:
            logger.warning(f"Verification returned out-of-range index {index} for {len(candidates)} candidates")
        return None

    def _verified_confidence(self, entry: CatalogEntry) -> int:
        if entry.kind == ItemKind.MATERIAL:
            return self.config.verified_material_confidence
        return self.config.verified_labor_confidence

    def _heuristic_match(self, candidates: List[CatalogEntry]) -> Tuple[Optional[CatalogEntry], int]:
        """Prefer a labor candidate, then a material candidate, then nothing."""
        labor = next((c for c in candidates if c.kind == ItemKind.LABOR), None)
        if labor is not None:
            return labor, self.config.labor_confidence

        material = next((c for c in candidates if c.kind == ItemKind.MATERIAL), None)
        if material is not None:
            return material, self.config.material_confidence

        return None, self.config.estimate_confidence
