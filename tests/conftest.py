"""
Shared fixtures: a scripted generation client, an in-memory catalog and
PDFs built on the fly with PyMuPDF. Nothing here touches the network.
"""

import io
import sys
import threading
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple, Type

import fitz  # PyMuPDF
import pytest
from PIL import Image
from pydantic import BaseModel

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from boq_tools.catalog import CsvCatalog
from boq_tools.generation_providers import (
    BatchJobClient,
    BatchJobStatus,
    GenerationClient,
    GenerationRequest,
)
from boq_tools.models import CatalogEntry, ItemKind


FILLER_LINE = "Medicion segun planos de proyecto y documentacion tecnica."


class FakeGenerationClient(GenerationClient):
    """
    Generation client answering from per-schema handlers.

    A handler receives the request and returns a schema instance or raises.
    Every call is recorded as (request, schema).
    """

    PROVIDER_NAME = "fake"

    def __init__(self, handlers: Optional[Dict[Type[BaseModel], Callable]] = None, batch_client=None):
        self.handlers = handlers or {}
        self.calls: List[Tuple[GenerationRequest, Type[BaseModel]]] = []
        self._lock = threading.Lock()
        self._batch_client = batch_client

    def generate(self, request, output_schema):
        with self._lock:
            self.calls.append((request, output_schema))
        handler = self.handlers.get(output_schema)
        if handler is None:
            raise AssertionError(f"Unexpected generation call for {output_schema.__name__}")
        return handler(request)

    @property
    def batch_client(self):
        return self._batch_client

    def calls_for(self, schema) -> List[GenerationRequest]:
        return [request for request, called_schema in self.calls if called_schema is schema]


class FakeBatchClient(BatchJobClient):
    """Batch capability with a scripted lifecycle."""

    def __init__(self, results: Optional[Dict[str, Optional[BaseModel]]] = None):
        self.finished = False
        self._results = results or {}
        self.submitted: List[Tuple[str, GenerationRequest]] = []

    def submit(self, requests, output_schema):
        self.submitted.extend(requests)
        return "job-1"

    def status(self, job_id):
        return BatchJobStatus(job_id=job_id, finished=self.finished, succeeded=len(self._results))

    def results(self, job_id, output_schema):
        return dict(self._results)


class RecordingCatalog(CsvCatalog):
    """CsvCatalog that records every search call."""

    def __init__(self, entries=None):
        super().__init__(entries)
        self.queries = []
        self._lock = threading.Lock()

    def search(self, query, limit, category_hint=None, kind_filter=None):
        with self._lock:
            self.queries.append((query, limit, category_hint, kind_filter))
        return super().search(query, limit, category_hint, kind_filter)


def make_pdf(pages: List[str]) -> bytes:
    """Build a PDF with one page per text (empty text gives a page without a text layer)."""
    doc = fitz.open()
    for text in pages:
        page = doc.new_page()
        if text:
            page.insert_text((50, 72), text, fontsize=9)
    data = doc.tobytes()
    doc.close()
    return data


def make_image(mime_format: str = "PNG", size=(2400, 1200)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, color="white").save(buffer, format=mime_format)
    return buffer.getvalue()


def page_text(*lines: str, filler: int = 6) -> str:
    """Page text padded with filler lines so it clears the text-layer thresholds."""
    return "\n".join(list(lines) + [FILLER_LINE] * filler)


@pytest.fixture
def catalog_entries() -> List[CatalogEntry]:
    return [
        CatalogEntry(
            code="DEM010",
            description="Demolición de tabique de ladrillo hueco con medios manuales",
            name="Demolición de tabique",
            unit="m2",
            price=12.45,
            kind=ItemKind.LABOR,
            category="01 DEMOLICIONES",
            breakdown=[{"concept": "Peón ordinario", "price": 9.80}],
            score=0.0,
            metadata={"vector_id": "abc"}
        ),
        CatalogEntry(
            code="DEM020",
            description="Levantado de carpintería de puerta interior con retirada de escombros",
            name="Retirada de puerta",
            unit="ud",
            price=18.20,
            kind=ItemKind.LABOR,
            category="01 DEMOLICIONES"
        ),
        CatalogEntry(
            code="FON020",
            description="Grifo monomando para lavabo acabado cromado",
            name="Grifo monomando",
            unit="ud",
            price=62.00,
            kind=ItemKind.MATERIAL,
            category="05 FONTANERÍA"
        ),
    ]


@pytest.fixture
def catalog(catalog_entries) -> RecordingCatalog:
    return RecordingCatalog(catalog_entries)


@pytest.fixture
def sample_catalog_path() -> Path:
    return Path(__file__).parent.parent / "boq_tools" / "data" / "catalog_sample.csv"
