"""
End-to-end tests for the LangGraph workflow with a scripted generation client.
"""

import pytest
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from boq_agent import PipelineServices, price_extracted_items, run_pipeline, stream_pipeline
from boq_agent.edges import route_after_probe
from boq_agent.state import create_initial_state, get_state_summary
from boq_tools.config import PipelineConfig
from boq_tools.errors import DocumentLoadError
from boq_tools.models import MatchKind, MeasurementItem
from boq_tools.progress import ProgressEventType, QueueProgressSink
from boq_tools.schemas import (
    CandidateSelectionOutput,
    DimensionalInferenceOutput,
    ExtractedItemOutput,
    PageExtractionOutput,
)
from boq_tools.text_layer import TextLayerProbe
from conftest import FakeGenerationClient, make_pdf, page_text


def extraction_handler(request):
    # Dispatch on the page text; the prompt template itself mentions neither
    if "Retirada de puerta" in request.text:
        return PageExtractionOutput(items=[
            ExtractedItemOutput(order=1, code="1.2", description="Retirada de puerta", unit="ud", quantity=2)
        ])
    return PageExtractionOutput(
        detected_chapter="01 DEMOLICIONES",
        items=[ExtractedItemOutput(order=1, code="1.1", description="Demolición de tabique", unit="m2", quantity="10,5")]
    )


@pytest.fixture
def client():
    return FakeGenerationClient({
        PageExtractionOutput: extraction_handler,
        DimensionalInferenceOutput: lambda request: DimensionalInferenceOutput(has_dimensions=False),
        CandidateSelectionOutput: lambda request: CandidateSelectionOutput(selected_index=1, reason="exact"),
    })


@pytest.fixture
def sink():
    return QueueProgressSink()


@pytest.fixture
def services(client, catalog, sink):
    return PipelineServices(client=client, catalog=catalog, config=PipelineConfig(), progress=sink)


@pytest.fixture
def text_document():
    return make_pdf([
        page_text("01 DEMOLICIONES", "1.1 Demolicion de tabique m2 10,50"),
        page_text("1.2 Retirada de puerta ud 2"),
    ])


class TestRunPipeline:
    """Tests for run_pipeline() on a text-layer document."""

    def test_priced_result(self, services, text_document):
        result = run_pipeline(text_document, subscriber_key="lead-1", services=services)

        assert result.extraction_method == "text"
        assert result.page_count == 2
        assert result.failed_units == 0
        assert [item.description for item in result.items] == ["Demolición de tabique", "Retirada de puerta"]
        assert [item.chapter for item in result.items] == ["01 DEMOLICIONES", "01 DEMOLICIONES"]
        assert [item.matched_code for item in result.items] == ["DEM010", "DEM020"]
        assert all(item.match_confidence == 95 for item in result.items)
        assert all(item.match_kind == MatchKind.LABOR for item in result.items)
        assert result.summary.subtotal == pytest.approx(10.5 * 12.45 + 2 * 18.20)
        assert result.summary.total_items == 2
        assert result.project_type_guess == "demolition-heavy"

    def test_text_path_never_sends_media(self, services, client, text_document):
        run_pipeline(text_document, services=services)

        assert len(client.calls_for(PageExtractionOutput)) == 2
        assert all(request.media is None for request, _ in client.calls)

    def test_generic_units_are_refined(self, services, client, text_document):
        run_pipeline(text_document, services=services)

        (request,) = client.calls_for(DimensionalInferenceOutput)
        assert "Retirada de puerta" in request.text

    def test_progress_events(self, services, sink, text_document):
        run_pipeline(text_document, subscriber_key="lead-1", services=services)

        events = sink.drain()
        assert all(event.subscriber_key == "lead-1" for event in events)
        assert events[-1].type == ProgressEventType.COMPLETE
        assert events[-1].payload["item_count"] == 2
        messages = [event.message for event in events if event.type == ProgressEventType.BATCH_PROGRESS]
        assert "Extraction complete. 2 items found. Assigning prices..." in messages
        assert "Analyzing block 2 of 2" in messages

    def test_no_events_without_subscriber(self, services, sink, text_document):
        run_pipeline(text_document, services=services)
        assert sink.drain() == []

    def test_without_verification(self, services, client, text_document):
        result = run_pipeline(text_document, services=services, use_verification=False)

        assert client.calls_for(CandidateSelectionOutput) == []
        assert all(item.match_confidence == 85 for item in result.items)

    def test_unreadable_document(self, services, sink):
        with pytest.raises(DocumentLoadError):
            run_pipeline(b"definitely not a pdf", subscriber_key="lead-1", services=services)

        events = sink.drain()
        assert events[-1].type == ProgressEventType.ERROR

    def test_scanned_document_uses_vision(self, services, client):
        result = run_pipeline(make_pdf(["", ""]), services=services)

        assert result.extraction_method == "vision"
        requests = client.calls_for(PageExtractionOutput)
        assert len(requests) == 2
        assert all(request.media is not None for request in requests)


class TestStreamPipeline:
    """Tests for stream_pipeline()."""

    def test_node_order(self, services, text_document):
        nodes = [name for name, _ in stream_pipeline(text_document, services=services)]
        assert nodes == ["probe_document", "extract_text", "infer_dimensions", "price_items", "summarize_budget"]


class TestPriceExtractedItems:
    """Tests for pricing items that skipped extraction."""

    def _items(self):
        return [
            MeasurementItem(order=1, description="Demolición de tabique", unit="m2", quantity=4, chapter="01 DEMOLICIONES"),
            MeasurementItem(order=2, description="Retirada de puerta", unit="ud", quantity=1),
        ]

    def test_prices_without_extraction(self, services, client):
        result = price_extracted_items(self._items(), services=services)

        assert len(result.items) == 2
        assert result.extraction_method is None
        assert client.calls_for(PageExtractionOutput) == []
        assert client.calls_for(DimensionalInferenceOutput) == []
        assert result.summary.subtotal == pytest.approx(4 * 12.45 + 18.20)

    def test_optional_dimension_refinement(self, services, client):
        price_extracted_items(self._items(), services=services, refine_dimensions=True)
        assert len(client.calls_for(DimensionalInferenceOutput)) == 1


class TestRouting:
    """Tests for the text/vision conditional edge and state helpers."""

    def test_route_text(self):
        from boq_tools.models import PageChunk

        state = create_initial_state(b"")
        state["probe"] = TextLayerProbe(has_text_layer=True, page_chunks=[PageChunk(1, "x" * 60)])
        assert route_after_probe(state) == "extract_text"

    def test_route_vision(self):
        state = create_initial_state(b"", mime_type="image/png")
        state["probe"] = TextLayerProbe(has_text_layer=True)
        assert route_after_probe(state) == "extract_vision"

    def test_route_without_probe(self):
        assert route_after_probe(create_initial_state(b"")) == "extract_vision"

    def test_state_summary(self):
        summary = get_state_summary(create_initial_state(b"", items=[]))
        assert summary["items"] == 0
        assert summary["total"] is None
