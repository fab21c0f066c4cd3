"""
Tests for background job routing, submission and collection.
"""

import pytest
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from boq_tools.background_jobs import fetch_job_items, should_run_in_background, submit_extraction_job
from boq_tools.config import BackgroundJobConfig
from boq_tools.errors import UnsupportedCapabilityError
from boq_tools.schemas import ExtractedItemOutput, PageExtractionOutput
from boq_tools.text_layer import TextLayerProbe
from conftest import FakeBatchClient, FakeGenerationClient, make_image, make_pdf

NO_TEXT = TextLayerProbe(has_text_layer=False)


class TestShouldRunInBackground:
    """Tests for the synchronous/background decision."""

    def test_text_layer_always_synchronous(self):
        probe = TextLayerProbe(has_text_layer=True)
        assert not should_run_in_background(make_pdf([""] * 20), probe)

    def test_large_file(self):
        assert should_run_in_background(b"0" * (3 * 1024 * 1024), NO_TEXT)

    def test_many_pages(self):
        assert should_run_in_background(make_pdf([""] * 6), NO_TEXT)

    def test_few_pages(self):
        assert not should_run_in_background(make_pdf([""] * 5), NO_TEXT)

    def test_unreadable_page_count(self):
        assert should_run_in_background(b"not a pdf", NO_TEXT)

    def test_small_image(self):
        assert not should_run_in_background(make_image(), NO_TEXT, "image/png")

    def test_limits_configurable(self):
        config = BackgroundJobConfig(max_pages_sync=1)
        assert should_run_in_background(make_pdf(["", ""]), NO_TEXT, config=config)


class TestJobLifecycle:
    """Tests for submitting a job and collecting its items."""

    def test_submit(self):
        batch = FakeBatchClient()
        client = FakeGenerationClient(batch_client=batch)
        document = make_pdf([""] * 8)

        job = submit_extraction_job(client, document, filename="scan.pdf")

        assert job.job_id == "job-1"
        assert job.provider == "fake"
        ((custom_id, request),) = batch.submitted
        assert custom_id == "document"
        assert request.media.data == document
        assert request.media.filename == "scan.pdf"

    def test_submit_without_batch_capability(self):
        with pytest.raises(UnsupportedCapabilityError):
            submit_extraction_job(FakeGenerationClient(), make_pdf([""]))

    def test_fetch_while_running(self):
        client = FakeGenerationClient(batch_client=FakeBatchClient())
        assert fetch_job_items(client, "job-1") is None

    def test_fetch_finished(self):
        batch = FakeBatchClient({"document": PageExtractionOutput(
            detected_chapter="01 DEMOLICIONES",
            items=[
                ExtractedItemOutput(order=4, description="Demolición de tabique", unit="m2", quantity=10.5, page=1),
                ExtractedItemOutput(order=9, description="Retirada de puerta", unit="ud", quantity=2, page="3"),
                ExtractedItemOutput(description="Tabique de pladur", unit="m2", quantity=8, chapter="03 ALBAÑILERÍA"),
            ]
        )})
        batch.finished = True
        client = FakeGenerationClient(batch_client=batch)

        items = fetch_job_items(client, "job-1")

        assert [item.order for item in items] == [1, 2, 3]
        assert [item.page for item in items] == [1, 3, None]
        assert [item.chapter for item in items] == ["01 DEMOLICIONES", "01 DEMOLICIONES", "03 ALBAÑILERÍA"]

    def test_fetch_failed_request(self):
        batch = FakeBatchClient({"document": None})
        batch.finished = True

        assert fetch_job_items(FakeGenerationClient(batch_client=batch), "job-1") == []
