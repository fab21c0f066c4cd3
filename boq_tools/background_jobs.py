"""
Background extraction jobs.

Large scanned documents are too slow for a synchronous page-by-page run, so
they are submitted as one asynchronous batch job that analyzes the whole
document. Once the job has finished its items are priced through the same
path as synchronous results.
"""

import logging
import time
from dataclasses import dataclass
from typing import List, Optional

from .config import BackgroundJobConfig
from .extraction import merge_page_output, resequence
from .generation_providers import GenerationClient, GenerationRequest, MediaPart, PDF_MIME_TYPE
from .models import ExtractionContext, MeasurementItem
from .pdf_pages import get_file_size_mb, get_page_count, is_image_mime_type
from .prompts import whole_document_prompt
from .schemas import PageExtractionOutput
from .text_layer import TextLayerProbe

logger = logging.getLogger(__name__)


DOCUMENT_REQUEST_ID = "document"


@dataclass
class BackgroundJob:
    """Handle of a submitted extraction job."""
    job_id: str
    provider: str
    submitted_at: float
    estimated_minutes: int = 2


def should_run_in_background(
    document: bytes,
    probe: TextLayerProbe,
    mime_type: str = PDF_MIME_TYPE,
    config: Optional[BackgroundJobConfig] = None
) -> bool:
    """
    Decide whether a document is too large for synchronous extraction.

    A usable text layer always runs synchronously. Otherwise documents over
    the size or page limit go to the background, as does any PDF whose page
    count cannot be read.
    """
    config = config or BackgroundJobConfig()

    if probe.has_text_layer:
        logger.info("Text layer found, running synchronously")
        return False

    size_mb = get_file_size_mb(document)
    if size_mb > config.max_size_mb:
        logger.info(f"Document is {size_mb:.2f} MB (> {config.max_size_mb} MB), running in background")
        return True

    if is_image_mime_type(mime_type):
        return False

    page_count = get_page_count(document)
    if page_count == 0:
        logger.warning("Could not read page count, running in background")
        return True
    if page_count > config.max_pages_sync:
        logger.info(f"Document has {page_count} pages (> {config.max_pages_sync}), running in background")
        return True

    return False


def submit_extraction_job(
    client: GenerationClient,
    document: bytes,
    mime_type: str = PDF_MIME_TYPE,
    filename: str = "document.pdf"
) -> BackgroundJob:
    """
    Submit a whole-document extraction job.

    Raises:
        UnsupportedCapabilityError: if the client has no batch capability
        GenerationError: if submission fails
    """
    batch_client = client.require_batch_client()
    request = GenerationRequest(
        text=whole_document_prompt(),
        media=MediaPart(data=document, mime_type=mime_type, filename=filename)
    )
    job_id = batch_client.submit([(DOCUMENT_REQUEST_ID, request)], PageExtractionOutput)
    return BackgroundJob(job_id=job_id, provider=client.PROVIDER_NAME, submitted_at=time.time())


def fetch_job_items(client: GenerationClient, job_id: str) -> Optional[List[MeasurementItem]]:
    """
    Collect the extracted items of a finished job.

    Returns:
        Items in document order, or None while the job is still running

    Raises:
        UnsupportedCapabilityError: if the client has no batch capability
        GenerationError: if the job status or results cannot be fetched
    """
    batch_client = client.require_batch_client()

    status = batch_client.status(job_id)
    if not status.finished:
        logger.info(f"Job {job_id} still running")
        return None

    results = batch_client.results(job_id, PageExtractionOutput)
    items: List[MeasurementItem] = []
    context = ExtractionContext()

    for custom_id in sorted(results):
        output = results[custom_id]
        if output is None:
            continue
        # Pages come from the model here, there is no physical split
        context = merge_page_output(output, context, None, items)

    logger.info(f"Job {job_id} finished with {len(items)} items")
    return resequence(items)
