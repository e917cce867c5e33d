import asyncio
import logging
import time
from typing import AsyncIterator

from fastapi import APIRouter, Request
from fastapi.responses import StreamingResponse
from slowapi import Limiter
from slowapi.util import get_remote_address

from app.config import settings
from app.models.inspect_request import InspectRequest
from app.models.report import InspectReport
from app.services.inspector import Inspection, inspect_url

logger = logging.getLogger(__name__)

limiter = Limiter(key_func=get_remote_address)
router = APIRouter()

# Clients that can consume a stream of partial reports opt in with this header
STREAMABLE_HEADER = "inspector-response-streamable"
NDJSON_MEDIA_TYPE = "application/x-ndjson"


@router.post(
    "/inspect",
    response_model=InspectReport,
    summary="Inspect a web page and check its links",
    description=(
        "Fetches *url*, reports its HTML version, title, headings, login fields "
        "and links, and checks whether each link is reachable.\n\n"
        f"Send `{STREAMABLE_HEADER}: true` to receive newline-delimited JSON: "
        "a first report right after the page is scanned, progress reports "
        "while links are being checked, and a final report last."
    ),
)
@limiter.limit("10/minute")
async def inspect(request: Request, body: InspectRequest) -> InspectReport | StreamingResponse:
    """Inspect *url*, waiting at most the configured request duration for link checks."""
    streaming = request.headers.get(STREAMABLE_HEADER, "").lower() == "true"
    logger.info("Inspect request received", extra={"url": body.url, "streaming": streaming})

    deadline = time.monotonic() + settings.max_request_duration
    inspection = await inspect_url(body.url, deadline)

    if streaming:
        return StreamingResponse(
            _stream_reports(
                inspection,
                initial_delay=settings.initial_report_delay,
                interval=settings.report_interval,
            ),
            media_type=NDJSON_MEDIA_TYPE,
        )

    try:
        completed = await inspection.wait()
        if not completed:
            logger.info("Link checks incomplete at deadline for %s", inspection.report.url)
        return inspection.snapshot()
    finally:
        await inspection.aclose()


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _encode(report: InspectReport) -> str:
    return report.model_dump_json() + "\n"


async def _stream_reports(
    inspection: Inspection,
    *,
    initial_delay: float,
    interval: float,
) -> AsyncIterator[str]:
    """Yield report snapshots until the link checks end, then one final report."""
    done = asyncio.ensure_future(inspection.wait())
    try:
        yield _encode(inspection.snapshot())
        logger.info("Initial report sent for %s", inspection.report.url)

        delay = initial_delay
        while True:
            finished, _ = await asyncio.wait({done}, timeout=delay)
            if finished:
                break
            yield _encode(inspection.snapshot())
            delay = interval

        yield _encode(inspection.snapshot())
        logger.info("Final report sent for %s", inspection.report.url)
    finally:
        done.cancel()
        await inspection.aclose()
