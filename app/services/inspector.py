"""Page inspection: root fetch, page scan and background link checks.

:func:`inspect_url` returns once the page has been fetched and scanned.  Link
liveness probes keep running in the background afterwards; the returned
:class:`Inspection` is the caller's handle on them:

* :meth:`Inspection.snapshot` refreshes the derived counts and returns the
  report as it stands right now (any number of times, at any moment);
* :meth:`Inspection.wait` blocks until every probe finished or the deadline
  passed;
* :meth:`Inspection.cancel` / :meth:`Inspection.aclose` abort the probes and
  release their resources.
"""

import logging
from typing import Optional

import httpx

from app.config import Settings, settings as default_settings
from app.models.report import InspectReport
from app.services.checker import LinkChecker
from app.services.fetcher import FetchResult, fetch_page
from app.services.normalizer import normalize_url
from app.services.report import snapshot
from app.services.scanner import PageScanner
from app.services.tokenizer import tokenize

logger = logging.getLogger(__name__)

# Reported when the root page could not be fetched at all
FETCH_ERROR_STATUS = 400


class Inspection:
    """Handle on one inspected page and its in-progress link checks."""

    def __init__(self, report: InspectReport, checker: Optional[LinkChecker] = None) -> None:
        self.report = report
        self.checker = checker

    def snapshot(self) -> InspectReport:
        """Return the report with freshly computed link counts.

        The counts are a best-effort view while probes are still running; see
        :mod:`app.services.report`.
        """
        snapshot(self.report)
        return self.report

    async def wait(self) -> bool:
        """Wait for the link checks; ``False`` means the deadline cut them short."""
        if self.checker is None:
            return True
        return await self.checker.wait()

    def cancel(self) -> None:
        if self.checker is not None:
            self.checker.cancel()

    async def aclose(self) -> None:
        if self.checker is not None:
            await self.checker.aclose()

    async def __aenter__(self) -> "Inspection":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()


def inspect_response(
    url: str,
    result: FetchResult,
    deadline: Optional[float] = None,
    *,
    settings: Optional[Settings] = None,
    checker: Optional[LinkChecker] = None,
) -> Inspection:
    """Scan an already fetched page and start checking its links.

    Must be called from a running event loop when link checks are enabled.

    Args:
        url: The inspected URL; relative links are resolved against it.
        result: The fetched root page.
        deadline: :func:`time.monotonic` value after which link checks are
            abandoned.  ``None`` disables link checking entirely, leaving all
            checkable links not analysed.
        settings: Overrides the module-level settings.
        checker: Use this checker, with its own deadline, instead of building
            one from *settings* and *deadline*.
    """
    settings = settings or default_settings
    report = InspectReport(
        url=url,
        status_code=result.status_code,
        status_msg=result.status_msg,
    )

    if checker is None and deadline is not None:
        checker = LinkChecker(
            capacity=settings.max_concurrent_checks,
            timeout=settings.check_timeout,
            deadline=deadline,
        )

    scanner = PageScanner(report, on_link=checker.check if checker is not None else None)
    scanner.scan(tokenize([result.body], result.encoding))

    logger.info(
        "Page scanned",
        extra={
            "url": url,
            "status_code": report.status_code,
            "links": report.total_link_count,
            "checks": checker.pool.pending if checker is not None else 0,
        },
    )
    return Inspection(report, checker)


async def inspect_url(
    url: str,
    deadline: Optional[float] = None,
    *,
    settings: Optional[Settings] = None,
    checker: Optional[LinkChecker] = None,
) -> Inspection:
    """Fetch and scan *url*, then check its links in the background.

    ``https://`` is prepended when *url* has no http(s) scheme.  A page that
    cannot be fetched yields a report whose status is 400 and whose message is
    the error; this function does not raise for network problems.
    """
    settings = settings or default_settings
    url = normalize_url(url)

    try:
        result = await fetch_page(
            url,
            timeout=settings.fetch_timeout,
            max_size=settings.max_content_size,
            allow_private=settings.allow_private_addresses,
        )
    except (ValueError, httpx.InvalidURL, httpx.HTTPError, RuntimeError) as exc:
        logger.warning("Cannot fetch %s – %s", url, exc)
        report = InspectReport(
            url=url,
            status_code=FETCH_ERROR_STATUS,
            status_msg=str(exc) or exc.__class__.__name__,
        )
        if checker is not None:
            await checker.aclose()
        return Inspection(report)

    return inspect_response(url, result, deadline, settings=settings, checker=checker)
