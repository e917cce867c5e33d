"""Background liveness checks for the links found on an inspected page."""

import asyncio
import logging
import time
from typing import Optional

import httpx

from app.models.report import InspectedLink
from app.services.pool import WorkerPool

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 256
DEFAULT_TIMEOUT = 30  # seconds, per probe

# Status recorded when a probe got no response at all (DNS, refused, timeout)
REQUEST_TIMEOUT_STATUS = 408
# Status recorded when no request could be built from the link
REQUEST_ERROR_STATUS = 500
MAX_HTTP_STATUS = 599
MAX_REDIRECTS = 10

# Bot-hostile sites answer plain clients with 403/999; present as a browser
# navigating within the same site.
BROWSER_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "sec-ch-ua": '"Chromium";v="124", "Google Chrome";v="124", "Not-A.Brand";v="99"',
    "sec-ch-ua-mobile": "?0",
    "sec-ch-ua-platform": '"Linux"',
    "Sec-Fetch-Dest": "document",
    "Sec-Fetch-Mode": "navigate",
    "Sec-Fetch-Site": "same-origin",
    "Sec-Fetch-User": "?1",
}


class LinkChecker:
    """Probe links concurrently under a shared deadline.

    Each :meth:`check` call submits one probe to a :class:`WorkerPool` of
    *capacity* slots.  A probe issues a single GET, records the outcome on its
    own :class:`InspectedLink` and touches nothing else.

    *deadline* is an absolute :func:`time.monotonic` value.  When it passes,
    every probe still queued or running is cancelled and its link keeps status
    ``0`` (not analysed).  Without a deadline probes run until they finish.
    """

    def __init__(
        self,
        capacity: int = DEFAULT_CAPACITY,
        timeout: float = DEFAULT_TIMEOUT,
        deadline: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.pool = WorkerPool(capacity)
        self.deadline = deadline
        self._client = httpx.AsyncClient(
            headers=BROWSER_HEADERS,
            timeout=timeout,
            follow_redirects=False,
            limits=httpx.Limits(max_connections=capacity),
            transport=transport,
        )
        self._timer: Optional[asyncio.TimerHandle] = None
        self._closed = False
        self.timed_out = False

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def check(self, url: str, link: InspectedLink) -> None:
        """Probe *url* in the background and store the result on *link*."""
        if self._closed:
            raise RuntimeError("Link checker is closed.")
        self._arm_deadline()
        self.pool.submit(self._probe, url, link)

    def expired(self) -> bool:
        return self.deadline is not None and time.monotonic() >= self.deadline

    def remaining(self) -> Optional[float]:
        """Seconds left until the deadline, or ``None`` without one."""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    async def wait(self) -> bool:
        """Block until every probe finished or the deadline passed.

        Returns:
            ``True`` when all probes finished, ``False`` on deadline.
        """
        drained = await self.pool.join(self.remaining())
        return drained and not self.timed_out

    def cancel(self) -> None:
        """Abort every queued and in-flight probe immediately."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        cancelled = self.pool.cancel()
        if cancelled:
            logger.info("Cancelled %d pending link checks", cancelled)

    async def aclose(self) -> None:
        """Cancel outstanding probes and release the HTTP client."""
        if self._closed:
            return
        self._closed = True
        self.cancel()
        await self.pool.join()
        await self._client.aclose()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _arm_deadline(self) -> None:
        if self._timer is not None or self.deadline is None:
            return
        loop = asyncio.get_running_loop()
        self._timer = loop.call_at(
            loop.time() + (self.deadline - time.monotonic()), self._on_deadline
        )

    def _on_deadline(self) -> None:
        self._timer = None
        pending = self.pool.pending
        if pending:
            logger.info("Link check deadline reached with %d checks pending", pending)
            self.timed_out = True
            self.pool.cancel()

    async def _probe(self, url: str, link: InspectedLink) -> None:
        # Admission may have taken until after the deadline
        if self.expired():
            return

        try:
            status = await self._last_status(url)
        except (httpx.InvalidURL, httpx.UnsupportedProtocol, ValueError) as exc:
            logger.debug("Cannot request %s: %s", url, exc)
            link.status_code = REQUEST_ERROR_STATUS
            link.type = "error"
            return
        except httpx.HTTPError as exc:
            response = getattr(exc, "response", None)
            status = response.status_code if response is not None else REQUEST_TIMEOUT_STATUS
            logger.debug("Link check failed for %s: %s", url, exc)

        if status > MAX_HTTP_STATUS:
            # e.g. LinkedIn answers bots with 999; the page itself exists
            link.type = "unscannable"
            status = 200

        link.status_code = status

    async def _last_status(self, url: str) -> int:
        """GET *url* following redirects; return the final status.

        When the redirect limit is hit the last redirect's status is returned
        instead of raising.
        """
        request = self._client.build_request("GET", url)
        for _ in range(MAX_REDIRECTS + 1):
            response = await self._client.send(request, stream=True)
            await response.aclose()
            if not response.is_redirect or response.next_request is None:
                break
            request = response.next_request
        return response.status_code
