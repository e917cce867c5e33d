import ipaddress
import logging
import socket
from typing import NamedTuple, Optional
from urllib.parse import urljoin, urlparse

import httpx

logger = logging.getLogger(__name__)

MAX_CONTENT_SIZE = 10 * 1024 * 1024  # 10 MB
TIMEOUT = 10  # seconds
MAX_REDIRECTS = 10
ALLOWED_SCHEMES = {"http", "https"}


class FetchResult(NamedTuple):
    url: str
    final_url: str
    status_code: int
    status_msg: str
    body: bytes
    encoding: Optional[str] = None
    """Charset declared in the ``Content-Type`` header, if any."""


def _is_private_address(hostname: str) -> bool:
    """Return True if *hostname* resolves to a private, loopback, or link-local address."""
    try:
        infos = socket.getaddrinfo(hostname, None)
    except socket.gaierror:
        return False

    for info in infos:
        raw_ip = info[4][0]
        # Strip IPv6 zone IDs (e.g. "::1%eth0" → "::1")
        raw_ip = raw_ip.split("%")[0]
        try:
            addr = ipaddress.ip_address(raw_ip)
        except ValueError:
            continue
        if addr.is_private or addr.is_loopback or addr.is_link_local or addr.is_reserved:
            return True
    return False


def _validate_url(url: str, allow_private: bool = False) -> None:
    """Raise ValueError if *url* fails SSRF / scheme validation."""
    parsed = urlparse(url)

    if parsed.scheme not in ALLOWED_SCHEMES:
        raise ValueError(f"Scheme '{parsed.scheme}' is not allowed. Use http or https.")

    hostname = parsed.hostname
    if not hostname:
        raise ValueError("URL must have a valid hostname.")

    try:
        parsed.port
    except ValueError as exc:
        raise ValueError(f"URL has an invalid port: {exc}") from exc

    if not allow_private and _is_private_address(hostname):
        raise ValueError("Requests to private/internal addresses are not allowed.")


def _status_line(response: httpx.Response) -> str:
    """Format the status the way HTTP/1.1 prints it, e.g. ``"404 Not Found"``."""
    reason = response.reason_phrase
    return f"{response.status_code} {reason}" if reason else str(response.status_code)


async def fetch_page(
    url: str,
    *,
    timeout: float = TIMEOUT,
    max_size: int = MAX_CONTENT_SIZE,
    allow_private: bool = False,
) -> FetchResult:
    """Fetch *url* and return its status and raw body.

    Redirects are followed manually so that every redirect destination is
    validated against the SSRF rules before the next request is made.  Error
    statuses are returned like any other; only failures to get a response at
    all are raised.

    A body larger than *max_size* is truncated, and a connection dropped while
    the body is being read keeps what arrived so far.

    Raises:
        ValueError: if the URL fails SSRF / scheme validation.
        httpx.HTTPError: on network errors before a response arrives.
        httpx.InvalidURL: if httpx cannot build a request for the URL.
        RuntimeError: on too many redirects.
    """
    _validate_url(url, allow_private)

    current_url = url
    async with httpx.AsyncClient(follow_redirects=False, timeout=timeout) as client:
        for _ in range(MAX_REDIRECTS + 1):
            async with client.stream("GET", current_url) as response:
                if response.is_redirect:
                    location = response.headers.get("location", "")
                    next_url = urljoin(current_url, location)
                    _validate_url(next_url, allow_private)
                    current_url = next_url
                    continue

                chunks = []
                total = 0
                try:
                    async for chunk in response.aiter_bytes():
                        total += len(chunk)
                        if total > max_size:
                            chunks.append(chunk[: max_size - (total - len(chunk))])
                            logger.warning("Body of %s exceeds %d bytes, truncating", url, max_size)
                            break
                        chunks.append(chunk)
                except (httpx.StreamError, httpx.TransportError) as exc:
                    logger.warning("Body of %s cut short: %s", url, exc)

                return FetchResult(
                    url=url,
                    final_url=current_url,
                    status_code=response.status_code,
                    status_msg=_status_line(response),
                    body=b"".join(chunks),
                    encoding=response.charset_encoding,
                )

    raise RuntimeError("Too many redirects.")
