"""Link classification by scope and protocol.

:func:`classify_link` inspects the raw ``href`` of an ``<a>`` tag and decides
what kind of link it is, whether it points inside or outside the inspected
page, and which absolute URL (if any) a liveness probe should request.

Link types
----------
``"external"``
    Starts with ``http``.  Probed as written.

``"fragment"``
    Starts with ``#``.  Internal, never probed.

``"telephone"`` / ``"email"``
    ``tel:`` and ``mailto:`` links.  External, never probed.

``"<scheme>"``
    Any other ``scheme:`` prefix (``javascript:``, ``ftp:``, ``whatsapp:`` ...).
    The captured scheme name becomes the type.  External, never probed.

``"absolute"``
    Starts with ``/``.  Internal; probed at the page's scheme and host.  When
    the page URL has no usable scheme/host the type becomes ``"invalid"``.

``"relative"``
    Anything else.  Internal; probed at ``<page url>/<href>``.  This is a plain
    string concatenation, not RFC 3986 resolution: ``../`` segments and the
    page URL's own query or fragment are carried through untouched.
"""

import re
from typing import NamedTuple, Optional
from urllib.parse import urlsplit

# Types that are probed; a link of one of these types still at status 0 has
# not been analysed yet.
CHECKABLE_TYPES = frozenset({"external", "absolute", "relative"})

INVALID_LINK_STATUS = 400

_SCHEME_RE = re.compile(r"^([a-zA-Z0-9]+):")


class ClassifiedLink(NamedTuple):
    type: str
    internal: bool
    check_url: Optional[str]
    """Absolute URL to probe, or ``None`` when the link is not checkable."""
    status_code: int = 0


def _absolute_url(href: str, page_url: str) -> Optional[str]:
    try:
        parsed = urlsplit(page_url)
    except ValueError:
        return None
    if not parsed.scheme or not parsed.netloc:
        return None
    return f"{parsed.scheme}://{parsed.netloc}{href}"


def classify_link(href: str, page_url: str) -> Optional[ClassifiedLink]:
    """Classify *href* found on the page at *page_url*.

    Returns:
        A :class:`ClassifiedLink`, or ``None`` for an empty *href* (such links
        are neither recorded nor counted).
    """
    if not href:
        return None

    if href.startswith("http"):
        return ClassifiedLink("external", internal=False, check_url=href)

    if href.startswith("#"):
        return ClassifiedLink("fragment", internal=True, check_url=None)

    if href.startswith("tel:"):
        return ClassifiedLink("telephone", internal=False, check_url=None)

    if href.startswith("mailto:"):
        return ClassifiedLink("email", internal=False, check_url=None)

    match = _SCHEME_RE.match(href)
    if match:
        return ClassifiedLink(match.group(1), internal=False, check_url=None)

    if href.startswith("/"):
        check_url = _absolute_url(href, page_url)
        if check_url is None:
            return ClassifiedLink(
                "invalid", internal=True, check_url=None, status_code=INVALID_LINK_STATUS
            )
        return ClassifiedLink("absolute", internal=True, check_url=check_url)

    base = page_url[1:] if page_url.startswith("/") else page_url
    return ClassifiedLink("relative", internal=True, check_url=f"{base}/{href}")
