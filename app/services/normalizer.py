"""Normalisation utilities: whitespace cleanup, doctype text and input URLs."""

import re

_WHITESPACE_RE = re.compile(r"\s+")


def clean_text(text: str) -> str:
    """Collapse every run of whitespace in *text* to one space and trim the ends.

    Used for heading and link text taken from HTML text nodes, where source
    indentation and line breaks carry no meaning.
    """
    return _WHITESPACE_RE.sub(" ", text).strip()


def normalize_doctype(doctype: str) -> str:
    """Lowercase *doctype* and collapse double spaces."""
    return doctype.lower().replace("  ", " ")


def normalize_url(url: str) -> str:
    """Return *url* with ``https://`` prepended when it has no http(s) scheme."""
    url = url.strip()
    if not url.startswith(("https://", "http://")):
        url = "https://" + url
    return url
