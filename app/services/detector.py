"""HTML version detection from the document's doctype declaration.

:func:`detect_html_version` maps the text of a ``<!DOCTYPE ...>`` token to a
human-readable version label.

Version labels
--------------
``"XHTML 1.1"``, ``"XHTML 1.0 Strict"``, ``"XHTML 1.0 Transitional"``,
``"XHTML 1.0 Frameset"``
    Identified by the public identifier of the XHTML DTD.

``"HTML 4.01 Strict"``, ``"HTML 4.01 Transitional"``, ``"HTML 4.01 Frameset"``
    Identified by the public identifier of the HTML 4.01 DTD.

``"HTML 5"``
    Any other doctype that mentions ``html`` (``<!DOCTYPE html>``).

A doctype that matches none of the above is returned as-is (normalised), and
an empty doctype yields ``"Not defined"``.
"""

from typing import Tuple

from app.models.report import NOT_DEFINED
from app.services.normalizer import normalize_doctype

# Checked in order: every DTD fragment also contains "html", so the HTML 5
# catch-all has to come last, and the longer 4.01 variants before Strict.
HTML_VERSIONS: Tuple[Tuple[str, str], ...] = (
    ("XHTML 1.1", "/dtd xhtml 1.1/"),
    ("XHTML 1.0 Strict", "/dtd xhtml 1.0 strict/"),
    ("XHTML 1.0 Transitional", "/dtd xhtml 1.0 transitional/"),
    ("XHTML 1.0 Frameset", "/dtd xhtml 1.0 frameset/"),
    ("HTML 4.01 Transitional", "/dtd html 4.01 transitional/"),
    ("HTML 4.01 Frameset", "/dtd html 4.01 frameset/"),
    ("HTML 4.01 Strict", "/dtd html 4.01/"),
    ("HTML 5", "html"),
)


def detect_html_version(doctype: str) -> str:
    """Return the HTML version label for the doctype text *doctype*.

    Args:
        doctype: The declaration body following ``<!DOCTYPE``, e.g. ``"html"``
            or ``'html PUBLIC "-//W3C//DTD HTML 4.01//EN"'``.

    Returns:
        A label from :data:`HTML_VERSIONS`, the normalised *doctype* when no
        label matches, or ``"Not defined"`` for blank input.
    """
    doctype = normalize_doctype(doctype.strip())
    if not doctype:
        return NOT_DEFINED

    for label, fragment in HTML_VERSIONS:
        if fragment in doctype:
            return label

    return doctype
