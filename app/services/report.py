"""Derived link counts for an :class:`~app.models.report.InspectReport`.

Liveness probes update ``InspectedLink.status_code`` in the background while
callers are free to read the report.  :func:`snapshot` therefore recomputes
the accessible / inaccessible / not-analysed counts from the link list every
time it is called instead of keeping running totals.

The result is a best-effort point-in-time view, not a consistent cut: a probe
that finishes while the list is being walked may or may not be counted.
Callers needing final numbers must wait for the checker to drain first.
"""

from typing import Iterable, NamedTuple

from app.models.report import InspectedLink, InspectReport
from app.services.classifier import CHECKABLE_TYPES


class LinkCounts(NamedTuple):
    accessible: int
    inaccessible: int
    not_analysed: int


def count_links(links: Iterable[InspectedLink]) -> LinkCounts:
    """Count *links* by liveness status."""
    accessible = 0
    inaccessible = 0
    not_analysed = 0

    for link in links:
        if link.status_code == 0:
            if link.type in CHECKABLE_TYPES:
                not_analysed += 1
        elif link.status_code < 400:
            accessible += 1
        else:
            inaccessible += 1

    return LinkCounts(accessible, inaccessible, not_analysed)


def snapshot(report: InspectReport) -> LinkCounts:
    """Refresh the derived counts of *report* in place and return them."""
    counts = count_links(report.links)
    report.accessible_link_count = counts.accessible
    report.inaccessible_link_count = counts.inaccessible
    report.not_analysed_link_count = counts.not_analysed
    report.total_link_count = len(report.links)
    return counts
