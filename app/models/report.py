from typing import Dict, List

from pydantic import BaseModel, Field

NOT_DEFINED = "Not defined"


class InspectedLink(BaseModel):
    """One ``<a href>`` found on the inspected page."""

    url: str
    text: str = ""
    type: str = ""
    status_code: int = 0
    """HTTP status observed by the liveness probe; ``0`` until probed."""


class InspectReport(BaseModel):
    url: str
    status_code: int = 0
    status_msg: str = ""

    html_version: str = NOT_DEFINED
    page_title: str = NOT_DEFINED

    # headings["h2"] == ["first h2 text", "second h2 text"]
    headings: Dict[str, List[str]] = Field(default_factory=dict)

    login_field_count: int = 0

    links: List[InspectedLink] = Field(default_factory=list)

    accessible_link_count: int = 0
    inaccessible_link_count: int = 0
    not_analysed_link_count: int = 0
    total_link_count: int = 0
    external_link_count: int = 0
    internal_link_count: int = 0
