"""Single-pass page scanner.

:class:`PageScanner` walks the token stream of one HTML document exactly once,
front to back, and fills an :class:`~app.models.report.InspectReport` as it
goes: doctype version, title, headings, password inputs and links.  It never
looks back and never builds a tree.

Any ``ERROR`` token (end of input, a failed read) ends the scan.  Whatever has
been collected by then is the result; a truncated or malformed page yields a
partial report, not an exception.
"""

import logging
from typing import Callable, Iterable, Iterator, Optional, Tuple

from app.models.report import InspectedLink, InspectReport
from app.services.classifier import classify_link
from app.services.detector import detect_html_version
from app.services.normalizer import clean_text
from app.services.tokenizer import EOF, Token, TokenType

logger = logging.getLogger(__name__)

HEADING_TAGS = frozenset({"h1", "h2", "h3", "h4", "h5", "h6"})

# Called with (absolute URL to probe, link) for every checkable link.
LinkCallback = Callable[[str, InspectedLink], None]

_END_OF_STREAM = Token(TokenType.ERROR, EOF)


class PageScanner:
    def __init__(self, report: InspectReport, on_link: Optional[LinkCallback] = None) -> None:
        self.report = report
        self._on_link = on_link
        self._tokens: Iterator[Token] = iter(())
        self._token = _END_OF_STREAM

    def scan(self, tokens: Iterable[Token]) -> InspectReport:
        """Consume *tokens* and return the populated report."""
        self._tokens = iter(tokens)
        try:
            self._scan()
        finally:
            self.report.total_link_count = len(self.report.links)

        logger.debug(
            "Scanned %s: %d links, %d login fields",
            self.report.url,
            self.report.total_link_count,
            self.report.login_field_count,
        )
        return self.report

    # ------------------------------------------------------------------
    # Token loop
    # ------------------------------------------------------------------

    def _next(self) -> Token:
        self._token = next(self._tokens, _END_OF_STREAM)
        return self._token

    def _scan(self) -> None:
        while True:
            token = self._next()

            if token.type is TokenType.ERROR:
                return
            if token.type is TokenType.DOCTYPE:
                self.report.html_version = detect_html_version(token.data)
            elif token.type is TokenType.START_TAG:
                if not self._start_tag(token):
                    return
            elif token.type is TokenType.SELF_CLOSING_TAG and token.data == "input":
                self._input(token)

    def _start_tag(self, token: Token) -> bool:
        """Handle one start tag; return False when the stream ended meanwhile."""
        tag = token.data

        if tag == "title":
            following = self._next()
            if following.type is TokenType.TEXT:
                self.report.page_title = following.data
            return following.type is not TokenType.ERROR

        if tag in HEADING_TAGS:
            text, ended = self._nested_text()
            if ended:
                return False
            if text:
                self.report.headings.setdefault(tag, []).append(text)
            return True

        if tag == "a":
            text, ended = self._nested_text()
            if ended:
                return False
            self._link(token, text)
            return True

        if tag == "input":
            self._input(token)

        return True

    def _nested_text(self) -> Tuple[str, bool]:
        """Find the first text inside the element that was just opened.

        Inline children (``<h2><span>Text</span></h2>``) are stepped into; the
        search gives up when the element closes before any text appears.

        Returns:
            ``(cleaned text, stream ended)``.
        """
        depth = 0
        token = self._token

        while token.type not in (TokenType.TEXT, TokenType.ERROR) and depth >= 0:
            token = self._next()
            if token.type is TokenType.START_TAG:
                depth += 1
            elif token.type is TokenType.END_TAG:
                depth -= 1

        if token.type is TokenType.TEXT:
            return clean_text(token.data), False
        if token.type is TokenType.ERROR:
            return "", True
        return "", False

    # ------------------------------------------------------------------
    # Element handlers
    # ------------------------------------------------------------------

    def _input(self, token: Token) -> None:
        for key, value in token.attrs:
            if key.lower() == "type" and value.lower() == "password":
                self.report.login_field_count += 1
                break

    def _link(self, token: Token, text: str) -> None:
        href = token.attr("href") or ""
        classified = classify_link(href, self.report.url)
        if classified is None:
            return

        link = InspectedLink(
            url=href,
            text=text,
            type=classified.type,
            status_code=classified.status_code,
        )
        self.report.links.append(link)

        if classified.internal:
            self.report.internal_link_count += 1
        else:
            self.report.external_link_count += 1

        if classified.check_url is not None and self._on_link is not None:
            self._on_link(classified.check_url, link)
