"""Incremental HTML tokenizer.

Turns an iterable of raw byte chunks into a forward-only stream of
:class:`Token` objects without building a document tree.  Chunks are decoded
and fed to :class:`html.parser.HTMLParser` one at a time, and the tokens each
chunk completes are yielded before the next chunk is read.

The stream always ends with exactly one :attr:`TokenType.ERROR` token whose
``data`` is ``"EOF"`` on a normal end of input, or the error text when reading
the chunks or parsing the markup failed.
"""

import codecs
import logging
from collections import deque
from enum import Enum
from html.parser import HTMLParser
from typing import Deque, Iterable, Iterator, List, NamedTuple, Optional, Tuple

from bs4.dammit import EncodingDetector

logger = logging.getLogger(__name__)

DEFAULT_ENCODING = "utf-8"
EOF = "EOF"


class TokenType(str, Enum):
    DOCTYPE = "doctype"
    START_TAG = "start_tag"
    END_TAG = "end_tag"
    SELF_CLOSING_TAG = "self_closing_tag"
    TEXT = "text"
    COMMENT = "comment"
    ERROR = "error"


class Token(NamedTuple):
    type: TokenType
    data: str
    attrs: Tuple[Tuple[str, str], ...] = ()

    def attr(self, name: str) -> Optional[str]:
        """Return the value of the first attribute called *name*, if any."""
        for key, value in self.attrs:
            if key == name:
                return value
        return None


class _TokenCollector(HTMLParser):
    """HTMLParser that queues tokens instead of handling them."""

    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self.tokens: Deque[Token] = deque()
        self._text: List[str] = []

    def drain(self) -> Iterator[Token]:
        while self.tokens:
            yield self.tokens.popleft()

    def close(self) -> None:
        super().close()
        self._flush_text()

    def _flush_text(self) -> None:
        if self._text:
            self.tokens.append(Token(TokenType.TEXT, "".join(self._text)))
            self._text = []

    def _emit(self, token: Token) -> None:
        self._flush_text()
        self.tokens.append(token)

    @staticmethod
    def _attrs(attrs: List[Tuple[str, Optional[str]]]) -> Tuple[Tuple[str, str], ...]:
        return tuple((key, value or "") for key, value in attrs)

    def handle_decl(self, decl: str) -> None:
        parts = decl.split(None, 1)
        if parts and parts[0].lower() == "doctype":
            self._emit(Token(TokenType.DOCTYPE, parts[1].strip() if len(parts) > 1 else ""))

    def handle_starttag(self, tag: str, attrs: List[Tuple[str, Optional[str]]]) -> None:
        self._emit(Token(TokenType.START_TAG, tag, self._attrs(attrs)))

    def handle_startendtag(self, tag: str, attrs: List[Tuple[str, Optional[str]]]) -> None:
        self._emit(Token(TokenType.SELF_CLOSING_TAG, tag, self._attrs(attrs)))

    def handle_endtag(self, tag: str) -> None:
        self._emit(Token(TokenType.END_TAG, tag))

    def handle_data(self, data: str) -> None:
        self._text.append(data)

    def handle_comment(self, data: str) -> None:
        self._emit(Token(TokenType.COMMENT, data))


def _resolve_encoding(first_chunk: bytes, declared: Optional[str]) -> Tuple[bytes, str]:
    """Pick the codec for a document starting with *first_chunk*.

    A byte-order mark wins, then the transport-declared charset, then a
    ``<meta charset>`` declaration in the chunk, then UTF-8.
    """
    first_chunk, bom_encoding = EncodingDetector.strip_byte_order_mark(first_chunk)
    candidates = (
        bom_encoding,
        declared,
        EncodingDetector.find_declared_encoding(first_chunk, is_html=True),
    )
    for candidate in candidates:
        if not candidate:
            continue
        try:
            return first_chunk, codecs.lookup(candidate).name
        except LookupError:
            logger.debug("Unknown document encoding %r, ignoring", candidate)
    return first_chunk, DEFAULT_ENCODING


def tokenize(chunks: Iterable[bytes], encoding: Optional[str] = None) -> Iterator[Token]:
    """Yield the tokens of the HTML document made of *chunks*.

    Args:
        chunks: Raw body bytes, in order.  A single ``bytes`` object must be
            wrapped in a list.
        encoding: Charset declared by the transport (``Content-Type``), if any.
    """
    parser = _TokenCollector()
    decoder = None
    reason = EOF
    iterator = iter(chunks)

    while True:
        try:
            chunk = next(iterator)
        except StopIteration:
            break
        except OSError as exc:
            logger.warning("Reading the document failed mid-stream: %s", exc)
            reason = str(exc) or exc.__class__.__name__
            break

        if not chunk:
            continue
        if decoder is None:
            chunk, codec = _resolve_encoding(chunk, encoding)
            decoder = codecs.getincrementaldecoder(codec)(errors="replace")

        try:
            parser.feed(decoder.decode(chunk))
        except AssertionError as exc:
            reason = _parse_failure(exc)
            break
        yield from parser.drain()

    if reason == EOF:
        try:
            if decoder is not None:
                parser.feed(decoder.decode(b"", final=True))
            parser.close()
        except AssertionError as exc:
            reason = _parse_failure(exc)

    yield from parser.drain()
    yield Token(TokenType.ERROR, reason)


def _parse_failure(exc: AssertionError) -> str:
    # HTMLParser asserts on malformed markup such as "<![=" marked sections
    logger.warning("Document markup could not be parsed: %s", exc)
    return str(exc) or "malformed markup"
