"""Streaming HTML tokenizer with one token of lookahead."""
import codecs
import logging
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from html.parser import HTMLParser
from typing import Iterable, Iterator, List, Optional, Tuple, Union

from bs4.dammit import EncodingDetector

from processor.errors import MalformedInputError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 8192
SNIFF_LIMIT = 65536

DocumentSource = Union[str, bytes, Iterable[Union[str, bytes]]]


class TokenType(Enum):
    START_TAG = 'start_tag'
    END_TAG = 'end_tag'
    SELF_CLOSING_TAG = 'self_closing_tag'
    TEXT = 'text'
    EOF = 'eof'


@dataclass
class Token:
    """A single lexical token."""
    type: TokenType
    tag: str = ''
    attrs: List[Tuple[str, Optional[str]]] = field(default_factory=list)
    text: str = ''

    def attr(self, name: str) -> Optional[str]:
        """Value of the last attribute called name, if any."""
        value = None
        for key, val in self.attrs:
            if key == name:
                value = val
        return value


EOF_TOKEN = Token(TokenType.EOF)


class _TokenCollector(HTMLParser):
    """
    HTMLParser that queues tokens instead of building a tree.

    Text is held back until the next tag (or close) so that a run of text
    split across chunks still arrives as one token.
    """

    def __init__(self, tokens: deque):
        super().__init__(convert_charrefs=True)
        self._tokens = tokens
        self._text: List[str] = []

    def handle_starttag(self, tag, attrs):
        self._push(Token(TokenType.START_TAG, tag=tag, attrs=attrs))

    def handle_startendtag(self, tag, attrs):
        self._push(Token(TokenType.SELF_CLOSING_TAG, tag=tag, attrs=attrs))

    def handle_endtag(self, tag):
        self._push(Token(TokenType.END_TAG, tag=tag))

    def handle_data(self, data):
        self._text.append(data)

    def close(self):
        super().close()
        self._flush_text()

    def _push(self, token: Token) -> None:
        self._flush_text()
        self._tokens.append(token)

    def _flush_text(self) -> None:
        if self._text:
            self._tokens.append(Token(TokenType.TEXT, text=''.join(self._text)))
            self._text = []


class Tokenizer:
    """
    Pull tokens from a document stream.

    The source may be text, bytes, a file-like object with read(), or an
    iterable of str/bytes chunks (e.g. requests' iter_content). Bytes are
    held back until a charset declaration turns up (or SNIFF_LIMIT bytes
    have arrived), then decoded incrementally with the declared charset,
    the transport encoding or UTF-8, in that order. Undecodable bytes
    become U+FFFD.
    """

    def __init__(self, source: DocumentSource, encoding: Optional[str] = None):
        """
        Args:
            source: Markup as text, bytes, a file-like object or chunks
            encoding: Charset from the transport (e.g. the Content-Type
                header), used when the document declares none
        """
        self._chunks = self._iter_chunks(source)
        self._transport_encoding = encoding
        self._pending: deque = deque()
        self._collector = _TokenCollector(self._pending)
        self._decoder = None
        self._head = b''
        self._error: Optional[MalformedInputError] = None
        self._peeked: Optional[Token] = None
        self._done = False

    def peek(self) -> Token:
        """Return the next token without consuming it."""
        if self._peeked is None:
            self._peeked = self._advance()
        return self._peeked

    def next(self) -> Token:
        """Consume and return the next token."""
        if self._peeked is not None:
            token, self._peeked = self._peeked, None
            return token
        return self._advance()

    def _advance(self) -> Token:
        while not self._pending:
            if self._error is not None:
                raise self._error
            if self._done:
                return EOF_TOKEN
            self._feed_next_chunk()
        return self._pending.popleft()

    def _feed_next_chunk(self) -> None:
        try:
            chunk = next(self._chunks, None)
        except Exception as e:
            # Tokens read before the failure are still handed out first
            self._flush_head()
            self._error = MalformedInputError(
                f"Failed to read document ({type(e).__name__}): {e}"
            )
            self._error.__cause__ = e
            return

        if chunk is None:
            if self._decoder is not None or self._head:
                self._collector.feed(self._decode(b'', final=True))
            self._collector.close()
            self._done = True
            return
        if isinstance(chunk, bytes):
            chunk = self._decode(chunk)
        if chunk:
            self._collector.feed(chunk)

    def _flush_head(self) -> None:
        if self._decoder is None and self._head:
            self._collector.feed(self._decode(b'', final=True))

    def _decode(self, chunk: bytes, final: bool = False) -> str:
        if self._decoder is None:
            self._head += chunk
            declared = EncodingDetector.find_declared_encoding(
                self._head, is_html=True, search_entire_document=True
            )
            if declared is None and len(self._head) < SNIFF_LIMIT and not final:
                return ''
            self._decoder = self._make_decoder(declared)
            chunk, self._head = self._head, b''
        return self._decoder.decode(chunk, final=final)

    def _make_decoder(self, declared: Optional[str]) -> codecs.IncrementalDecoder:
        for encoding in (declared, self._transport_encoding, 'utf-8'):
            if not encoding:
                continue
            try:
                codec = codecs.lookup(encoding)
            except LookupError:
                logger.warning(f"Unknown encoding {encoding!r}, trying the next candidate")
                continue
            logger.debug(f"Decoding document as {codec.name}")
            return codec.incrementaldecoder(errors='replace')

    @staticmethod
    def _iter_chunks(source: DocumentSource) -> Iterator[Union[str, bytes]]:
        if isinstance(source, (str, bytes)):
            yield source
        elif hasattr(source, 'read'):
            while True:
                chunk = source.read(CHUNK_SIZE)
                if not chunk:
                    return
                yield chunk
        else:
            yield from source
