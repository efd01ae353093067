"""Reassembly of Server-Sent Events frames from raw response bytes.

The transport hands over chunks that may end anywhere: in the middle of
a line, of a JSON token, or of a multi-byte UTF-8 character.
:class:`FrameDecoder` buffers across those boundaries and returns only
complete ``data:`` payloads, in arrival order.
"""

from __future__ import annotations

import codecs
import logging
import re

from tributary.errors import DecodeError

logger = logging.getLogger(__name__)

DATA_PREFIX = "data:"
DONE_SENTINEL = "[DONE]"

# Not str.splitlines(): JSON strings may legally hold a raw U+2028.
_LINE_END = re.compile(r"\r\n|\r|\n")


class _ObjectScanner:
    """Tracks the nesting depth of a JSON object fed to it piece by piece.

    Braces inside string literals (including escaped quotes) are ignored,
    so the scanner only reports completion once the outermost object has
    actually been closed.
    """

    def __init__(self) -> None:
        self.depth = 0
        self.opened = False
        self._in_string = False
        self._escaped = False

    def scan(self, text: str) -> None:
        for ch in text:
            if self._in_string:
                if self._escaped:
                    self._escaped = False
                elif ch == "\\":
                    self._escaped = True
                elif ch == '"':
                    self._in_string = False
            elif ch == '"':
                self._in_string = True
            elif ch == "{":
                self.depth += 1
                self.opened = True
            elif ch == "}":
                self.depth -= 1

    @property
    def complete(self) -> bool:
        return self.opened and self.depth <= 0


def _field_value(value: str) -> str:
    # SSE strips a single leading space from a field value.
    return value[1:] if value.startswith(" ") else value


def _is_whole_object(data: str) -> bool:
    if not data.lstrip().startswith("{"):
        return False
    scanner = _ObjectScanner()
    scanner.scan(data)
    return scanner.complete


class FrameDecoder:
    """Turns raw byte chunks into complete frame payloads.

    Call :meth:`feed` for every chunk and :meth:`finish` once the body is
    exhausted.  Lines without the ``data:`` prefix are dropped, as is the
    ``[DONE]`` sentinel.  A payload whose JSON object is still open at the
    end of its line is held and extended with the following line(s) until
    the object closes, a blank line ends the event, a ``data:`` line
    starts a new object or ``[DONE]``, or input ends.

    Raises:
        DecodeError: The bytes are not valid UTF-8.
    """

    def __init__(self, prefix: str = DATA_PREFIX):
        self.prefix = prefix
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="strict")
        # Current unterminated line, and a trailing "\r" that may be half a "\r\n".
        self._pieces: list[str] = []
        self._carry = ""
        self._partial: str | None = None
        self._scanner: _ObjectScanner | None = None

    def feed(self, chunk: bytes) -> list[str]:
        return self._feed_text(self._decode(chunk))

    def finish(self) -> list[str]:
        payloads = self._feed_text(self._decode(b"", final=True))
        if self._pieces or self._carry:
            self._carry = ""
            payloads.extend(self._feed_line(self._take_line()))
        if self._partial is not None:
            payloads.append(self._release())
        return payloads

    def _decode(self, data: bytes, final: bool = False) -> str:
        try:
            return self._decoder.decode(data, final)
        except UnicodeDecodeError as e:
            raise DecodeError(f"Response body is not valid UTF-8: {e}") from e

    def _feed_text(self, text: str) -> list[str]:
        # Only the new text is searched, so a long line costs linear time.
        text = self._carry + text
        self._carry = ""
        payloads: list[str] = []
        start = 0
        for match in _LINE_END.finditer(text):
            if match.group() == "\r" and match.end() == len(text):
                # Could be the first half of a \r\n split across chunks.
                self._carry = "\r"
                break
            self._pieces.append(text[start:match.start()])
            payloads.extend(self._feed_line(self._take_line()))
            start = match.end()
        rest = text[start:len(text) - len(self._carry)]
        if rest:
            self._pieces.append(rest)
        return payloads

    def _take_line(self) -> str:
        line = "".join(self._pieces)
        self._pieces.clear()
        return line

    def _feed_line(self, line: str) -> list[str]:
        if self._partial is not None:
            return self._continue(line)

        if not line.startswith(self.prefix):
            return []
        data = _field_value(line[len(self.prefix):])
        if data.strip() == DONE_SENTINEL:
            logger.debug("Received end-of-stream sentinel")
            return []
        if not data.lstrip().startswith("{"):
            return [data]

        scanner = _ObjectScanner()
        scanner.scan(data)
        if scanner.complete:
            return [data]
        self._partial = data
        self._scanner = scanner
        return []

    def _continue(self, line: str) -> list[str]:
        if not line:
            logger.debug("Event ended before its JSON payload closed")
            return [self._release()]
        if line.startswith(self.prefix):
            data = _field_value(line[len(self.prefix):])
            if data.strip() == DONE_SENTINEL or _is_whole_object(data):
                logger.debug("New frame started before the held JSON payload closed")
                held = self._release()
                return [held, *self._feed_line(line)]
            piece = "\n" + data
        else:
            piece = line
        self._partial += piece
        self._scanner.scan(piece)
        if self._scanner.complete:
            return [self._release()]
        return []

    def _release(self) -> str:
        payload = self._partial
        self._partial = None
        self._scanner = None
        return payload
