import logging
from typing import List, Optional, Tuple, Union

from arc_decoder.models.envelope import ParsedEnvelope
from arc_decoder.types.errors import ProtocolParseError

Buffer = Union[bytes, bytearray, memoryview]

CR = 0x0D
LF = 0x0A
LT = 0x3C  # '<'

HEADER_ENCODING = "iso-8859-1"

# Captures that forgot the blank line between headers and HTML start the body here
MARKUP_OPENERS = (b"<!doctype", b"<?xml", b"<html")
_MARKUP_PEEK = max(len(opener) for opener in MARKUP_OPENERS)


def _starts_markup(payload: Buffer, pos: int) -> bool:
    head = bytes(payload[pos:pos + _MARKUP_PEEK]).lower()
    return head.startswith(MARKUP_OPENERS)


def find_header_boundary(payload: Buffer) -> int:
    """Offset just past the CR LF CR LF ending the HTTP headers, or -1.

    States: 0 nothing, 1 CR, 2 CR LF, 3 CR LF CR, 4 done. A line that
    opens with a markup declaration also ends the headers; the returned
    offset is then the start of that line.
    """
    state = 0
    line_start = True

    for i in range(len(payload)):
        byte = payload[i]

        if line_start and byte == LT and _starts_markup(payload, i):
            return i
        line_start = False

        if byte == CR:
            # A CR in any state other than CR LF is a fresh start
            state = 3 if state == 2 else 1
        elif byte == LF:
            line_start = True
            if state == 1:
                state = 2
            elif state == 3:
                return i + 1
            else:
                state = 0
        else:
            state = 0

    return -1


class HttpEnvelopeDecoder:
    """Splits an ARC payload into HTTP status line, headers and a body offset."""
    HTTP_SCHEMES = ("http://", "https://")
    HTTP_CONTENT_TYPES = ("application/http",)

    def __init__(self) -> None:
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def applies_to(self, url: Optional[str], content_type: Optional[str]) -> bool:
        if url and url.lower().startswith(self.HTTP_SCHEMES):
            return True
        return bool(content_type) and content_type.lower().startswith(self.HTTP_CONTENT_TYPES)

    def decode(self, url: Optional[str], content_type: Optional[str], payload: Buffer) -> Optional[ParsedEnvelope]:
        """Parse the envelope of a record, or return None without scanning if it is not HTTP."""
        if payload is None:
            self.logger.error("Unable to parse HTTP response: payload has not been set")
            return None
        if not self.applies_to(url, content_type):
            self.logger.debug("Not parsing HTTP response: URL protocol is not HTTP (%s)", url)
            return None
        return self.parse(payload)

    def parse(self, payload: Buffer) -> Optional[ParsedEnvelope]:
        end = find_header_boundary(payload)
        if end == -1:
            self.logger.error("Unable to parse HTTP response: end of HTTP headers not found")
            return None

        lines = bytes(payload[:end]).decode(HEADER_ENCODING).split("\n")
        lines = [line.rstrip("\r") for line in lines]

        protocol, status_code, reason = self._parse_status_line(lines[0])
        headers = self._parse_header_lines(lines[1:])

        return ParsedEnvelope(
            status_code=status_code,
            headers=headers,
            body_offset=end,
            protocol=protocol,
            reason=reason,
        )

    def _parse_status_line(self, line: str) -> Tuple[str, int, str]:
        """'<protocol> <code> [<reason>]' -> (protocol, code, reason); code is -1 if unusable."""
        first = line.find(" ")
        if first == -1:
            if line.strip():
                self.logger.warning("%s", ProtocolParseError(f"HTTP status line has no status code: {line[:100]!r}"))
            return line.strip(), -1, ""

        protocol = line[:first]
        second = line.find(" ", first + 1)
        if second == -1:
            code_text, reason = line[first + 1:], ""
        else:
            code_text, reason = line[first + 1:second], line[second + 1:]

        try:
            status_code = int(code_text)
        except ValueError:
            self.logger.warning("%s", ProtocolParseError(f"HTTP status code is not numeric: {code_text[:20]!r}"))
            status_code = -1

        return protocol, status_code, reason.strip()

    def _parse_header_lines(self, lines: List[str]) -> List[Tuple[str, str]]:
        headers: List[Tuple[str, str]] = []

        for line in lines:
            if not line.strip():
                break

            if line[0] in " \t" and headers:
                # Obsolete line folding: continuation of the previous value
                name, value = headers[-1]
                headers[-1] = (name, f"{value} {line.strip()}".strip())
                continue

            name, sep, value = line.partition(":")
            if not sep:
                self.logger.debug("Ignoring HTTP header line without colon: %r", line[:100])
                continue

            headers.append((name.strip(), value.strip()))

        return headers


_decoder = HttpEnvelopeDecoder()


def parse_envelope(payload: Buffer) -> Optional[ParsedEnvelope]:
    """Parse an HTTP envelope out of a raw payload with no URL gating."""
    return _decoder.parse(payload)
