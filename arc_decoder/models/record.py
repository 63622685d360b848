import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from arc_decoder.decoders.envelope_decoder import HttpEnvelopeDecoder
from arc_decoder.models.envelope import BodyView, ParsedEnvelope
from arc_decoder.models.record_header import RecordHeader

logger = logging.getLogger(__name__)

_envelope_decoder = HttpEnvelopeDecoder()


@dataclass
class Record:
    """One ARC record: parsed header line plus the raw payload it declares.

    The HTTP envelope is parsed on first access and memoized. A failed parse
    is remembered too, so it is not retried until the payload changes.
    """
    header: Optional[RecordHeader] = None
    payload: bytearray = field(default_factory=bytearray)
    block_offset: int = 0  # Compressed input position where the record's unit started
    length_mismatch: bool = False
    trailing_bytes: bool = False

    _envelope: Optional[ParsedEnvelope] = field(default=None, init=False, repr=False, compare=False)
    _envelope_attempted: bool = field(default=False, init=False, repr=False, compare=False)

    def clear(self) -> None:
        self.header = None
        self.payload = bytearray()
        self.block_offset = 0
        self.length_mismatch = False
        self.trailing_bytes = False
        self._invalidate_envelope()

    # ========== PAYLOAD ==========

    def set_payload(self, data) -> None:
        self.payload = bytearray(data)
        self._invalidate_envelope()

    def append_to_payload(self, data) -> None:
        """Grow the payload. Only needed when the declared length under-counted it."""
        logger.warning(
            "Declared length of %s must have been incorrect: appending %d bytes to a %d byte payload",
            self.url, len(data), len(self.payload)
        )
        self.payload.extend(data)
        self._invalidate_envelope()

    def _invalidate_envelope(self) -> None:
        self._envelope = None
        self._envelope_attempted = False

    # ========== HEADER FIELDS ==========

    @property
    def url(self) -> Optional[str]:
        return self.header.url if self.header else None

    @property
    def declared_length(self) -> int:
        return self.header.declared_length if self.header else 0

    @property
    def actual_length(self) -> int:
        return len(self.payload)

    # ========== HTTP ENVELOPE ==========

    @property
    def envelope(self) -> Optional[ParsedEnvelope]:
        if not self._envelope_attempted:
            self._envelope_attempted = True
            if self.header is None:
                logger.error("Unable to parse HTTP response: record header has not been set")
            else:
                self._envelope = _envelope_decoder.decode(
                    self.header.url, self.header.declared_content_type, self.payload
                )
        return self._envelope

    @property
    def status_code(self) -> int:
        envelope = self.envelope
        return envelope.status_code if envelope else -1

    @property
    def http_headers(self) -> Optional[List[Tuple[str, str]]]:
        envelope = self.envelope
        return envelope.headers if envelope else None

    @property
    def body(self) -> Optional[BodyView]:
        envelope = self.envelope
        if envelope is None:
            return None
        return BodyView(self.payload, envelope.body_offset, len(self.payload) - envelope.body_offset)

    def __str__(self) -> str:
        if self.header is None:
            return "<empty record>"
        return f"{self.header.url} - {self.header.timestamp} - {self.header.declared_content_type}"
