from enum import Enum


class DecoderState(Enum):
    """States of the record decoding loop."""
    AT_BOUNDARY = "at_boundary"
    PARSING_HEADER = "parsing_header"
    READING_PAYLOAD = "reading_payload"
    EMITTED = "emitted"
    RESYNCING = "resyncing"
    ABORTED = "aborted"      # Terminal, too many consecutive invalid records
    CLOSED = "closed"


class SchemePolicy(Enum):
    """What to do with a record whose URL is not http:// or https://"""
    WARN = "warn"
    REJECT = "reject"


class ErrorKind(Enum):
    """Tag carried by a failed decode attempt."""
    MALFORMED_HEADER = "malformed_header"
    UNSUPPORTED_SCHEME = "unsupported_scheme"
    TRAILING_BYTES = "trailing_bytes"
