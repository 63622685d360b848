class ArcDecoderError(Exception):
    """Base class for all ARC decoding errors."""


class MalformedRecordError(ArcDecoderError):
    """Record header line failed structural validation. Recoverable by resync."""


class UnsupportedSchemeError(MalformedRecordError):
    """Record URL scheme is not accepted under SchemePolicy.REJECT."""


class ProtocolParseError(ArcDecoderError):
    """HTTP envelope could not be parsed. Surfaced as sentinel values."""


class InvalidContainerHeaderError(ArcDecoderError):
    """The leading filedesc:// unit is missing or malformed. Fatal for the stream."""


class TooManyConsecutiveInvalidRecords(ArcDecoderError):
    """Retry budget exhausted. Fatal, iteration aborts."""

    def __init__(self, count: int, position: int):
        super().__init__(
            f"{count} consecutive invalid records, aborting at input position {position}"
        )
        self.count = count
        self.position = position


class SerializationError(ArcDecoderError):
    """Binary record buffer is inconsistent."""


class TruncatedRecordError(SerializationError):
    """Binary record buffer ended before the record was complete."""


class CorruptUnitError(OSError):
    """A compressed unit could not be decompressed."""


class LengthMismatchWarning(UserWarning):
    """Payload shorter or longer than declared. Logged, never raised."""
