import logging

from arc_decoder.decoders.unit_source import ByteUnitSource
from arc_decoder.types.errors import TooManyConsecutiveInvalidRecords


class ResyncController:
    """Drops the rest of a bad unit and bounds how many bad units may follow each other."""

    def __init__(self, max_consecutive_invalid: int = 100):
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")
        self.max_consecutive_invalid = max_consecutive_invalid
        self.consecutive_invalid = 0
        self.total_resyncs = 0

    def skip_to_next_unit(self, source: ByteUnitSource) -> int:
        """Drain the current unit and move to the next boundary. No-op on a boundary."""
        if source.at_boundary:
            return 0
        skipped = 0
        while True:
            n = source.skip_unit()
            if n <= 0:
                break
            skipped += n
        source.next_unit()
        return skipped

    def record_failure(self, source: ByteUnitSource, reason: str) -> None:
        """Count one invalid record, resynchronize, and abort once the bound is reached."""
        self.consecutive_invalid += 1
        self.total_resyncs += 1
        self.logger.error("Invalid ARC record found at position %d (%s). Skipping ...",
                          source.bytes_consumed, reason)
        self.skip_to_next_unit(source)

        if self.consecutive_invalid >= self.max_consecutive_invalid:
            raise TooManyConsecutiveInvalidRecords(self.consecutive_invalid, source.bytes_consumed)

    def record_success(self) -> None:
        self.consecutive_invalid = 0
