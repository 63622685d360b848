import logging
import os
from typing import Iterator, Optional, Union

from arc_decoder.decoders.header_parser import decode_line, parse_header, read_container_header
from arc_decoder.decoders.payload_extractor import read_payload
from arc_decoder.decoders.resync import ResyncController
from arc_decoder.decoders.unit_source import ByteUnitSource, GzipUnitSource
from arc_decoder.models.decode_result import DecodeResult
from arc_decoder.models.decoder_config import DecoderConfig
from arc_decoder.models.record import Record
from arc_decoder.types.enums import DecoderState, ErrorKind
from arc_decoder.types.errors import (
    MalformedRecordError,
    TooManyConsecutiveInvalidRecords,
    UnsupportedSchemeError,
)


class ArcFileReader:
    """Reads ARC records from a source of independently compressed units.

    One instance owns one source; instances share nothing and may run in
    parallel. Not thread-safe, except that position() and progress() may be
    polled from another thread.
    """

    def __init__(self, source: ByteUnitSource, config: Optional[DecoderConfig] = None):
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")
        self.config = config or DecoderConfig()
        self.source = source
        self.resync = ResyncController(self.config.max_consecutive_invalid)
        self.state = DecoderState.AT_BOUNDARY

        self.records_emitted = 0
        self.records_skipped = 0

        # The container header must be valid before any record is read
        try:
            self.container_header = read_container_header(self.source)
        except Exception:
            self.source.close()
            self.state = DecoderState.CLOSED
            raise
        self.logger.info("Opened ARC container %s (%d bytes)",
                         self.container_header.file_name, self.source.total_length)

    @classmethod
    def open(cls, source: ByteUnitSource, config: Optional[DecoderConfig] = None) -> "ArcFileReader":
        return cls(source, config)

    @classmethod
    def from_path(cls, file_path: Union[str, os.PathLike], config: Optional[DecoderConfig] = None) -> "ArcFileReader":
        config = config or DecoderConfig()
        return cls(GzipUnitSource.from_path(file_path, chunk_size=config.chunk_size), config)

    # ========== ITERATION ==========

    @property
    def consecutive_invalid(self) -> int:
        return self.resync.consecutive_invalid

    def next(self, record: Optional[Record] = None) -> Optional[Record]:
        """Return the next valid record, or None at the end of input.

        A Record passed in is cleared and filled in place; otherwise a new one
        is allocated. Raises TooManyConsecutiveInvalidRecords once the retry
        budget is spent; I/O errors from the source propagate unchanged.
        """
        if self.state in (DecoderState.ABORTED, DecoderState.CLOSED):
            raise ValueError(f"Cannot read from an ARC reader in state {self.state.name}")

        while True:
            result = self._decode_one(record)

            if result.end_of_input:
                self.state = DecoderState.AT_BOUNDARY
                return None

            if result.record is not None:
                self._finish_record(result)
                return result.record

            # Unusable unit: drop it and try the next one
            self.state = DecoderState.RESYNCING
            self.records_skipped += 1
            try:
                self.resync.record_failure(self.source, result.message)
            except TooManyConsecutiveInvalidRecords:
                self.state = DecoderState.ABORTED
                self.logger.error("Aborting: %d consecutive invalid records", self.resync.consecutive_invalid)
                raise
            self.state = DecoderState.AT_BOUNDARY

    def read_records(self) -> Iterator[Record]:
        """Yield fresh records until the end of input."""
        while True:
            record = self.next()
            if record is None:
                return
            yield record

    def __iter__(self) -> Iterator[Record]:
        return self.read_records()

    def _decode_one(self, record: Optional[Record]) -> DecodeResult:
        self.state = DecoderState.PARSING_HEADER
        block_offset = self.source.bytes_consumed

        raw_line = self.source.read_line()
        if raw_line is None:
            return DecodeResult()

        try:
            header = parse_header(decode_line(raw_line),
                                  scheme_policy=self.config.scheme_policy,
                                  allowed_schemes=self.config.allowed_schemes)
        except MalformedRecordError as e:
            kind = ErrorKind.UNSUPPORTED_SCHEME if isinstance(e, UnsupportedSchemeError) else ErrorKind.MALFORMED_HEADER
            return DecodeResult(error=kind, message=str(e))

        self.state = DecoderState.READING_PAYLOAD
        payload, actual_length = read_payload(self.source, header.declared_length)

        if record is None:
            record = Record()
        else:
            record.clear()
        record.header = header
        record.set_payload(payload)
        record.block_offset = block_offset
        record.length_mismatch = actual_length != header.declared_length

        # The unit should end right after the payload
        extra = self.source.read(self.config.probe_size)
        if extra:
            record.trailing_bytes = True
            if self.config.append_trailing_bytes:
                record.append_to_payload(extra + self._drain_unit())
                record.length_mismatch = True
            else:
                return DecodeResult(
                    record=record,
                    error=ErrorKind.TRAILING_BYTES,
                    message=f"{len(extra)} or more bytes of unexpected content found at end of ARC record",
                )

        return DecodeResult(record=record)

    def _drain_unit(self) -> bytes:
        chunks = []
        while True:
            chunk = self.source.read(self.config.chunk_size)
            if not chunk:
                return b"".join(chunks)
            chunks.append(chunk)

    def _finish_record(self, result: DecodeResult) -> None:
        record = result.record
        if result.error == ErrorKind.TRAILING_BYTES:
            self.state = DecoderState.RESYNCING
            self.logger.error("%s (%s). Skipping ...", result.message, record.url)
            self.resync.skip_to_next_unit(self.source)
        else:
            self.source.next_unit()

        self.state = DecoderState.EMITTED
        self.resync.record_success()
        self.records_emitted += 1
        self.logger.debug("Emitted record %s (%d bytes)", record.url, record.actual_length)

    # ========== POSITION ==========

    def position(self) -> int:
        """Compressed bytes consumed so far."""
        return self.source.bytes_consumed

    def progress(self) -> float:
        total = self.source.total_length
        if total <= 0:
            return 1.0
        return min(1.0, self.source.bytes_consumed / float(total))

    # ========== LIFECYCLE ==========

    def close(self) -> None:
        if self.state == DecoderState.CLOSED:
            return
        self.source.close()
        self.state = DecoderState.CLOSED

    def __enter__(self) -> "ArcFileReader":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
