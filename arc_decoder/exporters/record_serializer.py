import logging
import re
import struct
from datetime import datetime, timedelta, timezone
from typing import BinaryIO, Iterable, Iterator, Tuple

from arc_decoder.models.record import Record
from arc_decoder.models.record_header import TIMESTAMP_FORMAT, RecordHeader
from arc_decoder.types.errors import SerializationError, TruncatedRecordError

logger = logging.getLogger(__name__)

_STRING_LENGTH = struct.Struct(">H")
_TIMESTAMP = struct.Struct(">q")
_INT32 = struct.Struct(">i")

_TIMESTAMP_DIGITS = re.compile(r"\d{14}")
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
MAX_STRING_BYTES = 0xFFFF


class RecordSerializer:
    """Fixed-layout binary form of a Record for passing between processing stages.

    Layout, big-endian:
        url, origin address, content type   u16 length + UTF-8 bytes each
        timestamp                            i64 epoch milliseconds (UTC), exact 14-digit dates only
        declared length                      i32
        payload length                       i32
        payload                              raw bytes
    """

    # ========== ENCODING ==========

    @staticmethod
    def encode(record: Record) -> bytes:
        header = record.header
        if header is None:
            raise SerializationError("Cannot serialize a record without a header")

        try:
            parts = [
                RecordSerializer._encode_string(header.url),
                RecordSerializer._encode_string(header.origin_address),
                RecordSerializer._encode_string(header.declared_content_type),
                _TIMESTAMP.pack(RecordSerializer._timestamp_to_millis(header.timestamp)),
                _INT32.pack(header.declared_length),
                _INT32.pack(len(record.payload)),
                bytes(record.payload),
            ]
        except struct.error as e:
            raise SerializationError(f"Record {header.url} does not fit the binary layout: {e}") from e
        return b"".join(parts)

    @staticmethod
    def _encode_string(value: str) -> bytes:
        data = value.encode("utf-8")
        if len(data) > MAX_STRING_BYTES:
            raise SerializationError(f"String field too long to serialize: {len(data)} bytes")
        return _STRING_LENGTH.pack(len(data)) + data

    @staticmethod
    def _timestamp_to_millis(timestamp: str) -> int:
        """Archive date as epoch milliseconds. Only exact 14-digit dates survive the layout."""
        if not _TIMESTAMP_DIGITS.fullmatch(timestamp):
            raise SerializationError(f"Archive date {timestamp!r} is not a 14-digit yyyyMMddHHmmss value")
        try:
            moment = datetime.strptime(timestamp, TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)
        except ValueError as e:
            raise SerializationError(f"Archive date {timestamp!r} is not a valid date: {e}") from e
        if RecordSerializer._format_timestamp(moment) != timestamp:
            raise SerializationError(f"Archive date {timestamp!r} does not survive serialization")
        return (moment - _EPOCH) // timedelta(milliseconds=1)

    @staticmethod
    def _millis_to_timestamp(millis: int) -> str:
        try:
            moment = _EPOCH + timedelta(milliseconds=millis)
        except (ValueError, OverflowError, OSError) as e:
            raise SerializationError(f"Serialized archive date {millis} is out of range") from e
        return RecordSerializer._format_timestamp(moment)

    @staticmethod
    def _format_timestamp(moment: datetime) -> str:
        # strftime does not zero-pad years below 1000 on every platform
        return f"{moment.year:04d}{moment:%m%d%H%M%S}"

    # ========== DECODING ==========

    @staticmethod
    def decode(data: bytes) -> Record:
        """Decode exactly one record. Raises TruncatedRecordError rather than returning a partial record."""
        record, end = RecordSerializer.decode_from(data, 0)
        if end != len(data):
            logger.warning("Ignoring %d bytes after serialized record", len(data) - end)
        return record

    @staticmethod
    def decode_from(data: bytes, offset: int = 0) -> Tuple[Record, int]:
        """Decode the record starting at offset; returns it with the offset just past it."""
        view = memoryview(data)
        pos = offset

        url, pos = RecordSerializer._read_string(view, pos, "url")
        origin_address, pos = RecordSerializer._read_string(view, pos, "origin address")
        content_type, pos = RecordSerializer._read_string(view, pos, "content type")
        millis, pos = RecordSerializer._read_struct(view, pos, _TIMESTAMP, "timestamp")
        declared_length, pos = RecordSerializer._read_struct(view, pos, _INT32, "declared length")
        payload_length, pos = RecordSerializer._read_struct(view, pos, _INT32, "payload length")

        if declared_length < 0:
            raise SerializationError(f"Negative declared length {declared_length} in serialized record")
        if payload_length < 0:
            raise SerializationError(f"Negative payload length {payload_length} in serialized record")
        if pos + payload_length > len(view):
            raise TruncatedRecordError(
                f"End of input reached before payload was fully deserialized: "
                f"need {payload_length} bytes, {len(view) - pos} available"
            )
        payload = view[pos:pos + payload_length].tobytes()
        pos += payload_length

        header = RecordHeader(
            url=url,
            origin_address=origin_address,
            timestamp=RecordSerializer._millis_to_timestamp(millis),
            declared_content_type=content_type,
            declared_length=declared_length,
        )
        record = Record(header=header)
        record.set_payload(payload)
        record.length_mismatch = declared_length != payload_length
        return record, pos

    @staticmethod
    def _read_struct(view: memoryview, pos: int, layout: struct.Struct, name: str) -> Tuple[int, int]:
        if pos + layout.size > len(view):
            raise TruncatedRecordError(f"End of input reached while reading {name}")
        return layout.unpack_from(view, pos)[0], pos + layout.size

    @staticmethod
    def _read_string(view: memoryview, pos: int, name: str) -> Tuple[str, int]:
        length, pos = RecordSerializer._read_struct(view, pos, _STRING_LENGTH, f"{name} length")
        if pos + length > len(view):
            raise TruncatedRecordError(f"End of input reached while reading {name}")
        try:
            value = view[pos:pos + length].tobytes().decode("utf-8")
        except UnicodeDecodeError as e:
            raise SerializationError(f"Invalid UTF-8 in serialized {name}") from e
        return value, pos + length

    # ========== STREAMS ==========

    @staticmethod
    def write_records(records: Iterable[Record], fp: BinaryIO) -> int:
        """Write records back to back; returns how many were written."""
        count = 0
        for record in records:
            fp.write(RecordSerializer.encode(record))
            count += 1
        return count

    @staticmethod
    def read_records(fp: BinaryIO) -> Iterator[Record]:
        """Yield records from a stream produced by write_records."""
        data = fp.read()
        pos = 0
        while pos < len(data):
            record, pos = RecordSerializer.decode_from(data, pos)
            yield record
