import logging
import re
from typing import Sequence

from arc_decoder.decoders.unit_source import ByteUnitSource
from arc_decoder.models.record_header import ContainerHeader, RecordHeader
from arc_decoder.types.enums import SchemePolicy
from arc_decoder.types.errors import InvalidContainerHeaderError, MalformedRecordError, UnsupportedSchemeError

logger = logging.getLogger(__name__)

HEADER_FIELD_COUNT = 5
FILEDESC_PREFIX = "filedesc://"
MAX_TRAILER_LINES = 4
HEADER_ENCODING = "latin-1"  # Header lines are ASCII in practice; latin-1 never fails

_FIELD_NAME_CLEANUP = re.compile(r"[^A-Z0-9]")


def decode_line(raw: bytes) -> str:
    return raw.decode(HEADER_ENCODING).rstrip("\r\n")


def parse_header(line: str,
                 scheme_policy: SchemePolicy = SchemePolicy.WARN,
                 allowed_schemes: Sequence[str] = ("http://", "https://")) -> RecordHeader:
    """Parse an ARC v1 record header line.

    Fields, separated by single spaces: URL, IP address, archive date
    (yyyyMMddHHmmss), content type, content length. Either all five are
    accepted or the whole line is rejected with MalformedRecordError.
    """
    if line is None:
        raise MalformedRecordError("Record header line is missing")
    # Trailing spaces yield no empty fields
    line = line.rstrip("\r\n").rstrip(" ")
    if not line:
        raise MalformedRecordError("Record header line is empty")

    fields = line.split(" ")
    if len(fields) != HEADER_FIELD_COUNT:
        raise MalformedRecordError(
            f"Record header must have {HEADER_FIELD_COUNT} fields, found {len(fields)}: [ {line[:200]} ]"
        )

    url, origin_address, timestamp, content_type, length_field = fields

    try:
        declared_length = int(length_field)
    except ValueError:
        raise MalformedRecordError(f"Record header length is not an integer: {length_field!r}") from None
    if declared_length < 0:
        raise MalformedRecordError(f"Record header length is negative: {declared_length}")

    if not url.lower().startswith(tuple(allowed_schemes)):
        if scheme_policy == SchemePolicy.REJECT:
            raise UnsupportedSchemeError(f"Unsupported URL scheme in record header: {url[:200]}")
        logger.warning("Invalid protocol in ARC record header: %s", url[:200])

    return RecordHeader(
        url=url,
        origin_address=origin_address,
        timestamp=timestamp,
        declared_content_type=content_type,
        declared_length=declared_length,
    )


def _read_container_line(source: ByteUnitSource, what: str) -> str:
    raw = source.read_line()
    if not raw:
        raise InvalidContainerHeaderError(f"End of input found before {what} of the ARC file header")
    return decode_line(raw)


def read_container_header(source: ByteUnitSource) -> ContainerHeader:
    """Consume the leading filedesc:// unit and advance to the first record unit.

    Example unit:
        filedesc://1341709173972_1004.arc.gz 0.0.0.0 20120708005942 text/plain 73
        1 0 CommonCrawl
        URL IP-address Archive-date Content-type Archive-length
    """
    filedesc = _read_container_line(source, "the filedesc line").strip()
    if not filedesc.lower().startswith(FILEDESC_PREFIX):
        raise InvalidContainerHeaderError("ARC file header does not start with a 'filedesc://' declaration")

    version_line = _read_container_line(source, "the version line")
    names_line = _read_container_line(source, "the field names line")

    field_names = []
    for name in names_line.split(" "):
        cleaned = _FIELD_NAME_CLEANUP.sub("", name.strip().upper())
        if cleaned:
            field_names.append(cleaned)
            logger.info("ARC record header field: %s", cleaned)
    if len(field_names) != HEADER_FIELD_COUNT:
        logger.warning("ARC file header names %d record fields, expected %d", len(field_names), HEADER_FIELD_COUNT)

    # Blank lines are dropped; anything else left in the unit is a trailer line
    trailer_lines = 0
    line = source.read_line()
    while line:
        if line.strip():
            trailer_lines += 1
            if trailer_lines > MAX_TRAILER_LINES:
                raise InvalidContainerHeaderError(
                    "Too many extra lines found at the end of the ARC file header"
                )
        line = source.read_line()
    if trailer_lines:
        logger.warning("%d extra lines found at the end of the ARC file header", trailer_lines)

    source.next_unit()

    return ContainerHeader(
        filedesc=filedesc,
        version_line=version_line,
        field_names=field_names,
        trailer_lines=trailer_lines,
    )
