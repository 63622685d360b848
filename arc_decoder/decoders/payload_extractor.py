import logging
import warnings
from typing import Tuple

from arc_decoder.decoders.unit_source import ByteUnitSource
from arc_decoder.types.errors import LengthMismatchWarning

logger = logging.getLogger(__name__)


def read_payload(source: ByteUnitSource, declared_length: int) -> Tuple[bytes, int]:
    """Read the declared number of payload bytes from the current unit.

    If the unit ends early the shorter buffer is returned; the mismatch is
    logged and reported as a LengthMismatchWarning, never raised.
    """
    if declared_length <= 0:
        return b"", 0

    payload = source.read(declared_length)
    actual_length = len(payload)

    if actual_length < declared_length:
        message = (f"Expecting {declared_length} bytes in ARC record payload, "
                   f"found {actual_length} bytes")
        logger.warning(message)
        warnings.warn(message, LengthMismatchWarning, stacklevel=2)

    return payload, actual_length
