from dataclasses import dataclass
from typing import Optional

from arc_decoder.models.record import Record
from arc_decoder.types.enums import ErrorKind


@dataclass
class DecodeResult:
    """Outcome of one decode attempt: a record, an error tag, both, or neither (end of input)."""
    record: Optional[Record] = None
    error: Optional[ErrorKind] = None
    message: str = ""

    @property
    def end_of_input(self) -> bool:
        return self.record is None and self.error is None
