from dataclasses import dataclass, field
from typing import List, Optional, Tuple, Union

Buffer = Union[bytes, bytearray]


@dataclass
class ParsedEnvelope:
    """HTTP status line and headers found at the start of a record payload."""
    status_code: int  # -1 when absent or unparseable
    headers: List[Tuple[str, str]] = field(default_factory=list)
    body_offset: int = 0
    protocol: str = ""
    reason: str = ""

    def get_header(self, name: str) -> Optional[str]:
        """First value for a header name, case-insensitive."""
        wanted = name.lower()
        for key, value in self.headers:
            if key.lower() == wanted:
                return value
        return None

    def get_all(self, name: str) -> List[str]:
        wanted = name.lower()
        return [value for key, value in self.headers if key.lower() == wanted]


@dataclass(frozen=True)
class BodyView:
    """Offset/length window into a payload. Holds no copy of the bytes."""
    payload: Buffer
    offset: int
    length: int

    def view(self) -> memoryview:
        return memoryview(self.payload)[self.offset:self.offset + self.length]

    def tobytes(self) -> bytes:
        return self.view().tobytes()

    def startswith(self, prefix: bytes) -> bool:
        return self.payload.startswith(prefix, self.offset)

    def __len__(self) -> int:
        return self.length
