from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional
from urllib.parse import urlsplit

TIMESTAMP_FORMAT = "%Y%m%d%H%M%S"


@dataclass(frozen=True)
class RecordHeader:
    """ARC v1 record metadata line: URL, IP, archive date, content type, length."""
    url: str
    origin_address: str
    timestamp: str  # Raw yyyyMMddHHmmss
    declared_content_type: str
    declared_length: int

    @property
    def archive_date(self) -> Optional[datetime]:
        """Archive date as an aware UTC datetime, None if the raw value does not parse."""
        try:
            return datetime.strptime(self.timestamp, TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)
        except ValueError:
            return None

    @property
    def scheme(self) -> str:
        head, sep, _ = self.url.partition("://")
        return head.lower() if sep else ""

    @property
    def host(self) -> Optional[str]:
        try:
            host = urlsplit(self.url).hostname
        except ValueError:
            return None
        return host.lower() if host else None

    @property
    def is_http(self) -> bool:
        return self.scheme in ("http", "https")

    def to_line(self) -> str:
        return " ".join([
            self.url,
            self.origin_address,
            self.timestamp,
            self.declared_content_type,
            str(self.declared_length),
        ])


@dataclass
class ContainerHeader:
    """Contents of the leading filedesc:// unit of an ARC file."""
    filedesc: str
    version_line: str
    field_names: List[str] = field(default_factory=list)
    trailer_lines: int = 0

    @property
    def file_name(self) -> str:
        return self.filedesc.split(" ")[0][len("filedesc://"):]
