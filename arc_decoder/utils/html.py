import logging
import re
from typing import List, Optional

from bs4 import BeautifulSoup

from arc_decoder.models.record import Record

logger = logging.getLogger(__name__)

DEFAULT_CHARSET = "ISO-8859-1"

_CHARSET = re.compile(r"charset\s*=\s*[\"']?([^\s;\"']+)", re.IGNORECASE)


def get_charset(content_type: Optional[str], default: str = DEFAULT_CHARSET) -> str:
    """Charset named by a Content-Type value, or the default."""
    if content_type:
        match = _CHARSET.search(content_type)
        if match:
            return match.group(1)
    return default


def parse_html(record: Record) -> Optional[BeautifulSoup]:
    """Parse the HTTP body of an HTML record into a document tree.

    Returns None (and logs why) when the record is not HTML or its
    HTTP envelope cannot be parsed.
    """
    header = record.header
    if header is None:
        logger.error("Unable to parse HTML: record header has not been set")
        return None
    if "html" not in header.declared_content_type.lower():
        logger.debug("Not parsing HTML: content type is %s (%s)", header.declared_content_type, header.url)
        return None

    body = record.body
    if body is None:
        logger.error("Unable to parse HTML: HTTP envelope not found (%s)", header.url)
        return None

    envelope = record.envelope
    charset = get_charset(envelope.get_header("Content-Type"))

    return BeautifulSoup(body.tobytes(), "html.parser", from_encoding=charset)


def extract_links(record: Record) -> List[str]:
    """href targets of the anchors in an HTML record, in document order."""
    soup = parse_html(record)
    if soup is None:
        return []
    return [a["href"].strip() for a in soup.find_all("a", href=True) if a["href"].strip()]


def extract_title(record: Record) -> Optional[str]:
    soup = parse_html(record)
    if soup is None or soup.title is None or soup.title.string is None:
        return None
    return soup.title.string.strip()
