import gzip

import pytest

from arc_decoder.decoders.arc_file_reader import ArcFileReader
from arc_decoder.decoders.unit_source import GzipUnitSource
from arc_decoder.models.decoder_config import DecoderConfig

FILEDESC_UNIT = (
    b"filedesc://1341709173972_1004.arc.gz 0.0.0.0 20120708005942 text/plain 73\n"
    b"1 0 CommonCrawl\n"
    b"URL IP-address Archive-date Content-type Archive-length\n"
    b"\n"
)


def http_payload(body=b"<html><body>hello</body></html>", status=b"200 OK", content_type=b"text/html"):
    return (b"HTTP/1.1 " + status + b"\r\n"
            b"Content-Type: " + content_type + b"\r\n"
            b"Server: test\r\n"
            b"\r\n" + body)


def record_unit(url, payload, declared_length=None, content_type="text/html",
                ip="192.0.2.1", timestamp="20120708005942"):
    if declared_length is None:
        declared_length = len(payload)
    line = f"{url} {ip} {timestamp} {content_type} {declared_length}\n".encode("latin-1")
    return line + payload


def build_arc(units, filedesc=FILEDESC_UNIT):
    """One gzip member per unit, led by the filedesc unit."""
    members = [filedesc] if filedesc is not None else []
    members.extend(units)
    return b"".join(gzip.compress(unit) for unit in members)


@pytest.fixture
def make_http_payload():
    return http_payload


@pytest.fixture
def make_record_unit():
    return record_unit


@pytest.fixture
def make_arc():
    return build_arc


@pytest.fixture
def open_reader():
    """Open a reader over in-memory .arc.gz bytes; config keywords go to DecoderConfig."""
    readers = []

    def _open(data, **config):
        reader = ArcFileReader.open(GzipUnitSource(data), DecoderConfig(**config))
        readers.append(reader)
        return reader

    yield _open
    for reader in readers:
        reader.close()


@pytest.fixture
def sample_arc():
    """Three HTTP records, the middle one a 404."""
    return build_arc([
        record_unit("http://www.example.com/", http_payload()),
        record_unit("http://www.example.com/missing", http_payload(b"not found", b"404 Not Found", b"text/plain"),
                    content_type="text/plain"),
        record_unit("https://blog.example.org/post", http_payload(b"<html><title>Post</title></html>")),
    ])
