import gzip
from datetime import datetime, timezone

import pytest

from arc_decoder.decoders.header_parser import decode_line, parse_header, read_container_header
from arc_decoder.decoders.unit_source import GzipUnitSource
from arc_decoder.types.enums import SchemePolicy
from arc_decoder.types.errors import InvalidContainerHeaderError, MalformedRecordError, UnsupportedSchemeError


class TestParseHeader:
    def test_valid_header(self):
        header = parse_header("http://x.test/ 1.2.3.4 20010101000000 text/html 5")

        assert header.url == "http://x.test/"
        assert header.origin_address == "1.2.3.4"
        assert header.timestamp == "20010101000000"
        assert header.declared_content_type == "text/html"
        assert header.declared_length == 5
        assert header.to_line() == "http://x.test/ 1.2.3.4 20010101000000 text/html 5"

    def test_derived_fields(self):
        header = parse_header("https://WWW.Example.com:8080/a?b=c 1.2.3.4 20120708005942 text/html 0")

        assert header.scheme == "https"
        assert header.host == "www.example.com"
        assert header.is_http
        assert header.archive_date == datetime(2012, 7, 8, 0, 59, 42, tzinfo=timezone.utc)

    def test_unparseable_date_is_kept_raw(self):
        header = parse_header("http://x.test/ 1.2.3.4 notadate text/html 5")
        assert header.timestamp == "notadate"
        assert header.archive_date is None

    def test_trailing_crlf_stripped(self):
        header = parse_header("http://x.test/ 1.2.3.4 20010101000000 text/html 17\r\n")
        assert header.declared_length == 17

    def test_trailing_spaces_ignored(self):
        header = parse_header("http://x.test/ 1.2.3.4 20010101000000 text/html 5  \r\n")
        assert header.declared_length == 5
        assert header.declared_content_type == "text/html"

    @pytest.mark.parametrize("line", [
        "",
        "http://x.test/ 1.2.3.4 20010101000000 5",  # 4 fields
        "http://x.test/ 1.2.3.4 20010101000000 text/html 5 extra",
        "http://x.test/  1.2.3.4 20010101000000 text/html 5",  # Double space
        "http://x.test/ 1.2.3.4 20010101000000 text/html five",
        "http://x.test/ 1.2.3.4 20010101000000 text/html -1",
    ])
    def test_malformed(self, line):
        with pytest.raises(MalformedRecordError):
            parse_header(line)

    def test_non_http_scheme_warns_by_default(self, caplog):
        header = parse_header("dns:example.com 1.2.3.4 20010101000000 text/dns 10")

        assert header.url == "dns:example.com"
        assert not header.is_http
        assert "Invalid protocol" in caplog.text

    def test_non_http_scheme_rejected(self):
        with pytest.raises(UnsupportedSchemeError):
            parse_header("ftp://x.test/ 1.2.3.4 20010101000000 text/html 5", scheme_policy=SchemePolicy.REJECT)

    def test_allowed_schemes_configurable(self):
        header = parse_header("ftp://x.test/ 1.2.3.4 20010101000000 text/html 5",
                              scheme_policy=SchemePolicy.REJECT,
                              allowed_schemes=("ftp://",))
        assert header.scheme == "ftp"

    def test_decode_line(self):
        assert decode_line(b"abc\r\n") == "abc"
        assert decode_line(b"caf\xe9\n") == "café"


class TestReadContainerHeader:
    def _source(self, *units):
        return GzipUnitSource(b"".join(gzip.compress(unit) for unit in units))

    def test_valid_container_header(self):
        source = self._source(
            b"filedesc://1341709173972_1004.arc.gz 0.0.0.0 20120708005942 text/plain 73\n"
            b"1 0 CommonCrawl\n"
            b"URL IP-address Archive-date Content-type Archive-length\n"
            b"\n",
            b"next unit\n",
        )

        container = read_container_header(source)

        assert container.file_name == "1341709173972_1004.arc.gz"
        assert container.version_line == "1 0 CommonCrawl"
        assert container.field_names == ["URL", "IPADDRESS", "ARCHIVEDATE", "CONTENTTYPE", "ARCHIVELENGTH"]
        assert container.trailer_lines == 0
        assert source.at_boundary
        assert source.read_line() == b"next unit\n"

    def test_missing_filedesc(self):
        source = self._source(b"http://x.test/ 1.2.3.4 20010101000000 text/html 5\nabcde")
        with pytest.raises(InvalidContainerHeaderError):
            read_container_header(source)

    def test_empty_input(self):
        with pytest.raises(InvalidContainerHeaderError):
            read_container_header(GzipUnitSource(b""))

    def test_truncated_header(self):
        source = self._source(b"filedesc://a.arc 0.0.0.0 20120708005942 text/plain 73\n1 0 CommonCrawl\n")
        with pytest.raises(InvalidContainerHeaderError):
            read_container_header(source)

    def test_trailer_lines_tolerated(self, caplog):
        source = self._source(
            b"filedesc://a.arc 0.0.0.0 20120708005942 text/plain 73\n"
            b"1 0 CommonCrawl\n"
            b"URL IP-address Archive-date Content-type Archive-length\n"
            b"\n"
            b"<arcmetadata>\n"
            b"</arcmetadata>\n"
        )

        container = read_container_header(source)

        assert container.trailer_lines == 2
        assert "extra lines" in caplog.text

    def test_too_many_trailer_lines(self):
        trailer = b"".join(b"extra %d\n" % i for i in range(5))
        source = self._source(
            b"filedesc://a.arc 0.0.0.0 20120708005942 text/plain 73\n"
            b"1 0 CommonCrawl\n"
            b"URL IP-address Archive-date Content-type Archive-length\n"
            b"\n" + trailer
        )
        with pytest.raises(InvalidContainerHeaderError):
            read_container_header(source)
