import gzip
import os

import pytest

from arc_decoder.decoders.unit_source import GzipUnitSource
from arc_decoder.types.errors import CorruptUnitError


class TestGzipUnitSource:
    @pytest.fixture
    def two_units(self):
        return gzip.compress(b"first line\nsecond line\nend") + gzip.compress(b"other unit\n")

    def test_starts_at_zero(self, two_units):
        source = GzipUnitSource(two_units)
        assert source.bytes_consumed == 0
        assert source.total_length == len(two_units)
        assert source.at_boundary

    def test_read_line_keeps_newline(self, two_units):
        source = GzipUnitSource(two_units)
        assert source.read_line() == b"first line\n"
        assert source.read_line() == b"second line\n"
        assert source.read_line() == b"end"
        assert source.read_line() == b""

    def test_read_does_not_cross_units(self, two_units):
        source = GzipUnitSource(two_units)
        assert source.read(1000) == b"first line\nsecond line\nend"
        assert source.read(10) == b""

        source.next_unit()
        assert source.read(1000) == b"other unit\n"

    def test_read_line_none_at_end_of_input(self, two_units):
        source = GzipUnitSource(two_units)
        source.read_line()
        source.next_unit()
        source.read_line()
        source.next_unit()
        assert source.read_line() is None
        assert source.at_end

    def test_bytes_consumed_exact_per_member(self, two_units):
        first_size = len(gzip.compress(b"first line\nsecond line\nend"))
        source = GzipUnitSource(two_units)
        source.read_line()
        source.next_unit()
        assert source.bytes_consumed == first_size

        source.read_line()
        source.next_unit()
        assert source.bytes_consumed == len(two_units)

    def test_skip_unit_reports_dropped_bytes(self, two_units):
        source = GzipUnitSource(two_units)
        source.read(6)
        assert source.skip_unit() == len(b"first line\nsecond line\nend") - 6
        assert source.skip_unit() == 0
        assert not source.at_boundary

        source.next_unit()
        assert source.at_boundary

    def test_next_unit_idempotent_at_boundary(self, two_units):
        source = GzipUnitSource(two_units)
        source.next_unit()
        source.next_unit()
        assert source.bytes_consumed == 0
        assert source.read_line() == b"first line\n"

    def test_large_unit_small_chunks(self):
        lines = [f"line {i:05d}\n".encode() for i in range(5000)]
        data = gzip.compress(b"".join(lines))
        source = GzipUnitSource(data, chunk_size=1)  # Clamped to the minimum

        read_back = []
        line = source.read_line()
        while line:
            read_back.append(line)
            line = source.read_line()

        assert read_back == lines
        source.next_unit()
        assert source.bytes_consumed == len(data)

    def test_corrupt_member(self):
        source = GzipUnitSource(b"this is not a gzip member at all")
        with pytest.raises(CorruptUnitError):
            source.read(10)

    def test_truncated_member_ends_unit(self):
        original = os.urandom(4000)
        data = gzip.compress(original)
        source = GzipUnitSource(data[:len(data) // 2])
        partial = source.read(8000)
        assert len(partial) < len(original)
        assert original.startswith(partial)
        assert source.read(10) == b""

    def test_from_path_and_close(self, tmp_path, two_units):
        path = tmp_path / "sample.arc.gz"
        path.write_bytes(two_units)

        source = GzipUnitSource.from_path(path)
        assert source.read_line() == b"first line\n"
        source.close()
        source.close()

        with pytest.raises(ValueError):
            source.read(10)

    def test_from_path_empty_file(self, tmp_path):
        path = tmp_path / "empty.arc.gz"
        path.write_bytes(b"")

        source = GzipUnitSource.from_path(path)
        assert source.total_length == 0
        assert source.read_line() is None
        source.close()
