import logging
import mmap
import os
import zlib
from abc import ABC, abstractmethod
from typing import Optional, Union

from arc_decoder.types.errors import CorruptUnitError

GZIP_WBITS = 16 + zlib.MAX_WBITS


class ByteUnitSource(ABC):
    """Sequential bytes from a succession of independently decodable units.

    Reads never cross a unit boundary: once the current unit is exhausted,
    read() returns b"" until next_unit() is called.
    """

    @abstractmethod
    def read(self, n: int) -> bytes:
        ...

    @abstractmethod
    def read_line(self) -> Optional[bytes]:
        """Bytes up to and including the next LF in the current unit.

        Like file.readline(), the last line of a unit may lack its LF.
        Returns b"" at the end of the current unit and None at the end of input.
        """

    @abstractmethod
    def skip_unit(self) -> int:
        """Discard the rest of the current unit, returning the number of bytes dropped."""

    @abstractmethod
    def next_unit(self) -> None:
        ...

    @property
    @abstractmethod
    def bytes_consumed(self) -> int:
        ...

    @property
    @abstractmethod
    def total_length(self) -> int:
        ...

    @property
    @abstractmethod
    def at_boundary(self) -> bool:
        ...

    def close(self) -> None:
        pass


class GzipUnitSource(ByteUnitSource):
    """Gzip member reader for .arc.gz files. One member is one unit.

    Unlike gzip.GzipFile this does not read through members automatically:
    each member gets a fresh decompressor, and the compressed position is
    tracked exactly so that progress reaches 1.0 at the end of the last member.
    """
    DEFAULT_CHUNK_SIZE = 64 * 1024
    MIN_CHUNK_SIZE = 1024

    def __init__(self, data: Union[bytes, bytearray, memoryview, mmap.mmap], chunk_size: int = DEFAULT_CHUNK_SIZE):
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")
        self._data = data
        self._size = len(data)
        self._chunk_size = max(chunk_size, self.MIN_CHUNK_SIZE)
        self._file = None
        self._closed = False

        self._in_pos = 0
        self._decompressor = None  # None means we sit on a unit boundary
        self._member_done = False
        self._out = bytearray()
        self._out_pos = 0

    @classmethod
    def from_path(cls, file_path: Union[str, os.PathLike], chunk_size: int = DEFAULT_CHUNK_SIZE) -> "GzipUnitSource":
        """Memory-map a file on disk."""
        file = open(file_path, 'rb')
        try:
            if os.fstat(file.fileno()).st_size == 0:
                data = b""
            else:
                data = mmap.mmap(file.fileno(), 0, access=mmap.ACCESS_READ)
        except OSError:
            file.close()
            raise
        source = cls(data, chunk_size=chunk_size)
        source._file = file
        return source

    # ========== POSITION ==========

    @property
    def bytes_consumed(self) -> int:
        return self._in_pos

    @property
    def total_length(self) -> int:
        return self._size

    @property
    def at_boundary(self) -> bool:
        return self._decompressor is None

    @property
    def at_end(self) -> bool:
        return self._decompressor is None and self._in_pos >= self._size

    # ========== DECOMPRESSION ==========

    def _start_member(self) -> bool:
        if self._in_pos >= self._size:
            return False
        self._decompressor = zlib.decompressobj(GZIP_WBITS)
        self._member_done = False
        return True

    def _fill(self) -> bool:
        """Decompress one more chunk of the current member. False when the member is exhausted."""
        if self._closed:
            raise ValueError("I/O operation on closed unit source")
        if self._decompressor is None and not self._start_member():
            return False
        if self._member_done:
            return False

        if self._in_pos >= self._size:
            # Input ended in the middle of a member
            self.logger.warning("Input ended inside a compressed unit at position %d", self._in_pos)
            self._member_done = True
            return False

        chunk = self._data[self._in_pos:self._in_pos + self._chunk_size]
        try:
            output = self._decompressor.decompress(chunk)
        except zlib.error as e:
            raise CorruptUnitError(f"Corrupt compressed unit at input position {self._in_pos}: {e}") from e

        if self._decompressor.eof:
            self._in_pos += len(chunk) - len(self._decompressor.unused_data)
            self._member_done = True
        else:
            self._in_pos += len(chunk)

        if output:
            if self._out_pos:
                del self._out[:self._out_pos]
                self._out_pos = 0
            self._out.extend(output)
        return True

    def _available(self) -> int:
        return len(self._out) - self._out_pos

    # ========== READING ==========

    def read(self, n: int) -> bytes:
        if n <= 0:
            return b""
        while self._available() < n and self._fill():
            pass
        end = self._out_pos + min(n, self._available())
        result = bytes(self._out[self._out_pos:end])
        self._out_pos = end
        return result

    def read_line(self) -> Optional[bytes]:
        if self._decompressor is None and not self._start_member():
            return None

        search_from = self._out_pos
        while True:
            newline = self._out.find(b"\n", search_from)
            if newline != -1:
                line = bytes(self._out[self._out_pos:newline + 1])
                self._out_pos = newline + 1
                return line
            search_from = len(self._out)
            before = self._out_pos
            if not self._fill():
                break
            # _fill may compact the buffer
            search_from -= before - self._out_pos

        line = bytes(self._out[self._out_pos:])
        self._out_pos = len(self._out)
        return line

    def skip_unit(self) -> int:
        if self._decompressor is None:
            return 0
        skipped = self._available()
        self._out_pos = len(self._out)
        while self._fill():
            skipped += self._available()
            self._out_pos = len(self._out)
        return skipped

    def next_unit(self) -> None:
        if self._decompressor is None:
            return
        skipped = self.skip_unit()
        if skipped:
            self.logger.debug("Discarded %d bytes before advancing to next unit", skipped)
        self._decompressor = None
        self._member_done = False
        self._out = bytearray()
        self._out_pos = 0

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._out = bytearray()
        self._out_pos = 0
        if isinstance(self._data, mmap.mmap):
            self._data.close()
        if self._file is not None:
            self._file.close()
            self._file = None
        self._data = b""
