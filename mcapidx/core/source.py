"""
Async byte sources consumed by the record walker.

A source only has to support forward reads: "read up to N bytes" (an empty
result means clean end of input) and "read exactly N bytes" (which fails on a
short read). No seeking is required.
"""

import asyncio
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import BinaryIO, Optional, Union

from mcapidx.core.errors import UnexpectedEofError
from mcapidx.utils.logging import get_logger

logger = get_logger(__name__)


class ByteSource(ABC):
    """Forward-only async byte stream."""

    @abstractmethod
    async def read(self, size: int) -> bytes:
        """
        Read up to `size` bytes.

        Args:
            size: Maximum number of bytes to return

        Returns:
            Between 1 and `size` bytes, or b"" at clean end of input
        """

    async def read_exactly(self, size: int) -> bytes:
        """
        Read exactly `size` bytes.

        Args:
            size: Number of bytes required

        Returns:
            Exactly `size` bytes

        Raises:
            UnexpectedEofError: If input ends first
        """
        if size == 0:
            return b""

        chunk = await self.read(size)
        if len(chunk) == size:
            return chunk

        buf = bytearray(chunk)
        while len(buf) < size:
            if not chunk:
                raise UnexpectedEofError(size, len(buf))
            chunk = await self.read(size - len(buf))
            buf += chunk
        return bytes(buf)

    async def readinto(self, buf: memoryview) -> int:
        """
        Read up to len(buf) bytes into a caller-owned buffer.

        Args:
            buf: Writable buffer to fill

        Returns:
            Number of bytes written, 0 at clean end of input
        """
        chunk = await self.read(len(buf))
        n = len(chunk)
        buf[:n] = chunk
        return n

    async def close(self) -> None:
        """Release underlying resources."""

    async def __aenter__(self) -> "ByteSource":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


class BytesSource(ByteSource):
    """Byte source over an in-memory buffer."""

    def __init__(self, data: bytes, max_read: Optional[int] = None):
        """
        Args:
            data: Buffer to serve
            max_read: Cap on bytes returned per read, to simulate short reads
        """
        self._view = memoryview(data)
        self._pos = 0
        self._max_read = max_read

    @property
    def position(self) -> int:
        return self._pos

    async def read(self, size: int) -> bytes:
        if self._max_read is not None:
            size = min(size, self._max_read)
        chunk = self._view[self._pos : self._pos + size]
        self._pos += len(chunk)
        return bytes(chunk)


class StreamReaderSource(ByteSource):
    """Byte source over an asyncio StreamReader (sockets, pipes)."""

    def __init__(self, reader: asyncio.StreamReader):
        self.reader = reader

    async def read(self, size: int) -> bytes:
        return await self.reader.read(size)

    async def read_exactly(self, size: int) -> bytes:
        try:
            return await self.reader.readexactly(size)
        except asyncio.IncompleteReadError as e:
            raise UnexpectedEofError(size, len(e.partial)) from e


class FileSource(ByteSource):
    """
    Byte source over a file on disk.

    Disk I/O is inherently blocking, so reads run in a thread pool and the
    event loop only awaits their completion.
    """

    def __init__(
        self,
        path: Union[str, Path],
        buffer_size: int = 64 * 1024,
        executor: Optional[ThreadPoolExecutor] = None,
    ):
        """
        Initialize a file source.

        Args:
            path: Path to the file
            buffer_size: Read buffer size of the underlying file object
            executor: Thread pool for blocking reads. If None, a single-thread
                pool is created and owned by this source.
        """
        self.path = Path(path)
        self.buffer_size = buffer_size
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=1,
            thread_name_prefix="mcapidx-io",
        )
        self._file: Optional[BinaryIO] = None

    async def open(self) -> None:
        """Open the file for reading."""
        if self._file is not None:
            return

        loop = asyncio.get_running_loop()
        self._file = await loop.run_in_executor(
            self._executor,
            lambda: open(self.path, "rb", buffering=self.buffer_size),
        )
        logger.debug("Opened file source", path=str(self.path))

    async def read(self, size: int) -> bytes:
        if self._file is None:
            await self.open()

        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, self._file.read, size)

    async def readinto(self, buf: memoryview) -> int:
        if self._file is None:
            await self.open()

        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, self._file.readinto, buf)

    async def close(self) -> None:
        if self._file is not None:
            self._file.close()
            self._file = None
            logger.debug("Closed file source", path=str(self.path))

        if self._owns_executor:
            self._executor.shutdown(wait=True)

    async def __aenter__(self) -> "FileSource":
        try:
            await self.open()
        except OSError:
            await self.close()
            raise
        return self
