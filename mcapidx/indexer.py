"""
Record indexing over a complete MCAP stream.

Composes the core components in their required order:
magic validation, header record, then every remaining record up to the
footer marker.
"""

from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import AsyncIterator, Dict, List, Optional, Union

from mcapidx.core.errors import FormatError, MissingHeaderError, WalkerStateError
from mcapidx.core.format import FileHeader, OpCode, RecordDescriptor
from mcapidx.core.header import decode_header
from mcapidx.core.magic import validate_magic
from mcapidx.core.source import ByteSource, BytesSource, FileSource
from mcapidx.core.walker import DEFAULT_CHUNK_SIZE, RecordWalker
from mcapidx.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class IndexResult:
    """
    Outcome of a full walk.

    Attributes:
        header: Decoded header record
        records: Every record after the header, in stream order
        terminated_by_footer: True if the footer marker was seen, False if
            input simply ended
        end_offset: Logical offset after the last byte consumed
    """

    header: FileHeader
    records: List[RecordDescriptor] = field(default_factory=list)
    terminated_by_footer: bool = False
    end_offset: int = 0

    def counts_by_opcode(self) -> Dict[str, int]:
        """Count records per opcode name, unknown opcodes grouped together."""
        return dict(Counter(record.opcode.name for record in self.records))

    def total_body_bytes(self) -> int:
        return sum(record.body_len for record in self.records)


class McapIndexer:
    """
    Walks one MCAP stream and collects its record layout.

    The indexer owns its walker; a source must not be shared with another
    reader while indexing is in progress.
    """

    def __init__(
        self,
        source: ByteSource,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        require_footer: bool = False,
    ):
        self.source = source
        self.walker = RecordWalker(
            source,
            chunk_size=chunk_size,
            require_footer=require_footer,
        )
        self.header: Optional[FileHeader] = None
        self._header_started = False

    async def read_header(self) -> FileHeader:
        """
        Validate the magic and decode the header record.

        Raises:
            InvalidMagicError: Not an MCAP stream
            MissingHeaderError: First record absent or not a header
            WalkerStateError: A previous attempt failed
        """
        if self.header is not None:
            return self.header
        if self._header_started:
            raise WalkerStateError("Header read already failed on this stream")
        self._header_started = True

        try:
            await validate_magic(self.source)

            first = await self.walker.next()
            if first is None:
                raise MissingHeaderError("Stream has no records, expected a header record")
            if first.opcode is not OpCode.HEADER:
                raise MissingHeaderError(
                    f"First record is {first.opcode.name} (0x{first.opcode_byte:02x}), "
                    f"expected HEADER"
                )

            self.header = await decode_header(self.walker, first.body_len)
        except FormatError:
            self.walker.fault()
            raise

        logger.debug(
            "Decoded file header",
            profile=self.header.profile,
            library=self.header.library,
            body_len=first.body_len,
        )
        return self.header

    async def iter_records(self) -> AsyncIterator[RecordDescriptor]:
        """
        Yield every record after the header.

        The header is read first if it has not been already. Bodies the
        consumer does not read are skipped before the next record.
        """
        await self.read_header()
        async for record in self.walker:
            yield record

    async def run(self) -> IndexResult:
        """
        Walk the whole stream.

        Returns:
            IndexResult with the header and all record descriptors

        Raises:
            FormatError: On any malformed or truncated input
        """
        try:
            records = [record async for record in self.iter_records()]
        except FormatError as e:
            logger.error(
                "Failed to index stream",
                offset=self.walker.offset,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise

        result = IndexResult(
            header=self.header,
            records=records,
            terminated_by_footer=self.walker.terminated_by_footer,
            end_offset=self.walker.offset,
        )

        logger.info(
            "Indexed stream",
            records=len(records),
            end_offset=result.end_offset,
            terminated_by_footer=result.terminated_by_footer,
        )
        return result


async def index_file(
    path: Union[str, Path],
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    require_footer: bool = False,
) -> IndexResult:
    """
    Index an MCAP file on disk.

    Args:
        path: Path to the file
        chunk_size: Scratch buffer size for skipping bodies
        require_footer: Fail if the file ends without a footer marker

    Returns:
        IndexResult for the file
    """
    logger.info("Indexing file", path=str(path))
    async with FileSource(path, buffer_size=chunk_size) as source:
        indexer = McapIndexer(source, chunk_size=chunk_size, require_footer=require_footer)
        return await indexer.run()


async def index_bytes(
    data: bytes,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    require_footer: bool = False,
) -> IndexResult:
    """Index an MCAP stream held in memory."""
    indexer = McapIndexer(BytesSource(data), chunk_size=chunk_size, require_footer=require_footer)
    return await indexer.run()
