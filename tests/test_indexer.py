"""
Tests for the composed MCAP indexer.
"""

import os
import struct
import tempfile

import pytest

from mcapidx.core.errors import (
    InvalidMagicError,
    MalformedHeaderError,
    MissingFooterError,
    MissingHeaderError,
    TruncatedRecordError,
    WalkerStateError,
)
from mcapidx.core.format import (
    FOOTER_MARKER,
    MAGIC,
    FileHeader,
    OpCode,
    encode_header_record,
    encode_record,
    encode_string,
)
from mcapidx.core.source import BytesSource
from mcapidx.core.walker import WalkerState
from mcapidx.indexer import McapIndexer, index_bytes, index_file


def build_file(*records: bytes, profile: str = "p", library: str = "lib", footer: bool = True) -> bytes:
    return (
        MAGIC
        + encode_header_record(profile, library)
        + b"".join(records)
        + (FOOTER_MARKER if footer else b"")
    )


class TestIndexBytes:
    """Test index_bytes end to end."""

    @pytest.mark.asyncio
    async def test_header_only_file(self):
        """Test a header-only file yields the header and no records."""
        result = await index_bytes(build_file())

        assert result.header == FileHeader(profile="p", library="lib")
        assert result.records == []
        assert result.terminated_by_footer
        assert result.end_offset == 9 + 12 + 8

    @pytest.mark.asyncio
    async def test_records_after_header(self):
        """Test records after the header are listed with offsets."""
        data = build_file(
            encode_record(OpCode.SCHEMA, b"s" * 5),
            encode_record(OpCode.CHANNEL, b"c" * 7),
            encode_record(OpCode.MESSAGE, b"m" * 11),
            encode_record(OpCode.MESSAGE, b"n" * 13),
            encode_record(0x42, b"?"),
        )

        result = await index_bytes(data, chunk_size=4)

        header_end = 9 + 12
        assert [r.offset for r in result.records] == [
            header_end,
            header_end + 14,
            header_end + 14 + 16,
            header_end + 14 + 16 + 20,
            header_end + 14 + 16 + 20 + 22,
        ]
        assert result.counts_by_opcode() == {
            "SCHEMA": 1,
            "CHANNEL": 1,
            "MESSAGE": 2,
            "UNKNOWN": 1,
        }
        assert result.total_body_bytes() == 5 + 7 + 11 + 13 + 1

    @pytest.mark.asyncio
    async def test_missing_footer_tolerated(self):
        """Test files ending without footer are indexed and flagged."""
        result = await index_bytes(build_file(encode_record(OpCode.MESSAGE, b"m"), footer=False))

        assert len(result.records) == 1
        assert not result.terminated_by_footer

    @pytest.mark.asyncio
    async def test_missing_footer_strict(self):
        """Test strict mode rejects files without footer."""
        with pytest.raises(MissingFooterError):
            await index_bytes(build_file(footer=False), require_footer=True)

    @pytest.mark.asyncio
    async def test_invalid_magic(self):
        """Test a wrong signature fails before any record is read."""
        with pytest.raises(InvalidMagicError):
            await index_bytes(b"NOTMCAP!" + build_file()[8:])

    @pytest.mark.asyncio
    async def test_first_record_not_header(self):
        """Test a first record of another kind raises MissingHeaderError."""
        data = MAGIC + encode_record(OpCode.MESSAGE, b"m") + FOOTER_MARKER

        with pytest.raises(MissingHeaderError, match="MESSAGE"):
            await index_bytes(data)

    @pytest.mark.asyncio
    async def test_no_records_at_all(self):
        """Test magic followed by footer has no header to decode."""
        with pytest.raises(MissingHeaderError):
            await index_bytes(MAGIC + FOOTER_MARKER)

    @pytest.mark.asyncio
    async def test_malformed_header(self):
        """Test a header with an overdrawn string length fails."""
        body = b"\x01\x00\x00\x00p\xff\x00\x00\x00lib"
        data = MAGIC + encode_record(OpCode.HEADER, body) + FOOTER_MARKER

        with pytest.raises(MalformedHeaderError):
            await index_bytes(data)

    @pytest.mark.asyncio
    async def test_truncated_final_record(self):
        """Test a record cut short by end of input fails."""
        data = build_file(encode_record(OpCode.CHUNK, b"x" * 50), footer=False)[:-10]

        with pytest.raises(TruncatedRecordError):
            await index_bytes(data)


class TestMcapIndexer:
    """Test McapIndexer incremental use."""

    @pytest.mark.asyncio
    async def test_read_header_then_iterate(self):
        """Test the header is available before iterating records."""
        data = build_file(encode_record(OpCode.MESSAGE, b"m"), profile="ros2", library="w")
        indexer = McapIndexer(BytesSource(data))

        header = await indexer.read_header()

        assert header == FileHeader(profile="ros2", library="w")
        assert await indexer.read_header() is header

        records = [record async for record in indexer.iter_records()]

        assert len(records) == 1
        assert records[0].offset == 9 + 4 + 4 + 4 + 1

    @pytest.mark.asyncio
    async def test_iter_records_reads_header_implicitly(self):
        """Test iterating without read_header() still decodes the header."""
        indexer = McapIndexer(BytesSource(build_file(encode_record(OpCode.METADATA, b""))))

        records = [record async for record in indexer.iter_records()]

        assert indexer.header == FileHeader(profile="p", library="lib")
        assert [r.opcode for r in records] == [OpCode.METADATA]

    @pytest.mark.asyncio
    async def test_failed_header_is_not_retried(self):
        """Test a second read_header() after a failure does not re-read the magic."""
        data = MAGIC + encode_record(OpCode.MESSAGE, b"m") + FOOTER_MARKER
        indexer = McapIndexer(BytesSource(data))

        with pytest.raises(MissingHeaderError):
            await indexer.read_header()

        assert indexer.walker.state is WalkerState.FAULTED
        with pytest.raises(WalkerStateError):
            await indexer.read_header()
        with pytest.raises(WalkerStateError):
            await indexer.walker.skip_body(indexer.walker.current)

    @pytest.mark.asyncio
    async def test_malformed_header_faults_walker(self):
        """Test records after a malformed header cannot be walked."""
        body = encode_string("p") + struct.pack("<I", 0xff) + b"ab"
        data = MAGIC + encode_record(OpCode.HEADER, body) + encode_record(OpCode.MESSAGE, b"x")
        indexer = McapIndexer(BytesSource(data))

        with pytest.raises(MalformedHeaderError):
            await indexer.read_header()

        assert indexer.walker.state is WalkerState.FAULTED
        with pytest.raises(WalkerStateError):
            await indexer.walker.next()


class TestIndexFile:
    """Test index_file over a file on disk."""

    @pytest.mark.asyncio
    async def test_index_file(self):
        """Test indexing a file through FileSource."""
        data = build_file(
            encode_record(OpCode.ATTACHMENT, os.urandom(200_000)),
            encode_record(OpCode.STATISTICS, b"stats"),
        )
        with tempfile.NamedTemporaryFile(delete=False, mode='wb', suffix=".mcap") as f:
            f.write(data)
            filepath = f.name

        try:
            result = await index_file(filepath, chunk_size=8192)

            assert [r.opcode for r in result.records] == [OpCode.ATTACHMENT, OpCode.STATISTICS]
            assert result.records[1].offset == 21 + 9 + 200_000
            assert result.end_offset == len(data) - len(MAGIC)

        finally:
            os.unlink(filepath)
