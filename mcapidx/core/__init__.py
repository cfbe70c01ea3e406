"""
Core MCAP stream decoding.

This package provides the streaming primitives:
- Byte sources over memory, asyncio streams and files
- Magic validation
- The record walker
- Header record decoding
"""

from mcapidx.core.errors import (
    FormatError,
    InvalidMagicError,
    InvalidUtf8Error,
    MalformedHeaderError,
    MissingFooterError,
    MissingHeaderError,
    TruncatedRecordError,
    UnexpectedEofError,
    UnexpectedFooterMagicError,
    WalkerStateError,
)
from mcapidx.core.format import (
    FOOTER_MARKER,
    MAGIC,
    FileHeader,
    OpCode,
    RecordDescriptor,
    encode_header_record,
    encode_record,
    encode_string,
)
from mcapidx.core.header import decode_header
from mcapidx.core.magic import validate_magic
from mcapidx.core.source import ByteSource, BytesSource, FileSource, StreamReaderSource
from mcapidx.core.walker import DEFAULT_CHUNK_SIZE, RecordWalker, WalkerState

__all__ = [
    # Errors
    "FormatError",
    "InvalidMagicError",
    "InvalidUtf8Error",
    "MalformedHeaderError",
    "MissingFooterError",
    "MissingHeaderError",
    "TruncatedRecordError",
    "UnexpectedEofError",
    "UnexpectedFooterMagicError",
    "WalkerStateError",
    # Format
    "FOOTER_MARKER",
    "MAGIC",
    "FileHeader",
    "OpCode",
    "RecordDescriptor",
    "encode_header_record",
    "encode_record",
    "encode_string",
    # Decoding
    "decode_header",
    "validate_magic",
    "ByteSource",
    "BytesSource",
    "FileSource",
    "StreamReaderSource",
    "DEFAULT_CHUNK_SIZE",
    "RecordWalker",
    "WalkerState",
]
