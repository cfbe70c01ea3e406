"""
Wire format structures for MCAP streams.

This module defines the fixed byte layout of the container (magic signature,
record preamble, length-prefixed strings), the opcode classification and the
value types produced while walking a stream. Encoders are provided for
building streams in tests and fixtures.
"""

import struct
from dataclasses import dataclass
from enum import IntEnum


MAGIC = b"\x89MCAP0\r\n"
MAGIC_SIZE = len(MAGIC)

# The footer marker replaces a record preamble: 0x89 followed by MAGIC[1:]
FOOTER_LEAD_BYTE = MAGIC[0]
FOOTER_TAIL = MAGIC[1:]
FOOTER_MARKER = MAGIC

PREAMBLE_STRUCT = struct.Struct("<BQ")
PREAMBLE_SIZE = PREAMBLE_STRUCT.size
BODY_LEN_STRUCT = struct.Struct("<Q")
STRING_LEN_STRUCT = struct.Struct("<I")


class OpCode(IntEnum):
    """Record kinds. Unrecognised bytes classify as UNKNOWN."""

    HEADER = 0x01
    FOOTER = 0x02
    SCHEMA = 0x03
    CHANNEL = 0x04
    MESSAGE = 0x05
    CHUNK = 0x06
    CHUNK_INDEX = 0x07
    ATTACHMENT = 0x08
    STATISTICS = 0x09
    METADATA = 0x0A
    METADATA_INDEX = 0x0B
    SUMMARY_OFFSET = 0x0C
    SUMMARY = 0x0D
    UNKNOWN = 0xFF

    @classmethod
    def classify(cls, value: int) -> "OpCode":
        """
        Classify a raw opcode byte.

        0xFF is itself outside the known set, so it classifies as UNKNOWN
        like every other unrecognised value.
        """
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN


@dataclass(frozen=True)
class RecordDescriptor:
    """
    Position and size of one record in the stream.

    Attributes:
        opcode: Classified record kind
        opcode_byte: Raw opcode byte as read from the stream
        body_len: Declared body length in bytes
        offset: Logical offset of the opcode byte, counted from the end of
            the file-start magic
    """

    opcode: OpCode
    opcode_byte: int
    body_len: int
    offset: int

    @property
    def end_offset(self) -> int:
        """Logical offset of the byte following this record's body."""
        return self.offset + PREAMBLE_SIZE + self.body_len


@dataclass(frozen=True)
class FileHeader:
    """
    Decoded header record.

    Attributes:
        profile: Profile name the file conforms to (may be empty)
        library: Free-form identification of the writer
    """

    profile: str
    library: str


def encode_string(value: str) -> bytes:
    """Encode a u32-length-prefixed UTF-8 string."""
    encoded = value.encode("utf-8")
    return STRING_LEN_STRUCT.pack(len(encoded)) + encoded


def encode_record(opcode: int, body: bytes) -> bytes:
    """
    Encode a complete record: preamble followed by body.

    Args:
        opcode: Raw opcode byte
        body: Record body

    Returns:
        Serialized record
    """
    return PREAMBLE_STRUCT.pack(opcode, len(body)) + body


def encode_header_record(profile: str, library: str, vendor: bytes = b"") -> bytes:
    """
    Encode a header record, optionally followed by uninterpreted vendor bytes.
    """
    body = encode_string(profile) + encode_string(library) + vendor
    return encode_record(OpCode.HEADER, body)
