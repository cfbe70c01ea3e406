"""
Header record decoding.

The header body holds two mandatory length-prefixed strings, `profile` then
`library`. Anything after them is vendor data and is discarded unread.
"""

from typing import Protocol

from mcapidx.core.errors import FormatError, InvalidUtf8Error, MalformedHeaderError
from mcapidx.core.format import STRING_LEN_STRUCT, FileHeader
from mcapidx.core.walker import RecordWalker

_DISCARD_CHUNK = 64 * 1024


class ExactReader(Protocol):
    """Anything that can read an exact number of bytes (a walker or a source)."""

    async def read_exactly(self, size: int) -> bytes:
        ...


async def _read_string(reader: ExactReader, field: str, remaining: int) -> tuple[str, int]:
    """
    Read one length-prefixed string against a byte budget.

    Returns:
        Tuple of (decoded string, budget left afterwards)
    """
    if remaining < STRING_LEN_STRUCT.size:
        raise MalformedHeaderError(
            f"Header field {field!r} length prefix needs {STRING_LEN_STRUCT.size} "
            f"bytes, only {remaining} left in body"
        )
    (length,) = STRING_LEN_STRUCT.unpack(await reader.read_exactly(STRING_LEN_STRUCT.size))
    remaining -= STRING_LEN_STRUCT.size

    if length > remaining:
        raise MalformedHeaderError(
            f"Header field {field!r} declares {length} bytes, "
            f"only {remaining} left in body"
        )
    raw = await reader.read_exactly(length)
    remaining -= length

    try:
        return raw.decode("utf-8"), remaining
    except UnicodeDecodeError as e:
        raise InvalidUtf8Error(field) from e


async def decode_header(reader: ExactReader, body_len: int) -> FileHeader:
    """
    Decode a header record body in place.

    Must only be called for the first record of a stream, after checking
    that its opcode is HEADER. Pass the RecordWalker itself as `reader` so
    the bytes are accounted against the walker's offset; a walker is
    faulted if the body turns out to be malformed.

    Args:
        reader: Reader positioned at the start of the header body
        body_len: Declared body length of the header record

    Returns:
        Decoded FileHeader

    Raises:
        MalformedHeaderError: A field overdraws the body length
        InvalidUtf8Error: A field is not valid UTF-8
    """
    remaining = body_len

    try:
        profile, remaining = await _read_string(reader, "profile", remaining)
        library, remaining = await _read_string(reader, "library", remaining)

        # Vendor fields
        while remaining > 0:
            step = min(remaining, _DISCARD_CHUNK)
            await reader.read_exactly(step)
            remaining -= step
    except FormatError:
        if isinstance(reader, RecordWalker):
            reader.fault()
        raise

    return FileHeader(profile=profile, library=library)
