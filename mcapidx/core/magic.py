"""File-start signature validation."""

from mcapidx.core.errors import InvalidMagicError
from mcapidx.core.format import MAGIC, MAGIC_SIZE
from mcapidx.core.source import ByteSource


async def validate_magic(source: ByteSource) -> None:
    """
    Validate the MCAP file-start magic.

    Must be the first operation on a fresh source. The 8 signature bytes are
    consumed whether or not they match.

    Args:
        source: Byte source positioned at the start of the file

    Raises:
        UnexpectedEofError: If fewer than 8 bytes are available
        InvalidMagicError: If the bytes are not the MCAP signature
    """
    observed = await source.read_exactly(MAGIC_SIZE)
    if observed != MAGIC:
        raise InvalidMagicError(observed)
