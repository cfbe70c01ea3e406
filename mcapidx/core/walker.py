"""
Streaming record walker.

Advances through the post-magic byte stream one record at a time without
buffering record bodies. The walker is the single owner of the logical
offset: every byte read through it, including body skips and in-place
header reads, moves the cursor.
"""

from enum import Enum
from typing import Optional

from mcapidx.core.errors import (
    FormatError,
    MissingFooterError,
    TruncatedRecordError,
    UnexpectedEofError,
    UnexpectedFooterMagicError,
    WalkerStateError,
)
from mcapidx.core.format import (
    BODY_LEN_STRUCT,
    FOOTER_LEAD_BYTE,
    FOOTER_TAIL,
    OpCode,
    RecordDescriptor,
)
from mcapidx.core.source import ByteSource
from mcapidx.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_CHUNK_SIZE = 64 * 1024


class WalkerState(Enum):
    """Walker lifecycle."""

    READY = "ready"
    RECORD_BODY = "record_body"
    ENDED = "ended"
    EXHAUSTED = "exhausted"
    FAULTED = "faulted"


_TERMINAL_STATES = (WalkerState.ENDED, WalkerState.EXHAUSTED)


class RecordWalker:
    """
    Pull-based walker over MCAP records.

    Usage:
        walker = RecordWalker(source)
        while (record := await walker.next()) is not None:
            await walker.skip_body(record)

    Every descriptor returned by next() must have its body consumed, by
    skip_body() or read_exactly(), before next() is called again.

    Attributes:
        chunk_size: Size of the scratch buffer used to skip bodies
        require_footer: Raise MissingFooterError on end of input without
            a footer marker instead of ending cleanly
    """

    def __init__(
        self,
        source: ByteSource,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        require_footer: bool = False,
    ):
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")

        self._source = source
        self._offset = 0
        self._state = WalkerState.READY
        self._current: Optional[RecordDescriptor] = None
        self._body_remaining = 0
        self._scratch = memoryview(bytearray(chunk_size))

        self.chunk_size = chunk_size
        self.require_footer = require_footer

        logger.debug(
            "Initialized record walker",
            chunk_size=chunk_size,
            require_footer=require_footer,
        )

    @property
    def offset(self) -> int:
        """Logical offset of the next unread byte."""
        return self._offset

    @property
    def state(self) -> WalkerState:
        return self._state

    @property
    def current(self) -> Optional[RecordDescriptor]:
        """Record whose body is in flight, if any."""
        return self._current

    @property
    def body_remaining(self) -> int:
        """Unconsumed bytes of the in-flight record's body."""
        return self._body_remaining

    @property
    def terminated_by_footer(self) -> bool:
        return self._state is WalkerState.ENDED

    @property
    def source(self) -> ByteSource:
        """
        Underlying byte source.

        Bytes read directly from it are invisible to the walker; report them
        with advance() or offsets will drift.
        """
        return self._source

    async def next(self) -> Optional[RecordDescriptor]:
        """
        Decode the next record preamble.

        Returns:
            The record descriptor, or None once the footer marker (or a clean
            end of input) has been reached

        Raises:
            UnexpectedFooterMagicError: 0x89 not followed by the footer tail
            TruncatedRecordError: Input ended inside the preamble
            MissingFooterError: End of input without footer, when required
            WalkerStateError: Walker faulted or previous body not consumed
        """
        if self._state in _TERMINAL_STATES:
            return None
        self._check_usable()

        if self._state is WalkerState.RECORD_BODY:
            if self._body_remaining:
                raise WalkerStateError(
                    f"Body of record at offset {self._current.offset} has "
                    f"{self._body_remaining} unconsumed bytes"
                )
            self._finish_body()

        try:
            return await self._read_preamble()
        except (FormatError, OSError):
            self._state = WalkerState.FAULTED
            raise

    async def _read_preamble(self) -> Optional[RecordDescriptor]:
        lead = await self._source.read(1)
        if not lead:
            if self.require_footer:
                raise MissingFooterError(self._offset)
            self._state = WalkerState.EXHAUSTED
            logger.debug("End of input without footer", offset=self._offset)
            return None

        opcode = lead[0]
        record_start = self._offset
        self._offset += 1

        # 0x89 is never a record opcode: it must open the footer marker
        if opcode == FOOTER_LEAD_BYTE:
            tail = await self._read_available(len(FOOTER_TAIL))
            self._offset += len(tail)
            if tail != FOOTER_TAIL:
                raise UnexpectedFooterMagicError(tail, record_start)
            self._state = WalkerState.ENDED
            logger.debug("Reached footer magic", offset=record_start)
            return None

        raw_len = await self._read_available(BODY_LEN_STRUCT.size)
        self._offset += len(raw_len)
        if len(raw_len) < BODY_LEN_STRUCT.size:
            raise TruncatedRecordError(
                record_start,
                BODY_LEN_STRUCT.size,
                len(raw_len),
                what="record preamble",
            )

        (body_len,) = BODY_LEN_STRUCT.unpack(raw_len)
        record = RecordDescriptor(
            opcode=OpCode.classify(opcode),
            opcode_byte=opcode,
            body_len=body_len,
            offset=record_start,
        )

        self._current = record
        self._body_remaining = body_len
        self._state = WalkerState.RECORD_BODY
        return record

    async def _read_available(self, size: int) -> bytes:
        """Read up to `size` bytes, returning fewer only at end of input."""
        chunk = await self._source.read(size)
        if len(chunk) == size or not chunk:
            return chunk

        buf = bytearray(chunk)
        while len(buf) < size:
            chunk = await self._source.read(size - len(buf))
            if not chunk:
                break
            buf += chunk
        return bytes(buf)

    async def skip_body(self, record: RecordDescriptor) -> None:
        """
        Consume the rest of a record's body.

        Reads in chunks through a single scratch buffer, so memory use does
        not depend on the body length.

        Args:
            record: Descriptor returned by the last call to next()

        Raises:
            TruncatedRecordError: Input ended before the declared length
            WalkerStateError: `record` is not the in-flight record
        """
        self._check_in_body(record)

        remaining = self._body_remaining
        while remaining > 0:
            window = self._scratch[: min(remaining, len(self._scratch))]
            try:
                n = await self._source.readinto(window)
            except OSError:
                self._state = WalkerState.FAULTED
                raise
            if n == 0:
                self._state = WalkerState.FAULTED
                raise TruncatedRecordError(
                    record.offset,
                    record.body_len,
                    record.body_len - remaining,
                )
            remaining -= n
            self._offset += n
            self._body_remaining = remaining

        self._finish_body()

    async def read_exactly(self, size: int) -> bytes:
        """
        Read exactly `size` bytes of the in-flight record's body.

        This is the bounded path for decoders that parse a body in place;
        the bytes count toward the body and advance the offset.

        Raises:
            TruncatedRecordError: Input ended inside the body
            WalkerStateError: No body in flight, or `size` exceeds what is left
        """
        self._check_in_body()
        if size > self._body_remaining:
            raise WalkerStateError(
                f"Read of {size} bytes exceeds remaining body of "
                f"{self._body_remaining} bytes"
            )

        record = self._current
        try:
            data = await self._source.read_exactly(size)
        except UnexpectedEofError as e:
            self._state = WalkerState.FAULTED
            raise TruncatedRecordError(
                record.offset,
                record.body_len,
                record.body_len - self._body_remaining + e.got,
            ) from e
        except OSError:
            self._state = WalkerState.FAULTED
            raise

        self._offset += size
        self._body_remaining -= size
        return data

    def advance(self, count: int) -> None:
        """
        Account for `count` body bytes read directly from the source.

        Raises:
            WalkerStateError: No body in flight, or `count` exceeds what is left
        """
        self._check_in_body()
        if count < 0 or count > self._body_remaining:
            raise WalkerStateError(
                f"Cannot advance {count} bytes with {self._body_remaining} "
                f"bytes of body remaining"
            )
        self._offset += count
        self._body_remaining -= count

    def fault(self) -> None:
        """
        Mark the walker unusable.

        For decoders that find a body malformed after reading it through
        read_exactly(); every later call raises WalkerStateError.
        """
        self._state = WalkerState.FAULTED

    def _finish_body(self) -> None:
        self._current = None
        self._body_remaining = 0
        self._state = WalkerState.READY

    def _check_usable(self) -> None:
        if self._state is WalkerState.FAULTED:
            raise WalkerStateError("Walker faulted on a previous error and cannot continue")

    def _check_in_body(self, record: Optional[RecordDescriptor] = None) -> None:
        self._check_usable()
        if self._state is not WalkerState.RECORD_BODY:
            raise WalkerStateError(f"No record body in flight (state={self._state.value})")
        if record is not None and record != self._current:
            raise WalkerStateError(
                f"Record at offset {record.offset} is not the in-flight record"
            )

    def __aiter__(self) -> "RecordWalker":
        return self

    async def __anext__(self) -> RecordDescriptor:
        """Yield the next record, skipping whatever the caller left of the last body."""
        if self._state is WalkerState.RECORD_BODY and self._body_remaining:
            await self.skip_body(self._current)

        record = await self.next()
        if record is None:
            raise StopAsyncIteration
        return record
