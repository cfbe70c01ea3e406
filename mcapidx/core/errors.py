"""
Failure taxonomy for MCAP stream decoding.

Every error raised here is terminal for the walk that produced it. There is
no resynchronisation: a corrupt or truncated stream surfaces to the caller
immediately.
"""


class FormatError(ValueError):
    """Base class for malformed or truncated MCAP input."""
    pass


class UnexpectedEofError(FormatError):
    """Raised when input ends inside a mandatory field."""

    def __init__(self, expected: int, got: int):
        super().__init__(f"Unexpected end of input: expected {expected} bytes, got {got}")
        self.expected = expected
        self.got = got


class InvalidMagicError(FormatError):
    """Raised when the file-start signature does not match."""

    def __init__(self, observed: bytes):
        super().__init__(f"Invalid MCAP magic header: got {observed.hex(' ')}")
        self.observed = observed


class UnexpectedFooterMagicError(FormatError):
    """Raised when a 0x89 opcode byte is not followed by the footer magic tail."""

    def __init__(self, observed: bytes, offset: int):
        super().__init__(
            f"Unexpected 0x89 at offset {offset}, not footer magic: "
            f"tail was {observed.hex(' ') or '<empty>'}"
        )
        self.observed = observed
        self.offset = offset


class TruncatedRecordError(FormatError):
    """Raised when a record preamble or body ends before its declared length."""

    def __init__(self, offset: int, expected: int, consumed: int, what: str = "record body"):
        super().__init__(
            f"Truncated {what} for record at offset {offset}: "
            f"expected {expected} bytes, got {consumed}"
        )
        self.offset = offset
        self.expected = expected
        self.consumed = consumed


class MalformedHeaderError(FormatError):
    """Raised when a header field's declared length overdraws the record body."""
    pass


class InvalidUtf8Error(FormatError):
    """Raised when a header string is not valid UTF-8."""

    def __init__(self, field: str):
        super().__init__(f"Header field {field!r} contains invalid UTF-8")
        self.field = field


class MissingHeaderError(FormatError):
    """Raised when the first record is absent or is not a header record."""
    pass


class MissingFooterError(FormatError):
    """Raised in strict mode when input ends without a footer marker."""

    def __init__(self, offset: int):
        super().__init__(f"End of input at offset {offset} without footer magic")
        self.offset = offset


class WalkerStateError(RuntimeError):
    """Raised when a walker is used after it ended or faulted, or out of order."""
    pass
