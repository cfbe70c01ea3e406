"""
mcapidx - A streaming validator and record walker for MCAP files.

This package walks MCAP containers record by record without loading them
into memory:
- File-start magic validation
- Record preamble decoding with logical offset tracking
- Footer magic detection as the end-of-records sentinel
- Header record decoding (profile and library strings)
- Bounded-memory skipping of every other record body
"""

__version__ = "0.1.0"

from mcapidx.core import errors, format, header, magic, source, walker
from mcapidx.indexer import IndexResult, McapIndexer, index_bytes, index_file

__all__ = [
    "errors",
    "format",
    "header",
    "magic",
    "source",
    "walker",
    "IndexResult",
    "McapIndexer",
    "index_bytes",
    "index_file",
]
