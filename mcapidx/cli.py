#!/usr/bin/env python3
"""
Command-line entry point for indexing MCAP files.

Usage:
    # List every record
    mcapidx recording.mcap

    # Per-opcode summary, failing on files without a footer
    mcapidx recording.mcap --summary --require-footer
"""

import argparse
import asyncio
import sys
from collections import Counter
from typing import List, Optional

import yaml

from mcapidx.core.errors import FormatError
from mcapidx.core.format import RecordDescriptor
from mcapidx.core.source import FileSource
from mcapidx.indexer import McapIndexer
from mcapidx.utils.config import get_config
from mcapidx.utils.logging import configure_logging, get_logger

logger = get_logger(__name__)


def positive_int(value: str) -> int:
    """argparse type for sizes that must be at least 1."""
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid int value: {value!r}")
    if number <= 0:
        raise argparse.ArgumentTypeError(f"must be positive, got {number}")
    return number


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog='mcapidx',
        description='Streaming MCAP record indexer'
    )

    parser.add_argument(
        'path',
        type=str,
        help='Path to the MCAP file to parse'
    )

    parser.add_argument(
        '--config',
        type=str,
        default=None,
        help='YAML configuration file'
    )

    parser.add_argument(
        '--chunk-size',
        type=positive_int,
        default=None,
        help='Scratch buffer size for skipping record bodies (default: 65536)'
    )

    parser.add_argument(
        '--require-footer',
        action='store_true',
        default=None,
        help='Fail if the file ends without a footer marker'
    )

    parser.add_argument(
        '--summary',
        action='store_true',
        help='Print record counts per opcode instead of every record'
    )

    parser.add_argument(
        '--log-level',
        type=str,
        default=None,
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        help='Logging level (default: INFO)'
    )

    parser.add_argument(
        '--log-format',
        type=str,
        default=None,
        choices=['json', 'console'],
        help='Log output format (default: console)'
    )

    return parser.parse_args(argv)


def format_record(record: RecordDescriptor) -> str:
    return (
        f"Record at offset {record.offset}: {record.opcode.name} "
        f"(opcode=0x{record.opcode_byte:02x}, body_len={record.body_len})"
    )


async def walk_file(
    path: str,
    chunk_size: int,
    require_footer: bool,
    summary: bool = False,
) -> int:
    """
    Walk one file, writing each record to stdout as it is reached.

    Records are printed before their bodies are skipped, so a file that
    fails part way still shows everything up to the failure. With
    `summary`, only running per-opcode counts are kept.

    Returns:
        Number of records after the header
    """
    counts: Counter = Counter()
    body_bytes = 0

    async with FileSource(path, buffer_size=chunk_size) as source:
        indexer = McapIndexer(source, chunk_size=chunk_size, require_footer=require_footer)
        header = await indexer.read_header()
        print(f"Header: profile={header.profile!r} library={header.library!r}")

        async for record in indexer.iter_records():
            counts[record.opcode.name] += 1
            body_bytes += record.body_len
            if not summary:
                print(format_record(record))

        terminated_by_footer = indexer.walker.terminated_by_footer
        end_offset = indexer.walker.offset

    total = sum(counts.values())
    if summary:
        for name, count in sorted(counts.items()):
            print(f"{name:<16} {count}")
        print(f"records={total} body_bytes={body_bytes}")

    if not terminated_by_footer:
        print("Warning: input ended without footer magic")
    print("Done.")

    logger.info(
        "Indexed file",
        path=path,
        records=total,
        end_offset=end_offset,
        terminated_by_footer=terminated_by_footer,
    )
    return total


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    try:
        config = get_config(args.config)
        chunk_size = (
            args.chunk_size
            if args.chunk_size is not None
            else positive_int(str(config.get("walker.chunk_size", 64 * 1024)))
        )
    except (argparse.ArgumentTypeError, ValueError, OSError, yaml.YAMLError) as e:
        configure_logging(
            log_level=args.log_level or "INFO",
            log_format=args.log_format or "console",
        )
        logger.error("Invalid configuration", config_file=args.config, error=str(e))
        return 2

    configure_logging(
        log_level=args.log_level or config.get("logging.level", "INFO"),
        log_format=args.log_format or config.get("logging.format", "console"),
    )

    require_footer = (
        args.require_footer
        if args.require_footer is not None
        else config.get("walker.require_footer", False)
    )

    try:
        asyncio.run(
            walk_file(args.path, chunk_size, require_footer, summary=args.summary)
        )
    except (FormatError, OSError) as e:
        sys.stdout.flush()
        logger.error("Indexing failed", path=args.path, error=str(e))
        return 1

    return 0


if __name__ == '__main__':
    sys.exit(main())
