#!/usr/bin/env python3
"""
Simple demo of walking an MCAP stream record by record.

Builds a small stream in memory, then drives the walker by hand:
magic, header record, then every remaining record until the footer.
"""

import asyncio

from mcapidx.core import (
    FOOTER_MARKER,
    MAGIC,
    BytesSource,
    OpCode,
    RecordWalker,
    decode_header,
    encode_header_record,
    encode_record,
    validate_magic,
)


def build_demo_stream() -> bytes:
    records = [
        encode_header_record("ros2", "walk-demo 0.1"),
        encode_record(OpCode.SCHEMA, b"schema-definition"),
        encode_record(OpCode.CHANNEL, b"/camera/image"),
    ]
    records += [encode_record(OpCode.MESSAGE, f"frame {i}".encode()) for i in range(5)]
    return MAGIC + b"".join(records) + FOOTER_MARKER


async def walk(data: bytes) -> None:
    source = BytesSource(data)

    print("\n[1] Validating magic...")
    await validate_magic(source)
    print("✅ Magic OK")

    walker = RecordWalker(source)

    print("\n[2] Reading header record...")
    first = await walker.next()
    if first is None or first.opcode is not OpCode.HEADER:
        raise SystemExit("❌ First record is not a header")
    header = await decode_header(walker, first.body_len)
    print(f"✅ Header: profile={header.profile!r} library={header.library!r}")

    print("\n[3] Walking records...")
    while (record := await walker.next()) is not None:
        print(f"  offset={record.offset:<5} {record.opcode.name:<10} body_len={record.body_len}")
        await walker.skip_body(record)

    print(f"\n✅ Reached end (footer={walker.terminated_by_footer}, offset={walker.offset})")


def main():
    print("=" * 60)
    print("mcapidx - Record Walker Demo")
    print("=" * 60)

    asyncio.run(walk(build_demo_stream()))


if __name__ == "__main__":
    main()
