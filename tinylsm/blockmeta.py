"""Per-block metadata of an SST file and its checksummed encoding.

Layout: ``num_entries (u32) | entry ... | hash (u32)`` where each entry is
``offset (u32) | first_key_len (u16) | first_key | last_key_len (u16) | last_key``.
The hash covers the entries only. All integers are little endian.
"""

from __future__ import annotations

import struct
from collections.abc import Iterable
from dataclasses import dataclass

_HASH_SEED = 0xC70F6907
_HASH_MUL = 0xC6A4A7935BD1E995
_MASK64 = (1 << 64) - 1


def _shift_mix(value: int) -> int:
    return value ^ (value >> 47)


def _payload_hash(data: bytes) -> int:
    """Return the 32-bit checksum used by the on-disk formats."""
    length = len(data)
    result = (_HASH_SEED ^ (length * _HASH_MUL)) & _MASK64
    aligned = length & ~7
    for (word,) in struct.iter_unpack("<Q", data[:aligned]):
        mixed = (_shift_mix((word * _HASH_MUL) & _MASK64) * _HASH_MUL) & _MASK64
        result = ((result ^ mixed) * _HASH_MUL) & _MASK64
    if length & 7:
        tail = int.from_bytes(data[aligned:], "little")
        result = ((result ^ tail) * _HASH_MUL) & _MASK64
    result = (_shift_mix(result) * _HASH_MUL) & _MASK64
    return _shift_mix(result) & 0xFFFFFFFF


@dataclass
class BlockMeta:
    """Location and key range of one data block."""

    offset: int = 0
    first_key: str = ""
    last_key: str = ""


def encode_meta(entries: Iterable[BlockMeta]) -> bytes:
    """Encode block metadata entries, followed by their checksum."""
    entries = list(entries)
    body = bytearray()
    try:
        for meta in entries:
            first = meta.first_key.encode("utf-8")
            last = meta.last_key.encode("utf-8")
            body += struct.pack("<IH", meta.offset, len(first))
            body += first
            body += struct.pack("<H", len(last))
            body += last
        header = struct.pack("<I", len(entries))
    except struct.error as exc:
        raise ValueError(f"block metadata out of range: {exc}") from exc
    return header + bytes(body) + struct.pack("<I", _payload_hash(bytes(body)))


def _take(data: bytes, pos: int, size: int) -> bytes:
    chunk = data[pos : pos + size]
    if len(chunk) != size:
        raise ValueError("Truncated metadata")
    return chunk


def decode_meta(data: bytes) -> list[BlockMeta]:
    """Decode metadata produced by :func:`encode_meta`, verifying its checksum."""
    data = bytes(data)
    if len(data) < 8:
        raise ValueError("Invalid metadata size")
    entries: list[BlockMeta] = []
    try:
        (count,) = struct.unpack_from("<I", data, 0)
        pos = 4
        for _ in range(count):
            offset, first_len = struct.unpack_from("<IH", data, pos)
            pos += 6
            first = _take(data, pos, first_len).decode("utf-8")
            pos += first_len
            (last_len,) = struct.unpack_from("<H", data, pos)
            pos += 2
            last = _take(data, pos, last_len).decode("utf-8")
            pos += last_len
            entries.append(BlockMeta(offset, first, last))
        (stored,) = struct.unpack_from("<I", data, pos)
    except struct.error as exc:
        raise ValueError("Truncated metadata") from exc
    if stored != _payload_hash(data[4:pos]):
        raise ValueError("Metadata hash mismatch")
    return entries