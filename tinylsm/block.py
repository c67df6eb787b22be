"""Sorted data block of an SST file, with MVCC-aware lookup and iteration.

Layout: ``entry ... | offset (u16) ... | num_entries (u16)`` where each entry is
``key_len (u16) | key | value_len (u16) | value | tranc_id (u64)``.
Entries are stored sorted by key; versions of the same key are adjacent and
ordered from the newest transaction to the oldest. Integers are little endian.
"""

from __future__ import annotations

import struct
from collections.abc import Callable, Iterator
from dataclasses import dataclass

from tinylsm.blockmeta import _payload_hash

_U16_MAX = 0xFFFF
_ENTRY_OVERHEAD = 2 + 2 + 8


@dataclass(frozen=True)
class _Entry:
    key: str
    value: str
    tranc_id: int


class Block:
    """A bounded, append-only collection of sorted key/value entries."""

    def __init__(self, capacity: int = 0) -> None:
        self.capacity = capacity
        self._data = bytearray()
        self._offsets: list[int] = []

    # ------------------------------------------------------------ encoding
    def encode(self) -> bytes:
        """Serialise the block (without a trailing hash)."""
        offsets = struct.pack(f"<{len(self._offsets)}H", *self._offsets)
        return bytes(self._data) + offsets + struct.pack("<H", len(self._offsets))

    @classmethod
    def decode(cls, encoded: bytes, with_hash: bool = False) -> Block:
        """Rebuild a block from :meth:`encode` output.

        With ``with_hash`` the data is expected to end with a 32-bit checksum
        of everything before it, which is verified.
        """
        encoded = bytes(encoded)
        if len(encoded) < 2:
            raise ValueError("Encoded data too small")
        num_pos = len(encoded) - 2
        if with_hash:
            if len(encoded) < 6:
                raise ValueError("Encoded data too small")
            num_pos -= 4
            (stored,) = struct.unpack_from("<I", encoded, len(encoded) - 4)
            if stored != _payload_hash(encoded[:-4]):
                raise ValueError("Block hash verification failed")
        (count,) = struct.unpack_from("<H", encoded, num_pos)
        offsets_start = num_pos - count * 2
        if len(encoded) < 2 + count * 2 or offsets_start < 0:
            raise ValueError("Invalid encoded data size")
        block = cls(len(encoded))
        block._offsets = list(struct.unpack_from(f"<{count}H", encoded, offsets_start))
        block._data = bytearray(encoded[:offsets_start])
        return block

    # ------------------------------------------------------------ entry access
    def _key_at(self, offset: int) -> str:
        (key_len,) = struct.unpack_from("<H", self._data, offset)
        start = offset + 2
        return self._data[start : start + key_len].decode("utf-8")

    def _value_at(self, offset: int) -> str:
        (key_len,) = struct.unpack_from("<H", self._data, offset)
        value_len_pos = offset + 2 + key_len
        (value_len,) = struct.unpack_from("<H", self._data, value_len_pos)
        start = value_len_pos + 2
        return self._data[start : start + value_len].decode("utf-8")

    def _tranc_id_at(self, offset: int) -> int:
        (key_len,) = struct.unpack_from("<H", self._data, offset)
        value_len_pos = offset + 2 + key_len
        (value_len,) = struct.unpack_from("<H", self._data, value_len_pos)
        (tranc_id,) = struct.unpack_from("<Q", self._data, value_len_pos + 2 + value_len)
        return tranc_id

    def _entry_at(self, offset: int) -> _Entry:
        return _Entry(self._key_at(offset), self._value_at(offset), self._tranc_id_at(offset))

    def _key_of(self, idx: int) -> str:
        return self._key_at(self._offsets[idx])

    def _is_same_key(self, idx: int, key: str) -> bool:
        return 0 <= idx < len(self._offsets) and self._key_of(idx) == key

    def get_first_key(self) -> str:
        """Return the first key, or an empty string for an empty block."""
        if not self._data or not self._offsets:
            return ""
        return self._key_at(0)

    def get_offset_at(self, idx: int) -> int:
        """Return the byte offset of entry ``idx``."""
        if not 0 <= idx < len(self._offsets):
            raise IndexError("idx out of offsets range")
        return self._offsets[idx]

    def add_entry(self, key: str, value: str, tranc_id: int, force_write: bool = False) -> bool:
        """Append an entry; return False if it does not fit and is not forced.

        An empty block always accepts its first entry.
        """
        key_bytes = key.encode("utf-8")
        value_bytes = value.encode("utf-8")
        if (
            not force_write
            and self._offsets
            and self.cur_size() + len(key_bytes) + len(value_bytes) + 3 * 2 + 8 > self.capacity
        ):
            return False
        if len(key_bytes) > _U16_MAX or len(value_bytes) > _U16_MAX:
            raise ValueError("key or value too long for a block entry")
        offset = len(self._data)
        if offset > _U16_MAX:
            raise ValueError("block data exceeds the addressable size")
        try:
            tail = struct.pack("<Q", tranc_id)
        except struct.error as exc:
            raise ValueError(f"invalid transaction id: {tranc_id}") from exc
        self._data += struct.pack("<H", len(key_bytes)) + key_bytes
        self._data += struct.pack("<H", len(value_bytes)) + value_bytes + tail
        self._offsets.append(offset)
        return True

    # ------------------------------------------------------------ lookup
    def _adjust_idx_by_tranc_id(self, idx: int, tranc_id: int) -> int | None:
        """Move ``idx`` to the newest version of its key visible at ``tranc_id``."""
        if idx >= len(self._offsets):
            return None
        target = self._key_of(idx)
        if tranc_id == 0:
            while idx > 0 and self._is_same_key(idx - 1, target):
                idx -= 1
            return idx
        if self._tranc_id_at(self._offsets[idx]) <= tranc_id:
            while idx > 0 and self._is_same_key(idx - 1, target):
                if self._tranc_id_at(self._offsets[idx - 1]) > tranc_id:
                    return idx
                idx -= 1
            return idx
        nxt = idx + 1
        while self._is_same_key(nxt, target):
            if self._tranc_id_at(self._offsets[nxt]) <= tranc_id:
                return nxt
            nxt += 1
        return None

    def get_idx_binary(self, key: str, tranc_id: int = 0) -> int | None:
        """Return the index of the visible version of ``key``, or None."""
        left, right = 0, len(self._offsets) - 1
        while left <= right:
            mid = (left + right) // 2
            mid_key = self._key_of(mid)
            if mid_key == key:
                return self._adjust_idx_by_tranc_id(mid, tranc_id)
            if mid_key < key:
                left = mid + 1
            else:
                right = mid - 1
        return None

    def get_value_binary(self, key: str, tranc_id: int = 0) -> str | None:
        """Return the value of the visible version of ``key``, or None."""
        idx = self.get_idx_binary(key, tranc_id)
        if idx is None:
            return None
        return self._value_at(self._offsets[idx])

    def __len__(self) -> int:
        return len(self._offsets)

    def cur_size(self) -> int:
        """Return the encoded size of the block in bytes."""
        return len(self._data) + len(self._offsets) * 2 + 2

    def is_empty(self) -> bool:
        return not self._offsets

    # ------------------------------------------------------------ iteration
    def get_monotony_predicate_iters(
        self, tranc_id: int, predicate: Callable[[str], int]
    ) -> tuple[BlockIterator, BlockIterator] | None:
        """Return ``[begin, end)`` iterators over the keys matching ``predicate``.

        ``predicate`` returns 0 for a match, a positive number when the match
        lies to the right and a negative number when it lies to the left.
        Returns None for an empty block.
        """
        if not self._offsets:
            return None
        left, right = 0, len(self._offsets) - 1
        while left <= right:
            mid = (left + right) // 2
            if predicate(self._key_of(mid)) <= 0:
                right = mid - 1
            else:
                left = mid + 1
        first = left
        right = len(self._offsets) - 1
        while left <= right:
            mid = (left + right) // 2
            if predicate(self._key_of(mid)) < 0:
                right = mid - 1
            else:
                left = mid + 1
        last = left - 1
        return BlockIterator(self, first, tranc_id), BlockIterator(self, last + 1, tranc_id)

    def iters_preffix(self, tranc_id: int, prefix: str) -> tuple[BlockIterator, BlockIterator] | None:
        """Return ``[begin, end)`` iterators over the keys starting with ``prefix``."""

        def predicate(key: str) -> int:
            head = key[: len(prefix)]
            if head == prefix:
                return 0
            return 1 if head < prefix else -1

        return self.get_monotony_predicate_iters(tranc_id, predicate)

    def begin(self, tranc_id: int = 0) -> BlockIterator:
        return BlockIterator(self, 0, tranc_id)

    def end(self) -> BlockIterator:
        return BlockIterator(self, len(self._offsets), 0)

    def __iter__(self) -> Iterator[tuple[str, str]]:
        return iter(self.begin())


class BlockIterator:
    """Cursor over a block yielding the newest visible version of each key.

    A ``tranc_id`` of 0 disables transaction visibility checks.
    """

    def __init__(self, block: Block | None = None, index: int = 0, tranc_id: int = 0) -> None:
        self._block = block
        self._index = index
        self._tranc_id = tranc_id
        if block is not None:
            self._skip_by_tranc_id()

    @classmethod
    def from_key(cls, block: Block, key: str, tranc_id: int = 0) -> BlockIterator:
        """Position an iterator at the visible version of ``key`` or at the end."""
        it = cls(None, 0, tranc_id)
        it._block = block
        idx = block.get_idx_binary(key, tranc_id)
        it._index = len(block) if idx is None else idx
        return it

    @property
    def index(self) -> int:
        return self._index

    def _skip_by_tranc_id(self) -> None:
        if self._tranc_id == 0 or self._block is None:
            return
        block = self._block
        while self._index < len(block) and block._tranc_id_at(block._offsets[self._index]) > self._tranc_id:
            self._index += 1

    def advance(self) -> None:
        """Move to the next key, skipping older versions and invisible entries."""
        block = self._block
        if block is None or self._index >= len(block):
            return
        prev_key = block._key_of(self._index)
        self._index += 1
        while self._index < len(block) and block._key_of(self._index) == prev_key:
            self._index += 1
        self._skip_by_tranc_id()

    def item(self) -> tuple[str, str]:
        """Return the current ``(key, value)`` pair."""
        block = self._block
        if block is None or self._index >= len(block):
            raise IndexError("Iterator out of range")
        offset = block._offsets[self._index]
        return block._key_at(offset), block._value_at(offset)

    def is_end(self) -> bool:
        return self._block is None or self._index >= len(self._block)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, BlockIterator):
            return NotImplemented
        if self._block is None and other._block is None:
            return True
        if self._block is None or other._block is None:
            return False
        return self._block is other._block and self._index == other._index

    __hash__ = None  # type: ignore[assignment]

    def __iter__(self) -> Iterator[tuple[str, str]]:
        while not self.is_end():
            yield self.item()
            self.advance()