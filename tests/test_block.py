import struct

import pytest

from tinylsm.block import Block, BlockIterator
from tinylsm.blockmeta import _payload_hash


def _mvcc_block() -> Block:
    block = Block(4096)
    block.add_entry("k1", "v3", 3, False)
    block.add_entry("k1", "v2", 2, False)
    block.add_entry("k1", "v1", 1, False)
    block.add_entry("k2", "x", 1, False)
    return block


def _collect(begin: BlockIterator, end: BlockIterator) -> list[tuple[str, str]]:
    out = []
    while begin != end:
        out.append(begin.item())
        begin.advance()
    return out


def test_encode_single_entry_wire_format():
    block = Block(1024)
    assert block.add_entry("a", "b", 1, False)
    expected = b"\x01\x00a\x01\x00b" + (1).to_bytes(8, "little") + b"\x00\x00" + b"\x01\x00"
    assert block.encode() == expected


def test_encode_decode_round_trip():
    block = _mvcc_block()
    decoded = Block.decode(block.encode())
    assert len(decoded) == len(block)
    assert decoded.encode() == block.encode()
    assert list(decoded.begin(0)) == list(block.begin(0))


def test_decode_with_hash_round_trip_and_corruption():
    encoded = _mvcc_block().encode()
    with_hash = encoded + struct.pack("<I", _payload_hash(encoded))
    decoded = Block.decode(with_hash, True)
    assert decoded.get_value_binary("k2", 0) == "x"
    corrupted = bytearray(with_hash)
    corrupted[2] ^= 0xFF
    with pytest.raises(ValueError):
        Block.decode(bytes(corrupted), True)


def test_decode_too_small():
    with pytest.raises(ValueError):
        Block.decode(b"\x01")


def test_decode_invalid_count():
    with pytest.raises(ValueError):
        Block.decode(b"\x05\x00")


def test_first_key_and_empty_block():
    block = Block(100)
    assert block.get_first_key() == ""
    assert block.is_empty()
    block.add_entry("alpha", "1", 0, False)
    assert block.get_first_key() == "alpha"
    assert not block.is_empty()


def test_capacity_limit_and_force_write():
    block = Block(30)
    assert block.add_entry("a", "b", 1, False)
    assert block.cur_size() == len(block.encode())
    assert not block.add_entry("c", "d", 1, False)
    assert len(block) == 1
    assert block.add_entry("c", "d", 1, True)
    assert len(block) == 2


def test_first_entry_always_accepted():
    block = Block(1)
    assert block.add_entry("key", "value", 0, False)
    assert len(block) == 1


def test_get_offset_at():
    block = _mvcc_block()
    assert block.get_offset_at(0) == 0
    with pytest.raises(IndexError):
        block.get_offset_at(len(block))


def test_get_value_binary_versions():
    block = _mvcc_block()
    assert block.get_value_binary("k1", 0) == "v3"
    assert block.get_value_binary("k1", 2) == "v2"
    assert block.get_value_binary("k1", 1) == "v1"
    assert block.get_value_binary("k1", 99) == "v3"
    assert block.get_value_binary("k2", 0) == "x"
    assert block.get_value_binary("missing", 0) is None


def test_get_idx_binary_invisible():
    block = Block(1024)
    block.add_entry("k", "new", 5, False)
    assert block.get_idx_binary("k", 4) is None
    assert block.get_idx_binary("k", 5) == 0


def test_iteration_without_transactions():
    assert list(_mvcc_block().begin(0)) == [("k1", "v3"), ("k2", "x")]


def test_iteration_with_transaction_visibility():
    assert list(_mvcc_block().begin(2)) == [("k1", "v2"), ("k2", "x")]


def test_end_iterator_properties():
    block = _mvcc_block()
    end = block.end()
    assert end.is_end()
    with pytest.raises(IndexError):
        end.item()
    assert BlockIterator() == BlockIterator()
    assert BlockIterator() != end


def test_iterator_reaches_end():
    block = _mvcc_block()
    it = block.begin(0)
    it.advance()
    it.advance()
    assert it == block.end()
    it.advance()
    assert it.is_end()


def test_from_key():
    block = _mvcc_block()
    it = BlockIterator.from_key(block, "k1", 2)
    assert it.item() == ("k1", "v2")
    assert BlockIterator.from_key(block, "nope", 0).is_end()


def test_iters_preffix():
    block = Block(4096)
    for key in ["a", "ab", "abc", "b"]:
        block.add_entry(key, key.upper(), 0, False)
    result = block.iters_preffix(0, "ab")
    assert result is not None
    assert _collect(*result) == [("ab", "AB"), ("abc", "ABC")]


def test_iters_preffix_no_match_is_empty_range():
    block = Block(4096)
    for key in ["a", "b", "c"]:
        block.add_entry(key, "v", 0, False)
    result = block.iters_preffix(0, "bz")
    assert result is not None
    assert _collect(*result) == []


def test_predicate_iters_empty_block():
    assert Block(10).get_monotony_predicate_iters(0, lambda key: 0) is None


def test_predicate_iters_range():
    block = Block(4096)
    for key in ["k1", "k2", "k3", "k4"]:
        block.add_entry(key, key, 0, False)

    def between(key: str) -> int:
        if key < "k2":
            return 1
        if key > "k3":
            return -1
        return 0

    begin, end = block.get_monotony_predicate_iters(0, between)
    assert _collect(begin, end) == [("k2", "k2"), ("k3", "k3")]


def test_unicode_round_trip():
    block = Block(4096)
    block.add_entry("ключ", "значение", 7, False)
    decoded = Block.decode(block.encode())
    assert decoded.get_value_binary("ключ", 7) == "значение"
    assert decoded.get_first_key() == "ключ"