# tinylsm

Building blocks of a small log-structured merge-tree (LSM) key-value store,
together with a Redis-protocol (RESP) request layer and TCP server.

Every stored entry carries a transaction id, so readers can see the data as it
was at a given transaction (multi-version concurrency control). A transaction
id of `0` turns visibility checks off and always yields the newest version.
An empty value marks a deletion.

## What is inside

| Module | Purpose |
| --- | --- |
| `tinylsm.iterator` | `IteratorType`, `BaseIterator`, `SearchItem` and `HeapIterator`: merge sorted entries, newest version first, skipping deletions and invisible transactions |
| `tinylsm.block` | `Block` and `BlockIterator`: the data block format, binary search and prefix scans |
| `tinylsm.blockmeta` | `BlockMeta`, `encode_meta`, `decode_meta`: the block index of a table file, with an integrity hash |
| `tinylsm.block_cache` | `CacheItem` and `BlockCache`: an LRU-K cache of decoded blocks with a hit rate |
| `tinylsm.config` | `TomlConfig` and `get_instance`: tuning parameters read from and saved to TOML |
| `tinylsm.logger` | `init_log_file`, `reset_log_level`: rotating log file setup |
| `tinylsm.handler` | `Ops`, `string_to_ops` and one argument-checking handler per Redis command |
| `tinylsm.server` | `parse_request`, `handle_request`, `ProtocolError`, `RedisServer`: the RESP front end |

## Merging entries

```python
from tinylsm.iterator import HeapIterator, SearchItem

items = [
    SearchItem("a", "old", 1, 0, 1),
    SearchItem("a", "new", 0, 0, 2),
    SearchItem("b", "", 0, 0, 2),      # deletion of "b"
]
list(HeapIterator(items, 0))           # [("a", "new")]
```

`SearchItem(key, value, idx, level, tranc_id)` orders by key, then newest
transaction, then lower level, then lower source index. With a non-zero
`max_tranc_id`, entries from later transactions are ignored.

## Data blocks

```python
from tinylsm.block import Block

block = Block(4096)
block.add_entry("apple", "red", 1, False)
block.add_entry("banana", "yellow", 1, False)

encoded = block.encode()
restored = Block.decode(encoded, False)
restored.get_value_binary("banana", 0)   # "yellow"
```

`add_entry` returns `False` when the entry would push the block past its
capacity, unless the block is empty or `force_write` is set; that is the signal
to start a new block. Entries must be added in key order, and several versions
of one key go newest transaction first. `Block.decode(data, True)` expects a
trailing 32-bit checksum and raises `ValueError` if it does not match.

`begin(tranc_id)` returns a `BlockIterator` that yields the newest visible
version of each key; `iters_preffix(tranc_id, prefix)` and
`get_monotony_predicate_iters(tranc_id, predicate)` return a `[begin, end)`
pair of iterators over a contiguous range of keys.

## Block index

```python
from tinylsm.blockmeta import BlockMeta, encode_meta, decode_meta

entries = [BlockMeta(0, "apple", "banana"), BlockMeta(4096, "cherry", "grape")]
data = encode_meta(entries)
assert decode_meta(data) == entries
```

Truncated or damaged data raises `ValueError` instead of returning wrong
offsets.

## Block cache

```python
from tinylsm.block_cache import BlockCache

cache = BlockCache(1024, 8)
cache.put(sst_id, block_id, block)
cache.get(sst_id, block_id)   # the block, or None on a miss
cache.hit_rate()
```

Blocks accessed fewer than `k` times are evicted before blocks accessed `k`
times or more; within each group the least recently used goes first. The cache
is safe to share between threads. A capacity below 1 raises `ValueError`.

## Configuration

`TomlConfig` is a frozen dataclass whose defaults are 64 MiB of memtables,
4 MiB per memtable, 32 KiB blocks, a level ratio of 4, a block cache of 1024
entries with K = 8, the Redis key prefixes and separators, and a bloom filter
sized for 65536 keys at a 10 % error rate.

- `TomlConfig.from_file(path)` loads a file in which every key must be present;
  it raises `OSError` or `ValueError` otherwise.
- `save(path)` writes the values as TOML; `to_dict()` returns the same tables;
  `replace(**changes)` returns a modified copy.
- `get_instance(config_path="config.toml")` returns one shared configuration
  for the process. It falls back to `config.toml` when the given path is not a
  readable file, keeps the defaults if loading fails, and writes the defaults
  to `config.toml` when that file does not exist.

## Logging

`init_log_file(path="logs/tiny_lsm.log")` attaches a rotating file handler
(5 MiB per file, 3 backups) to the `tinylsm` logger at debug level; only the
first call has an effect. `reset_log_level("info")` sets the level by name
(`trace`, `debug`, `info`, `warning`, `error`, `critical`, `off`) and treats
unknown names as `off`.

## Redis front end

`parse_request` turns a RESP array such as
`"*2\r\n$3\r\nGET\r\n$3\r\nkey\r\n"` into its argument list and raises
`ProtocolError` on malformed input. `handle_request(request, engine)` answers a
bare `PING\r\n` with `+PONG\r\n`, otherwise parses the request, checks the
argument count and calls the matching engine method, returning the RESP reply
(`+OK\r\n`, `-ERR ...\r\n` and so on). Unknown commands get
`-ERR unknown command '<name>'\r\n`.

The engine is any object providing `clear`, `flushall` and one method per
command taking the argument list: `set`, `get`, `del_`, `incr`, `decr`,
`expire`, `ttl`, `hset`, `hget`, `hdel`, `hkeys`, `lpush`, `rpush`, `lpop`,
`rpop`, `llen`, `lrange`, `zadd`, `zrem`, `zrange`, `zcard`, `zscore`,
`zincrby`, `zrank`, `sadd`, `srem`, `sismember`, `scard`, `smembers`. The
replies of `incr` and `decr` are wrapped as RESP integers; the others are
returned as the engine gives them.

```python
from tinylsm.server import RedisServer

with RedisServer(engine, "127.0.0.1", 0) as server:
    host, port = server.address
    ...
```

`RedisServer(engine, host="0.0.0.0", port=6379)` serves requests in a
background thread once `start()` is called, sending one reply per received
message, and `stop()` shuts it down. Calls into the engine are serialised.

## What the package does not do

There is no memtable, table-file writer or reader, write-ahead log,
compaction or transaction manager here, and no implementation of the Redis
data types: the engine handed to `handle_request` and `RedisServer` has to be
supplied by the caller. The package installs no command-line program.