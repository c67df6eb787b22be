"""Command handlers of the Redis-compatible front end.

Each handler checks the number of arguments of its command, answers with a
RESP error line when it is wrong and otherwise delegates to the engine.
"""

from __future__ import annotations

import enum
from typing import Protocol

OK_REPLY = "+OK\r\n"


class RedisEngine(Protocol):
    """The Redis command layer the handlers delegate to."""

    def clear(self) -> None: ...
    def flushall(self) -> None: ...
    def set(self, args: list[str]) -> str: ...
    def get(self, args: list[str]) -> str: ...
    def incr(self, args: list[str]) -> str: ...
    def decr(self, args: list[str]) -> str: ...
    def expire(self, args: list[str]) -> str: ...
    def del_(self, args: list[str]) -> str: ...
    def ttl(self, args: list[str]) -> str: ...


class Ops(enum.Enum):
    """Commands understood by the server."""

    PING = enum.auto()
    FLUSHALL = enum.auto()
    SAVE = enum.auto()
    GET = enum.auto()
    SET = enum.auto()
    DEL = enum.auto()
    INCR = enum.auto()
    DECR = enum.auto()
    EXPIRE = enum.auto()
    TTL = enum.auto()
    HSET = enum.auto()
    HGET = enum.auto()
    HDEL = enum.auto()
    HKEYS = enum.auto()
    LPUSH = enum.auto()
    RPUSH = enum.auto()
    LPOP = enum.auto()
    RPOP = enum.auto()
    LLEN = enum.auto()
    LRANGE = enum.auto()
    ZADD = enum.auto()
    ZREM = enum.auto()
    ZRANGE = enum.auto()
    ZCARD = enum.auto()
    ZSCORE = enum.auto()
    ZINCRBY = enum.auto()
    ZRANK = enum.auto()
    SADD = enum.auto()
    SREM = enum.auto()
    SISMEMBER = enum.auto()
    SCARD = enum.auto()
    SMEMBERS = enum.auto()
    UNKNOWN = enum.auto()


_BY_NAME = {op.name.lower(): op for op in Ops if op is not Ops.UNKNOWN}


def string_to_ops(op: str) -> Ops:
    """Map a command name, in any letter case, to its :class:`Ops` member."""
    if not op.isascii():
        return Ops.UNKNOWN
    return _BY_NAME.get(op.lower(), Ops.UNKNOWN)


def _wrong_arity(name: str) -> str:
    return f"-ERR wrong number of arguments for '{name}' command\r\n"


def flushall_handler(engine) -> str:
    """Remove all data."""
    engine.clear()
    return OK_REPLY


def save_handler(engine) -> str:
    """Flush all in-memory data to disk."""
    engine.flushall()
    return OK_REPLY


# ---------------------------------------------------------------- basic
def set_handler(args: list[str], engine) -> str:
    if len(args) != 3:
        return _wrong_arity("SET")
    return engine.set(args)


def get_handler(args: list[str], engine) -> str:
    if len(args) != 2:
        return _wrong_arity("GET")
    return engine.get(args)


def del_handler(args: list[str], engine) -> str:
    if len(args) < 2:
        return _wrong_arity("DEL")
    return engine.del_(args)


def incr_handler(args: list[str], engine) -> str:
    if len(args) != 2:
        return _wrong_arity("INCR")
    return f":{engine.incr(args)}\r\n"


def decr_handler(args: list[str], engine) -> str:
    if len(args) != 2:
        return _wrong_arity("DECR")
    return f":{engine.decr(args)}\r\n"


def expire_handler(args: list[str], engine) -> str:
    if len(args) != 3:
        return _wrong_arity("EXPIRE")
    return engine.expire(args)


def ttl_handler(args: list[str], engine) -> str:
    if len(args) != 2:
        return _wrong_arity("TTL")
    return engine.ttl(args)


# ---------------------------------------------------------------- hashes
def hset_handler(args: list[str], engine) -> str:
    if len(args) < 4:
        return _wrong_arity("HSET")
    return engine.hset(args)


def hget_handler(args: list[str], engine) -> str:
    if len(args) != 3:
        return _wrong_arity("HGET")
    return engine.hget(args)


def hdel_handler(args: list[str], engine) -> str:
    if len(args) != 3:
        return _wrong_arity("HDEL")
    return engine.hdel(args)


def hkeys_handler(args: list[str], engine) -> str:
    if len(args) != 2:
        return _wrong_arity("HKEYS")
    return engine.hkeys(args)


# ---------------------------------------------------------------- lists
def lpush_handler(args: list[str], engine) -> str:
    if len(args) != 3:
        return _wrong_arity("LPUSH")
    return engine.lpush(args)


def rpush_handler(args: list[str], engine) -> str:
    if len(args) != 3:
        return _wrong_arity("RPUSH")
    return engine.rpush(args)


def lpop_handler(args: list[str], engine) -> str:
    if len(args) != 2:
        return _wrong_arity("LPOP")
    return engine.lpop(args)


def rpop_handler(args: list[str], engine) -> str:
    if len(args) != 2:
        return _wrong_arity("RPOP")
    return engine.rpop(args)


def llen_handler(args: list[str], engine) -> str:
    if len(args) != 3:
        return _wrong_arity("LLEN")
    return engine.llen(args)


def lrange_handler(args: list[str], engine) -> str:
    if len(args) != 4:
        return _wrong_arity("LRANGE")
    return engine.lrange(args)


# ---------------------------------------------------------------- sorted sets
def zadd_handler(args: list[str], engine) -> str:
    if len(args) < 4 or (len(args) - 2) % 2 != 0:
        return _wrong_arity("zadd")
    return engine.zadd(args)


def zrem_handler(args: list[str], engine) -> str:
    if len(args) < 3:
        return _wrong_arity("zrem")
    return engine.zrem(args)


def zrange_handler(args: list[str], engine) -> str:
    if len(args) < 4:
        return _wrong_arity("zrange")
    return engine.zrange(args)


def zcard_handler(args: list[str], engine) -> str:
    if len(args) != 2:
        return _wrong_arity("zcard")
    return engine.zcard(args)


def zscore_handler(args: list[str], engine) -> str:
    if len(args) != 3:
        return _wrong_arity("zscore")
    return engine.zscore(args)


def zincrby_handler(args: list[str], engine) -> str:
    if len(args) != 4:
        return _wrong_arity("zincrby")
    return engine.zincrby(args)


def zrank_handler(args: list[str], engine) -> str:
    if len(args) != 3:
        return _wrong_arity("zrank")
    return engine.zrank(args)


# ---------------------------------------------------------------- sets
def sadd_handler(args: list[str], engine) -> str:
    if len(args) < 3:
        return _wrong_arity("sadd")
    return engine.sadd(args)


def srem_handler(args: list[str], engine) -> str:
    if len(args) < 3:
        return _wrong_arity("srem")
    return engine.srem(args)


def sismember_handler(args: list[str], engine) -> str:
    if len(args) != 3:
        return _wrong_arity("sismember")
    return engine.sismember(args)


def scard_handler(args: list[str], engine) -> str:
    if len(args) != 2:
        return _wrong_arity("scard")
    return engine.scard(args)


def smembers_handler(args: list[str], engine) -> str:
    if len(args) != 2:
        return _wrong_arity("smembers")
    return engine.smembers(args)