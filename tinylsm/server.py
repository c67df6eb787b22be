"""RESP request parsing and a TCP server in front of the Redis command layer."""

from __future__ import annotations

import re
import socketserver
import threading
from collections.abc import Callable

from tinylsm import handler
from tinylsm.handler import Ops, string_to_ops

DEFAULT_PORT = 6379

_INT = re.compile(rb"[ \t\n\r\f\v]*([+-]?[0-9]+)")
_INT32_MIN, _INT32_MAX = -(2**31), 2**31 - 1


class ProtocolError(ValueError):
    """The request does not follow the RESP array-of-bulk-strings format."""


def _parse_int(data: bytes, start: int) -> int:
    match = _INT.match(data, start)
    if match is None:
        raise ValueError("no digits")
    value = int(match.group(1))
    if not _INT32_MIN <= value <= _INT32_MAX:
        raise ValueError("out of range")
    return value


def _after_newline(data: bytes, start: int) -> int:
    # A missing newline leaves the cursor at the start of the request.
    return data.find(b"\n", start) + 1


def parse_request(request: str | bytes) -> list[str]:
    """Split a RESP array request into its bulk string arguments."""
    data = request.encode("utf-8") if isinstance(request, str) else bytes(request)
    if not data:
        raise ProtocolError("expected '*'")
    try:
        count = _parse_int(data, 1)
    except ValueError:
        raise ProtocolError("invalid number of elements") from None
    if count <= 0:
        raise ProtocolError("invalid number of elements")
    pos = _after_newline(data, 0)
    args: list[str] = []
    for _ in range(count):
        if pos >= len(data) or data[pos : pos + 1] != b"$":
            raise ProtocolError("expected '$'")
        try:
            length = _parse_int(data, pos + 1)
        except ValueError:
            raise ProtocolError("invalid bulk string length") from None
        if length < 0:
            raise ProtocolError("invalid bulk string length")
        pos = _after_newline(data, pos)
        if pos + length > len(data):
            raise ProtocolError("bulk string length exceeds request size")
        args.append(data[pos : pos + length].decode("utf-8", "surrogateescape"))
        pos = _after_newline(data, pos)
    return args


_Handler = Callable[[list[str], object], str]

_DISPATCH: dict[Ops, _Handler] = {
    Ops.SET: handler.set_handler,
    Ops.GET: handler.get_handler,
    Ops.DEL: handler.del_handler,
    Ops.INCR: handler.incr_handler,
    Ops.DECR: handler.decr_handler,
    Ops.EXPIRE: handler.expire_handler,
    Ops.TTL: handler.ttl_handler,
    Ops.HSET: handler.hset_handler,
    Ops.HGET: handler.hget_handler,
    Ops.HDEL: handler.hdel_handler,
    Ops.HKEYS: handler.hkeys_handler,
    Ops.LLEN: handler.llen_handler,
    Ops.LPUSH: handler.lpush_handler,
    Ops.RPUSH: handler.rpush_handler,
    Ops.LPOP: handler.lpop_handler,
    Ops.RPOP: handler.rpop_handler,
    Ops.LRANGE: handler.lrange_handler,
    Ops.ZADD: handler.zadd_handler,
    Ops.ZCARD: handler.zcard_handler,
    Ops.ZINCRBY: handler.zincrby_handler,
    Ops.ZRANGE: handler.zrange_handler,
    Ops.ZRANK: handler.zrank_handler,
    Ops.ZSCORE: handler.zscore_handler,
    Ops.ZREM: handler.zrem_handler,
    Ops.SADD: handler.sadd_handler,
    Ops.SMEMBERS: handler.smembers_handler,
    Ops.SCARD: handler.scard_handler,
    Ops.SISMEMBER: handler.sismember_handler,
    Ops.SREM: handler.srem_handler,
}


def handle_request(request: str | bytes, engine) -> str:
    """Parse one request, run the command on ``engine`` and return the reply."""
    if request in ("PING\r\n", b"PING\r\n"):
        return "+PONG\r\n"
    try:
        args = parse_request(request)
    except ProtocolError as exc:
        return f"-ERR Protocol error: {exc}\r\n"
    op = string_to_ops(args[0])
    if op is Ops.PING:
        return "+PONG\r\n"
    if op is Ops.FLUSHALL:
        return handler.flushall_handler(engine)
    if op is Ops.SAVE:
        return handler.save_handler(engine)
    command = _DISPATCH.get(op)
    if command is None:
        return f"-ERR unknown command '{args[0]}'\r\n"
    return command(args, engine)


class _TCPServer(socketserver.ThreadingTCPServer):
    allow_reuse_address = True
    daemon_threads = True

    def __init__(self, address: tuple[str, int], owner: RedisServer) -> None:
        self.owner = owner
        super().__init__(address, _ConnectionHandler)


class _ConnectionHandler(socketserver.BaseRequestHandler):
    def handle(self) -> None:
        owner: RedisServer = self.server.owner  # type: ignore[attr-defined]
        while True:
            data = self.request.recv(65536)
            if not data:
                return
            self.request.sendall(owner._respond(data))


class RedisServer:
    """Serve RESP requests over TCP, one reply per received message."""

    def __init__(self, engine, host: str = "0.0.0.0", port: int = DEFAULT_PORT) -> None:
        self.engine = engine
        self.host = host
        self.port = port
        self._engine_lock = threading.Lock()
        self._server: _TCPServer | None = None
        self._thread: threading.Thread | None = None

    def _respond(self, data: bytes) -> bytes:
        with self._engine_lock:
            reply = handle_request(data, self.engine)
        return reply.encode("utf-8", "surrogateescape")

    @property
    def address(self) -> tuple[str, int]:
        """The bound ``(host, port)``; only meaningful while running."""
        if self._server is None:
            raise RuntimeError("server is not running")
        host, port = self._server.server_address[:2]
        return str(host), int(port)

    def start(self) -> None:
        """Bind and start serving in a background thread."""
        if self._server is not None:
            raise RuntimeError("server is already running")
        self._server = _TCPServer((self.host, self.port), self)
        self._thread = threading.Thread(target=self._server.serve_forever, daemon=True)
        self._thread.start()

    def stop(self) -> None:
        """Stop serving and release the socket."""
        if self._server is None:
            return
        self._server.shutdown()
        self._server.server_close()
        if self._thread is not None:
            self._thread.join()
        self._server = None
        self._thread = None

    def __enter__(self) -> RedisServer:
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()