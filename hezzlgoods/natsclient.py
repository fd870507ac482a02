"""Minimal client for the NATS text protocol."""

from __future__ import annotations

import itertools
import json
import logging
import socket
import threading
from contextlib import suppress
from typing import Any, BinaryIO, Callable
from urllib.parse import urlsplit

DEFAULT_PORT = 4222


class NatsError(Exception):
    """The NATS server could not be reached or refused a request."""


def parse_address(address: str) -> tuple[str, int]:
    """Split an address such as ``nats://host:4222`` into host and port.

    Only the first of several comma-separated servers is used.
    """
    text = address.strip().split(",", 1)[0].strip()
    if "://" not in text:
        text = "nats://" + text
    try:
        parts = urlsplit(text)
        port = parts.port
    except ValueError as exc:
        raise NatsError(f"malformed address {address!r}") from exc
    if parts.scheme.lower() not in ("nats", "tcp"):
        raise NatsError(f"unsupported scheme {parts.scheme!r} in {address!r}")
    if not parts.hostname:
        raise NatsError(f"missing host in address {address!r}")
    return parts.hostname, port or DEFAULT_PORT


def _check_subject(subject: str) -> None:
    if not subject or any(ch.isspace() for ch in subject):
        raise NatsError(f"invalid subject {subject!r}")


def _read_line(reader: BinaryIO) -> tuple[str, str]:
    raw = reader.readline()
    if not raw:
        raise NatsError("connection closed by server")
    line = raw.rstrip(b"\r\n").decode("utf-8")
    return line.split(" ", 1)[0].upper(), line


def _error_text(line: str) -> str:
    return line[len("-ERR"):].strip().strip("'")


class Subscription:
    """Interest in one subject; messages go to its callback."""

    def __init__(self, connection: NatsConnection, subject: str, sid: int,
                 callback: Callable[[bytes], Any]) -> None:
        self.subject = subject
        self.sid = sid
        self.callback = callback
        self._connection = connection

    def unsubscribe(self) -> None:
        """Stop receiving messages; raises NatsError when already unsubscribed."""
        conn = self._connection
        conn._ensure_open()
        if conn._subscriptions.pop(self.sid, None) is None:
            raise NatsError("invalid subscription")
        conn._send(f"UNSUB {self.sid}\r\n".encode())


class NatsConnection:
    """A connection to one NATS server with a background reader thread."""

    def __init__(self, address: str, *, name: str = "hezzlgoods", timeout: float = 5.0,
                 logger: logging.Logger | None = None) -> None:
        self.host, self.port = parse_address(address)
        self.name = name
        self.server_info: dict[str, Any] = {}
        self.last_error: Exception | None = None
        self._timeout = timeout
        self._logger = logger or logging.getLogger(__name__)
        self._sock: socket.socket | None = None
        self._reader: BinaryIO | None = None
        self._thread: threading.Thread | None = None
        self._write_lock = threading.Lock()
        self._subscriptions: dict[int, Subscription] = {}
        self._sids = itertools.count(1)
        self._closed = False

    def __enter__(self) -> NatsConnection:
        if self._sock is None:
            self.connect()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def connect(self) -> NatsConnection:
        """Open the connection and complete the handshake."""
        if self._sock is not None:
            raise NatsError("already connected")
        try:
            sock = socket.create_connection((self.host, self.port), timeout=self._timeout)
        except OSError as exc:
            raise NatsError(f"cannot connect to {self.host}:{self.port}: {exc}") from exc
        reader = sock.makefile("rb")
        try:
            op, line = _read_line(reader)
            if not op.startswith("INFO"):
                raise NatsError(f"unexpected greeting {line!r}")
            self.server_info = json.loads(line[len("INFO"):].strip() or "{}")
            options = {"verbose": False, "pedantic": False, "lang": "python",
                       "version": "0.1", "name": self.name, "protocol": 1, "echo": True}
            sock.sendall(b"CONNECT " + json.dumps(options).encode() + b"\r\nPING\r\n")
            while (reply := _read_line(reader))[0] != "PONG":
                if reply[0] == "-ERR":
                    raise NatsError(_error_text(reply[1]))
                if reply[0] == "PING":
                    sock.sendall(b"PONG\r\n")
        except (NatsError, OSError, ValueError) as exc:
            with suppress(OSError):
                reader.close()
            sock.close()
            if isinstance(exc, NatsError):
                raise
            raise NatsError(f"handshake with {self.host}:{self.port} failed: {exc}") from exc

        sock.settimeout(None)
        self._sock, self._reader = sock, reader
        self._closed = False
        self.last_error = None
        self._thread = threading.Thread(target=self._read_loop, name="nats-reader", daemon=True)
        self._thread.start()
        return self

    def publish(self, subject: str, data: bytes) -> None:
        """Send a message to a subject."""
        _check_subject(subject)
        payload = bytes(data)
        self._send(f"PUB {subject} {len(payload)}\r\n".encode() + payload + b"\r\n")

    def subscribe(self, subject: str, callback: Callable[[bytes], Any]) -> Subscription:
        """Register interest in a subject; the callback receives each payload."""
        _check_subject(subject)
        if not callable(callback):
            raise NatsError("callback must be callable")
        self._ensure_open()
        sub = Subscription(self, subject, next(self._sids), callback)
        self._subscriptions[sub.sid] = sub
        try:
            self._send(f"SUB {subject} {sub.sid}\r\n".encode())
        except NatsError:
            del self._subscriptions[sub.sid]
            raise
        return sub

    def close(self) -> None:
        """Close the connection; closing twice is harmless."""
        self._closed = True
        sock, self._sock = self._sock, None
        if sock is None:
            return
        with suppress(OSError):
            sock.shutdown(socket.SHUT_RDWR)
        sock.close()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(self._timeout)
        if self._reader is not None:
            with suppress(OSError):
                self._reader.close()
        self._subscriptions.clear()

    def _ensure_open(self) -> None:
        if self._sock is None or self._closed:
            raise NatsError("connection is closed")

    def _send(self, data: bytes) -> None:
        self._ensure_open()
        with self._write_lock:
            if self._sock is None:
                raise NatsError("connection is closed")
            try:
                self._sock.sendall(data)
            except OSError as exc:
                raise NatsError(f"write failed: {exc}") from exc

    def _read_loop(self) -> None:
        reader = self._reader
        try:
            while reader is not None:
                op, line = _read_line(reader)
                if op in ("MSG", "HMSG"):
                    self._dispatch(line, reader, with_headers=op == "HMSG")
                elif op == "PING":
                    self._send(b"PONG\r\n")
                elif op == "-ERR":
                    self.last_error = NatsError(_error_text(line))
                    self._logger.error("NATS server error: %s", self.last_error)
        except (NatsError, OSError, ValueError) as exc:
            if not self._closed:
                self.last_error = exc if isinstance(exc, NatsError) else NatsError(str(exc))
                self._logger.error("NATS connection lost: %s", self.last_error)
        finally:
            self._closed = True

    def _dispatch(self, line: str, reader: BinaryIO, *, with_headers: bool) -> None:
        parts = line.split()
        if len(parts) not in ((5, 6) if with_headers else (4, 5)):
            raise NatsError(f"malformed message line {line!r}")
        size = int(parts[-1])
        data = reader.read(size)
        if len(data) < size or reader.read(2) != b"\r\n":
            raise NatsError("truncated message")
        payload = data[int(parts[-2]):] if with_headers else data
        sub = self._subscriptions.get(int(parts[2]))
        if sub is None:
            return
        try:
            sub.callback(payload)
        except Exception:
            self._logger.exception("Subscription callback failed for %s", sub.subject)