"""Wiring of the goods service and its command-line entry point."""

from __future__ import annotations

import argparse
import logging
import signal
import threading
from contextlib import ExitStack
from socketserver import ThreadingMixIn
from typing import Any
from wsgiref.simple_server import WSGIRequestHandler, WSGIServer, make_server

import redis
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine

from hezzlgoods.cache import GoodsCache
from hezzlgoods.clickhouse import ClickHouseClient
from hezzlgoods.config import Config, ConfigError, load_config
from hezzlgoods.eventlog import LOG_SUBJECT, EventLogger
from hezzlgoods.natsclient import NatsConnection
from hezzlgoods.repository import GoodsRepository, create_schema
from hezzlgoods.services import Services
from hezzlgoods.web import create_app
from hezzlgoods.workers import ClickHouseWriter, NatsConsumer

DEFAULT_REDIS_PORT = 6379
_ANY_HOST = "0.0.0.0"


def _split_address(address: str, default_host: str, default_port: int | None = None) -> tuple[str, int]:
    text_value = address.strip()
    if text_value.startswith("["):
        host, _, rest = text_value[1:].partition("]")
        if rest and not rest.startswith(":"):
            raise ValueError(f"malformed address {address!r}")
        port_text = rest[1:]
    else:
        host, sep, port_text = text_value.rpartition(":")
        if not sep:
            host, port_text = text_value, ""
    if not port_text:
        if default_port is None:
            raise ValueError(f"missing port in address {address!r}")
        port = default_port
    elif port_text.isdigit() and int(port_text) < 65536:
        port = int(port_text)
    else:
        raise ValueError(f"invalid port in address {address!r}")
    return host or default_host, port


def _database_url(dsn: str) -> str:
    if dsn.startswith("postgres://"):
        return "postgresql://" + dsn[len("postgres://"):]
    return dsn


def _redis_client(dsn: str) -> redis.Redis:
    if "://" in dsn:
        return redis.Redis.from_url(dsn)
    host, port = _split_address(dsn, "localhost", DEFAULT_REDIS_PORT)
    return redis.Redis(host=host, port=port, password=None, db=0)


class _ThreadingServer(ThreadingMixIn, WSGIServer):
    daemon_threads = True
    allow_reuse_address = True


class _QuietHandler(WSGIRequestHandler):
    def log_message(self, format: str, *args: Any) -> None:
        logging.getLogger(__name__).info("%s %s", self.address_string(), format % args)


class Application:
    """All components of the service, started and stopped together."""

    def __init__(
        self,
        config: Config,
        *,
        engine: Engine | None = None,
        redis_client: Any = None,
        nats: Any = None,
        clickhouse: Any = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.config = config
        self.logger = logger or logging.getLogger("hezzlgoods")
        self.engine = engine if engine is not None else create_engine(
            _database_url(config.pg_dsn), pool_pre_ping=True
        )
        self.redis = redis_client if redis_client is not None else _redis_client(config.redis_dsn)
        self.nats = nats if nats is not None else NatsConnection(config.nats_addr, logger=self.logger)
        self.clickhouse = clickhouse if clickhouse is not None else ClickHouseClient(
            config.ch_addr, config.ch_user, config.ch_password
        )
        self.repository = GoodsRepository(self.engine, self.logger)
        self.cache = GoodsCache(self.redis, self.repository, self.logger)
        self.events = EventLogger(self.nats, self.logger)
        self.services = Services(self.repository, self.cache, self.events, self.logger)
        self.writer = ClickHouseWriter(self.clickhouse, logger=self.logger)
        self.consumer = NatsConsumer(self.nats, self.writer, self.logger)
        self.web = create_app(self.services)
        self._server: _ThreadingServer | None = None
        self._stack: ExitStack | None = None

    def __enter__(self) -> Application:
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()

    @property
    def address(self) -> tuple[str, int]:
        """Host and port the HTTP server listens on."""
        if self._server is None:
            raise RuntimeError("application is not started")
        host, port = self._server.server_address[:2]
        return str(host), int(port)

    def start(self) -> None:
        """Connect to every backing service, then serve HTTP and consume events.

        When a step fails, the steps already done are undone and the error
        is raised.
        """
        if self._stack is not None:
            raise RuntimeError("application is already started")
        with ExitStack() as stack:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            stack.callback(self.engine.dispose)

            stack.callback(self.clickhouse.close)
            self.clickhouse.ping()

            stack.callback(self.redis.close)
            self.redis.ping()

            if not self.nats.is_connected:
                self.nats.connect()
            stack.callback(self.nats.close)

            self.logger.info("Starting migrations!")
            create_schema(self.engine)

            self._start_server()
            stack.callback(self._stop_server)

            self.writer.start()
            stack.callback(self.writer.close)

            self.consumer.start(LOG_SUBJECT)
            stack.callback(self.consumer.stop)

            self._stack = stack.pop_all()

    def stop(self) -> None:
        """Stop everything that start brought up, in reverse order."""
        stack, self._stack = self._stack, None
        if stack is not None:
            stack.close()

    def _start_server(self) -> None:
        host, port = _split_address(self.config.addr, _ANY_HOST)
        self.logger.info("Starting HTTP server addr=%s", self.config.addr)
        server = make_server(
            host, port, self.web, server_class=_ThreadingServer, handler_class=_QuietHandler
        )
        thread = threading.Thread(
            target=server.serve_forever, kwargs={"poll_interval": 0.1}, name="http-server", daemon=True
        )
        thread.start()
        self._server = server
        self._server_thread = thread

    def _stop_server(self) -> None:
        server, self._server = self._server, None
        if server is None:
            return
        server.shutdown()
        server.server_close()
        self._server_thread.join()


def main(argv: list[str] | None = None) -> int:
    """Run the service until interrupted; return the exit status."""
    parser = argparse.ArgumentParser(
        prog="hezzlgoods",
        description="Goods service; configured through environment variables.",
    )
    parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG, format="%(asctime)s %(levelname)s %(name)s %(message)s"
    )
    logger = logging.getLogger("hezzlgoods")

    try:
        config = load_config()
    except ConfigError as exc:
        logger.error("%s", exc)
        return 1

    try:
        application = Application(config, logger=logger)
        application.start()
    except Exception as exc:  # noqa: BLE001 - any startup failure ends the process
        logger.error("Failed to start: %s", exc)
        return 1

    stopping = threading.Event()
    signals = (signal.SIGINT, signal.SIGTERM)
    previous = {sig: signal.signal(sig, lambda *_: stopping.set()) for sig in signals}
    try:
        while not stopping.wait(1.0):
            pass
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)
        application.stop()
    return 0