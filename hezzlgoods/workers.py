"""Background workers moving change events from NATS into ClickHouse."""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Iterable, Protocol, Sequence

from hezzlgoods.clickhouse import ClickHouseError
from hezzlgoods.eventlog import LOG_SUBJECT, LogData
from hezzlgoods.natsclient import NatsError

BATCH_SIZE = 10
FLUSH_INTERVAL = 5.0
LOG_TABLE = "logs"


class _Inserter(Protocol):
    def insert(self, table: str, rows: Iterable[Sequence[Any]]) -> int: ...


class _Subscription(Protocol):
    def unsubscribe(self) -> None: ...


class _Subscriber(Protocol):
    def subscribe(self, subject: str, callback: Callable[[bytes], Any]) -> _Subscription: ...


def _row(data: LogData) -> tuple[Any, ...]:
    return (
        data.id,
        data.project_id,
        data.name,
        data.description,
        data.priority,
        data.removed,
        data.timestamp,
    )


class ClickHouseWriter:
    """Buffers events and writes them to ClickHouse in batches."""

    def __init__(
        self,
        client: _Inserter,
        *,
        batch_size: int = BATCH_SIZE,
        flush_interval: float = FLUSH_INTERVAL,
        table: str = LOG_TABLE,
        logger: logging.Logger | None = None,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        if flush_interval <= 0:
            raise ValueError("flush_interval must be positive")
        self._client = client
        self._batch_size = batch_size
        self._interval = flush_interval
        self._table = table
        self._logger = logger or logging.getLogger(__name__)
        self._buffer: list[LogData] = []
        self._lock = threading.RLock()
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def pending(self) -> int:
        """Number of events waiting to be written."""
        with self._lock:
            return len(self._buffer)

    def write(self, data: LogData) -> int:
        """Buffer one event; flush when the batch is full and return rows written."""
        with self._lock:
            self._buffer.append(data)
            if len(self._buffer) >= self._batch_size:
                return self.flush()
        return 0

    def flush(self) -> int:
        """Write every buffered event and return how many were sent.

        The buffer is emptied before sending, so a failed send drops the batch.
        """
        with self._lock:
            if not self._buffer:
                return 0
            rows = [_row(item) for item in self._buffer]
            self._buffer.clear()
            return self._client.insert(self._table, rows)

    def start(self) -> None:
        """Begin flushing the buffer periodically in a background thread."""
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._periodic_flush, name="clickhouse-writer", daemon=True
        )
        self._thread.start()

    def close(self) -> None:
        """Stop the periodic flush and write what is still buffered."""
        self._stop.set()
        thread, self._thread = self._thread, None
        if thread is not None and thread is not threading.current_thread():
            thread.join()
        self.flush()

    def _periodic_flush(self) -> None:
        while not self._stop.wait(self._interval):
            try:
                self.flush()
            except ClickHouseError as exc:
                self._logger.error("Periodic flush to ClickHouse failed", exc_info=exc)


class NatsConsumer:
    """Receives change events from NATS and hands them to a ClickHouseWriter."""

    def __init__(
        self,
        connection: _Subscriber,
        writer: ClickHouseWriter,
        logger: logging.Logger | None = None,
    ) -> None:
        self._connection = connection
        self._writer = writer
        self._logger = logger or logging.getLogger(__name__)
        self._subscription: _Subscription | None = None
        self._inflight = 0
        self._idle = threading.Condition()

    def start(self, subject: str = LOG_SUBJECT) -> _Subscription:
        """Subscribe to a subject; each message goes through handle."""
        self._subscription = self._connection.subscribe(subject, self.handle)
        return self._subscription

    def handle(self, payload: bytes) -> None:
        """Decode one message and pass it to the writer; failures are logged."""
        with self._idle:
            self._inflight += 1
        try:
            try:
                data = LogData.from_json(payload)
            except ValueError as exc:
                self._logger.error("Failed to unmarshal message", exc_info=exc)
                return
            try:
                self._writer.write(data)
            except ClickHouseError as exc:
                self._logger.error("Failed to write to ClickHouse worker", exc_info=exc)
        finally:
            with self._idle:
                self._inflight -= 1
                if self._inflight == 0:
                    self._idle.notify_all()

    def stop(self) -> None:
        """Unsubscribe, wait for messages in progress, then close the writer."""
        subscription = self._subscription
        if subscription is None:
            raise NatsError("consumer is not subscribed")
        subscription.unsubscribe()
        self._subscription = None
        with self._idle:
            self._idle.wait_for(lambda: self._inflight == 0)
        self._writer.close()