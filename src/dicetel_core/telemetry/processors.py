"""Admission control in front of the SDK batch processors.

The SDK batch processors keep their records in a bounded queue that evicts
the oldest entry when full, without telling anyone. :class:`ExportQueue`
tracks how many records are waiting for each signal and applies the
configured overflow policy before a record reaches that queue, counting and
reporting every record it drops.
"""

from __future__ import annotations

import logging
import threading
from enum import Enum
from typing import Optional

from opentelemetry.context import Context
from opentelemetry.sdk.trace import ReadableSpan, Span, SpanProcessor

from dicetel_core.exceptions import InvalidArgumentError
from dicetel_core.telemetry.metrics import CounterInstrument, MeterRegistry

logger = logging.getLogger(__name__)


class OverflowPolicy(str, Enum):
    DROP_NEWEST = 'drop_newest'
    DROP_OLDEST = 'drop_oldest'


class ExporterStats:
    """Counters describing the health of one exporter."""

    def __init__(self, name: str, registry: Optional[MeterRegistry] = None):
        registry = registry or MeterRegistry()
        self.exported: CounterInstrument = registry.counter(
            f'exporter.{name}.exported', 'Records delivered to the collector', '1'
        )
        self.failures: CounterInstrument = registry.counter(
            f'exporter.{name}.failures', 'Transmissions that failed', '1'
        )
        self.dropped: CounterInstrument = registry.counter(
            f'exporter.{name}.dropped', 'Records discarded before transmission', '1'
        )


class ExportQueue:
    """Counts the records waiting in one batch processor.

    :meth:`admit` is called when a record is produced, :meth:`release` when
    the exporter picks up a batch. While the queue is full, records are
    dropped according to ``policy`` and a single warning is logged for the
    whole overflow episode; the episode ends as soon as there is room again.

    Parameters
    ----------
    name : str
        The signal, used in log messages
    max_size : int
        Capacity of the SDK queue behind this guard
    policy : OverflowPolicy, optional
        ``drop_newest`` rejects the new record. ``drop_oldest`` admits it and
        lets the SDK queue evict its oldest entry.
    stats : ExporterStats, optional
        Receives the dropped records
    """

    def __init__(
        self,
        name: str,
        max_size: int,
        policy: OverflowPolicy | str = OverflowPolicy.DROP_NEWEST,
        stats: Optional[ExporterStats] = None,
    ):
        if max_size <= 0:
            raise InvalidArgumentError(f'Queue size must be positive, got {max_size}')
        self.name = name
        self.max_size = max_size
        self.policy = OverflowPolicy(policy)
        self.stats = stats or ExporterStats(name)
        self._lock = threading.Lock()
        self._pending = 0
        self._overflowing = False

    @property
    def pending(self) -> int:
        with self._lock:
            return self._pending

    @property
    def is_overflowing(self) -> bool:
        with self._lock:
            return self._overflowing

    def admit(self) -> bool:
        """Account for a new record.

        Returns
        -------
        bool
            False if the record must be discarded.
        """
        with self._lock:
            if self._pending < self.max_size:
                self._pending += 1
                return True

            first_drop = not self._overflowing
            self._overflowing = True

        self.stats.dropped.add(1)
        if first_drop:
            logger.warning(
                f'Export buffer for {self.name} is full ({self.max_size} records), '
                f'dropping telemetry ({self.policy.value})'
            )
        return self.policy is OverflowPolicy.DROP_OLDEST

    def release(self, count: int) -> None:
        """Account for ``count`` records taken by the exporter."""
        with self._lock:
            self._pending = max(0, self._pending - count)
            if self._pending < self.max_size:
                self._overflowing = False


class BoundedSpanProcessor(SpanProcessor):
    """Puts an :class:`ExportQueue` in front of a span processor.

    Ended spans the queue does not admit never reach ``processor``.
    """

    def __init__(self, processor: SpanProcessor, queue: ExportQueue):
        self._processor = processor
        self.queue = queue

    def on_start(self, span: Span, parent_context: Optional[Context] = None) -> None:
        self._processor.on_start(span, parent_context=parent_context)

    def on_end(self, span: ReadableSpan) -> None:
        if self.queue.admit():
            self._processor.on_end(span)

    def shutdown(self) -> None:
        self._processor.shutdown()

    def force_flush(self, timeout_millis: int = 30000) -> bool:
        return self._processor.force_flush(timeout_millis)
