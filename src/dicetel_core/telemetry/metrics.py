"""Counter instruments and the registry that owns them."""

from __future__ import annotations

import threading
from typing import Any, Optional, Sequence

from opentelemetry.metrics import Counter
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import InMemoryMetricReader, MetricReader, Sum
from opentelemetry.sdk.resources import Resource

from dicetel_core.exceptions import InvalidArgumentError


class CounterInstrument:
    """A named, monotonically increasing counter with cumulative semantics.

    Attributes
    ----------
    name : str
        Instrument name, unique within its registry
    description : str
        Human-readable description
    unit : str
        Unit of measurement
    """

    def __init__(
        self,
        registry: MeterRegistry,
        counter: Counter,
        name: str,
        description: str = '',
        unit: str = '',
    ):
        self.name = name
        self.description = description
        self.unit = unit
        self._registry = registry
        self._counter = counter

    def add(self, delta: int | float = 1, attributes: Optional[dict[str, Any]] = None) -> None:
        """Add ``delta`` to the running total.

        Raises
        ------
        InvalidArgumentError
            If ``delta`` is negative.
        """
        if delta < 0:
            raise InvalidArgumentError(
                f'Counter "{self.name}" only accepts non-negative increments, got {delta}'
            )
        self._counter.add(delta, attributes=attributes)

    def snapshot(self) -> int | float:
        """Return the accumulated total without resetting it."""
        return self._registry.collect().get(self.name, 0)

    def __repr__(self) -> str:
        return f'CounterInstrument(name={self.name!r}, value={self.snapshot()})'


class MeterRegistry:
    """Registry of counters, keyed by name, backed by an SDK meter provider.

    Counters are created lazily on first request and live as long as the
    registry. Asking twice for the same name returns the same instrument.

    Parameters
    ----------
    resource : Resource, optional
        Identity attached to every exported metric.
    readers : Sequence[MetricReader], optional
        Additional readers, e.g. the periodic exporting reader of the
        export pipeline. An in-memory reader is always attached so totals
        can be read back locally.
    scope : str, optional
        Instrumentation scope of the counters.
    """

    def __init__(
        self,
        resource: Optional[Resource] = None,
        readers: Sequence[MetricReader] = (),
        scope: str = 'dicetel',
    ):
        self._reader = InMemoryMetricReader()
        kwargs = {'resource': resource} if resource is not None else {}
        self.provider = MeterProvider(
            metric_readers=[self._reader, *readers],
            shutdown_on_exit=False,
            **kwargs,
        )
        self._meter = self.provider.get_meter(scope)
        self._lock = threading.Lock()
        self._counters: dict[str, CounterInstrument] = {}
        self._totals: dict[str, int | float] = {}

    def counter(
        self, name: str, description: str = '', unit: str = ''
    ) -> CounterInstrument:
        """Get or create the counter called ``name``.

        The description and unit are only used when the counter is created.

        Raises
        ------
        InvalidArgumentError
            If ``name`` is empty or not a valid instrument name.
        """
        if not name:
            raise InvalidArgumentError('Counter name must not be empty')
        with self._lock:
            instrument = self._counters.get(name)
            if instrument is None:
                try:
                    counter = self._meter.create_counter(name, unit=unit, description=description)
                except Exception as exc:
                    raise InvalidArgumentError(f'Invalid counter name "{name}": {exc}') from exc
                instrument = CounterInstrument(self, counter, name, description, unit)
                self._counters[name] = instrument
            return instrument

    def get(self, name: str) -> Optional[CounterInstrument]:
        with self._lock:
            return self._counters.get(name)

    def counters(self) -> list[CounterInstrument]:
        with self._lock:
            return list(self._counters.values())

    def collect(self) -> dict[str, int | float]:
        """Read the cumulative total of every counter that was incremented.

        Totals read last are kept, so they stay available once the meter
        provider has been shut down.
        """
        data = self._reader.get_metrics_data()
        totals: dict[str, int | float] = {}
        if data is not None:
            for resource_metrics in data.resource_metrics:
                for scope_metrics in resource_metrics.scope_metrics:
                    for metric in scope_metrics.metrics:
                        if isinstance(metric.data, Sum):
                            totals[metric.name] = sum(
                                point.value for point in metric.data.data_points
                            )
        with self._lock:
            self._totals.update(totals)
            return dict(self._totals)

    def shutdown(self, timeout_millis: float = 30000) -> None:
        """Export the final totals to every reader and stop them."""
        self.collect()
        self.provider.shutdown(timeout_millis=timeout_millis)

    def __len__(self) -> int:
        with self._lock:
            return len(self._counters)
