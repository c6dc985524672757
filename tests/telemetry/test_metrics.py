import threading

import pytest

from dicetel_core.exceptions import InvalidArgumentError
from dicetel_core.telemetry import MeterRegistry


class TestCounterInstrument:
    def test_add_accumulates(self):
        counter = MeterRegistry().counter('dice_roll_requests')

        counter.add(1)
        counter.add(2)

        assert counter.snapshot() == 3

    def test_default_increment_is_one(self):
        counter = MeterRegistry().counter('dice_roll_requests')

        counter.add()

        assert counter.snapshot() == 1

    def test_negative_increment_is_rejected(self):
        counter = MeterRegistry().counter('dice_roll_requests')
        counter.add(5)

        with pytest.raises(InvalidArgumentError):
            counter.add(-1)

        assert counter.snapshot() == 5

    def test_zero_increment_is_allowed(self):
        counter = MeterRegistry().counter('dice_roll_requests')

        counter.add(0)

        assert counter.snapshot() == 0

    def test_snapshot_does_not_reset(self):
        counter = MeterRegistry().counter('dice_roll_requests')
        counter.add(4)

        assert counter.snapshot() == 4
        assert counter.snapshot() == 4

    def test_concurrent_adds_lose_no_update(self):
        counter = MeterRegistry().counter('dice_roll_requests')
        workers = 16
        increments = 2000
        barrier = threading.Barrier(workers)

        def hammer(delta):
            barrier.wait()
            for _ in range(increments):
                counter.add(delta)

        threads = [threading.Thread(target=hammer, args=(i % 3 + 1,)) for i in range(workers)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        expected = sum((i % 3 + 1) * increments for i in range(workers))
        assert counter.snapshot() == expected


class TestMeterRegistry:
    def test_same_name_returns_same_counter(self):
        registry = MeterRegistry()

        first = registry.counter('dice_roll_requests', 'Counts requests', '1')
        second = registry.counter('dice_roll_requests')
        first.add(3)
        second.add(4)

        assert first is second
        assert registry.counter('dice_roll_requests').snapshot() == 7
        assert len(registry) == 1

    def test_description_and_unit_come_from_first_creation(self):
        registry = MeterRegistry()
        registry.counter('dice_roll_requests', 'Counts requests', '1')

        counter = registry.counter('dice_roll_requests', 'Something else', 'ms')

        assert counter.description == 'Counts requests'
        assert counter.unit == '1'

    def test_empty_name_is_rejected(self):
        with pytest.raises(InvalidArgumentError):
            MeterRegistry().counter('')

    def test_concurrent_creation_yields_one_counter(self):
        registry = MeterRegistry()
        barrier = threading.Barrier(8)
        handles = []
        lock = threading.Lock()

        def create():
            barrier.wait()
            handle = registry.counter('dice_roll_requests')
            handle.add(1)
            with lock:
                handles.append(handle)

        threads = [threading.Thread(target=create) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len({id(handle) for handle in handles}) == 1
        assert registry.get('dice_roll_requests').snapshot() == 8

    def test_collect_reads_every_counter(self):
        registry = MeterRegistry()
        registry.counter('dice_roll_requests', unit='1').add(2)
        registry.counter('players').add(1)
        registry.counter('idle')

        totals = registry.collect()

        assert totals == {'dice_roll_requests': 2, 'players': 1}

    def test_attributes_are_summed_into_one_total(self):
        counter = MeterRegistry().counter('dice_roll_requests')

        counter.add(1, attributes={'player': 'Alice'})
        counter.add(2, attributes={'player': 'Bob'})

        assert counter.snapshot() == 3

    def test_invalid_name_is_rejected(self):
        with pytest.raises(InvalidArgumentError):
            MeterRegistry().counter('1 dice rolls')

    def test_totals_survive_shutdown(self):
        registry = MeterRegistry()
        counter = registry.counter('dice_roll_requests')
        counter.add(4)

        registry.shutdown()

        assert counter.snapshot() == 4

    def test_get_unknown_counter(self):
        assert MeterRegistry().get('missing') is None
