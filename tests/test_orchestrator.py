"""Tests for batch orchestration."""

import asyncio
import pytest

from errors import RemoteError
from orchestrator import BatchOrchestrator, BatchStats


class FakeConverter:
    """Records call order and concurrency; fails for chosen identifiers."""

    def __init__(self, failing=(), delay=0.01):
        self.failing = set(failing)
        self.delay = delay
        self.calls = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def convert(self, identifier):
        self.calls.append(identifier)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
            if identifier in self.failing:
                raise RemoteError(f"boom {identifier}")
            return identifier
        finally:
            self.in_flight -= 1


IDS = [f"C{i}" for i in range(1, 11)]


class TestParallel:
    def test_admission_bound(self):
        fake = FakeConverter()
        report = asyncio.run(BatchOrchestrator(fake.convert, parallel=3).run(IDS))
        assert fake.max_in_flight <= 3
        assert fake.max_in_flight > 1
        assert report.total == 10
        assert report.success == 10
        assert report.failed == 0

    def test_failures_isolated(self):
        fake = FakeConverter(failing={"C2", "C7"})
        report = asyncio.run(BatchOrchestrator(fake.convert, parallel=4).run(IDS))
        assert sorted(fake.calls) == sorted(IDS)
        assert report.success == 8
        assert report.failed == 2
        assert sorted(report.failed_ids) == ["C2", "C7"]
        assert report.success + report.failed == report.total


class TestSequential:
    def test_single_slot_keeps_order(self):
        fake = FakeConverter(delay=0)
        report = asyncio.run(BatchOrchestrator(fake.convert, parallel=1).run(IDS))
        assert fake.calls == IDS
        assert fake.max_in_flight == 1
        assert report.success == 10

    def test_stops_on_first_failure(self):
        fake = FakeConverter(failing={"C2"}, delay=0)
        stats = BatchStats()
        orchestrator = BatchOrchestrator(fake.convert, parallel=1)
        with pytest.raises(RemoteError):
            asyncio.run(orchestrator.run(["C1", "C2", "C3"], stats))
        assert fake.calls == ["C1", "C2"]
        report = stats.report(3)
        assert (report.success, report.failed, report.failed_ids) == (1, 1, ["C2"])

    def test_continue_on_error(self):
        fake = FakeConverter(failing={"C2"}, delay=0)
        orchestrator = BatchOrchestrator(fake.convert, parallel=1, continue_on_error=True)
        report = asyncio.run(orchestrator.run(["C1", "C2", "C3"]))
        assert fake.calls == ["C1", "C2", "C3"]
        assert report.failed_ids == ["C2"]
        assert report.success == 2

    def test_single_identifier_failure_propagates(self):
        fake = FakeConverter(failing={"C1"}, delay=0)
        with pytest.raises(RemoteError):
            asyncio.run(BatchOrchestrator(fake.convert, parallel=8).run(["C1"]))

    def test_empty_batch(self):
        fake = FakeConverter()
        report = asyncio.run(BatchOrchestrator(fake.convert).run([]))
        assert (report.total, report.success, report.failed) == (0, 0, 0)
