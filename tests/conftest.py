"""Shared fixtures: a controllable clock, a manual tick scheduler and a seeded catalog."""

from datetime import datetime

import pytest

from experiments import build_catalog

EPOCH = 1_760_000_000.0


class FakeClock:
    def __init__(self, start: float = EPOCH):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class ManualJob:
    def __init__(self, interval, function, name, next_due):
        self.interval = interval
        self.function = function
        self.name = name
        self.next_due = next_due
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class ManualScheduler:
    """Stands in for TickScheduler; ticks fire only from advance()."""

    def __init__(self, clock: FakeClock):
        self.clock = clock
        self.jobs: list[ManualJob] = []

    def every(self, interval, function, name=None):
        job = ManualJob(interval, function, name, self.clock.now + interval)
        self.jobs.append(job)
        return job

    def active(self) -> list[ManualJob]:
        return [j for j in self.jobs if not j.cancelled]

    def advance(self, seconds: float):
        target = self.clock.now + seconds
        while True:
            due = [j for j in self.active() if j.next_due <= target]
            if not due:
                break
            job = min(due, key=lambda j: j.next_due)
            self.clock.now = job.next_due
            job.next_due += job.interval
            job.function()
        self.clock.now = target


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def scheduler(clock):
    return ManualScheduler(clock)


@pytest.fixture
def catalog():
    return build_catalog(seed=42, now=datetime(2026, 10, 16, 12, 0))
