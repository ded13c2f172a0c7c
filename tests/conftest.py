import os

import pytest

import refcache
from refcache import BaseClock

# 2015-08-25 12:00:00 UTC
START = 1440504000.0


class MockedClock(BaseClock):
    def __init__(self, now: float = START) -> None:
        self.current = now

    def now(self) -> float:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += seconds


@pytest.fixture()
def clock() -> MockedClock:
    return MockedClock()


@pytest.fixture()
def sink() -> refcache.MemorySink:
    return refcache.MemorySink()


@pytest.fixture()
def use_temp_dir(tmpdir):
    cur_dir = os.getcwd()
    os.chdir(tmpdir)
    yield
    os.chdir(cur_dir)
