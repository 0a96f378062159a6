from __future__ import annotations

from typing import List

import pytest

from rpi4wd.control import CarController
from rpi4wd.hardware import MockGpio


class FakeClock:
    """호출될 때마다 step 만큼 흐르는 가짜 시계."""

    def __init__(self, step: float = 1e-5) -> None:
        self.t = 0.0
        self.step = step

    def __call__(self) -> float:
        self.t += self.step
        return self.t


class SleepRecorder:
    def __init__(self) -> None:
        self.calls: List[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def gpio() -> MockGpio:
    return MockGpio()


@pytest.fixture
def sleeper() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def car(gpio: MockGpio, sleeper: SleepRecorder):
    controller = CarController(gpio, register_atexit=False, sleep=sleeper)
    yield controller
    gpio.fail_on = None
    controller.shutdown()


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()
