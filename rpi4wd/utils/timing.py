"""유한 대기를 위한 시간 유틸리티."""

from __future__ import annotations

import math
import time
from typing import Any, Callable

from rpi4wd.errors import InvalidParameter

Clock = Callable[[], float]


def validate_timeout(timeout_s: Any, name: str = "timeout_s") -> float:
    """대기 제한 시간 검증. 0보다 큰 유한한 숫자만 허용한다 (NaN/inf 거부)."""
    if isinstance(timeout_s, bool) or not isinstance(timeout_s, (int, float)):
        raise InvalidParameter(f"{name} 는 숫자여야 합니다: {timeout_s!r}")
    if not math.isfinite(timeout_s) or timeout_s <= 0:
        raise InvalidParameter(f"{name} 는 0보다 큰 유한한 값이어야 합니다: {timeout_s}")
    return float(timeout_s)


class Deadline:
    """제한 시간 기반 대기 종료 판정기.

    에코 대기나 키 입력처럼 하드웨어 응답을 기다리는 루프가 무한히 멈추지 않도록
    시작 시각 기준 마감을 계산한다. clock 을 주입하면 테스트에서 시간을 제어할 수 있다.
    """

    def __init__(self, timeout_s: float, clock: Clock = time.perf_counter) -> None:
        if not math.isfinite(timeout_s) or timeout_s < 0:
            raise ValueError(f"timeout_s 는 0 이상의 유한한 값이어야 합니다: {timeout_s}")
        self.timeout_s = float(timeout_s)
        self._clock = clock
        self.start = clock()
        self.end = self.start + self.timeout_s

    def now(self) -> float:
        return self._clock()

    def expired(self) -> bool:
        return self._clock() >= self.end

    def remaining(self) -> float:
        return max(0.0, self.end - self._clock())


def sleep_us(microseconds: float) -> None:
    time.sleep(microseconds / 1_000_000.0)
