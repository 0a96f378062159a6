"""부저/키, 팬, RGB LED 등 사람과 상호작용하는 장치."""

from __future__ import annotations

import logging
import math
import time
from typing import Any, Callable, Dict, Tuple

from rpi4wd.errors import InvalidParameter, Timeout
from rpi4wd.hardware.device import DeviceHandle
from rpi4wd.hardware.gpio import HIGH, LOW, PULL_UP, GpioBackend
from rpi4wd.hardware.pins import PinAssignment
from rpi4wd.utils.timing import Clock, Deadline, validate_timeout

logger = logging.getLogger(__name__)

Sleep = Callable[[float], None]

# 0 끄기, 1 흰색, 2 빨강, 3 초록, 4 파랑, 5 청록, 6 자홍, 7 노랑
COLOR_PALETTE: Tuple[Tuple[int, int, int], ...] = (
    (0, 0, 0),
    (100, 100, 100),
    (100, 0, 0),
    (0, 100, 0),
    (0, 0, 100),
    (0, 100, 100),
    (100, 0, 100),
    (100, 100, 0),
)

KEY_SAMPLE_PERIOD_S = 0.003


def _validate_seconds(seconds: Any, upper: float, what: str) -> float:
    if isinstance(seconds, bool) or not isinstance(seconds, (int, float)):
        raise InvalidParameter(f"{what} 시간은 숫자여야 합니다: {seconds!r}")
    if not 0 <= seconds <= upper:
        raise InvalidParameter(f"{what} 시간은 0~{upper}초 범위여야 합니다: {seconds}")
    return float(seconds)


class BuzzerKey(DeviceHandle):
    """부저와 KEY 버튼이 한 핀을 공유한다.

    평소에는 풀업 입력(KEY), 울릴 때만 출력으로 바꿔 LOW 를 준다 (액티브 로우).
    """

    def __init__(
        self,
        gpio: GpioBackend,
        pins: PinAssignment,
        beep_max_s: float = 10.0,
        sleep: Sleep = time.sleep,
        clock: Clock = time.perf_counter,
    ) -> None:
        self.beep_max_s = float(beep_max_s)
        self._sleep = sleep
        self._clock = clock
        self._output_mode = False
        (pin,) = pins.require("buzzer_key")
        super().__init__(gpio, "buzzer_key", {"io": pin})

    @property
    def pin(self) -> int:
        return self.pins["io"]

    def _setup(self) -> None:
        self._as_input()

    def _make_inert(self) -> None:
        if self._output_mode:
            self.gpio.output(self.pin, HIGH)
        self._as_input()

    def _as_input(self) -> None:
        self.gpio.setup_input(self.pin, PULL_UP)
        self._output_mode = False

    def _as_output(self) -> None:
        if not self._output_mode:
            self.gpio.setup_output(self.pin, HIGH)
            self._output_mode = True

    def beep(self, seconds: float = 0.1) -> None:
        seconds = _validate_seconds(seconds, self.beep_max_s, "부저")
        self._ensure_open()
        self._as_output()
        self.gpio.output(self.pin, LOW)
        try:
            self._sleep(seconds)
        finally:
            self.gpio.output(self.pin, HIGH)

    def whistle(self) -> None:
        self.beep(0.1)

    def wait_for_key(self, timeout_s: float = 10.0) -> None:
        """KEY 가 눌려 8번 연속 LOW 로 읽힐 때까지 기다린다 (3ms 샘플 디바운스)."""
        timeout_s = validate_timeout(timeout_s)
        self._ensure_open()
        self._as_input()
        history = 0
        deadline = Deadline(timeout_s, self._clock)
        while True:
            pressed = self.gpio.input(self.pin) == LOW
            history = ((history << 1) & 0xFF) | (1 if pressed else 0)
            if history == 0xFF:
                return
            if deadline.expired():
                raise Timeout(f"{timeout_s}초 동안 KEY 입력이 없습니다")
            self._sleep(KEY_SAMPLE_PERIOD_S)


class Fan(DeviceHandle):
    """액티브 로우 팬 (LOW = 동작)."""

    def __init__(
        self, gpio: GpioBackend, pins: PinAssignment, max_blow_s: float = 60.0, sleep: Sleep = time.sleep
    ) -> None:
        self.max_blow_s = float(max_blow_s)
        self._sleep = sleep
        self._on = False
        (pin,) = pins.require("fan")
        super().__init__(gpio, "fan", {"fan": pin})

    @property
    def is_on(self) -> bool:
        return self._on

    def _setup(self) -> None:
        self.gpio.setup_output(self.pins["fan"], HIGH)

    def _make_inert(self) -> None:
        self.gpio.output(self.pins["fan"], HIGH)
        self._on = False

    def set_fan(self, on: bool) -> None:
        self._ensure_open()
        self.gpio.output(self.pins["fan"], LOW if on else HIGH)
        self._on = bool(on)

    def toggle(self) -> bool:
        self.set_fan(not self._on)
        return self._on

    def blow(self, seconds: float = 2.0) -> None:
        """seconds 동안 팬을 돌린다. 음수는 절댓값, 상한은 max_blow_s 로 자른다."""
        if isinstance(seconds, bool) or not isinstance(seconds, (int, float)) or not math.isfinite(seconds):
            raise InvalidParameter(f"팬 동작 시간은 유한한 숫자여야 합니다: {seconds!r}")
        seconds = min(abs(float(seconds)), self.max_blow_s)
        self.set_fan(True)
        try:
            self._sleep(seconds)
        finally:
            self.set_fan(False)


class RgbLed(DeviceHandle):
    """PWM 밝기(0~100%) 제어 RGB LED."""

    CHANNELS = ("red", "green", "blue")

    def __init__(self, gpio: GpioBackend, pins: PinAssignment, frequency_hz: float = 300.0) -> None:
        self.frequency_hz = float(frequency_hz)
        self._color: Tuple[int, int, int] = (0, 0, 0)
        self._color_index = 0
        roles = [f"led_{c}" for c in self.CHANNELS]
        super().__init__(gpio, "rgb_led", dict(zip(self.CHANNELS, pins.require(*roles))))

    @property
    def color(self) -> Tuple[int, int, int]:
        return self._color

    @property
    def color_index(self) -> int:
        return self._color_index

    def _setup(self) -> None:
        for pin in self.pins.values():
            self.gpio.setup_output(pin, LOW)
            self.gpio.pwm_start(pin, self.frequency_hz, 0.0)

    def _make_inert(self) -> None:
        try:
            self.lights(0, 0, 0)
        finally:
            for pin in self.pins.values():
                self.gpio.pwm_stop(pin)

    def lights(self, red: int, green: int, blue: int) -> None:
        values: Dict[str, int] = {}
        for channel, value in zip(self.CHANNELS, (red, green, blue)):
            if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= 100:
                raise InvalidParameter(f"{channel} 밝기는 0~100 정수여야 합니다: {value!r}")
            values[channel] = value
        for channel in self.CHANNELS:
            self._ensure_open()
            self.gpio.pwm_duty(self.pins[channel], float(values[channel]))
        self._color = (values["red"], values["green"], values["blue"])

    def set_color(self, index: int) -> Tuple[int, int, int]:
        """팔레트 번호로 색을 고른다. 8 이상은 순환한다."""
        if isinstance(index, bool) or not isinstance(index, int) or index < 0:
            raise InvalidParameter(f"색 번호는 0 이상 정수여야 합니다: {index!r}")
        index = index % len(COLOR_PALETTE)
        self.lights(*COLOR_PALETTE[index])
        self._color_index = index
        return self._color
