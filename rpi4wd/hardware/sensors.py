"""초음파 거리 센서와 디지털 센서(적외선 근접, 라인 트래킹, 조도)."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

from rpi4wd.errors import Timeout
from rpi4wd.hardware.device import DeviceHandle
from rpi4wd.hardware.gpio import HIGH, LOW, GpioBackend
from rpi4wd.hardware.pins import INFRARED_ROLES, LIGHT_ROLES, TRACKING_ROLES, PinAssignment
from rpi4wd.utils.timing import Clock, Deadline, sleep_us, validate_timeout

logger = logging.getLogger(__name__)

# HC-SR04 데이터시트: 10us 트리거, 최대 측정 주기 ~30Hz
TRIGGER_PULSE_US = 10.0
DEFAULT_ECHO_TIMEOUT_S = 0.033333


@dataclass(frozen=True)
class SensorReading:
    value: Optional[float]
    unit: str
    valid: bool
    timed_out: bool = False
    timestamp: float = field(default_factory=time.time)

    @classmethod
    def timeout(cls, unit: str) -> "SensorReading":
        return cls(value=None, unit=unit, valid=False, timed_out=True)


def speed_of_sound_cm_s(temperature_c: float) -> float:
    return (331.3 + 0.606 * float(temperature_c)) * 100.0


class Ultrasonic(DeviceHandle):
    """트리거 펄스 후 에코 폭을 재서 거리(cm)를 구하는 초음파 센서.

    에코 대기는 상승/하강 에지 모두 하나의 Deadline 으로 묶여 있어 응답이 없어도
    timeout_s 안에 반환된다.
    """

    def __init__(
        self,
        gpio: GpioBackend,
        pins: PinAssignment,
        timeout_s: float = DEFAULT_ECHO_TIMEOUT_S,
        temperature_c: float = 20.0,
        min_cm: float = 2.0,
        max_cm: float = 500.0,
        clock: Clock = time.perf_counter,
        name: str = "ultrasonic",
    ) -> None:
        self.timeout_s = validate_timeout(timeout_s)
        self.temperature_c = float(temperature_c)
        self.min_cm = float(min_cm)
        self.max_cm = float(max_cm)
        self._clock = clock
        trigger, echo = pins.require("ultrasonic_trigger", "ultrasonic_echo")
        super().__init__(gpio, name, {"trigger": trigger, "echo": echo})

    @property
    def speed_of_sound_cm_s(self) -> float:
        return speed_of_sound_cm_s(self.temperature_c)

    def _setup(self) -> None:
        self.gpio.setup_output(self.pins["trigger"], LOW)
        self.gpio.setup_input(self.pins["echo"])

    def _make_inert(self) -> None:
        self.gpio.output(self.pins["trigger"], LOW)

    def _ping(self) -> None:
        trigger = self.pins["trigger"]
        self.gpio.output(trigger, HIGH)
        sleep_us(TRIGGER_PULSE_US)
        self.gpio.output(trigger, LOW)

    def measure(self, timeout_s: Optional[float] = None) -> SensorReading:
        """한 번 측정한다. 에코가 제한 시간 안에 끝나지 않으면 Timeout."""
        timeout = self.timeout_s if timeout_s is None else validate_timeout(timeout_s)
        self._ensure_open()

        echo = self.pins["echo"]
        self._ping()
        deadline = Deadline(timeout, self._clock)

        while self.gpio.input(echo) == LOW:
            if deadline.expired():
                raise Timeout(f"{self.name}: {timeout * 1000:.1f}ms 동안 에코 시작이 없습니다")
        rising = deadline.now()

        while self.gpio.input(echo) == HIGH:
            if deadline.expired():
                raise Timeout(f"{self.name}: {timeout * 1000:.1f}ms 안에 에코가 끝나지 않았습니다")
        falling = deadline.now()

        distance = (falling - rising) * self.speed_of_sound_cm_s / 2.0
        valid = self.min_cm < distance < self.max_cm
        if not valid:
            logger.debug("%s: 측정 범위 밖 거리 %.1fcm", self.name, distance)
        return SensorReading(value=distance, unit="cm", valid=valid)

    def read(self, timeout_s: Optional[float] = None, raise_on_timeout: bool = False) -> SensorReading:
        """measure() 와 같지만 기본적으로 타임아웃을 무효 측정값으로 돌려준다."""
        try:
            return self.measure(timeout_s)
        except Timeout:
            if raise_on_timeout:
                raise
            logger.debug("%s: 에코 타임아웃", self.name)
            return SensorReading.timeout("cm")


class DigitalSensors(DeviceHandle):
    """입력 핀 여러 개를 폴링해서 역할별 감지 여부를 돌려준다."""

    active_low = True

    def __init__(
        self, gpio: GpioBackend, pins: PinAssignment, roles: Tuple[str, ...], name: str, pull: Optional[str] = None
    ) -> None:
        self.roles = roles
        self.pull = pull
        super().__init__(gpio, name, dict(zip(roles, pins.require(*roles))))

    def _setup(self) -> None:
        for pin in self.pins.values():
            self.gpio.setup_input(pin, self.pull)

    def _make_inert(self) -> None:
        pass

    def read(self) -> Dict[str, bool]:
        self._ensure_open()
        active = LOW if self.active_low else HIGH
        return {role: self.gpio.input(pin) == active for role, pin in self.pins.items()}


class InfraredProximity(DigitalSensors):
    """좌/우 적외선 장애물 센서. LOW 면 장애물 감지."""

    def __init__(self, gpio: GpioBackend, pins: PinAssignment) -> None:
        super().__init__(gpio, pins, INFRARED_ROLES, "infrared")


class LineTracker(DigitalSensors):
    """4채널 라인 트래킹 센서. LOW 면 검은 선 감지."""

    def __init__(self, gpio: GpioBackend, pins: PinAssignment) -> None:
        super().__init__(gpio, pins, TRACKING_ROLES, "tracking")


class LightSensors(DigitalSensors):
    """좌/우 조도(LDR) 센서. HIGH 면 빛 감지."""

    active_low = False

    def __init__(self, gpio: GpioBackend, pins: PinAssignment) -> None:
        super().__init__(gpio, pins, LIGHT_ROLES, "light")
