"""좌/우 2채널 모터 드라이버 제어."""

from __future__ import annotations

import logging
from typing import Dict, Optional, Tuple

from rpi4wd.errors import InvalidParameter
from rpi4wd.hardware.device import DeviceHandle
from rpi4wd.hardware.gpio import HIGH, LOW, GpioBackend
from rpi4wd.hardware.pins import MOTOR_ROLES, PinAssignment

logger = logging.getLogger(__name__)

SPEED_LIMIT = 100


def _sign(value: int) -> int:
    return (value > 0) - (value < 0)


def validate_speed(value, limit: int = SPEED_LIMIT, signed: bool = True) -> int:
    """정수 속도 검증. 범위 밖이면 InvalidParameter."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidParameter(f"속도는 정수여야 합니다: {value!r}")
    low = -limit if signed else 0
    if not low <= value <= limit:
        raise InvalidParameter(f"속도는 {low}~{limit} 범위여야 합니다: {value}")
    return value


class Motors(DeviceHandle):
    """좌/우 두 채널(각각 IN1, IN2, PWM) 모터 드라이버.

    IN1=HIGH/IN2=LOW 가 전진, 반대가 후진이다. 한 채널의 IN1/IN2 가 동시에 HIGH 가 되지 않도록
    항상 반대쪽 입력을 먼저 내리고(break-before-make), 방향이 바뀌면 듀티를 0으로 먼저 떨군다.
    """

    SIDES = ("left", "right")

    def __init__(self, gpio: GpioBackend, pins: PinAssignment, frequency_hz: float = 3000.0) -> None:
        self.frequency_hz = float(frequency_hz)
        self._speeds: Dict[str, int] = {"left": 0, "right": 0}
        roles = dict(zip(MOTOR_ROLES, pins.require(*MOTOR_ROLES)))
        super().__init__(gpio, "motors", roles)

    def _setup(self) -> None:
        for side in self.SIDES:
            self.gpio.setup_output(self.pins[f"{side}_in1"], LOW)
            self.gpio.setup_output(self.pins[f"{side}_in2"], LOW)
            self.gpio.setup_output(self.pins[f"{side}_pwm"], LOW)
            self.gpio.pwm_start(self.pins[f"{side}_pwm"], self.frequency_hz, 0.0)

    def _make_inert(self) -> None:
        try:
            self.brake()
        finally:
            for side in self.SIDES:
                self.gpio.pwm_stop(self.pins[f"{side}_pwm"])

    def speeds(self) -> Tuple[int, int]:
        return self._speeds["left"], self._speeds["right"]

    def movement(self, left_speed: int, right_speed: int) -> None:
        """좌/우 부호 있는 속도(-100~100)로 구동한다.

        검증은 핀 조작 전에 끝난다. 도중에 GPIO 오류가 나면 브레이크 후 예외를 다시 올린다.
        """
        left_speed = validate_speed(left_speed)
        right_speed = validate_speed(right_speed)
        self._ensure_open()
        try:
            self._apply("left", left_speed)
            self._apply("right", right_speed)
        except Exception:
            logger.error("모터 명령 중 오류, 브레이크 후 예외 전달 (left=%d, right=%d)", left_speed, right_speed)
            try:
                self.brake()
            except Exception:
                logger.exception("오류 복구용 브레이크 실패")
            raise

    def _apply(self, side: str, speed: int) -> None:
        in1 = self.pins[f"{side}_in1"]
        in2 = self.pins[f"{side}_in2"]
        pwm = self.pins[f"{side}_pwm"]
        prev = self._speeds[side]

        if prev != 0 and _sign(prev) != _sign(speed):
            self._duty(pwm, 0.0)
            self._speeds[side] = 0

        if speed > 0:
            self._output(in2, LOW)
            self._output(in1, HIGH)
        elif speed < 0:
            self._output(in1, LOW)
            self._output(in2, HIGH)
        else:
            self._output(in1, LOW)
            self._output(in2, LOW)
        self._duty(pwm, float(abs(speed)))
        self._speeds[side] = speed

    # 시그널 핸들러 등이 쓰기 도중 close() 하면 남은 쓰기를 하지 않는다
    def _output(self, pin: int, level: int) -> None:
        self._ensure_open()
        self.gpio.output(pin, level)

    def _duty(self, pin: int, duty: float) -> None:
        self._ensure_open()
        self.gpio.pwm_duty(pin, duty)

    def brake(self) -> None:
        """모든 입력을 LOW, 듀티 0. 모든 쓰기를 시도한 뒤 첫 오류만 올린다."""
        if self._closed:
            return
        first_error: Optional[BaseException] = None
        for side in self.SIDES:
            for role in ("in1", "in2"):
                try:
                    self.gpio.output(self.pins[f"{side}_{role}"], LOW)
                except Exception as exc:
                    first_error = first_error or exc
            try:
                self.gpio.pwm_duty(self.pins[f"{side}_pwm"], 0.0)
            except Exception as exc:
                first_error = first_error or exc
            self._speeds[side] = 0
        if first_error is not None:
            raise first_error
