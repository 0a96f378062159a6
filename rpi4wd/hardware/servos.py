"""PWM 서보(전방 조향, 카메라 팬/틸트) 제어."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from rpi4wd.errors import InvalidParameter, OutOfRange
from rpi4wd.hardware.device import DeviceHandle
from rpi4wd.hardware.gpio import LOW, GpioBackend
from rpi4wd.hardware.pins import PinAssignment

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ServoConfig:
    angle_range: int = 180
    min_pulse_us: int = 500
    max_pulse_us: int = 2500
    frequency_hz: float = 50.0
    limit_min_us: Optional[int] = None
    limit_max_us: Optional[int] = None

    @property
    def period_us(self) -> float:
        return 1_000_000.0 / self.frequency_hz

    @property
    def pulse_limits(self) -> Tuple[int, int]:
        low = self.min_pulse_us if self.limit_min_us is None else self.limit_min_us
        high = self.max_pulse_us if self.limit_max_us is None else self.limit_max_us
        return low, high


# 카메라 틸트는 2000us 를 넘기면 기구에 걸린다 (0~135도)
DEFAULT_CONFIGS: Dict[str, ServoConfig] = {
    "tilt": ServoConfig(limit_max_us=2000),
}


class Servo(DeviceHandle):
    """단일 서보. 각도 -> 펄스 폭 -> 듀티(%) 변환 후 PWM 출력."""

    def __init__(self, gpio: GpioBackend, name: str, pin: int, config: Optional[ServoConfig] = None) -> None:
        self.config = config or ServoConfig()
        if not 30 <= self.config.angle_range <= 240:
            raise InvalidParameter(f"angle_range 는 30~240 이어야 합니다: {self.config.angle_range}")
        self._angle: Optional[float] = None
        self._pwm_running = False
        super().__init__(gpio, name, {"signal": pin})

    @property
    def pin(self) -> int:
        return self.pins["signal"]

    @property
    def angle(self) -> Optional[float]:
        """현재 출력 중인 각도 (펄스 한계로 잘린 실제 값). 해제 상태면 None."""
        return self._angle

    def _setup(self) -> None:
        self.gpio.setup_output(self.pin, LOW)

    def _make_inert(self) -> None:
        self.release()

    @property
    def angle_limits(self) -> Tuple[float, float]:
        """펄스 한계까지 반영한 기계적 허용 각도 범위."""
        low, high = self.config.pulse_limits
        return (
            max(0.0, self.pulse_to_angle(low)),
            min(float(self.config.angle_range), self.pulse_to_angle(high)),
        )

    def validate_angle(self, angle: Any) -> float:
        if isinstance(angle, bool) or not isinstance(angle, (int, float)):
            raise InvalidParameter(f"각도는 숫자여야 합니다: {angle!r}")
        low, high = self.angle_limits
        if not low <= angle <= high:
            raise OutOfRange(f"{self.name} 각도는 {low:g}~{high:g} 범위여야 합니다: {angle}")
        return float(angle)

    def angle_to_pulse_us(self, angle: float) -> float:
        cfg = self.config
        span = cfg.max_pulse_us - cfg.min_pulse_us
        pulse = cfg.min_pulse_us + angle * span / cfg.angle_range
        low, high = cfg.pulse_limits
        return max(low, min(high, pulse))

    def pulse_to_angle(self, pulse_us: float) -> float:
        cfg = self.config
        span = cfg.max_pulse_us - cfg.min_pulse_us
        return (pulse_us - cfg.min_pulse_us) * cfg.angle_range / span

    def duty_for(self, pulse_us: float) -> float:
        return pulse_us / self.config.period_us * 100.0

    def set_angle(self, angle: float) -> float:
        angle = self.validate_angle(angle)
        self._ensure_open()
        pulse = self.angle_to_pulse_us(angle)
        duty = self.duty_for(pulse)
        if self._pwm_running:
            self.gpio.pwm_duty(self.pin, duty)
        else:
            self.gpio.pwm_start(self.pin, self.config.frequency_hz, duty)
            self._pwm_running = True
        self._angle = self.pulse_to_angle(pulse)
        return self._angle

    def center(self) -> float:
        return self.set_angle(self.config.angle_range // 2)

    def step(self, delta: float) -> float:
        """현재 각도에서 delta 만큼 이동. 기계적 범위에서 포화한다."""
        current = self._angle if self._angle is not None else self.config.angle_range // 2
        low, high = self.angle_limits
        target = max(low, min(high, current + delta))
        return self.set_angle(target)

    def release(self) -> None:
        """PWM 을 멈추고 신호선을 LOW 로 둔다 (서보 토크 해제)."""
        if self._closed:
            return
        if self._pwm_running:
            self.gpio.pwm_stop(self.pin)
            self._pwm_running = False
        self.gpio.output(self.pin, LOW)
        self._angle = None


class Servos:
    """전방 조향(front), 카메라 팬(pan), 틸트(tilt) 서보 묶음."""

    CHANNELS = ("front", "pan", "tilt")

    def __init__(
        self,
        gpio: GpioBackend,
        pins: PinAssignment,
        configs: Optional[Dict[str, ServoConfig]] = None,
        step_deg: int = 10,
    ) -> None:
        configs = configs or {}
        self.step_deg = int(step_deg)
        self._servos: Dict[str, Servo] = {}
        try:
            for channel in self.CHANNELS:
                (pin,) = pins.require(f"servo_{channel}")
                config = configs.get(channel, DEFAULT_CONFIGS.get(channel))
                self._servos[channel] = Servo(gpio, f"servo.{channel}", pin, config)
        except Exception:
            self.close()
            raise

    def __getitem__(self, channel: str) -> Servo:
        try:
            return self._servos[channel]
        except KeyError:
            raise InvalidParameter(
                f"알 수 없는 서보 채널: {channel!r} (허용: {', '.join(self.CHANNELS)})"
            ) from None

    def set_angle(self, channel: str, angle: float) -> float:
        return self[channel].set_angle(angle)

    def step(self, channel: str, steps: int) -> float:
        return self[channel].step(steps * self.step_deg)

    def center_all(self) -> None:
        for servo in self._servos.values():
            servo.center()

    def close(self) -> None:
        first_error: Optional[BaseException] = None
        for servo in self._servos.values():
            try:
                servo.close()
            except Exception as exc:
                logger.exception("%s 해제 실패", servo.name)
                first_error = first_error or exc
        if first_error is not None:
            raise first_error


def servo_configs_from(cfg: Dict[str, Any]) -> Dict[str, ServoConfig]:
    """설정 파일 servos 섹션 -> 채널별 ServoConfig."""
    limits = cfg.get("limits", {}) or {}
    configs: Dict[str, ServoConfig] = {}
    for channel in Servos.CHANNELS:
        default = DEFAULT_CONFIGS.get(channel, ServoConfig())
        low, high = limits.get(channel, (default.limit_min_us, default.limit_max_us))
        configs[channel] = ServoConfig(
            angle_range=int(cfg.get("angle_range", 180)),
            min_pulse_us=int(cfg.get("min_pulse_us", 500)),
            max_pulse_us=int(cfg.get("max_pulse_us", 2500)),
            frequency_hz=float(cfg.get("frequency_hz", 50.0)),
            limit_min_us=None if low is None else int(low),
            limit_max_us=None if high is None else int(high),
        )
    return configs
