"""논리 역할 -> 물리 핀 배정표."""

from __future__ import annotations

from types import MappingProxyType
from typing import Dict, Iterator, Mapping, Tuple

from rpi4wd.errors import ConfigurationError
from rpi4wd.utils.config_loader import load_default_config

MOTOR_ROLES = ("left_in1", "left_in2", "left_pwm", "right_in1", "right_in2", "right_pwm")
SERVO_ROLES = ("servo_front", "servo_pan", "servo_tilt")
ULTRASONIC_ROLES = ("ultrasonic_trigger", "ultrasonic_echo")
INFRARED_ROLES = ("ir_left", "ir_right")
LIGHT_ROLES = ("ldr_left", "ldr_right")
TRACKING_ROLES = ("track_left1", "track_left2", "track_right1", "track_right2")
HID_ROLES = ("buzzer_key", "fan", "led_red", "led_green", "led_blue")

ALL_ROLES = (
    MOTOR_ROLES + SERVO_ROLES + ULTRASONIC_ROLES + INFRARED_ROLES + LIGHT_ROLES + TRACKING_ROLES + HID_ROLES
)


class PinAssignment(Mapping[str, int]):
    """생성 시점에 고정되는 불변 핀 배정표.

    두 역할이 같은 핀을 공유하면 생성 단계에서 ConfigurationError 를 낸다.
    """

    def __init__(self, pins: Mapping[str, int]) -> None:
        table: Dict[str, int] = {}
        seen: Dict[int, str] = {}
        for role, pin in pins.items():
            if isinstance(pin, bool) or not isinstance(pin, int) or pin < 0:
                raise ConfigurationError(f"'{role}' 의 핀 번호가 잘못되었습니다: {pin!r}")
            if pin in seen:
                raise ConfigurationError(f"GPIO{pin} 이(가) '{seen[pin]}' 와 '{role}' 에 중복 배정되었습니다")
            seen[pin] = str(role)
            table[str(role)] = pin
        self._pins = MappingProxyType(table)

    @classmethod
    def default(cls) -> "PinAssignment":
        """패키지 기본 설정(config/default.yaml)의 Yahboom 4WD 배선."""
        return cls(load_default_config()["pins"])

    def __getitem__(self, role: str) -> int:
        return self._pins[role]

    def __iter__(self) -> Iterator[str]:
        return iter(self._pins)

    def __len__(self) -> int:
        return len(self._pins)

    def __repr__(self) -> str:
        return f"PinAssignment({dict(self._pins)!r})"

    def require(self, *roles: str) -> Tuple[int, ...]:
        missing = [r for r in roles if r not in self._pins]
        if missing:
            raise ConfigurationError(f"핀 배정표에 필요한 역할이 없습니다: {', '.join(missing)}")
        return tuple(self._pins[r] for r in roles)
