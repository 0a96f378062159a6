"""주행 명령 값 객체."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Tuple, Union

from rpi4wd.errors import InvalidParameter
from rpi4wd.hardware.motors import validate_speed


class Direction(str, Enum):
    FORWARD = "forward"
    BACKWARD = "backward"
    LEFT = "left"
    RIGHT = "right"
    STOP = "stop"

    @classmethod
    def parse(cls, value: Union["Direction", str]) -> "Direction":
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        allowed = ", ".join(d.value for d in cls)
        raise InvalidParameter(f"알 수 없는 방향: {value!r} (허용: {allowed})")


@dataclass(frozen=True)
class MotionCommand:
    direction: Direction
    speed: int

    @classmethod
    def create(cls, direction: Union[Direction, str], speed: int) -> "MotionCommand":
        """검증된 명령을 만든다. 속도는 0~100 정수."""
        return cls(Direction.parse(direction), validate_speed(speed, signed=False))

    def side_speeds(self) -> Tuple[int, int]:
        """좌/우 바퀴 부호 있는 속도. 좌회전은 우측만, 우회전은 좌측만 구동한다."""
        s = self.speed
        if self.direction is Direction.FORWARD:
            return s, s
        if self.direction is Direction.BACKWARD:
            return -s, -s
        if self.direction is Direction.LEFT:
            return 0, s
        if self.direction is Direction.RIGHT:
            return s, 0
        return 0, 0
