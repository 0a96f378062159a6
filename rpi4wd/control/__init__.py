"""제어 로직 패키지."""

from .car import CarController
from .commands import Direction, MotionCommand

__all__ = ["CarController", "Direction", "MotionCommand"]
