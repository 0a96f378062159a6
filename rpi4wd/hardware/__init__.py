"""하드웨어 추상화 계층(HAL) 패키지."""

from .device import DeviceHandle
from .gpio import GpioBackend, MockGpio, RPiGpioBackend, create_backend
from .hids import BuzzerKey, Fan, RgbLed
from .motors import Motors
from .pins import ALL_ROLES, PinAssignment
from .sensors import InfraredProximity, LightSensors, LineTracker, SensorReading, Ultrasonic
from .servos import Servo, ServoConfig, Servos

__all__ = [
    "DeviceHandle",
    "GpioBackend",
    "MockGpio",
    "RPiGpioBackend",
    "create_backend",
    "BuzzerKey",
    "Fan",
    "RgbLed",
    "Motors",
    "ALL_ROLES",
    "PinAssignment",
    "InfraredProximity",
    "LightSensors",
    "LineTracker",
    "SensorReading",
    "Ultrasonic",
    "Servo",
    "ServoConfig",
    "Servos",
]
