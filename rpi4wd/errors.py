"""하드웨어 제어 계층의 예외 정의."""

from __future__ import annotations


class Rpi4wdError(Exception):
    """rpi4wd 예외의 공통 부모."""


class InvalidParameter(Rpi4wdError, ValueError):
    """호출자가 허용 범위를 벗어난 값을 넘긴 경우. 핀은 건드리지 않는다."""


class OutOfRange(InvalidParameter):
    """서보 각도처럼 기계적 범위를 벗어난 값."""


class Timeout(Rpi4wdError, TimeoutError):
    """유한 대기(에코, 키 입력)가 제한 시간 안에 끝나지 않음."""


class HardwareUnavailable(Rpi4wdError, RuntimeError):
    """GPIO 기능을 얻지 못했거나 이미 종료된 장치에 접근함."""


class ConfigurationError(Rpi4wdError, ValueError):
    """핀 배정표나 설정 파일이 잘못됨 (핀 중복 등)."""


__all__ = [
    "Rpi4wdError",
    "InvalidParameter",
    "OutOfRange",
    "Timeout",
    "HardwareUnavailable",
    "ConfigurationError",
]
