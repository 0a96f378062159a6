"""장치 핸들 공통 베이스: 핀 소유권과 안전 종료."""

from __future__ import annotations

import logging
from typing import Dict, Mapping, Optional

from rpi4wd.errors import HardwareUnavailable
from rpi4wd.hardware.gpio import GpioBackend

logger = logging.getLogger(__name__)


class DeviceHandle:
    """물리 장치 하나와 그 핀들을 독점 소유하는 핸들.

    생성 시 핀을 claim 하고 _setup() 으로 초기 상태를 만든다. 실패하면 이미 잡은 핀을
    되돌린다. close() 는 _make_inert() 로 핀을 안전 상태로 만든 뒤 해제하며 한 번만 동작한다.
    """

    def __init__(self, gpio: GpioBackend, name: str, pins: Mapping[str, int]) -> None:
        self.gpio = gpio
        self.name = name
        self.pins: Dict[str, int] = dict(pins)
        self._closed = False

        claimed = []
        try:
            for role, pin in self.pins.items():
                gpio.claim(pin, f"{name}.{role}")
                claimed.append(pin)
            self._setup()
        except Exception:
            for pin in claimed:
                gpio.release(pin)
            raise

    @property
    def closed(self) -> bool:
        return self._closed

    def _setup(self) -> None:
        raise NotImplementedError

    def _make_inert(self) -> None:
        raise NotImplementedError

    def _ensure_open(self) -> None:
        if self._closed:
            raise HardwareUnavailable(f"'{self.name}' 장치는 이미 해제되었습니다")

    def close(self) -> None:
        if self._closed:
            return
        first_error: Optional[BaseException] = None
        try:
            self._make_inert()
        except Exception as exc:
            logger.error("%s 안전 상태 전환 실패: %s", self.name, exc)
            first_error = exc
        self._closed = True
        for pin in self.pins.values():
            try:
                self.gpio.release(pin)
            except Exception as exc:
                logger.error("%s GPIO%d 해제 실패: %s", self.name, pin, exc)
                first_error = first_error or exc
        if first_error is not None:
            raise first_error
        logger.debug("%s released (pins=%s)", self.name, sorted(self.pins.values()))

    def __enter__(self) -> "DeviceHandle":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
