"""GPIO 기능 래퍼 (RPi.GPIO 실기 백엔드 + 테스트용 Mock)."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional, Tuple

from rpi4wd.errors import ConfigurationError, HardwareUnavailable

logger = logging.getLogger(__name__)

LOW = 0
HIGH = 1

PULL_UP = "up"
PULL_DOWN = "down"


class GpioBackend(ABC):
    """장치 핸들이 사용하는 최소 GPIO 기능.

    핀 소유권은 백엔드 인스턴스 단위로 관리한다. 같은 핀을 두 핸들이 claim 하면
    ConfigurationError 가 발생한다.
    """

    def __init__(self) -> None:
        self._owners: Dict[int, str] = {}

    # 소유권 -----------------------------------------------------------
    def claim(self, pin: int, owner: str) -> None:
        current = self._owners.get(pin)
        if current is not None:
            raise ConfigurationError(f"GPIO{pin} 은(는) 이미 '{current}' 가 사용 중입니다 (요청: '{owner}')")
        self._owners[pin] = owner

    def owner_of(self, pin: int) -> Optional[str]:
        return self._owners.get(pin)

    @property
    def claimed_pins(self) -> Tuple[int, ...]:
        return tuple(self._owners)

    def release(self, pin: int) -> None:
        """핀을 고임피던스(입력) 상태로 되돌리고 소유권을 해제한다."""
        if pin not in self._owners:
            return
        try:
            self._release_pin(pin)
        finally:
            del self._owners[pin]

    def cleanup(self) -> None:
        for pin in list(self._owners):
            self.release(pin)
        self._cleanup_all()

    # 핀 조작 ----------------------------------------------------------
    @abstractmethod
    def setup_output(self, pin: int, initial: int = LOW) -> None: ...

    @abstractmethod
    def setup_input(self, pin: int, pull: Optional[str] = None) -> None: ...

    @abstractmethod
    def output(self, pin: int, level: int) -> None: ...

    @abstractmethod
    def input(self, pin: int) -> int: ...

    @abstractmethod
    def pwm_start(self, pin: int, frequency: float, duty: float = 0.0) -> None: ...

    @abstractmethod
    def pwm_duty(self, pin: int, duty: float) -> None: ...

    @abstractmethod
    def pwm_stop(self, pin: int) -> None: ...

    @abstractmethod
    def _release_pin(self, pin: int) -> None: ...

    def _cleanup_all(self) -> None:
        pass


class RPiGpioBackend(GpioBackend):
    """RPi.GPIO 기반 실기 백엔드 (BCM 번호 체계)."""

    def __init__(self, warnings: bool = False) -> None:
        super().__init__()
        try:
            import RPi.GPIO as GPIO  # type: ignore
        except (ImportError, RuntimeError) as exc:
            raise HardwareUnavailable(f"RPi.GPIO 를 불러오지 못했습니다: {exc}") from exc

        self._gpio = GPIO
        self._pwms: Dict[int, Any] = {}
        self._call(GPIO.setwarnings, bool(warnings))
        self._call(GPIO.setmode, GPIO.BCM)

    @staticmethod
    def _call(fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        try:
            return fn(*args, **kwargs)
        except RuntimeError as exc:
            # 권한 부족(/dev/gpiomem) 등은 RuntimeError 로 올라온다.
            raise HardwareUnavailable(str(exc)) from exc

    def setup_output(self, pin: int, initial: int = LOW) -> None:
        GPIO = self._gpio
        self._call(GPIO.setup, pin, GPIO.OUT, initial=GPIO.HIGH if initial else GPIO.LOW)

    def setup_input(self, pin: int, pull: Optional[str] = None) -> None:
        GPIO = self._gpio
        pud = GPIO.PUD_OFF
        if pull == PULL_UP:
            pud = GPIO.PUD_UP
        elif pull == PULL_DOWN:
            pud = GPIO.PUD_DOWN
        self._call(GPIO.setup, pin, GPIO.IN, pull_up_down=pud)

    def output(self, pin: int, level: int) -> None:
        GPIO = self._gpio
        self._call(GPIO.output, pin, GPIO.HIGH if level else GPIO.LOW)

    def input(self, pin: int) -> int:
        return HIGH if self._call(self._gpio.input, pin) else LOW

    def pwm_start(self, pin: int, frequency: float, duty: float = 0.0) -> None:
        pwm = self._pwms.get(pin)
        if pwm is None:
            pwm = self._call(self._gpio.PWM, pin, float(frequency))
            self._pwms[pin] = pwm
        else:
            self._call(pwm.ChangeFrequency, float(frequency))
        self._call(pwm.start, float(duty))

    def pwm_duty(self, pin: int, duty: float) -> None:
        pwm = self._pwms.get(pin)
        if pwm is None:
            raise HardwareUnavailable(f"GPIO{pin} 에 PWM 이 시작되지 않았습니다")
        self._call(pwm.ChangeDutyCycle, float(duty))

    def pwm_stop(self, pin: int) -> None:
        pwm = self._pwms.pop(pin, None)
        if pwm is not None:
            self._call(pwm.stop)

    def _release_pin(self, pin: int) -> None:
        self.pwm_stop(pin)
        self._call(self._gpio.cleanup, pin)

    def _cleanup_all(self) -> None:
        for pin in list(self._pwms):
            self.pwm_stop(pin)
        self._call(self._gpio.cleanup)


class MockGpio(GpioBackend):
    """실기 없이 로직만 점검할 때 사용하는 더미 구현.

    모든 쓰기는 history 에 (op, pin, value) 로 남는다. 입력 레벨은 set_input 이나
    input_hook 으로 조작하고, fail_on 으로 특정 호출에 오류를 주입할 수 있다.
    """

    def __init__(self) -> None:
        super().__init__()
        self.history: List[Tuple[str, int, Any]] = []
        self.modes: Dict[int, str] = {}
        self.levels: Dict[int, int] = {}
        self.pulls: Dict[int, Optional[str]] = {}
        self.inputs: Dict[int, int] = {}
        self.pwm: Dict[int, Tuple[float, float]] = {}
        self.input_hook: Optional[Callable[[int], int]] = None
        self.fail_on: Optional[Callable[[str, int, Any], bool]] = None
        self.cleaned_up = False

    def _record(self, op: str, pin: int, value: Any = None) -> None:
        if self.fail_on is not None and self.fail_on(op, pin, value):
            raise HardwareUnavailable(f"[MOCK] {op} GPIO{pin}={value} 실패 (주입된 오류)")
        self.history.append((op, pin, value))
        logger.debug("[MOCK] %s GPIO%d: %s", op, pin, value)

    def setup_output(self, pin: int, initial: int = LOW) -> None:
        self._record("setup_output", pin, initial)
        self.modes[pin] = "out"
        self.levels[pin] = HIGH if initial else LOW

    def setup_input(self, pin: int, pull: Optional[str] = None) -> None:
        self._record("setup_input", pin, pull)
        self.modes[pin] = "in"
        self.pulls[pin] = pull

    def output(self, pin: int, level: int) -> None:
        level = HIGH if level else LOW
        self._record("output", pin, level)
        self.levels[pin] = level

    def set_input(self, pin: int, level: int) -> None:
        self.inputs[pin] = HIGH if level else LOW

    def input(self, pin: int) -> int:
        if self.input_hook is not None:
            return HIGH if self.input_hook(pin) else LOW
        if pin in self.inputs:
            return self.inputs[pin]
        if self.modes.get(pin) == "out":
            return self.levels.get(pin, LOW)
        return HIGH if self.pulls.get(pin) == PULL_UP else LOW

    def pwm_start(self, pin: int, frequency: float, duty: float = 0.0) -> None:
        self._record("pwm_start", pin, (float(frequency), float(duty)))
        self.pwm[pin] = (float(frequency), float(duty))

    def pwm_duty(self, pin: int, duty: float) -> None:
        if pin not in self.pwm:
            raise HardwareUnavailable(f"GPIO{pin} 에 PWM 이 시작되지 않았습니다")
        self._record("pwm_duty", pin, float(duty))
        self.pwm[pin] = (self.pwm[pin][0], float(duty))

    def pwm_stop(self, pin: int) -> None:
        if pin in self.pwm:
            self._record("pwm_stop", pin)
            del self.pwm[pin]

    def duty(self, pin: int) -> float:
        return self.pwm.get(pin, (0.0, 0.0))[1]

    def _release_pin(self, pin: int) -> None:
        self.pwm_stop(pin)
        self._record("release", pin)
        self.modes[pin] = "released"
        self.levels.pop(pin, None)

    def _cleanup_all(self) -> None:
        self.cleaned_up = True


def create_backend(cfg: Optional[Dict[str, Any]] = None) -> GpioBackend:
    """설정의 gpio 섹션으로 백엔드를 만든다."""
    cfg = cfg or {}
    backend = str(cfg.get("backend", "rpi")).lower()
    if backend == "mock":
        return MockGpio()
    if backend == "rpi":
        return RPiGpioBackend(warnings=bool(cfg.get("warnings", False)))
    raise ConfigurationError(f"알 수 없는 GPIO 백엔드: {backend}")
