"""4WD 차량 하드웨어 제어 파사드."""

from __future__ import annotations

import atexit
import logging
import signal
import time
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

from rpi4wd.control.commands import Direction, MotionCommand
from rpi4wd.errors import HardwareUnavailable, InvalidParameter
from rpi4wd.hardware.device import DeviceHandle
from rpi4wd.hardware.gpio import GpioBackend, create_backend
from rpi4wd.hardware.hids import BuzzerKey, Fan, RgbLed
from rpi4wd.hardware.motors import Motors
from rpi4wd.hardware.pins import PinAssignment
from rpi4wd.hardware.sensors import (
    DEFAULT_ECHO_TIMEOUT_S,
    InfraredProximity,
    LightSensors,
    LineTracker,
    SensorReading,
    Ultrasonic,
)
from rpi4wd.hardware.servos import ServoConfig, Servos, servo_configs_from
from rpi4wd.utils.timing import Clock

logger = logging.getLogger(__name__)


class CarController:
    """논리 명령(주행, 조향, 거리 측정, 조명)을 핀 조작으로 옮기는 고수준 래퍼.

    상태는 initialized -> operating -> shut_down 으로만 진행한다. shutdown() 은
    with 블록 종료, 인터프리터 종료(atexit), SIGINT/SIGTERM 어느 경로로든 한 번만 실행되어
    모든 장치 핸들을 안전 상태로 돌린다.
    """

    INITIALIZED = "initialized"
    OPERATING = "operating"
    SHUT_DOWN = "shut_down"

    def __init__(
        self,
        gpio: GpioBackend,
        pins: Optional[PinAssignment] = None,
        motor_frequency_hz: float = 3000.0,
        servo_configs: Optional[Dict[str, ServoConfig]] = None,
        servo_step_deg: int = 10,
        ultrasonic_timeout_s: float = DEFAULT_ECHO_TIMEOUT_S,
        temperature_c: float = 20.0,
        distance_range_cm: Tuple[float, float] = (2.0, 500.0),
        led_frequency_hz: float = 300.0,
        beep_max_s: float = 10.0,
        fan_max_s: float = 60.0,
        center_servos_on_start: bool = True,
        register_atexit: bool = True,
        sleep: Callable[[float], None] = time.sleep,
        clock: Clock = time.perf_counter,
    ) -> None:
        self.gpio = gpio
        self.pins = pins if pins is not None else PinAssignment.default()
        self._state = self.INITIALIZED
        self._devices: List[Union[DeviceHandle, Servos]] = []
        self._previous_handlers: Dict[int, Any] = {}
        self._atexit_registered = False

        try:
            self.motors = self._own(Motors(gpio, self.pins, motor_frequency_hz))
            self.servos = self._own(Servos(gpio, self.pins, servo_configs, servo_step_deg))
            self.led = self._own(RgbLed(gpio, self.pins, led_frequency_hz))
            self.buzzer = self._own(BuzzerKey(gpio, self.pins, beep_max_s, sleep=sleep, clock=clock))
            self.fan = self._own(Fan(gpio, self.pins, fan_max_s, sleep=sleep))
            low_cm, high_cm = distance_range_cm
            self.ultrasonic = self._own(
                Ultrasonic(gpio, self.pins, ultrasonic_timeout_s, temperature_c, low_cm, high_cm, clock=clock)
            )
            self.infrared = self._own(InfraredProximity(gpio, self.pins))
            self.tracking = self._own(LineTracker(gpio, self.pins))
            self.light = self._own(LightSensors(gpio, self.pins))
            self.distance_sensors: Dict[str, Ultrasonic] = {"front": self.ultrasonic}
            self._initialize_state(center_servos_on_start)
        except Exception:
            logger.error("하드웨어 초기화 실패, 이미 잡은 장치를 해제합니다")
            self._close_devices()
            raise

        if register_atexit:
            atexit.register(self.shutdown)
            self._atexit_registered = True
        logger.info("CarController 준비 완료 (pins=%d)", len(self.pins))

    @classmethod
    def from_config(cls, cfg: Dict[str, Any], gpio: Optional[GpioBackend] = None, **kwargs: Any) -> "CarController":
        """load_config() 결과로 컨트롤러를 만든다."""
        owns_backend = gpio is None
        if gpio is None:
            gpio = create_backend(cfg.get("gpio", {}))
        motors_cfg = cfg.get("motors", {}) or {}
        servos_cfg = cfg.get("servos", {}) or {}
        sonic_cfg = cfg.get("ultrasonic", {}) or {}
        hids_cfg = cfg.get("hids", {}) or {}
        try:
            car = cls(
                gpio,
                PinAssignment(cfg.get("pins") or {}),
                motor_frequency_hz=float(motors_cfg.get("frequency_hz", 3000.0)),
                servo_configs=servo_configs_from(servos_cfg),
                servo_step_deg=int(servos_cfg.get("step_deg", 10)),
                ultrasonic_timeout_s=float(sonic_cfg.get("timeout_s", DEFAULT_ECHO_TIMEOUT_S)),
                temperature_c=float(sonic_cfg.get("temperature_c", 20.0)),
                distance_range_cm=(float(sonic_cfg.get("min_cm", 2.0)), float(sonic_cfg.get("max_cm", 500.0))),
                led_frequency_hz=float(hids_cfg.get("led_frequency_hz", 300.0)),
                beep_max_s=float(hids_cfg.get("beep_max_s", 10.0)),
                fan_max_s=float(hids_cfg.get("fan_max_s", 60.0)),
                **kwargs,
            )
        except Exception:
            if owns_backend:
                gpio.cleanup()
            raise
        if (cfg.get("safety", {}) or {}).get("install_signal_handlers", False):
            car.install_signal_handlers()
        return car

    def _own(self, device):
        self._devices.append(device)
        return device

    def _initialize_state(self, center_servos: bool) -> None:
        if center_servos:
            self.servos.center_all()
        self.motors.brake()

    # 상태 ------------------------------------------------------------
    @property
    def state(self) -> str:
        return self._state

    def _ensure_running(self) -> None:
        if self._state == self.SHUT_DOWN:
            raise HardwareUnavailable("컨트롤러가 이미 종료되었습니다")

    def _mark_operating(self) -> None:
        if self._state == self.INITIALIZED:
            self._state = self.OPERATING

    # 주행 ------------------------------------------------------------
    def drive(self, direction: Union[Direction, str], speed: int) -> MotionCommand:
        """방향(forward/backward/left/right/stop)과 속도(0~100)로 주행한다."""
        command = MotionCommand.create(direction, speed)
        self._ensure_running()
        if command.direction is Direction.STOP:
            self.stop()
        else:
            self.motors.movement(*command.side_speeds())
        self._mark_operating()
        logger.debug("drive %s %d -> %s", command.direction.value, command.speed, self.motors.speeds())
        return command

    def move(self, left_speed: int, right_speed: int) -> None:
        """좌/우 부호 있는 속도(-100~100). 제자리 회전, 곡선 주행용."""
        self._ensure_running()
        self.motors.movement(left_speed, right_speed)
        self._mark_operating()

    def stop(self) -> None:
        if self._state == self.SHUT_DOWN:
            return
        self.motors.brake()

    @property
    def speeds(self) -> Tuple[int, int]:
        return self.motors.speeds()

    # 서보 ------------------------------------------------------------
    def set_servo_angle(self, channel: str, angle: float) -> float:
        servo = self.servos[channel]
        servo.validate_angle(angle)
        self._ensure_running()
        result = servo.set_angle(angle)
        self._mark_operating()
        return result

    def step_servo(self, channel: str, steps: int) -> float:
        servo = self.servos[channel]
        self._ensure_running()
        result = servo.step(steps * self.servos.step_deg)
        self._mark_operating()
        return result

    def center_servos(self) -> None:
        self._ensure_running()
        self.servos.center_all()

    def servo_angle(self, channel: str) -> Optional[float]:
        return self.servos[channel].angle

    # 센서 ------------------------------------------------------------
    def read_distance(
        self, sensor: str = "front", timeout_s: Optional[float] = None, raise_on_timeout: bool = False
    ) -> SensorReading:
        """초음파 거리(cm). 에코가 없으면 timed_out 인 무효 측정값을 돌려준다."""
        try:
            device = self.distance_sensors[sensor]
        except KeyError:
            raise InvalidParameter(f"알 수 없는 거리 센서: {sensor!r}") from None
        self._ensure_running()
        reading = device.read(timeout_s, raise_on_timeout=raise_on_timeout)
        self._mark_operating()
        return reading

    def read_infrared(self) -> Dict[str, bool]:
        self._ensure_running()
        return self.infrared.read()

    def read_tracking(self) -> Dict[str, bool]:
        self._ensure_running()
        return self.tracking.read()

    def read_light(self) -> Dict[str, bool]:
        self._ensure_running()
        return self.light.read()

    # HID -------------------------------------------------------------
    def lights(self, red: int, green: int, blue: int) -> None:
        self._ensure_running()
        self.led.lights(red, green, blue)
        self._mark_operating()

    def set_color(self, index: int) -> Tuple[int, int, int]:
        self._ensure_running()
        color = self.led.set_color(index)
        self._mark_operating()
        return color

    def beep(self, seconds: float = 0.1) -> None:
        self._ensure_running()
        self.buzzer.beep(seconds)

    def whistle(self) -> None:
        self._ensure_running()
        self.buzzer.whistle()

    def wait_for_key(self, timeout_s: float = 10.0) -> None:
        self._ensure_running()
        self.buzzer.wait_for_key(timeout_s)

    def set_fan(self, on: bool) -> None:
        self._ensure_running()
        self.fan.set_fan(on)

    def toggle_fan(self) -> bool:
        self._ensure_running()
        return self.fan.toggle()

    def blow(self, seconds: float = 2.0) -> None:
        self._ensure_running()
        self.fan.blow(seconds)

    # 종료 ------------------------------------------------------------
    def _close_devices(self) -> Optional[BaseException]:
        first_error: Optional[BaseException] = None
        for device in self._devices:
            try:
                device.close()
            except Exception as exc:
                logger.exception("%s 안전 상태 전환 실패", getattr(device, "name", type(device).__name__))
                first_error = first_error or exc
        return first_error

    def shutdown(self) -> None:
        """모든 장치를 안전 상태로 돌리고 핀을 해제한다. 두 번째 호출부터는 아무것도 하지 않는다."""
        if self._state == self.SHUT_DOWN:
            return
        self._state = self.SHUT_DOWN
        logger.info("CarController 종료: 모터 정지, 서보 해제, 조명/부저/팬 끄기")

        first_error = self._close_devices()
        try:
            self.gpio.cleanup()
        except Exception as exc:
            logger.exception("GPIO cleanup 실패")
            first_error = first_error or exc

        self.restore_signal_handlers()
        if self._atexit_registered:
            atexit.unregister(self.shutdown)
            self._atexit_registered = False
        if first_error is not None:
            raise first_error

    def install_signal_handlers(self, signals: Sequence[int] = (signal.SIGINT, signal.SIGTERM)) -> None:
        """시그널을 받으면 shutdown() 후 기존 핸들러(없으면 KeyboardInterrupt/SystemExit)로 넘긴다."""
        for signum in signals:
            try:
                previous = signal.signal(signum, self._handle_signal)
            except ValueError:
                logger.warning("메인 스레드가 아니어서 시그널 %d 핸들러를 설치하지 못했습니다", signum)
                continue
            self._previous_handlers.setdefault(signum, previous)

    def restore_signal_handlers(self) -> None:
        for signum, previous in list(self._previous_handlers.items()):
            try:
                signal.signal(signum, previous if previous is not None else signal.SIG_DFL)
            except ValueError:
                logger.warning("시그널 %d 핸들러를 복원하지 못했습니다", signum)
        self._previous_handlers.clear()

    def _handle_signal(self, signum, frame) -> None:
        """종료 후 이전 핸들러로 넘긴다.

        이전 핸들러가 예외 없이 돌아오면 중단됐던 모터 명령이 이어서 실행되지만, 닫힌 장치는
        남은 핀 쓰기 대신 HardwareUnavailable 을 낸다.
        """
        logger.warning("시그널 %d 수신, 하드웨어를 안전 상태로 전환합니다", signum)
        previous = self._previous_handlers.get(signum)
        self.shutdown()
        if previous == signal.SIG_IGN:
            return
        if callable(previous):
            previous(signum, frame)
        elif signum == signal.SIGINT:
            raise KeyboardInterrupt
        else:
            raise SystemExit(128 + signum)

    def __enter__(self) -> "CarController":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()
