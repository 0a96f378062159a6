"""모터/서보/센서/HID 를 순서대로 한 번씩 움직여 보는 점검 루프."""

from __future__ import annotations

import logging
import sys
import time
from typing import Any, Dict, Optional

from rpi4wd.control import CarController
from rpi4wd.errors import Rpi4wdError, Timeout
from rpi4wd.utils import load_config

logger = logging.getLogger(__name__)

COLOR_NAMES = ("off", "white", "red", "green", "blue", "cyan", "magenta", "yellow")


def run_hids(car: CarController, pause: float) -> None:
    logger.info("HID 점검: KEY 버튼을 누르면 시작합니다")
    try:
        car.wait_for_key(timeout_s=10.0)
    except Timeout:
        logger.warning("KEY 입력 없음, 그대로 진행")
    car.blow(1.0)
    for _ in range(3):
        car.whistle()
        time.sleep(pause)
    for index in (1, 2, 7, 3, 5, 4, 6, 0):
        logger.info("lights: %s", COLOR_NAMES[index])
        car.set_color(index)
        time.sleep(pause)


def run_sensors(car: CarController, samples: int = 5) -> None:
    for _ in range(samples):
        reading = car.read_distance()
        if reading.valid:
            logger.info("distance: %.1fcm", reading.value)
        else:
            logger.info("distance: invalid (timed_out=%s)", reading.timed_out)
        logger.info("infrared=%s tracking=%s light=%s", car.read_infrared(), car.read_tracking(), car.read_light())
        time.sleep(0.1)


def run_servos(car: CarController, pause: float) -> None:
    for channel in ("front", "pan", "tilt"):
        car.set_servo_angle(channel, 0)
        previous = None
        # step_servo 는 채널별 허용 범위 끝에서 멈춘다
        while car.servo_angle(channel) != previous:
            previous = car.servo_angle(channel)
            time.sleep(pause)
            car.step_servo(channel, 4)
    car.center_servos()


def run_motors(car: CarController, speed: int, pause: float) -> None:
    for direction in ("forward", "backward", "left", "right"):
        logger.info("drive: %s", direction)
        car.drive(direction, speed)
        time.sleep(pause)
    logger.info("spin left / right")
    car.move(-speed, speed)
    time.sleep(pause)
    car.move(speed, -speed)
    time.sleep(pause)
    car.stop()


def run(cfg: Dict[str, Any], speed: int = 25, pause: float = 0.5) -> None:
    with CarController.from_config(cfg) as car:
        run_hids(car, pause)
        run_sensors(car)
        run_servos(car, pause)
        run_motors(car, speed, pause)
    logger.info("정상 종료되었습니다.")


def main(config_path: Optional[str] = None) -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")
    cfg = load_config(config_path)
    try:
        run(cfg)
    except KeyboardInterrupt:
        logger.info("사용자 중단")
    except Rpi4wdError as exc:
        logger.error("하드웨어 점검 실패: %s", exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
