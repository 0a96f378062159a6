from __future__ import annotations

import signal

import pytest

from rpi4wd.control import CarController, MotionCommand
from rpi4wd.errors import ConfigurationError, HardwareUnavailable
from rpi4wd.hardware import MockGpio, PinAssignment
from rpi4wd.hardware.gpio import HIGH, LOW

MOTOR_INPUTS = (20, 21, 19, 26)


def last_output(gpio: MockGpio, pin: int):
    for op, p, value in reversed(gpio.history):
        if p == pin and op in ("output", "setup_output"):
            return value
    return None


def test_lifecycle_is_linear(car: CarController) -> None:
    assert car.state == CarController.INITIALIZED
    car.drive("forward", 10)
    assert car.state == CarController.OPERATING
    car.shutdown()
    assert car.state == CarController.SHUT_DOWN


def test_drive_returns_validated_command(car: CarController) -> None:
    command = car.drive("left", 15)
    assert command == MotionCommand.create("left", 15)


def test_shutdown_leaves_every_pin_inert(car: CarController, gpio: MockGpio) -> None:
    car.drive("forward", 80)
    car.set_servo_angle("pan", 30)
    car.lights(100, 100, 100)
    car.set_fan(True)
    car.beep(0.1)

    car.shutdown()

    assert gpio.claimed_pins == ()
    assert gpio.pwm == {}
    assert gpio.cleaned_up
    assert all(mode == "released" for mode in gpio.modes.values())
    for pin in MOTOR_INPUTS:
        assert last_output(gpio, pin) == LOW
    assert last_output(gpio, 2) == HIGH
    assert last_output(gpio, 8) == HIGH


def test_shutdown_twice_has_no_additional_effect(car: CarController, gpio: MockGpio) -> None:
    car.drive("backward", 40)
    car.shutdown()
    snapshot = list(gpio.history)
    car.shutdown()
    car.stop()
    assert gpio.history == snapshot


def test_operations_after_shutdown_fail(car: CarController, gpio: MockGpio) -> None:
    car.shutdown()
    before = len(gpio.history)
    with pytest.raises(HardwareUnavailable):
        car.drive("forward", 10)
    with pytest.raises(HardwareUnavailable):
        car.set_servo_angle("front", 90)
    with pytest.raises(HardwareUnavailable):
        car.read_distance()
    assert len(gpio.history) == before


def test_context_manager_shuts_down_on_error(gpio: MockGpio) -> None:
    with pytest.raises(RuntimeError):
        with CarController(gpio, register_atexit=False, sleep=lambda s: None) as car:
            car.drive("forward", 90)
            raise RuntimeError("boom")
    assert car.state == CarController.SHUT_DOWN
    assert gpio.claimed_pins == ()
    for pin in MOTOR_INPUTS:
        assert last_output(gpio, pin) == LOW


def test_shutdown_finishes_other_devices_when_one_fails(car: CarController, gpio: MockGpio) -> None:
    car.drive("forward", 50)
    gpio.fail_on = lambda op, pin, value: op == "pwm_stop" and pin == 23

    with pytest.raises(HardwareUnavailable):
        car.shutdown()

    gpio.fail_on = None
    assert car.state == CarController.SHUT_DOWN
    for pin in MOTOR_INPUTS:
        assert last_output(gpio, pin) == LOW
    assert last_output(gpio, 2) == HIGH
    assert gpio.claimed_pins == ()


def test_duplicate_pin_table_fails_construction(gpio: MockGpio) -> None:
    pins = dict(PinAssignment.default())
    pins["servo_tilt"] = pins["left_pwm"]
    with pytest.raises(ConfigurationError):
        CarController(gpio, PinAssignment(pins), register_atexit=False)
    assert gpio.history == []


def test_failed_construction_releases_claimed_pins(gpio: MockGpio) -> None:
    gpio.fail_on = lambda op, pin, value: op == "setup_input" and pin == 12
    with pytest.raises(HardwareUnavailable):
        CarController(gpio, register_atexit=False)
    gpio.fail_on = None
    assert gpio.claimed_pins == ()
    for pin in MOTOR_INPUTS:
        assert last_output(gpio, pin) == LOW


@pytest.mark.skipif(not hasattr(signal, "SIGUSR1"), reason="POSIX 시그널 필요")
def test_signal_triggers_shutdown(car: CarController, gpio: MockGpio) -> None:
    previous = signal.getsignal(signal.SIGUSR1)
    car.install_signal_handlers([signal.SIGUSR1])
    car.drive("forward", 60)

    with pytest.raises(SystemExit):
        signal.raise_signal(signal.SIGUSR1)

    assert car.state == CarController.SHUT_DOWN
    assert gpio.claimed_pins == ()
    assert signal.getsignal(signal.SIGUSR1) == previous


@pytest.mark.skipif(not hasattr(signal, "SIGUSR2"), reason="POSIX 시그널 필요")
def test_signal_chains_to_previous_handler(car: CarController) -> None:
    received = []
    original = signal.signal(signal.SIGUSR2, lambda signum, frame: received.append(signum))
    try:
        car.install_signal_handlers([signal.SIGUSR2])
        signal.raise_signal(signal.SIGUSR2)
        assert received == [signal.SIGUSR2]
        assert car.state == CarController.SHUT_DOWN
    finally:
        signal.signal(signal.SIGUSR2, original)


def test_shutdown_in_the_middle_of_drive_stops_remaining_motor_writes(
    car: CarController, gpio: MockGpio
) -> None:
    # 반환하는 시그널 핸들러가 모터 쓰기 도중에 shutdown() 한 상황
    mark = []

    def shutdown_on_first_motor_write(op, pin, value) -> bool:
        if not mark and op == "output" and pin == 21:
            mark.append(len(gpio.history))
            car.shutdown()
        return False

    gpio.fail_on = shutdown_on_first_motor_write
    with pytest.raises(HardwareUnavailable):
        car.drive("forward", 50)

    assert car.state == CarController.SHUT_DOWN
    late = [(pin, value) for op, pin, value in gpio.history[mark[0]:] if op == "output" and pin in (20, 21, 19, 26)]
    assert late
    assert all(value == LOW for _, value in late)
    assert gpio.claimed_pins == ()
