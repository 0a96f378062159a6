from __future__ import annotations

import math
import time

import pytest

from rpi4wd.control import CarController
from rpi4wd.errors import InvalidParameter, Timeout
from rpi4wd.hardware import InfraredProximity, LightSensors, LineTracker, MockGpio, PinAssignment, Ultrasonic
from rpi4wd.hardware.gpio import HIGH, LOW
from rpi4wd.hardware.sensors import speed_of_sound_cm_s

ECHO = 0
TRIGGER = 1


def echo_window(clock, start: float, end: float):
    def hook(pin: int) -> int:
        if pin == ECHO and start <= clock.t < end:
            return HIGH
        return LOW

    return hook


def test_distance_from_echo_width(gpio: MockGpio, fake_clock) -> None:
    sensor = Ultrasonic(gpio, PinAssignment.default(), clock=fake_clock)
    gpio.input_hook = echo_window(fake_clock, 0.001, 0.002)

    reading = sensor.measure()

    expected = 0.001 * speed_of_sound_cm_s(20.0) / 2.0
    assert reading.valid
    assert not reading.timed_out
    assert reading.unit == "cm"
    assert reading.value == pytest.approx(expected, abs=0.5)


def test_trigger_pulse_precedes_echo_wait(gpio: MockGpio, fake_clock) -> None:
    sensor = Ultrasonic(gpio, PinAssignment.default(), clock=fake_clock)
    mark = len(gpio.history)
    sensor.read()
    assert gpio.history[mark:] == [("output", TRIGGER, HIGH), ("output", TRIGGER, LOW)]


def test_missing_echo_returns_invalid_reading_within_bound(car: CarController) -> None:
    started = time.perf_counter()
    reading = car.read_distance(timeout_s=0.02)
    elapsed = time.perf_counter() - started

    assert not reading.valid
    assert reading.timed_out
    assert reading.value is None
    assert elapsed < 0.5


def test_missing_echo_can_raise_timeout(car: CarController) -> None:
    with pytest.raises(Timeout):
        car.read_distance(timeout_s=0.01, raise_on_timeout=True)


def test_echo_that_never_ends_times_out(gpio: MockGpio, fake_clock) -> None:
    sensor = Ultrasonic(gpio, PinAssignment.default(), timeout_s=0.01, clock=fake_clock)
    gpio.input_hook = lambda pin: HIGH if pin == ECHO else LOW
    with pytest.raises(Timeout):
        sensor.measure()
    assert fake_clock.t < 0.0111


def test_too_close_is_invalid_but_not_timeout(gpio: MockGpio, fake_clock) -> None:
    sensor = Ultrasonic(gpio, PinAssignment.default(), clock=fake_clock)
    gpio.input_hook = echo_window(fake_clock, 0.001, 0.00105)
    reading = sensor.read()
    assert reading.value is not None
    assert not reading.valid
    assert not reading.timed_out


def test_temperature_changes_speed_of_sound() -> None:
    assert speed_of_sound_cm_s(0.0) == pytest.approx(33130.0)
    assert speed_of_sound_cm_s(30.0) > speed_of_sound_cm_s(10.0)


def test_timeout_must_be_positive(car: CarController, gpio: MockGpio) -> None:
    before = len(gpio.history)
    with pytest.raises(InvalidParameter):
        car.read_distance(timeout_s=0)
    with pytest.raises(InvalidParameter):
        car.read_distance("rear")
    assert len(gpio.history) == before


def test_digital_sensors_polarity(gpio: MockGpio) -> None:
    pins = PinAssignment.default()
    infrared = InfraredProximity(gpio, pins)
    tracking = LineTracker(gpio, pins)
    light = LightSensors(gpio, pins)

    gpio.set_input(pins["ir_left"], LOW)
    gpio.set_input(pins["ir_right"], HIGH)
    gpio.set_input(pins["ldr_left"], HIGH)
    gpio.set_input(pins["ldr_right"], LOW)
    for role in ("track_left1", "track_left2", "track_right1", "track_right2"):
        gpio.set_input(pins[role], HIGH)
    gpio.set_input(pins["track_right2"], LOW)

    assert infrared.read() == {"ir_left": True, "ir_right": False}
    assert light.read() == {"ldr_left": True, "ldr_right": False}
    assert tracking.read() == {
        "track_left1": False,
        "track_left2": False,
        "track_right1": False,
        "track_right2": True,
    }


@pytest.mark.parametrize("timeout_s", [math.nan, math.inf, 0, -0.01, "x"])
def test_distance_rejects_unbounded_timeout(car: CarController, gpio: MockGpio, timeout_s) -> None:
    before = len(gpio.history)
    with pytest.raises(InvalidParameter):
        car.read_distance(timeout_s=timeout_s)
    assert len(gpio.history) == before


def test_ultrasonic_rejects_nan_default_timeout(gpio: MockGpio) -> None:
    with pytest.raises(InvalidParameter):
        Ultrasonic(gpio, PinAssignment.default(), timeout_s=math.nan)
    assert gpio.claimed_pins == ()
