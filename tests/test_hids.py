from __future__ import annotations

import math

import pytest

from rpi4wd.control import CarController
from rpi4wd.errors import InvalidParameter, Timeout
from rpi4wd.hardware import BuzzerKey, MockGpio, PinAssignment
from rpi4wd.hardware.gpio import HIGH, LOW
from rpi4wd.hardware.hids import COLOR_PALETTE

RED, GREEN, BLUE = 22, 27, 24
BUZZER = 8
FAN = 2


def test_lights_set_pwm_duty(car: CarController, gpio: MockGpio) -> None:
    car.lights(100, 0, 50)
    assert (gpio.duty(RED), gpio.duty(GREEN), gpio.duty(BLUE)) == (100.0, 0.0, 50.0)
    assert gpio.pwm[RED][0] == 300.0


@pytest.mark.parametrize("values", [(101, 0, 0), (0, -1, 0), (0, 0, 2.5), (True, 0, 0)])
def test_invalid_brightness_issues_no_pin_writes(car: CarController, gpio: MockGpio, values) -> None:
    before = len(gpio.history)
    with pytest.raises(InvalidParameter):
        car.lights(*values)
    assert len(gpio.history) == before


def test_color_palette_wraps(car: CarController) -> None:
    assert car.set_color(2) == (100, 0, 0)
    assert car.set_color(7) == (100, 100, 0)
    assert car.set_color(9) == COLOR_PALETTE[1]
    assert car.led.color_index == 1
    with pytest.raises(InvalidParameter):
        car.set_color(-1)


def test_beep_is_active_low_pulse(car: CarController, gpio: MockGpio, sleeper) -> None:
    mark = len(gpio.history)
    car.beep(0.2)
    ops = [entry for entry in gpio.history[mark:] if entry[1] == BUZZER]
    assert ops == [("setup_output", BUZZER, HIGH), ("output", BUZZER, LOW), ("output", BUZZER, HIGH)]
    assert sleeper.calls[-1] == 0.2

    with pytest.raises(InvalidParameter):
        car.beep(60)


def test_whistle_is_short_beep(car: CarController, sleeper) -> None:
    car.whistle()
    assert sleeper.calls[-1] == 0.1


def test_fan_is_active_low(car: CarController, gpio: MockGpio) -> None:
    assert gpio.levels[FAN] == HIGH
    assert car.toggle_fan() is True
    assert gpio.levels[FAN] == LOW
    car.set_fan(False)
    assert gpio.levels[FAN] == HIGH


def test_blow_is_clamped(car: CarController, gpio: MockGpio, sleeper) -> None:
    car.blow(-120)
    assert sleeper.calls[-1] == 60.0
    assert gpio.levels[FAN] == HIGH
    assert not car.fan.is_on


def test_key_press_is_debounced(gpio: MockGpio, fake_clock) -> None:
    samples = []
    key = BuzzerKey(gpio, PinAssignment.default(), sleep=samples.append, clock=fake_clock)
    gpio.set_input(BUZZER, LOW)
    key.wait_for_key(timeout_s=1.0)
    assert len(samples) == 7
    assert fake_clock.t < 0.001


def test_key_wait_is_bounded(gpio: MockGpio, fake_clock) -> None:
    key = BuzzerKey(gpio, PinAssignment.default(), sleep=lambda s: None, clock=fake_clock)
    with pytest.raises(Timeout):
        key.wait_for_key(timeout_s=0.001)


@pytest.mark.parametrize("seconds", [math.nan, math.inf, "x", None, True])
def test_invalid_blow_time_issues_no_pin_writes(car: CarController, gpio: MockGpio, seconds) -> None:
    before = len(gpio.history)
    with pytest.raises(InvalidParameter):
        car.blow(seconds)
    assert len(gpio.history) == before


@pytest.mark.parametrize("timeout_s", [math.nan, math.inf, 0, -1.0, "x", None])
def test_key_wait_rejects_unbounded_timeout(car: CarController, gpio: MockGpio, timeout_s) -> None:
    before = len(gpio.history)
    with pytest.raises(InvalidParameter):
        car.wait_for_key(timeout_s=timeout_s)
    assert len(gpio.history) == before
