"""Simulated digital pins and single-pin LED devices."""

import enum

__all__ = ["PinMode", "Pin", "LedMode", "Led", "FlashLed"]


class PinMode(enum.Enum):
    INPUT = 0
    OUTPUT = 1


class Pin:
    """A digital pin holding a mode and a 0/1 level."""

    def __init__(self, value: int = 0) -> None:
        self.mode = PinMode.INPUT
        self.value = 1 if value else 0

    def set_mode(self, mode: PinMode) -> None:
        self.mode = mode

    def high(self) -> None:
        self.value = 1

    def low(self) -> None:
        self.value = 0

    def set_value(self, value: int) -> None:
        self.value = 1 if value else 0


class LedMode(enum.Enum):
    SINK_CURRENT = 0
    SOURCE_CURRENT = 1


class Led:
    """An LED driven by one pin, either sinking or sourcing current."""

    def __init__(self, pin: Pin, mode: LedMode = LedMode.SINK_CURRENT) -> None:
        self.pin = pin
        self.mode = mode

    def init(self) -> None:
        self.pin.set_mode(PinMode.OUTPUT)
        self.off()

    def on(self) -> None:
        if self.mode is LedMode.SINK_CURRENT:
            self.pin.low()
        else:
            self.pin.high()

    def off(self) -> None:
        if self.mode is LedMode.SINK_CURRENT:
            self.pin.high()
        else:
            self.pin.low()

    def set(self, on: bool) -> None:
        if on:
            self.on()
        else:
            self.off()


class FlashLed:
    """An LED that turns itself off after ``on_count`` ticks."""

    def __init__(self, led: Led, on_count: int = 10) -> None:
        self.led = led
        self.on_count = on_count
        self.remaining = 0

    def init(self) -> None:
        self.led.init()
        self.remaining = 0

    def on(self) -> None:
        self.led.on()
        self.remaining = self.on_count

    def off(self) -> None:
        self.led.off()
        self.remaining = 0

    def tick(self) -> None:
        if self.remaining:
            self.remaining -= 1
            if self.remaining == 0:
                self.led.off()