# avrtoolkit

A pure-Python library that models the building blocks of small AVR
microcontroller firmware, so that firmware logic can be run and tested on a
host with no hardware attached. It contains:

- `avrtoolkit.mathutil`: value clamping and base-2 logarithms of small
  powers of two.
- `avrtoolkit.lfsr`: a 16-bit Galois LFSR pseudo-random generator.
- `avrtoolkit.clock`: a millisecond clock driven by timer-overflow ticks.
- `avrtoolkit.pins`: digital pins, LEDs and self-extinguishing flash LEDs.
- `avrtoolkit.rotary_encoder_array`: an array of clickable rotary encoders
  read through shift registers.
- `avrtoolkit.hd44780_lcd`: an HD44780 character LCD on a 4-bit bus, with a
  queued output.
- `avrtoolkit.mcp3201`: a bit-banged reader for the MCP3201 12-bit ADC.
- `avrtoolkit.mux4051`: control of a CD4051 analog multiplexer on one nibble
  of a port.
- `avrtoolkit.sd_card`: sector reads from SD, SDv2 and SDHC cards in SPI
  mode.
- `avrtoolkit.fat_reader`: read-only access to files in the root directory
  of a FAT16 or FAT32 volume.

No third-party packages are needed.

## Installation

```
pip install .
```

To run the test suite:

```
pip install ".[test]"
pytest
```

## Quick tour

### Value helpers

```python
from avrtoolkit.mathutil import clamp, clamp_7f, clamp16, log2

clamp(300, 0, 127)        # 127
clamp_7f(-5)              # 0
clamp16(-900, -512, 511)  # -512
log2(64)                  # 6
log2(3)                   # 0: not a power of two
```

### Pseudo-random numbers

`Random` is a Galois LFSR (feedback polynomial x^16 + x^14 + x^13 + x^11)
with a period of 65535; the same seed always gives the same sequence.

```python
from avrtoolkit.lfsr import Random

rng = Random(0x21)
rng.get_byte()    # next value, high byte of the state
rng.get_word()    # next 16-bit state
rng.get(1, 6)     # next value scaled into 1..6
rng.seed(0x1234)  # restart from another state
```

### System clock

`SystemClock` turns timer-0 overflow ticks (prescaler 64, 256 counts) into
a wrapping 32-bit millisecond count for a given CPU frequency.

```python
from avrtoolkit.clock import SystemClock

clock = SystemClock(20_000_000)
for _ in range(1000):
    clock.tick()
clock.milliseconds()   # 816
```

A frequency below 1 MHz raises `ValueError`.

### Pins and LEDs

```python
from avrtoolkit.pins import Pin, Led, LedMode, FlashLed

pin = Pin(0)
led = Led(pin, LedMode.SOURCE_CURRENT)
led.init()   # pin becomes an output, LED off
led.on()     # pin.value == 1

flash = FlashLed(led, 10)
flash.init()
flash.on()
for _ in range(10):
    flash.tick()   # the LED goes dark on the tenth tick
```

With `LedMode.SINK_CURRENT` the levels are inverted: the LED is on when
its pin is low.

### Other peripherals

Each peripheral takes the pins, ports or bus objects it talks to in its
constructor, so it can be wired to `Pin` objects or to test doubles:

- `RotaryEncoderArray(load, clock, a, b, c, size)`: call `poll()` at a
  steady rate, then `read(index)` gives 1, -1 or 0 for a detent, and
  `clicked(index)` / `event(index)` report the push switch.
- `Hd44780Lcd(rs_pin, enable_pin, port, width, height)`: the port needs
  `set_mode(mode)` and `write(value)`. `init()` runs the 4-bit power-up
  sequence; `write(...)` queues a character or a string, `move_cursor(row,
  col)` and `write_command(c)` queue commands, and each `tick()` moves one
  nibble on the bus. `flush()` sends everything queued.
- `Mcp3201(cs, clk, data)`: `read()` returns a 12-bit sample.
- `Mux4051Port(port, mode)`: the port holds integer `mode` and `output`
  registers; `write(channel)` selects a channel, `enable()` and `disable()`
  drive the active-low enable line.

### Reading an SD card

`SdCard` talks to a card through an SPI object offering `init()`,
`pull_up_miso()`, `begin()`, `end()`, `send(byte)` and `receive()`.

```python
from avrtoolkit.sd_card import SdCard, SdTimeouts

card = SdCard(spi, SdTimeouts.timer_based())
card.init()
card.card_type         # SdCardType.SD1, SD2 or SDHC
card.num_sectors()     # capacity from the CSD register
data = card.read_sectors(0, 2)   # 1024 bytes
```

With the default `SdTimeouts()` waits are bounded by a number of retries
rather than by the clock. Failures raise `SdCardError`, whose `reason` tells
which step failed. `csd_sector_count(csd)` decodes a 16-byte CSD register
on its own.

### Reading a FAT volume

`FatFileReader` reads files from the root directory of a FAT16 or FAT32
volume through any media object with `init()` and
`read_sectors(start, num_sectors)`; an `SdCard` fits.

```python
from avrtoolkit.fat_reader import FatFileReader

reader = FatFileReader(card, False)
reader.init()
for entry in reader.entries():
    print(entry.name, entry.file_size)
handle = reader.open("FIRMWAREBIN")   # 11-character 8.3 name, no dot
payload = reader.read(handle, 512)
handle.eof()
```

Failures raise `FatReaderError`, whose `reason` is one of `init`, `read`,
`disk_format`, `no_fat`, `bad_file` or `file_not_found`. Passing `True` as
the second argument enables extra checks and lets several handles be read
in turn.

## What this package does not do

- It has no command-line program; it is a library only.
- It cannot write: the SD card driver only reads sectors, and the FAT
  reader only lists the root directory and reads files from it.
  Subdirectories and long file names are not supported.
- It does not talk to real hardware. Pins, ports and buses are plain Python
  objects that you supply.