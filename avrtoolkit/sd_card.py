"""Sector-level access to SD, SDv2 and SDHC cards in SPI mode.

Only reading is supported: card initialisation, the card capacity and
single or multiple sector reads. The file system lives elsewhere.
"""

import enum
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Iterator, Optional, Protocol

__all__ = [
    "SdCommand",
    "SdCardType",
    "SdCardError",
    "SdTimeouts",
    "SdCard",
    "csd_sector_count",
]

SECTOR_SIZE = 512
CSD_SIZE = 16
_MASK32 = 0xFFFFFFFF

_STATE_READY = 0x00
_STATE_IDLE = 0x01
_STATE_ILLEGAL_COMMAND = 0x04
_TOKEN_START_DATA_BLOCK = 0xFE
_NO_RESPONSE = 0xFF
_RESPONSE_ATTEMPTS = 20
_IF_COND_ARGUMENT = 0x1AA
_IF_COND_PATTERN = 0xAA
_HCS_BIT = 0x40000000


class SdCommand(enum.IntEnum):
    GO_IDLE_STATE = 0
    SEND_IF_COND = 8
    SEND_CSD = 9
    SEND_CID = 10
    STOP_TRANSMISSION = 12
    SEND_STATUS = 13
    SET_BLOCKLEN = 16
    READ_SINGLE_BLOCK = 17
    READ_MULTIPLE_BLOCK = 18
    WRITE_BLOCK = 24
    WRITE_MULTIPLE_BLOCK = 25
    ERASE_WR_BLK_START = 32
    ERASE_WR_BLK_END = 33
    ERASE = 38
    APP_CMD = 55
    READ_OCR = 58
    # Application commands, sent after APP_CMD.
    APP_SET_WR_BLK_ERASE_COUNT = 23
    APP_SD_SEND_OP_COND = 41


class SdCardType(enum.IntEnum):
    SD1 = 0
    SD2 = 1
    SDHC = 2


class SdCardError(Exception):
    """A card operation failed; ``reason`` says which step."""

    INIT = "init"
    READ_REG = "read_reg"
    READ = "read"
    READ_TIMEOUT = "read_timeout"

    def __init__(self, reason: str, message: Optional[str] = None) -> None:
        super().__init__(message or reason.replace("_", " "))
        self.reason = reason


@dataclass(frozen=True)
class SdTimeouts:
    """Timeouts in milliseconds.

    A timeout of 0 means the wait is bounded by ``retries`` attempts instead of
    by the clock.
    """

    busy: int = 0
    init: int = 0
    erase: int = 0
    read: int = 0
    write: int = 0
    retries: int = 0xFFFF

    def __post_init__(self) -> None:
        if self.retries < 1:
            raise ValueError("retries must be at least 1")

    @classmethod
    def timer_based(cls) -> "SdTimeouts":
        """The usual clock-based timeouts."""
        return cls(busy=300, init=1000, erase=2000, read=200, write=400)


def csd_sector_count(csd: bytes) -> int:
    """Number of 512-byte sectors described by a 16-byte CSD register."""
    if len(csd) != CSD_SIZE:
        raise ValueError(f"a CSD register is {CSD_SIZE} bytes long")
    version = csd[0] >> 6
    if version == 0:
        read_bl_len = csd[5] & 0x0F
        c_size = ((csd[6] & 0x03) << 10) | (csd[7] << 2) | (csd[8] >> 6)
        c_size_mult = ((csd[9] & 0x03) << 1) | (csd[10] >> 7)
        shift = c_size_mult + read_bl_len - 7
        if shift < 0:
            raise ValueError("CSD block length is too small")
        return ((c_size + 1) << shift) & _MASK32
    if version == 1:
        c_size = ((csd[7] & 0x3F) << 16) | (csd[8] << 8) | csd[9]
        return ((c_size + 1) << 10) & _MASK32
    raise ValueError(f"unsupported CSD structure version {version}")


class _Spi(Protocol):
    def init(self) -> None: ...

    def pull_up_miso(self) -> None: ...

    def begin(self) -> None: ...

    def end(self) -> None: ...

    def send(self, byte: int) -> None: ...

    def receive(self) -> int: ...


class SdCard:
    """An SD card behind an SPI bus with chip-select ``begin``/``end``."""

    def __init__(self, spi: _Spi, timeouts: Optional[SdTimeouts] = None) -> None:
        self.spi = spi
        self.timeouts = timeouts if timeouts is not None else SdTimeouts()
        self.card_type = SdCardType.SD1
        self.sector_size = SECTOR_SIZE

    @contextmanager
    def _session(self) -> Iterator[None]:
        self.spi.begin()
        try:
            yield
        finally:
            self.spi.end()

    def init(self) -> None:
        """Wake the card up and find out which kind of card it is.

        MMC cards are not supported.
        """
        spi = self.spi
        spi.init()
        spi.pull_up_miso()
        self.card_type = SdCardType.SD1
        spi.end()
        for _ in range(10):
            spi.send(0xFF)

        with self._session():
            idle = self._wait_for(
                lambda: self._command(SdCommand.GO_IDLE_STATE, 0) == _STATE_IDLE,
                self.timeouts.init,
            )
            if not idle:
                raise SdCardError(SdCardError.INIT, "card does not go idle")

            status = self._command(SdCommand.SEND_IF_COND, _IF_COND_ARGUMENT)
            if status & _STATE_ILLEGAL_COMMAND:
                self.card_type = SdCardType.SD1
            else:
                spi.receive()
                spi.receive()
                if not spi.receive() & 0x01:
                    raise SdCardError(SdCardError.INIT, "unsupported voltage range")
                if spi.receive() != _IF_COND_PATTERN:
                    raise SdCardError(SdCardError.INIT, "bad check pattern")
                self.card_type = SdCardType.SD2

            argument = _HCS_BIT if self.card_type is SdCardType.SD2 else 0
            ready = self._wait_for(
                lambda: self._app_command(SdCommand.APP_SD_SEND_OP_COND, argument)
                == _STATE_READY,
                self.timeouts.init,
            )
            if not ready:
                raise SdCardError(SdCardError.INIT, "card does not become ready")

            if self.card_type is SdCardType.SD2:
                if self._command(SdCommand.READ_OCR, 0):
                    raise SdCardError(SdCardError.INIT, "cannot read OCR")
                if spi.receive() & 0x40:
                    self.card_type = SdCardType.SDHC
                self._swallow(3)
            elif self._command(SdCommand.SET_BLOCKLEN, SECTOR_SIZE):
                raise SdCardError(SdCardError.INIT, "cannot set block length")

    def num_sectors(self) -> int:
        """The card capacity in sectors, read from its CSD register."""
        with self._session():
            if self._command(SdCommand.SEND_CSD, 0):
                raise SdCardError(SdCardError.READ_REG)
            csd = self._read_data(CSD_SIZE)
        return csd_sector_count(csd)

    def read_sectors(self, start: int, num_sectors: int = 1) -> bytes:
        """Read ``num_sectors`` consecutive sectors starting at ``start``."""
        if num_sectors < 1:
            raise ValueError("num_sectors must be at least 1")
        if start < 0:
            raise ValueError("start must not be negative")
        with self._session():
            if self.card_type is not SdCardType.SDHC:
                start = (start * SECTOR_SIZE) & _MASK32
            if num_sectors == 1:
                if self._command(SdCommand.READ_SINGLE_BLOCK, start) != 0:
                    raise SdCardError(SdCardError.READ)
                return self._read_data(SECTOR_SIZE)
            if self._command(SdCommand.READ_MULTIPLE_BLOCK, start) != 0:
                raise SdCardError(SdCardError.READ)
            blocks = [self._read_data(SECTOR_SIZE) for _ in range(num_sectors)]
            self._command(SdCommand.STOP_TRANSMISSION, 0)
            return b"".join(blocks)

    def _read_data(self, size: int) -> bytes:
        if self._wait_for_data() != _TOKEN_START_DATA_BLOCK:
            raise SdCardError(SdCardError.READ_TIMEOUT)
        data = bytes(self.spi.receive() & 0xFF for _ in range(size))
        self._swallow(2)
        return data

    def _swallow(self, count: int) -> None:
        for _ in range(count):
            self.spi.receive()

    def _command(self, command: int, argument: int) -> int:
        spi = self.spi
        spi.receive()
        spi.send(command | 0x40)
        for byte in (argument & _MASK32).to_bytes(4, "big"):
            spi.send(byte)
        if command == SdCommand.GO_IDLE_STATE:
            crc = 0x95
        elif command == SdCommand.SEND_IF_COND:
            crc = 0x87
        else:
            crc = 0xFF
        spi.send(crc)
        status = _NO_RESPONSE
        for _ in range(_RESPONSE_ATTEMPTS):
            status = spi.receive() & 0xFF
            if not status & 0x80:
                break
        return status

    def _app_command(self, command: int, argument: int) -> int:
        self._command(SdCommand.APP_CMD, 0)
        return self._command(command, argument)

    def _attempts(self, timeout_ms: int) -> Iterator[None]:
        if timeout_ms == 0:
            for _ in range(self.timeouts.retries):
                yield None
            return
        start = time.monotonic()
        while True:
            yield None
            if (time.monotonic() - start) * 1000 >= timeout_ms:
                return

    def _wait_for(self, predicate: Callable[[], bool], timeout_ms: int) -> bool:
        return any(predicate() for _ in self._attempts(timeout_ms))

    def _wait_for_data(self) -> int:
        status = _NO_RESPONSE
        for _ in self._attempts(self.timeouts.read):
            status = self.spi.receive() & 0xFF
            if status != _NO_RESPONSE:
                break
        return status