"""Host-side models of AVR firmware helpers and peripherals, an SD card driver and a read-only FAT reader."""

__version__ = "0.1.0"