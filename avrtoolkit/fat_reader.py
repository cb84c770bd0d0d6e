"""Minimal read-only access to FAT16 and FAT32 file systems.

Only the first partition and the root directory are exposed, and files are
looked up by their 8.3 name (11 bytes, space padded, no dot).

In ``safe`` mode more call sequences are checked. Several handles can also be
used at the same time, because each one re-reads its sector when another
handle has replaced the shared sector cache.
"""

import enum
import struct
from dataclasses import dataclass, field
from typing import Iterator, Optional, Protocol, Union

__all__ = [
    "FatReaderError",
    "FatType",
    "DirAttribute",
    "DirectoryEntry",
    "FsHandle",
    "FatFileReader",
]

SECTOR_SIZE = 512
_ENTRY_FORMAT = "<11sBBBIHHIHI"
_ENTRY_SIZE = struct.calcsize(_ENTRY_FORMAT)
_BOOT_SIGNATURE = 0xAA55
_DELETED_MARK = 0xE5
_FIRST_PARTITION_OFFSET = 446 + 8
_FAT16_FS_TYPE_OFFSET = 54
_FAT32_FS_TYPE_OFFSET = 82
_MASK32 = 0xFFFFFFFF


class FatReaderError(Exception):
    """A file system operation failed; ``reason`` says why."""

    INIT = "init"
    READ = "read"
    DISK_FORMAT = "disk_format"
    NO_FAT = "no_fat"
    BAD_FILE = "bad_file"
    FILE_NOT_FOUND = "file_not_found"

    def __init__(self, reason: str, message: Optional[str] = None) -> None:
        super().__init__(message or reason.replace("_", " "))
        self.reason = reason


class FatType(enum.IntEnum):
    UNKNOWN = 0
    FAT16 = 16
    FAT32 = 32


class DirAttribute(enum.IntEnum):
    READ_ONLY = 1
    HIDDEN = 2
    SYSTEM = 4
    VOLUME = 8
    LFN = 15
    DIRECTORY = 16
    ARCHIVE = 32
    ATTRIBUTES = 0x3F


@dataclass
class DirectoryEntry:
    """One 32-byte directory record."""

    name: bytes = bytes(11)
    attribute: int = 0
    reserved: int = 0
    creation_time_tenth: int = 0
    creation_time: int = 0
    last_access_time: int = 0
    first_cluster_high: int = 0
    last_write_time: int = 0
    first_cluster: int = 0
    file_size: int = 0

    def is_volume(self) -> bool:
        return bool(self.attribute & DirAttribute.VOLUME)

    def is_file(self) -> bool:
        return not self.attribute & (DirAttribute.VOLUME | DirAttribute.DIRECTORY)


def _parse_entry(sector: bytes, index: int) -> DirectoryEntry:
    return DirectoryEntry(*struct.unpack_from(_ENTRY_FORMAT, sector, index * _ENTRY_SIZE))


@dataclass
class FsHandle:
    """Position of a directory listing or of an opened file."""

    is_file: bool = False
    cluster_position: int = 0
    cursor: int = 0
    cluster: int = 0
    sector: int = 0
    current_sector: int = 0
    entry: DirectoryEntry = field(default_factory=DirectoryEntry)

    def eof(self) -> bool:
        """True once every byte of an opened file has been read."""
        return self.entry.file_size == 0


class _Media(Protocol):
    def init(self) -> None: ...

    def read_sectors(self, start: int, num_sectors: int) -> bytes: ...


class FatFileReader:
    """Reads files from ``media``, which provides ``init()`` and
    ``read_sectors(start, num_sectors)``; either may raise on failure."""

    def __init__(self, media: _Media, safe: bool = False) -> None:
        self.media = media
        self.safe = safe
        self.fat_type = FatType.UNKNOWN
        self.cluster_size = 0
        self.root_dir = 0
        self.fat_sector = 0
        self.data_sector = 0
        self._sector = bytes(SECTOR_SIZE)
        self._fetched_sector = 0

    def init(self) -> None:
        """Initialise the media and locate a FAT volume in the first partition."""
        self.fat_type = FatType.UNKNOWN
        try:
            self.media.init()
        except Exception as exc:
            raise FatReaderError(FatReaderError.INIT) from exc

        boot_sector = 0
        try:
            self._find_boot_sector(boot_sector)
        except FatReaderError as exc:
            if exc.reason != FatReaderError.NO_FAT:
                raise
            boot_sector = struct.unpack_from("<I", self._sector, _FIRST_PARTITION_OFFSET)[0]
            self._find_boot_sector(boot_sector)

        boot = self._sector
        fat_size = struct.unpack_from("<H", boot, 22)[0]
        if self.fat_type is FatType.FAT32:
            fat_size = struct.unpack_from("<I", boot, 36)[0]
        num_fats = boot[16]
        if self.safe:
            fat_size = (fat_size * num_fats) & _MASK32
        elif num_fats == 2:
            fat_size = (fat_size + fat_size) & _MASK32
        reserved = struct.unpack_from("<H", boot, 14)[0]
        self.fat_sector = (boot_sector + reserved) & _MASK32
        self.cluster_size = boot[13]
        start = (self.fat_sector + fat_size) & _MASK32
        if self.fat_type is FatType.FAT32:
            self.root_dir = struct.unpack_from("<I", boot, 44)[0]
        else:
            self.root_dir = start
        root_entry_count = struct.unpack_from("<H", boot, 17)[0]
        self.data_sector = (start + root_entry_count // 16) & _MASK32

    def open_root_dir(self) -> FsHandle:
        """A handle positioned before the first entry of the root directory."""
        handle = FsHandle()
        if self.fat_type is FatType.FAT32:
            handle.cluster = self.root_dir
            handle.sector = self._cluster_to_sector(self.root_dir)
        else:
            handle.sector = self.root_dir
        return handle

    def next(self, handle: FsHandle) -> Optional[DirectoryEntry]:
        """The next file or directory entry, or None at the end of the listing.

        Volume labels, dot entries and deleted entries are skipped.
        """
        if self.safe and handle.is_file:
            return None
        if self.safe:
            self._sync_cache(handle)
        while True:
            offset = handle.cursor & 0x0F
            if offset == 0:
                self._read_next_sector(handle)
            handle.cursor = (handle.cursor + 1) & 0xFFFF
            entry = _parse_entry(self._sector, offset)
            handle.entry = entry
            first = entry.name[0]
            if first == 0:
                return None
            if entry.is_volume():
                continue
            if first in (ord("."), _DELETED_MARK):
                continue
            return entry

    def entries(self) -> Iterator[DirectoryEntry]:
        """Iterate over the entries of the root directory."""
        handle = self.open_root_dir()
        while (entry := self.next(handle)) is not None:
            yield entry

    def open(self, name83: Union[str, bytes]) -> FsHandle:
        """Open the root-directory file whose 11-byte 8.3 name is ``name83``."""
        key = name83.encode("latin-1") if isinstance(name83, str) else bytes(name83)
        if len(key) != 11:
            raise ValueError("an 8.3 name is exactly 11 characters")
        handle = self.open_root_dir()
        found = False
        try:
            while (entry := self.next(handle)) is not None:
                if entry.name == key:
                    found = True
                    break
        except FatReaderError as exc:
            raise FatReaderError(FatReaderError.FILE_NOT_FOUND) from exc
        if not found:
            raise FatReaderError(FatReaderError.FILE_NOT_FOUND)
        return self.open_entry(handle)

    def open_entry(self, handle: FsHandle) -> FsHandle:
        """Turn a directory handle on a file entry into a file handle."""
        entry = handle.entry
        if self.safe and (
            handle.is_file
            or entry.name[0] in (0, _DELETED_MARK)
            or not entry.is_file()
        ):
            raise FatReaderError(FatReaderError.BAD_FILE)
        cluster = entry.first_cluster | (entry.first_cluster_high << 16)
        if not self._is_valid_cluster(cluster):
            raise FatReaderError(FatReaderError.BAD_FILE)
        handle.is_file = True
        handle.cluster = cluster
        handle.cluster_position = 0
        handle.sector = self._cluster_to_sector(cluster)
        handle.cursor = 0
        return handle

    def read(self, handle: FsHandle, size: int) -> bytes:
        """Read up to ``size`` bytes; fewer at the end of the file or on a
        media error."""
        if size < 0:
            raise ValueError("size must not be negative")
        if self.safe and not handle.is_file:
            return b""
        if self.safe:
            self._sync_cache(handle)
        out = bytearray()
        remaining = handle.entry.file_size
        while size and remaining:
            if handle.cursor == 0:
                try:
                    self._read_next_sector(handle)
                except FatReaderError:
                    break
            readable = min(SECTOR_SIZE - handle.cursor, size, remaining)
            out += self._sector[handle.cursor:handle.cursor + readable]
            handle.cursor += readable
            size -= readable
            remaining -= readable
            if handle.cursor == SECTOR_SIZE:
                handle.cursor = 0
        handle.entry.file_size = remaining
        return bytes(out)

    def _is_valid_cluster(self, cluster: int) -> bool:
        if self.fat_type is FatType.FAT16:
            return 2 <= cluster <= 0xFFEF
        return 2 <= cluster <= 0x0FFFFFEF

    def _next_cluster(self, cluster: int) -> int:
        if cluster < 2:
            return 0
        fat16 = self.fat_type is FatType.FAT16
        sector = self.fat_sector + ((cluster >> 8) if fat16 else (cluster >> 7))
        try:
            self._read_sector(sector & _MASK32)
        except FatReaderError:
            return 0
        if fat16:
            return struct.unpack_from("<H", self._sector, (cluster & 0xFF) * 2)[0]
        value = struct.unpack_from("<I", self._sector, (cluster & 0x7F) * 4)[0]
        return value & 0x0FFFFFFF

    def _sync_cache(self, handle: FsHandle) -> None:
        if self._fetched_sector != handle.current_sector:
            self._read_sector(handle.current_sector)

    def _read_sector(self, sector: int) -> None:
        try:
            data = self.media.read_sectors(sector, 1)
        except Exception as exc:
            raise FatReaderError(FatReaderError.READ) from exc
        if len(data) < SECTOR_SIZE:
            raise FatReaderError(FatReaderError.READ, "short sector read")
        self._sector = bytes(data[:SECTOR_SIZE])
        if self.safe:
            self._fetched_sector = sector

    def _read_next_sector(self, handle: FsHandle) -> None:
        if handle.cluster and handle.cluster_position == self.cluster_size:
            next_cluster = self._next_cluster(handle.cluster)
            if next_cluster == 0 or not self._is_valid_cluster(next_cluster):
                raise FatReaderError(FatReaderError.READ, "broken cluster chain")
            handle.cluster = next_cluster
            handle.sector = self._cluster_to_sector(next_cluster)
            handle.cluster_position = 0
        self._read_sector(handle.sector)
        if self.safe:
            handle.current_sector = handle.sector
        handle.sector = (handle.sector + 1) & _MASK32
        handle.cluster_position = (handle.cluster_position + 1) & 0xFF

    def _cluster_to_sector(self, cluster: int) -> int:
        cluster = (cluster - 2) & _MASK32
        shift = self.cluster_size >> 1
        while shift:
            shift >>= 1
            cluster = (cluster << 1) & _MASK32
        return (cluster + self.data_sector) & _MASK32

    def _find_boot_sector(self, sector: int) -> None:
        self._read_sector(sector)
        data = self._sector
        if struct.unpack_from("<H", data, 510)[0] != _BOOT_SIGNATURE:
            raise FatReaderError(FatReaderError.DISK_FORMAT)
        if data[_FAT16_FS_TYPE_OFFSET:_FAT16_FS_TYPE_OFFSET + 2] == b"FA":
            self.fat_type = FatType.FAT16
            return
        if data[_FAT32_FS_TYPE_OFFSET:_FAT32_FS_TYPE_OFFSET + 2] == b"FA":
            self.fat_type = FatType.FAT32
            return
        raise FatReaderError(FatReaderError.NO_FAT)