import struct

import pytest

from avrtoolkit.fat_reader import (
    DirAttribute,
    DirectoryEntry,
    FatFileReader,
    FatReaderError,
    FatType,
    FsHandle,
)

HELLO = bytes((i * 7) & 0xFF for i in range(700))
README = b"hello"
DATA32 = b"0123456789"


def _entry(name, attribute=0x20, cluster=0, size=0):
    return struct.pack(
        "<11sBBBIHHIHI",
        name,
        attribute,
        0,
        0,
        0,
        0,
        (cluster >> 16) & 0xFFFF,
        0,
        cluster & 0xFFFF,
        size,
    )


def _sector(data=b""):
    return bytes(data).ljust(512, b"\0")


class MemoryMedia:
    def __init__(self, sectors, fail_init=False, fail_read=False):
        self.sectors = sectors
        self.fail_init = fail_init
        self.fail_read = fail_read

    def init(self):
        if self.fail_init:
            raise OSError("no card")

    def read_sectors(self, start, num_sectors):
        if self.fail_read:
            raise OSError("read failure")
        return self.sectors.get(start, bytes(512))


def fat16_sectors(offset=0):
    boot = bytearray(512)
    struct.pack_into("<H", boot, 11, 512)
    boot[13] = 1
    struct.pack_into("<H", boot, 14, 1)
    boot[16] = 2
    struct.pack_into("<H", boot, 17, 32)
    struct.pack_into("<H", boot, 22, 1)
    boot[54:62] = b"FAT16   "
    struct.pack_into("<H", boot, 510, 0xAA55)
    fat = bytearray(512)
    struct.pack_into("<HHHHH", fat, 0, 0xFFF8, 0xFFFF, 3, 0xFFFF, 0xFFFF)
    root = (
        _entry(b"MYDISK     ", 0x08)
        + _entry(b".          ", 0x10)
        + _entry(b"HELLO   TXT", 0x20, 2, len(HELLO))
        + _entry(b"\xe5LD     TXT", 0x20, 5, 3)
        + _entry(b"README  TXT", 0x20, 4, len(README))
        + _entry(b"EMPTY   TXT", 0x20, 0, 0)
    )
    return {
        offset: bytes(boot),
        offset + 1: bytes(fat),
        offset + 2: bytes(fat),
        offset + 3: _sector(root),
        offset + 4: _sector(),
        offset + 5: HELLO[:512],
        offset + 6: _sector(HELLO[512:]),
        offset + 7: _sector(README),
    }


def fat32_sectors():
    boot = bytearray(512)
    struct.pack_into("<H", boot, 11, 512)
    boot[13] = 1
    struct.pack_into("<H", boot, 14, 1)
    boot[16] = 1
    struct.pack_into("<I", boot, 36, 1)
    struct.pack_into("<I", boot, 44, 2)
    boot[82:90] = b"FAT32   "
    struct.pack_into("<H", boot, 510, 0xAA55)
    fat = struct.pack("<IIII", 0x0FFFFFF8, 0x0FFFFFFF, 0x0FFFFFFF, 0x0FFFFFFF)
    root = _entry(b"DATA    BIN", 0x20, 3, len(DATA32))
    return {0: bytes(boot), 1: _sector(fat), 2: _sector(root), 3: _sector(DATA32)}


def make_reader(sectors, safe=False):
    reader = FatFileReader(MemoryMedia(sectors), safe=safe)
    reader.init()
    return reader


def test_init_detects_fat16_layout():
    reader = make_reader(fat16_sectors())
    assert reader.fat_type is FatType.FAT16
    assert reader.root_dir == 3
    assert reader.data_sector == 5


def test_entries_skip_volume_dot_and_deleted():
    reader = make_reader(fat16_sectors())
    names = [entry.name for entry in reader.entries()]
    assert names == [b"HELLO   TXT", b"README  TXT", b"EMPTY   TXT"]


def test_read_whole_file_across_clusters():
    reader = make_reader(fat16_sectors())
    handle = reader.open("HELLO   TXT")
    assert reader.read(handle, 1000) == HELLO
    assert handle.eof()
    assert reader.read(handle, 10) == b""


def test_read_in_chunks_matches_whole():
    reader = make_reader(fat16_sectors())
    handle = reader.open(b"HELLO   TXT")
    chunks = []
    while not handle.eof():
        chunks.append(reader.read(handle, 100))
    assert b"".join(chunks) == HELLO
    assert all(len(chunk) <= 100 for chunk in chunks)


def test_small_file():
    reader = make_reader(fat16_sectors())
    handle = reader.open("README  TXT")
    assert reader.read(handle, 512) == README


def test_missing_file():
    reader = make_reader(fat16_sectors())
    with pytest.raises(FatReaderError) as info:
        reader.open("NOPE    TXT")
    assert info.value.reason == FatReaderError.FILE_NOT_FOUND


def test_empty_file_has_no_valid_cluster():
    reader = make_reader(fat16_sectors())
    with pytest.raises(FatReaderError) as info:
        reader.open("EMPTY   TXT")
    assert info.value.reason == FatReaderError.BAD_FILE


def test_name_must_be_eleven_characters():
    reader = make_reader(fat16_sectors())
    with pytest.raises(ValueError):
        reader.open("HELLO.TXT")


def test_partition_table_is_followed():
    sectors = fat16_sectors(offset=63)
    mbr = bytearray(512)
    struct.pack_into("<I", mbr, 454, 63)
    struct.pack_into("<H", mbr, 510, 0xAA55)
    sectors[0] = bytes(mbr)
    reader = make_reader(sectors)
    assert reader.fat_type is FatType.FAT16
    handle = reader.open("README  TXT")
    assert reader.read(handle, 512) == README


def test_partition_without_fat():
    mbr = bytearray(512)
    struct.pack_into("<I", mbr, 454, 5)
    struct.pack_into("<H", mbr, 510, 0xAA55)
    other = bytearray(512)
    struct.pack_into("<H", other, 510, 0xAA55)
    reader = FatFileReader(MemoryMedia({0: bytes(mbr), 5: bytes(other)}))
    with pytest.raises(FatReaderError) as info:
        reader.init()
    assert info.value.reason == FatReaderError.NO_FAT


def test_bad_signature():
    reader = FatFileReader(MemoryMedia({}))
    with pytest.raises(FatReaderError) as info:
        reader.init()
    assert info.value.reason == FatReaderError.DISK_FORMAT


def test_media_init_failure():
    reader = FatFileReader(MemoryMedia(fat16_sectors(), fail_init=True))
    with pytest.raises(FatReaderError) as info:
        reader.init()
    assert info.value.reason == FatReaderError.INIT


def test_media_read_failure():
    reader = FatFileReader(MemoryMedia(fat16_sectors(), fail_read=True))
    with pytest.raises(FatReaderError) as info:
        reader.init()
    assert info.value.reason == FatReaderError.READ


def test_fat32_volume():
    reader = make_reader(fat32_sectors())
    assert reader.fat_type is FatType.FAT32
    assert [entry.name for entry in reader.entries()] == [b"DATA    BIN"]
    handle = reader.open("DATA    BIN")
    assert reader.read(handle, 64) == DATA32


def test_safe_mode_interleaved_handles():
    reader = make_reader(fat16_sectors(), safe=True)
    hello = reader.open("HELLO   TXT")
    readme = reader.open("README  TXT")
    head = reader.read(hello, 5)
    assert reader.read(readme, 512) == README
    tail = reader.read(hello, 1000)
    assert head + tail == HELLO


def test_safe_mode_rejects_wrong_handle_kind():
    reader = make_reader(fat16_sectors(), safe=True)
    directory = reader.open_root_dir()
    assert reader.read(directory, 10) == b""
    handle = reader.open("README  TXT")
    assert reader.next(handle) is None
    with pytest.raises(FatReaderError) as info:
        reader.open_entry(handle)
    assert info.value.reason == FatReaderError.BAD_FILE


def test_directory_entry_kinds():
    assert DirectoryEntry(attribute=DirAttribute.VOLUME).is_volume()
    assert not DirectoryEntry(attribute=DirAttribute.VOLUME).is_file()
    assert not DirectoryEntry(attribute=DirAttribute.DIRECTORY).is_file()
    assert DirectoryEntry(attribute=DirAttribute.ARCHIVE).is_file()


def test_handle_eof_follows_file_size():
    handle = FsHandle()
    assert handle.eof()
    handle.entry.file_size = 3
    assert not handle.eof()