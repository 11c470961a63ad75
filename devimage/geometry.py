"""Partition geometry for the fixed three-partition device layout.

The layout is, in ascending sector order:

    [ partition table | firmware (FAT) | data (ext4) | root (ext4) ]

Table, firmware and data regions have fixed sizes. The root region is sized
from the measured source tree plus overhead for the ext4 journal and reserved
blocks. All arithmetic is integer with truncating division, so image sizes
stay identical to the ones downstream flashing tools already expect.
"""

from dataclasses import dataclass

from .errors import InputError

# === CONSTANTS ===
SECTOR_SIZE = 512
TABLE_SIZE_M = 1
FIRMWARE_SIZE_M = 128
DATA_SIZE_M = 256
ROOT_OVERHEAD_PERCENT = 25
MIB = 1024 * 1024


def mib_to_sectors(size_m: int) -> int:
    return size_m * MIB // SECTOR_SIZE


@dataclass(frozen=True)
class PartitionGeometry:
    """Sector counts and offsets of every region in the device image"""
    source_size_kb: int
    table_sectors: int
    firmware_sectors: int
    data_sectors: int
    root_sectors: int

    @property
    def firmware_offset_sector(self) -> int:
        return self.table_sectors

    @property
    def data_offset_sector(self) -> int:
        return self.table_sectors + self.firmware_sectors

    @property
    def root_offset_sector(self) -> int:
        return self.data_offset_sector + self.data_sectors

    @property
    def image_sectors(self) -> int:
        return self.table_sectors + self.firmware_sectors + self.data_sectors + self.root_sectors

    # Byte views, used for loop device offsets and file allocation
    @property
    def table_size(self) -> int:
        return self.table_sectors * SECTOR_SIZE

    @property
    def firmware_size(self) -> int:
        return self.firmware_sectors * SECTOR_SIZE

    @property
    def data_size(self) -> int:
        return self.data_sectors * SECTOR_SIZE

    @property
    def root_size(self) -> int:
        return self.root_sectors * SECTOR_SIZE

    @property
    def firmware_offset(self) -> int:
        return self.firmware_offset_sector * SECTOR_SIZE

    @property
    def data_offset(self) -> int:
        return self.data_offset_sector * SECTOR_SIZE

    @property
    def root_offset(self) -> int:
        return self.root_offset_sector * SECTOR_SIZE

    @property
    def image_size(self) -> int:
        return self.image_sectors * SECTOR_SIZE

    def describe(self):
        """Human readable layout, one line per region"""
        return [
            f"Table:    {self.table_sectors:>10}s @ 0s",
            f"Firmware: {self.firmware_sectors:>10}s @ {self.firmware_offset_sector}s",
            f"Data:     {self.data_sectors:>10}s @ {self.data_offset_sector}s",
            f"Root:     {self.root_sectors:>10}s @ {self.root_offset_sector}s",
            f"Total:    {self.image_sectors:>10}s ({self.image_size} bytes)",
        ]


def root_sectors_for(source_size_kb: int) -> int:
    overhead_kb = source_size_kb * ROOT_OVERHEAD_PERCENT // 100
    return (source_size_kb + overhead_kb) * 1024 // SECTOR_SIZE


def calculate_geometry(source_size_kb: int) -> PartitionGeometry:
    if source_size_kb < 0:
        raise InputError(f"Source size must not be negative: {source_size_kb} KiB")

    return PartitionGeometry(
        source_size_kb=source_size_kb,
        table_sectors=mib_to_sectors(TABLE_SIZE_M),
        firmware_sectors=mib_to_sectors(FIRMWARE_SIZE_M),
        data_sectors=mib_to_sectors(DATA_SIZE_M),
        root_sectors=root_sectors_for(source_size_kb),
    )
