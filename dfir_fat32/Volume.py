# dfir_fat32: a FAT32 parser for digital forensics & incident response
# (c) Maxim Suhanov
#
# This module implements an interface to open a FAT32 volume: the boot sector, the FSINFO sector and the FAT are validated here.

import logging
from collections import namedtuple
from .BootSector import BSBPB, FSINFO, BOOT_SECTOR_SIZE, FSINFO_SIZE, ReadBuffer, VolumeIOException
from .FAT import FAT, ClusterChainException
from .DirectoryEntries import DIRECTORY_ENTRY_SIZE

logger = logging.getLogger(__name__)

BYTES_PER_KB = 1024

VolumeInfo = namedtuple('VolumeInfo', [ 'drive_name', 'oem_name', 'volume_id', 'free_space_kb', 'total_space_kb', 'usable_space_kb', 'sectors_per_cluster', 'cluster_size' ])

class FileSystemParser(object):
	"""This class is used to read and parse a FAT32 file system (volume).
	All other objects working with the volume share its file object, so they must not be used concurrently.
	"""

	volume_object = None
	"""A file object for a volume."""

	volume_offset = None
	"""An offset of a volume (in bytes)."""

	volume_size = None
	"""A volume size (in bytes)."""

	encoding = None
	"""A codepage for short (8.3) names."""

	bsbpb = None
	"""A BSBPB object for this volume."""

	fsinfo = None
	"""A FSINFO object for this volume."""

	geometry = None
	"""A VolumeGeometry named tuple for this volume."""

	fat = None
	"""A FAT object for this volume."""

	data_area_offset = None
	"""Offset of data area (in bytes, relative to the first byte of the volume)."""

	def __init__(self, volume_object, volume_offset = 0, volume_size = None, encoding = 'ascii'):
		self.volume_object = volume_object
		self.volume_offset = volume_offset
		self.volume_size = volume_size
		self.encoding = encoding

		bs_buf = ReadBuffer(self.volume_object, self.volume_offset, BOOT_SECTOR_SIZE)
		self.bsbpb = BSBPB(bs_buf)

		fsinfo_offset = self.bsbpb.get_bpb_bytspersec() * self.bsbpb.get_bpb_fsinfo()
		fsinfo_buf = ReadBuffer(self.volume_object, self.volume_offset + fsinfo_offset, FSINFO_SIZE)
		self.fsinfo = FSINFO(fsinfo_buf)

		self.bsbpb.validate()
		self.geometry = self.bsbpb.geometry()

		fat_size = self.geometry.fat_size_sectors * self.geometry.bytes_per_sector
		self.fat = FAT(self.volume_object, self.volume_offset + self.geometry.fat_offset, fat_size)
		self.fat.validate(self.geometry.media)

		self.data_area_offset = self.geometry.data_region_sector * self.geometry.bytes_per_sector

		logger.debug('Volume opened: {} bytes per cluster, FAT at {}, data area at {}, root cluster {}'.format(self.geometry.bytes_per_cluster, self.geometry.fat_offset, self.data_area_offset, self.geometry.root_cluster))

	def cluster_offset(self, cluster):
		"""Calculate and return the offset of a given data cluster (in bytes, relative to the first byte of the volume)."""

		if cluster < 2:
			# The first two FAT entries are reserved, there are no such data clusters.
			raise ClusterChainException('Invalid data cluster: {}'.format(cluster))

		return self.data_area_offset + (cluster - 2) * self.geometry.bytes_per_cluster

	def read(self, offset, size):
		"""Read and return 'size' bytes at a given offset (relative to the first byte of the volume)."""

		if self.volume_size is not None and offset + size > self.volume_size:
			raise VolumeIOException('Trying to read beyond the volume')

		return ReadBuffer(self.volume_object, self.volume_offset + offset, size)

	def read_cluster(self, cluster):
		"""Read and return a given data cluster (as raw bytes)."""

		return self.read(self.cluster_offset(cluster), self.geometry.bytes_per_cluster)

	def read_slot(self, cluster, index):
		"""Read and return a directory entry (32 bytes) by its index within a given data cluster."""

		if index < 0 or index >= self.geometry.entries_per_cluster:
			raise ValueError('Invalid directory entry index: {}'.format(index))

		return self.read(self.cluster_offset(cluster) + index * DIRECTORY_ENTRY_SIZE, DIRECTORY_ENTRY_SIZE)

	def info(self):
		"""Get and return volume metadata (as a VolumeInfo named tuple).
		Sizes are given in kilobytes, the free space is None if it is unknown.
		"""

		geometry = self.geometry

		volume_id = self.bsbpb.get_bs_extfields()[0]

		# Some formatters leave the label in place without setting the extended boot signature.
		drive_name = self.bsbpb.get_bs_vollab().rstrip(b' \x00').decode(self.encoding, errors = 'replace')

		oem_name = self.bsbpb.get_bs_oemname().rstrip(b' ').decode(self.encoding, errors = 'replace')

		free_count = self.fsinfo.get_fsi_free_count()
		if free_count is not None:
			free_space_kb = free_count * geometry.bytes_per_cluster // BYTES_PER_KB
		else:
			free_space_kb = None

		total_space_kb = geometry.total_sectors * geometry.bytes_per_sector // BYTES_PER_KB
		usable_space_kb = (geometry.total_sectors - geometry.data_region_sector) * geometry.bytes_per_sector // BYTES_PER_KB

		return VolumeInfo(drive_name, oem_name, volume_id, free_space_kb, total_space_kb, usable_space_kb, geometry.sectors_per_cluster, geometry.bytes_per_cluster)

	def __str__(self):
		return 'FileSystemParser (FAT32)'
