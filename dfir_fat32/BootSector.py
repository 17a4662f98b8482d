# dfir_fat32: a FAT32 parser for digital forensics & incident response
# (c) Maxim Suhanov
#
# This module implements an interface to work with the boot sector (BS/BPB) and the file system information (FSINFO) sector.

# [FATGEN 1.03] is:
# Microsoft Extensible Firmware Initiative FAT32 File System Specification
# FAT: General Overview of On-Disk Format
#
# Version 1.03, December 6, 2000
# Microsoft Corporation

import struct
import logging
from collections import namedtuple

logger = logging.getLogger(__name__)

BOOT_SECTOR_SIZE = 512
FSINFO_SIZE = 512

FSI_LEAD_SIG = 0x41615252
FSI_STRUC_SIG = 0x61417272
FSI_TRAIL_SIG = 0xAA550000

# According to [FATGEN 1.03], a volume with less than 65525 clusters cannot be FAT32.
# Here, the total number of sectors (not the count of clusters) is checked against this value.
MIN_FAT32_SECTORS = 65525

# The free cluster count is unknown when set to this value.
FSI_UNKNOWN = 0xFFFFFFFF

class FileSystemException(Exception):
	"""This is a top-level exception for this package."""

	def __init__(self, value):
		self._value = value

	def __str__(self):
		return repr(self._value)

class VolumeInvalidException(FileSystemException):
	"""This exception is raised when a volume fails one of the sanity checks (the volume must not be traversed)."""

	pass

class BootSectorException(VolumeInvalidException):
	"""This exception is raised when something is wrong with the boot sector or the BIOS parameter block."""

	pass

class FileSystemInfoException(VolumeInvalidException):
	"""This exception is raised when something is wrong with the file system information (FSI) sector."""

	pass

class VolumeIOException(FileSystemException):
	"""This exception is raised when the volume cannot be read (for example, it is truncated)."""

	pass

def ReadBuffer(FileObject, Offset, Size):
	"""Seek to a given offset, read and return exactly 'Size' bytes (or raise VolumeIOException)."""

	try:
		FileObject.seek(Offset)
		buf = FileObject.read(Size)
	except (OSError, ValueError) as e:
		raise VolumeIOException('Cannot read {} bytes at offset {}: {}'.format(Size, Offset, e))

	if len(buf) != Size:
		raise VolumeIOException('Truncated read at offset {}: {} of {} bytes'.format(Offset, len(buf), Size))

	return buf

# Immutable geometry of a FAT32 volume. Offsets are relative to the first byte of the volume.
VolumeGeometry = namedtuple('VolumeGeometry', [ 'bytes_per_sector', 'sectors_per_cluster', 'reserved_sector_count', 'number_of_fats', 'fat_size_sectors', 'root_cluster', 'total_sectors', 'media', 'fat_offset', 'data_region_sector', 'bytes_per_cluster', 'entries_per_cluster' ])

class BSBPB(object):
	"""This class is used to work with a FAT32 boot sector (BS) containing a BIOS parameter block (BPB)."""

	bs_buf = None

	def __init__(self, bs_buf):
		self.bs_buf = bs_buf

		if len(self.bs_buf) != BOOT_SECTOR_SIZE:
			raise BootSectorException('Invalid boot sector size')

	def validate(self):
		"""Run the sanity checks against the boot sector, raise BootSectorException if one of them fails."""

		jmp_code = self.get_bs_jmpboot()
		if jmp_code[0] != 0xEB and jmp_code[0] != 0xE9:
			raise BootSectorException('Invalid jump code: {}'.format(hex(jmp_code[0])))

		rootclus = self.get_bpb_rootclus()
		if rootclus < 2:
			raise BootSectorException('Invalid root cluster: {}'.format(rootclus))

		if self.get_bpb_fatsz32() == 0:
			raise BootSectorException('Invalid number of FAT sectors')

		totsec = self.get_bpb_totsec32()
		if totsec < MIN_FAT32_SECTORS:
			raise BootSectorException('Invalid number of total sectors: {}'.format(totsec))

		if self.get_bpb_reserved() != b'\x00' * 12:
			raise BootSectorException('Reserved area is not empty')

		# These will raise an exception for invalid values.
		self.get_bpb_secperclus()
		self.get_bpb_rsvdseccnt()
		self.get_bpb_numfats()

	def get_bs_jmpboot(self):
		"""Get and return the first 3 bytes."""

		return self.bs_buf[ : 3]

	def get_bs_oemname(self):
		"""Get and return the OEM name (as raw bytes)."""

		return self.bs_buf[3 : 11]

	def get_bpb_bytspersec(self):
		"""Get and return the bytes per sector value."""

		bps = struct.unpack('<H', self.bs_buf[11 : 13])[0]
		if bps not in [512, 1024, 2048, 4096]:
			raise BootSectorException('Invalid number of bytes per sector: {}'.format(bps))

		return bps

	def get_bpb_secperclus(self):
		"""Get and return the sectors per cluster value."""

		spc = struct.unpack('<B', self.bs_buf[13 : 14])[0]
		if spc not in [1, 2, 4, 8, 16, 32, 64, 128]:
			raise BootSectorException('Invalid number of sectors per cluster: {}'.format(spc))

		return spc

	def get_bpb_rsvdseccnt(self):
		"""Get and return the reserved sectors count."""

		rsvd = struct.unpack('<H', self.bs_buf[14 : 16])[0]
		if rsvd == 0:
			raise BootSectorException('Invalid number of reserved sectors')

		return rsvd

	def get_bpb_numfats(self):
		"""Get and return the number of FATs."""

		fats = struct.unpack('<B', self.bs_buf[16 : 17])[0]
		if fats == 0:
			raise BootSectorException('Invalid number of FATs')

		return fats

	def get_bpb_media(self):
		"""Get and return the media type (as an integer)."""

		return struct.unpack('<B', self.bs_buf[21 : 22])[0]

	def get_bpb_totsec32(self):
		"""Get and return the 32-bit number of sectors on the volume."""

		return struct.unpack('<L', self.bs_buf[32 : 36])[0]

	def get_bpb_fatsz32(self):
		"""Get and return the 32-bit number of sectors in one FAT."""

		return struct.unpack('<L', self.bs_buf[36 : 40])[0]

	def get_bpb_rootclus(self):
		"""Get and return the root cluster."""

		return struct.unpack('<L', self.bs_buf[44 : 48])[0] & 0x0FFFFFFF

	def get_bpb_fsinfo(self):
		"""Get and return the file system information sector number."""

		return struct.unpack('<H', self.bs_buf[48 : 50])[0]

	def get_bpb_reserved(self):
		"""Get and return the reserved area (as raw bytes)."""

		return self.bs_buf[52 : 64]

	def get_bs_bootsig(self):
		"""Get and return the extended boot signature."""

		return struct.unpack('<B', self.bs_buf[66 : 67])[0]

	def get_bs_vollab(self):
		"""Get and return the volume label (as raw bytes), regardless of the extended boot signature."""

		return self.bs_buf[71 : 82]

	def get_bs_extfields(self):
		"""Get and return the extended fields (if set).
		A tuple is returned: (volume_id, volume_label, fs_type).
		If the extended fields are not present, return (None, None, None).
		"""

		if self.get_bs_bootsig() != 0x29:
			return (None, None, None)

		volume_id = struct.unpack('<L', self.bs_buf[67 : 71])[0]
		volume_label = self.bs_buf[71 : 82]
		fs_type = self.bs_buf[82 : 90]

		return (volume_id, volume_label, fs_type)

	def geometry(self):
		"""Calculate and return the volume geometry (as a VolumeGeometry named tuple)."""

		bps = self.get_bpb_bytspersec()
		spc = self.get_bpb_secperclus()
		rsvd = self.get_bpb_rsvdseccnt()
		fats = self.get_bpb_numfats()
		fatsz = self.get_bpb_fatsz32()

		bytes_per_cluster = bps * spc

		return VolumeGeometry(bps, spc, rsvd, fats, fatsz, self.get_bpb_rootclus(), self.get_bpb_totsec32(), self.get_bpb_media(), rsvd * bps, rsvd + fatsz * fats, bytes_per_cluster, bytes_per_cluster // 32)

	def __str__(self):
		return 'BSBPB'

class FSINFO(object):
	"""This class is used to work with file system information (FSINFO)."""

	fsinfo_buf = None

	def __init__(self, fsinfo_buf):
		self.fsinfo_buf = fsinfo_buf

		if len(self.fsinfo_buf) != FSINFO_SIZE:
			raise FileSystemInfoException('Invalid FSI sector size')

		lead, struc, trail = self.get_fsi_signatures()
		if lead != FSI_LEAD_SIG:
			raise FileSystemInfoException('Invalid FSI lead signature: {}'.format(hex(lead)))

		# Only the lead signature is mandatory here.
		if struc != FSI_STRUC_SIG or trail != FSI_TRAIL_SIG:
			logger.debug('Unexpected FSI signatures: {}, {}'.format(hex(struc), hex(trail)))

	def get_fsi_signatures(self):
		"""Get and return three FSINFO signatures, as a tuple: (lead, struc, trail)."""

		lead = struct.unpack('<L', self.fsinfo_buf[ : 4])[0]
		struc = struct.unpack('<L', self.fsinfo_buf[484 : 488])[0]
		trail = struct.unpack('<L', self.fsinfo_buf[508 : 512])[0]

		return (lead, struc, trail)

	def get_fsi_free_count(self):
		"""Get and return the last known free cluster count (or None, if it is unknown)."""

		free_count = struct.unpack('<L', self.fsinfo_buf[488 : 492])[0]
		if free_count == FSI_UNKNOWN:
			return

		return free_count

	def get_fsi_nxt_free(self):
		"""Get and return the free cluster hint (or None, if it is unknown)."""

		nxt_free = struct.unpack('<L', self.fsinfo_buf[492 : 496])[0]
		if nxt_free == FSI_UNKNOWN:
			return

		return nxt_free

	def __str__(self):
		return 'FSINFO'
