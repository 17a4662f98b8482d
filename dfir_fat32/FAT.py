# dfir_fat32: a FAT32 parser for digital forensics & incident response
# (c) Maxim Suhanov
#
# This module implements an interface to work with a file allocation table (FAT).

import struct
import logging
from .BootSector import FileSystemException, VolumeInvalidException, ReadBuffer

logger = logging.getLogger(__name__)

FAT32_MASK = 0x0FFFFFFF # The high 4 bits are reserved.
FAT32_EOC = 0x0FFFFFF8 # End of chain.
FAT32_MEDIA_PATTERN = 0x0FFFFF00 # FAT[0] is this value plus the media type.

FAT_ENTRY_SIZE = 4

class FileAllocationTableException(VolumeInvalidException):
	"""This exception is raised when something is wrong with the file allocation table (FAT)."""

	pass

class ClusterChainException(FileSystemException):
	"""This exception is raised when a cluster chain refers to a cluster that does not exist (found during the traversal, not when the volume is opened)."""

	pass

def IsEndOfChain(Value):
	"""Check if a given (masked) FAT entry marks the end of a cluster chain."""

	return Value >= FAT32_EOC

class FAT(object):
	"""This class is used to work with a 32-bit file allocation table."""

	fat_object = None
	fat_offset = None
	fat_size = None

	def __init__(self, fat_object, fat_offset, fat_size):
		self.fat_object = fat_object
		self.fat_offset = fat_offset
		self.fat_size = fat_size

		if self.fat_size < FAT_ENTRY_SIZE * 2:
			raise FileAllocationTableException('Invalid FAT size: {}'.format(self.fat_size))

	def get_element_raw(self, number):
		"""Get and return the FAT entry by its number, the high 4 bits are not masked."""

		fat_item_offset = number * FAT_ENTRY_SIZE
		if number < 0 or fat_item_offset + FAT_ENTRY_SIZE > self.fat_size:
			raise ClusterChainException('Out of bounds, FAT element: {}'.format(number))

		next_element_raw = ReadBuffer(self.fat_object, self.fat_offset + fat_item_offset, FAT_ENTRY_SIZE)
		return struct.unpack('<L', next_element_raw)[0]

	def get_element(self, number):
		"""Get and return the FAT entry by its number (masked to 28 bits)."""

		return self.get_element_raw(number) & FAT32_MASK

	def validate(self, media):
		"""Check the two reserved FAT entries against a given media type, raise FileAllocationTableException if they do not match."""

		fat_0 = self.get_element(0)
		if fat_0 != FAT32_MEDIA_PATTERN + media:
			raise FileAllocationTableException('Invalid FAT[0] value: {} (media: {})'.format(hex(fat_0), hex(media)))

		# Unlike some drivers, we do not accept the "dirty" and "hard error" bits cleared here.
		fat_1 = self.get_element(1)
		if fat_1 != FAT32_MASK:
			raise FileAllocationTableException('Invalid FAT[1] value: {}'.format(hex(fat_1)))

	def chain(self, first_cluster):
		"""Get and yield cluster numbers in the chain for the given first cluster.
		The chain stops at the end-of-chain mark, at an unallocated (zero) entry or when a cluster is seen twice.
		"""

		if first_cluster == 0:
			# This file is empty, no chain.
			return

		seen = set()

		curr_cluster = first_cluster
		while True:
			if curr_cluster in seen: # This is a loop, the FAT is corrupted, stop (but do not raise an exception).
				logger.warning('Cluster chain starting at {} loops back to cluster {}'.format(first_cluster, curr_cluster))
				return

			seen.add(curr_cluster)
			yield curr_cluster

			next_cluster = self.get_element(curr_cluster)
			if IsEndOfChain(next_cluster) or next_cluster == 0:
				return

			curr_cluster = next_cluster

	def __str__(self):
		return 'FAT'
