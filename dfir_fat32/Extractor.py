# dfir_fat32: a FAT32 parser for digital forensics & incident response
# (c) Maxim Suhanov
#
# This module implements an interface to extract file data.

import io
import logging
from .FAT import IsEndOfChain
from .DirectoryTree import DirectoryWalker

logger = logging.getLogger(__name__)

class FileExtractor(object):
	"""This class is used to copy file data from a FAT32 volume."""

	parser = None
	"""A FileSystemParser object."""

	def __init__(self, parser):
		self.parser = parser

	def extract(self, first_cluster, file_size, sink):
		"""Copy 'file_size' bytes from the cluster chain starting at a given cluster to a sink (an object with the write() method).
		Return the number of bytes written. If the chain is too short, fewer bytes are written (a warning is logged).
		"""

		bytes_per_cluster = self.parser.geometry.bytes_per_cluster

		bytes_left = file_size
		bytes_written = 0
		seen = set()

		curr_cluster = first_cluster
		while bytes_left > 0 and curr_cluster != 0 and not IsEndOfChain(curr_cluster):
			if curr_cluster in seen: # This is a loop, stop.
				logger.warning('Cluster chain starting at {} loops back to cluster {}'.format(first_cluster, curr_cluster))
				break

			seen.add(curr_cluster)

			cluster_buf = self.parser.read_cluster(curr_cluster)

			# Copy the entire cluster or only a part of it (for the last one).
			count = min(bytes_left, bytes_per_cluster)
			sink.write(cluster_buf[ : count])

			bytes_left -= count
			bytes_written += count

			if bytes_left > 0:
				curr_cluster = self.parser.fat.get_element(curr_cluster)

		if bytes_left > 0:
			logger.warning('Truncated cluster chain starting at {}: {} of {} bytes copied'.format(first_cluster, bytes_written, file_size))

		return bytes_written

	def read(self, first_cluster, file_size):
		"""Read and return file data (as raw bytes)."""

		sink = io.BytesIO()
		self.extract(first_cluster, file_size, sink)

		return sink.getvalue()

	def get(self, path, sink):
		"""Resolve a slash-delimited path and copy the file data to a sink.
		Return a tuple: (DirectoryEntry, long_name, bytes_written).
		"""

		dir_entry, long_name = DirectoryWalker(self.parser).resolve_path(path)
		bytes_written = self.extract(dir_entry.first_cluster, dir_entry.size, sink)

		return (dir_entry, long_name, bytes_written)

	def __str__(self):
		return 'FileExtractor'
