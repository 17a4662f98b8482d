# dfir_fat32: a FAT32 parser for digital forensics & incident response
# (c) Maxim Suhanov
#
# This module implements an interface to walk over the directory tree and to resolve paths.

import logging
from collections import namedtuple
from .BootSector import FileSystemException
from .DirectoryEntries import DecodeSlot, LongNameFragment, ENTRY_END, ENTRY_DELETED, ENTRY_DIRECTORY, ENTRY_FILE
from .LongName import LongNameReconstructor

logger = logging.getLogger(__name__)

PATH_SEPARATOR = '/'

EVENT_DIRECTORY = 'Directory'
EVENT_FILE = 'File'

# The 'size' field is None for directories.
VisitEvent = namedtuple('VisitEvent', [ 'kind', 'depth', 'short_name', 'long_name', 'size', 'first_cluster', 'mtime' ])

class PathNotFoundException(FileSystemException):
	"""This exception is raised when a given path does not resolve to a file."""

	pass

def NameMatches(Name, DirectoryEntry, LongName):
	"""Check if a given path component refers to a directory entry (the comparison is case-insensitive)."""

	name = Name.lower()

	if LongName is not None and name == LongName.lower():
		return True

	# "FOO." is the same short name as "FOO".
	return name.rstrip('.') == DirectoryEntry.short_name.lower()

class DirectoryWalker(object):
	"""This class is used to walk over directories of a FAT32 volume."""

	parser = None
	"""A FileSystemParser object."""

	def __init__(self, parser):
		self.parser = parser

	def scan(self, first_cluster, skip_dots = False):
		"""Scan a directory described by its first cluster, yield tuples: (DirectoryEntry, long_name).
		Only allocated and visible files and directories are reported, the long name is None if it is absent or invalid.
		If the 'skip_dots' argument is True, skip the dot and dot-dot entries (the first two entries of a subdirectory).
		"""

		entries_per_cluster = self.parser.geometry.entries_per_cluster
		reconstructor = LongNameReconstructor()

		for cluster_number, cluster in enumerate(self.parser.fat.chain(first_cluster)):
			for i in range(entries_per_cluster):
				if skip_dots and cluster_number == 0 and i < 2:
					continue

				dir_entry = DecodeSlot(self.parser.read_slot(cluster, i), self.parser.encoding)

				if type(dir_entry) is LongNameFragment:
					reconstructor.add_fragment(dir_entry)
					continue

				if dir_entry.kind == ENTRY_END: # There is nothing else in this directory.
					reconstructor.discard('end of directory')
					return

				if dir_entry.kind == ENTRY_DELETED:
					reconstructor.discard('deleted entry')
					continue

				# Build a long name (if any), this also resets the reconstructor.
				long_name = reconstructor.bind(dir_entry.name_raw)

				if dir_entry.kind == ENTRY_DIRECTORY or dir_entry.kind == ENTRY_FILE:
					yield (dir_entry, long_name)

	def walk(self, first_cluster = None, depth = 0):
		"""Walk over the directory tree starting at a given cluster (the root directory by default), yield VisitEvent named tuples.
		Events are given in the on-disk order, a directory is reported before its contents.
		"""

		if first_cluster is None:
			first_cluster = self.parser.geometry.root_cluster

		# Each item is: (entries, depth, clusters of the directories on the current path).
		stack = [ (self.scan(first_cluster, depth > 0), depth, frozenset([ first_cluster ])) ]

		while len(stack) > 0:
			entries, curr_depth, path_clusters = stack[-1]

			try:
				dir_entry, long_name = next(entries)
			except StopIteration:
				stack.pop()
				continue

			if dir_entry.kind == ENTRY_FILE:
				yield VisitEvent(EVENT_FILE, curr_depth, dir_entry.short_name, long_name, dir_entry.size, dir_entry.first_cluster, dir_entry.mtime)
				continue

			yield VisitEvent(EVENT_DIRECTORY, curr_depth, dir_entry.short_name, long_name, None, dir_entry.first_cluster, dir_entry.mtime)

			if dir_entry.first_cluster < 2:
				logger.warning('Directory {} has no valid first cluster: {}'.format(dir_entry.short_name, dir_entry.first_cluster))
				continue

			if dir_entry.first_cluster in path_clusters:
				# This is a loop, skip this entry.
				logger.warning('Directory {} refers to cluster {} already seen on the current path, not descending'.format(dir_entry.short_name, dir_entry.first_cluster))
				continue

			stack.append((self.scan(dir_entry.first_cluster, True), curr_depth + 1, path_clusters | frozenset([ dir_entry.first_cluster ])))

	def find(self, first_cluster, name, want_directory, skip_dots = False):
		"""Find an entry by its name in a directory, return a tuple: (DirectoryEntry, long_name), or None if there is no such entry."""

		for dir_entry, long_name in self.scan(first_cluster, skip_dots):
			if (dir_entry.kind == ENTRY_DIRECTORY) != want_directory:
				continue

			if NameMatches(name, dir_entry, long_name):
				return (dir_entry, long_name)

	def resolve_path(self, path):
		"""Resolve a slash-delimited path to a file, return a tuple: (DirectoryEntry, long_name).
		Raise PathNotFoundException if there is no such file.
		"""

		components = [ component for component in path.split(PATH_SEPARATOR) if len(component) > 0 ]
		if len(components) == 0:
			raise PathNotFoundException('Empty path: {}'.format(path))

		root_cluster = self.parser.geometry.root_cluster

		curr_cluster = root_cluster
		for component in components[ : -1]:
			found = self.find(curr_cluster, component, True, curr_cluster != root_cluster)
			if found is None or found[0].first_cluster < 2:
				raise PathNotFoundException('Directory not found: {} (in {})'.format(component, path))

			curr_cluster = found[0].first_cluster

		found = self.find(curr_cluster, components[-1], False, curr_cluster != root_cluster)
		if found is None:
			raise PathNotFoundException('File not found: {}'.format(path))

		logger.debug('Path {} resolved to {} (first cluster: {}, size: {})'.format(path, found[0].short_name, found[0].first_cluster, found[0].size))
		return found

	def __str__(self):
		return 'DirectoryWalker'
