# dfir_fat32: a FAT32 parser for digital forensics & incident response
# (c) Maxim Suhanov
#
# This module implements the reconstruction of long file names.
#
# Long name entries are stored in the reverse order immediately before their short (8.3) name entry:
#
#   [0x43 ...] [0x02 ...] [0x01 ...] [SHORT NAME]
#
# The first entry found has the LAST_LONG_ENTRY flag set, the order numbers go down to 1.
# Each long name entry holds a checksum of the short name it belongs to.

import logging
from .DirectoryEntries import LAST_LONG_ENTRY, BuildChecksum

logger = logging.getLogger(__name__)

# A maximum number of long name entries (for a single file).
MAX_LFN_ENTRIES = 20 # ROUNDUP(255/13)...

# These code units are padding, not characters.
PADDING_UNITS = [ b'\x00\x00', b'\xFF\xFF' ]

def BuildLongName(LongFragments):
	"""Build a long name from long name fragments (given in the on-disk order), return a string.
	Padding code units (0x0000 and 0xFFFF) are dropped, decoding errors are not raised.
	"""

	buf = b''.join(fragment.name_raw for fragment in reversed(LongFragments))

	units = []
	i = 0
	while i < len(buf):
		unit = buf[i : i + 2]
		if unit not in PADDING_UNITS:
			units.append(unit)

		i += 2

	# Surrogate pairs are decoded together, so join the units before decoding.
	return b''.join(units).decode('utf-16le', errors = 'replace')

class LongNameReconstructor(object):
	"""This class is used to accumulate long name fragments and to bind them to their short name entry.
	An instance is used for one directory (one cluster chain).
	"""

	checksum = None
	"""A checksum recorded from the first fragment."""

	expected_order = None
	"""An order number expected for the next fragment."""

	fragments = None
	"""Fragments collected so far (None if nothing is being accumulated)."""

	capacity = None
	"""A maximum number of fragments."""

	def __init__(self, capacity = MAX_LFN_ENTRIES):
		self.capacity = capacity
		self.reset()

	def reset(self):
		"""Drop the accumulated fragments (if any)."""

		self.checksum = None
		self.expected_order = None
		self.fragments = None

	def is_accumulating(self):
		"""Check if long name fragments are being accumulated."""

		return self.fragments is not None

	def discard(self, reason):
		"""Discard the accumulated fragments because of a given reason."""

		if self.is_accumulating():
			logger.debug('Long name discarded ({}), fragments: {}'.format(reason, len(self.fragments)))

		self.reset()

	def add_fragment(self, fragment):
		"""Process a given long name fragment (a LongNameFragment named tuple)."""

		if not self.is_accumulating():
			if fragment.entry_type != 0 or fragment.order & LAST_LONG_ENTRY == 0:
				# This is not a valid start of a long name, ignore it.
				return

			sequence = fragment.order & ~LAST_LONG_ENTRY
			if sequence == 0 or sequence > self.capacity:
				logger.debug('Invalid first long name fragment, order: {}'.format(hex(fragment.order)))
				return

			self.checksum = fragment.checksum
			self.expected_order = sequence - 1
			self.fragments = [ fragment ]
			return

		if fragment.checksum != self.checksum:
			self.discard('checksum mismatch')
			return

		if fragment.entry_type != 0:
			self.discard('invalid entry type')
			return

		if self.expected_order == 0 or fragment.order != self.expected_order:
			self.discard('order mismatch')
			return

		self.fragments.append(fragment)
		self.expected_order -= 1

	def bind(self, short_name_raw):
		"""Bind the accumulated long name to a short name entry (given as 11 raw bytes).
		Return the long name (or None, if there is no valid long name for this entry), then reset the state.
		"""

		if not self.is_accumulating():
			return

		if self.expected_order != 0:
			self.discard('incomplete chain')
			return

		if BuildChecksum(short_name_raw) != self.checksum:
			self.discard('short name checksum mismatch')
			return

		long_name = BuildLongName(self.fragments)
		self.reset()

		if len(long_name) == 0: # This is an invalid long name.
			return

		return long_name

	def __str__(self):
		return 'LongNameReconstructor'
