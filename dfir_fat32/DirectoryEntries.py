# dfir_fat32: a FAT32 parser for digital forensics & incident response
# (c) Maxim Suhanov
#
# This module implements an interface to decode directory entries (32-byte slots).

import struct
from datetime import date, time, datetime
from collections import namedtuple

DIRECTORY_ENTRY_SIZE = 32

# File attributes:
ATTR_READ_ONLY = 0x01
ATTR_HIDDEN = 0x02
ATTR_SYSTEM = 0x04
ATTR_VOLUME_ID = 0x08
ATTR_DIRECTORY = 0x10
ATTR_ARCHIVE = 0x20
ATTR_LONG_NAME = ATTR_READ_ONLY | ATTR_HIDDEN | ATTR_SYSTEM | ATTR_VOLUME_ID

# Entries with any of these attributes are not reported.
ATTR_INVISIBLE = ATTR_HIDDEN | ATTR_SYSTEM | ATTR_VOLUME_ID

# Markers in the first byte of a short name.
ENTRY_FREE_LAST = 0x00 # This entry and all following entries are free.
ENTRY_FREE = 0xE5 # This entry is free (deleted).
ENTRY_KANJI = 0x05 # The real first byte is 0xE5.

# Kinds of decoded entries.
ENTRY_END = 'END'
ENTRY_DELETED = 'DELETED'
ENTRY_LONG_NAME = 'LONG_NAME'
ENTRY_DIRECTORY = 'DIRECTORY'
ENTRY_FILE = 'FILE'
ENTRY_OTHER = 'OTHER'

# Flags for long name entries:
LAST_LONG_ENTRY = 0x40

DirectoryEntry = namedtuple('DirectoryEntry', [ 'kind', 'name_raw', 'base', 'extension', 'short_name', 'attributes', 'first_cluster', 'size', 'mtime' ])

# The 'name_raw' field holds 13 UTF-16LE code units (26 bytes) in their on-disk order.
LongNameFragment = namedtuple('LongNameFragment', [ 'order', 'name_raw', 'checksum', 'entry_type' ])

def ClassifyEntry(FirstByte, FileAttributes):
	"""Return the kind of a directory entry given its first byte and its attributes."""

	if FirstByte == ENTRY_FREE_LAST:
		return ENTRY_END

	if FirstByte == ENTRY_FREE:
		return ENTRY_DELETED

	if FileAttributes & 0x3F == ATTR_LONG_NAME: # The upper two bits are reserved.
		return ENTRY_LONG_NAME

	if FileAttributes & ATTR_INVISIBLE != 0:
		return ENTRY_OTHER

	if FileAttributes & ATTR_DIRECTORY > 0:
		return ENTRY_DIRECTORY

	return ENTRY_FILE

def ParseShortName(Name, Encoding = 'ascii'):
	"""Parse a given short (8.3) name, return a tuple: (base, extension, short_name).
	Trailing spaces are removed from the base name and the extension, decoding errors are not raised.
	"""

	if Name[0] == ENTRY_KANJI: # Handle a special case (KANJI).
		Name = b'\xE5' + Name[1 : ]

	base = Name[ : 8].rstrip(b' ').decode(Encoding, errors = 'replace')
	extension = Name[8 : 11].rstrip(b' ').decode(Encoding, errors = 'replace')

	if len(extension) > 0: # Merge the base name and the extension.
		return (base, extension, base + '.' + extension)

	return (base, extension, base)

def BuildChecksum(ShortNameRaw):
	"""Calculate and return the short name checksum (an unsigned byte rotate right sum over 11 bytes)."""

	checksum = 0
	for i in range(11):
		right_bit = checksum & 1
		if right_bit == 0:
			checksum = checksum >> 1
		else:
			checksum = (checksum >> 1) | 0x80

		checksum = (checksum + ShortNameRaw[i]) & 0xFF

	return checksum

def DecodeFATDate(Value):
	"""Decode and return the date object (or None, if the date is invalid)."""

	day = Value & 0x1F
	if day == 0:
		return

	month = (Value >> 5) & 0x0F
	if month == 0 or month > 12:
		return

	year = ((Value >> 9) & 0x7F) + 1980

	try:
		return date(year, month, day)
	except ValueError:
		return

def DecodeFATTime(Value):
	"""Decode and return the time object (or None, if the time is invalid)."""

	second = Value & 0x1F
	if second > 29:
		return

	second *= 2

	minute = (Value >> 5) & 0x3F
	if minute > 59:
		return

	hour = (Value >> 11) & 0x1F
	if hour > 23:
		return

	return time(hour, minute, second)

def DecodeLongNameFragment(Buf):
	"""Decode a long name entry, return a LongNameFragment named tuple."""

	long_order = Buf[0]
	entry_type = Buf[12]
	long_checksum = Buf[13]

	long_name_1 = Buf[1 : 11]
	long_name_2 = Buf[14 : 26]
	long_name_3 = Buf[28 : 32]

	return LongNameFragment(long_order, long_name_1 + long_name_2 + long_name_3, long_checksum, entry_type)

def DecodeSlot(Buf, Encoding = 'ascii'):
	"""Decode a 32-byte directory entry, return a LongNameFragment or a DirectoryEntry named tuple.
	The 'kind' field of a DirectoryEntry tells what kind of entry this is (ENTRY_END, ENTRY_DELETED, ENTRY_DIRECTORY, ENTRY_FILE or ENTRY_OTHER).
	"""

	if len(Buf) != DIRECTORY_ENTRY_SIZE:
		raise ValueError('Invalid directory entry size: {}'.format(len(Buf)))

	attributes = Buf[11]
	kind = ClassifyEntry(Buf[0], attributes)

	if kind == ENTRY_LONG_NAME:
		return DecodeLongNameFragment(Buf)

	name_raw = Buf[ : 11]
	base, extension, short_name = ParseShortName(name_raw, Encoding)

	first_cluster_hi, = struct.unpack('<H', Buf[20 : 22])
	first_cluster_lo, = struct.unpack('<H', Buf[26 : 28])
	first_cluster = ((first_cluster_hi << 16) | first_cluster_lo) & 0x0FFFFFFF

	size, = struct.unpack('<L', Buf[28 : 32])

	mtime_fat = DecodeFATTime(struct.unpack('<H', Buf[22 : 24])[0])
	mdate_fat = DecodeFATDate(struct.unpack('<H', Buf[24 : 26])[0])

	if mdate_fat is not None and mtime_fat is not None:
		mtime = datetime(mdate_fat.year, mdate_fat.month, mdate_fat.day, mtime_fat.hour, mtime_fat.minute, mtime_fat.second)
	else:
		mtime = None

	return DirectoryEntry(kind, name_raw, base, extension, short_name, attributes, first_cluster, size, mtime)
