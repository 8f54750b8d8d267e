"""ttLib/sfnt.py -- the sfnt table directory, and raw table I/O.

An sfnt starts with a 12-byte offset table followed by one 16-byte
directory entry per table (tag, checksum, offset, length). SFNTReader
hands out the raw bytes of each table; SFNTWriter collects raw tables
and lays them out on close(), tag-sorted and 4-byte aligned, with the
checksums and head.checkSumAdjustment filled in.

SFNTReader(file) returns a TTCReader or a WOFF2Reader instead when the
file turns out to be a collection or a WOFF2 font.
"""

from fontTools.misc import sstruct
from fontTools.misc.textTools import Tag, bytesjoin
from sfntTools.ttLib import (TTLibError, InvalidFontError, TruncatedDataError,
	getSearchRange)
from sfntTools.misc.binaryTools import calcPaddingSize
import struct
from collections import OrderedDict
import logging


log = logging.getLogger(__name__)


sfntDirectoryFormat = """
		> # big endian
		sfntVersion:    4s
		numTables:      H    # number of tables
		searchRange:    H    # (max2 <= numTables)*16
		entrySelector:  H    # log2(max2 <= numTables)
		rangeShift:     H    # numTables*16-searchRange
"""

sfntDirectorySize = sstruct.calcsize(sfntDirectoryFormat)

sfntDirectoryEntryFormat = """
		> # big endian
		tag:            4s
		checkSum:       L
		offset:         L
		length:         L
"""

sfntDirectoryEntrySize = sstruct.calcsize(sfntDirectoryEntryFormat)

sfntVersionTrueType = "\x00\x01\x00\x00"
sfntVersionCFF = "OTTO"
sfntVersions = (sfntVersionTrueType, sfntVersionCFF, "true")

# head.checkSumAdjustment makes the whole font sum to this
checksumMagic = 0xB1B0AFBA


class DirectoryEntry(object):

	""" Where one table lives in a font file. Sub-classes set 'format'
	and 'formatSize' for their directory layout.
	"""

	def __init__(self):
		self.tag = None
		self.offset = 0
		self.length = 0

	def fromFile(self, file):
		data = file.read(self.formatSize)
		if len(data) != self.formatSize:
			raise TruncatedDataError("table directory too small (not enough data)")
		self.fromString(data)

	def fromString(self, data):
		sstruct.unpack(self.format, data, self)
		self.tag = Tag(self.tag)

	def toString(self):
		return sstruct.pack(self.format, self)

	def loadData(self, file):
		""" Return the 'length' bytes at 'offset' of 'file'. """
		file.seek(self.offset)
		data = file.read(self.length)
		if len(data) != self.length:
			raise TruncatedDataError(
				"'%s' table too small: expected %d bytes, found %d"
				% (self.tag, self.length, len(data)))
		return data

	def __repr__(self):
		return "<%s '%s' offset=%d length=%d>" % (
			self.__class__.__name__, self.tag, self.offset, self.length)


class SFNTDirectoryEntry(DirectoryEntry):

	format = sfntDirectoryEntryFormat
	formatSize = sfntDirectoryEntrySize

	def __init__(self):
		DirectoryEntry.__init__(self)
		self.checkSum = 0


class SFNTReader(object):

	""" Raw table access to a TrueType/OpenType font file.

	'checkChecksums' is 0 to ignore table checksums, 1 to log a warning
	for a mismatch and 2 (or more) to raise TTLibError.
	"""

	flavor = None
	flavorData = None

	def __new__(cls, *args, **kwargs):
		if args and cls is SFNTReader:
			infile = args[0]
			signature = Tag(infile.read(4))
			infile.seek(0)
			if signature == "ttcf":
				from sfntTools.ttLib.ttc import TTCReader
				return object.__new__(TTCReader)
			elif signature == "wOF2":
				from sfntTools.ttLib.woff2 import WOFF2Reader
				return object.__new__(WOFF2Reader)
		return object.__new__(cls)

	def __init__(self, file, checkChecksums=1, fontNumber=-1):
		self.file = file
		self.checkChecksums = checkChecksums
		self._readDirectory()

	def _readDirectory(self):
		data = self.file.read(sfntDirectorySize)
		if len(data) != sfntDirectorySize:
			raise InvalidFontError("Not a TrueType or OpenType font (not enough data)")
		sstruct.unpack(sfntDirectoryFormat, data, self)
		self.sfntVersion = Tag(self.sfntVersion)
		if self.sfntVersion not in sfntVersions:
			raise InvalidFontError("Not a TrueType or OpenType font (bad sfntVersion)")
		entries = []
		for i in range(self.numTables):
			entry = SFNTDirectoryEntry()
			entry.fromFile(self.file)
			entries.append(entry)
		self.tables = OrderedDict()
		# keep file order, so that reading all tables moves forward only
		for entry in sorted(entries, key=lambda e: e.offset):
			if entry.tag in self.tables:
				raise InvalidFontError("duplicate '%s' table in table directory" % entry.tag)
			self.tables[entry.tag] = entry

	def __contains__(self, tag):
		return Tag(tag) in self.tables

	def keys(self):
		return self.tables.keys()

	def __getitem__(self, tag):
		"""Fetch the raw table data."""
		entry = self.tables[Tag(tag)]
		data = entry.loadData(self.file)
		if self.checkChecksums:
			self._verifyChecksum(entry, data)
		return data

	def _verifyChecksum(self, entry, data):
		checksum = calcTableChecksum(entry.tag, data)
		if checksum == entry.checkSum:
			return
		if self.checkChecksums > 1:
			raise TTLibError("bad checksum for '%s' table" % entry.tag)
		log.warning("bad checksum for '%s' table", entry.tag)

	def __delitem__(self, tag):
		del self.tables[Tag(tag)]

	def close(self):
		self.file.close()


class SFNTWriter(object):

	""" Collects raw tables; close() writes the complete font to 'file'.
	Exactly 'numTables' tables must be added.
	"""

	flavor = None

	def __init__(self, file, numTables, sfntVersion=sfntVersionTrueType):
		self.file = file
		self.numTables = numTables
		self.sfntVersion = Tag(sfntVersion)
		self.tables = OrderedDict()

	def __setitem__(self, tag, data):
		tag = Tag(tag)
		if tag in self.tables:
			raise TTLibError("cannot rewrite '%s' table" % tag)
		self.tables[tag] = data

	def _assertNumTables(self):
		if len(self.tables) != self.numTables:
			raise TTLibError("wrong number of tables; expected %d, found %d" % (
				self.numTables, len(self.tables)))

	def close(self):
		self._assertNumTables()
		tags = sorted(self.tables.keys())
		self.searchRange, self.entrySelector, self.rangeShift = getSearchRange(len(tags), 16)
		offset = sfntDirectorySize + sfntDirectoryEntrySize * len(tags)
		entries = []
		for tag in tags:
			entry = SFNTDirectoryEntry()
			entry.tag = tag
			entry.checkSum = calcTableChecksum(tag, self.tables[tag])
			entry.offset = offset
			entry.length = len(self.tables[tag])
			entries.append(entry)
			offset += entry.length + calcPaddingSize(entry.length)

		directory = sstruct.pack(sfntDirectoryFormat, self)
		directory += bytesjoin(entry.toString() for entry in entries)
		tables = dict(self.tables)
		if "head" in tables:
			adjustment = calcChecksumAdjustment(directory,
				[entry.checkSum for entry in entries])
			head = tables["head"]
			tables["head"] = head[:8] + struct.pack(">L", adjustment) + head[12:]

		data = [directory]
		for entry in entries:
			data.append(tables[entry.tag])
			data.append(b"\0" * calcPaddingSize(entry.length))
		self.file.seek(0)
		self.file.write(bytesjoin(data))


def calcChecksum(data):
	"""Sum 'data' as big-endian uint32 values, modulo 2**32. A trailing
	partial value is padded with zero bytes.

		>>> calcChecksum(b"abcd")
		1633837924
		>>> calcChecksum(b"abcdxyz")
		3655064932
	"""
	data = bytes(data) + b"\0" * calcPaddingSize(len(data))
	value = 0
	# sum in blocks to keep the unpacked tuples small
	for start in range(0, len(data), 4096):
		block = data[start:start + 4096]
		value += sum(struct.unpack(">%dL" % (len(block) // 4), block))
	return value & 0xFFFFFFFF


def calcTableChecksum(tag, data):
	""" Checksum of a table as stored in the table directory. The 'head'
	table is summed with its checkSumAdjustment field zeroed.
	"""
	if tag == "head":
		return calcChecksum(data[:8] + b"\0\0\0\0" + data[12:])
	return calcChecksum(data)


def calcChecksumAdjustment(directory, tableChecksums):
	""" Return head.checkSumAdjustment for a font with the given packed
	table 'directory' and per-table checksums.
	"""
	checksum = (sum(tableChecksums) + calcChecksum(directory)) & 0xFFFFFFFF
	return (checksumMagic - checksum) & 0xFFFFFFFF


if __name__ == "__main__":
	import sys
	import doctest
	sys.exit(doctest.testmod().failed)
