"""ttLib/woff2.py -- reading and writing WOFF2 fonts.

A WOFF2 file holds a 48-byte header, a variable-length table directory
and one Brotli stream with the data of every table, followed by optional
metadata (Brotli compressed XML) and private data blocks.

The glyf and loca tables are normally stored 'transformed': the glyph
records are split into seven streams that compress better, and loca is
left out entirely since it can be rebuilt from the reconstructed glyf.
The hmtx table may be transformed as well: advance widths become
255UInt16 values (or a base width plus int16 deltas), and the left side
bearings are dropped when they equal the glyph xMin.

Glyphs are decoded into, and compiled from, fontTools' glyf table
objects held by a temporary TTFont.
"""

from io import BytesIO
from collections import OrderedDict
from fontTools.misc import sstruct
from fontTools.misc.textTools import Tag, bytesjoin
from fontTools.ttLib import TTFont, getTableClass, getTableModule
from fontTools.ttLib import TTLibError as FontToolsError
from fontTools.ttLib.tables import ttProgram
from fontTools.ttLib.tables._g_l_y_f import flagOnCurve, flagOverlapSimple
from sfntTools.ttLib import (TTLibError, InvalidFontError, TruncatedDataError,
	getSearchRange)
from sfntTools.ttLib.sfnt import (SFNTReader, SFNTWriter, DirectoryEntry,
	sfntDirectoryFormat, sfntDirectorySize, sfntDirectoryEntrySize,
	SFNTDirectoryEntry, sfntVersionTrueType, calcTableChecksum, calcChecksumAdjustment)
from sfntTools.ttLib.sfntFont import SFNTFont
from sfntTools.misc.binaryTools import (ByteReader, packBase128, pack255UInt16,
	packArray, base128MaxSize, calcPaddingSize)
import array
import struct
import brotli
import logging


log = logging.getLogger(__name__)


def dummyGlyphOrder(numGlyphs):
	return ["glyph%d" % glyphID for glyphID in range(numGlyphs)]


class WOFF2Reader(SFNTReader):

	""" Reads the tables of a WOFF2 font; transformed tables are returned
	reconstructed, as they'd appear in the equivalent sfnt.

	'logger' receives the warnings about unreadable metadata; it
	defaults to this module's logger.
	"""

	flavor = "woff2"

	def __init__(self, file, checkChecksums=0, fontNumber=-1, logger=None):
		self.file = file
		self.checkChecksums = checkChecksums
		self.log = logger if logger is not None else log

		signature = self.file.read(4)
		if signature != b"wOF2":
			raise InvalidFontError("Not a WOFF2 font (bad signature)")

		self.file.seek(0)
		data = self.file.read(woff2DirectorySize)
		if len(data) != woff2DirectorySize:
			raise InvalidFontError("Not a WOFF2 font (not enough data)")
		sstruct.unpack(woff2DirectoryFormat, data, self)
		self.sfntVersion = Tag(self.sfntVersion)
		if self.sfntVersion == "ttcf":
			raise InvalidFontError("WOFF2 font collections are not supported")
		if self.reserved != 0:
			raise InvalidFontError("WOFF2 header reserved field must be 0, found %d" % self.reserved)

		self.file.seek(0, 2)
		fileSize = self.file.tell()
		if self.length != fileSize:
			raise InvalidFontError(
				"WOFF2 length field doesn't match the file size: expected %d, found %d"
				% (self.length, fileSize))

		self.file.seek(woff2DirectorySize)
		self.tables = OrderedDict()
		# WOFF2 doesn't store offsets to individual tables. These can be calculated
		# by summing up the tables' lengths in the order in which the tables have
		# been encoded, and without further padding between tables.
		offset = 0
		for i in range(self.numTables):
			entry = WOFF2DirectoryEntry()
			entry.fromFile(self.file)
			if entry.tag in self.tables:
				raise InvalidFontError("duplicate '%s' table in WOFF2 directory" % entry.tag)
			entry.offset = offset
			offset += entry.length
			self.tables[entry.tag] = entry
		self._checkGlyfLocaTransform()

		# WOFF2 font data is compressed in a single stream comprising all tables
		# so it must be decompressed once as a whole
		compressedData = self.file.read(self.totalCompressedSize)
		if len(compressedData) != self.totalCompressedSize:
			raise InvalidFontError(
				"compressed font data too small: expected %d bytes, found %d"
				% (self.totalCompressedSize, len(compressedData)))
		try:
			decompressedData = brotli.decompress(compressedData)
		except brotli.error as e:
			raise InvalidFontError("could not decompress WOFF2 font data: %s" % e)
		if len(decompressedData) != offset:
			raise InvalidFontError(
				'unexpected size for decompressed font data: expected %d, found %d'
				% (offset, len(decompressedData)))
		self.transformBuffer = BytesIO(decompressedData)
		self.glyfTransform = WOFF2GlyfTransform()
		self.reconstructed = {}
		self.ttFont = None

		self.flavorData = WOFF2FlavorData(self, logger=self.log)

	def _checkGlyfLocaTransform(self):
		glyf = self.tables.get("glyf")
		loca = self.tables.get("loca")
		if glyf is None or loca is None:
			for entry in (glyf, loca):
				if entry is not None and entry.transformed:
					raise InvalidFontError("transformed 'glyf' and 'loca' tables must come together")
		elif glyf.transformed != loca.transformed:
			raise InvalidFontError("'glyf' and 'loca' must both be transformed or both not")

	def __getitem__(self, tag):
		"""Fetch the raw table data, reconstructed if it was transformed."""
		tag = Tag(tag)
		entry = self.tables[tag]
		if tag in self.reconstructed:
			return self.reconstructed[tag]
		rawData = entry.loadData(self.transformBuffer)
		if not entry.transformed:
			return rawData

		if tag == "glyf":
			# reconstruct both glyf and loca tables
			data, locaData = self.glyfTransform.reconstruct(rawData, self._numGlyphs())
			self.reconstructed["loca"] = locaData
			if len(data) != entry.origLength:
				log.debug("reconstructed 'glyf' is %d bytes; directory says %d",
					len(data), entry.origLength)
		elif tag == "loca":
			if "glyf" not in self.reconstructed:
				self["glyf"]
			data = self.reconstructed["loca"]
			if len(data) != entry.origLength:
				raise InvalidFontError(
					"reconstructed 'loca' table doesn't match original size: expected %d, found %d"
					% (entry.origLength, len(data)))
		elif tag == "hmtx":
			data = self._reconstructHmtx(rawData)
			if len(data) != entry.origLength:
				raise InvalidFontError(
					"reconstructed 'hmtx' table doesn't match original size: expected %d, found %d"
					% (entry.origLength, len(data)))
		else:
			raise TTLibError("unexpected transformed '%s' table" % tag)
		self.reconstructed[tag] = data
		return data

	def getTTFont(self):
		""" A fontTools TTFont reading its tables from this reader, with a
		dummy glyph order.
		"""
		if self.ttFont is None:
			ttFont = TTFont(recalcBBoxes=False)
			ttFont.reader = self
			if "maxp" in self.tables:
				ttFont.setGlyphOrder(dummyGlyphOrder(ttFont["maxp"].numGlyphs))
			self.ttFont = ttFont
		return self.ttFont

	def _numGlyphs(self):
		if "maxp" not in self.tables:
			return None
		return self.getTTFont()["maxp"].numGlyphs

	def _glyphXMins(self):
		ttFont = self.getTTFont()
		glyfTable = ttFont["glyf"]
		return [getattr(glyfTable[glyphName], "xMin", 0)
			for glyphName in ttFont.getGlyphOrder()]

	def _reconstructHmtx(self, rawData):
		for tag in ("maxp", "hhea"):
			if tag not in self.tables:
				raise InvalidFontError("transformed 'hmtx' table requires '%s'" % tag)
		ttFont = self.getTTFont()
		xMins = None
		if (WOFF2HmtxTransform.needsGlyfLsbs(rawData)
				and "glyf" in self.tables and "loca" in self.tables):
			xMins = self._glyphXMins()
		return WOFF2HmtxTransform().reconstruct(rawData, ttFont["maxp"].numGlyphs,
			ttFont["hhea"].numberOfHMetrics, xMins)


class WOFF2FlavorData(object):

	""" The WOFF2 version, metadata and private data of a font. """

	flavor = "woff2"

	def __init__(self, reader=None, logger=None):
		self.majorVersion = None
		self.minorVersion = None
		self.metaData = b""
		self.privData = b""
		if reader:
			logger = logger if logger is not None else log
			self.majorVersion = reader.majorVersion
			self.minorVersion = reader.minorVersion
			if reader.metaLength:
				reader.file.seek(reader.metaOffset)
				rawData = reader.file.read(reader.metaLength)
				try:
					data = self.decodeData(rawData)
				except brotli.error as e:
					logger.warning("WOFF2 metadata block could not be decompressed: %s", e)
					data = b""
				if data and len(data) != reader.metaOrigLength:
					logger.warning("WOFF2 metadata is %d bytes; header says %d",
						len(data), reader.metaOrigLength)
				self.metaData = data
			if reader.privLength:
				reader.file.seek(reader.privOffset)
				data = reader.file.read(reader.privLength)
				if len(data) != reader.privLength:
					raise TruncatedDataError(
						"WOFF2 private data too small: expected %d bytes, found %d"
						% (reader.privLength, len(data)))
				self.privData = data

	def decodeData(self, rawData):
		return brotli.decompress(rawData)

	def encodeData(self, data):
		return brotli.compress(data, mode=brotli.MODE_TEXT)


class WOFF2Writer(SFNTWriter):

	""" Collects raw sfnt tables and writes them out as WOFF2 on close().

	'transformTables' names the tables to transform: glyf and loca by
	default; add hmtx to drop the side bearings that match the glyph
	xMin. hmtx is only stored transformed when that saves space.
	"""

	flavor = "woff2"

	def __init__(self, file, numTables, sfntVersion=sfntVersionTrueType,
			flavorData=None, transformTables=("glyf", "loca")):
		self.file = file
		self.numTables = numTables
		self.sfntVersion = Tag(sfntVersion)
		self.flavorData = flavorData
		self.transformTables = set(Tag(tag) for tag in transformTables)
		if ("glyf" in self.transformTables) != ("loca" in self.transformTables):
			raise TTLibError("'glyf' and 'loca' must be transformed together")
		self.tables = OrderedDict()

	def __setitem__(self, tag, data):
		""" WOFF2 raw table data are written to disk only at the end, after all tags
		have been defined.
		"""
		tag = Tag(tag)
		if tag in self.tables:
			raise TTLibError("cannot rewrite '%s' table" % tag)
		entry = WOFF2DirectoryEntry()
		entry.tag = tag
		entry.data = data
		entry.origLength = len(data)
		self.tables[tag] = entry

	def close(self):
		""" All tags must have been defined. Now transform, compress and write
		the whole font.
		"""
		self._assertNumTables()
		# directory and table data are sorted in ascending order by tag, for
		# compatibility with current woff2 implementations
		tables = OrderedDict(sorted(self.tables.items()))
		self._transformTables(tables)

		# sfnt image the decoder will rebuild, for checksums and sizes
		self.totalSfntSize = sfntDirectorySize + sfntDirectoryEntrySize * len(tables)
		for entry in tables.values():
			self.totalSfntSize += entry.origLength + calcPaddingSize(entry.origLength)
		if "head" in tables:
			self._writeMasterChecksum(tables)

		tableData = []
		for tag, entry in tables.items():
			data = entry.transformedData if entry.transformed else entry.data
			entry.length = len(data)
			tableData.append(data)
		compressedData = brotli.compress(bytesjoin(tableData), mode=brotli.MODE_FONT)

		self.signature = b"wOF2"
		self.reserved = 0
		self.totalCompressedSize = len(compressedData)
		directoryData = bytesjoin(entry.toString() for entry in tables.values())
		offset = woff2DirectorySize + len(directoryData) + self.totalCompressedSize
		offset += calcPaddingSize(offset)

		flavorData = self.flavorData if self.flavorData is not None else WOFF2FlavorData()
		if flavorData.majorVersion is not None and flavorData.minorVersion is not None:
			self.majorVersion = flavorData.majorVersion
			self.minorVersion = flavorData.minorVersion
		elif "head" in tables:
			self.majorVersion, self.minorVersion = struct.unpack(">HH", tables["head"].data[4:8])
		else:
			self.majorVersion = self.minorVersion = 0

		compressedMetaData = b""
		if flavorData.metaData:
			compressedMetaData = flavorData.encodeData(flavorData.metaData)
			self.metaOffset = offset
			self.metaLength = len(compressedMetaData)
			self.metaOrigLength = len(flavorData.metaData)
			offset += self.metaLength
		else:
			self.metaOffset = self.metaLength = self.metaOrigLength = 0
		privData = flavorData.privData or b""
		metaPadding = b""
		if privData:
			metaPadding = b"\0" * calcPaddingSize(offset)
			offset += len(metaPadding)
			self.privOffset = offset
			self.privLength = len(privData)
			offset += self.privLength
		else:
			self.privOffset = self.privLength = 0
		# total size of the WOFF2 font, including any metadata or private data
		self.length = offset

		fontData = bytesjoin([
			sstruct.pack(woff2DirectoryFormat, self),
			directoryData,
			compressedData,
		])
		fontData += b"\0" * calcPaddingSize(len(fontData))
		self.file.seek(0)
		self.file.write(fontData + compressedMetaData + metaPadding + privData)
		if self.file.tell() != self.length:
			raise TTLibError("WOFF2 size mismatch: wrote %d bytes, expected %d"
				% (self.file.tell(), self.length))

	def _transformTables(self, tables):
		for entry in tables.values():
			entry.transformed = False
			entry.transformedData = None
		if "glyf" in self.transformTables and "glyf" in tables and "loca" in tables:
			for tag in ("head", "maxp"):
				if tag not in tables:
					raise TTLibError("transforming 'glyf' requires a '%s' table" % tag)
			ttFont = SFNTFont(OrderedDict(
				(tag, entry.data) for tag, entry in tables.items())).toTTFont(recalcBBoxes=False)
			numGlyphs = ttFont["maxp"].numGlyphs
			ttFont.setGlyphOrder(dummyGlyphOrder(numGlyphs))
			glyfTransform = WOFF2GlyfTransform()
			transformed = glyfTransform.transform(tables["glyf"].data, tables["loca"].data,
				ttFont["head"].indexToLocFormat, numGlyphs)
			# the decoder's output, not our input, is what the directory describes
			glyfData, locaData = glyfTransform.reconstruct(transformed, numGlyphs)
			for tag, data, transformedData in (("glyf", glyfData, transformed), ("loca", locaData, b"")):
				entry = tables[tag]
				entry.data = data
				entry.origLength = len(data)
				entry.transformed = True
				entry.transformedData = transformedData

			if "hmtx" in self.transformTables and "hmtx" in tables and "hhea" in tables:
				numberOfHMetrics = ttFont["hhea"].numberOfHMetrics
				if 1 <= numberOfHMetrics <= numGlyphs:
					hmtx = ttFont["hmtx"]
					metrics = [hmtx[glyphName] for glyphName in ttFont.getGlyphOrder()]
					transformed = WOFF2HmtxTransform().transform(metrics, numberOfHMetrics,
						glyfTransform.xMins())
					if len(transformed) < tables["hmtx"].origLength:
						tables["hmtx"].transformed = True
						tables["hmtx"].transformedData = transformed
		for entry in tables.values():
			entry.transformVersion = entry.getTransformVersion(entry.transformed)

	def _writeMasterChecksum(self, tables):
		""" Set head.checkSumAdjustment as computed over the sfnt the
		decoder will produce.
		"""
		self.searchRange, self.entrySelector, self.rangeShift = getSearchRange(len(tables), 16)
		self.numTables = len(tables)
		directory = [sstruct.pack(sfntDirectoryFormat, self)]
		checksums = []
		offset = sfntDirectorySize + sfntDirectoryEntrySize * len(tables)
		for tag, entry in tables.items():
			sfntEntry = SFNTDirectoryEntry()
			sfntEntry.tag = tag
			sfntEntry.checkSum = calcTableChecksum(tag, entry.data)
			sfntEntry.offset = offset
			sfntEntry.length = entry.origLength
			directory.append(sfntEntry.toString())
			checksums.append(sfntEntry.checkSum)
			offset += entry.origLength + calcPaddingSize(entry.origLength)
		adjustment = calcChecksumAdjustment(bytesjoin(directory), checksums)
		head = tables["head"]
		head.data = head.data[:8] + struct.pack(">L", adjustment) + head.data[12:]


# -- woff2 directory helpers and cruft

woff2DirectoryFormat = """
		> # big endian
		signature:           4s   # "wOF2"
		sfntVersion:         4s
		length:              L    # total woff2 file size
		numTables:           H    # number of tables
		reserved:            H    # set to 0
		totalSfntSize:       L    # uncompressed size
		totalCompressedSize: L    # compressed size
		majorVersion:        H    # major version of WOFF file
		minorVersion:        H    # minor version of WOFF file
		metaOffset:          L    # offset to metadata block
		metaLength:          L    # length of compressed metadata
		metaOrigLength:      L    # length of uncompressed metadata
		privOffset:          L    # offset to private data block
		privLength:          L    # length of private data block
"""

woff2DirectorySize = sstruct.calcsize(woff2DirectoryFormat)

woff2KnownTags = (
	"cmap", "head", "hhea", "hmtx", "maxp", "name", "OS/2", "post", "cvt ",
	"fpgm", "glyf", "loca", "prep", "CFF ", "VORG", "EBDT", "EBLC", "gasp",
	"hdmx", "kern", "LTSH", "PCLT", "VDMX", "vhea", "vmtx", "BASE", "GDEF",
	"GPOS", "GSUB", "EBSC", "JSTF", "MATH", "CBDT", "CBLC", "COLR", "CPAL",
	"SVG ", "sbix", "acnt", "avar", "bdat", "bloc", "bsln", "cvar", "fdsc",
	"feat", "fmtx", "fvar", "gvar", "hsty", "just", "lcar", "mort", "morx",
	"opbd", "prop", "trak", "Zapf", "Silf", "Glat", "Gloc", "Feat", "Sill")

woff2CustomTagIndex = 0x3F

# glyf/loca use version 0 for the transform and 3 for none; hmtx uses 1 for
# its transform and 0 or 3 for none; every other table is never transformed
# and may carry version 0 or 3
woff2GlyfLocaTags = ("glyf", "loca")
woff2NullTransformVersion = 3
woff2HmtxTransformVersion = 1

woff2DirectoryEntryMaxSize = 1 + 4 + 2 * base128MaxSize

woff2GlyfTableFormat = """
		> # big endian
		reserved:                 H  # = 0x0000
		optionFlags:              H  # bit 0: overlapSimpleBitmap present
		numGlyphs:                H  # Number of glyphs
		indexFormat:              H  # Offset format for loca table
		nContourStreamSize:       L  # Size of nContour stream
		nPointsStreamSize:        L  # Size of nPoints stream
		flagStreamSize:           L  # Size of flag stream
		glyphStreamSize:          L  # Size of glyph stream
		compositeStreamSize:      L  # Size of composite stream
		bboxStreamSize:           L  # Combined size of bboxBitmap and bboxStream
		instructionStreamSize:    L  # Size of instruction stream
"""

woff2GlyfTableFormatSize = sstruct.calcsize(woff2GlyfTableFormat)

woff2OverlapSimpleBitmapFlag = 0x0001

woff2GlyfStreams = ("nContourStream", "nPointsStream", "flagStream", "glyphStream",
	"compositeStream", "bboxStream", "instructionStream")

bboxFormat = """
		>	# big endian
		xMin:				h
		yMin:				h
		xMax:				h
		yMax:				h
"""

bboxSize = sstruct.calcsize(bboxFormat)


class WOFF2DirectoryEntry(DirectoryEntry):

	""" One table of the WOFF2 directory.

	'origLength' is the length of the table in the sfnt, 'length' the
	length of the data stored in the compressed stream (the transformed
	length for transformed tables).
	"""

	def __init__(self):
		self.tag = None
		self.flags = 0
		self.transformVersion = 0
		self.origLength = self.length = 0
		self.offset = 0

	def fromFile(self, file):
		pos = file.tell()
		data = file.read(woff2DirectoryEntryMaxSize)
		left = self.fromString(data)
		consumed = len(data) - len(left)
		file.seek(pos + consumed)

	def fromString(self, data):
		""" Parse one entry from the start of 'data'; return the rest. """
		reader = ByteReader(data, name="WOFF2 table directory")
		self.flags = reader.readUInt8()
		index = self.flags & woff2CustomTagIndex
		if index == woff2CustomTagIndex:
			# if bits [0..5] of the flags byte == 63, read a 4-byte arbitrary tag value
			self.tag = reader.readTag()
		else:
			# otherwise, tag is derived from a fixed 'Known Tags' table
			self.tag = Tag(woff2KnownTags[index])
		self.transformVersion = self.flags >> 6
		self._checkTransformVersion()
		# UIntBase128 value specifying the table's length in an uncompressed font
		self.origLength = reader.readUIntBase128()
		self.length = self.origLength
		if self.transformed:
			# for simplicity, the 'transformLength' is called 'length' here
			self.length = reader.readUIntBase128()
			if self.tag == "loca" and self.length != 0:
				raise InvalidFontError(
					"transformed 'loca' table must have a transform length of 0, found %d"
					% self.length)
		return data[reader.tell():]

	def _checkTransformVersion(self):
		valid = (0, woff2NullTransformVersion)
		if self.tag == "hmtx":
			valid = (0, woff2HmtxTransformVersion, woff2NullTransformVersion)
		if self.transformVersion not in valid:
			raise InvalidFontError("reserved transform version %d for '%s' table"
				% (self.transformVersion, self.tag))

	def getTransformVersion(self, transformed):
		if self.tag in woff2GlyfLocaTags:
			return 0 if transformed else woff2NullTransformVersion
		if self.tag == "hmtx" and transformed:
			return woff2HmtxTransformVersion
		return 0

	@property
	def transformed(self):
		if self.tag in woff2GlyfLocaTags:
			return self.transformVersion != woff2NullTransformVersion
		if self.tag == "hmtx":
			return self.transformVersion == woff2HmtxTransformVersion
		return False

	@transformed.setter
	def transformed(self, value):
		self.transformVersion = self.getTransformVersion(value)

	def toString(self):
		index = woff2CustomTagIndex
		if self.tag in woff2KnownTags:
			index = woff2KnownTags.index(self.tag)
		self.flags = index | (self.transformVersion << 6)
		data = struct.pack('B', self.flags)
		if index == woff2CustomTagIndex:
			data += struct.pack('>4s', self.tag.tobytes())
		data += packBase128(self.origLength)
		if self.transformed:
			data += packBase128(self.length)
		return data


class WOFF2GlyfTransform(object):

	""" Converts between sfnt glyf/loca tables and the transformed WOFF2
	glyf table.

	The glyphs live in the glyf table of 'tempFont', a fontTools TTFont
	with a dummy glyph order; after transform() or reconstruct(), xMins()
	returns the glyph xMin values the hmtx transform is based on.
	"""

	def __init__(self):
		self.tempFont = None
		self.indexFormat = None

	def _newGlyfTable(self, numGlyphs):
		self.tempFont = TTFont(recalcBBoxes=False)
		self.tempFont.setGlyphOrder(dummyGlyphOrder(numGlyphs))
		for tag in ("head", "maxp", "loca"):
			self.tempFont[tag] = getTableClass(tag)()
		glyfTable = getTableClass("glyf")()
		# each reconstructed glyph is padded to a 4-byte boundary
		glyfTable.padding = 4
		glyfTable.glyphOrder = self.tempFont.getGlyphOrder()
		glyfTable.glyphs = {}
		self.tempFont["glyf"] = glyfTable
		return glyfTable

	@property
	def glyphs(self):
		glyfTable = self.tempFont["glyf"]
		return [glyfTable[glyphName] for glyphName in glyfTable.glyphOrder]

	def xMins(self):
		# empty glyphs carry no bounds
		return [getattr(glyph, "xMin", 0) for glyph in self.glyphs]

	def reconstruct(self, data, numGlyphs=None):
		""" Return (glyfData, locaData) rebuilt from a transformed glyf
		table. 'numGlyphs' is the count expected from maxp, if known.
		"""
		try:
			return self._reconstruct(data, numGlyphs)
		except TruncatedDataError as e:
			raise InvalidFontError(str(e))

	def _reconstruct(self, data, numGlyphs):
		header = ByteReader(data, name="transformed 'glyf' table")
		sstruct.unpack(woff2GlyfTableFormat, header.read(woff2GlyfTableFormatSize), self)
		if numGlyphs is not None and self.numGlyphs != numGlyphs:
			raise InvalidFontError("Glyph count mismatch: transformed 'glyf' has %d glyphs, expected %d"
				% (self.numGlyphs, numGlyphs))
		if self.indexFormat not in (0, 1):
			raise InvalidFontError("invalid 'loca' index format %d" % self.indexFormat)
		numGlyphs = self.numGlyphs

		# slice stream data into seven individual sub-streams
		streams = {}
		for name in woff2GlyfStreams:
			size = getattr(self, name + "Size")
			streams[name] = ByteReader(header.read(size), name=name)
		overlapBitmap = None
		if self.optionFlags & woff2OverlapSimpleBitmapFlag:
			overlapBitmap = header.read((numGlyphs + 7) >> 3)
		if not header.atEnd():
			raise InvalidFontError(
				"incorrect size of transformed 'glyf' table: expected %d, received %d bytes"
				% (header.tell(), len(data)))

		# extract bboxBitmap from bboxStream
		bboxReader = streams["bboxStream"]
		bboxBitmap = bboxReader.read(((numGlyphs + 31) >> 5) << 2)
		nContours = streams["nContourStream"].readArray("h", numGlyphs)

		glyfTable = self._newGlyfTable(numGlyphs)
		for glyphID, glyphName in enumerate(glyfTable.glyphOrder):
			glyph = getTableModule("glyf").Glyph()
			glyph.numberOfContours = nContours[glyphID]
			haveBBox = _bitIsSet(bboxBitmap, glyphID)
			if glyph.numberOfContours < -1:
				raise InvalidFontError("Invalid nContours value %d for glyph %d"
					% (glyph.numberOfContours, glyphID))
			elif glyph.numberOfContours == 0:
				if haveBBox:
					raise InvalidFontError("empty glyph %d has an explicit bbox" % glyphID)
			elif glyph.isComposite():
				if not haveBBox:
					raise InvalidFontError("no bbox values for composite glyph %d" % glyphID)
				self._decodeComponents(glyph, glyphID, glyfTable, streams)
			else:
				self._decodeCoordinates(glyph, streams)
				if (overlapBitmap is not None and _bitIsSet(overlapBitmap, glyphID)
						and glyph.flags):
					glyph.flags[0] |= flagOverlapSimple
			glyfTable.glyphs[glyphName] = glyph
			if haveBBox:
				sstruct.unpack(bboxFormat, bboxReader.read(bboxSize), glyph)
			elif glyph.numberOfContours:
				glyph.recalcBounds(glyfTable)

		glyfData = glyfTable.compile(self.tempFont)
		locaTable = self.tempFont["loca"]
		locaData = locaTable.compile(self.tempFont)
		if self.tempFont["head"].indexToLocFormat != self.indexFormat:
			# fontTools picks the short format whenever the offsets fit
			if not self.indexFormat:
				raise InvalidFontError(
					"reconstructed 'glyf' table is too large for the short 'loca' format")
			locaData = packArray("I", locaTable.locations)
		return glyfData, locaData

	def _decodeComponents(self, glyph, glyphID, glyfTable, streams):
		reader = streams["compositeStream"]
		glyph.components = []
		haveInstructions = False
		more = True
		while more:
			component = getTableModule("glyf").GlyphComponent()
			data = reader.data[reader.tell():]
			try:
				more, haveInstr, rest = component.decompile(data, glyfTable)
			except (IndexError, struct.error):
				raise InvalidFontError("invalid component data for glyph %d" % glyphID)
			reader.skip(len(data) - len(rest))
			haveInstructions = haveInstructions or haveInstr
			glyph.components.append(component)
		if haveInstructions:
			self._decodeInstructions(glyph, streams)

	def _decodeCoordinates(self, glyph, streams):
		endPtsOfContours = []
		endPoint = -1
		for i in range(glyph.numberOfContours):
			endPoint += streams["nPointsStream"].read255UInt16()
			endPtsOfContours.append(endPoint)
		glyph.endPtsOfContours = endPtsOfContours
		nPoints = endPoint + 1
		flags = streams["flagStream"].read(nPoints)
		coordinates, onCurves = decodeTriplets(flags, streams["glyphStream"])
		glyph.coordinates = getTableModule("glyf").GlyphCoordinates(coordinates)
		glyph.flags = array.array("B", [flagOnCurve if onCurve else 0 for onCurve in onCurves])
		self._decodeInstructions(glyph, streams)

	def _decodeInstructions(self, glyph, streams):
		instructionLength = streams["glyphStream"].read255UInt16()
		glyph.program = ttProgram.Program()
		glyph.program.fromBytecode(streams["instructionStream"].read(instructionLength))

	def transform(self, glyfData, locaData, indexFormat, numGlyphs):
		""" Return the transformed glyf table for the given sfnt glyf and
		loca data.
		"""
		glyfTable = self._newGlyfTable(numGlyphs)
		self.tempFont["head"].indexToLocFormat = indexFormat
		self.tempFont["maxp"].numGlyphs = numGlyphs
		locaTable = self.tempFont["loca"]
		numLocations = len(locaData) // (4 if indexFormat else 2)
		if numLocations < numGlyphs + 1:
			raise TTLibError("'loca' has %d entries; %d glyphs need %d"
				% (numLocations, numGlyphs, numGlyphs + 1))
		locaTable.decompile(locaData, self.tempFont)
		locaTable.set(locaTable.locations[:numGlyphs + 1])
		try:
			glyfTable.decompile(glyfData, self.tempFont)
		except FontToolsError as e:
			raise TTLibError(str(e))

		streams = dict((name, []) for name in woff2GlyfStreams)
		nContours = []
		bboxBitmap = bytearray(((numGlyphs + 31) >> 5) << 2)
		overlapBitmap = bytearray((numGlyphs + 7) >> 3)
		optionFlags = 0
		for glyphID, glyphName in enumerate(glyfTable.glyphOrder):
			glyph = glyfTable[glyphName]
			nContours.append(glyph.numberOfContours)
			if glyph.numberOfContours == 0:
				continue
			if glyph.isComposite():
				self._encodeComponents(glyph, glyfTable, streams)
				storeBBox = True
			else:
				self._encodeCoordinates(glyph, streams)
				if glyph.flags[0] & flagOverlapSimple:
					overlapBitmap[glyphID >> 3] |= 0x80 >> (glyphID & 7)
					optionFlags |= woff2OverlapSimpleBitmapFlag
				storeBBox = glyph.coordinates.calcIntBounds() != (
					glyph.xMin, glyph.yMin, glyph.xMax, glyph.yMax)
			if storeBBox:
				bboxBitmap[glyphID >> 3] |= 0x80 >> (glyphID & 7)
				streams["bboxStream"].append(sstruct.pack(bboxFormat, glyph))

		streams["nContourStream"] = [packArray("h", nContours)]
		streams["bboxStream"].insert(0, bytes(bboxBitmap))
		streamData = [bytesjoin(streams[name]) for name in woff2GlyfStreams]

		self.reserved = 0
		self.optionFlags = optionFlags
		self.numGlyphs = numGlyphs
		self.indexFormat = indexFormat
		for name, data in zip(woff2GlyfStreams, streamData):
			setattr(self, name + "Size", len(data))
		result = [sstruct.pack(woff2GlyfTableFormat, self)] + streamData
		if optionFlags & woff2OverlapSimpleBitmapFlag:
			result.append(bytes(overlapBitmap))
		return bytesjoin(result)

	def _encodeComponents(self, glyph, glyfTable, streams):
		# instructions go to the glyph and instruction streams, not after
		# the last component as in the sfnt glyf table
		haveInstructions = hasattr(glyph, "program")
		lastIndex = len(glyph.components) - 1
		for i, component in enumerate(glyph.components):
			more = i < lastIndex
			streams["compositeStream"].append(
				component.compile(more, haveInstructions and not more, glyfTable))
		if haveInstructions:
			self._encodeInstructions(glyph, streams)

	def _encodeCoordinates(self, glyph, streams):
		lastEndPoint = -1
		for endPoint in glyph.endPtsOfContours:
			streams["nPointsStream"].append(pack255UInt16(endPoint - lastEndPoint))
			lastEndPoint = endPoint
		deltas = glyph.coordinates.copy()
		deltas.toInt()
		deltas.absoluteToRelative()
		flags = bytearray()
		for i, flag in enumerate(glyph.flags):
			dx, dy = deltas[i]
			tripletFlag, data = encodeTriplet(dx, dy, flag & flagOnCurve)
			flags.append(tripletFlag)
			streams["glyphStream"].append(data)
		streams["flagStream"].append(bytes(flags))
		self._encodeInstructions(glyph, streams)

	def _encodeInstructions(self, glyph, streams):
		program = glyph.program.getBytecode()
		streams["glyphStream"].append(pack255UInt16(len(program)))
		streams["instructionStream"].append(program)


class WOFF2HmtxTransform(object):

	""" The transformed hmtx table: a flags byte, the advance widths of
	the long metrics, then (optionally) the left side bearings of every
	glyph.

	Advance widths are either all written as 255UInt16 values (flag 0x01)
	or as one 255UInt16 base width followed by int16 deltas from the
	previous width. Left side bearings are written as int16 values when
	flag 0x02 is set; otherwise they are the glyph xMin values.
	"""

	explicitAdvanceWidths = 0x01
	explicitLsbValues = 0x02

	@classmethod
	def needsGlyfLsbs(cls, data):
		""" Whether decoding 'data' takes the side bearings from glyf. """
		return not data or not bytearray(data[:1])[0] & cls.explicitLsbValues

	def transform(self, metrics, numberOfHMetrics, xMins):
		""" Return the transformed table for 'metrics', a list of
		(advanceWidth, lsb) in glyph order.
		"""
		numGlyphs = len(metrics)
		if len(xMins) < numGlyphs:
			raise TTLibError("need %d xMin values, found %d" % (numGlyphs, len(xMins)))
		advances = [advance for advance, lsb in metrics[:numberOfHMetrics]]
		lsbs = [lsb for advance, lsb in metrics]

		explicit = bytesjoin(pack255UInt16(advance) for advance in advances)
		deltas = [b - a for a, b in zip(advances, advances[1:])]
		flags = self.explicitAdvanceWidths
		advanceData = explicit
		if all(-0x8000 <= delta <= 0x7FFF for delta in deltas):
			proportional = pack255UInt16(advances[0]) + packArray("h", deltas)
			if len(proportional) <= len(explicit):
				flags = 0
				advanceData = proportional

		data = [advanceData]
		if lsbs != list(xMins[:numGlyphs]):
			flags |= self.explicitLsbValues
			data.append(packArray("h", lsbs))
		return struct.pack(">B", flags) + bytesjoin(data)

	def reconstruct(self, data, numGlyphs, numberOfHMetrics, xMins=None):
		""" Return the sfnt hmtx table. 'xMins' are the glyph xMin values
		used as side bearings when the table stores none.
		"""
		if numberOfHMetrics < 1 or numberOfHMetrics > numGlyphs:
			raise InvalidFontError("invalid numberOfHMetrics %d for %d glyphs"
				% (numberOfHMetrics, numGlyphs))
		reader = ByteReader(data, name="transformed 'hmtx' table")
		try:
			flags = reader.readUInt8()
			if flags & 0xFC:
				raise InvalidFontError("reserved bits of the 'hmtx' transform flags must be 0")
			if flags & self.explicitAdvanceWidths:
				advances = [reader.read255UInt16() for i in range(numberOfHMetrics)]
			else:
				advances = [reader.read255UInt16()]
				for delta in reader.readArray("h", numberOfHMetrics - 1):
					advances.append(advances[-1] + delta)
			if flags & self.explicitLsbValues:
				lsbs = list(reader.readArray("h", numGlyphs))
			elif xMins is None or len(xMins) < numGlyphs:
				raise InvalidFontError(
					"reconstructing 'hmtx' needs the xMin of all %d glyphs" % numGlyphs)
			else:
				lsbs = list(xMins[:numGlyphs])
		except TruncatedDataError as e:
			raise InvalidFontError(str(e))
		if not reader.atEnd():
			raise InvalidFontError("%d extra bytes in transformed 'hmtx' table" % reader.remaining)
		for advance in advances:
			if not 0 <= advance <= 0xFFFF:
				raise InvalidFontError("advance width %d out of range" % advance)
		# glyphs past the long metrics share the last advance width
		longMetrics = [struct.pack(">Hh", advance, lsb)
			for advance, lsb in zip(advances, lsbs)]
		return bytesjoin(longMetrics) + packArray("h", lsbs[numberOfHMetrics:])


def _bitIsSet(bitmap, index):
	return bool(bitmap[index >> 3] & (0x80 >> (index & 7)))


def encodeTriplet(dx, dy, onCurve):
	""" Return (flag, data) encoding the point delta (dx, dy).

		>>> encodeTriplet(0, 5, True)
		(1, b'\\x05')
		>>> encodeTriplet(-3, 0, False)
		(138, b'\\x03')
		>>> encodeTriplet(1000, -1000, True)
		(121, b'>\\x83\\xe8')
	"""
	onCurveBit = 0 if onCurve else 128
	absX = abs(dx)
	absY = abs(dy)
	if absX > 0xFFFF or absY > 0xFFFF:
		raise TTLibError("point delta (%d, %d) too large for WOFF2" % (dx, dy))
	xSign = 1 if dx >= 0 else 0
	ySign = 1 if dy >= 0 else 0
	xySignBits = xSign + 2 * ySign
	if dx == 0 and absY < 1280:
		flag = onCurveBit + ((absY & 0xf00) >> 7) + ySign
		data = struct.pack(">B", absY & 0xff)
	elif dy == 0 and absX < 1280:
		flag = onCurveBit + 10 + ((absX & 0xf00) >> 7) + xSign
		data = struct.pack(">B", absX & 0xff)
	elif absX < 65 and absY < 65:
		flag = (onCurveBit + 20 + ((absX - 1) & 0x30) + (((absY - 1) & 0x30) >> 2)
			+ xySignBits)
		data = struct.pack(">B", (((absX - 1) & 0xf) << 4) | ((absY - 1) & 0xf))
	elif absX < 769 and absY < 769:
		flag = (onCurveBit + 84 + 12 * (((absX - 1) & 0x300) >> 8)
			+ (((absY - 1) & 0x300) >> 6) + xySignBits)
		data = struct.pack(">BB", (absX - 1) & 0xff, (absY - 1) & 0xff)
	elif absX < 4096 and absY < 4096:
		flag = onCurveBit + 120 + xySignBits
		data = struct.pack(">BBB", absX >> 4, ((absX & 0xf) << 4) | (absY >> 8), absY & 0xff)
	else:
		flag = onCurveBit + 124 + xySignBits
		data = struct.pack(">HH", absX, absY)
	return flag, data


def decodeTriplets(flags, reader):
	""" Decode one point per flag byte from the glyph stream 'reader'.
	Return (coordinates, onCurves) with absolute coordinates.
	"""

	def withSign(flag, baseval):
		return baseval if flag & 1 else -baseval

	x = 0
	y = 0
	coordinates = []
	onCurves = []
	for flag in bytearray(flags):
		onCurve = not bool(flag >> 7)
		flag &= 0x7f
		if flag < 84:
			nBytes = 1
		elif flag < 120:
			nBytes = 2
		elif flag < 124:
			nBytes = 3
		else:
			nBytes = 4
		triplet = bytearray(reader.read(nBytes))
		if flag < 10:
			dx = 0
			dy = withSign(flag, ((flag & 14) << 7) + triplet[0])
		elif flag < 20:
			dx = withSign(flag, (((flag - 10) & 14) << 7) + triplet[0])
			dy = 0
		elif flag < 84:
			b0 = flag - 20
			b1 = triplet[0]
			dx = withSign(flag, 1 + (b0 & 0x30) + (b1 >> 4))
			dy = withSign(flag >> 1, 1 + ((b0 & 0x0c) << 2) + (b1 & 0x0f))
		elif flag < 120:
			b0 = flag - 84
			dx = withSign(flag, 1 + ((b0 // 12) << 8) + triplet[0])
			dy = withSign(flag >> 1, 1 + (((b0 % 12) >> 2) << 8) + triplet[1])
		elif flag < 124:
			b2 = triplet[1]
			dx = withSign(flag, (triplet[0] << 4) + (b2 >> 4))
			dy = withSign(flag >> 1, ((b2 & 0x0f) << 8) + triplet[2])
		else:
			dx = withSign(flag, (triplet[0] << 8) + triplet[1])
			dy = withSign(flag >> 1, (triplet[2] << 8) + triplet[3])
		x += dx
		y += dy
		coordinates.append((x, y))
		onCurves.append(onCurve)
	return coordinates, onCurves


if __name__ == "__main__":
	import sys
	import doctest
	sys.exit(doctest.testmod().failed)
