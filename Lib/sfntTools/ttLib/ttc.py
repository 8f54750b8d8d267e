"""Reading TrueType/OpenType Collections.

A collection file starts with a 'ttcf' header: the version, the number
of fonts and the offset of every font's table directory. Version 2.0
headers append the tag, length and offset of a DSIG table. Table
directories may point at the same table data, which is how the fonts
of a collection share tables.
"""

from collections.abc import MutableSequence
from fontTools.misc import sstruct
from fontTools.misc.textTools import bytesjoin
from sfntTools.ttLib import InvalidFontError, TTLibError, TruncatedDataError
from sfntTools.ttLib.sfnt import SFNTReader, sfntDirectorySize
from sfntTools.ttLib.sfntFont import SFNTFont, TableProvider
from sfntTools.misc.binaryTools import ByteReader, packArray
import struct
import logging


log = logging.getLogger(__name__)

ttcTag = "ttcf"

ttcVersion1 = 0x00010000
ttcVersion2 = 0x00020000

ttcHeaderFormat = """
		> # big endian
		TTCTag:                  4s # "ttcf"
		Version:                 L  # 0x00010000 or 0x00020000
		numFonts:                L  # number of fonts
"""

ttcHeaderSize = sstruct.calcsize(ttcHeaderFormat)

# ulDsigTag, ulDsigLength, ulDsigOffset
ttcDsigFieldsSize = 12


class CollectionHeader(object):

	""" The 'ttcf' header: version, font directory offsets and, for
	version 2.0, the location of the DSIG table (all zero when unsigned).

	>>> header = CollectionHeader(fontOffsets=[16, 300])
	>>> header.size
	20
	>>> CollectionHeader.fromString(header.compile()).fontOffsets
	[16, 300]
	"""

	def __init__(self, version=ttcVersion1, fontOffsets=(), dsigTag=0, dsigLength=0,
			dsigOffset=0):
		self.version = version
		self.fontOffsets = list(fontOffsets)
		self.dsigTag = dsigTag
		self.dsigLength = dsigLength
		self.dsigOffset = dsigOffset

	@property
	def numFonts(self):
		return len(self.fontOffsets)

	@property
	def size(self):
		size = ttcHeaderSize + 4 * self.numFonts
		if self.version == ttcVersion2:
			size += ttcDsigFieldsSize
		return size

	@classmethod
	def fromString(cls, data):
		reader = ByteReader(data, name="TTC header")
		try:
			if reader.readTag() != ttcTag:
				raise InvalidFontError("Not a Font Collection (bad TTCTag)")
			version = reader.readUInt32()
			if version not in (ttcVersion1, ttcVersion2):
				raise InvalidFontError("unrecognized TTC version 0x%08x" % version)
			numFonts = reader.readUInt32()
			header = cls(version, reader.readArray("L", numFonts))
			if version == ttcVersion2:
				header.dsigTag = reader.readUInt32()
				header.dsigLength = reader.readUInt32()
				header.dsigOffset = reader.readUInt32()
		except TruncatedDataError as e:
			raise InvalidFontError("Not a Font Collection (%s)" % e)
		return header

	@classmethod
	def fromFile(cls, file):
		""" Read the header at the start of 'file' and check that every
		font offset points inside the file.
		"""
		file.seek(0)
		data = file.read(ttcHeaderSize)
		if len(data) == ttcHeaderSize and data[:4] == b"ttcf":
			numFonts, = struct.unpack(">L", data[8:12])
			version, = struct.unpack(">L", data[4:8])
			extra = 4 * numFonts
			if version == ttcVersion2:
				extra += ttcDsigFieldsSize
			data += file.read(extra)
		header = cls.fromString(data)
		file.seek(0, 2)
		header.validate(file.tell())
		return header

	def validate(self, fileSize):
		if not self.fontOffsets:
			raise InvalidFontError("Font Collection holds no fonts")
		for fontNumber, offset in enumerate(self.fontOffsets):
			if offset < self.size or offset + sfntDirectorySize > fileSize:
				raise InvalidFontError(
					"offset %d of font %d lies outside the collection data (%d bytes)"
					% (offset, fontNumber, fileSize))
		if self.dsigOffset and self.dsigOffset + self.dsigLength > fileSize:
			log.warning("DSIG table at offset %d runs past the end of the collection",
				self.dsigOffset)

	def compile(self):
		fields = {"TTCTag": ttcTag, "Version": self.version, "numFonts": self.numFonts}
		data = [sstruct.pack(ttcHeaderFormat, fields), packArray("L", self.fontOffsets)]
		if self.version == ttcVersion2:
			data.append(struct.pack(">3L", self.dsigTag, self.dsigLength, self.dsigOffset))
		return bytesjoin(data)

	def fontOffset(self, fontNumber):
		if not 0 <= fontNumber < self.numFonts:
			raise TTLibError("specify a font number between 0 and %d (inclusive)"
				% (self.numFonts - 1))
		return self.fontOffsets[fontNumber]


class TTCReader(SFNTReader):

	""" SFNTReader for one member of a collection.

	Without a 'fontNumber' only the header is read, and asking for
	tables is an error.
	"""

	flavor = "ttc"

	def __init__(self, file, checkChecksums=1, fontNumber=-1):
		self.file = file
		self.checkChecksums = checkChecksums
		self.header = CollectionHeader.fromFile(file)
		self.numFonts = self.header.numFonts
		if fontNumber != -1:
			self.flavor = None
			self.file.seek(self.header.fontOffset(fontNumber))
			self._readDirectory()

	def keys(self):
		if not hasattr(self, "tables"):
			raise TTLibError("specify a font number to read tables from a collection")
		return self.tables.keys()


class TTCollection(MutableSequence):

	""" The fonts of a TrueType/OpenType Collection, as TableProvider
	objects (SFNTFont when read from a file).

	'fileOrFonts' is a list of TableProvider objects, or a path or file
	object of a 'ttcf' file whose fonts are read eagerly.
	"""

	def __init__(self, fileOrFonts=None, checkChecksums=0):
		self.fonts = []
		self.version = ttcVersion1
		if not fileOrFonts:
			return
		if isinstance(fileOrFonts, (TTCollection, tuple, list)):
			for font in fileOrFonts:
				self._checkFont(font)
			self.fonts = list(fileOrFonts)
		elif hasattr(fileOrFonts, "read"):
			self._read(fileOrFonts, checkChecksums)
		else:
			with open(fileOrFonts, 'rb') as file:
				self._read(file, checkChecksums)

	def _read(self, file, checkChecksums):
		header = CollectionHeader.fromFile(file)
		self.version = header.version
		for fontNumber in range(header.numFonts):
			self.fonts.append(SFNTFont.fromFile(file, fontNumber=fontNumber,
				checkChecksums=checkChecksums))
		log.debug("read %d fonts from TTC version 0x%08x", len(self.fonts), self.version)

	@staticmethod
	def _checkFont(font):
		if not isinstance(font, TableProvider):
			raise TTLibError("TTCollection can only contain TableProvider instances, found %s"
				% type(font).__name__)

	def __len__(self):
		return len(self.fonts)

	def __getitem__(self, i):
		return self.fonts[i]

	def __setitem__(self, i, font):
		self._checkFont(font)
		self.fonts[i] = font

	def __delitem__(self, i):
		del self.fonts[i]

	def insert(self, i, font):
		self._checkFont(font)
		self.fonts.insert(i, font)

	def __repr__(self):
		return "<TTCollection of %d fonts>" % len(self.fonts)


if __name__ == "__main__":
	import sys
	import doctest
	sys.exit(doctest.testmod().failed)
