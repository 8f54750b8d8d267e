"""Build TrueType/OpenType Collections that share identical tables.

The build runs in four steps:

	TableAnalyzer      group the tables of all fonts by content
	TableDeduplicator  pick one canonical copy per distinct table
	OffsetCalculator   lay out header, directories and tables
	CollectionWriter   emit the 'ttcf' binary

CollectionBuilder validates the fonts and drives the four steps:

>>> from sfntTools.ttLib.ttcBuilder import CollectionBuilder
>>> result = CollectionBuilder([regular, bold]).build()  # doctest: +SKIP
>>> result["binary"][:4]  # doctest: +SKIP
b'ttcf'
"""

from collections import OrderedDict
from fontTools.misc import sstruct
from fontTools.misc.textTools import Tag, bytesjoin
from sfntTools.ttLib import (TTLibError, CollectionError, InvalidCollectionFormatError,
	getSearchRange)
from sfntTools.ttLib.sfnt import (SFNTDirectoryEntry, sfntDirectoryFormat,
	sfntDirectorySize, sfntDirectoryEntrySize, sfntVersionTrueType, calcTableChecksum)
from sfntTools.ttLib.sfntFont import TableProvider
from sfntTools.ttLib.ttc import CollectionHeader, ttcHeaderSize, ttcVersion1
from sfntTools.misc.binaryTools import calcPaddingSize
import hashlib
import logging


log = logging.getLogger(__name__)


collectionFormats = ("ttc", "otc")

# glyph-indexed variation data stays with its font even when byte-identical
unshareableTableTags = ("gvar", "CFF2")

requiredTableTags = ("head", "hhea", "maxp")

trueTypeVersions = (sfntVersionTrueType, "true")

ttcVersion = ttcVersion1


def tableHash(data):
	""" Hex SHA-256 digest of a table's bytes; the grouping key for
	content-identical tables.
	"""
	return hashlib.sha256(data).hexdigest()


def isShareable(tag):
	return Tag(tag) not in unshareableTableTags


def _checkFonts(fonts):
	if not fonts:
		raise CollectionError("fonts cannot be empty")
	fonts = list(fonts)
	for font in fonts:
		if not isinstance(font, TableProvider):
			raise TTLibError("expected TableProvider, found %s" % type(font).__name__)
	return fonts


class TableAnalyzer(object):

	""" Groups the tables of 'fonts' by content and reports what sharing
	them would save.

	The report is a dict:

		totalFonts         number of fonts
		tableChecksums     {tag: {hash: [fontIndex, ...]}}
		sharedTables       {tag: [{checksum, fontIndices, count}, ...]}
		uniqueTables       {tag: [{checksum, fontIndex}, ...]}
		spaceSavings       bytes saved by storing shared tables once
		sharingPercentage  share of all table bytes that is shared, 0-100
	"""

	def __init__(self, fonts):
		self.fonts = _checkFonts(fonts)
		self.report = None

	def analyze(self):
		report = self.report = {
			"totalFonts": len(self.fonts),
			"tableChecksums": OrderedDict(),
			"sharedTables": OrderedDict(),
			"uniqueTables": OrderedDict(),
			"spaceSavings": 0,
			"sharingPercentage": 0.0,
		}
		self._collectChecksums()
		self._identifySharedTables()
		self._calcSpaceSavings()
		return report

	def _collectChecksums(self):
		tableChecksums = self.report["tableChecksums"]
		for fontIndex, font in enumerate(self.fonts):
			for tag in font.tableNames():
				data = font.tableData(tag)
				if data is None:
					continue
				checksum = tableHash(data)
				tableChecksums.setdefault(tag, OrderedDict()).setdefault(checksum, []).append(fontIndex)

	def _identifySharedTables(self):
		for tag, checksums in self.report["tableChecksums"].items():
			for checksum, fontIndices in checksums.items():
				if len(fontIndices) > 1 and isShareable(tag):
					self.report["sharedTables"].setdefault(tag, []).append({
						"checksum": checksum,
						"fontIndices": list(fontIndices),
						"count": len(fontIndices),
					})
				else:
					unique = self.report["uniqueTables"].setdefault(tag, [])
					for fontIndex in fontIndices:
						unique.append({"checksum": checksum, "fontIndex": fontIndex})

	def _calcSpaceSavings(self):
		savings = 0
		sharedBytes = 0
		for tag, groups in self.report["sharedTables"].items():
			for group in groups:
				size = len(self.fonts[group["fontIndices"][0]].tableData(tag))
				savings += (group["count"] - 1) * size
				sharedBytes += group["count"] * size
		totalBytes = 0
		for font in self.fonts:
			for tag in font.tableNames():
				data = font.tableData(tag)
				if data is not None:
					totalBytes += len(data)
		self.report["spaceSavings"] = savings
		if totalBytes:
			percentage = 100.0 * sharedBytes / totalBytes
			self.report["sharingPercentage"] = round(max(0.0, min(100.0, percentage)), 2)

	def _getReport(self):
		if self.report is None:
			self.analyze()
		return self.report

	def sharedTables(self):
		return self._getReport()["sharedTables"]

	def spaceSavings(self):
		return self._getReport()["spaceSavings"]

	def sharingPercentage(self):
		return self._getReport()["sharingPercentage"]


class TableDeduplicator(object):

	""" Assigns every table of every font to a canonical table.

	Content-identical tables share one canonical table, keyed by an id
	made of the tag and the start of the content hash. gvar and CFF2
	tables always get a canonical table of their own.
	"""

	def __init__(self, fonts):
		self.fonts = _checkFonts(fonts)
		self._canonicalTables = OrderedDict()
		self.sharingMap = OrderedDict()

	def buildSharingMap(self):
		""" Return {fontIndex: {tag: {canonicalId, checksum, data, size,
		shared}}}.
		"""
		self._canonicalTables = OrderedDict()
		self.sharingMap = OrderedDict()
		assignments = []
		for fontIndex, font in enumerate(self.fonts):
			for tag in font.tableNames():
				data = font.tableData(tag)
				if data is None:
					continue
				checksum = tableHash(data)
				canonicalId = self._canonicalId(tag, checksum, fontIndex)
				versions = self._canonicalTables.setdefault(tag, OrderedDict())
				if canonicalId not in versions:
					versions[canonicalId] = {
						"checksum": checksum,
						"data": data,
						"size": len(data),
						"fontIndices": [],
						"shared": False,
					}
				versions[canonicalId]["fontIndices"].append(fontIndex)
				assignments.append((fontIndex, tag, canonicalId))

		for versions in self._canonicalTables.values():
			for info in versions.values():
				info["shared"] = len(info["fontIndices"]) > 1
				if info["shared"]:
					info["sharedWith"] = list(info["fontIndices"])

		for fontIndex in range(len(self.fonts)):
			self.sharingMap[fontIndex] = OrderedDict()
		for fontIndex, tag, canonicalId in assignments:
			info = self._canonicalTables[tag][canonicalId]
			self.sharingMap[fontIndex][tag] = {
				"canonicalId": canonicalId,
				"checksum": info["checksum"],
				"data": info["data"],
				"size": info["size"],
				"shared": info["shared"],
			}
		return self.sharingMap

	def _canonicalId(self, tag, checksum, fontIndex):
		if isShareable(tag):
			return "%s_%s" % (tag, checksum[:12])
		return "%s_%s_%d" % (tag, checksum[:12], fontIndex)

	def canonicalTables(self):
		""" Return {tag: {canonicalId: {checksum, data, size, fontIndices,
		shared}}}; shared entries also list the fonts in 'sharedWith'.
		"""
		return self._canonicalTables

	def canonicalTableData(self, tag, canonicalId):
		info = self._canonicalTables.get(Tag(tag), {}).get(canonicalId)
		return info["data"] if info is not None else None

	def canonicalTablesForTag(self, tag):
		return self._canonicalTables.get(Tag(tag))

	def statistics(self):
		totalTables = sharedTables = 0
		for tables in self.sharingMap.values():
			for info in tables.values():
				totalTables += 1
				if info["shared"]:
					sharedTables += 1
		percentage = round(100.0 * sharedTables / totalTables, 2) if totalTables else 0.0
		return {
			"totalTables": totalTables,
			"sharedTables": sharedTables,
			"uniqueTables": totalTables - sharedTables,
			"sharingPercentage": percentage,
			"canonicalCount": sum(len(v) for v in self._canonicalTables.values()),
		}


class OffsetCalculator(object):

	""" Lays out a collection: the 12-byte header, the offset table, one
	table directory per font, then the canonical tables, shared ones
	first. Directories and tables start on 4-byte boundaries.
	"""

	alignment = 4

	def __init__(self, sharingMap, fonts):
		if sharingMap is None:
			raise CollectionError("sharingMap cannot be None")
		self.sharingMap = sharingMap
		self.fonts = _checkFonts(fonts)
		self.offsets = None

	def calculate(self):
		""" Return {headerOffset, offsetTableOffset, fontDirectoryOffsets,
		tableOffsets, fontTableDirectories}.
		"""
		offsets = self.offsets = {
			"headerOffset": 0,
			"offsetTableOffset": ttcHeaderSize,
			"fontDirectoryOffsets": [],
			"tableOffsets": OrderedDict(),
			"fontTableDirectories": OrderedDict(),
		}
		offset = ttcHeaderSize + 4 * len(self.fonts)
		for fontIndex in range(len(self.fonts)):
			offset = self._align(offset)
			tags = sorted(self.sharingMap[fontIndex].keys())
			size = sfntDirectorySize + sfntDirectoryEntrySize * len(tags)
			offsets["fontDirectoryOffsets"].append(offset)
			offsets["fontTableDirectories"][fontIndex] = {
				"offset": offset,
				"size": size,
				"numTables": len(tags),
				"tableTags": tags,
			}
			offset += size

		canonical = OrderedDict()
		for tables in self.sharingMap.values():
			for tag, info in tables.items():
				canonical.setdefault(info["canonicalId"], info)
		for wantShared in (True, False):
			for canonicalId, info in canonical.items():
				if info["shared"] != wantShared:
					continue
				offset = self._align(offset)
				offsets["tableOffsets"][canonicalId] = offset
				offset += info["size"]
		offsets["totalSize"] = self._align(offset)
		return offsets

	def _align(self, offset):
		return offset + calcPaddingSize(offset, self.alignment)

	def _getOffsets(self):
		if self.offsets is None:
			self.calculate()
		return self.offsets

	def fontDirectoryOffset(self, fontIndex):
		return self._getOffsets()["fontDirectoryOffsets"][fontIndex]

	def tableOffset(self, canonicalId):
		return self._getOffsets()["tableOffsets"].get(canonicalId)


class CollectionWriter(object):

	""" Emits the collection binary for a sharing map and its layout. TTC
	and OTC files share the 'ttcf' signature; 'format' only matters to
	validation.
	"""

	def __init__(self, fonts, sharingMap, offsets, format="ttc"):
		self.fonts = _checkFonts(fonts)
		if sharingMap is None:
			raise CollectionError("sharingMap cannot be None")
		if offsets is None:
			raise CollectionError("offsets cannot be None")
		if format not in collectionFormats:
			raise InvalidCollectionFormatError(
				"Invalid format: %r. Must be one of: %s" % (format, ", ".join(collectionFormats)))
		self.sharingMap = sharingMap
		self.offsets = offsets
		self.format = format

	def writeCollection(self):
		data = bytearray()
		header = CollectionHeader(ttcVersion, self.offsets["fontDirectoryOffsets"])
		data += header.compile()
		for fontIndex, font in enumerate(self.fonts):
			_padTo(data, self.offsets["fontDirectoryOffsets"][fontIndex])
			data += self._compileDirectory(fontIndex, font)

		tableData = OrderedDict()
		for tables in self.sharingMap.values():
			for info in tables.values():
				tableData.setdefault(info["canonicalId"], info["data"])
		for canonicalId, offset in sorted(self.offsets["tableOffsets"].items(),
				key=lambda item: item[1]):
			_padTo(data, offset)
			data += tableData[canonicalId]
		data += b"\0" * calcPaddingSize(len(data))
		return bytes(data)

	def writeToFile(self, path):
		data = self.writeCollection()
		with open(path, "wb") as f:
			f.write(data)
		return len(data)

	def _compileDirectory(self, fontIndex, font):
		tables = self.sharingMap[fontIndex]
		header = _DirectoryHeader(font.sfntVersion, len(tables))
		directory = [sstruct.pack(sfntDirectoryFormat, header)]
		for tag in sorted(tables.keys()):
			info = tables[tag]
			entry = SFNTDirectoryEntry()
			entry.tag = Tag(tag)
			entry.checkSum = calcTableChecksum(tag, info["data"])
			entry.offset = self.offsets["tableOffsets"][info["canonicalId"]]
			entry.length = info["size"]
			directory.append(entry.toString())
		return bytesjoin(directory)


class _DirectoryHeader(object):

	def __init__(self, sfntVersion, numTables):
		self.sfntVersion = Tag(sfntVersion)
		self.numTables = numTables
		self.searchRange, self.entrySelector, self.rangeShift = getSearchRange(numTables, 16)


def _padTo(data, offset):
	if len(data) > offset:
		raise TTLibError("collection layout overlap at offset %d" % offset)
	data.extend(b"\0" * (offset - len(data)))


class CollectionBuilder(object):

	""" Builds a TTC or OTC from a list of fonts (TableProvider objects). """

	def __init__(self, fonts, format="ttc"):
		self.fonts = _checkFonts(fonts)
		if format not in collectionFormats:
			raise InvalidCollectionFormatError(
				"Invalid format: %r. Must be one of: %s" % (format, ", ".join(collectionFormats)))
		self.format = format
		self.result = None

	def validate(self):
		""" Raise CollectionError unless the fonts can form a collection of
		this format.
		"""
		if len(self.fonts) < 2:
			raise CollectionError("Collection requires at least 2 fonts")

		incompatible = []
		hasTrueType = hasCFF = False
		for fontIndex, font in enumerate(self.fonts):
			isCFF = font.hasTable("CFF ") or font.hasTable("CFF2")
			if isCFF or font.sfntVersion not in trueTypeVersions:
				hasCFF = True
				if self.format == "ttc":
					incompatible.append("Font %d is not TrueType (sfntVersion %r)"
						% (fontIndex, str(font.sfntVersion)))
			else:
				hasTrueType = True
		if incompatible:
			raise CollectionError("Format mismatch: %s" % ", ".join(incompatible))
		if self.format == "otc" and hasTrueType and hasCFF:
			log.warning("Mixing TrueType and OpenType/CFF fonts in OTC")

		for fontIndex, font in enumerate(self.fonts):
			missing = [tag for tag in requiredTableTags if not font.hasTable(tag)]
			if missing:
				raise CollectionError("Font %d missing required tables: %s"
					% (fontIndex, ", ".join(missing)))

		self._validateVariableFonts()
		return True

	def _validateVariableFonts(self):
		axisTags = None
		hasGvar = hasCFF2 = False
		for fontIndex, font in enumerate(self.fonts):
			if not font.hasTable("fvar"):
				continue
			tags = [axis.axisTag for axis in font.toTTFont()["fvar"].axes]
			if axisTags is None:
				axisTags = tags
			elif tags != axisTags:
				raise CollectionError("Font %d has different axes (%s) than the other variable fonts (%s)"
					% (fontIndex, " ".join(tags), " ".join(axisTags)))
			hasGvar = hasGvar or font.hasTable("gvar")
			hasCFF2 = hasCFF2 or font.hasTable("CFF2")
		if hasGvar and hasCFF2:
			raise CollectionError("Cannot mix TrueType and CFF2 variable fonts in one collection")

	def build(self):
		""" Validate, then return {binary, spaceSavings, analysis,
		statistics, format, numFonts}.
		"""
		self.validate()
		analysis = TableAnalyzer(self.fonts).analyze()
		deduplicator = TableDeduplicator(self.fonts)
		sharingMap = deduplicator.buildSharingMap()
		statistics = deduplicator.statistics()
		offsets = OffsetCalculator(sharingMap, self.fonts).calculate()
		binary = CollectionWriter(self.fonts, sharingMap, offsets, self.format).writeCollection()
		log.info("built %s with %d fonts: %d bytes, %d bytes saved (%.2f%% shared)",
			self.format.upper(), len(self.fonts), len(binary), analysis["spaceSavings"],
			analysis["sharingPercentage"])
		self.result = {
			"binary": binary,
			"spaceSavings": analysis["spaceSavings"],
			"analysis": analysis,
			"statistics": statistics,
			"format": self.format,
			"numFonts": len(self.fonts),
		}
		return self.result

	def buildToFile(self, path):
		result = self.build()
		with open(path, "wb") as f:
			f.write(result["binary"])
		result["outputPath"] = path
		result["outputSize"] = len(result["binary"])
		return result

	def analyze(self):
		return TableAnalyzer(self.fonts).analyze()

	def potentialSavings(self):
		return self.analyze()["spaceSavings"]
