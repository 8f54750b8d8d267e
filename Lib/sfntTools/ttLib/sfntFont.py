"""In-memory fonts as maps from table tag to raw table bytes.

The variation, WOFF2 and collection code only ever asks a font three
things: the bytes of a table, whether a table exists, and which tables
there are. TableProvider spells out that interface; SFNTFont implements
it on top of the sfnt, TTC and WOFF2 readers.
"""

from io import BytesIO
from collections import OrderedDict
from fontTools.misc.textTools import Tag
from fontTools.ttLib import TTFont, getTableClass
from sfntTools.ttLib import MissingTableError
from sfntTools.ttLib.sfnt import (SFNTReader, SFNTWriter, sfntVersionTrueType,
	sfntVersionCFF)
import logging


log = logging.getLogger(__name__)


class TableProvider(object):

	""" Read-only access to the raw tables of one font.

	Sub-classes implement tableData() and tableNames(). Table data is
	never mutated by consumers; every update produces new bytes.
	"""

	def tableData(self, tag):
		""" Return the bytes of table 'tag', or None if the font lacks it. """
		raise NotImplementedError

	def tableNames(self):
		raise NotImplementedError

	def hasTable(self, tag):
		return self.tableData(tag) is not None

	def requireTableData(self, tag):
		data = self.tableData(tag)
		if data is None:
			raise MissingTableError("'%s' table is missing" % tag)
		return data

	def toTTFont(self, recalcBBoxes=True, recalcTimestamp=False):
		""" Return a fontTools TTFont whose tables decompile lazily from this
		provider. Tables edited through the TTFont never touch the
		provider's bytes; SFNTFont.fromTTFont() collects the result.
		"""
		ttFont = TTFont(sfntVersion=self.sfntVersion, recalcBBoxes=recalcBBoxes,
			recalcTimestamp=recalcTimestamp)
		ttFont.reader = ProviderReader(self)
		return ttFont

	@property
	def sfntVersion(self):
		if self.hasTable("CFF ") or self.hasTable("CFF2"):
			return Tag(sfntVersionCFF)
		return Tag(sfntVersionTrueType)


class SFNTFont(TableProvider):

	""" A font held as an ordered map of tag -> raw table data.

	>>> font = SFNTFont({"head": b"\\0" * 54})
	>>> font.hasTable("head"), font.hasTable("glyf")
	(True, False)
	"""

	def __init__(self, tables=None, sfntVersion=None, flavor=None, flavorData=None):
		self.tables = OrderedDict()
		if tables:
			for tag, data in tables.items():
				self.tables[Tag(tag)] = data
		self._sfntVersion = Tag(sfntVersion) if sfntVersion is not None else None
		self.flavor = flavor
		self.flavorData = flavorData

	@classmethod
	def fromFile(cls, file, fontNumber=-1, checkChecksums=0):
		""" Read all the tables of an sfnt, WOFF2 or collection member.

		'file' is a path or a readable binary file object. 'fontNumber'
		selects the font when 'file' is a TrueType/OpenType Collection.
		"""
		if not hasattr(file, "read"):
			with open(file, "rb") as f:
				return cls.fromFile(f, fontNumber, checkChecksums)
		file.seek(0)
		reader = SFNTReader(file, checkChecksums, fontNumber=fontNumber)
		tables = OrderedDict()
		for tag in reader.keys():
			tables[tag] = reader[tag]
		return cls(tables, sfntVersion=reader.sfntVersion, flavor=reader.flavor,
			flavorData=reader.flavorData)

	@classmethod
	def fromBytes(cls, data, fontNumber=-1, checkChecksums=0):
		return cls.fromFile(BytesIO(data), fontNumber, checkChecksums)

	@property
	def sfntVersion(self):
		if self._sfntVersion is not None:
			return self._sfntVersion
		return TableProvider.sfntVersion.fget(self)

	@sfntVersion.setter
	def sfntVersion(self, value):
		self._sfntVersion = Tag(value) if value is not None else None

	def tableData(self, tag):
		return self.tables.get(Tag(tag))

	def tableNames(self):
		return list(self.tables.keys())

	def keys(self):
		return self.tableNames()

	def __contains__(self, tag):
		return Tag(tag) in self.tables

	def __getitem__(self, tag):
		try:
			return self.tables[Tag(tag)]
		except KeyError:
			raise MissingTableError("'%s' table is missing" % tag)

	def __setitem__(self, tag, data):
		self.tables[Tag(tag)] = data

	def __delitem__(self, tag):
		del self.tables[Tag(tag)]

	def __len__(self):
		return len(self.tables)

	def __repr__(self):
		return "<%s %s>" % (self.__class__.__name__, " ".join(self.tables.keys()))

	def compile(self):
		""" Return the font as sfnt bytes: table directory sorted by tag,
		tables 4-byte aligned, checksums and head.checkSumAdjustment set.
		Fonts whose flavor is "woff2" compile to WOFF2 instead.
		"""
		file = BytesIO()
		self.save(file)
		return file.getvalue()

	def save(self, file):
		if not hasattr(file, "write"):
			with open(file, "wb") as f:
				return self.save(f)
		if self.flavor == "woff2":
			from sfntTools.ttLib.woff2 import WOFF2Writer
			writer = WOFF2Writer(file, len(self.tables), self.sfntVersion, self.flavorData)
		else:
			writer = SFNTWriter(file, len(self.tables), self.sfntVersion)
		for tag in sorted(self.tables.keys()):
			writer[tag] = self.tables[tag]
		writer.close()

	@classmethod
	def fromTTFont(cls, ttFont, flavor=None, flavorData=None):
		""" Collect the tables of a fontTools TTFont as raw bytes.

		Loaded tables are compiled after the tables they depend on (glyf
		before loca and maxp, hmtx before hhea, and so on), the same order
		TTFont.save() uses; tables never loaded keep their original bytes.
		"""
		tags = [tag for tag in ttFont.keys() if tag != "GlyphOrder"]
		tables = OrderedDict()

		def compileTable(tag):
			if tag in tables:
				return
			for dependency in getTableClass(tag).dependencies:
				if dependency in tags:
					compileTable(dependency)
			tables[tag] = ttFont.getTableData(tag)

		for tag in tags:
			compileTable(tag)
		ordered = OrderedDict((tag, tables[tag]) for tag in tags)
		return cls(ordered, sfntVersion=ttFont.sfntVersion, flavor=flavor,
			flavorData=flavorData)


class ProviderReader(object):

	""" The reader side of a fontTools TTFont, served by a TableProvider.

	TTFont only needs a mapping of tags to bytes from its reader; deleting
	a table from the TTFont hides it here without touching the provider.
	"""

	def __init__(self, provider):
		self.provider = provider
		self.tags = [Tag(tag) for tag in provider.tableNames()]

	def __contains__(self, tag):
		return Tag(tag) in self.tags

	def __len__(self):
		return len(self.tags)

	def keys(self):
		return list(self.tags)

	def __getitem__(self, tag):
		tag = Tag(tag)
		if tag not in self.tags:
			raise KeyError("'%s' table not found" % tag)
		return self.provider.tableData(tag)

	def __delitem__(self, tag):
		self.tags.remove(Tag(tag))

	def close(self):
		pass
