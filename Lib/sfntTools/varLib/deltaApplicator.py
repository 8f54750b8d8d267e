"""Compute every delta of a variable font for one set of user coordinates.

DeltaApplicator normalizes the coordinates, matches them against the
region lists of HVAR, VVAR, MVAR and the gvar shared tuples, then runs
the glyph and metric delta processors. The results come back as one
DeltaResult that the static font builder consumes.
"""

from collections import OrderedDict
from sfntTools.varLib import NotVariableFontError
from sfntTools.varLib.normalizer import AxisNormalizer
from sfntTools.varLib.regions import RegionMatcher
from sfntTools.varLib.glyphDeltas import (GlyphDeltaProcessor, sharedTupleMatcher,
	readSharedTuples)
from sfntTools.varLib.metricDeltas import MetricDeltaProcessor
import logging


log = logging.getLogger(__name__)

metricVariationTags = ("HVAR", "VVAR", "MVAR")


class DeltaResult(object):

	""" Everything computed for one coordinate set.

	'regionScalars' is the scalar list of the first metric table present
	(HVAR, else VVAR, else MVAR); 'tableScalars' has the scalars of each
	of them by tag and 'sharedTupleScalars' those of the gvar shared
	tuples. 'glyphDeltas' and 'metricDeltas' map glyph IDs to
	GlyphDeltaResult and MetricDeltaResult objects.
	"""

	def __init__(self, userCoords, normalizedCoords, tableScalars, sharedTupleScalars):
		self.userCoords = dict(userCoords)
		self.normalizedCoords = normalizedCoords
		self.tableScalars = tableScalars
		self.sharedTupleScalars = sharedTupleScalars
		self.glyphDeltas = OrderedDict()
		self.metricDeltas = OrderedDict()
		self.fontMetrics = OrderedDict()

	@property
	def regionScalars(self):
		for tag in metricVariationTags:
			if tag in self.tableScalars:
				return self.tableScalars[tag]
		return []

	def __repr__(self):
		return "<DeltaResult %r>" % (dict(self.normalizedCoords),)


class DeltaApplicator(object):

	""" Wires normalization, region matching and the two delta processors
	together for one font (any TableProvider).

	The variation tables are read with fontTools from a TTFont backed by
	the provider. Coordinates are normalized and matched once per call,
	however many glyphs the call covers.
	"""

	def __init__(self, font, normalizerConfig=None, regionConfig=None,
			glyphConfig=None, metricConfig=None):
		self.font = font
		self.ttFont = font.toTTFont()
		self.fvar = self._getTable("fvar")
		self.avar = self._getTable("avar")
		self.tables = OrderedDict()
		for tag in metricVariationTags:
			table = self._getTable(tag)
			if table is not None:
				self.tables[tag] = table

		self.normalizer = AxisNormalizer(self.fvar, self.avar, normalizerConfig)
		axisTags = self.axisTags()
		self.regionMatchers = OrderedDict()
		for tag, table in self.tables.items():
			if table.table.VarStore is not None:
				self.regionMatchers[tag] = RegionMatcher.fromVarStore(
					table.table.VarStore, axisTags, regionConfig)

		glyphOrder = []
		if self.tables or "gvar" in self.ttFont:
			glyphOrder = self.ttFont.getGlyphOrder()

		self.gvar = None
		self.glyphProcessor = None
		self.sharedTupleMatcher = None
		if "gvar" in self.ttFont:
			if "glyf" not in self.ttFont or "loca" not in self.ttFont:
				# gvar data can't be decoded without the point counts from glyf
				log.warning("'gvar' table without 'glyf' table; glyph deltas not applied")
			else:
				self.gvar = self.ttFont["gvar"]
				hmtx = None
				if "hmtx" in self.ttFont and "hhea" in self.ttFont:
					hmtx = self.ttFont["hmtx"]
				sharedTuples = readSharedTuples(self.gvar, axisTags, font.tableData("gvar"))
				self.glyphProcessor = GlyphDeltaProcessor(self.gvar, axisTags, glyphOrder,
					glyf=self.ttFont["glyf"], hmtx=hmtx, config=glyphConfig,
					sharedTuples=sharedTuples)
				self.sharedTupleMatcher = sharedTupleMatcher(sharedTuples, axisTags, regionConfig)

		self.metricProcessor = MetricDeltaProcessor(
			hvar=self.tables.get("HVAR"),
			vvar=self.tables.get("VVAR"),
			mvar=self.tables.get("MVAR"),
			config=metricConfig,
			glyphOrder=glyphOrder)

	def _getTable(self, tag):
		if tag in self.ttFont:
			return self.ttFont[tag]
		return None

	@property
	def regionMatcher(self):
		""" The matcher of the first metric table present, or None. """
		for matcher in self.regionMatchers.values():
			return matcher
		return None

	def isVariableFont(self):
		return self.fvar is not None

	def axes(self):
		""" Return {axisTag: {min, default, max, nameID}}; empty for a static
		font.
		"""
		result = OrderedDict()
		for tag in self.normalizer.axisTags():
			result[tag] = self.normalizer.axisInfo(tag)
		return result

	def axisTags(self):
		return self.normalizer.axisTags()

	def regionCount(self):
		matcher = self.regionMatcher
		return matcher.regionCount() if matcher is not None else 0

	def _checkVariable(self):
		if self.fvar is None:
			raise NotVariableFontError("font has no 'fvar' table (not a variable font)")

	def _prepare(self, userCoords):
		self._checkVariable()
		normalizedCoords = self.normalizer.normalize(userCoords)
		tableScalars = OrderedDict(
			(tag, matcher.match(normalizedCoords))
			for tag, matcher in self.regionMatchers.items())
		sharedTupleScalars = None
		if self.sharedTupleMatcher is not None:
			sharedTupleScalars = self.sharedTupleMatcher.match(normalizedCoords)
		return DeltaResult(userCoords, normalizedCoords, tableScalars, sharedTupleScalars)

	def _applyGlyph(self, result, glyphID):
		glyphDeltas = None
		if self.glyphProcessor is not None:
			glyphDeltas = self.glyphProcessor.applyDeltas(
				glyphID, result.sharedTupleScalars, result.normalizedCoords)
		metricDeltas = self.metricProcessor.applyDeltas(glyphID, result.tableScalars)
		return glyphDeltas, metricDeltas

	def apply(self, userCoords, glyphIDs=()):
		""" Return a DeltaResult with the font-wide metric deltas, plus the
		glyph and metric deltas of every glyph in 'glyphIDs'.
		"""
		result = self._prepare(userCoords)
		for glyphID in glyphIDs:
			glyphDeltas, metricDeltas = self._applyGlyph(result, glyphID)
			if glyphDeltas is not None:
				result.glyphDeltas[glyphID] = glyphDeltas
			result.metricDeltas[glyphID] = metricDeltas
		result.fontMetrics = self.metricProcessor.applyFontMetrics(result.tableScalars)
		return result

	def applyGlyph(self, glyphID, userCoords):
		""" Return {glyphID, normalizedCoords, outlineDeltas, metricDeltas}. """
		result = self._prepare(userCoords)
		glyphDeltas, metricDeltas = self._applyGlyph(result, glyphID)
		return {
			"glyphID": glyphID,
			"normalizedCoords": result.normalizedCoords,
			"outlineDeltas": glyphDeltas,
			"metricDeltas": metricDeltas,
		}

	def applyGlyphs(self, glyphIDs, userCoords):
		""" Return {glyphID: {outlineDeltas, metricDeltas}}. """
		result = self._prepare(userCoords)
		results = OrderedDict()
		for glyphID in glyphIDs:
			glyphDeltas, metricDeltas = self._applyGlyph(result, glyphID)
			results[glyphID] = {
				"outlineDeltas": glyphDeltas,
				"metricDeltas": metricDeltas,
			}
		return results

	def advanceWidthDelta(self, glyphID, userCoords):
		""" Advance width delta from HVAR, or from the gvar phantom points
		when the font has no HVAR.
		"""
		result = self._prepare(userCoords)
		if self.metricProcessor.hasHorizontal():
			return self.metricProcessor.applyDeltas(glyphID, result.tableScalars).advanceWidth
		if self.glyphProcessor is not None:
			glyphDeltas = self.glyphProcessor.applyDeltas(
				glyphID, result.sharedTupleScalars, result.normalizedCoords)
			if glyphDeltas is not None:
				return glyphDeltas.advanceWidthDelta
		return 0
