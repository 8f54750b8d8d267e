"""Metric deltas from the HVAR, VVAR and MVAR item variation stores.

Each table owns its own region list, so region scalars can be passed
either as one list (used for every table) or as a {tableTag: scalars}
dict.
"""

from collections import OrderedDict
from fontTools.ttLib.tables.otTables import NO_VARIATION_INDEX
from sfntTools.varLib import getRoundingFunction
import logging


log = logging.getLogger(__name__)


class MetricDeltaConfig(object):

	def __init__(self, roundingMode="round"):
		self.roundingMode = roundingMode


class MetricDeltaResult(object):

	""" Per-glyph metric deltas. 'horizontal' is {advanceWidth, lsb, rsb}
	when the font has HVAR, 'vertical' is {advanceHeight, tsb, bsb, vorg}
	when it has VVAR; either is None otherwise.
	"""

	def __init__(self, glyphID, horizontal=None, vertical=None):
		self.glyphID = glyphID
		self.horizontal = horizontal
		self.vertical = vertical

	@property
	def advanceWidth(self):
		return self.horizontal["advanceWidth"] if self.horizontal else 0

	@property
	def lsb(self):
		return self.horizontal["lsb"] if self.horizontal else 0

	def isEmpty(self):
		return self.horizontal is None and self.vertical is None

	def __repr__(self):
		return "<MetricDeltaResult glyph=%d horizontal=%r vertical=%r>" % (
			self.glyphID, self.horizontal, self.vertical)


horizontalMetrics = (
	("advanceWidth", "AdvWidthMap"),
	("lsb", "LsbMap"),
	("rsb", "RsbMap"),
)

verticalMetrics = (
	("advanceHeight", "AdvHeightMap"),
	("tsb", "TsbMap"),
	("bsb", "BsbMap"),
	("vorg", "VOrgMap"),
)

metricsAdvanceMaps = {"HVAR": "AdvWidthMap", "VVAR": "AdvHeightMap"}


def expandDeltaSet(varStore, varIdx):
	""" Return the deltas of item 'varIdx' ((outer << 16) | inner) of an
	otTables VarStore, one per region of its region list; regions the
	item's subtable doesn't reference get 0. Return None for
	NO_VARIATION_INDEX or an item the store doesn't have.
	"""
	if varStore is None or varIdx is None or varIdx == NO_VARIATION_INDEX:
		return None
	outer, inner = varIdx >> 16, varIdx & 0xFFFF
	if outer >= len(varStore.VarData):
		log.warning("variation index %d:%d refers to missing subtable", outer, inner)
		return None
	varData = varStore.VarData[outer]
	if inner >= len(varData.Item):
		log.warning("variation index %d:%d refers to missing item", outer, inner)
		return None
	deltas = [0] * len(varStore.VarRegionList.Region)
	for regionIndex, delta in zip(varData.VarRegionIndex, varData.Item[inner]):
		if regionIndex < len(deltas):
			deltas[regionIndex] = delta
	return deltas


class MetricDeltaProcessor(object):

	""" Evaluates the fontTools HVAR, VVAR and MVAR tables of a font.
	Glyph IDs index 'glyphOrder', since the delta-set maps are keyed by
	glyph name.
	"""

	def __init__(self, hvar=None, vvar=None, mvar=None, config=None, glyphOrder=()):
		self.hvar = hvar
		self.vvar = vvar
		self.mvar = mvar
		self.glyphOrder = list(glyphOrder)
		self.config = config if config is not None else MetricDeltaConfig()
		self.round = getRoundingFunction(self.config.roundingMode)

	def hasHorizontal(self):
		return self.hvar is not None

	def hasVertical(self):
		return self.vvar is not None

	def hasFontMetrics(self):
		return self.mvar is not None and self.mvar.table.VarStore is not None

	def accumulate(self, deltaSet, regionScalars):
		""" Sum of delta * scalar over the regions both lists cover, rounded.

		>>> MetricDeltaProcessor().accumulate([10, 20, 30], [0.5, 0.25])
		10
		"""
		total = 0.0
		for delta, scalar in zip(deltaSet, regionScalars):
			if scalar:
				total += delta * scalar
		return self.round(total)

	def applyDeltas(self, glyphID, regionScalars):
		""" Return the MetricDeltaResult of 'glyphID'. """
		horizontal = vertical = None
		if self.hvar is not None:
			scalars = _scalarsFor(regionScalars, "HVAR")
			horizontal = self._collect(self.hvar.table, horizontalMetrics, glyphID, scalars)
		if self.vvar is not None:
			scalars = _scalarsFor(regionScalars, "VVAR")
			vertical = self._collect(self.vvar.table, verticalMetrics, glyphID, scalars)
		return MetricDeltaResult(glyphID, horizontal, vertical)

	def _varIdx(self, table, mapName, glyphID):
		varIdxMap = getattr(table, mapName, None)
		if varIdxMap is None:
			# without an advance map, glyph IDs index the first subtable
			if mapName == metricsAdvanceMaps.get(table.__class__.__name__):
				return glyphID
			return None
		if not 0 <= glyphID < len(self.glyphOrder):
			return None
		return varIdxMap.mapping.get(self.glyphOrder[glyphID])

	def _collect(self, table, metrics, glyphID, scalars):
		result = OrderedDict()
		for name, mapName in metrics:
			deltaSet = expandDeltaSet(table.VarStore, self._varIdx(table, mapName, glyphID))
			result[name] = self.accumulate(deltaSet, scalars) if deltaSet else 0
		return result

	def applyFontMetrics(self, regionScalars):
		""" Return {valueTag: delta} for every MVAR value record. """
		result = OrderedDict()
		if not self.hasFontMetrics():
			return result
		scalars = _scalarsFor(regionScalars, "MVAR")
		table = self.mvar.table
		for record in sorted(table.ValueRecord or [], key=lambda r: r.ValueTag):
			deltaSet = expandDeltaSet(table.VarStore, record.VarIdx)
			result[record.ValueTag] = self.accumulate(deltaSet, scalars) if deltaSet else 0
		return result


def _scalarsFor(regionScalars, tableTag):
	if isinstance(regionScalars, dict):
		return regionScalars.get(tableTag) or []
	return regionScalars or []
