"""Point deltas of one glyph from its 'gvar' tuple variations.

Each tuple variation is scaled by its scalar at the current position and
the scaled deltas are summed per point. The last four points of every
glyph are the phantom points (left and right side bearing, top and bottom
origin), so horizontal advance deltas fall out of the same computation.
"""

from fontTools.varLib.iup import iup_delta
from fontTools.ttLib.tables.TupleVariation import decompileSharedTuples
from sfntTools.varLib import VarLibError, getRoundingFunction
from sfntTools.varLib.regions import RegionMatcher, axisScalar
import logging


log = logging.getLogger(__name__)

ZERO_SCALAR = 1e-9


class GlyphDeltaConfig(object):

	def __init__(self, processPhantomPoints=True, phantomPointCount=4,
			roundingMode="round", interpolateUntouched=True):
		self.processPhantomPoints = processPhantomPoints
		self.phantomPointCount = phantomPointCount
		self.roundingMode = roundingMode
		self.interpolateUntouched = interpolateUntouched


class GlyphDeltaResult(object):

	""" Rounded deltas of one glyph: 'xDeltas'/'yDeltas' for the outline
	points (component offsets for composite glyphs), 'phantomDeltas' as
	(dx, dy) pairs for the phantom points.
	"""

	def __init__(self, glyphID, xDeltas, yDeltas, phantomDeltas):
		self.glyphID = glyphID
		self.xDeltas = xDeltas
		self.yDeltas = yDeltas
		self.phantomDeltas = phantomDeltas

	@property
	def advanceWidthDelta(self):
		if len(self.phantomDeltas) < 2:
			return 0
		return self.phantomDeltas[1][0] - self.phantomDeltas[0][0]

	@property
	def lsbDelta(self):
		# moving the left phantom point by dx moves the outline by -dx
		# relative to the origin
		if not self.phantomDeltas:
			return 0
		return -self.phantomDeltas[0][0]

	def pointDeltas(self):
		return list(zip(self.xDeltas, self.yDeltas))

	def __repr__(self):
		return "<GlyphDeltaResult glyph=%d points=%d>" % (self.glyphID, len(self.xDeltas))


def readSharedTuples(gvar, axisTags, data):
	""" Return the peaks of the gvar shared tuples as {axisTag: value}
	dicts. 'data' is the raw 'gvar' table the 'gvar' object came from.
	"""
	if not getattr(gvar, "sharedTupleCount", 0):
		return []
	return decompileSharedTuples(list(axisTags), gvar.sharedTupleCount, data,
		gvar.offsetToSharedTuples)


def peakSupport(peak):
	""" The region of a non-intermediate tuple: from 0 to its peak on each
	axis the peak moves along.

	>>> peakSupport({"wght": 1.0, "wdth": 0.0})
	{'wght': (0.0, 1.0, 1.0)}
	>>> peakSupport({"wght": -0.5})
	{'wght': (-0.5, -0.5, 0.0)}
	"""
	return {tag: (min(value, 0.0), value, max(value, 0.0))
		for tag, value in peak.items() if value != 0.0}


def isIntermediate(variation):
	for start, peak, end in variation.axes.values():
		if (start, end) != (min(peak, 0.0), max(peak, 0.0)):
			return True
	return False


def sharedTupleMatcher(sharedTuples, axisTags, config=None):
	""" A RegionMatcher over the gvar shared tuples (see readSharedTuples),
	whose regions span from 0 to each peak.
	"""
	return RegionMatcher([peakSupport(peak) for peak in sharedTuples], axisTags, config)


class GlyphDeltaProcessor(object):

	""" Applies the variations of a fontTools 'gvar' table.

	Glyph IDs index 'glyphOrder'. 'glyf' and 'hmtx' are the font's
	fontTools tables when it has them; they provide the outline used to
	infer the deltas of points a tuple leaves out. 'sharedTuples' are the
	gvar shared peaks in the order the shared tuple scalars come in.
	"""

	def __init__(self, gvar, axisTags, glyphOrder, glyf=None, hmtx=None, config=None,
			sharedTuples=()):
		self.gvar = gvar
		self.axisTags = list(axisTags)
		self.glyphOrder = list(glyphOrder)
		self.glyf = glyf
		self.hmtx = hmtx
		self.config = config if config is not None else GlyphDeltaConfig()
		self.round = getRoundingFunction(self.config.roundingMode)
		self._sharedIndices = {}
		for index, peak in enumerate(sharedTuples):
			self._sharedIndices.setdefault(self._peakKey(peak), index)

	def _peakKey(self, peak):
		return tuple(peak.get(tag, 0.0) for tag in self.axisTags)

	def _glyphName(self, glyphID):
		if 0 <= glyphID < len(self.glyphOrder):
			return self.glyphOrder[glyphID]
		return None

	def _getVariations(self, glyphID):
		glyphName = self._glyphName(glyphID)
		if self.gvar is None or glyphName is None:
			return glyphName, []
		return glyphName, self.gvar.variations.get(glyphName) or []

	def hasVariations(self, glyphID):
		return bool(self._getVariations(glyphID)[1])

	def applyDeltas(self, glyphID, regionScalars=None, normalizedCoords=None):
		""" Return a GlyphDeltaResult, or None when the glyph doesn't vary.

		'regionScalars' are the scalars of the shared tuples (see
		sharedTupleMatcher); tuples with an embedded peak or an
		intermediate region are evaluated at 'normalizedCoords'.
		"""
		glyphName, variations = self._getVariations(glyphID)
		if not variations:
			return None
		origCoords, endPts = self._getOutline(glyphName)
		if origCoords is not None:
			numPoints = len(origCoords)
		else:
			numPoints = max(len(variation.coordinates) for variation in variations)
		xTotals = [0.0] * numPoints
		yTotals = [0.0] * numPoints
		for variation in variations:
			scalar = self._tupleScalar(variation, regionScalars, normalizedCoords)
			if abs(scalar) < ZERO_SCALAR:
				log.debug("glyph %d: skipped tuple %r with zero scalar", glyphID, variation)
				continue
			for point, (dx, dy) in enumerate(self._expandDeltas(variation, numPoints, origCoords, endPts)):
				xTotals[point] += dx * scalar
				yTotals[point] += dy * scalar

		xDeltas = [self.round(v) for v in xTotals]
		yDeltas = [self.round(v) for v in yTotals]
		phantomCount = min(self.config.phantomPointCount, numPoints)
		outlineCount = numPoints - phantomCount
		if self.config.processPhantomPoints:
			phantomDeltas = list(zip(xDeltas[outlineCount:], yDeltas[outlineCount:]))
		else:
			phantomDeltas = []
		return GlyphDeltaResult(glyphID, xDeltas[:outlineCount], yDeltas[:outlineCount],
			phantomDeltas)

	def _sharedIndex(self, variation):
		if isIntermediate(variation):
			return None
		peak = {tag: region[1] for tag, region in variation.axes.items()}
		return self._sharedIndices.get(self._peakKey(peak))

	def _tupleScalar(self, variation, regionScalars, normalizedCoords):
		if regionScalars is not None:
			index = self._sharedIndex(variation)
			if index is not None and index < len(regionScalars):
				return regionScalars[index]
		if normalizedCoords is None:
			raise VarLibError(
				"tuple variation with embedded or intermediate region needs normalized coordinates")
		scalar = 1.0
		for tag, (start, peak, end) in variation.axes.items():
			scalar *= axisScalar(normalizedCoords.get(tag, 0.0), start, peak, end)
			if scalar == 0.0:
				break
		return scalar

	def _getOutline(self, glyphName):
		""" Return (coordinates including the four phantom points, endPts),
		or (None, None) without a 'glyf' table.
		"""
		if self.glyf is None or glyphName not in self.glyf.glyphs:
			return None, None
		if self.hmtx is not None and glyphName in self.hmtx.metrics:
			hMetrics = self.hmtx.metrics
		else:
			hMetrics = {glyphName: (0, 0)}
		coords, controls = self.glyf._getCoordinatesAndControls(glyphName, hMetrics)
		return coords, controls.endPts

	def _expandDeltas(self, variation, numPoints, origCoords, endPts):
		""" Return one (dx, dy) per point for 'variation'; None marks a point
		the tuple leaves out.
		"""
		deltas = variation.coordinates
		if len(deltas) != numPoints:
			raise VarLibError("tuple has %d deltas for a glyph with %d points"
				% (len(deltas), numPoints))
		if None not in deltas:
			return deltas
		if origCoords is not None and self.config.interpolateUntouched:
			return iup_delta(deltas, origCoords, endPts)
		return [d if d is not None else (0, 0) for d in deltas]
