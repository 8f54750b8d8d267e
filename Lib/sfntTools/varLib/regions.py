"""Region scalars: how much each region of a variation store contributes at
a given position in the design space.

A region has a (start, peak, end) triple per axis. Its scalar is the
product of the per-axis contributions: 1.0 at the peak, falling linearly
to 0.0 at start and end, and 0.0 outside [start, end]. Axes whose peak is
0 don't constrain the region.
"""

from collections import OrderedDict
import logging


log = logging.getLogger(__name__)

EPSILON = 1e-9


class RegionMatcherConfig(object):

	def __init__(self, cacheScalars=True, minScalarThreshold=0.0001, maxCacheSize=None):
		self.cacheScalars = cacheScalars
		self.minScalarThreshold = minScalarThreshold
		self.maxCacheSize = maxCacheSize


def axisScalar(coord, start, peak, end):
	""" Contribution of one axis of a region.

	>>> axisScalar(0.5, 0.0, 1.0, 1.0)
	0.5
	>>> axisScalar(1.0, 0.0, 1.0, 1.0)
	1.0
	>>> axisScalar(-0.5, 0.0, 1.0, 1.0)
	0.0
	>>> axisScalar(0.25, 0.0, 0.5, 1.0)
	0.5
	>>> axisScalar(0.75, 0.0, 0.5, 1.0)
	0.5
	>>> axisScalar(0.3, -1.0, 0.0, 1.0)
	1.0
	>>> axisScalar(0.9, 0.5, 0.2, 0.6)
	0.0
	"""
	if peak == 0.0:
		return 1.0
	if coord < start or coord > end:
		return 0.0
	if start > peak or peak > end:
		return 1.0
	if start < 0.0 < end:
		return 1.0
	if abs(coord - peak) <= EPSILON:
		return 1.0
	if coord < peak:
		if peak == start:
			return 1.0
		return (coord - start) / (peak - start)
	if end == peak:
		return 1.0
	return (end - coord) / (end - peak)


def cacheKey(coords):
	""" Canonical key of a coordinate set: 'tag:value' pairs sorted by tag.

	>>> cacheKey({"wght": 0.5, "wdth": -1.0})
	'wdth:-1.0|wght:0.5'
	"""
	return "|".join("%s:%r" % (tag, float(coords[tag])) for tag in sorted(coords))


def regionSupport(region, axisTags):
	""" Return {axisTag: (start, peak, end)} for a region dict or an otTables
	VarRegion. Axes with a zero peak are left out.
	"""
	if isinstance(region, dict):
		return dict(region)
	support = OrderedDict()
	for tag, axis in zip(axisTags, region.VarRegionAxis):
		if axis.PeakCoord != 0.0:
			support[tag] = (axis.StartCoord, axis.PeakCoord, axis.EndCoord)
	return support


class RegionMatcher(object):

	""" Computes region scalars for a region list.

	'regions' holds otTables VarRegion objects (their VarRegionAxis
	records in 'axisTags' order) or {axisTag: (start, peak, end)} dicts.
	"""

	def __init__(self, regions, axisTags=(), config=None):
		self.axisTags = list(axisTags)
		self.config = config if config is not None else RegionMatcherConfig()
		self.supports = []
		for region in regions:
			self.supports.append(regionSupport(region, self.axisTags))
		self._cache = OrderedDict()

	@classmethod
	def fromVarStore(cls, varStore, axisTags, config=None):
		return cls(varStore.VarRegionList.Region, axisTags, config)

	def regionCount(self):
		return len(self.supports)

	def match(self, normalizedCoords):
		""" Return one scalar per region, index-aligned with the region list. """
		key = None
		if self.config.cacheScalars:
			key = cacheKey(normalizedCoords)
			scalars = self._cache.get(key)
			if scalars is not None:
				log.debug("region scalar cache hit for %s", key)
				return list(scalars)
		scalars = [self._scalar(support, normalizedCoords) for support in self.supports]
		if key is not None:
			self._cache[key] = scalars
			maxSize = self.config.maxCacheSize
			if maxSize is not None:
				while len(self._cache) > maxSize:
					self._cache.popitem(last=False)
		return list(scalars)

	def matchRegion(self, index, normalizedCoords):
		if not 0 <= index < len(self.supports):
			raise IndexError("region index %d out of range (%d regions)"
				% (index, len(self.supports)))
		return self._scalar(self.supports[index], normalizedCoords)

	def clearCache(self):
		self._cache.clear()

	def cacheSize(self):
		return len(self._cache)

	def _scalar(self, support, coords):
		scalar = 1.0
		for tag, (start, peak, end) in support.items():
			scalar *= axisScalar(coords.get(tag, 0.0), start, peak, end)
			if scalar == 0.0:
				return 0.0
		if scalar < self.config.minScalarThreshold:
			return 0.0
		return scalar
