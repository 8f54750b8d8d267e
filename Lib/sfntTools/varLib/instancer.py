"""Instantiate a variable font at one position of its design space.

Usage:

>>> from sfntTools.ttLib.sfntFont import SFNTFont
>>> from sfntTools.varLib.instancer import Instancer
>>> font = SFNTFont.fromFile("MyFont-VF.ttf")  # doctest: +SKIP
>>> data = Instancer(font).instance({"wght": 700})  # doctest: +SKIP
>>> data = Instancer(font).instanceNamed("Bold")  # doctest: +SKIP
"""

from collections import OrderedDict
from sfntTools.varLib.errors import (UnknownAxisError, InvalidCoordinatesError,
	NamedInstanceNotFoundError)
from sfntTools.varLib.deltaApplicator import DeltaApplicator
from sfntTools.varLib.staticBuilder import StaticFontBuilder
import logging


log = logging.getLogger(__name__)


class Instancer(object):

	""" Builds static fonts from the variable 'font' (any TableProvider).

	The optional config objects are passed on to the DeltaApplicator.
	"""

	def __init__(self, font, normalizerConfig=None, regionConfig=None,
			glyphConfig=None, metricConfig=None):
		self.font = font
		self.normalizerConfig = normalizerConfig
		self.regionConfig = regionConfig
		self.glyphConfig = glyphConfig
		self.metricConfig = metricConfig
		self.applicator = DeltaApplicator(font, normalizerConfig, regionConfig,
			glyphConfig, metricConfig)

	def axes(self):
		return self.applicator.axes()

	def axisTags(self):
		return self.applicator.axisTags()

	def namedInstances(self):
		""" Return a list of {nameID, name, coordinates, postscriptNameID},
		one per fvar named instance, in fvar order.
		"""
		fvar = self.applicator.fvar
		if fvar is None:
			return []
		ttFont = self.applicator.ttFont
		nameTable = ttFont["name"] if "name" in ttFont else None
		result = []
		for instance in fvar.instances:
			name = None
			if nameTable is not None:
				name = nameTable.getDebugName(instance.subfamilyNameID)
			if name is None:
				name = "Instance %d" % instance.subfamilyNameID
			result.append({
				"nameID": instance.subfamilyNameID,
				"name": name,
				"coordinates": dict(instance.coordinates),
				"postscriptNameID": _optionalNameID(instance.postscriptNameID),
			})
		return result

	def instance(self, userCoords, updateModified=True, applyGlyphDeltas=True,
			clampCoordinates=False):
		""" Return the static font at 'userCoords' ({axisTag: user value})
		as sfnt bytes. Axes left out stay at their default.

		Unknown axis tags raise UnknownAxisError; out-of-range values raise
		InvalidCoordinatesError unless 'clampCoordinates' is true.
		"""
		self.applicator._checkVariable()
		userCoords = self._checkCoordinates(userCoords, clampCoordinates)
		numGlyphs = self._numGlyphs()
		result = self.applicator.apply(userCoords, range(numGlyphs))
		log.info("instancing at %s", ", ".join(
			"%s=%s" % (tag, value) for tag, value in result.normalizedCoords.items()))

		variedMetrics = self._collectMetrics(result, numGlyphs)
		glyphDeltas = result.glyphDeltas if applyGlyphDeltas else None
		builder = StaticFontBuilder(self.font)
		return builder.build(variedMetrics, result.fontMetrics, glyphDeltas,
			updateModified=updateModified)

	def instanceNamed(self, name, **kwargs):
		""" Instantiate the named instance whose subfamily name is exactly
		'name'. Keyword arguments are those of instance().
		"""
		named = self.namedInstances()
		for instance in named:
			if instance["name"] == name:
				return self.instance(instance["coordinates"], **kwargs)
		raise NamedInstanceNotFoundError(name, [i["name"] for i in named])

	def instanceToFile(self, path, userCoords, **kwargs):
		data = self.instance(userCoords, **kwargs)
		with open(path, "wb") as f:
			f.write(data)

	def instanceNamedToFile(self, path, name, **kwargs):
		data = self.instanceNamed(name, **kwargs)
		with open(path, "wb") as f:
			f.write(data)

	def _checkCoordinates(self, userCoords, clampCoordinates):
		axes = self.applicator.normalizer.axes
		checked = OrderedDict()
		for tag, value in userCoords.items():
			axis = axes.get(tag)
			if axis is None:
				raise UnknownAxisError(tag, axes.keys())
			if not axis.minValue <= value <= axis.maxValue:
				if not clampCoordinates:
					raise InvalidCoordinatesError(tag, value, axis.minValue, axis.maxValue)
				value = max(axis.minValue, min(axis.maxValue, value))
			checked[tag] = value
		return checked

	def _numGlyphs(self):
		ttFont = self.applicator.ttFont
		return ttFont["maxp"].numGlyphs if "maxp" in ttFont else 0

	def _collectMetrics(self, result, numGlyphs):
		""" Return {glyphID: {advanceWidth, lsb}} with the varied absolute
		metrics; empty when the font lacks hmtx, hhea or maxp.
		"""
		ttFont = self.applicator.ttFont
		if not ("hmtx" in ttFont and "hhea" in ttFont and "maxp" in ttFont):
			log.warning("font has no horizontal metrics; hmtx left unchanged")
			return {}
		hmtx = ttFont["hmtx"]
		glyphOrder = ttFont.getGlyphOrder()
		hvar = self.applicator.tables.get("HVAR")
		hasLsbDeltas = hvar is not None and hvar.table.LsbMap is not None
		variedMetrics = {}
		for glyphID in range(min(numGlyphs, len(glyphOrder))):
			advanceWidth, lsb = hmtx[glyphOrder[glyphID]]
			metricDeltas = result.metricDeltas.get(glyphID)
			glyphDeltas = result.glyphDeltas.get(glyphID)
			if hvar is not None:
				advanceDelta = metricDeltas.advanceWidth if metricDeltas else 0
			elif glyphDeltas is not None:
				advanceDelta = glyphDeltas.advanceWidthDelta
			else:
				advanceDelta = 0
			metrics = {"advanceWidth": advanceWidth + advanceDelta}
			# otherwise the static builder takes lsb from the new xMin
			if hasLsbDeltas and metricDeltas is not None:
				metrics["lsb"] = lsb + metricDeltas.lsb
			variedMetrics[glyphID] = metrics
		return variedMetrics


def _optionalNameID(nameID):
	# 0xFFFF marks an fvar instance without a PostScript name
	if nameID is None or nameID == 0xFFFF:
		return None
	return nameID
