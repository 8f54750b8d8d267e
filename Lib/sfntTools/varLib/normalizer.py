"""Map user-space axis values (wght=700) to normalized coordinates.

Normalized coordinates run from -1.0 (axis minimum) through 0.0 (axis
default) to 1.0 (axis maximum), linear on each side of the default. When
the font has an 'avar' table its segment maps are applied afterwards.
"""

from collections import OrderedDict
from fontTools.varLib.models import piecewiseLinearMap
from sfntTools.varLib.errors import UnknownAxisError, InvalidCoordinatesError
import logging


log = logging.getLogger(__name__)


class AxisNormalizerConfig(object):

	def __init__(self, useAxisDefaults=True, clampCoordinates=True,
			validateCoordinates=True, precision=6, applyAvar=True):
		self.useAxisDefaults = useAxisDefaults
		self.clampCoordinates = clampCoordinates
		self.validateCoordinates = validateCoordinates
		self.precision = precision
		self.applyAvar = applyAvar

	def __repr__(self):
		return "%s(%s)" % (self.__class__.__name__, ", ".join(
			"%s=%r" % item for item in sorted(self.__dict__.items())))


def normalizeValue(value, triple):
	""" Normalize 'value' against a (min, default, max) axis triple.

	>>> normalizeValue(400, (100, 400, 900))
	0.0
	>>> normalizeValue(100, (100, 400, 900))
	-1.0
	>>> normalizeValue(650, (100, 400, 900))
	0.5
	>>> normalizeValue(900, (400, 400, 900))
	1.0
	>>> normalizeValue(100, (400, 400, 900))
	0.0
	"""
	lower, default, upper = triple
	if value == default:
		return 0.0
	if value < default:
		if default == lower:
			return 0.0
		return (value - default) / (default - lower)
	if upper == default:
		return 0.0
	return (value - default) / (upper - default)


class AxisNormalizer(object):

	""" Normalizes coordinates against the axes of an 'fvar' table. 'avar'
	is the font's fontTools avar table, if any.
	"""

	def __init__(self, fvar, avar=None, config=None):
		self.fvar = fvar
		self.avar = avar
		self.config = config if config is not None else AxisNormalizerConfig()
		self.axes = OrderedDict()
		if fvar is not None:
			for axis in fvar.axes:
				self.axes[axis.axisTag] = axis

	def axisTags(self):
		return list(self.axes.keys())

	def axisInfo(self, axisTag):
		""" Return {min, default, max, nameID} for 'axisTag', or None. """
		axis = self.axes.get(axisTag)
		if axis is None:
			return None
		return {
			"min": axis.minValue,
			"default": axis.defaultValue,
			"max": axis.maxValue,
			"nameID": axis.axisNameID,
		}

	def normalize(self, userCoords):
		""" Return {axisTag: normalized value} for the font's axes. Axes the
		caller left out get their default position unless useAxisDefaults
		is off, in which case they're left out of the result.
		"""
		for tag in userCoords:
			if tag not in self.axes:
				raise UnknownAxisError(tag, self.axes.keys())
		result = OrderedDict()
		for tag, axis in self.axes.items():
			value = userCoords.get(tag)
			if value is None:
				if not self.config.useAxisDefaults:
					continue
				value = axis.defaultValue
			result[tag] = self._normalize(axis, value)
		return result

	def normalizeAxis(self, value, axisTag):
		axis = self.axes.get(axisTag)
		if axis is None:
			raise UnknownAxisError(axisTag, self.axes.keys())
		return self._normalize(axis, value)

	def _normalize(self, axis, value):
		value = self._validate(axis, float(value))
		normalized = normalizeValue(value,
			(axis.minValue, axis.defaultValue, axis.maxValue))
		if self.config.applyAvar and self.avar is not None:
			segments = self.avar.segments.get(axis.axisTag)
			# a map needs at least two points to define a segment
			if segments and len(segments) >= 2:
				normalized = piecewiseLinearMap(normalized, segments)
		normalized = max(-1.0, min(1.0, normalized))
		if self.config.precision is not None:
			normalized = round(normalized, self.config.precision)
		# avoid -0.0 leaking into cache keys
		return normalized + 0.0

	def _validate(self, axis, value):
		if axis.minValue <= value <= axis.maxValue:
			return value
		if self.config.clampCoordinates:
			clamped = max(axis.minValue, min(axis.maxValue, value))
			log.debug("clamped %s=%s to %s", axis.axisTag, value, clamped)
			return clamped
		if self.config.validateCoordinates:
			raise InvalidCoordinatesError(axis.axisTag, value, axis.minValue, axis.maxValue)
		return value
