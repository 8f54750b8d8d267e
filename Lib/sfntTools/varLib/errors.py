from sfntTools.ttLib import TTLibError


class VarLibError(TTLibError):
	"""Base exception for the variation module."""


class NotVariableFontError(VarLibError):
	"""The font has no 'fvar' table."""


class VariationArgumentError(VarLibError, ValueError):
	"""The caller passed coordinates or names the font can't honour."""


class UnknownAxisError(VariationArgumentError):
	def __init__(self, axisTag, knownTags=()):
		self.axisTag = axisTag
		self.knownTags = list(knownTags)
		super().__init__(axisTag)

	def __str__(self):
		known = ", ".join(repr(str(tag)) for tag in self.knownTags)
		return "Unknown axis %r (font axes: %s)" % (str(self.axisTag), known or "none")


class InvalidCoordinatesError(VariationArgumentError):
	def __init__(self, axisTag, value, minValue, maxValue):
		self.axisTag = axisTag
		self.value = value
		self.minValue = minValue
		self.maxValue = maxValue
		super().__init__(axisTag, value)

	def __str__(self):
		return "Coordinate %s=%s out of range [%s, %s]" % (
			self.axisTag, self.value, self.minValue, self.maxValue)


class NamedInstanceNotFoundError(VariationArgumentError):
	def __init__(self, name, available=()):
		self.name = name
		self.available = list(available)
		super().__init__(name)

	def __str__(self):
		return "Named instance %r not found (available: %s)" % (
			self.name, ", ".join(repr(n) for n in self.available) or "none")
