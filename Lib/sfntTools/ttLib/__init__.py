"""sfntTools.ttLib -- low-level access to sfnt font data.

The modules in this package read and write the binary containers fonts
travel in (plain sfnt, TrueType/OpenType Collections and WOFF2). Table contents are
parsed by fontTools, through SFNTFont.toTTFont().

Every error raised by the package derives from TTLibError.
"""

import logging


log = logging.getLogger(__name__)


class TTLibError(Exception): pass

class InvalidFontError(TTLibError): pass

class CorruptedTableError(TTLibError): pass

class TruncatedDataError(CorruptedTableError, EOFError): pass

class InvalidEncodingError(TTLibError): pass

class MissingTableError(TTLibError, KeyError):

	def __str__(self):
		# KeyError would repr() the message
		return Exception.__str__(self)

class CollectionError(TTLibError): pass

class InvalidCollectionFormatError(CollectionError, ValueError): pass


def getSearchRange(n, itemSize=16):
	"""Calculate searchRange, entrySelector, rangeShift.

		>>> getSearchRange(10)
		(128, 3, 32)
		>>> getSearchRange(0)
		(16, 0, 0)
	"""
	exponent = maxPowerOfTwo(n)
	searchRange = (2 ** exponent) * itemSize
	entrySelector = exponent
	rangeShift = max(0, n * itemSize - searchRange)
	return searchRange, entrySelector, rangeShift


def maxPowerOfTwo(x):
	"""Return the highest exponent of two, so that
	(2 ** exponent) <= x.  Return 0 if x is 0.
	"""
	exponent = 0
	while x:
		x = x >> 1
		exponent = exponent + 1
	return max(exponent - 1, 0)
