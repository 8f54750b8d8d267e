"""Big-endian binary primitives shared by the container readers and WOFF2.

Besides the fixed-width integers handled by the struct module, font data
uses two fixed-point number formats (F2DOT14 and 16.16 Fixed) and WOFF2
adds two variable-length integer encodings:

- UIntBase128: 7 bits per byte, most significant group first, the high
  bit of every byte but the last one set. At most 5 bytes, no leading
  zero bytes.
- 255UInt16: values below 253 take one byte. The codes 253, 254 and 255
  are followed by a uint16 that is added to 253, 506 and 759
  respectively.
"""

import array
import struct
import sys
from fontTools.misc.fixedTools import fixedToFloat, floatToFixed
from fontTools.misc.textTools import Tag
from sfntTools.ttLib import TruncatedDataError, InvalidEncodingError


base128MaxSize = 5

# 255UInt16 codes; each is followed by a uint16
wordCode = 253
oneMoreWordCode1 = 254
oneMoreWordCode2 = 255
lowestUCode = 253


def f2dot14ToFloat(value):
	return fixedToFloat(value, 14)

def floatToF2Dot14(value):
	return floatToFixed(value, 14)

def fixedToFloat16(value):
	return fixedToFloat(value, 16)

def floatToFixed16(value):
	return floatToFixed(value, 16)


class ByteReader(object):

	""" Cursor over an immutable byte string.

	Every read checks the remaining length first and raises
	TruncatedDataError naming the buffer ('name') when there isn't enough
	data, so a truncated table never yields garbage values.
	"""

	def __init__(self, data, pos=0, name="data"):
		self.data = data
		self.pos = pos
		self.name = name

	def tell(self):
		return self.pos

	def seek(self, pos):
		self.pos = pos

	def skip(self, size):
		self.read(size)

	@property
	def remaining(self):
		return len(self.data) - self.pos

	def atEnd(self):
		return self.pos >= len(self.data)

	def read(self, size):
		end = self.pos + size
		if size < 0 or end > len(self.data):
			raise TruncatedDataError(
				"%s too small: expected %d bytes at offset %d, found %d"
				% (self.name, size, self.pos, max(len(self.data) - self.pos, 0)))
		data = self.data[self.pos:end]
		self.pos = end
		return data

	def _unpack(self, fmt, size):
		value, = struct.unpack(fmt, self.read(size))
		return value

	def readUInt8(self):
		return self._unpack(">B", 1)

	def readInt8(self):
		return self._unpack(">b", 1)

	def readUInt16(self):
		return self._unpack(">H", 2)

	def readInt16(self):
		return self._unpack(">h", 2)

	def readUInt24(self):
		hi, lo = struct.unpack(">BH", self.read(3))
		return (hi << 16) | lo

	def readUInt32(self):
		return self._unpack(">L", 4)

	def readInt32(self):
		return self._unpack(">l", 4)

	def readUInt64(self):
		return self._unpack(">Q", 8)

	def readTag(self):
		return Tag(self.read(4))

	def readF2Dot14(self):
		return f2dot14ToFloat(self.readInt16())

	def readFixed(self):
		return fixedToFloat16(self.readInt32())

	def readArray(self, typecode, count):
		""" Read 'count' big-endian items of the given array typecode. """
		itemSize = array.array(typecode).itemsize
		values = array.array(typecode, self.read(itemSize * count))
		if sys.byteorder != "big":
			values.byteswap()
		return values

	def readUIntBase128(self):
		result = 0
		for i in range(base128MaxSize):
			code = self.readUInt8()
			# leading zero bytes make the encoding ambiguous
			if i == 0 and code == 0x80:
				raise InvalidEncodingError('UIntBase128 value must not start with leading zeros')
			# if any of the top seven bits are set then we're about to overflow
			if result & 0xFE000000:
				raise InvalidEncodingError('UIntBase128 value exceeds 2**32-1')
			result = (result << 7) | (code & 0x7f)
			if (code & 0x80) == 0:
				return result
		raise InvalidEncodingError('UIntBase128-encoded sequence is longer than 5 bytes')

	def read255UInt16(self):
		code = self.readUInt8()
		# leave as is if lower than 253
		if code < lowestUCode:
			return code
		if code == wordCode:
			base = lowestUCode
		elif code == oneMoreWordCode1:
			base = lowestUCode * 2
		else:
			base = lowestUCode * 3
		value = base + self.readUInt16()
		if value > 0xFFFF:
			raise InvalidEncodingError("255UInt16 value %d exceeds 65535" % value)
		return value


def unpackBase128(data):
	""" A UIntBase128 encoded number is a sequence of bytes for which the most
	significant bit is set for all but the last byte, and clear for the last byte.
	The number itself is base 128 encoded in the lower 7 bits of each byte.

	Return the decoded value plus the data left over.

		>>> unpackBase128(b'\\x3f\\x00')
		(63, b'\\x00')
		>>> unpackBase128(b'\\x81\\x00')
		(128, b'')
	"""
	reader = ByteReader(data, name="UIntBase128")
	result = reader.readUIntBase128()
	return result, data[reader.tell():]

def base128Size(n):
	""" Return the length in bytes of a UIntBase128-encoded sequence with value n.

		>>> base128Size(0)
		1
		>>> base128Size(24567)
		3
		>>> base128Size(2**32-1)
		5
	"""
	if n < 0:
		raise InvalidEncodingError("UIntBase128 format requires a non-negative integer value")
	size = 1
	while n >= 128:
		size += 1
		n >>= 7
	return size

def packBase128(n):
	""" Encode unsigned integer in range 0 to 2**32-1 (inclusive) to a string of
	bytes using UIntBase128 variable-length encoding. Produce the shortest possible
	encoding.

		>>> packBase128(63) == b"\\x3f"
		True
		>>> packBase128(2**32-1) == b'\\x8f\\xff\\xff\\xff\\x7f'
		True
	"""
	if n < 0 or n >= 2**32:
		raise InvalidEncodingError(
			"UIntBase128 format requires 0 <= integer <= 2**32-1")
	data = b''
	size = base128Size(n)
	for i in range(size):
		b = (n >> (7 * (size - i - 1))) & 0x7f
		if i < size - 1:
			b |= 0x80
		data += struct.pack('B', b)
	return data

def unpack255UInt16(data):
	""" Read one to three bytes from 255UInt16-encoded input string, and return
	the decoded value plus the data left over.

		>>> unpack255UInt16(bytes([252]))[0]
		252
		>>> unpack255UInt16(bytes([253, 0, 10]))[0]
		263
		>>> unpack255UInt16(bytes([254, 0, 0]))[0]
		506
		>>> unpack255UInt16(bytes([255, 0, 1]))[0]
		760
	"""
	reader = ByteReader(data, name="255UInt16")
	result = reader.read255UInt16()
	return result, data[reader.tell():]

def pack255UInt16(value):
	""" Encode unsigned integer in range 0 to 65535 (inclusive) to a bytestring
	using 255UInt16 variable-length encoding. Values of 253 and above are
	always written with the 253 code.

		>>> pack255UInt16(252) == b'\\xfc'
		True
		>>> pack255UInt16(263) == b'\\xfd\\x00\\x0a'
		True
		>>> pack255UInt16(65535) == b'\\xfd\\xff\\x02'
		True
	"""
	if value < 0 or value > 0xFFFF:
		raise InvalidEncodingError(
			"255UInt16 format requires 0 <= integer <= 65535")
	if value < lowestUCode:
		return struct.pack(">B", value)
	return struct.pack(">BH", wordCode, value - lowestUCode)


def packArray(typecode, values):
	""" Pack a sequence of numbers as big-endian items of 'typecode'. """
	values = array.array(typecode, values)
	if sys.byteorder != "big":
		values.byteswap()
	return values.tobytes()


def calcPaddingSize(size, alignment=4):
	return (alignment - size % alignment) % alignment


if __name__ == "__main__":
	import doctest
	sys.exit(doctest.testmod().failed)
