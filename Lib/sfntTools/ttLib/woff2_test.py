from io import BytesIO
from collections import OrderedDict
from unittest import mock
from fontTools.misc import sstruct
from fontTools.pens.ttGlyphPen import TTGlyphPen
from fontTools.ttLib.tables._g_l_y_f import flagOverlapSimple
from sfntTools.ttLib import TTLibError, InvalidFontError
from sfntTools.ttLib.sfntFont import SFNTFont
from sfntTools.ttLib.woff2 import (WOFF2Reader, WOFF2Writer, WOFF2FlavorData,
	WOFF2DirectoryEntry, WOFF2GlyfTransform, WOFF2HmtxTransform,
	woff2DirectoryFormat, woff2DirectorySize, woff2GlyfTableFormat,
	woff2GlyfTableFormatSize, woff2KnownTags, woff2CustomTagIndex,
	encodeTriplet, decodeTriplets)
from sfntTools.misc.binaryTools import ByteReader, packBase128, pack255UInt16
from sfntTools.misc.testTools import makeTables, makeSimpleGlyph
import struct
import unittest
import brotli


TABLES = makeTables()


def compileWOFF2(tables, transformTables=("glyf", "loca"), flavorData=None):
	file = BytesIO()
	writer = WOFF2Writer(file, len(tables), flavorData=flavorData,
		transformTables=transformTables)
	for tag in sorted(tables):
		writer[tag] = tables[tag]
	writer.close()
	return file.getvalue()


def assertSameTables(testCase, actual, expected):
	testCase.assertEqual(sorted(actual.keys()), sorted(expected.keys()))
	for tag in expected.keys():
		if tag == "head":
			# checkSumAdjustment is recomputed
			testCase.assertEqual(actual[tag][:8], expected[tag][:8])
			testCase.assertEqual(actual[tag][12:], expected[tag][12:])
		else:
			testCase.assertEqual(actual[tag], expected[tag], tag)


class WOFF2ReaderTest(unittest.TestCase):

	@classmethod
	def setUpClass(cls):
		cls.data = compileWOFF2(TABLES)

	def test_bad_signature(self):
		data = b"\x12\x34\x56\x78" + self.data[4:]
		with self.assertRaisesRegex(InvalidFontError, 'bad signature'):
			WOFF2Reader(BytesIO(data))

	def test_not_enough_data_header(self):
		with self.assertRaisesRegex(InvalidFontError, 'not enough data'):
			WOFF2Reader(BytesIO(self.data[:woff2DirectorySize - 1]))

	def test_length_mismatch(self):
		with self.assertRaisesRegex(InvalidFontError, "length field doesn't match"):
			WOFF2Reader(BytesIO(self.data + b"\0\0\0\0"))

	def test_reserved_field(self):
		header = sstruct.unpack(woff2DirectoryFormat, self.data[:woff2DirectorySize])
		header["reserved"] = 1
		data = sstruct.pack(woff2DirectoryFormat, header) + self.data[woff2DirectorySize:]
		with self.assertRaisesRegex(InvalidFontError, "reserved field"):
			WOFF2Reader(BytesIO(data))

	def test_collection_flavor(self):
		header = sstruct.unpack(woff2DirectoryFormat, self.data[:woff2DirectorySize])
		header["sfntVersion"] = b"ttcf"
		data = sstruct.pack(woff2DirectoryFormat, header) + self.data[woff2DirectorySize:]
		with self.assertRaisesRegex(InvalidFontError, "collections are not supported"):
			WOFF2Reader(BytesIO(data))

	def test_incorrect_uncompressed_size(self):
		with mock.patch("brotli.decompress", return_value=b""):
			with self.assertRaisesRegex(InvalidFontError,
					'unexpected size for decompressed font data'):
				WOFF2Reader(BytesIO(self.data))

	def test_decompression_error(self):
		with mock.patch("brotli.decompress", side_effect=brotli.error("boom")):
			with self.assertRaisesRegex(InvalidFontError, "could not decompress"):
				WOFF2Reader(BytesIO(self.data))

	def test_header(self):
		reader = WOFF2Reader(BytesIO(self.data))
		self.assertEqual(reader.signature, "wOF2")
		self.assertEqual(reader.sfntVersion, "\x00\x01\x00\x00")
		self.assertEqual(reader.numTables, len(TABLES))
		self.assertEqual(reader.length, len(self.data))
		self.assertEqual(reader.flavor, "woff2")

	def test_glyf_loca_transformed(self):
		reader = WOFF2Reader(BytesIO(self.data))
		self.assertTrue(reader.tables["glyf"].transformed)
		self.assertTrue(reader.tables["loca"].transformed)
		self.assertEqual(reader.tables["loca"].length, 0)
		self.assertFalse(reader.tables["hmtx"].transformed)

	def test_total_sfnt_size(self):
		reader = WOFF2Reader(BytesIO(self.data))
		sfntData = SFNTFont(TABLES).compile()
		self.assertEqual(reader.totalSfntSize, len(sfntData))

	def test_reconstruct_tables(self):
		reader = WOFF2Reader(BytesIO(self.data))
		tables = dict((tag, reader[tag]) for tag in reader.keys())
		assertSameTables(self, tables, TABLES)

	def test_loca_before_glyf(self):
		reader = WOFF2Reader(BytesIO(self.data))
		self.assertEqual(reader["loca"], TABLES["loca"])

	def test_master_checksum_matches_sfnt(self):
		woffHead = WOFF2Reader(BytesIO(self.data))["head"]
		sfntHead = SFNTFont.fromBytes(SFNTFont(TABLES).compile())["head"]
		self.assertEqual(woffHead[8:12], sfntHead[8:12])

	def test_font_flavor(self):
		font = SFNTFont.fromBytes(self.data)
		self.assertEqual(font.flavor, "woff2")
		self.assertIsInstance(font.flavorData, WOFF2FlavorData)
		# taken from head.fontRevision (1.0)
		self.assertEqual(font.flavorData.majorVersion, 1)
		self.assertEqual(font.flavorData.minorVersion, 0)


class WOFF2WriterTest(unittest.TestCase):

	def test_signature_and_size(self):
		data = compileWOFF2(TABLES)
		self.assertEqual(data[:4], b"wOF2")
		self.assertEqual(len(data) % 4, 0)
		self.assertLess(len(data), len(SFNTFont(TABLES).compile()))

	def test_wrong_number_of_tables(self):
		writer = WOFF2Writer(BytesIO(), len(TABLES) + 1)
		for tag in sorted(TABLES):
			writer[tag] = TABLES[tag]
		with self.assertRaisesRegex(TTLibError, "wrong number of tables"):
			writer.close()

	def test_glyf_without_loca(self):
		with self.assertRaises(TTLibError):
			WOFF2Writer(BytesIO(), 1, transformTables=("glyf",))

	def test_no_transform(self):
		data = compileWOFF2(TABLES, transformTables=())
		reader = WOFF2Reader(BytesIO(data))
		self.assertFalse(reader.tables["glyf"].transformed)
		self.assertEqual(reader.tables["glyf"].transformVersion, 3)
		self.assertEqual(reader["glyf"], TABLES["glyf"])

	def test_hmtx_transform(self):
		data = compileWOFF2(TABLES, transformTables=("glyf", "loca", "hmtx"))
		reader = WOFF2Reader(BytesIO(data))
		entry = reader.tables["hmtx"]
		self.assertTrue(entry.transformed)
		self.assertEqual(entry.transformVersion, 1)
		self.assertLess(entry.length, entry.origLength)
		self.assertEqual(reader["hmtx"], TABLES["hmtx"])

	def test_hmtx_not_transformed_when_lsb_differs(self):
		tables = makeTables(metrics=[(500, 0), (600, 7), (700, 3)])
		data = compileWOFF2(tables, transformTables=("glyf", "loca", "hmtx"))
		reader = WOFF2Reader(BytesIO(data))
		self.assertFalse(reader.tables["hmtx"].transformed)
		self.assertEqual(reader["hmtx"], tables["hmtx"])

	def test_metadata_and_private_data(self):
		flavorData = WOFF2FlavorData()
		flavorData.metaData = b"<?xml version='1.0'?><metadata version='1.0'/>"
		flavorData.privData = b"\x01\x02\x03"
		flavorData.majorVersion, flavorData.minorVersion = 2, 5
		data = compileWOFF2(TABLES, flavorData=flavorData)
		reader = WOFF2Reader(BytesIO(data))
		self.assertEqual(reader.metaOrigLength, len(flavorData.metaData))
		self.assertEqual(reader.privOffset % 4, 0)
		self.assertEqual(reader.flavorData.metaData, flavorData.metaData)
		self.assertEqual(reader.flavorData.privData, flavorData.privData)
		self.assertEqual(reader.majorVersion, 2)
		self.assertEqual(reader.minorVersion, 5)

	def test_bad_metadata_is_a_warning(self):
		flavorData = WOFF2FlavorData()
		flavorData.metaData = b"<metadata/>"
		data = compileWOFF2(TABLES, flavorData=flavorData)
		with mock.patch.object(WOFF2FlavorData, "decodeData", side_effect=brotli.error("boom")):
			with self.assertLogs("sfntTools.ttLib.woff2", level="WARNING"):
				reader = WOFF2Reader(BytesIO(data))
		self.assertEqual(reader.flavorData.metaData, b"")

	def test_save_flavor(self):
		font = SFNTFont(TABLES, flavor="woff2")
		data = font.compile()
		self.assertEqual(data[:4], b"wOF2")
		assertSameTables(self, SFNTFont.fromBytes(data), TABLES)


class WOFF2DirectoryEntryTest(unittest.TestCase):

	def setUp(self):
		self.entry = WOFF2DirectoryEntry()

	def test_not_enough_data_table_flags(self):
		with self.assertRaisesRegex(TTLibError, "too small"):
			self.entry.fromString(b"")

	def test_known_tag(self):
		data = struct.pack("B", woff2KnownTags.index("name")) + packBase128(1234)
		self.assertEqual(self.entry.fromString(data + b"rest"), b"rest")
		self.assertEqual(self.entry.tag, "name")
		self.assertEqual(self.entry.origLength, 1234)
		self.assertEqual(self.entry.length, 1234)
		self.assertFalse(self.entry.transformed)

	def test_custom_tag(self):
		data = struct.pack("B", woff2CustomTagIndex) + b"ZZZZ" + packBase128(8)
		self.entry.fromString(data)
		self.assertEqual(self.entry.tag, "ZZZZ")
		self.assertEqual(self.entry.toString(), data)

	def test_transformed_glyf(self):
		data = struct.pack("B", woff2KnownTags.index("glyf")) + packBase128(300) + packBase128(100)
		self.entry.fromString(data)
		self.assertTrue(self.entry.transformed)
		self.assertEqual(self.entry.origLength, 300)
		self.assertEqual(self.entry.length, 100)
		self.assertEqual(self.entry.toString(), data)

	def test_null_transform_glyf(self):
		flags = woff2KnownTags.index("glyf") | (3 << 6)
		self.entry.fromString(struct.pack("B", flags) + packBase128(300))
		self.assertFalse(self.entry.transformed)
		self.assertEqual(self.entry.length, 300)

	def test_loca_transform_length_must_be_zero(self):
		data = struct.pack("B", woff2KnownTags.index("loca")) + packBase128(12) + packBase128(4)
		with self.assertRaisesRegex(InvalidFontError, "transform length of 0"):
			self.entry.fromString(data)

	def test_reserved_transform_version(self):
		flags = woff2KnownTags.index("name") | (1 << 6)
		with self.assertRaisesRegex(InvalidFontError, "reserved transform version"):
			self.entry.fromString(struct.pack("B", flags) + packBase128(4))

	def test_null_transform_other_tables(self):
		# cmap (known tag 0) with transform version 3
		self.assertEqual(self.entry.fromString(b"\xC0\x10"), b"")
		self.assertEqual(self.entry.tag, "cmap")
		self.assertFalse(self.entry.transformed)
		self.assertEqual(self.entry.origLength, 16)
		self.assertEqual(self.entry.length, 16)

	def test_null_transform_hmtx(self):
		flags = woff2KnownTags.index("hmtx") | (3 << 6)
		self.entry.fromString(struct.pack("B", flags) + packBase128(40))
		self.assertFalse(self.entry.transformed)
		self.assertEqual(self.entry.length, 40)

	def test_transformed_setter(self):
		self.entry.tag = "loca"
		self.entry.transformed = False
		self.assertEqual(self.entry.transformVersion, 3)
		self.entry.tag = "hmtx"
		self.entry.transformed = True
		self.assertEqual(self.entry.transformVersion, 1)


def makeGlyphTables(glyphs, metrics, **kwargs):
	names = [".notdef"] + ["glyph%d" % i for i in range(1, len(glyphs))]
	return makeTables(glyphs=OrderedDict(zip(names, glyphs)), metrics=metrics, **kwargs)


class WOFF2GlyfTransformTest(unittest.TestCase):

	def transform(self, tables=TABLES, numGlyphs=3):
		indexFormat = SFNTFont(tables).toTTFont()["head"].indexToLocFormat
		return WOFF2GlyfTransform().transform(tables["glyf"], tables["loca"],
			indexFormat, numGlyphs)

	def test_header(self):
		data = self.transform()
		header = sstruct.unpack(woff2GlyfTableFormat, data[:woff2GlyfTableFormatSize])
		self.assertEqual(header["reserved"], 0)
		self.assertEqual(header["optionFlags"], 0)
		self.assertEqual(header["numGlyphs"], 3)
		self.assertEqual(header["nContourStreamSize"], 6)
		# one bbox bitmap (4 bytes for up to 32 glyphs) plus the composite bbox
		self.assertEqual(header["bboxStreamSize"], 4 + 8)

	def test_round_trip(self):
		transform = WOFF2GlyfTransform()
		glyfData, locaData = transform.reconstruct(self.transform(), 3)
		self.assertEqual(glyfData, TABLES["glyf"])
		self.assertEqual(locaData, TABLES["loca"])
		self.assertEqual(transform.xMins(), [0, 0, 100])
		composite = transform.glyphs[2]
		self.assertTrue(composite.isComposite())
		self.assertEqual([(c.glyphName, c.x, c.y) for c in composite.components],
			[("glyph1", 100, 0)])

	def test_long_loca_format(self):
		transform = WOFF2GlyfTransform()
		data = bytearray(self.transform())
		# indexFormat follows reserved, optionFlags and numGlyphs
		data[6:8] = struct.pack(">H", 1)
		glyfData, locaData = transform.reconstruct(bytes(data), 3)
		self.assertEqual(glyfData, TABLES["glyf"])
		offsets = struct.unpack(">4L", locaData)
		self.assertEqual(offsets, tuple(2 * o for o in struct.unpack(">4H", TABLES["loca"])))

	def test_glyph_count_mismatch(self):
		with self.assertRaisesRegex(InvalidFontError, "Glyph count mismatch"):
			WOFF2GlyfTransform().reconstruct(self.transform(), 4)

	def test_invalid_nContours(self):
		data = bytearray(self.transform())
		# the nContour stream follows the header: patch glyph 0 to -2
		data[woff2GlyfTableFormatSize:woff2GlyfTableFormatSize + 2] = struct.pack(">h", -2)
		with self.assertRaisesRegex(InvalidFontError, "Invalid nContours value"):
			WOFF2GlyfTransform().reconstruct(bytes(data), 3)

	def test_truncated(self):
		with self.assertRaisesRegex(InvalidFontError, "too small"):
			WOFF2GlyfTransform().reconstruct(self.transform()[:20], 3)

	def test_extra_data(self):
		with self.assertRaisesRegex(InvalidFontError, "incorrect size"):
			WOFF2GlyfTransform().reconstruct(self.transform() + b"\0\0\0\0", 3)

	def test_composite_without_bbox(self):
		transform = WOFF2GlyfTransform()
		data = bytearray(self.transform())
		header = sstruct.unpack(woff2GlyfTableFormat, bytes(data[:woff2GlyfTableFormatSize]))
		bboxOffset = woff2GlyfTableFormatSize + sum(header[name + "Size"] for name in (
			"nContourStream", "nPointsStream", "flagStream", "glyphStream", "compositeStream"))
		data[bboxOffset] = 0
		with self.assertRaisesRegex(InvalidFontError, "no bbox values for composite glyph 2"):
			transform.reconstruct(bytes(data), 3)

	def test_explicit_bbox(self):
		# a glyph whose stored bbox differs from its points keeps it
		glyph = makeSimpleGlyph([(10, 10), (20, 30), (40, 10)])
		glyph.recalcBounds(None)
		glyph.xMin = 0
		tables = makeGlyphTables([glyph], [(500, 0)], calcGlyphBounds=False)
		transform = WOFF2GlyfTransform()
		glyfData, locaData = transform.reconstruct(self.transform(tables, 1), 1)
		self.assertEqual(glyfData, tables["glyf"])
		self.assertEqual(transform.xMins(), [0])

	def test_overlap_flag(self):
		glyph = makeSimpleGlyph([(0, 0), (0, 100), (100, 100)])
		glyph.flags[0] |= flagOverlapSimple
		tables = makeGlyphTables([glyph], [(500, 0)])
		data = self.transform(tables, 1)
		header = sstruct.unpack(woff2GlyfTableFormat, data[:woff2GlyfTableFormatSize])
		self.assertEqual(header["optionFlags"], 1)
		glyfData, locaData = WOFF2GlyfTransform().reconstruct(data, 1)
		self.assertEqual(glyfData, tables["glyf"])

	def test_instructions_and_large_deltas(self):
		glyph = makeSimpleGlyph([(0, 0), (-2000, 3000), (1, -1), (700, 700)],
			program=b"\xb0\x01")
		tables = makeGlyphTables([TTGlyphPen(None).glyph(), glyph],
			[(500, 0), (500, -2000)])
		transform = WOFF2GlyfTransform()
		glyfData, locaData = transform.reconstruct(self.transform(tables, 2), 2)
		self.assertEqual(glyfData, tables["glyf"])
		self.assertEqual(locaData, tables["loca"])
		self.assertEqual(transform.glyphs[1].program.getBytecode(), b"\xb0\x01")

	def test_two_contours(self):
		glyph = makeSimpleGlyph([(0, 0), (0, 10), (10, 10), (20, 20), (30, 20), (30, 30)],
			endPts=[2, 5])
		tables = makeGlyphTables([glyph], [(500, 0)])
		transform = WOFF2GlyfTransform()
		glyfData, locaData = transform.reconstruct(self.transform(tables, 1), 1)
		self.assertEqual(glyfData, tables["glyf"])
		self.assertEqual(transform.glyphs[0].endPtsOfContours, [2, 5])


class WOFF2HmtxTransformTest(unittest.TestCase):

	def test_explicit_widths_and_lsbs(self):
		data = b"\x03\x78" + struct.pack(">3h", 10, 20, 30)
		self.assertEqual(WOFF2HmtxTransform().reconstruct(data, 3, 1, None),
			struct.pack(">Hh", 120, 10) + struct.pack(">hh", 20, 30))

	def test_proportional_widths_with_glyf_lsbs(self):
		data = b"\x00\x64" + struct.pack(">h", 20)
		self.assertEqual(WOFF2HmtxTransform().reconstruct(data, 2, 2, [5, 6]),
			struct.pack(">hhHh", 100, 5, 120, 6))

	def test_transform_proportional(self):
		metrics = [(500, 0), (600, 10), (600, 20)]
		data = WOFF2HmtxTransform().transform(metrics, 2, [0, 10, 20])
		self.assertEqual(data, b"\x00" + pack255UInt16(500) + struct.pack(">h", 100))
		self.assertEqual(WOFF2HmtxTransform().reconstruct(data, 3, 2, [0, 10, 20]),
			struct.pack(">HhHhh", 500, 0, 600, 10, 20))

	def test_transform_explicit_lsbs(self):
		metrics = [(500, 0), (600, 10), (600, 20)]
		data = WOFF2HmtxTransform().transform(metrics, 2, [0, 10, 5])
		self.assertEqual(data, b"\x02" + pack255UInt16(500) + struct.pack(">4h", 100, 0, 10, 20))
		self.assertFalse(WOFF2HmtxTransform.needsGlyfLsbs(data))
		self.assertEqual(WOFF2HmtxTransform().reconstruct(data, 3, 2),
			struct.pack(">HhHhh", 500, 0, 600, 10, 20))

	def test_transform_explicit_widths(self):
		# one byte per width beats a base width plus int16 deltas
		data = WOFF2HmtxTransform().transform([(100, 0), (200, 0)], 2, [0, 0])
		self.assertEqual(data, b"\x01\x64\xc8")
		self.assertTrue(WOFF2HmtxTransform.needsGlyfLsbs(data))

	def test_transform_delta_out_of_range(self):
		data = WOFF2HmtxTransform().transform([(0, 0), (60000, 0)], 2, [0, 0])
		self.assertEqual(data, b"\x01\x00" + pack255UInt16(60000))
		self.assertEqual(WOFF2HmtxTransform().reconstruct(data, 2, 2, [0, 0]),
			struct.pack(">HhHh", 0, 0, 60000, 0))

	def test_missing_glyf_lsbs(self):
		with self.assertRaisesRegex(InvalidFontError, "needs the xMin of all 1 glyphs"):
			WOFF2HmtxTransform().reconstruct(b"\x00\x64", 1, 1, None)

	def test_reserved_flags(self):
		with self.assertRaisesRegex(InvalidFontError, "reserved bits"):
			WOFF2HmtxTransform().reconstruct(b"\x04\x64", 1, 1, [0])

	def test_extra_bytes(self):
		with self.assertRaisesRegex(InvalidFontError, "1 extra bytes"):
			WOFF2HmtxTransform().reconstruct(b"\x03\x64\x00\x00\x00", 1, 1)

	def test_truncated(self):
		with self.assertRaisesRegex(InvalidFontError, "too small"):
			WOFF2HmtxTransform().reconstruct(b"\x01", 1, 1, [0])

	def test_invalid_numberOfHMetrics(self):
		with self.assertRaisesRegex(InvalidFontError, "invalid numberOfHMetrics"):
			WOFF2HmtxTransform().reconstruct(b"\x01\x64", 1, 2, [0])


class TripletTest(unittest.TestCase):

	def test_round_trip(self):
		points = [(0, 0), (0, 5), (-3, 5), (60, 60), (-700, 700), (1000, -1000),
			(5000, 5000), (0, -1279), (1279, 0), (64, -64), (65, 65)]
		flags = bytearray()
		data = b""
		lastX = lastY = 0
		for i, (x, y) in enumerate(points):
			flag, tripletData = encodeTriplet(x - lastX, y - lastY, i % 2 == 0)
			flags.append(flag)
			data += tripletData
			lastX, lastY = x, y
		reader = ByteReader(data)
		coordinates, onCurves = decodeTriplets(bytes(flags), reader)
		self.assertEqual(coordinates, points)
		self.assertEqual(onCurves, [i % 2 == 0 for i in range(len(points))])
		self.assertTrue(reader.atEnd())

	def test_too_large(self):
		with self.assertRaises(TTLibError):
			encodeTriplet(70000, 0, True)


if __name__ == "__main__":
	unittest.main()
