from fontTools.ttLib.tables.TupleVariation import TupleVariation
from sfntTools.varLib import VarLibError
from sfntTools.varLib.glyphDeltas import (GlyphDeltaProcessor, GlyphDeltaConfig,
	GlyphDeltaResult, sharedTupleMatcher, readSharedTuples, isIntermediate)
from sfntTools.misc.testTools import makeVariableFont, squareVariation
import unittest


WGHT = ["wght"]

FULL = {"wght": (0.0, 1.0, 1.0)}


def makeProcessor(variations=None, outline=True, patch=None, **configArgs):
	""" Build the processor over a gvar that went through compile and
	decompile. 'patch' replaces decoded variations in memory, for data
	the gvar encoder wouldn't write.
	"""
	font = makeVariableFont(variations=variations, hvar=False)
	ttFont = font.toTTFont()
	gvar = ttFont["gvar"]
	if patch:
		for glyphName, glyphVariations in patch.items():
			gvar.variations[glyphName] = glyphVariations
	glyf = ttFont["glyf"] if outline else None
	hmtx = ttFont["hmtx"] if outline else None
	config = GlyphDeltaConfig(**configArgs) if configArgs else None
	sharedTuples = readSharedTuples(gvar, WGHT, font.tableData("gvar"))
	return GlyphDeltaProcessor(gvar, WGHT, ttFont.getGlyphOrder(), glyf=glyf, hmtx=hmtx,
		config=config, sharedTuples=sharedTuples)


def sparse(numPoints, **deltas):
	""" Deltas for 'numPoints' points, only the points named p<N> touched. """
	coordinates = [None] * numPoints
	for name, delta in deltas.items():
		coordinates[int(name[1:])] = delta
	return coordinates


class GlyphDeltaProcessorTest(unittest.TestCase):

	def test_full_weight(self):
		result = makeProcessor().applyDeltas(1, normalizedCoords={"wght": 1.0})
		self.assertIsInstance(result, GlyphDeltaResult)
		self.assertEqual(result.xDeltas, [0, 0, 100, 100])
		self.assertEqual(result.yDeltas, [0, 0, 0, 0])
		self.assertEqual(result.phantomDeltas, [(0, 0), (100, 0), (0, 0), (0, 0)])
		self.assertEqual(result.advanceWidthDelta, 100)
		self.assertEqual(result.lsbDelta, 0)

	def test_half_weight(self):
		result = makeProcessor().applyDeltas(1, normalizedCoords={"wght": 0.5})
		self.assertEqual(result.xDeltas, [0, 0, 50, 50])
		self.assertEqual(result.advanceWidthDelta, 50)

	def test_default_and_lighter(self):
		processor = makeProcessor()
		for value in (0.0, -0.5):
			result = processor.applyDeltas(1, normalizedCoords={"wght": value})
			self.assertEqual(result.xDeltas, [0, 0, 0, 0])

	def test_no_variations(self):
		processor = makeProcessor()
		self.assertFalse(processor.hasVariations(0))
		self.assertTrue(processor.hasVariations(1))
		self.assertIsNone(processor.applyDeltas(0, normalizedCoords={"wght": 1.0}))
		self.assertIsNone(processor.applyDeltas(2, normalizedCoords={"wght": 1.0}))
		self.assertIsNone(processor.applyDeltas(99, normalizedCoords={"wght": 1.0}))

	def test_shared_tuple_scalars(self):
		# the same peak on two glyphs is stored once as a shared tuple
		variations = {
			"square": [squareVariation()],
			"composite": [TupleVariation(FULL, [(30, 0)] + [(0, 0)] * 4)],
		}
		processor = makeProcessor(variations)
		font = makeVariableFont(variations=variations, hvar=False)
		ttFont = font.toTTFont()
		sharedTuples = readSharedTuples(ttFont["gvar"], WGHT, font.tableData("gvar"))
		self.assertEqual(sharedTuples, [{"wght": 1.0}])
		scalars = sharedTupleMatcher(sharedTuples, WGHT).match({"wght": 0.5})
		self.assertEqual(scalars, [0.5])
		result = processor.applyDeltas(1, scalars)
		self.assertEqual(result.xDeltas, [0, 0, 50, 50])
		self.assertEqual(processor.applyDeltas(2, scalars).xDeltas, [15])

	def test_embedded_peak_needs_coordinates(self):
		with self.assertRaisesRegex(VarLibError, "needs normalized coordinates"):
			makeProcessor().applyDeltas(1, [1.0])

	def test_intermediate_region(self):
		variation = TupleVariation({"wght": (0.0, 0.5, 1.0)}, [(10, 0)] * 8)
		self.assertTrue(isIntermediate(variation))
		self.assertFalse(isIntermediate(squareVariation()))
		processor = makeProcessor({"square": [variation]})
		result = processor.applyDeltas(1, normalizedCoords={"wght": 0.75})
		self.assertEqual(result.xDeltas, [5, 5, 5, 5])

	def test_one_touched_point_moves_contour(self):
		variation = TupleVariation(FULL, sparse(8, p2=(100, -20)))
		result = makeProcessor({"square": [variation]}).applyDeltas(
			1, normalizedCoords={"wght": 1.0})
		self.assertEqual(result.xDeltas, [100, 100, 100, 100])
		self.assertEqual(result.yDeltas, [-20, -20, -20, -20])
		# phantom points are never inferred
		self.assertEqual(result.advanceWidthDelta, 0)

	def test_untouched_points_without_interpolation(self):
		variation = TupleVariation(FULL, sparse(8, p2=(100, 0)))
		processor = makeProcessor({"square": [variation]}, interpolateUntouched=False)
		result = processor.applyDeltas(1, normalizedCoords={"wght": 1.0})
		self.assertEqual(result.xDeltas, [0, 0, 100, 0])

	def test_without_outline(self):
		variation = TupleVariation(FULL, sparse(8, p2=(100, 0), p7=(5, 0)))
		processor = makeProcessor({"square": [variation]}, outline=False)
		result = processor.applyDeltas(1, normalizedCoords={"wght": 1.0})
		self.assertEqual(result.xDeltas, [0, 0, 100, 0])
		self.assertEqual(result.phantomDeltas, [(0, 0), (0, 0), (0, 0), (5, 0)])

	def test_rounding(self):
		variation = TupleVariation(FULL, [(3, -3)] * 8)
		coords = {"wght": 0.5}
		result = makeProcessor({"square": [variation]}).applyDeltas(1, normalizedCoords=coords)
		self.assertEqual(result.xDeltas, [2, 2, 2, 2])
		self.assertEqual(result.yDeltas, [-1, -1, -1, -1])
		result = makeProcessor({"square": [variation]}, roundingMode="floor").applyDeltas(
			1, normalizedCoords=coords)
		self.assertEqual(result.xDeltas, [1, 1, 1, 1])
		self.assertEqual(result.yDeltas, [-2, -2, -2, -2])

	def test_summed_tuples(self):
		variations = [
			TupleVariation(FULL, [(10, 0)] * 8),
			TupleVariation({"wght": (-1.0, -1.0, 0.0)}, [(-40, 0)] * 8),
			TupleVariation(FULL, [(1, 2)] * 8),
		]
		result = makeProcessor({"square": variations}).applyDeltas(
			1, normalizedCoords={"wght": 1.0})
		self.assertEqual(result.xDeltas, [11, 11, 11, 11])
		self.assertEqual(result.yDeltas, [2, 2, 2, 2])

	def test_without_phantom_points(self):
		processor = makeProcessor(processPhantomPoints=False)
		result = processor.applyDeltas(1, normalizedCoords={"wght": 1.0})
		self.assertEqual(result.phantomDeltas, [])
		self.assertEqual(result.advanceWidthDelta, 0)
		self.assertEqual(result.xDeltas, [0, 0, 100, 100])

	def test_delta_count_mismatch(self):
		variation = TupleVariation(FULL, [(1, 0)] * 5)
		processor = makeProcessor(patch={"square": [variation]})
		with self.assertRaisesRegex(VarLibError, "5 deltas for a glyph with 8 points"):
			processor.applyDeltas(1, normalizedCoords={"wght": 1.0})

	def test_composite_glyph(self):
		variation = TupleVariation(FULL, [(30, 0)] + [(0, 0)] * 4)
		result = makeProcessor({"composite": [variation]}).applyDeltas(
			2, normalizedCoords={"wght": 1.0})
		self.assertEqual(result.xDeltas, [30])
		self.assertEqual(result.pointDeltas(), [(30, 0)])
		self.assertEqual(len(result.phantomDeltas), 4)


if __name__ == "__main__":
	unittest.main()
