"""Builders for the small in-memory fonts used by the test modules.

The default font has three glyphs: an empty .notdef, a 500x500 square
and a composite that places the square 100 units to the right. The
variable flavour adds a 'wght' axis (100-400-900) under which the right
edge of the square moves 100 units outwards at wght=900.
"""

from collections import OrderedDict
from fontTools.fontBuilder import FontBuilder
from fontTools.pens.ttGlyphPen import TTGlyphPen
from fontTools.ttLib import newTable
from fontTools.ttLib.tables import otTables as ot
from fontTools.ttLib.tables.TupleVariation import TupleVariation
from fontTools.varLib.builder import buildVarRegionList, buildVarData, buildVarStore
from sfntTools.ttLib.sfntFont import SFNTFont


SQUARE = [(0, 0), (0, 500), (500, 500), (500, 0)]

GLYPH_ORDER = [".notdef", "square", "composite"]

DEFAULT_METRICS = [(500, 0), (600, 0), (700, 100)]

# x deltas of the square at wght=900, phantom points included
SQUARE_X_DELTAS = [0, 0, 100, 100, 0, 100, 0, 0]

DEFAULT_NAMES = {"familyName": "Test", "styleName": "Regular"}


def makeSimpleGlyph(coordinates, endPts=None, program=b""):
	""" A glyph of straight on-curve contours; 'endPts' splits 'coordinates'
	into contours (one contour by default).
	"""
	if endPts is None:
		endPts = [len(coordinates) - 1]
	pen = TTGlyphPen(None)
	start = 0
	for end in endPts:
		contour = coordinates[start:end + 1]
		pen.moveTo(contour[0])
		for point in contour[1:]:
			pen.lineTo(point)
		pen.closePath()
		start = end + 1
	glyph = pen.glyph()
	if program:
		glyph.program.fromBytecode(program)
	return glyph


def makeCompositeGlyph(components):
	""" 'components' is a list of (glyphName, x, y). """
	pen = TTGlyphPen({glyphName: None for glyphName, _, _ in components})
	for glyphName, x, y in components:
		pen.addComponent(glyphName, (1, 0, 0, 1, x, y))
	return pen.glyph()


def makeGlyphs():
	glyphs = OrderedDict()
	glyphs[".notdef"] = TTGlyphPen(None).glyph()
	glyphs["square"] = makeSimpleGlyph(SQUARE)
	glyphs["composite"] = makeCompositeGlyph([("square", 100, 0)])
	return glyphs


def makeFontBuilder(glyphs=None, metrics=None, names=None, calcGlyphBounds=True):
	""" Return a FontBuilder holding a complete static TrueType font.
	'metrics' is a list of (advance, lsb) in glyph order.
	"""
	if glyphs is None:
		glyphs = makeGlyphs()
	if metrics is None:
		metrics = DEFAULT_METRICS
	glyphOrder = list(glyphs.keys())
	fb = FontBuilder(1000, isTTF=True)
	fb.setupGlyphOrder(glyphOrder)
	fb.setupCharacterMap({})
	fb.setupGlyf(glyphs, calcGlyphBounds=calcGlyphBounds)
	# the layout WOFF2 reconstructs, so glyf survives a round trip unchanged
	fb.font["glyf"].padding = 4
	fb.setupHorizontalMetrics(OrderedDict(zip(glyphOrder, metrics)))
	fb.setupHorizontalHeader(ascent=800, descent=-200)
	fb.setupNameTable(names if names is not None else DEFAULT_NAMES, mac=False)
	fb.setupOS2(sTypoAscender=800, sTypoDescender=-200, usWinAscent=800,
		usWinDescent=200, sxHeight=500, sCapHeight=700)
	fb.setupPost()
	if not calcGlyphBounds:
		fb.font.recalcBBoxes = False
	return fb


def makeTables(**kwargs):
	""" Return an OrderedDict of tag -> bytes for a static TrueType font. """
	return OrderedDict(SFNTFont.fromTTFont(makeFontBuilder(**kwargs).font).tables)


def makeStaticFont(**kwargs):
	return SFNTFont(makeTables(**kwargs))


def squareVariation(xDeltas=SQUARE_X_DELTAS, peak=1.0):
	return TupleVariation({"wght": (min(peak, 0.0), peak, max(peak, 0.0))},
		[(dx, 0) for dx in xDeltas])


def makeVarStore(items, regions=((0.0, 1.0, 1.0),)):
	""" A one-axis store with one subtable; 'items' are the delta rows. """
	regionList = buildVarRegionList([{"wght": triple} for triple in regions], ["wght"])
	varData = buildVarData(list(range(len(regions))), items, optimize=False)
	return buildVarStore(regionList, [varData])


def makeHvar(advanceDeltas=(0, 100, 0), advanceMap=None):
	""" An HVAR whose advances map straight to the items of 'advanceDeltas'
	unless 'advanceMap' ({glyphName: varIdx}) is given.
	"""
	hvar = newTable("HVAR")
	hvar.table = ot.HVAR()
	hvar.table.Version = 0x00010000
	hvar.table.VarStore = makeVarStore([[delta] for delta in advanceDeltas])
	hvar.table.AdvWidthMap = None
	if advanceMap is not None:
		hvar.table.AdvWidthMap = ot.VarIdxMap()
		hvar.table.AdvWidthMap.mapping = dict(advanceMap)
	hvar.table.LsbMap = None
	hvar.table.RsbMap = None
	return hvar


def makeMvar(records):
	""" 'records' maps value tags to their delta at the axis maximum. """
	tags = sorted(records)
	mvar = newTable("MVAR")
	mvar.table = ot.MVAR()
	mvar.table.Version = 0x00010000
	mvar.table.Reserved = 0
	mvar.table.VarStore = makeVarStore([[records[tag]] for tag in tags])
	mvar.table.ValueRecordSize = 8
	mvar.table.ValueRecord = []
	for inner, tag in enumerate(tags):
		record = ot.MetricsValueRecord()
		record.ValueTag = tag
		record.VarIdx = inner
		mvar.table.ValueRecord.append(record)
	mvar.table.ValueRecordCount = len(mvar.table.ValueRecord)
	return mvar


def makeVariableTTFont(hvar=True, mvar=None, gvar=True, variations=None, avar=None):
	""" Return a fontTools TTFont with fvar, gvar and (optionally) avar,
	HVAR and MVAR. 'variations' replaces the default gvar data;
	'avar' is the {from: to} segment map of the normalized wght axis.
	"""
	fb = makeFontBuilder()
	fb.setupFvar(
		axes=[("wght", 100, 400, 900, "Weight")],
		instances=[
			{"location": {"wght": 100}, "stylename": "Light"},
			{"location": {"wght": 900}, "stylename": "Bold"},
		])
	if avar is not None:
		fb.font["avar"] = newTable("avar")
		fb.font["avar"].segments = {"wght": dict(avar)}
	if gvar:
		if variations is None:
			variations = {"square": [squareVariation()]}
		fb.setupGvar(variations)
	if hvar:
		fb.font["HVAR"] = makeHvar()
	if mvar:
		fb.font["MVAR"] = makeMvar(mvar)
	return fb.font


def makeVariableFont(**kwargs):
	""" Return an SFNTFont with fvar, gvar and (optionally) HVAR/MVAR. """
	return SFNTFont.fromTTFont(makeVariableTTFont(**kwargs))


def makeFvar():
	return makeVariableFont().toTTFont()["fvar"]
