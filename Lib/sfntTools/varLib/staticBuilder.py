"""Turn a variable font plus computed deltas into a static font.

TableUpdater edits single fontTools tables in place. StaticFontBuilder
loads the tables it needs from the variable font, drops the variation
tables, drives the updater and compiles the result.
"""

from fontTools.misc.timeTools import timestampNow
from fontTools.ttLib.tables._g_l_y_f import ARGS_ARE_XY_VALUES
from sfntTools.ttLib import TTLibError
from sfntTools.ttLib.sfntFont import SFNTFont
from sfntTools.ttLib.sfnt import sfntVersionTrueType, sfntVersionCFF
import logging


log = logging.getLogger(__name__)


variationTableTags = ("fvar", "avar", "gvar", "cvar", "HVAR", "VVAR", "MVAR", "STAT")

# MVAR value tag -> fields it varies, as (tableTag, attribute)
mvarFields = {
	"hasc": [("hhea", "ascent"), ("OS/2", "sTypoAscender")],
	"hdsc": [("hhea", "descent"), ("OS/2", "sTypoDescender")],
	"hlgp": [("hhea", "lineGap"), ("OS/2", "sTypoLineGap")],
	"hcla": [("OS/2", "usWinAscent")],
	"hcld": [("OS/2", "usWinDescent")],
	"hcrs": [("hhea", "caretSlopeRise")],
	"hcrn": [("hhea", "caretSlopeRun")],
	"hcof": [("hhea", "caretOffset")],
	"vasc": [("vhea", "ascent")],
	"vdsc": [("vhea", "descent")],
	"vlgp": [("vhea", "lineGap")],
	"vcrs": [("vhea", "caretSlopeRise")],
	"vcrn": [("vhea", "caretSlopeRun")],
	"vcof": [("vhea", "caretOffset")],
	"xhgt": [("OS/2", "sxHeight")],
	"cpht": [("OS/2", "sCapHeight")],
	"sbxs": [("OS/2", "ySubscriptXSize")],
	"sbys": [("OS/2", "ySubscriptYSize")],
	"sbxo": [("OS/2", "ySubscriptXOffset")],
	"sbyo": [("OS/2", "ySubscriptYOffset")],
	"spxs": [("OS/2", "ySuperscriptXSize")],
	"spys": [("OS/2", "ySuperscriptYSize")],
	"spxo": [("OS/2", "ySuperscriptXOffset")],
	"spyo": [("OS/2", "ySuperscriptYOffset")],
	"strs": [("OS/2", "yStrikeoutSize")],
	"stro": [("OS/2", "yStrikeoutPosition")],
	"undo": [("post", "underlinePosition")],
	"unds": [("post", "underlineThickness")],
}

# OS/2 fields that only exist from table version 2 on
os2Version2Fields = ("sxHeight", "sCapHeight")

unsignedFields = ("usWinAscent", "usWinDescent")


def clamp(value, lo, hi):
	return max(lo, min(hi, value))


class TableUpdater(object):

	def updateHmtx(self, hmtx, glyphOrder, variedMetrics):
		""" Apply {glyphID: {"advanceWidth": int, "lsb": int}} overrides to
		a fontTools 'hmtx' table and return the new advanceWidthMax. The
		long metric count follows when the table is compiled.
		"""
		for glyphID, metrics in variedMetrics.items():
			if not 0 <= glyphID < len(glyphOrder):
				continue
			glyphName = glyphOrder[glyphID]
			if glyphName not in hmtx.metrics:
				continue
			advanceWidth, lsb = hmtx.metrics[glyphName]
			if metrics.get("advanceWidth") is not None:
				advanceWidth = clamp(metrics["advanceWidth"], 0, 0xFFFF)
			if metrics.get("lsb") is not None:
				lsb = clamp(metrics["lsb"], -0x8000, 0x7FFF)
			hmtx.metrics[glyphName] = (advanceWidth, lsb)
		return max([advance for advance, lsb in hmtx.metrics.values()] + [0])

	def updateHhea(self, hhea, fontMetrics=None, advanceWidthMax=None):
		if fontMetrics:
			self.applyMetricDeltas("hhea", hhea, fontMetrics)
		if advanceWidthMax is not None:
			hhea.advanceWidthMax = advanceWidthMax

	def updateOS2(self, os2, fontMetrics):
		self.applyMetricDeltas("OS/2", os2, fontMetrics)

	def updatePost(self, post, fontMetrics):
		self.applyMetricDeltas("post", post, fontMetrics)

	def updateVhea(self, vhea, fontMetrics):
		self.applyMetricDeltas("vhea", vhea, fontMetrics)

	def updateHead(self, head, updateModified=True, bounds=None):
		""" Set head.modified to now unless updateModified is false, and
		optionally the font bounding box.
		"""
		if updateModified:
			head.modified = timestampNow()
		if bounds is not None:
			head.xMin, head.yMin, head.xMax, head.yMax = bounds

	def applyMetricDeltas(self, tableTag, table, fontMetrics):
		""" Add the MVAR deltas that vary fields of 'tableTag'. Fields the
		table doesn't have (e.g. OS/2 v1 sxHeight) and value tags without
		a known field are left alone.
		"""
		for valueTag, delta in fontMetrics.items():
			if not delta:
				continue
			for fieldTable, attr in mvarFields.get(valueTag, ()):
				if fieldTable != tableTag or not hasattr(table, attr):
					continue
				if tableTag == "OS/2" and attr in os2Version2Fields and table.version < 2:
					continue
				if attr in unsignedFields:
					lo, hi = 0, 0xFFFF
				else:
					lo, hi = -0x8000, 0x7FFF
				setattr(table, attr, clamp(getattr(table, attr) + delta, lo, hi))


class StaticFontBuilder(object):

	""" Builds the static font for a variable 'font' (any TableProvider). """

	def __init__(self, font):
		self.font = font
		self.tableUpdater = TableUpdater()

	def build(self, variedMetrics=None, fontMetrics=None, glyphDeltas=None,
			updateModified=True):
		""" Return the static font as sfnt bytes.

		'variedMetrics' maps glyph IDs to absolute {advanceWidth, lsb}
		values, 'fontMetrics' maps MVAR value tags to deltas and
		'glyphDeltas' maps glyph IDs to GlyphDeltaResult objects to apply
		to the 'glyf' outlines.
		"""
		return self.buildFont(variedMetrics, fontMetrics, glyphDeltas,
			updateModified).compile()

	def buildToFile(self, path, *args, **kwargs):
		data = self.build(*args, **kwargs)
		with open(path, "wb") as f:
			f.write(data)

	def buildFont(self, variedMetrics=None, fontMetrics=None, glyphDeltas=None,
			updateModified=True):
		variedMetrics = dict((glyphID, dict(metrics))
			for glyphID, metrics in (variedMetrics or {}).items())
		fontMetrics = fontMetrics or {}
		# bounds, maxp and hhea extents are recomputed only when outlines move
		ttFont = self.font.toTTFont(recalcBBoxes=bool(glyphDeltas), recalcTimestamp=False)
		for tag in variationTableTags:
			if tag in ttFont:
				log.debug("dropped variation table '%s'", tag)
				del ttFont[tag]

		glyphOrder = None
		if variedMetrics or glyphDeltas:
			glyphOrder = ttFont.getGlyphOrder()

		if glyphDeltas and "glyf" in ttFont and "loca" in ttFont:
			xMins = self._instanceOutlines(ttFont, glyphOrder, glyphDeltas)
			for glyphID, xMin in xMins.items():
				metrics = variedMetrics.setdefault(glyphID, {})
				if metrics.get("lsb") is None:
					metrics["lsb"] = xMin

		if variedMetrics and "hmtx" in ttFont and "hhea" in ttFont:
			advanceWidthMax = self.tableUpdater.updateHmtx(ttFont["hmtx"], glyphOrder,
				variedMetrics)
			self.tableUpdater.updateHhea(ttFont["hhea"], advanceWidthMax=advanceWidthMax)

		if fontMetrics:
			for tag, update in (("hhea", self.tableUpdater.updateHhea),
					("OS/2", self.tableUpdater.updateOS2),
					("post", self.tableUpdater.updatePost),
					("vhea", self.tableUpdater.updateVhea)):
				if tag in ttFont:
					update(ttFont[tag], fontMetrics)
		if updateModified and "head" in ttFont:
			self.tableUpdater.updateHead(ttFont["head"])

		sfntVersion = sfntVersionTrueType
		if "CFF " in ttFont or "CFF2" in ttFont:
			sfntVersion = sfntVersionCFF
		static = SFNTFont.fromTTFont(ttFont)
		static.sfntVersion = sfntVersion
		return static

	def _instanceOutlines(self, ttFont, glyphOrder, glyphDeltas):
		""" Apply glyph deltas to the 'glyf' outlines of 'ttFont' and
		recompute the glyph bounds. Return {glyphID: xMin} of the glyphs
		whose outline or bounds changed.
		"""
		glyf = ttFont["glyf"]
		# the font bounding box is recomputed when maxp and head compile
		for tag in ("maxp", "head"):
			if tag in ttFont:
				ttFont[tag]
		glyphs = [glyf[glyphName] for glyphName in glyphOrder]
		oldXMins = dict((glyphID, glyph.xMin) for glyphID, glyph in enumerate(glyphs)
			if glyph.numberOfContours)
		changed = set()
		for glyphID, deltas in glyphDeltas.items():
			if deltas is None or not 0 <= glyphID < len(glyphs):
				continue
			glyph = glyphs[glyphID]
			if glyph.isComposite():
				if len(deltas.xDeltas) != len(glyph.components):
					raise TTLibError("glyph %d: %d deltas for %d components"
						% (glyphID, len(deltas.xDeltas), len(glyph.components)))
				for component, dx, dy in zip(glyph.components, deltas.xDeltas, deltas.yDeltas):
					if component.flags & ARGS_ARE_XY_VALUES:
						component.x += dx
						component.y += dy
			elif glyph.numberOfContours:
				coordinates = glyph.coordinates
				if len(deltas.xDeltas) != len(coordinates):
					raise TTLibError("glyph %d: %d deltas for %d points"
						% (glyphID, len(deltas.xDeltas), len(coordinates)))
				for point, (dx, dy) in enumerate(zip(deltas.xDeltas, deltas.yDeltas)):
					x, y = coordinates[point]
					coordinates[point] = (x + dx, y + dy)
			changed.add(glyphID)

		# composites last: their bounds depend on the updated components
		order = sorted(range(len(glyphs)), key=lambda i: glyphs[i].isComposite())
		for glyphID in order:
			glyph = glyphs[glyphID]
			if glyph.numberOfContours and (glyphID in changed or glyph.isComposite()):
				glyph.recalcBounds(glyf)

		xMins = {}
		for glyphID, glyph in enumerate(glyphs):
			if not glyph.numberOfContours:
				continue
			if glyphID in changed or glyph.xMin != oldXMins.get(glyphID):
				xMins[glyphID] = glyph.xMin
		return xMins
