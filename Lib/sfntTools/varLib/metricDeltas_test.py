from fontTools.ttLib import newTable
from fontTools.ttLib.tables import otTables as ot
from sfntTools.varLib.metricDeltas import (MetricDeltaProcessor, MetricDeltaConfig,
	MetricDeltaResult, expandDeltaSet)
from sfntTools.misc.testTools import makeHvar, makeMvar, makeVarStore, GLYPH_ORDER
import pytest


def test_accumulate():
	processor = MetricDeltaProcessor()
	assert processor.accumulate([100, 40], [0.5, 0.25]) == 60
	assert processor.accumulate([100], [0.0]) == 0
	assert processor.accumulate([], [1.0]) == 0
	assert processor.accumulate([3], [0.5]) == 2
	floor = MetricDeltaProcessor(config=MetricDeltaConfig(roundingMode="floor"))
	assert floor.accumulate([3], [0.5]) == 1


def test_advance_width_deltas():
	processor = MetricDeltaProcessor(hvar=makeHvar(), glyphOrder=GLYPH_ORDER)
	assert processor.hasHorizontal()
	assert not processor.hasVertical()
	result = processor.applyDeltas(1, [1.0])
	assert result.advanceWidth == 100
	assert result.lsb == 0
	assert dict(result.horizontal) == {"advanceWidth": 100, "lsb": 0, "rsb": 0}
	assert result.vertical is None
	assert processor.applyDeltas(1, {"HVAR": [0.5]}).advanceWidth == 50
	assert processor.applyDeltas(0, [1.0]).advanceWidth == 0


def test_side_bearing_maps():
	hvar = makeHvar(advanceDeltas=(0, 100, -30))
	hvar.table.LsbMap = ot.VarIdxMap()
	hvar.table.LsbMap.mapping = {".notdef": 0, "square": 2, "composite": 2}
	result = MetricDeltaProcessor(hvar=hvar, glyphOrder=GLYPH_ORDER).applyDeltas(1, [1.0])
	assert result.lsb == -30
	assert result.horizontal["rsb"] == 0


def test_vertical():
	vvar = newTable("VVAR")
	vvar.table = ot.VVAR()
	vvar.table.VarStore = makeVarStore([[10], [20]])
	for mapName in ("AdvHeightMap", "TsbMap", "BsbMap", "VOrgMap"):
		setattr(vvar.table, mapName, None)
	processor = MetricDeltaProcessor(vvar=vvar)
	result = processor.applyDeltas(1, {"VVAR": [1.0]})
	assert result.horizontal is None
	assert result.vertical["advanceHeight"] == 20
	assert result.vertical["vorg"] == 0


def test_empty_result():
	result = MetricDeltaProcessor().applyDeltas(5, [1.0])
	assert isinstance(result, MetricDeltaResult)
	assert result.isEmpty()
	assert (result.advanceWidth, result.lsb) == (0, 0)


@pytest.mark.parametrize("scalars, expected", [
	([1.0], {"hasc": 40, "xhgt": -10}),
	({"MVAR": [0.5]}, {"hasc": 20, "xhgt": -5}),
	({"HVAR": [1.0]}, {"hasc": 0, "xhgt": 0}),
])
def test_font_metrics(scalars, expected):
	processor = MetricDeltaProcessor(mvar=makeMvar({"hasc": 40, "xhgt": -10}))
	assert processor.hasFontMetrics()
	assert dict(processor.applyFontMetrics(scalars)) == expected


def test_no_font_metrics():
	assert dict(MetricDeltaProcessor().applyFontMetrics([1.0])) == {}


def test_advance_map():
	hvar = makeHvar(advanceDeltas=(0, 100, -30), advanceMap={
		".notdef": 0, "square": 2, "composite": 1})
	processor = MetricDeltaProcessor(hvar=hvar, glyphOrder=GLYPH_ORDER)
	assert processor.applyDeltas(1, [1.0]).advanceWidth == -30
	assert processor.applyDeltas(2, [1.0]).advanceWidth == 100
	# glyph IDs past the glyph order have no mapping
	assert processor.applyDeltas(7, [1.0]).advanceWidth == 0


def test_expandDeltaSet():
	store = makeVarStore([[10, 20]], regions=((0.0, 1.0, 1.0), (-1.0, -1.0, 0.0)))
	assert expandDeltaSet(store, 0) == [10, 20]
	assert expandDeltaSet(store, ot.NO_VARIATION_INDEX) is None
	assert expandDeltaSet(store, 1) is None
	assert expandDeltaSet(store, 1 << 16) is None
	# subtables may reference a subset of the regions
	store.VarData[0].VarRegionIndex = [1]
	store.VarData[0].Item = [[7]]
	assert expandDeltaSet(store, 0) == [0, 7]
