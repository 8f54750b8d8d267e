"""sfntTools.varLib -- instancing of OpenType variable fonts.

The pipeline runs in stages, each in its own module:

	normalizer       user coordinates -> normalized coordinates
	regions          normalized coordinates -> region scalars
	glyphDeltas      'gvar' point deltas for one glyph
	metricDeltas     HVAR/VVAR per-glyph and MVAR font-wide deltas
	deltaApplicator  the stages above behind one call
	staticBuilder    new tables with the deltas applied, variation tables dropped
	instancer        the public entry point: Instancer(font).instance({...})
"""

from fontTools.misc.fixedTools import otRound
from sfntTools.varLib.errors import (VarLibError, NotVariableFontError,
	VariationArgumentError, UnknownAxisError, InvalidCoordinatesError,
	NamedInstanceNotFoundError)
import math
import logging


log = logging.getLogger(__name__)


roundingModes = {
	"round": otRound,
	"floor": math.floor,
	"ceil": math.ceil,
	"truncate": math.trunc,
}


def getRoundingFunction(mode):
	""" Return the float -> int function for a rounding mode name.

	>>> getRoundingFunction("round")(2.5), getRoundingFunction("round")(-2.5)
	(3, -2)
	>>> getRoundingFunction("truncate")(-2.7)
	-2
	"""
	try:
		return roundingModes[mode]
	except KeyError:
		raise ValueError("unknown rounding mode %r; expected one of %s"
			% (mode, ", ".join(sorted(roundingModes))))
