import logging
from fontTools.misc.loggingTools import configLogger

version = __version__ = "0.1.0"

log = logging.getLogger(__name__)

__all__ = ["version", "log", "configLogger"]
