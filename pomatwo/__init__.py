"""POMATWO, market clearing core of the POwer MArket TOol.

Zonal and nodal day-ahead market clearing with optional prosumer self-optimization and
redispatch, see :class:`~pomatwo.POMATWO`.
"""
import pomatwo.tools
import pomatwo.data
import pomatwo.grid
import pomatwo.market_model
from pomatwo.pomatwo import POMATWO
from pomatwo.exceptions import ConfigurationError, PTDFError, SolverError, TopologyError
