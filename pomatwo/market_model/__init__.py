"""The MarketModel of POMATWO, clears the market based on data, options and grid representation.

The market is cleared in chunks of the model horizon. Each chunk runs through the stages
day-ahead, prosumer self-optimization and redispatch, depending on the market setup. Each
stage is a linear program composed of sub-models (generation, storage, network, prosumers)
and an energy balance on the spatial scope of the stage.

The MarketModel allows to dynamically change options and data for multiple model runs,
making sure all results are saved and correctly processed.
"""

from pomatwo.market_model.market_setup import (MarketSetup, ZonalScope, NodalScope, DayAhead,
                                               ProsumerOptimizationState, Redispatch, balance_scope)
from pomatwo.market_model.stage import StageBuilder
from pomatwo.market_model.market_model import MarketModel, run_chunk
