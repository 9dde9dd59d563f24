"""Market setup and stage states of the market model.

The :class:`MarketSetup` is derived once from the options and is immutable afterwards. It
defines the spatial scope of the day-ahead market, whether a prosumer stage runs in between
and whether the day-ahead result is followed by a redispatch stage.

Each chunk of the model horizon is cleared in a sequence of stages, each described by a
state object:

    - :class:`DayAhead`: Economic dispatch on the market scope.
    - :class:`ProsumerOptimizationState`: Self-optimization of prosumers against the retail
      price derived from the day-ahead price.
    - :class:`Redispatch`: Cost minimal deviation from the day-ahead result to obtain a
      feasible nodal dispatch.

The scope objects (:class:`ZonalScope`, :class:`NodalScope`) carry everything that differs
between a zonal and a nodal balance, the stage components only ask the scope.
"""
import collections

from pomatwo.exceptions import ConfigurationError
from pomatwo.market_model.components import add_dc_load_flow, add_ntc_exchange

FLOW_FORMULATIONS = ["phase_angle", "ptdf"]
RETAIL_TYPES = ["buy_price", "flat", "realtime"]
CHUNK_BOUNDARIES = ["cyclic", "initial"]


class ZonalScope():
    """Zonal market, zones are balanced and exchange within NTCs."""
    name = "zonal"
    unit = "zone"

    def __init__(self, exchange="ntc"):
        if exchange != "ntc":
            raise ConfigurationError(f"Zonal exchange {exchange} is not supported, use ntc")
        self.exchange = exchange

    def __repr__(self):
        return f"ZonalScope(exchange={self.exchange!r})"

    def __eq__(self, other):
        return isinstance(other, ZonalScope) and other.exchange == self.exchange

    def __hash__(self):
        return hash((self.name, self.exchange))

    def balance_name(self, state):
        return "ZonalMarketBalance"

    def spatial_units(self, data):
        return list(data.zones.index)

    def unit_of_plants(self, data):
        """Zone of each plant."""
        return data.plants.node.map(data.nodes.zone)

    def demand(self, stage):
        """Demand per zone as timestep x zone DataFrame."""
        nodal = stage.demand
        demand = nodal.T.groupby(stage.data.nodes.zone).sum().T
        return demand.reindex(columns=self.spatial_units(stage.data), fill_value=0)

    def network_injection(self, stage, unit, t):
        return stage.model.network.EXCHANGE[unit, t]

    def add_network(self, stage):
        add_ntc_exchange(stage)


class NodalScope():
    """Nodal market, nodes are balanced and connected by the DC load flow."""
    name = "nodal"
    unit = "node"

    def __init__(self, formulation="phase_angle"):
        if formulation not in FLOW_FORMULATIONS:
            raise ConfigurationError(f"Please choose a valid flow formulation, got {formulation}")
        self.formulation = formulation

    def __repr__(self):
        return f"NodalScope(formulation={self.formulation!r})"

    def __eq__(self, other):
        return isinstance(other, NodalScope) and other.formulation == self.formulation

    def __hash__(self):
        return hash((self.name, self.formulation))

    def balance_name(self, state):
        if isinstance(state, Redispatch):
            return "NodalMarketRedispBalance"
        return "NodalMarketBalance"

    def spatial_units(self, data):
        return list(data.nodes.index)

    def unit_of_plants(self, data):
        """Node of each plant."""
        return data.plants.node

    def demand(self, stage):
        return stage.demand

    def network_injection(self, stage, unit, t):
        return stage.model.network.NETINPUT[unit, t]

    def add_network(self, stage):
        add_dc_load_flow(stage, self.formulation)


RedispatchSetup = collections.namedtuple("RedispatchSetup", ["formulation"])

ProsumerOptimization = collections.namedtuple(
    "ProsumerOptimization", ["sell_price", "buy_price", "retail_type", "grid_fee",
                             "storage_cost", "storage_retention"])


class MarketSetup(collections.namedtuple("MarketSetup", ["scope", "redispatch", "prosumer"])):
    """Immutable description of the market design.

    Attributes
    ----------
    scope : :class:`ZonalScope` or :class:`NodalScope`
        Spatial scope of the day-ahead market.
    redispatch : :obj:`RedispatchSetup` or None
        Flow formulation of the redispatch stage, None without redispatch.
    prosumer : :obj:`ProsumerOptimization` or None
        Parameters of the prosumer stage, None without prosumer optimization.
    """
    __slots__ = ()

    @property
    def has_redispatch(self):
        return self.redispatch is not None

    @property
    def has_prosumer(self):
        return self.prosumer is not None

    @classmethod
    def from_options(cls, options):
        """Create the setup from the options.

        Raises
        ------
        ConfigurationError
            Invalid market scope, flow formulation, retail type or chunk boundary.
        """
        market = options["market"]
        if market["scope"] == "zonal":
            scope = ZonalScope(market["exchange"])
        elif market["scope"] == "nodal":
            scope = NodalScope(market["formulation"])
        else:
            raise ConfigurationError(f"Please choose a valid market scope, got {market['scope']}")

        redispatch = None
        if options["redispatch"]["include"]:
            formulation = options["redispatch"]["formulation"]
            if formulation not in FLOW_FORMULATIONS:
                raise ConfigurationError(f"Please choose a valid redispatch formulation, got {formulation}")
            redispatch = RedispatchSetup(formulation)

        prosumer = None
        if options["prosumer"]["include"]:
            prs = options["prosumer"]
            if prs["retail_type"] not in RETAIL_TYPES:
                raise ConfigurationError(f"Please choose a valid retail type, got {prs['retail_type']}")
            prosumer = ProsumerOptimization(float(prs["sell_price"]), float(prs["buy_price"]),
                                            prs["retail_type"], float(prs["grid_fee"]),
                                            float(prs["storage_cost"]), float(prs["storage_retention"]))

        if options["storages"]["chunk_boundary"] not in CHUNK_BOUNDARIES:
            raise ConfigurationError("Please choose a valid storage chunk boundary, got "
                                     f"{options['storages']['chunk_boundary']}")
        return cls(scope, redispatch, prosumer)


class DayAhead():
    """Day-ahead market clearing of a chunk."""
    name = "day_ahead"
    has_balance = True

    def __init__(self, timesteps):
        self.timesteps = list(timesteps)


class ProsumerOptimizationState():
    """Prosumer self-optimization of a chunk.

    Parameters
    ----------
    timesteps : list(int)
        Timesteps of the chunk.
    price : pandas.DataFrame
        Day-ahead price as timestep x spatial unit table.
    """
    name = "prosumer"
    has_balance = False

    def __init__(self, timesteps, price):
        self.timesteps = list(timesteps)
        self.price = price


class Redispatch():
    """Redispatch of a chunk, relative to the day-ahead result.

    Parameters
    ----------
    timesteps : list(int)
        Timesteps of the chunk.
    day_ahead_result : dict(str, pandas.DataFrame)
        Snapshot of the previous stages, timestep x plant tables *disp_generation*,
        *ndisp_cu*, *sto_generation*, *sto_charge* and optionally *prs_netinput*.
    """
    name = "redispatch"
    has_balance = True

    def __init__(self, timesteps, day_ahead_result):
        self.timesteps = list(timesteps)
        self.day_ahead_result = day_ahead_result


def balance_scope(setup, state):
    """Scope of the balance in a stage, redispatch is always cleared nodally."""
    if isinstance(state, Redispatch):
        return NodalScope(setup.redispatch.formulation)
    return setup.scope
