"""Build, solve and read out the optimization model of one market stage."""
import collections
import datetime
import logging

import numpy as np
import pandas as pd
import pyomo.environ as pe
from pyomo.opt import SolverFactory, TerminationCondition

from pomatwo.data.results import RESULT_COLUMNS
from pomatwo.market_model.balance import add_balance
from pomatwo.market_model.components import COMPONENTS
from pomatwo.market_model.market_setup import balance_scope

Dual = collections.namedtuple("Dual", ["constraint"])

IDENTIFIERS = ["plant", "node", "line", "dcline", "zone", "zone_i", "zone_j", "timestep"]

OPTIMAL = [TerminationCondition.optimal, TerminationCondition.locallyOptimal, TerminationCondition.globallyOptimal]


def create_solver(options):
    """Solver as defined in the solver options, with time limit and solver options."""
    solver = SolverFactory(options["solver"]["name"])
    for option, value in options["solver"]["options"].items():
        solver.options[option] = value
    time_limit = options["solver"]["time_limit"]
    if time_limit is not None:
        if hasattr(solver, "config") and hasattr(solver.config, "time_limit"):
            solver.config.time_limit = time_limit
        else:
            solver.options["time_limit"] = time_limit
    return solver


def solver_available(name):
    return bool(SolverFactory(name).available(exception_flag=False))


class StageBuilder():
    """Optimization model of one stage of a chunk.

    The model is a pyomo ConcreteModel with one Block per sub-model, see
    :mod:`~pomatwo.market_model.components`, and the balance of the stage scope. The
    objective is the sum of the *cost* expressions of all blocks.

    Parameters
    ----------
    data : :class:`~pomatwo.data.DataManagement`
        Input data.
    grid_representation : types.SimpleNamespace
        Grid representation of the :class:`~pomatwo.grid.GridModel`.
    setup : :class:`~pomatwo.market_model.MarketSetup`
        Market setup.
    state : DayAhead, ProsumerOptimizationState or Redispatch
        Stage state.
    options : dict
        The options from POMATWO main module.

    Attributes
    ----------
    model : pyomo.environ.ConcreteModel
        The optimization model.
    status : dict
        Termination condition and objective value after solve.
    """

    def __init__(self, data, grid_representation, setup, state, options):
        self.logger = logging.getLogger('log.pomatwo.market_model.StageBuilder')
        self.data = data
        self.grid_representation = grid_representation
        self.setup = setup
        self.state = state
        self.options = options
        self.scope = balance_scope(setup, state)

        self.model = pe.ConcreteModel(name=f"{state.name}_t{self.timesteps[0]}-t{self.timesteps[-1]}")
        self.model.dual = pe.Suffix(direction=pe.Suffix.IMPORT)
        self.blocks = []
        self.rows = {}
        self.plant_injection = {}
        self.balance_table = None
        self.status = {"termination": "not solved", "objective": None, "optimal": False}

        self.sets = data.plant_sets()
        plants, timesteps = data.plants, self.timesteps
        self.availability = data.availability_frame(timesteps)
        self.mc = data.marginal_cost(timesteps)
        self.gmax = plants.g_max.astype(float)
        self.demand = data.timeseries_frame("demand_el", "node", "demand_el", timesteps, data.nodes.index)
        self.prosumer_demand = data.timeseries_frame("prosumer_demand", "plant", "demand",
                                                     timesteps, self.sets["prs"])
        self.inflows = data.timeseries_frame("inflows", "plant", "inflow", timesteps, self.sets["es"])
        self.fixed_exchange = data.timeseries_frame("fixed_exchange", "zone", "fixed_exchange",
                                                    timesteps, data.zones.index)

    @property
    def timesteps(self):
        return self.state.timesteps

    def capacity(self, plant, t):
        """Available capacity of a plant."""
        return float(self.availability.loc[t, plant]*self.gmax[plant])

    def day_ahead_value(self, key, plants):
        """Day-ahead result as timestep x plant DataFrame, missing values are zero."""
        frame = self.state.day_ahead_result.get(key, pd.DataFrame())
        frame = frame.reindex(index=self.timesteps, columns=plants).astype(float)
        if frame.isna().any().any():
            self.logger.warning("Day-ahead result %s incomplete, missing values are set to zero", key)
        return frame.fillna(0).clip(lower=0)

    def add_block(self, name):
        block = pe.Block()
        self.model.add_component(name, block)
        self.blocks.append(block)
        return block

    def add_row(self, table, **row):
        self.rows.setdefault(table, []).append(row)

    @staticmethod
    def dual(constraint):
        return Dual(constraint)

    def build(self):
        """Build all sub-models, the balance and the objective."""
        t_start = datetime.datetime.now()
        for component in COMPONENTS:
            component.add(self)
        if self.state.has_balance:
            add_balance(self)
        self.model.objective = pe.Objective(expr=sum(block.cost for block in self.blocks), sense=pe.minimize)
        self.logger.debug("Built %s in %s sec", self.model.name,
                          str((datetime.datetime.now() - t_start).total_seconds()))
        return self.model

    def solve(self, solver=None):
        """Solve the model.

        When the solver does not terminate optimal a warning is logged and the solution is
        loaded if one is available, so that the result tables can still be written.

        Returns
        -------
        status : dict
            *termination*, *objective* and *optimal*.
        """
        solver = solver if solver is not None else create_solver(self.options)
        t_start = datetime.datetime.now()
        self.logger.info("Solving %s, Start-Time: %s", self.model.name, t_start.strftime("%H:%M:%S"))
        results = solver.solve(self.model, load_solutions=False)
        termination = results.solver.termination_condition
        optimal = termination in OPTIMAL

        if len(results.solution) > 0:
            try:
                self.model.solutions.load_from(results)
            except ValueError as error:
                self.logger.warning("Solution of %s could not be loaded: %s", self.model.name, error)
        if not optimal:
            self.logger.warning("%s not solved to optimality, termination condition: %s",
                                self.model.name, str(termination))

        t_end = datetime.datetime.now()
        self.logger.info("End-Time: %s", t_end.strftime("%H:%M:%S"))
        self.logger.info("Total Time: %s", str((t_end - t_start).total_seconds()) + " sec")
        objective = pe.value(self.model.objective, exception=False)
        self.status = {"termination": str(termination),
                       "objective": float(objective) if objective is not None else None,
                       "optimal": optimal}
        return self.status

    def _value(self, item):
        if isinstance(item, Dual):
            return float(self.model.dual.get(item.constraint, np.nan))
        value = pe.value(item, exception=False)
        return float(value) if value is not None else np.nan

    def results(self):
        """Result tables of the stage with the columns defined in RESULT_COLUMNS."""
        tables = {}
        for table, rows in self.rows.items():
            data = [{column: value if column in IDENTIFIERS else self._value(value)
                     for column, value in row.items()} for row in rows]
            tables[table] = pd.DataFrame(data, columns=RESULT_COLUMNS[table])
        return tables

    def _frame(self, component, plants):
        return pd.DataFrame([[self._value(component[p, t]) for p in plants] for t in self.timesteps],
                            index=self.timesteps, columns=plants, dtype=float)

    def prices(self):
        """Dual of the balance as timestep x spatial unit DataFrame."""
        units = self.scope.spatial_units(self.data)
        if not hasattr(self.model, "balance"):
            return pd.DataFrame(index=self.timesteps, columns=units, dtype=float)
        return self._frame(_DualAccessor(self.model.balance.MarketBalance), units)

    def snapshot(self):
        """Values of the stage passed on to the following stages.

        Day-ahead: generation, curtailment, storage operation and price. Prosumer stage:
        net input of the prosumers.
        """
        if self.state.name == "prosumer":
            return {"prs_netinput": self._frame(self.model.prosumer.PRS_NETINPUT, self.sets["prs"])}
        return {"disp_generation": self._frame(self.model.disp.GEN, self.sets["disp"]),
                "ndisp_cu": self._frame(self.model.ndisp.CU, self.sets["ndisp"]),
                "sto_generation": self._frame(self.model.storage.GEN, self.sets["es"]),
                "sto_charge": self._frame(self.model.storage.CHARGE, self.sets["es"]),
                "price": self.prices()}


class _DualAccessor():
    def __init__(self, constraint):
        self.constraint = constraint

    def __getitem__(self, index):
        return Dual(self.constraint[index])
