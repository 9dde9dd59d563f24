"""Energy balance of a market stage.

One balance routine serves all market designs. The scope of the stage decides the spatial
units (zones or nodes), the mapping of plants to units, the demand and the network
injection. Per unit and timestep::

    generation + network injection + prosumer net injection - CU = demand - LL

CU (excess generation) and LL (lost load) are penalized slacks, the dual of the balance
constraint is the market price.
"""
import pyomo.environ as pe

from pomatwo.market_model.market_setup import Redispatch


def prosumer_net_injection(stage, plant, t):
    """Net injection of a prosumer into the balance.

    Without a prosumer result the prosumer demand is inflexible load, in redispatch the
    net input of the prosumer stage is used.
    """
    if isinstance(stage.state, Redispatch):
        prs_netinput = stage.state.day_ahead_result.get("prs_netinput")
        if prs_netinput is not None and plant in prs_netinput.columns:
            return float(prs_netinput.loc[t, plant])
    return -float(stage.prosumer_demand.loc[t, plant])


def add_balance(stage):
    """Add the balance constraint *MarketBalance* on the scope of the stage."""
    scope, timesteps = stage.scope, stage.timesteps
    units = scope.spatial_units(stage.data)
    unit_of_plant = scope.unit_of_plants(stage.data)
    demand = scope.demand(stage)

    plants_in_unit = {unit: [] for unit in units}
    for plant in stage.plant_injection:
        plants_in_unit[unit_of_plant[plant]].append(plant)
    prosumers_in_unit = {unit: [] for unit in units}
    for plant in stage.sets["prs"]:
        prosumers_in_unit[unit_of_plant[plant]].append(plant)

    block = stage.add_block("balance")
    block.CU = pe.Var(units, timesteps, within=pe.NonNegativeReals)
    block.LL = pe.Var(units, timesteps, within=pe.NonNegativeReals)

    def balance_rule(b, unit, t):
        generation = sum(stage.plant_injection[p][t] for p in plants_in_unit[unit])
        prosumer = sum(prosumer_net_injection(stage, p, t) for p in prosumers_in_unit[unit])
        return (generation + scope.network_injection(stage, unit, t) + prosumer
                - b.CU[unit, t] + b.LL[unit, t] == float(demand.loc[t, unit]))
    block.MarketBalance = pe.Constraint(units, timesteps, rule=balance_rule)
    block.cost = pe.Expression(expr=stage.options["infeasibility"]["electricity"]["cost"]*sum(
        block.CU[unit, t] + block.LL[unit, t] for unit in units for t in timesteps))

    table = scope.balance_name(stage.state)
    for t in timesteps:
        for unit in units:
            stage.add_row(table, **{scope.unit: unit}, timestep=t,
                          MarketBalance=stage.dual(block.MarketBalance[unit, t]),
                          CU=block.CU[unit, t], LL=block.LL[unit, t])
    stage.balance_table = table
    return block
