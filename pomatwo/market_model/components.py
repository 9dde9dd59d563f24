"""Sub-models of the market model.

Each component adds one pyomo Block to the model of a stage: dispatchable and
non-dispatchable generation, storages, the network and prosumers. What the block contains
depends on the stage, each component implements one method per stage name
(*day_ahead*, *prosumer*, *redispatch*), stages a component does not take part in are
skipped.

A block exposes its contribution to the objective as the expression *cost*. Plants register
their injection per timestep in ``stage.plant_injection`` and result rows in the result
tables of the stage, the balance is added after all components are built, see
:mod:`~pomatwo.market_model.balance`.
"""
import numpy as np
import pandas as pd
import pyomo.environ as pe

from pomatwo.tools import prev_period


def add_generation_targets(stage, block, plants, generation, penalty=None):
    """Add min_generation and historical_generation targets per plant type.

    The targets apply to the sum of *generation* of all plants of a plant type. With a
    penalty the constraint can be violated through a non-negative slack.

    Returns
    -------
    cost : pyomo expression or int
        Penalty cost of the target slack.
    """
    timesteps = stage.timesteps
    plant_type = stage.data.plants.loc[plants, "plant_type"]
    targets = []
    for table in ["min_generation", "historical_generation"]:
        target_data = getattr(stage.data, table)
        if len(target_data) == 0 or len(plants) == 0:
            continue
        types = [pt for pt in pd.unique(plant_type) if pt in set(target_data.plant_type)]
        frame = stage.data.timeseries_frame(table, "plant_type", table, timesteps, types, default=np.nan)
        for pt in types:
            members = list(plant_type.index[plant_type == pt])
            for t in timesteps:
                if not np.isnan(frame.loc[t, pt]):
                    targets.append((table, members, t, frame.loc[t, pt]))
    if not targets:
        return 0

    stage.logger.debug("Adding %d generation targets", len(targets))
    index = list(range(len(targets)))
    if penalty is not None:
        block.TARGET_INF = pe.Var(index, within=pe.NonNegativeReals)

    def target_rule(b, i):
        table, members, t, value = targets[i]
        expr = sum(generation(p, t) for p in members)
        if penalty is not None:
            expr = expr + b.TARGET_INF[i]
        if table == "min_generation":
            return expr >= value
        return expr == value

    block.GenerationTarget = pe.Constraint(index, rule=target_rule)
    if penalty is not None:
        return penalty*sum(block.TARGET_INF[i] for i in index)
    return 0


def previous_level(stage, level, plant, t, capacity):
    """Storage level before t.

    The first timestep of a chunk either wraps to the last timestep (*cyclic*) or starts
    at storage_start times the capacity (*initial*).
    """
    timesteps = stage.timesteps
    if t == timesteps[0] and stage.options["storages"]["chunk_boundary"] == "initial":
        return stage.options["storages"]["storage_start"]*capacity
    return level[plant, prev_period(timesteps, t)]


class Component():
    """Base of all sub-models, no contribution to any stage."""
    name = None

    def add(self, stage):
        builder = getattr(self, stage.state.name)
        builder(stage)

    def day_ahead(self, stage):
        pass

    def prosumer(self, stage):
        pass

    def redispatch(self, stage):
        pass


class DispatchableGeneration(Component):
    """Dispatchable plants, generation up to the available capacity at marginal cost."""
    name = "disp"

    def day_ahead(self, stage):
        plants, timesteps = stage.sets["disp"], stage.timesteps
        mc = stage.mc
        block = stage.add_block(self.name)

        block.GEN = pe.Var(plants, timesteps, bounds=lambda b, p, t: (0, stage.capacity(p, t)))
        target_cost = add_generation_targets(stage, block, plants, lambda p, t: block.GEN[p, t])
        block.cost = pe.Expression(
            expr=sum(mc.loc[t, p]*block.GEN[p, t] for p in plants for t in timesteps) + target_cost)

        for p in plants:
            stage.plant_injection[p] = {t: block.GEN[p, t] for t in timesteps}
            for t in timesteps:
                stage.add_row("GEN", plant=p, timestep=t, GEN=block.GEN[p, t], CU=0,
                              mc=mc.loc[t, p], gmax=stage.capacity(p, t))

    def redispatch(self, stage):
        plants, timesteps = stage.sets["disp"], stage.timesteps
        generation = stage.day_ahead_value("disp_generation", plants)
        cost = stage.options["redispatch"]["cost"]
        block = stage.add_block(self.name)

        block.GEN_UP = pe.Var(plants, timesteps,
                              bounds=lambda b, p, t: (0, max(stage.capacity(p, t) - generation.loc[t, p], 0)))
        block.GEN_DOWN = pe.Var(plants, timesteps, bounds=lambda b, p, t: (0, generation.loc[t, p]))
        block.GEN_REDISP = pe.Expression(
            plants, timesteps, rule=lambda b, p, t: generation.loc[t, p] + b.GEN_UP[p, t] - b.GEN_DOWN[p, t])
        block.cost = pe.Expression(
            expr=sum(cost*(block.GEN_UP[p, t] + block.GEN_DOWN[p, t]) for p in plants for t in timesteps))

        for p in plants:
            stage.plant_injection[p] = {t: block.GEN_REDISP[p, t] for t in timesteps}
            for t in timesteps:
                stage.add_row("REDISP", plant=p, timestep=t, GEN_REDISP=block.GEN_REDISP[p, t],
                              GEN_UP=block.GEN_UP[p, t], GEN_DOWN=block.GEN_DOWN[p, t],
                              gen=generation.loc[t, p], CU_REDISP=0, CHARGE_REDISP=0, CHARGE_UP=0,
                              CHARGE_DOWN=0, max_up=stage.capacity(p, t) - generation.loc[t, p])


class NonDispatchableGeneration(Component):
    """Renewable plants, generation is the availability times capacity less curtailment."""
    name = "ndisp"

    def day_ahead(self, stage):
        plants, timesteps = stage.sets["ndisp"], stage.timesteps
        block = stage.add_block(self.name)

        block.CU = pe.Var(plants, timesteps, bounds=lambda b, p, t: (0, stage.capacity(p, t)))
        block.FEEDIN = pe.Expression(plants, timesteps,
                                     rule=lambda b, p, t: stage.capacity(p, t) - b.CU[p, t])
        target_cost = add_generation_targets(stage, block, plants, lambda p, t: block.FEEDIN[p, t],
                                             penalty=stage.options["infeasibility"]["generation"]["cost"])
        block.cost = pe.Expression(
            expr=stage.options["curtailment"]["cost"]*sum(block.CU[p, t] for p in plants for t in timesteps)
            + target_cost)

        for p in plants:
            stage.plant_injection[p] = {t: block.FEEDIN[p, t] for t in timesteps}
            for t in timesteps:
                stage.add_row("GEN", plant=p, timestep=t, GEN=block.FEEDIN[p, t], CU=block.CU[p, t],
                              mc=0, gmax=stage.capacity(p, t))

    def redispatch(self, stage):
        """Curtailment can only be increased relative to the day-ahead curtailment."""
        plants, timesteps = stage.sets["ndisp"], stage.timesteps
        curtailment = stage.day_ahead_value("ndisp_cu", plants)
        cost = stage.options["redispatch"]["curtailment_cost"]
        block = stage.add_block(self.name)

        block.CU = pe.Var(plants, timesteps,
                          bounds=lambda b, p, t: (min(curtailment.loc[t, p], stage.capacity(p, t)),
                                                  stage.capacity(p, t)))
        block.FEEDIN_REDISP = pe.Expression(plants, timesteps,
                                            rule=lambda b, p, t: stage.capacity(p, t) - b.CU[p, t])
        block.cost = pe.Expression(
            expr=sum(cost*(block.CU[p, t] - curtailment.loc[t, p]) for p in plants for t in timesteps))

        for p in plants:
            stage.plant_injection[p] = {t: block.FEEDIN_REDISP[p, t] for t in timesteps}
            for t in timesteps:
                stage.add_row("REDISP", plant=p, timestep=t, GEN_REDISP=block.FEEDIN_REDISP[p, t],
                              GEN_UP=0, GEN_DOWN=0, gen=stage.capacity(p, t) - curtailment.loc[t, p],
                              CU_REDISP=block.CU[p, t], CHARGE_REDISP=0, CHARGE_UP=0, CHARGE_DOWN=0,
                              max_up=0)


class Storage(Component):
    """Storages with generation, charging, storage level and inflows."""
    name = "storage"

    def _parameters(self, stage):
        plants = stage.data.plants.loc[stage.sets["es"]]
        eta = plants.eta.astype(float)
        if (eta <= 0).any():
            stage.logger.warning("Storages with non-positive efficiency, using eta = 1 for %s",
                                 ", ".join(eta.index[eta <= 0]))
            eta = eta.where(eta > 0, 1)
        return (plants.g_max.astype(float), plants.g_max_storage.astype(float),
                plants.storage_capacity.astype(float), eta)

    def _add_level(self, stage, block, level_name, generation, charge):
        """Storage level constraint with penalized infeasibility in both directions."""
        storages, timesteps = stage.sets["es"], stage.timesteps
        _, _, storage, eta = self._parameters(stage)
        level = getattr(block, level_name)
        block.INF_POS = pe.Var(storages, timesteps, within=pe.NonNegativeReals)
        block.INF_NEG = pe.Var(storages, timesteps, within=pe.NonNegativeReals)
        block.INF = pe.Expression(storages, timesteps, rule=lambda b, s, t: b.INF_POS[s, t] - b.INF_NEG[s, t])

        def level_rule(b, s, t):
            return level[s, t] == (previous_level(stage, level, s, t, storage[s])
                                   - generation(s, t)/eta[s] + charge(s, t)*eta[s]
                                   + stage.inflows.loc[t, s] + b.INF[s, t])
        block.StorageLevel = pe.Constraint(storages, timesteps, rule=level_rule)
        return stage.options["infeasibility"]["storage"]["cost"]*sum(
            block.INF_POS[s, t] + block.INF_NEG[s, t] for s in storages for t in timesteps)

    def day_ahead(self, stage):
        storages, timesteps = stage.sets["es"], stage.timesteps
        gmax, gmax_storage, storage, _ = self._parameters(stage)
        block = stage.add_block(self.name)

        block.GEN = pe.Var(storages, timesteps, bounds=lambda b, s, t: (0, gmax[s]))
        block.CHARGE = pe.Var(storages, timesteps, bounds=lambda b, s, t: (0, gmax_storage[s]))
        block.STO_LVL = pe.Var(storages, timesteps, bounds=lambda b, s, t: (0, storage[s]))
        inf_cost = self._add_level(stage, block, "STO_LVL",
                                   lambda s, t: block.GEN[s, t], lambda s, t: block.CHARGE[s, t])
        mc = stage.mc
        block.cost = pe.Expression(
            expr=sum(mc.loc[t, s]*block.GEN[s, t] for s in storages for t in timesteps) + inf_cost)

        for s in storages:
            stage.plant_injection[s] = {t: block.GEN[s, t] - block.CHARGE[s, t] for t in timesteps}
            for t in timesteps:
                stage.add_row("GEN", plant=s, timestep=t, GEN=block.GEN[s, t], CU=0, mc=mc.loc[t, s], gmax=gmax[s])
                stage.add_row("CHARGE", plant=s, timestep=t, CHARGE=block.CHARGE[s, t], gmax=gmax_storage[s])
                stage.add_row("STO_LVL", plant=s, timestep=t, STO_LVL=block.STO_LVL[s, t],
                              storage=storage[s], INF=block.INF[s, t])

    def redispatch(self, stage):
        storages, timesteps = stage.sets["es"], stage.timesteps
        gmax, gmax_storage, storage, _ = self._parameters(stage)
        generation = stage.day_ahead_value("sto_generation", storages)
        charge = stage.day_ahead_value("sto_charge", storages)
        cost = stage.options["redispatch"]["cost"]
        block = stage.add_block(self.name)

        block.GEN_UP = pe.Var(storages, timesteps, bounds=lambda b, s, t: (0, max(gmax[s] - generation.loc[t, s], 0)))
        block.GEN_DOWN = pe.Var(storages, timesteps, bounds=lambda b, s, t: (0, generation.loc[t, s]))
        block.CHARGE_UP = pe.Var(storages, timesteps,
                                 bounds=lambda b, s, t: (0, max(gmax_storage[s] - charge.loc[t, s], 0)))
        block.CHARGE_DOWN = pe.Var(storages, timesteps, bounds=lambda b, s, t: (0, charge.loc[t, s]))
        block.STO_LVL_REDISP = pe.Var(storages, timesteps, bounds=lambda b, s, t: (0, storage[s]))
        block.GEN_REDISP = pe.Expression(
            storages, timesteps, rule=lambda b, s, t: generation.loc[t, s] + b.GEN_UP[s, t] - b.GEN_DOWN[s, t])
        block.CHARGE_REDISP = pe.Expression(
            storages, timesteps, rule=lambda b, s, t: charge.loc[t, s] + b.CHARGE_UP[s, t] - b.CHARGE_DOWN[s, t])
        inf_cost = self._add_level(stage, block, "STO_LVL_REDISP",
                                   lambda s, t: block.GEN_REDISP[s, t], lambda s, t: block.CHARGE_REDISP[s, t])
        block.cost = pe.Expression(
            expr=sum(cost*(block.GEN_UP[s, t] + block.GEN_DOWN[s, t] + block.CHARGE_UP[s, t] + block.CHARGE_DOWN[s, t])
                     for s in storages for t in timesteps) + inf_cost)

        for s in storages:
            stage.plant_injection[s] = {t: block.GEN_REDISP[s, t] - block.CHARGE_REDISP[s, t] for t in timesteps}
            for t in timesteps:
                stage.add_row("REDISP", plant=s, timestep=t, GEN_REDISP=block.GEN_REDISP[s, t],
                              GEN_UP=block.GEN_UP[s, t], GEN_DOWN=block.GEN_DOWN[s, t],
                              gen=generation.loc[t, s], CU_REDISP=0, CHARGE_REDISP=block.CHARGE_REDISP[s, t],
                              CHARGE_UP=block.CHARGE_UP[s, t], CHARGE_DOWN=block.CHARGE_DOWN[s, t],
                              max_up=gmax[s] - generation.loc[t, s])
                stage.add_row("STO_LVL_REDISP", plant=s, timestep=t, STO_LVL_REDISP=block.STO_LVL_REDISP[s, t],
                              storage=storage[s], INF=block.INF[s, t])


def add_dc_load_flow(stage, formulation):
    """Nodal network with AC lines in DC load flow approximation and controllable DC lines.

    *phase_angle*: Line flows are the susceptance times the voltage angle difference, the
    angle of slack and omitted nodes is fixed to zero.

    *ptdf*: Line flows are the PTDF times the net import of each node, net imports of slack
    and omitted nodes do not affect line flows and are fixed to zero.

    In both formulations the net input of a node is the sum of incoming minus outgoing
    flows on AC and DC lines. Line limits can be exceeded at the cost of LINEINF.
    """
    grid = stage.grid_representation
    nodes, timesteps = list(stage.data.nodes.index), stage.timesteps
    lines, dclines = grid.lines, grid.dclines
    line_index, dcline_index = list(lines.index), list(dclines.index)
    fixed_nodes = set(grid.slack) | set(grid.omitted_nodes)
    block = stage.add_block("network")

    block.LINEINF = pe.Var(line_index, timesteps, within=pe.NonNegativeReals)
    block.F_POS = pe.Var(dcline_index, timesteps, bounds=lambda b, l, t: (0, dclines.capacity[l]))
    block.F_NEG = pe.Var(dcline_index, timesteps, bounds=lambda b, l, t: (0, dclines.capacity[l]))
    block.DCLINEFLOW = pe.Expression(dcline_index, timesteps, rule=lambda b, l, t: b.F_POS[l, t] - b.F_NEG[l, t])

    if formulation == "phase_angle":
        block.THETA = pe.Var(nodes, timesteps)
        for n in fixed_nodes:
            for t in timesteps:
                block.THETA[n, t].fix(0)
        block.LINEFLOW = pe.Expression(
            line_index, timesteps,
            rule=lambda b, l, t: lines.b[l]*(b.THETA[lines.node_j[l], t] - b.THETA[lines.node_i[l], t]))
        delta = lambda n, t: block.THETA[n, t]
    else:
        ptdf = grid.ptdf
        block.INJ = pe.Var(nodes, timesteps)
        for n in fixed_nodes:
            for t in timesteps:
                block.INJ[n, t].fix(0)
        block.LINEFLOW = pe.Expression(
            line_index, timesteps,
            rule=lambda b, l, t: sum(ptdf.loc[l, n]*b.INJ[n, t] for n in nodes if ptdf.loc[l, n] != 0))
        delta = lambda n, t: np.nan

    lines_in = {n: list(lines.index[lines.node_j == n]) for n in nodes}
    lines_out = {n: list(lines.index[lines.node_i == n]) for n in nodes}
    dclines_in = {n: list(dclines.index[dclines.node_j == n]) for n in nodes}
    dclines_out = {n: list(dclines.index[dclines.node_i == n]) for n in nodes}

    def netinput_rule(b, n, t):
        return (sum(b.LINEFLOW[l, t] for l in lines_in[n]) - sum(b.LINEFLOW[l, t] for l in lines_out[n])
                + sum(b.DCLINEFLOW[l, t] for l in dclines_in[n]) - sum(b.DCLINEFLOW[l, t] for l in dclines_out[n]))
    block.NETINPUT = pe.Expression(nodes, timesteps, rule=netinput_rule)

    block.LineLimitPos = pe.Constraint(
        line_index, timesteps, rule=lambda b, l, t: b.LINEFLOW[l, t] <= lines.capacity[l] + b.LINEINF[l, t])
    block.LineLimitNeg = pe.Constraint(
        line_index, timesteps, rule=lambda b, l, t: b.LINEFLOW[l, t] >= -lines.capacity[l] - b.LINEINF[l, t])
    block.cost = pe.Expression(
        expr=stage.options["infeasibility"]["lines"]["cost"]*sum(
            block.LINEINF[l, t] for l in line_index for t in timesteps))

    for t in timesteps:
        for n in nodes:
            stage.add_row("NETINPUT", node=n, timestep=t, NETINPUT=block.NETINPUT[n, t], DELTA=delta(n, t))
        for l in line_index:
            stage.add_row("LINEFLOW", line=l, timestep=t, LINEFLOW=block.LINEFLOW[l, t],
                          capacity=lines.capacity[l], LINEINF=block.LINEINF[l, t])
        for l in dcline_index:
            stage.add_row("DCLINEFLOW", dcline=l, timestep=t, DCLINEFLOW=block.DCLINEFLOW[l, t],
                          capacity=dclines.capacity[l])


def add_ntc_exchange(stage):
    """Zonal exchange, commercial exchange between two zones is limited by the NTC.

    The exchange of a zone is the sum of imports less the sum of exports plus the fixed
    exchange schedule of the zone.
    """
    ntc = stage.grid_representation.ntc
    zones, timesteps = list(stage.data.zones.index), stage.timesteps
    capacity = {(zone_i, zone_j): float(value) for zone_i, zone_j, value
                in zip(ntc.zone_i, ntc.zone_j, ntc.ntc)}
    pairs = list(capacity)
    block = stage.add_block("network")

    block.EX = pe.Var(pairs, timesteps, bounds=lambda b, zone_i, zone_j, t: (0, capacity[zone_i, zone_j]))

    def exchange_rule(b, z, t):
        return (sum(b.EX[zone_i, zone_j, t] for zone_i, zone_j in pairs if zone_j == z)
                - sum(b.EX[zone_i, zone_j, t] for zone_i, zone_j in pairs if zone_i == z)
                + stage.fixed_exchange.loc[t, z])
    block.EXCHANGE = pe.Expression(zones, timesteps, rule=exchange_rule)
    block.cost = pe.Expression(expr=0)

    for t in timesteps:
        for z in zones:
            stage.add_row("EXCHANGE", zone=z, timestep=t, EXCHANGE=block.EXCHANGE[z, t])
        for zone_i, zone_j in pairs:
            stage.add_row("NTC", zone_i=zone_i, zone_j=zone_j, timestep=t, EX=block.EX[zone_i, zone_j, t],
                          ntc=capacity[zone_i, zone_j])


class Network(Component):
    """Network of the balance scope: DC load flow for nodal, NTC exchange for zonal balances."""
    name = "network"

    def day_ahead(self, stage):
        stage.scope.add_network(stage)

    def redispatch(self, stage):
        stage.scope.add_network(stage)


class Prosumer(Component):
    """Prosumers, households with own generation, optional storage and demand.

    Without a prosumer stage the demand of prosumers is an inflexible load in all balances.
    In the prosumer stage each prosumer minimizes its cost against the retail price, the
    resulting net input is fixed in the redispatch stage.
    """
    name = "prosumer"

    def retail_price(self, stage, prosumers):
        """Retail price as timestep x prosumer DataFrame, before grid fees."""
        setup, timesteps = stage.setup.prosumer, stage.timesteps
        if setup.retail_type == "buy_price":
            return pd.DataFrame(setup.buy_price, index=timesteps, columns=prosumers)

        unit = stage.setup.scope.unit_of_plants(stage.data)
        price = stage.state.price
        reference = pd.DataFrame({p: price[unit[p]] if unit[p] in price.columns else np.nan
                                  for p in prosumers}, index=timesteps, columns=prosumers, dtype=float)
        if reference.isna().any().any():
            stage.logger.warning("No reference price for all prosumers, using the buy price instead")
            reference = reference.fillna(float(setup.buy_price))
        if setup.retail_type == "flat":
            return pd.DataFrame({p: reference[p].mean() for p in prosumers}, index=timesteps, columns=prosumers)
        return reference

    def prosumer(self, stage):
        setup, timesteps = stage.setup.prosumer, stage.timesteps
        prosumers, prs_storage = stage.sets["prs"], stage.sets["prs_storage"]
        plants = stage.data.plants
        demand = stage.prosumer_demand
        price = self.retail_price(stage, prosumers)
        block = stage.add_block(self.name)

        block.PRS_BUY = pe.Var(prosumers, timesteps, bounds=lambda b, p, t: (0, demand.loc[t, p]))
        block.PRS_SELL = pe.Var(prosumers, timesteps, bounds=lambda b, p, t: (0, stage.capacity(p, t)))
        block.PRS_SELF = pe.Var(prosumers, timesteps, within=pe.NonNegativeReals)
        block.PRS_CU = pe.Var(prosumers, timesteps, bounds=lambda b, p, t: (0, stage.capacity(p, t)))
        block.INF = pe.Var(prosumers, timesteps, within=pe.NonNegativeReals)
        block.PRS_STO_IN = pe.Var(prs_storage, timesteps, bounds=lambda b, p, t: (0, plants.g_max_storage[p]))
        block.PRS_STO_OUT = pe.Var(prs_storage, timesteps, bounds=lambda b, p, t: (0, plants.g_max_storage[p]))
        block.PRS_STO_LVL = pe.Var(prs_storage, timesteps, bounds=lambda b, p, t: (0, plants.storage_capacity[p]))

        block.PRS_TOTAL_GEN = pe.Expression(prosumers, timesteps,
                                            rule=lambda b, p, t: stage.capacity(p, t) - b.PRS_CU[p, t])
        block.PRS_NETINPUT = pe.Expression(prosumers, timesteps,
                                           rule=lambda b, p, t: b.PRS_SELL[p, t] - b.PRS_BUY[p, t])

        def storage_in(b, p, t):
            return b.PRS_STO_IN[p, t] if p in prs_storage else 0

        def storage_out(b, p, t):
            return b.PRS_STO_OUT[p, t] if p in prs_storage else 0

        block.GenerationBalance = pe.Constraint(
            prosumers, timesteps,
            rule=lambda b, p, t: b.PRS_TOTAL_GEN[p, t] == b.PRS_SELF[p, t] + b.PRS_SELL[p, t] + storage_in(b, p, t))
        block.EnergyBalance = pe.Constraint(
            prosumers, timesteps,
            rule=lambda b, p, t: (b.PRS_SELF[p, t] + storage_out(b, p, t) + b.PRS_BUY[p, t] + b.INF[p, t]
                                  == demand.loc[t, p]))

        eta = plants.eta.astype(float).where(plants.eta.astype(float) > 0, 1)

        def storage_rule(b, p, t):
            return b.PRS_STO_LVL[p, t] == (
                setup.storage_retention*previous_level(stage, b.PRS_STO_LVL, p, t, plants.storage_capacity[p])
                + eta[p]*b.PRS_STO_IN[p, t] - b.PRS_STO_OUT[p, t]/eta[p])
        block.StorageBalance = pe.Constraint(prs_storage, timesteps, rule=storage_rule)

        inf_cost = stage.options["infeasibility"]["electricity"]["cost"]
        block.cost = pe.Expression(expr=sum(
            (price.loc[t, p] + setup.grid_fee)*block.PRS_BUY[p, t] - setup.sell_price*block.PRS_SELL[p, t]
            + inf_cost*block.INF[p, t] for p in prosumers for t in timesteps)
            + setup.storage_cost*sum(block.PRS_STO_IN[p, t] + block.PRS_STO_OUT[p, t]
                                     for p in prs_storage for t in timesteps))

        for p in prosumers:
            for t in timesteps:
                stage.add_row("PRS", plant=p, timestep=t, PRS_TOTAL_GEN=block.PRS_TOTAL_GEN[p, t],
                              PRS_NETINPUT=block.PRS_NETINPUT[p, t], PRS_SELF=block.PRS_SELF[p, t],
                              PRS_CU=block.PRS_CU[p, t], PRS_BUY=block.PRS_BUY[p, t],
                              PRS_SELL=block.PRS_SELL[p, t],
                              PRS_STO_LVL=block.PRS_STO_LVL[p, t] if p in prs_storage else 0,
                              PRS_STO_IN=storage_in(block, p, t), PRS_STO_OUT=storage_out(block, p, t),
                              INF=block.INF[p, t])


COMPONENTS = [DispatchableGeneration(), NonDispatchableGeneration(), Storage(), Network(), Prosumer()]
