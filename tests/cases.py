"""Small data sets used throughout the tests."""
import json

import pandas as pd

INDEXED = {"zones": "zone", "nodes": "node", "lines": "line", "dclines": "dcline", "plants": "plant",
           "plant_types": "plant_type"}


def write_case(folder, tables, options=None):
    """Write tables (and options) as csv data set into folder."""
    folder.mkdir(parents=True, exist_ok=True)
    for name, table in tables.items():
        table.to_csv(folder.joinpath(name + ".csv"), index=name in INDEXED)
    if options is not None:
        with open(folder.joinpath("options.json"), "w") as opt_file:
            json.dump(options, opt_file)
    return folder


def timeseries(key, value, data):
    """Long format table from {entity: [value at t=1, value at t=2, ...]}."""
    rows = [[t, entity, v] for entity, values in data.items() for t, v in enumerate(values, start=1)]
    return pd.DataFrame(rows, columns=["timestep", key, value])


def indexed(name, data):
    table = pd.DataFrame(data)
    table = table.set_index(INDEXED[name])
    return table


def one_node_case(demand=(50, 50)):
    """One node, a cheap (20) and an expensive (40) plant with 100 MW each."""
    return {
        "nodes": indexed("nodes", {"node": ["N1"], "zone": ["Z1"], "slack": [True]}),
        "plants": indexed("plants", {"plant": ["G1", "G2"], "node": ["N1", "N1"],
                                     "plant_type": ["coal", "gas"], "g_max": [100.0, 100.0],
                                     "mc_el": [20.0, 40.0]}),
        "demand_el": timeseries("node", "demand_el", {"N1": list(demand)}),
    }


def two_zone_case():
    """Two zones with one node each, connected by a line and an NTC of 30 in each direction."""
    return {
        "zones": indexed("zones", {"zone": ["Z1", "Z2"]}),
        "nodes": indexed("nodes", {"node": ["N1", "N2"], "zone": ["Z1", "Z2"], "slack": [True, False]}),
        "lines": indexed("lines", {"line": ["L1"], "node_i": ["N1"], "node_j": ["N2"],
                                   "x": [0.1], "capacity": [1000.0]}),
        "plants": indexed("plants", {"plant": ["G1", "G2"], "node": ["N1", "N2"],
                                     "plant_type": ["coal", "gas"], "g_max": [100.0, 100.0],
                                     "mc_el": [20.0, 50.0]}),
        "ntc": pd.DataFrame({"zone_i": ["Z1", "Z2"], "zone_j": ["Z2", "Z1"], "ntc": [30.0, 30.0]}),
        "demand_el": timeseries("node", "demand_el", {"N1": [20, 20], "N2": [60, 60]}),
    }


def triangle_case(capacity_l1=50.0):
    """Three nodes with equal reactance, cheap generation at N1, expensive at N3, load at N2.

    Without congestion N1 serves the load of 90. The flow on L1 (N1 to N2) is
    30 + g1/3, with a capacity of 50 the cheap plant is limited to 60.
    """
    return {
        "nodes": indexed("nodes", {"node": ["N1", "N2", "N3"], "zone": ["Z1", "Z1", "Z1"],
                                   "slack": [True, False, False]}),
        "lines": indexed("lines", {"line": ["L1", "L2", "L3"], "node_i": ["N1", "N2", "N1"],
                                   "node_j": ["N2", "N3", "N3"], "x": [0.1, 0.1, 0.1],
                                   "capacity": [capacity_l1, 500.0, 500.0]}),
        "plants": indexed("plants", {"plant": ["G1", "G3"], "node": ["N1", "N3"],
                                     "plant_type": ["coal", "gas"], "g_max": [200.0, 200.0],
                                     "mc_el": [10.0, 50.0]}),
        "demand_el": timeseries("node", "demand_el", {"N2": [90]}),
    }


def storage_case():
    """One node, the cheap plant is only available in the first timestep."""
    tables = one_node_case(demand=(100, 100))
    tables["plants"] = indexed("plants", {"plant": ["G1", "G2", "S1"], "node": ["N1", "N1", "N1"],
                                          "plant_type": ["coal", "gas", "storage"],
                                          "g_max": [150.0, 200.0, 50.0], "mc_el": [10.0, 100.0, 0.0],
                                          "eta": [1.0, 1.0, 1.0], "storage_capacity": [0.0, 0.0, 100.0]})
    tables["availability"] = timeseries("plant", "availability", {"G1": [1, 0]})
    return tables


def prosumer_case():
    """One node with a prosumer (10 MW, available only in the first timestep)."""
    tables = one_node_case()
    tables["plants"] = indexed("plants", {"plant": ["G1", "P1"], "node": ["N1", "N1"],
                                          "plant_type": ["coal", "prs"], "g_max": [100.0, 10.0],
                                          "mc_el": [30.0, 0.0], "storage_capacity": [0.0, 0.0]})
    tables["availability"] = timeseries("plant", "availability", {"P1": [1, 0]})
    tables["prosumer_demand"] = timeseries("plant", "demand", {"P1": [4, 6]})
    return tables


def topology_case():
    """Nodes N1-N3 in a triangle, N4 only connected through a DC line, N5 isolated."""
    nodes = indexed("nodes", {"node": ["N1", "N2", "N3", "N4", "N5"],
                              "zone": ["Z1", "Z1", "Z2", "Z2", "Z2"],
                              "slack": [True, False, False, False, False]})
    lines = indexed("lines", {"line": ["L1", "L2", "L3"], "node_i": ["N1", "N2", "N1"],
                              "node_j": ["N2", "N3", "N3"], "x": [0.1, 0.1, 0.1],
                              "capacity": [100.0, 100.0, 100.0]})
    dclines = indexed("dclines", {"dcline": ["DC1"], "node_i": ["N3"], "node_j": ["N4"],
                                  "capacity": [50.0]})
    return nodes, lines, dclines
