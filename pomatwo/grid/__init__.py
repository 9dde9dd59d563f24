"""The Grid Model of POMATWO

These modules provide the grid functionality to POMATWO.

The topology validation checks nodes, lines and dclines for structural defects before
any matrix is calculated: references to non-existent nodes, self-loops, zero reactance,
isolated nodes, nodes only connected through DC lines, network islands, parallel lines
and the connectivity of the slack buses. All findings are collected in a report.

The functionality of the GridTopology include:

    - Conversion of line parameters to per unit values.
    - Calculation of the incidence matrix, line susceptances and the nodal susceptance
      matrix.
    - Calculation of the ptdf matrix (power transfer distribution factor), used in linear
      power flow analysis. Isolated and DC-only nodes are omitted, their PTDF entries are
      zero.

The zonal aggregation maps the node PTDF to zones using generation shift keys (gsk):
    - gmax : It is assumed that nodes participate in the net position
      proportional to the dispatchable capacity installed.
    - flat : all nodes participate equally.

The purpose of the GridModel is to create a usable grid representation for
the market model. This module acts as a combinator of the data and grid modules.
There are currently the following options:
    * zonal : Constraining zonal exchange with net transfer capacities, the zonal and
      zone-to-zone PTDF are provided for analysis.
    * nodal : Nodal pricing through linear power flow, either in the phase angle or the
      PTDF formulation.
"""

from pomatwo.grid.validation import (validate_topology, get_connected_nodes, build_adjacency_list,
                                     find_network_islands, get_nodes_to_omit_for_ptdf)
from pomatwo.grid.grid_topology import GridTopology, calc_ptdf
from pomatwo.grid.gsk import build_gsk, zonal_ptdf, zone_to_zone_ptdf
from pomatwo.grid.grid_model import GridModel
