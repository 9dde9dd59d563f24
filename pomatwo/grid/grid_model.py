import itertools
import logging
import types

import pandas as pd

from pomatwo.exceptions import ConfigurationError, TopologyError
from pomatwo.grid.gsk import build_gsk, zonal_ptdf, zone_to_zone_ptdf


class GridModel():
    """GridModel of POMATWO, represents the network in the market model.

    The GridModel creates the grid representation used by the market model based on the
    chosen options. This module acts as a combinator of the data and grid modules.

    The representation depends on the market scope:
        - nodal : Nodes are balanced individually and connected through the DC load flow,
          defined by incidence matrix, line susceptances and the node PTDF.
        - zonal : Zones are balanced individually and exchange within net transfer
          capacities (NTC). If the network data allows, the zonal PTDF and the zone-to-zone
          PTDF derived with generation shift keys are added for analysis.

    If redispatch is included the nodal network is always part of the representation, as
    redispatch is cleared on the physical network.

    Parameters
    ----------
    grid : :class:`~pomatwo.grid.GridTopology`
       An instance of the GridTopology class.
    data : :class:`~pomatwo.data.DataManagement`
       An instance of the DataManagement class with processed input data.
    options : dict
        The options from POMATWO main module.

    Attributes
    ----------
    grid_representation : types.SimpleNamespace
        Containing the grid representation to be used in the market model.
    """

    def __init__(self, grid, data, options):
        self.logger = logging.getLogger('log.pomatwo.grid.GridModel')
        self.logger.info("Initializing the GridModel....")
        self.options = options
        self.grid = grid
        self.data = data
        self.grid_representation = self._empty_grid_representation()

    @staticmethod
    def _empty_grid_representation():
        return types.SimpleNamespace(
            option=None,
            multiple_slack=False,
            slack=[],
            omitted_nodes=[],
            lines=pd.DataFrame(),
            dclines=pd.DataFrame(),
            incidence=pd.DataFrame(),
            ptdf=pd.DataFrame(),
            gsk=pd.DataFrame(),
            zonal_ptdf=pd.DataFrame(),
            zone_to_zone_ptdf=pd.DataFrame(),
            ntc=pd.DataFrame(columns=["zone_i", "zone_j", "ntc"]),
            topology_report=None,
        )

    def create_grid_representation(self):
        """Create grid representation based on the market scope.

        *grid_representation* contains the following:
            - *option*: The market scope, nodal or zonal.
            - *multiple_slack*, *slack*, *omitted_nodes*: Slack information and nodes
              excluded from the PTDF.
            - *lines*, *dclines*: Lines with capacities (times the capacity multiplier)
              and susceptances, DC lines.
            - *incidence*, *ptdf*: Line x node incidence matrix and PTDF.
            - *gsk*, *zonal_ptdf*, *zone_to_zone_ptdf*: Zonal sensitivities.
            - *ntc*: Zonal exchange capacities.

        Raises
        ------
        ConfigurationError
            Unknown market scope.
        TopologyError
            The network is required (nodal scope or redispatch) but invalid.
        """
        scope = self.options["market"]["scope"]
        if scope not in ["nodal", "zonal"]:
            raise ConfigurationError(f"Please Choose a valid market scope, got {scope}")

        grid_representation = self._empty_grid_representation()
        grid_representation.option = scope
        network_required = scope == "nodal" or self.options["redispatch"]["include"]
        try:
            self.grid.calculate_parameters(self.data.nodes, self.data.lines, self.data.dclines)
        except TopologyError:
            if network_required:
                raise
            self.logger.warning("Invalid network topology, zonal market runs without network sensitivities.")
            grid_representation.topology_report = self.grid.topology_report
        else:
            self.add_nodal_network(grid_representation)

        if scope == "zonal":
            grid_representation.ntc = self.process_ntc()
            if not grid_representation.ptdf.empty:
                self.add_zonal_network(grid_representation)

        self.grid_representation = grid_representation
        return grid_representation

    def add_nodal_network(self, grid_representation):
        """Add the nodal network matrices of the GridTopology."""
        lines = self.grid.lines.copy()
        lines["capacity"] = lines.capacity.astype(float) * self.options["grid"]["capacity_multiplier"]
        grid_representation.multiple_slack = self.grid.multiple_slack
        grid_representation.slack = self.grid.slack
        grid_representation.omitted_nodes = self.grid.omitted_nodes
        grid_representation.topology_report = self.grid.topology_report
        grid_representation.lines = lines
        grid_representation.dclines = self.grid.dclines.copy()
        grid_representation.incidence = pd.DataFrame(self.grid.incidence_matrix,
                                                     index=lines.index, columns=self.grid.nodes.index)
        grid_representation.ptdf = self.grid.ptdf_frame()

    def create_gsk(self, option="gmax"):
        """Returns static GSK as node x zone DataFrame.

        Input options are:
            - *flat*: for equal participation of each node to the net position.
            - *gmax*: for weighted participation proportional to the installed
              capacity of dispatchable generation.

        Zones without dispatchable capacity are handled by the ``grid.normalize_empty`` option.
        """
        nodes = self.data.nodes
        if option == "gmax":
            disp = self.data.plant_sets()["disp"]
            gmax_per_node = self.data.plants.loc[disp, ["g_max", "node"]].groupby("node").g_max.sum()
            weights = gmax_per_node.reindex(nodes.index).fillna(0).values
        elif option == "flat":
            weights = None
        else:
            raise ConfigurationError(f"Please Choose a valid gsk option, got {option}")

        zones = list(self.data.zones.index)
        gsk = build_gsk(nodes.zone, weights, zones=zones,
                        normalize_empty=self.options["grid"]["normalize_empty"])
        return pd.DataFrame(gsk, index=nodes.index, columns=zones)

    def add_zonal_network(self, grid_representation):
        """Add GSK, zonal PTDF and zone-to-zone PTDF."""
        gsk = self.create_gsk(self.options["grid"]["gsk"])
        ptdf_z = zonal_ptdf(grid_representation.ptdf.values, gsk.values)
        ptdf_zz, pairs = zone_to_zone_ptdf(ptdf_z, gsk.columns, self.options["grid"]["exclude_self"])
        grid_representation.gsk = gsk
        grid_representation.zonal_ptdf = pd.DataFrame(ptdf_z, index=grid_representation.lines.index,
                                                      columns=gsk.columns)
        grid_representation.zone_to_zone_ptdf = pd.DataFrame(
            ptdf_zz, index=grid_representation.lines.index,
            columns=pd.MultiIndex.from_tuples(pairs, names=["exporter", "importer"]))

    def process_ntc(self):
        """Return the NTC table, creating default NTCs if the data contains none."""
        if self.data.ntc.empty:
            self.logger.warning("No NTCs in the data, using default NTC between all zones.")
            return self.create_ntc(self.options["grid"]["default_ntc"])
        ntc = self.data.ntc[["zone_i", "zone_j", "ntc"]].copy()
        ntc = ntc[ntc.zone_i != ntc.zone_j]
        return ntc.reset_index(drop=True)

    def create_ntc(self, default_ntc=1e5):
        """Create NTC data between all zones with the value default_ntc."""
        zones = list(self.data.zones.index)
        data = [[zone_i, zone_j, default_ntc] for zone_i, zone_j in itertools.permutations(zones, 2)]
        return pd.DataFrame(data, columns=["zone_i", "zone_j", "ntc"])
