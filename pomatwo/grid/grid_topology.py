"""GridTopology of POMATWO, calculating the network matrices of the DC load flow."""
import logging

import numpy as np
import pandas as pd
import scipy.linalg

from pomatwo.data.report import DataReport
from pomatwo.exceptions import ConfigurationError, PTDFError, TopologyError
from pomatwo.grid.validation import get_nodes_to_omit_for_ptdf, validate_topology
from pomatwo.tools import zbase


def per_unit_parameters(lines, nodes=None):
    """Add per unit reactance/resistance to the lines table.

    Existing x_pu/r_pu values are kept. Otherwise lines with a voltage level (or the
    voltage level of node_i) are converted with zbase(voltage) and divided by the number
    of circuits. Lines without voltage level keep their raw values.
    """
    lines = lines.copy()
    for col, default in (("x_pu", np.nan), ("r_pu", np.nan), ("r", 0), ("circuits", 1), ("voltage", np.nan)):
        if col not in lines.columns:
            lines[col] = default

    voltage = lines.voltage.astype(float)
    if nodes is not None and "voltage" in nodes.columns:
        node_voltage = lines.node_i.map(nodes.voltage).astype(float)
        voltage = voltage.where(voltage.notna(), node_voltage)

    circuits = lines.circuits.fillna(1).astype(float)
    circuits[circuits <= 0] = 1
    r = lines.r.fillna(0).astype(float)
    x = lines.x.astype(float) if "x" in lines.columns else pd.Series(np.nan, index=lines.index)

    convert = voltage.notna() & (voltage > 0)
    x_pu = x.where(~convert, x / zbase(voltage) / circuits)
    r_pu = r.where(~convert, r / zbase(voltage) / circuits)

    lines["x_pu"] = lines.x_pu.astype(float).where(lines.x_pu.notna(), x_pu)
    lines["r_pu"] = lines.r_pu.astype(float).where(lines.r_pu.notna(), r_pu)
    return lines


def create_incidence_matrix(lines, node_index):
    """Line x node incidence matrix, -1 at node_i and +1 at node_j."""
    node_index = pd.Index(node_index)
    incidence = np.zeros((len(lines), len(node_index)))
    for i, (node_i, node_j) in enumerate(zip(lines.node_i, lines.node_j)):
        incidence[i, node_index.get_loc(node_i)] = -1
        incidence[i, node_index.get_loc(node_j)] = 1
    return incidence


def line_susceptance(x, r, b=None):
    """Series susceptance b = x/(x² + r²) of each line, explicit values in b take precedence."""
    x = np.asarray(x, dtype=float)
    r = np.asarray(r, dtype=float)
    susceptance = x / (x**2 + r**2)
    if b is not None:
        b = np.asarray(b, dtype=float)
        susceptance = np.where(np.isnan(b), susceptance, b)
    return susceptance


def create_susceptance_matrices(incidence, susceptance):
    """Return line susceptance matrix H = diag(b)·A and nodal susceptance matrix B = H'·A."""
    line_susceptance_matrix = susceptance.reshape(len(susceptance), 1) * incidence
    node_susceptance_matrix = np.dot(line_susceptance_matrix.T, incidence)
    return line_susceptance_matrix, node_susceptance_matrix


def _invert(matrix):
    """Dense inverse with an explicit check of invertibility."""
    if matrix.size == 0:
        return matrix.copy()
    condition = np.linalg.cond(matrix)
    if not np.isfinite(condition) or condition > 1 / np.finfo(float).eps:
        raise PTDFError(f"Reduced nodal susceptance matrix is singular (condition number {condition:.3e})")
    try:
        inverse = scipy.linalg.inv(matrix)
    except (np.linalg.LinAlgError, ValueError) as error:
        raise PTDFError("Reduced nodal susceptance matrix could not be inverted") from error
    if not np.isfinite(inverse).all():
        raise PTDFError("Inverse of the reduced nodal susceptance matrix contains non-finite values")
    return inverse


def calc_ptdf(incidence, susceptance, slack_idx, omit_idx=()):
    """Calculate the node PTDF.

    Slack and omitted nodes are removed from the nodal susceptance matrix, the reduced
    matrix is inverted and embedded into a node x node matrix with zero rows/columns at
    the removed positions. PTDF = H · B⁻¹.

    Parameters
    ----------
    incidence : np.ndarray
        Line x node incidence matrix.
    susceptance : np.ndarray
        Susceptance of each line.
    slack_idx : list(int)
        Positions of the slack nodes.
    omit_idx : list(int), optional
        Positions of nodes excluded from the inversion, i.e. isolated and DC-only nodes.

    Returns
    -------
    ptdf : np.ndarray
        Line x node PTDF, all entries of slack and omitted nodes are 0.

    Raises
    ------
    PTDFError
        If the reduced matrix is singular, e.g. for a network with islands.
    """
    line_susceptance_matrix, node_susceptance_matrix = create_susceptance_matrices(incidence, susceptance)
    number_of_nodes = incidence.shape[1]
    removed = set(slack_idx) | set(omit_idx)
    keep = [i for i in range(number_of_nodes) if i not in removed]

    inverse = _invert(node_susceptance_matrix[np.ix_(keep, keep)])
    node_susceptance_inv = np.zeros((number_of_nodes, number_of_nodes))
    node_susceptance_inv[np.ix_(keep, keep)] = inverse
    return np.dot(line_susceptance_matrix, node_susceptance_inv)


class GridTopology():
    """GridTopology of POMATWO.

    Calculates the network matrices of the DC load flow from the nodes, lines and dclines
    tables: incidence matrix, line susceptances, the nodal susceptance matrix and the node
    PTDF. All matrices are calculated once per model run and are read only afterwards.

    The topology is validated before any matrix is calculated, when the validation finds
    errors no PTDF is calculated and a :class:`~pomatwo.exceptions.TopologyError` carrying the
    diagnostic report is raised.

    Attributes
    ----------
    nodes, lines, dclines : pandas.DataFrame
        Network data, lines with per unit parameters and susceptance *b*.
    topology_report : :class:`~pomatwo.data.DataReport`
        Result of the topology validation.
    omitted_nodes : list
        Isolated and DC-only nodes, excluded from the PTDF.
    slack : list
        Slack nodes.
    multiple_slack : bool
        True if more than one slack is defined.
    incidence_matrix, line_susceptance_matrix, node_susceptance_matrix, ptdf : np.ndarray
        Network matrices.
    """

    def __init__(self):
        self.logger = logging.getLogger('log.pomatwo.grid.GridTopology')
        self.nodes = pd.DataFrame()
        self.lines = pd.DataFrame()
        self.dclines = pd.DataFrame()
        self.topology_report = None
        self.omitted_nodes = []
        self.slack = []
        self.multiple_slack = False
        self.incidence_matrix = None
        self.line_susceptance_matrix = None
        self.node_susceptance_matrix = None
        self.ptdf = None

    def calculate_parameters(self, nodes, lines, dclines=None):
        """Validate topology and calculate all network matrices.

        Raises
        ------
        TopologyError
            The topology validation reported errors.
        ConfigurationError
            No slack is defined.
        PTDFError
            The reduced nodal susceptance matrix is singular.
        """
        self.logger.info("Calculating network parameters...")
        dclines = dclines if dclines is not None else pd.DataFrame(columns=["node_i", "node_j", "capacity"])

        self.topology_report = DataReport("topology")
        safe_to_build = validate_topology(self.topology_report, nodes, lines, dclines)
        if not safe_to_build:
            self.topology_report.log()
            errors = self.topology_report.get_errors()
            if all(error.category == "missing_data" for error in errors):
                raise ConfigurationError("; ".join(error.message for error in errors))
            raise TopologyError(f"Topology validation failed with {len(errors)} errors, see the report",
                                report=self.topology_report)

        self.nodes = nodes
        self.dclines = dclines
        self.slack = list(nodes.index[nodes.slack.astype(bool)])
        self.multiple_slack = len(self.slack) > 1
        if self.multiple_slack:
            self.logger.warning("Multiple slacks defined, all slacks are removed from the reduced system")

        self.lines = per_unit_parameters(lines, nodes)
        if "b" not in self.lines.columns:
            self.lines["b"] = np.nan
        self.lines["b"] = line_susceptance(self.lines.x_pu, self.lines.r_pu, self.lines.b)

        self.omitted_nodes = get_nodes_to_omit_for_ptdf(nodes, lines, dclines)
        if self.omitted_nodes:
            self.logger.info("Omitting %d nodes from the PTDF: %s", len(self.omitted_nodes),
                             ", ".join(map(str, self.omitted_nodes)))

        self.incidence_matrix = create_incidence_matrix(self.lines, self.nodes.index)
        self.line_susceptance_matrix, self.node_susceptance_matrix = create_susceptance_matrices(
            self.incidence_matrix, self.lines.b.values)
        self.ptdf = self.create_ptdf_matrix()
        self.logger.info("Network parameters calculated for %d nodes and %d lines.",
                         len(self.nodes), len(self.lines))

    def create_ptdf_matrix(self):
        """Create ptdf matrix, using all slack nodes and omitting isolated/DC-only nodes."""
        slack_idx = [self.nodes.index.get_loc(s) for s in self.slack]
        omit_idx = [self.nodes.index.get_loc(n) for n in self.omitted_nodes]
        if len(self.lines) == 0:
            return np.zeros((0, len(self.nodes)))
        return calc_ptdf(self.incidence_matrix, self.lines.b.values, slack_idx, omit_idx)

    def ptdf_frame(self):
        """PTDF as line x node DataFrame."""
        return pd.DataFrame(self.ptdf, index=self.lines.index, columns=self.nodes.index)
