"""Structural validation of the network topology.

Before any matrix is built the node, line and dcline tables are checked for defects that
would render the nodal susceptance matrix singular or the PTDF meaningless. All findings
are added to a :class:`~pomatwo.data.DataReport`, the validation itself never raises.

Nodes that are only reached through DC lines are valid in the market model (the DC line
flow enters the nodal balance) but they are not part of the phase angle network. These
nodes, together with isolated nodes, are omitted when the PTDF is calculated.
"""
import logging

import pandas as pd

SMALL_REACTANCE = 1e-10


def _node_list(nodes):
    if isinstance(nodes, pd.DataFrame):
        return list(nodes.index)
    return list(nodes)


def _is_empty(table):
    return table is None or len(table) == 0


def get_connected_nodes(nodes, lines, dclines=None):
    """Classify nodes by the type of lines they are connected to.

    Parameters
    ----------
    nodes : pandas.DataFrame or list
        Nodes, either as table indexed by node or as list of node names.
    lines : pandas.DataFrame
        AC lines with columns node_i, node_j.
    dclines : pandas.DataFrame, optional
        DC lines with columns node_i, node_j.

    Returns
    -------
    connected : dict(str, set)
        *ac*, *dc* and *all* contain the nodes touched by AC, DC or any line, *dc_only*
        the nodes touched exclusively by DC lines and *isolated* the nodes without any line.
    """
    node_list = _node_list(nodes)
    ac_nodes = set()
    dc_nodes = set()
    if not _is_empty(lines):
        ac_nodes = set(lines.node_i) | set(lines.node_j)
    if not _is_empty(dclines):
        dc_nodes = set(dclines.node_i) | set(dclines.node_j)
    all_nodes = ac_nodes | dc_nodes
    return {"ac": ac_nodes,
            "dc": dc_nodes,
            "all": all_nodes,
            "dc_only": {n for n in node_list if n in dc_nodes and n not in ac_nodes},
            "isolated": {n for n in node_list if n not in all_nodes}}


def build_adjacency_list(lines, dclines=None, include_dc=True):
    """Create the adjacency list of the network graph.

    Only nodes touched by at least one line are part of the graph.

    Returns
    -------
    adjacency : dict
        Node to list of neighbouring nodes.
    nodes : list
        Nodes of the graph in order of appearance.
    """
    tables = [lines]
    if include_dc:
        tables.append(dclines)

    adjacency = {}
    for table in tables:
        if _is_empty(table):
            continue
        for node_i, node_j in zip(table.node_i, table.node_j):
            adjacency.setdefault(node_i, [])
            adjacency.setdefault(node_j, [])
            if node_i != node_j:
                adjacency[node_i].append(node_j)
                adjacency[node_j].append(node_i)
    return adjacency, list(adjacency)


def find_network_islands(adjacency, nodes):
    """Find the connected components of the network graph.

    Uses an iterative depth-first search so that the recursion limit does not apply
    to large networks.

    Returns
    -------
    islands : list(list)
        Nodes of each island, largest island first.
    """
    visited = set()
    islands = []
    for root in nodes:
        if root in visited:
            continue
        island = []
        stack = [root]
        visited.add(root)
        while stack:
            node = stack.pop()
            island.append(node)
            for neighbour in adjacency.get(node, []):
                if neighbour not in visited:
                    visited.add(neighbour)
                    stack.append(neighbour)
        islands.append(island)
    islands.sort(key=len, reverse=True)
    return islands


def get_nodes_to_omit_for_ptdf(nodes, lines, dclines=None):
    """Return isolated and DC-only nodes, in the order of *nodes*."""
    connected = get_connected_nodes(nodes, lines, dclines)
    omit = connected["isolated"] | connected["dc_only"]
    return [n for n in _node_list(nodes) if n in omit]


def _reactance(lines):
    """Per unit reactance where available, otherwise the raw reactance."""
    x = lines["x"].astype(float) if "x" in lines.columns else pd.Series(index=lines.index, dtype=float)
    if "x_pu" in lines.columns:
        x_pu = lines["x_pu"].astype(float)
        x = x_pu.where(x_pu.notna(), x)
    return x


def validate_topology(report, nodes, lines, dclines=None, location="network"):
    """Check the network topology and add all findings to report.

    Parameters
    ----------
    report : :class:`~pomatwo.data.DataReport`
        Report the findings are added to.
    nodes : pandas.DataFrame
        Nodes indexed by name, with a boolean column *slack*.
    lines : pandas.DataFrame
        AC lines with node_i, node_j and x (or x_pu).
    dclines : pandas.DataFrame, optional
        DC lines with node_i, node_j.
    location : str, optional
        Location attached to the report items.

    Returns
    -------
    safe_to_build : bool
        True if no errors were found, i.e. the PTDF can be calculated.
    """
    logger = logging.getLogger('log.pomatwo.grid.validation')
    number_of_errors = len(report.get_errors())

    node_list = _node_list(nodes)
    node_set = set(node_list)
    if "slack" in nodes.columns:
        slack = [n for n in node_list if bool(nodes.loc[n, "slack"])]
    else:
        slack = []

    if not slack:
        report.add_error("missing_data", "No slack bus defined, at least one slack bus is required", location)
    elif len(slack) > 1:
        report.add_warning("topology", f"Multiple slack buses defined ({len(slack)}): {', '.join(map(str, slack))}",
                           location)

    if _is_empty(lines) and _is_empty(dclines):
        report.add_note("topology", "No lines in the network, the model runs as copper plate", location)
        return len(report.get_errors()) == number_of_errors

    valid_tables = {}
    for name, table in (("line", lines), ("dcline", dclines)):
        if _is_empty(table):
            valid_tables[name] = table
            continue
        valid = pd.Series(True, index=table.index)
        for line, node_i, node_j in zip(table.index, table.node_i, table.node_j):
            for node in (node_i, node_j):
                if node not in node_set:
                    report.add_error("topology", f"Line {line} references non-existent node {node}", location)
                    valid[line] = False
            if node_i == node_j:
                report.add_error("topology", f"Line {line} connects node {node_i} to itself", location)
        valid_tables[name] = table[valid]

    if not _is_empty(lines):
        if "x" not in lines.columns and "x_pu" not in lines.columns:
            report.add_error("missing_data", "Lines have no reactance (x or x_pu)", location)
        else:
            for line, x in _reactance(lines).items():
                if pd.isna(x) or x == 0:
                    report.add_error("topology", f"Line {line} has zero reactance", location)
                elif abs(x) < SMALL_REACTANCE:
                    report.add_warning("topology", f"Line {line} has very small reactance ({x})", location)

    connected = get_connected_nodes(node_list, valid_tables["line"], valid_tables["dcline"])
    isolated = [n for n in node_list if n in connected["isolated"]]
    dc_only = [n for n in node_list if n in connected["dc_only"]]
    if isolated:
        report.add_error("topology",
                         f"{len(isolated)} isolated nodes not connected to any line: {', '.join(map(str, isolated))}",
                         location)
    if dc_only:
        report.add_warning("topology",
                           (f"{len(dc_only)} nodes connected only via DC lines, excluded from the PTDF: "
                            f"{', '.join(map(str, dc_only))}"),
                           location)

    adjacency, graph_nodes = build_adjacency_list(valid_tables["line"], valid_tables["dcline"])
    islands = find_network_islands(adjacency, graph_nodes)
    if len(islands) > 1:
        report.add_error("topology", f"Network has {len(islands)} disconnected islands", location)
        for i, island in enumerate(islands, start=1):
            island_slack = [n for n in island if n in slack]
            report.add_error("topology",
                             f"Island {i}: {len(island)} nodes, {len(island_slack)} slack bus(es)",
                             ", ".join(map(str, island[:10])))

    # every AC subnetwork needs its own angle reference, DC lines do not couple angles
    if slack:
        ac_adjacency, ac_nodes = build_adjacency_list(valid_tables["line"], include_dc=False)
        for i, subnetwork in enumerate(find_network_islands(ac_adjacency, ac_nodes), start=1):
            subnetwork_slack = [n for n in slack if n in subnetwork]
            nodes_text = ", ".join(map(str, sorted(subnetwork, key=str)[:10]))
            if not subnetwork_slack:
                report.add_error("topology", f"AC subnetwork {i} ({len(subnetwork)} nodes) has no slack bus",
                                 nodes_text)
            elif len(subnetwork_slack) > 1:
                report.add_warning("topology",
                                   (f"AC subnetwork {i} ({len(subnetwork)} nodes) has {len(subnetwork_slack)} "
                                    f"slack buses: {', '.join(map(str, subnetwork_slack))}"),
                                   nodes_text)

    if not _is_empty(lines):
        groups = {}
        for line, node_i, node_j in zip(lines.index, lines.node_i, lines.node_j):
            groups.setdefault(frozenset((node_i, node_j)), []).append(line)
        for pair, group in groups.items():
            if len(group) > 1:
                report.add_note("topology",
                                (f"Lines {', '.join(map(str, group))} form a parallel line group "
                                 f"between {' and '.join(map(str, sorted(pair, key=str)))}"),
                                location)

    for node in slack:
        if node not in connected["all"]:
            report.add_error("topology", f"Slack bus {node} is not connected to the network", location)

    safe_to_build = len(report.get_errors()) == number_of_errors
    if not safe_to_build:
        logger.warning("Topology validation found %d errors.",
                       len(report.get_errors()) - number_of_errors)
    return safe_to_build
