"""Zonal aggregation of the node PTDF with generation shift keys (GSK).

A GSK distributes a change of a zonal net position to the nodes of the zone. Multiplying
the node PTDF with the node x zone GSK matrix yields the zonal PTDF, the sensitivity of
each line flow to the net position of each zone. The zone-to-zone PTDF describes the
sensitivity of each line flow to a commercial exchange from an exporting to an
importing zone.
"""
import itertools

import numpy as np
import pandas as pd

from pomatwo.exceptions import ConfigurationError


def build_gsk(node_to_zone, weights=None, zones=None, normalize_empty="flat"):
    """Create a node x zone GSK matrix.

    Each node only contributes to the column of its own zone, all other entries are
    exactly zero. The column of a zone is proportional to the weights of its nodes and
    sums to one. A zone without weight is either left empty (``"zero"``) or split
    uniformly among its nodes (``"flat"``).

    Parameters
    ----------
    node_to_zone : list or pandas.Series
        Zone of each node, in node order.
    weights : list or np.ndarray, optional
        Weight of each node, e.g. installed capacity. Defaults to equal weights.
    zones : list, optional
        Zone order of the columns. Defaults to the order of appearance in node_to_zone.
    normalize_empty : str, optional
        Policy for zones with zero total weight, ``"flat"`` or ``"zero"``.

    Returns
    -------
    gsk : np.ndarray
        Node x zone matrix.
    """
    if normalize_empty not in ("flat", "zero"):
        raise ConfigurationError(f"normalize_empty must be flat or zero, got {normalize_empty}")

    node_to_zone = list(node_to_zone)
    if zones is None:
        zones = list(pd.unique(pd.Series(node_to_zone, dtype=object)))
    if weights is None:
        weights = np.ones(len(node_to_zone))
    weights = np.asarray(weights, dtype=float)
    if len(weights) != len(node_to_zone):
        raise ValueError("Weights and node to zone mapping must have the same length")

    gsk = np.zeros((len(node_to_zone), len(zones)))
    for z, zone in enumerate(zones):
        members = [i for i, node_zone in enumerate(node_to_zone) if node_zone == zone]
        if not members:
            continue
        total = weights[members].sum()
        if total > 0:
            gsk[members, z] = weights[members] / total
        elif normalize_empty == "flat":
            gsk[members, z] = 1 / len(members)
    return gsk


def zonal_ptdf(ptdf, gsk):
    """Line x zone PTDF as product of node PTDF and GSK."""
    return np.dot(ptdf, gsk)


def zone_to_zone_ptdf(ptdf_z, zones, exclude_self=True):
    """Sensitivities of the line flows to an exchange between two zones.

    The column of the pair (exporter, importer) equals ptdf_z[:, importer] - ptdf_z[:, exporter].
    Pairs are ordered by the zone order of the exporter, then the importer, i.e. for two zones
    [(Z1, Z2), (Z2, Z1)].

    Parameters
    ----------
    ptdf_z : np.ndarray
        Line x zone PTDF.
    zones : list
        Zone order of the columns of ptdf_z.
    exclude_self : bool, optional
        Skip pairs of a zone with itself, whose column is zero.

    Returns
    -------
    ptdf_zz : np.ndarray
        Line x zone pair matrix.
    pairs : list(tuple)
        (exporter, importer) of each column.
    """
    zones = list(zones)
    pairs = [(exporter, importer) for exporter, importer in itertools.product(zones, zones)
             if not (exclude_self and exporter == importer)]
    ptdf_z = np.asarray(ptdf_z, dtype=float)
    ptdf_zz = np.zeros((ptdf_z.shape[0], len(pairs)))
    for i, (exporter, importer) in enumerate(pairs):
        ptdf_zz[:, i] = ptdf_z[:, zones.index(importer)] - ptdf_z[:, zones.index(exporter)]
    return ptdf_zz, pairs
