import unittest

import pandas as pd

from context import pomatwo
from cases import indexed, topology_case
from pomatwo.data import DataReport
from pomatwo.grid import (build_adjacency_list, find_network_islands, get_connected_nodes,
                          get_nodes_to_omit_for_ptdf, validate_topology)


class TestTopologyValidation(unittest.TestCase):

    def setUp(self):
        self.nodes, self.lines, self.dclines = topology_case()

    def messages(self, report, level="ERROR"):
        return [item.message for item in report.items if item.level == level]

    def test_connected_nodes(self):
        connected = get_connected_nodes(self.nodes, self.lines, self.dclines)
        self.assertEqual(connected["ac"], {"N1", "N2", "N3"})
        self.assertEqual(connected["dc"], {"N3", "N4"})
        self.assertEqual(connected["dc_only"], {"N4"})
        self.assertEqual(connected["isolated"], {"N5"})

    def test_nodes_to_omit(self):
        self.assertEqual(get_nodes_to_omit_for_ptdf(self.nodes, self.lines, self.dclines), ["N4", "N5"])
        self.assertEqual(get_nodes_to_omit_for_ptdf(self.nodes, self.lines), ["N4", "N5"])

    def test_islands(self):
        lines = indexed("lines", {"line": ["L1", "L2"], "node_i": ["N1", "N3"], "node_j": ["N2", "N4"]})
        adjacency, nodes = build_adjacency_list(lines)
        islands = find_network_islands(adjacency, nodes)
        self.assertEqual(len(islands), 2)
        self.assertEqual(sorted(islands[0] + islands[1]), ["N1", "N2", "N3", "N4"])

    def test_islands_joined_by_dcline(self):
        lines = indexed("lines", {"line": ["L1", "L2"], "node_i": ["N1", "N3"], "node_j": ["N2", "N4"]})
        dclines = indexed("dclines", {"dcline": ["DC1"], "node_i": ["N2"], "node_j": ["N3"]})
        adjacency, nodes = build_adjacency_list(lines, dclines)
        self.assertEqual(len(find_network_islands(adjacency, nodes)), 1)
        adjacency, nodes = build_adjacency_list(lines, dclines, include_dc=False)
        self.assertEqual(len(find_network_islands(adjacency, nodes)), 2)

    def test_validate_isolated_and_dc_only(self):
        report = DataReport()
        self.assertFalse(validate_topology(report, self.nodes, self.lines, self.dclines))
        self.assertIn("1 isolated nodes not connected to any line: N5", self.messages(report))
        self.assertIn("1 nodes connected only via DC lines, excluded from the PTDF: N4",
                      self.messages(report, "WARNING"))

    def test_dc_only_and_isolated(self):
        report = DataReport()
        nodes = indexed("nodes", {"node": ["n1", "n2", "n3", "n4"], "slack": [True, False, False, False]})
        lines = indexed("lines", {"line": ["l1"], "node_i": ["n1"], "node_j": ["n2"], "x": [0.1]})
        dclines = indexed("dclines", {"dcline": ["dc1"], "node_i": ["n2"], "node_j": ["n3"]})
        self.assertFalse(validate_topology(report, nodes, lines, dclines))
        self.assertTrue(any("isolated" in m and "n4" in m for m in self.messages(report)))
        self.assertTrue(any("DC lines" in m and "n3" in m for m in self.messages(report, "WARNING")))
        self.assertEqual(get_nodes_to_omit_for_ptdf(nodes, lines, dclines), ["n3", "n4"])

    def test_validate_valid_network(self):
        report = DataReport()
        nodes = self.nodes.drop("N5")
        self.assertTrue(validate_topology(report, nodes, self.lines, self.dclines))
        self.assertFalse(report.has_errors())

    def test_validate_copper_plate(self):
        report = DataReport()
        self.assertTrue(validate_topology(report, self.nodes, self.lines.iloc[0:0], None))
        self.assertEqual(self.messages(report, "NOTE"), ["No lines in the network, the model runs as copper plate"])

    def test_validate_missing_slack(self):
        report = DataReport()
        nodes = self.nodes.drop("N5")
        nodes["slack"] = False
        self.assertFalse(validate_topology(report, nodes, self.lines, self.dclines))
        self.assertEqual(report.get_errors()[0].category, "missing_data")

    def test_validate_multiple_slack(self):
        report = DataReport()
        nodes = self.nodes.drop("N5")
        nodes.loc["N2", "slack"] = True
        self.assertTrue(validate_topology(report, nodes, self.lines, self.dclines))
        self.assertTrue(any("Multiple slack buses" in m for m in self.messages(report, "WARNING")))

    def test_validate_line_errors(self):
        report = DataReport()
        nodes = self.nodes.drop("N5")
        lines = pd.concat([self.lines, indexed("lines", {"line": ["L4", "L5", "L6"], "node_i": ["N1", "N2", "N1"],
                                                        "node_j": ["N9", "N2", "N2"], "x": [0.1, 0.1, 0.0],
                                                        "capacity": [1.0, 1.0, 1.0]})])
        self.assertFalse(validate_topology(report, nodes, lines, self.dclines))
        errors = self.messages(report)
        self.assertIn("Line L4 references non-existent node N9", errors)
        self.assertIn("Line L5 connects node N2 to itself", errors)
        self.assertIn("Line L6 has zero reactance", errors)
        self.assertIn("Lines L1, L6 form a parallel line group between N1 and N2", self.messages(report, "NOTE"))

    def test_validate_islands(self):
        report = DataReport()
        nodes = indexed("nodes", {"node": ["N1", "N2", "N3", "N4"], "slack": [True, False, False, False]})
        lines = indexed("lines", {"line": ["L1", "L2"], "node_i": ["N1", "N3"], "node_j": ["N2", "N4"],
                                  "x": [0.1, 0.1]})
        self.assertFalse(validate_topology(report, nodes, lines))
        errors = self.messages(report)
        self.assertIn("Network has 2 disconnected islands", errors)
        self.assertEqual(len([m for m in errors if m.startswith("Island")]), 2)

    def test_island_sizes(self):
        report = DataReport()
        nodes = indexed("nodes", {"node": ["N1", "N2", "N3", "N4", "N5"],
                                  "slack": [True, False, False, False, False]})
        lines = indexed("lines", {"line": ["L1", "L2", "L3"], "node_i": ["N1", "N2", "N4"],
                                  "node_j": ["N2", "N3", "N5"], "x": [0.1, 0.1, 0.1]})
        adjacency, graph_nodes = build_adjacency_list(lines)
        self.assertEqual([sorted(island) for island in find_network_islands(adjacency, graph_nodes)],
                         [["N1", "N2", "N3"], ["N4", "N5"]])
        self.assertFalse(validate_topology(report, nodes, lines))
        errors = self.messages(report)
        self.assertIn("Island 1: 3 nodes, 1 slack bus(es)", errors)
        self.assertIn("Island 2: 2 nodes, 0 slack bus(es)", errors)

    def test_ac_subnetwork_without_slack(self):
        # two AC areas coupled only by a DC line form one island but need two slacks
        report = DataReport()
        nodes = indexed("nodes", {"node": ["N1", "N2", "N3", "N4"], "slack": [True, False, False, False]})
        lines = indexed("lines", {"line": ["L1", "L2"], "node_i": ["N1", "N3"], "node_j": ["N2", "N4"],
                                  "x": [0.1, 0.1]})
        dclines = indexed("dclines", {"dcline": ["DC1"], "node_i": ["N2"], "node_j": ["N3"]})
        self.assertFalse(validate_topology(report, nodes, lines, dclines))
        errors = report.get_errors()
        self.assertEqual([error.message for error in errors], ["AC subnetwork 2 (2 nodes) has no slack bus"])
        self.assertEqual(errors[0].location, "N3, N4")

        report = DataReport()
        nodes.loc["N3", "slack"] = True
        self.assertTrue(validate_topology(report, nodes, lines, dclines))

    def test_ac_subnetwork_multiple_slack(self):
        report = DataReport()
        nodes = self.nodes.drop("N5")
        nodes.loc["N3", "slack"] = True
        self.assertTrue(validate_topology(report, nodes, self.lines, self.dclines))
        self.assertIn("AC subnetwork 1 (3 nodes) has 2 slack buses: N1, N3", self.messages(report, "WARNING"))

    def test_validate_does_not_raise_on_missing_columns(self):
        report = DataReport()
        lines = self.lines.drop(columns=["x"])
        self.assertFalse(validate_topology(report, self.nodes.drop("N5"), lines, self.dclines))
        self.assertIn("Lines have no reactance (x or x_pu)", self.messages(report))


if __name__ == '__main__':
    unittest.main()
