import logging
import tempfile
import unittest
from pathlib import Path

import numpy as np

from context import pomatwo, copytree, EXAMPLES
from pomatwo.market_model.stage import solver_available


class TestPomatwo(unittest.TestCase):

    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.wdir = Path(self.temp_dir.name)
        copytree(EXAMPLES, self.wdir)

    def tearDown(self):
        self.temp_dir = None

    def test_init(self):
        mato = pomatwo.POMATWO(self.wdir, "profiles/three_node.json", logging_level=logging.ERROR,
                               file_logger=False)
        self.assertEqual(mato.options["title"], "three_node")
        self.assertEqual(mato.options["prosumer"]["retail_type"], "realtime")
        self.assertIs(mato.data.options, mato.options)
        self.assertIs(mato.market_model.options, mato.options)
        self.assertTrue(self.wdir.joinpath("data_temp").is_dir())

    def test_invalid_options_file(self):
        mato = pomatwo.POMATWO(self.wdir, "profiles/INVALID.json", logging_level=logging.ERROR,
                               file_logger=False)
        self.assertEqual(mato.options, pomatwo.tools.default_options())

    def test_file_logger(self):
        mato = pomatwo.POMATWO(self.wdir, logging_level=logging.ERROR, file_logger=True)
        mato.logger.error("logged to file")
        self.assertTrue(self.wdir.joinpath("logs/pomatwo.log").is_file())
        for handler in list(mato.logger.handlers):
            handler.close()
            mato.logger.removeHandler(handler)

    def test_load_data(self):
        mato = pomatwo.POMATWO(self.wdir, "profiles/three_node.json", logging_level=logging.ERROR,
                               file_logger=False)
        mato.load_data("data_input/three_node")
        self.assertEqual(mato.grid_representation.option, "zonal")
        self.assertIs(mato.market_model.grid_representation, mato.grid_representation)
        self.assertEqual(mato.grid_representation.omitted_nodes, ["N4"])
        np.testing.assert_allclose(mato.grid_representation.gsk.sum(), [1, 1])

    def test_snapshot(self):
        mato = pomatwo.POMATWO(self.wdir, "profiles/three_node_nodal.json", logging_level=logging.ERROR,
                               file_logger=False)
        mato.load_data("data_input/three_node")
        mato.save_snapshot("data_output/three_node_snapshot")

        restored = pomatwo.POMATWO(self.wdir, logging_level=logging.ERROR, file_logger=False)
        restored.load_snapshot("data_output/three_node_snapshot.zip")
        self.assertEqual(restored.options["title"], "three_node_nodal")
        self.assertEqual(restored.options["market"]["formulation"], "ptdf")
        self.assertEqual(restored.grid_representation.option, "nodal")
        self.assertEqual(len(restored.data.plants), 5)

    @unittest.skipUnless(solver_available("appsi_highs"), "HiGHS (highspy) not available")
    def test_three_node_example(self):
        mato = pomatwo.POMATWO(self.wdir, "profiles/three_node.json", logging_level=logging.ERROR,
                               file_logger=False)
        mato.load_data("data_input/three_node")
        mato.run_market_model()
        self.assertEqual(mato.market_model.status, "solved")
        result = mato.data.results[mato.market_model.result_folders[0].name]
        self.assertEqual(sorted(result.tables), ["day_ahead", "prosumer", "redispatch"])
        self.assertEqual(len(result.status), 6)
        self.assertEqual(sorted(result.price().columns), ["Z1", "Z2"])
        self.assertEqual(len(result.price()), 24)

        redispatch = result.get("NodalMarketRedispBalance", "redispatch")
        np.testing.assert_allclose(redispatch.LL, 0, atol=1e-4)
        lineflow = result.get("LINEFLOW", "redispatch")
        self.assertTrue((lineflow.LINEFLOW.abs() <= lineflow.capacity + lineflow.LINEINF + 1e-4).all())

        mato.initialize_options("profiles/three_node_nodal.json")
        mato.create_grid_representation()
        mato.run_market_model()
        self.assertEqual(mato.market_model.status, "solved")
        nodal_result = mato.data.results[mato.market_model.result_folders[0].name]
        self.assertEqual(sorted(nodal_result.price().columns), ["N1", "N2", "N3", "N4"])
        self.assertTrue(nodal_result.get("NETINPUT").DELTA.isna().all())


if __name__ == '__main__':
    unittest.main()
