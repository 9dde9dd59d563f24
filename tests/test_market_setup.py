import logging
import tempfile
import unittest
from pathlib import Path

import numpy as np
import pandas as pd

from context import pomatwo
from cases import prosumer_case, two_zone_case, write_case
from pomatwo.exceptions import ConfigurationError
from pomatwo.market_model import (MarketSetup, ZonalScope, NodalScope, DayAhead,
                                  ProsumerOptimizationState, Redispatch, StageBuilder, balance_scope)
from pomatwo.market_model.balance import prosumer_net_injection
from pomatwo.market_model.components import Prosumer


class TestMarketSetup(unittest.TestCase):

    def setUp(self):
        self.options = pomatwo.tools.default_options()

    def test_default_setup(self):
        setup = MarketSetup.from_options(self.options)
        self.assertEqual(setup.scope, ZonalScope("ntc"))
        self.assertFalse(setup.has_redispatch)
        self.assertFalse(setup.has_prosumer)

    def test_nodal_setup(self):
        self.options["market"].update({"scope": "nodal", "formulation": "ptdf"})
        self.options["redispatch"]["include"] = True
        self.options["prosumer"].update({"include": True, "retail_type": "flat", "sell_price": 20})
        setup = MarketSetup.from_options(self.options)
        self.assertEqual(setup.scope, NodalScope("ptdf"))
        self.assertEqual(setup.redispatch.formulation, "phase_angle")
        self.assertEqual(setup.prosumer.retail_type, "flat")
        self.assertEqual(setup.prosumer.sell_price, 20)
        self.assertEqual(setup.prosumer.grid_fee, 250)

    def test_invalid_options(self):
        invalid = [("market", "scope", "copperplate"), ("market", "exchange", "fbmc"),
                   ("redispatch", "formulation", "ac"), ("prosumer", "retail_type", "spot"),
                   ("storages", "chunk_boundary", "none")]
        for section, key, value in invalid:
            options = pomatwo.tools.default_options()
            options["redispatch"]["include"] = True
            options["prosumer"]["include"] = True
            options[section][key] = value
            self.assertRaises(ConfigurationError, MarketSetup.from_options, options)

        self.options["market"].update({"scope": "nodal", "formulation": "ac"})
        self.assertRaises(ConfigurationError, MarketSetup.from_options, self.options)

    def test_balance_scope(self):
        self.options["redispatch"].update({"include": True, "formulation": "ptdf"})
        setup = MarketSetup.from_options(self.options)
        day_ahead, redispatch = DayAhead([1, 2]), Redispatch([1, 2], {})

        self.assertEqual(balance_scope(setup, day_ahead), ZonalScope())
        self.assertEqual(balance_scope(setup, redispatch), NodalScope("ptdf"))
        self.assertEqual(balance_scope(setup, day_ahead).balance_name(day_ahead), "ZonalMarketBalance")
        self.assertEqual(NodalScope().balance_name(day_ahead), "NodalMarketBalance")
        self.assertEqual(balance_scope(setup, redispatch).balance_name(redispatch), "NodalMarketRedispBalance")

    def test_setup_is_immutable(self):
        setup = MarketSetup.from_options(self.options)
        with self.assertRaises(AttributeError):
            setup.scope = NodalScope()
        self.assertEqual(len({ZonalScope(), ZonalScope(), NodalScope(), NodalScope("ptdf")}), 3)


class TestStageBuilder(unittest.TestCase):
    """Model construction, does not require a solver."""

    @classmethod
    def setUpClass(cls):
        cls.temp_dir = tempfile.TemporaryDirectory()
        cls.wdir = Path(cls.temp_dir.name)
        write_case(cls.wdir.joinpath("prosumer"), prosumer_case())
        write_case(cls.wdir.joinpath("two_zone"), two_zone_case())

    @classmethod
    def tearDownClass(cls):
        cls.temp_dir = None

    def load(self, case, options):
        data = pomatwo.data.DataManagement(options, self.wdir)
        data.logger.setLevel(logging.ERROR)
        data.load_data(case)
        grid_model = pomatwo.grid.GridModel(pomatwo.grid.GridTopology(), data, options)
        grid_model.logger.setLevel(logging.ERROR)
        return data, grid_model.create_grid_representation()

    def prosumer_stage(self, retail_type, price):
        options = pomatwo.tools.default_options()
        options["plant_types"]["prs"] = ["prs"]
        options["prosumer"].update({"include": True, "retail_type": retail_type, "buy_price": 25})
        data, grid_representation = self.load("prosumer", options)
        setup = MarketSetup.from_options(options)
        stage = StageBuilder(data, grid_representation, setup, ProsumerOptimizationState([1, 2], price), options)
        stage.logger.setLevel(logging.ERROR)
        return stage

    def test_retail_price(self):
        price = pd.DataFrame({"Z1": [30.0, 50.0]}, index=[1, 2])
        retail = Prosumer().retail_price(self.prosumer_stage("realtime", price), ["P1"])
        np.testing.assert_allclose(retail.P1, [30, 50])
        retail = Prosumer().retail_price(self.prosumer_stage("flat", price), ["P1"])
        np.testing.assert_allclose(retail.P1, [40, 40])
        retail = Prosumer().retail_price(self.prosumer_stage("buy_price", price), ["P1"])
        np.testing.assert_allclose(retail.P1, [25, 25])

    def test_retail_price_without_reference(self):
        price = pd.DataFrame({"Z9": [30.0, 50.0]}, index=[1, 2])
        retail = Prosumer().retail_price(self.prosumer_stage("realtime", price), ["P1"])
        np.testing.assert_allclose(retail.P1, [25, 25])
        self.assertEqual(retail.P1.dtype, float)
        retail = Prosumer().retail_price(self.prosumer_stage("flat", price), ["P1"])
        np.testing.assert_allclose(retail.P1, [25, 25])

    def test_prosumer_stage(self):
        stage = self.prosumer_stage("realtime", pd.DataFrame({"Z1": [30.0, 50.0]}, index=[1, 2]))
        model = stage.build()
        self.assertTrue(hasattr(model, "prosumer"))
        self.assertFalse(hasattr(model, "balance"))
        self.assertFalse(hasattr(model, "disp"))
        self.assertEqual(len(model.prosumer.PRS_BUY), 2)
        self.assertEqual(len(model.prosumer.PRS_STO_LVL), 0)
        self.assertEqual(len(stage.rows["PRS"]), 2)
        self.assertEqual(model.prosumer.PRS_BUY["P1", 2].ub, 6)

    def test_prosumer_net_injection(self):
        options = pomatwo.tools.default_options()
        options["plant_types"]["prs"] = ["prs"]
        options["redispatch"]["include"] = True
        data, grid_representation = self.load("prosumer", options)
        setup = MarketSetup.from_options(options)

        stage = StageBuilder(data, grid_representation, setup, DayAhead([1, 2]), options)
        self.assertEqual(prosumer_net_injection(stage, "P1", 2), -6)

        netinput = pd.DataFrame({"P1": [6.0, -6.0]}, index=[1, 2])
        stage = StageBuilder(data, grid_representation, setup, Redispatch([1, 2], {"prs_netinput": netinput}),
                             options)
        self.assertEqual(prosumer_net_injection(stage, "P1", 1), 6)
        self.assertEqual(stage.scope, NodalScope("phase_angle"))

    def test_zonal_day_ahead(self):
        options = pomatwo.tools.default_options()
        data, grid_representation = self.load("two_zone", options)
        stage = StageBuilder(data, grid_representation, MarketSetup.from_options(options),
                             DayAhead([1, 2]), options)
        model = stage.build()
        self.assertEqual(stage.balance_table, "ZonalMarketBalance")
        self.assertEqual(len(model.balance.MarketBalance), 4)
        self.assertEqual(len(model.network.EX), 4)
        self.assertEqual(model.network.EX["Z1", "Z2", 1].ub, 30)
        self.assertEqual(model.disp.GEN["G1", 1].ub, 100)
        np.testing.assert_allclose(stage.demand.loc[1], [20, 60])
        self.assertEqual(len(stage.rows["NTC"]), 4)
        self.assertNotIn("LINEFLOW", stage.rows)

    def test_redispatch_stage(self):
        options = pomatwo.tools.default_options()
        options["redispatch"]["include"] = True
        data, grid_representation = self.load("two_zone", options)
        day_ahead = {"disp_generation": pd.DataFrame({"G1": [50.0, 50.0], "G2": [30.0, 30.0]}, index=[1, 2])}
        stage = StageBuilder(data, grid_representation, MarketSetup.from_options(options),
                             Redispatch([1, 2], day_ahead), options)
        stage.logger.setLevel(logging.ERROR)
        model = stage.build()
        self.assertEqual(stage.balance_table, "NodalMarketRedispBalance")
        self.assertEqual(model.disp.GEN_UP["G1", 1].ub, 50)
        self.assertEqual(model.disp.GEN_DOWN["G2", 2].ub, 30)
        self.assertTrue(model.network.THETA["N1", 1].fixed)
        self.assertEqual(len(model.network.LINEFLOW), 2)

    def test_redispatch_network_follows_scope(self):
        options = pomatwo.tools.default_options()
        options["redispatch"].update({"include": True, "formulation": "ptdf"})
        data, grid_representation = self.load("two_zone", options)
        day_ahead = {"disp_generation": pd.DataFrame({"G1": [50.0, 50.0], "G2": [30.0, 30.0]}, index=[1, 2])}
        stage = StageBuilder(data, grid_representation, MarketSetup.from_options(options),
                             Redispatch([1, 2], day_ahead), options)
        stage.logger.setLevel(logging.ERROR)
        model = stage.build()
        self.assertEqual(stage.scope, NodalScope("ptdf"))
        self.assertFalse(hasattr(model.network, "THETA"))
        self.assertTrue(model.network.INJ["N1", 1].fixed)
        self.assertFalse(model.network.INJ["N2", 1].fixed)


if __name__ == '__main__':
    unittest.main()
