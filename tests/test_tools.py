import unittest

from context import pomatwo
from pomatwo.exceptions import ConfigurationError
from pomatwo.tools import TimeHorizon, split_time_horizon, prev_period


class TestTools(unittest.TestCase):

    def test_split(self):
        self.assertEqual(split_time_horizon(TimeHorizon(1, 4, 2, 0)), [[1, 2], [3, 4]])
        self.assertEqual(split_time_horizon(TimeHorizon(1, 5, 2, 0)), [[1, 2], [3, 4], [5]])
        self.assertEqual(split_time_horizon(TimeHorizon(3, 3, 24, 0)), [[3]])

    def test_split_offset(self):
        self.assertEqual(split_time_horizon(TimeHorizon(1, 10, 4, 2)), [[1, 2], [3, 4, 5, 6], [7, 8, 9, 10]])
        self.assertEqual(split_time_horizon(TimeHorizon(1, 3, 4, 5)), [[1, 2, 3]])

    def test_split_invalid(self):
        self.assertRaises(ConfigurationError, split_time_horizon, TimeHorizon(1, 10, 0, 0))
        self.assertRaises(ConfigurationError, split_time_horizon, TimeHorizon(5, 1, 2, 0))
        self.assertRaises(ConfigurationError, split_time_horizon, TimeHorizon(1, 10, 2, -1))

    def test_time_horizon_from_options(self):
        options = pomatwo.tools.default_options()
        options["timeseries"].update({"start": 2, "stop": 12, "split": 5, "offset": 1})
        self.assertEqual(pomatwo.tools.time_horizon_from_options(options), TimeHorizon(2, 12, 5, 1))

    def test_prev_period(self):
        timesteps = [5, 6, 7]
        self.assertEqual(prev_period(timesteps, 6), 5)
        self.assertEqual(prev_period(timesteps, 5), 7)

    def test_default_options(self):
        options = pomatwo.tools.add_default_options({"market": {"scope": "nodal"},
                                                     "timeseries": {"split": 12}})
        self.assertEqual(options["market"]["scope"], "nodal")
        self.assertEqual(options["market"]["exchange"], "ntc")
        self.assertEqual(options["timeseries"]["split"], 12)
        self.assertEqual(options["timeseries"]["stop"], 24)

    def test_invalid_option(self):
        self.assertRaises(ValueError, pomatwo.tools.add_default_options, {"market": {"invalid": 1}})
        self.assertRaises(ValueError, pomatwo.tools.add_default_options, {"invalid": {"scope": "zonal"}})

    def test_solver_options_free_form(self):
        options = pomatwo.tools.add_default_options({"solver": {"options": {"presolve": "off"}}})
        self.assertEqual(options["solver"]["options"], {"presolve": "off"})
        self.assertEqual(options["solver"]["name"], "appsi_highs")

    def test_remove_empty_subdicts(self):
        self.assertEqual(pomatwo.tools.remove_empty_subdicts({"a": {"b": {}}, "c": 1, "d": ""}), {"c": 1})


if __name__ == '__main__':
    unittest.main()
