"""
POMATWO, the market clearing core of the POwer MArket TOol.

POMATWO clears electricity markets on a zonal or nodal spatial scope over a model horizon
split into chunks. A day-ahead market clearing can be followed by a prosumer
self-optimization against retail prices and a redispatch stage on the physical network.

Model Structure
---------------
The model is structured in three interconnected parts:

    - Data Management: Data input, validation, default values and result processing.
    - Grid Model: Topology validation, DC load flow matrices (incidence, susceptances, PTDF),
      zonal sensitivities and NTCs, combined into the grid representation.
    - Market Model: Linear programs per chunk and stage, built with pyomo from sub-models
      for generation, storages, network and prosumers and a balance on the stage scope.

Examples
--------
The *examples* folder contains a small three node data set and a run script::

    $ python examples/run_pomatwo_3node.py

"""

import json
import logging
from pathlib import Path

import pomatwo
import pomatwo.tools as tools
from pomatwo.data import DataManagement
from pomatwo.grid import GridTopology, GridModel
from pomatwo.market_model import MarketModel


def _logging_setup(wdir, logging_level=logging.INFO, file_logger=False):
    # Logging setup
    logger = logging.getLogger('log.pomatwo')
    logger.setLevel(logging_level)
    if len(logger.handlers) < (1 + int(file_logger)):
        if file_logger:
            if not wdir.joinpath("logs").is_dir():
                wdir.joinpath("logs").mkdir(parents=True)
            file_handler = logging.FileHandler(wdir.joinpath("logs").joinpath('pomatwo.log'))
            file_handler.setLevel(logging.DEBUG)
            file_handler_formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s',
                                                       '%d.%m.%Y %H:%M')
            file_handler.setFormatter(file_handler_formatter)
            logger.addHandler(file_handler)

        console_handler = logging.StreamHandler()
        console_handler.setLevel(logging_level)
        console_handler_formatter = logging.Formatter('%(levelname)s - %(message)s')
        console_handler.setFormatter(console_handler_formatter)
        logger.addHandler(console_handler)

    return logger


class POMATWO():
    """
    The main module joins all components of POMATWO, providing accessibility to the user.

    At the center is an instance of the DataManagement module, that reads and processes
    input data, makes processed input data accessible to other modules and is the container
    for the results from the market model.

    Attributes
    ----------
    wdir : pathlib.Path
        Working directory, all necessary folders, temporary files and results
        are stored in relation to this directory.
    options : dict
        Dictionary containing centralized all options relevant for running the market model.
        The options are roughly categorized into:

            - Market design: market scope and flow formulation, redispatch and prosumer
              stages and their parameters.
            - Model horizon: start, stop and length of the chunks, number of workers.
            - Costs: curtailment and penalties of the infeasibility variables.
            - Grid: capacity multiplier, generation shift keys and default NTC.
            - Solver: name, time limit and solver options.

        Gets initialized with the input json file and receives default options based on the method
        :meth:`~pomatwo.tools.add_default_options`.
    data : :class:`~pomatwo.data.DataManagement`
        Instance of DataManagement class containing all data, data processing,
        results and result processing. Is initialized empty, then data
        explicitly loaded.
    grid : :class:`~pomatwo.grid.GridTopology`
        Object containing all grid information. Initializes empty and filled based on
        nodes, lines and dclines data when the grid representation is created.
    grid_model : :class:`~pomatwo.grid.GridModel`
        The GridModel provides the grid representation to the market model,
        based on the chosen market scope.
    market_model : :class:`~pomatwo.market_model.MarketModel`
        Module running the market model and initializing the result object inside ``data``.

    Parameters
    ----------
    wdir : pathlib.Path
        Working directory, should be the root of the POMATWO folder.
    options_file : str, optional
        Providing the name of an option file, usually located in the
        ``/profiles`` folder. If not provided, using default options as
        defined in tools.
    """

    def __init__(self, wdir, options_file=None, logging_level=logging.INFO, file_logger=True):

        self.wdir = Path(wdir)
        self.package_dir = Path(pomatwo.__path__[0])
        self.logger = _logging_setup(self.wdir, logging_level, file_logger)
        tools.create_folder_structure(self.wdir, self.logger)
        # Core Attributes
        self.options = tools.default_options()
        if options_file:
            self.initialize_options(options_file)
        self.data = DataManagement(self.options, self.wdir)
        self.grid = GridTopology()
        self.grid_model = GridModel(self.grid, self.data, self.options)
        self.market_model = MarketModel(self.wdir, self.options, self.data, self.grid_model.grid_representation)
        self.logger.info("POMATWO initialized!")

    @property
    def grid_representation(self):
        return self.grid_model.grid_representation

    def _set_options(self, options):
        # the options dict is shared with all modules
        self.options.clear()
        self.options.update(options)

    def initialize_options(self, options_file):
        """Initialize options file.

        Parameters
        ----------
        options_file : str, optional
            Providing the name of an option file, usually located in the ``/profiles``
            folder. If not provided, using default options as defined in tools.
        """
        try:
            with open(self.wdir.joinpath(options_file)) as opt_file:
                loaded_options = json.load(opt_file)
            self._set_options(tools.add_default_options(loaded_options))
            self.logger.debug("Optimization Options:" + json.dumps(self.options, indent=2) + "\n")

        except FileNotFoundError:
            self.logger.warning("No or invalid options file provided, using default options")
            self._set_options(tools.default_options())
            self.logger.debug("Optimization Options:" + json.dumps(self.options, indent=2) + "\n")

    def load_data(self, filename):
        """Load data into :class:`~pomatwo.data.DataManagement` module.

        The data attribute is initialized empty and explicitly filled with
        this method. When done reading and processing data, the grid representation is
        created.

        Parameters
        ----------
        filename : str
            Providing the name of a data folder or zip archive, usually located in the
            ``/data_input`` folder.
        """
        self.data.load_data(filename)
        if self.data.data_validation_report.has_errors():
            self.logger.error("Input data contains errors, grid representation is not created.")
        else:
            self.create_grid_representation()

    def load_snapshot(self, filename):
        """Load a data set saved with :meth:`save_snapshot`, including its options."""
        self.data.load_data(filename)
        if self.data.snapshot_options is not None:
            self.logger.info("Using the options stored with the data set.")
            self._set_options(self.data.snapshot_options)
        if not self.data.data_validation_report.has_errors():
            self.create_grid_representation()

    def save_snapshot(self, filename, archive=True):
        """Save data and options, the model run can be reconstructed with :meth:`load_snapshot`."""
        self.data.save_data(self.wdir.joinpath(filename), archive=archive)

    def create_grid_representation(self):
        """Create grid representation to be used in the market model."""
        grid_representation = self.grid_model.create_grid_representation()
        self.market_model.grid_representation = grid_representation
        return grid_representation

    def initialize_market_results(self, result_folders):
        """Initializes market results from a list of folders.

        Parameters
        ----------
        result_folders : list
            List of folders containing market results.
        """
        for folder in result_folders:
            self.logger.info("Loading result from %s", str(folder))
            self.data.process_results(folder)

    def run_market_model(self):
        """Run the market model based on the current state of data and options."""
        self.market_model.run()
        if self.market_model.status == "solved":
            self.initialize_market_results(self.market_model.result_folders)
        else:
            self.logger.warning("Market Model not successfully run!")
            if self.market_model.result_folders:
                self.initialize_market_results(self.market_model.result_folders)
