"""The market model of POMATWO.

This module runs the market clearing over the model horizon. The horizon is split into
chunks which are solved independently and in sequence of the stages: day-ahead, optionally
the prosumer self-optimization and redispatch. Each stage is a linear program, built with
pyomo and solved with the solver chosen in the options.

The results of every chunk and stage are written into the result folder of the run, once
all chunks are solved the folder is read back as :class:`~pomatwo.data.Results`.
"""
import concurrent.futures
import datetime
import json
import logging

from progress.spinner import Spinner

import pomatwo.tools as tools
from pomatwo.data.results import ResultWriter
from pomatwo.exceptions import ConfigurationError, SolverError
from pomatwo.market_model.market_setup import (DayAhead, MarketSetup,
                                               ProsumerOptimizationState, Redispatch)
from pomatwo.market_model.stage import StageBuilder, create_solver, solver_available


def run_chunk(data, grid_representation, setup, options, timesteps, writer):
    """Clear one chunk of the model horizon.

    Runs the day-ahead stage and, depending on the setup, the prosumer and redispatch
    stages. The result tables of every stage are written with *writer*.

    Returns
    -------
    chunk_status : list(dict)
        Status of each stage.

    Raises
    ------
    SolverError
        A stage did not terminate optimal and the option *abort_on_failure* is set.
    """
    logger = logging.getLogger('log.pomatwo.market_model.MarketModel')
    solver = create_solver(options)
    chunk_status = []

    def run_stage(state):
        stage = StageBuilder(data, grid_representation, setup, state, options)
        stage.build()
        status = stage.solve(solver)
        writer.write(timesteps, state.name, stage.results(), status)
        chunk_status.append({"timesteps": [timesteps[0], timesteps[-1]], "stage": state.name, **status})
        if not status["optimal"] and options["abort_on_failure"]:
            raise SolverError(f"Stage {state.name} of chunk t{timesteps[0]}-t{timesteps[-1]} "
                              f"terminated with {status['termination']}")
        return stage

    logger.debug("Clearing chunk t%s-t%s", timesteps[0], timesteps[-1])
    day_ahead = run_stage(DayAhead(timesteps))
    snapshot = day_ahead.snapshot()
    if setup.has_prosumer:
        prosumer = run_stage(ProsumerOptimizationState(timesteps, snapshot["price"]))
        snapshot.update(prosumer.snapshot())
    if setup.has_redispatch:
        run_stage(Redispatch(timesteps, snapshot))
    return chunk_status


class MarketModel():
    """Class to run the market clearing based on the data and grid representation.

    This module is initialized empty and runs the market model with the current data, options
    and grid representation when :meth:`run` is called. The model can be re-run with changed
    options or data.

    Parameters
    ----------
    wdir : pathlib.Path
        Working directory
    options : dict
        The options from POMATWO main method persist in the MarketModel.
    data : :class:`~pomatwo.data.DataManagement`
       An instance of the DataManagement class with processed input data.
    grid_representation : types.SimpleNamespace
        Grid representation resulting from :class:`~pomatwo.grid.GridModel`.

    Attributes
    ----------
    wdir : pathlib.Path
        Working directory
    results_dir : pathlib.Path
        Subdirectory of working directory containing the result folders.
    status : str
        Attribute indicating the model status: empty, solved, error.
    chunk_status : list(dict)
        Termination condition and objective of each stage of each chunk.
    result_folders : list(pathlib.Path)
        Result folder of the last run.
    """

    def __init__(self, wdir, options, data, grid_representation):
        self.logger = logging.getLogger('log.pomatwo.market_model.MarketModel')
        self.logger.info("Initializing MarketModel...")
        self.options = options
        self.wdir = wdir
        self.results_dir = wdir.joinpath("data_temp/results")
        self.data = data
        self.grid_representation = grid_representation

        # attributes to signal successful model run
        self.status = 'empty'
        self.chunk_status = []
        self.result_folders = None

    @property
    def chunks(self):
        """Timesteps of each chunk of the model horizon."""
        return tools.split_time_horizon(tools.time_horizon_from_options(self.options))

    def _check_inputs(self, setup):
        if self.data.data_validation_report.has_errors():
            errors = "; ".join(error.message for error in self.data.data_validation_report.get_errors())
            raise ConfigurationError(f"Input data contains errors: {errors}")
        if self.grid_representation.option is None:
            raise ConfigurationError("No grid representation, create the grid representation first")
        if self.grid_representation.option != setup.scope.name:
            raise ConfigurationError("Grid representation does not match the market scope, "
                                     "re-create the grid representation")
        if ((setup.scope.name == "nodal" or setup.has_redispatch)
                and len(self.grid_representation.lines) == 0 and len(self.data.lines) > 0):
            raise ConfigurationError("Nodal network missing in the grid representation")
        if not solver_available(self.options["solver"]["name"]):
            raise SolverError(f"Solver {self.options['solver']['name']} is not available")

    def _create_result_folder(self):
        name = datetime.datetime.now().strftime("%d%m_%H%M%S") + "_" + self.options["title"]
        folder = self.results_dir.joinpath(name)
        counter = 1
        while folder.exists():
            folder = self.results_dir.joinpath(f"{name}_{counter}")
            counter += 1
        folder.mkdir(parents=True)
        with open(folder.joinpath("optionfile.json"), 'w') as file:
            json.dump(self.options, file, indent=2)
        return folder

    def run(self):
        """Run the market model over all chunks of the model horizon.

        Chunks are solved in sequence or, with more than one worker in the timeseries
        options, in a process pool. In the case of successful completion the result folder
        is stored in the *result_folders* attribute which will be instantiated as
        :class:`~pomatwo.data.Results` as part of the DataManagement module.

        Raises
        ------
        ConfigurationError
            Invalid options, input data with errors or missing grid representation.
        SolverError
            The solver is not available, or a stage failed with *abort_on_failure*.
        """
        setup = MarketSetup.from_options(self.options)
        self._check_inputs(setup)
        chunks = self.chunks

        t_start = datetime.datetime.now()
        self.logger.info("Start-Time: %s", t_start.strftime("%H:%M:%S"))
        self.logger.info("Market setup: %s, %d chunks", str(setup), len(chunks))

        folder = self._create_result_folder()
        writer = ResultWriter(folder, self.options["results"]["format"])
        self.chunk_status = []
        self.status = 'error'
        workers = int(self.options["timeseries"]["workers"])
        args = (self.data, self.grid_representation, setup, self.options)

        if workers > 1 and len(chunks) > 1:
            with concurrent.futures.ProcessPoolExecutor(max_workers=workers) as executor:
                futures = [executor.submit(run_chunk, *args, timesteps, writer) for timesteps in chunks]
                try:
                    for future in futures:
                        self.chunk_status.extend(future.result())
                except SolverError:
                    for future in futures:
                        future.cancel()
                    raise
        else:
            spinner = Spinner('Solving market model... ', check_tty=False, hide_cursor=False)
            for timesteps in chunks:
                self.chunk_status.extend(run_chunk(*args, timesteps, writer))
                spinner.next()
            spinner.finish()

        t_end = datetime.datetime.now()
        self.logger.info("End-Time: %s", t_end.strftime("%H:%M:%S"))
        self.logger.info("Total Time: %s", str((t_end-t_start).total_seconds()) + " sec")

        self.result_folders = [folder]
        if all(status["optimal"] for status in self.chunk_status):
            self.status = 'solved'
        else:
            failed = [f"{s['stage']} t{s['timesteps'][0]}-t{s['timesteps'][1]}"
                      for s in self.chunk_status if not s["optimal"]]
            self.logger.warning("Process not terminated successfully! Failed stages: %s", ", ".join(failed))
            self.status = 'error'
        return self.result_folders
