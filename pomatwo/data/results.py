"""Result tables of the market model.

Every stage of the market model produces a set of tables with one row per entity and
timestep. The columns of each table kind are fixed in ``RESULT_COLUMNS`` so that results of
different model setups and chunks can be concatenated and read back consistently.

Results are written per chunk into ``subrun_t{first}-t{last}/{stage}/{TABLE}.feather``
(or .csv) by :class:`ResultWriter` and read back by :class:`Results`.
"""
import json
import logging
from pathlib import Path

import pandas as pd

BALANCE_COLUMNS = ["MarketBalance", "CU", "LL"]

RESULT_COLUMNS = {
    "GEN": ["plant", "timestep", "GEN", "CU", "mc", "gmax"],
    "CHARGE": ["plant", "timestep", "CHARGE", "gmax"],
    "STO_LVL": ["plant", "timestep", "STO_LVL", "storage", "INF"],
    "REDISP": ["plant", "timestep", "GEN_REDISP", "GEN_UP", "GEN_DOWN", "gen", "CU_REDISP",
               "CHARGE_REDISP", "CHARGE_UP", "CHARGE_DOWN", "max_up"],
    "STO_LVL_REDISP": ["plant", "timestep", "STO_LVL_REDISP", "storage", "INF"],
    "NETINPUT": ["node", "timestep", "NETINPUT", "DELTA"],
    "LINEFLOW": ["line", "timestep", "LINEFLOW", "capacity", "LINEINF"],
    "DCLINEFLOW": ["dcline", "timestep", "DCLINEFLOW", "capacity"],
    "EXCHANGE": ["zone", "timestep", "EXCHANGE"],
    "NTC": ["zone_i", "zone_j", "timestep", "EX", "ntc"],
    "PRS": ["plant", "timestep", "PRS_TOTAL_GEN", "PRS_NETINPUT", "PRS_SELF", "PRS_CU", "PRS_BUY",
            "PRS_SELL", "PRS_STO_LVL", "PRS_STO_IN", "PRS_STO_OUT", "INF"],
    "ZonalMarketBalance": ["zone", "timestep"] + BALANCE_COLUMNS,
    "NodalMarketBalance": ["node", "timestep"] + BALANCE_COLUMNS,
    "NodalMarketRedispBalance": ["node", "timestep"] + BALANCE_COLUMNS,
}


def chunk_name(timesteps):
    """Name of the result folder of a chunk."""
    return f"subrun_t{timesteps[0]}-t{timesteps[-1]}"


class ResultWriter():
    """Write the result tables of each chunk and stage to disk.

    Parameters
    ----------
    result_folder : pathlib.Path
        Folder of the model run, chunk folders are created inside.
    file_format : str, optional
        *feather* (via pyarrow) or *csv*.
    """
    def __init__(self, result_folder, file_format="feather"):
        self.logger = logging.getLogger('log.pomatwo.data.ResultWriter')
        if file_format not in ["feather", "csv"]:
            raise ValueError(f"Unsupported result format {file_format}")
        self.result_folder = Path(result_folder)
        self.file_format = file_format

    def write(self, timesteps, stage, tables, status):
        """Write the tables of one stage of a chunk.

        Parameters
        ----------
        timesteps : list(int)
            Timesteps of the chunk.
        stage : str
            Name of the stage, e.g. day_ahead.
        tables : dict(str, pandas.DataFrame)
            Result tables.
        status : dict
            Termination condition and objective value of the stage.
        """
        folder = self.result_folder.joinpath(chunk_name(timesteps), stage)
        folder.mkdir(parents=True, exist_ok=True)
        for name, table in tables.items():
            table = table.reset_index(drop=True)
            if self.file_format == "feather":
                table.to_feather(folder.joinpath(name + ".feather"))
            else:
                table.to_csv(folder.joinpath(name + ".csv"), index=False)
        with open(folder.joinpath("status.json"), "w") as status_file:
            json.dump(status, status_file, indent=2)
        self.logger.debug("Results written to %s", str(folder))
        return folder


class Results():
    """Results of a market model run, read from a result folder.

    Parameters
    ----------
    data : :class:`~pomatwo.data.DataManagement`
        Data the results belong to.
    result_folder : pathlib.Path
        Folder written by the :class:`~pomatwo.market_model.MarketModel`.

    Attributes
    ----------
    tables : dict(str, dict(str, pandas.DataFrame))
        Result tables per stage, concatenated over all chunks.
    status : pandas.DataFrame
        Termination condition and objective value per chunk and stage.
    result_attributes : dict
        Options of the model run and the source folder.
    """
    def __init__(self, data, result_folder):
        self.logger = logging.getLogger('log.pomatwo.data.Results')
        self.data = data
        self.result_folder = Path(result_folder)
        self.name = self.result_folder.name
        self.result_attributes = {"source": self.result_folder, "options": {}}
        if self.result_folder.joinpath("optionfile.json").is_file():
            with open(self.result_folder.joinpath("optionfile.json")) as opt_file:
                self.result_attributes["options"] = json.load(opt_file)
        self.tables = {}
        self.status = pd.DataFrame(columns=["chunk", "stage", "termination", "objective"])
        self.load_results()

    def load_results(self):
        """Read and concatenate the tables of all chunks."""
        chunk_folders = sorted([f for f in self.result_folder.glob("subrun_t*") if f.is_dir()],
                               key=lambda f: int(f.name.split("-")[0][len("subrun_t"):]))
        if not chunk_folders:
            self.logger.warning("No results found in %s", str(self.result_folder))
        tables = {}
        status = []
        for chunk in chunk_folders:
            for stage in sorted(f for f in chunk.iterdir() if f.is_dir()):
                if stage.joinpath("status.json").is_file():
                    with open(stage.joinpath("status.json")) as status_file:
                        stage_status = json.load(status_file)
                    status.append({"chunk": chunk.name, "stage": stage.name, **stage_status})
                for file in stage.iterdir():
                    if file.suffix == ".feather":
                        table = pd.read_feather(file)
                    elif file.suffix == ".csv":
                        table = pd.read_csv(file)
                    else:
                        continue
                    tables.setdefault(stage.name, {}).setdefault(file.stem, []).append(table)

        self.tables = {stage: {name: pd.concat(frames, ignore_index=True) for name, frames in stage_tables.items()}
                       for stage, stage_tables in tables.items()}
        if status:
            self.status = pd.DataFrame(status)

    def get(self, table, stage="day_ahead"):
        """Return a result table, empty with the table's columns if not available."""
        if table in self.tables.get(stage, {}):
            return self.tables[stage][table]
        return pd.DataFrame(columns=RESULT_COLUMNS.get(table, []))

    def price(self, stage="day_ahead"):
        """Market price (dual of the balance constraint) as timestep x spatial unit table."""
        for table in ["ZonalMarketBalance", "NodalMarketBalance", "NodalMarketRedispBalance"]:
            balance = self.get(table, stage)
            if not balance.empty:
                unit = RESULT_COLUMNS[table][0]
                return balance.pivot(index="timestep", columns=unit, values="MarketBalance")
        return pd.DataFrame()
