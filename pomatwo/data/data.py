"""DataManagement of POMATWO.

Holds all input data as pandas DataFrames, validates them and makes sure the data is
consistent with the model structure defined in ``data/model_structure.json``: missing
tables are initialized empty, missing columns and values are filled with default values.
The same default-fill is applied when a saved data set (snapshot) of an older version is
loaded again.
"""
import json
import logging
import shutil
import zipfile
from pathlib import Path

import numpy as np
import pandas as pd

import pomatwo
import pomatwo.tools as tools
from pomatwo.data.report import DataReport, validate_numeric_column, validate_required_columns
from pomatwo.data.results import Results

INDEX_NAMES = {"zones": "zone", "nodes": "node", "lines": "line", "dclines": "dcline", "plants": "plant",
               "plant_types": "plant_type"}
CO2 = "co2"


class DataManagement():
    """The DataManagement class provides the data for the grid and market model.

    Parameters
    ----------
    options : dict
        The options from POMATWO main method persist in the DataManagement.
    wdir : pathlib.Path
        Working directory.

    Attributes
    ----------
    model_structure : dict
        Tables and columns necessary to run the model, including default values.
    data_attributes : dict
        All tables are available as attribute of this class. ``data_attributes`` tracks
        if a table was loaded from file as indicated by the dict{attr, bool}.
    missing_data : list
        Tables not found in the loaded data set.
    data_validation_report : :class:`~pomatwo.data.DataReport`
        Result of the input data validation.
    model_validation_report : dict
        Tables initialized empty and columns filled with default values.
    snapshot_options : dict
        Options stored alongside a loaded data set, None if none were stored.
    results : dict(str, :obj:`~pomatwo.data.Results`)
        Results attached to the data.
    """

    def __init__(self, options, wdir):
        self.logger = logging.getLogger('log.pomatwo.data.DataManagement')
        self.logger.info("Initializing DataObject")

        self.wdir = Path(wdir)
        self.package_dir = Path(pomatwo.__path__[0])
        self.options = options

        self.model_structure = self.load_model_structure()
        self.missing_data = []
        self.data_validation_report = DataReport("input data")
        self.model_validation_report = {}
        self.data_source = None
        self.snapshot_options = None

        self.data_attributes = {data: False for data in self.model_structure}
        for attr in self.data_attributes:
            setattr(self, attr, self._empty_table(attr))
        self.results = {}

    def load_model_structure(self):
        """Load model structure as part of init."""
        with open(self.package_dir.joinpath("data/model_structure.json"), "r") as jsonfile:
            model_structure = json.load(jsonfile)

        for table in model_structure.values():
            for column in table.values():
                if column["default"] == "none":
                    column["default"] = np.nan
        return model_structure

    def _columns(self, data):
        return [col for col in self.model_structure[data] if col != "index"]

    def _empty_table(self, data):
        table = pd.DataFrame(columns=self._columns(data))
        if data in INDEX_NAMES:
            table.index.name = INDEX_NAMES[data]
        return table

    def load_data(self, filepath):
        """Load data from a folder or a zip archive of csv files.

        One csv file per table, named like the table (e.g. nodes.csv). After the raw data is
        read it is processed in :meth:`process_input`. An options.json in the data set is
        read into *snapshot_options*.

        Parameters
        ----------
        filepath : pathlib.Path or str
            Folder or zip archive, absolute or relative to the working directory.
        """
        filepath = Path(filepath)
        if not filepath.is_absolute():
            filepath = self.wdir.joinpath(filepath)

        if filepath.is_dir():
            raw_data = self._read_folder(filepath)
        elif filepath.is_file() and filepath.suffix == ".zip":
            raw_data = self._read_archive(filepath)
        elif filepath.is_file():
            raise TypeError(f"Unsupported input format {filepath.suffix}, use a folder or zip archive of csv files")
        elif filepath.with_suffix(".zip").is_file():
            raw_data = self._read_archive(filepath.with_suffix(".zip"))
        else:
            self.logger.error("Data File not found!")
            raise FileNotFoundError(str(filepath))

        options = raw_data.pop("options", None)
        if options is not None:
            self.snapshot_options = tools.add_default_options(options)

        self.missing_data = []
        for data in self.data_attributes:
            if data in raw_data:
                setattr(self, data, self._apply_types(data, raw_data[data]))
                self.data_attributes[data] = True
            else:
                setattr(self, data, self._empty_table(data))
                self.missing_data.append(data)

        if len(self.missing_data) > 0:
            self.logger.warning("Not complete list of expected input data found. See .missing_data")

        self.process_input()
        self.data_source = filepath

    def _read_table(self, name, file):
        index_col = 0 if name in INDEX_NAMES else None
        return pd.read_csv(file, index_col=index_col)

    def _read_folder(self, folder):
        raw_data = {}
        for file in folder.glob("*.csv"):
            if file.stem in self.model_structure:
                raw_data[file.stem] = self._read_table(file.stem, file)
        if folder.joinpath("options.json").is_file():
            with open(folder.joinpath("options.json")) as opt_file:
                raw_data["options"] = json.load(opt_file)
        return raw_data

    def _read_archive(self, archive):
        raw_data = {}
        with zipfile.ZipFile(archive) as zip_file:
            for name in zip_file.namelist():
                stem, suffix = Path(name).stem, Path(name).suffix
                if suffix == ".csv" and stem in self.model_structure:
                    with zip_file.open(name) as file:
                        raw_data[stem] = self._read_table(stem, file)
                elif Path(name).name == "options.json":
                    with zip_file.open(name) as file:
                        raw_data["options"] = json.load(file)
        return raw_data

    def _apply_types(self, data, table):
        """Cast identifier columns to str and timesteps to int."""
        table = table.copy()
        if data in INDEX_NAMES:
            table.index = table.index.astype(str)
            table.index.name = INDEX_NAMES[data]
        for col in self._columns(data):
            if col not in table.columns:
                continue
            col_type = self.model_structure[data][col]["type"]
            if col_type == "str":
                table[col] = table[col].where(table[col].isna(), table[col].astype(str))
            elif col_type == "int" and not table[col].isna().any():
                table[col] = table[col].astype(int)
        return table

    def save_data(self, filepath, archive=True):
        """Write all tables and the options as csv/json files.

        The saved data set can be loaded with :meth:`load_data`, this is the snapshot used to
        reconstruct a model run.

        Parameters
        ----------
        filepath : pathlib.Path
            Folder to write to, zipped to filepath.zip if archive is True.
        archive : bool, optional
            Zip the folder.
        """
        filepath = Path(filepath)
        self.logger.info("Writing Data to an archive of csv files %s", str(filepath))
        filepath.mkdir(parents=True, exist_ok=True)
        for data in self.data_attributes:
            getattr(self, data).to_csv(filepath.joinpath(data + ".csv"), index=data in INDEX_NAMES)
        with open(filepath.joinpath("options.json"), "w") as opt_file:
            json.dump(self.options, opt_file, indent=2)
        if archive:
            shutil.make_archive(str(filepath), "zip", str(filepath))
            shutil.rmtree(filepath, ignore_errors=True)
        self.logger.info("saved!")

    def process_input(self):
        """Validate and complete the input data."""
        self.validate_inputdata()
        self.validate_modeldata()
        if len(self.zones) == 0 and len(self.nodes) > 0:
            self.zones = pd.DataFrame(index=pd.Index(pd.unique(self.nodes.zone.dropna()), name="zone"))
        if len(self.plants) > 0:
            self.plants["g_max_storage"] = self.plants.g_max_storage.where(
                self.plants.g_max_storage.notna(), self.plants.g_max).astype(float)
        self.nodes["slack"] = self.nodes.slack.astype(bool)
        self.check_marginal_cost()

    def validate_inputdata(self):
        """Validate the input data, the findings are part of the data_validation_report.

        Checks required columns, numeric values and the references between tables.
        """
        self.logger.info("Validating Input Data...")
        report = DataReport("input data")
        for data in ["nodes", "lines", "dclines", "plants"]:
            table = getattr(self, data)
            if data in ["nodes", "plants"] or len(table) > 0:
                required = [col for col in self._columns(data)
                            if self.model_structure[data][col].get("required", False)]
                validate_required_columns(report, table, required, data)

        for data, column in [("lines", "capacity"), ("dclines", "capacity"), ("plants", "g_max")]:
            if len(getattr(self, data)) > 0:
                validate_numeric_column(report, getattr(self, data), column, data, allow_negative=False)

        if len(self.nodes) == 0:
            report.add_error("missing_data", "No nodes in input data", "nodes")
        node_set = set(self.nodes.index)
        if "node" in self.plants.columns:
            for plant, node in self.plants.node.items():
                if node not in node_set:
                    report.add_error("invalid_reference", f"Plant {plant} references non-existent node {node}",
                                     "plants")
        if len(self.demand_el) > 0:
            unknown = sorted(set(self.demand_el.node) - node_set, key=str)
            if unknown:
                report.add_warning("invalid_reference",
                                   f"Demand defined for non-existent nodes {', '.join(map(str, unknown))}",
                                   "demand_el")
        if len(self.zones) > 0 and "zone" in self.nodes.columns:
            unknown = sorted(set(self.nodes.zone.dropna()) - set(self.zones.index), key=str)
            if unknown:
                report.add_error("invalid_reference",
                                 f"Nodes reference non-existent zones {', '.join(map(str, unknown))}", "nodes")

        self.data_validation_report = report
        if report.has_errors():
            self.logger.error("Data validation completed with errors. See the .data_validation_report.")
        elif report.has_warnings():
            self.logger.warning("Data validation completed with warnings. See the .data_validation_report.")
        else:
            self.logger.info("Data validation completed with no issues.")

    def validate_modeldata(self):
        """Make the data conform with the model structure.

        Tables not in the data are initialized empty, columns not in a table are added with
        their default value and missing values are replaced by default values. This allows
        to load data sets that only cover a subset of the model structure, e.g. data saved
        before a column was added to the model.
        """
        self.model_validation_report = {"empty": [], "default_values": {}}
        for data in self.model_structure:
            table = getattr(self, data)
            cols = self._columns(data)
            if len(table) == 0:
                setattr(self, data, self._empty_table(data))
                self.model_validation_report["empty"].append(data)
                continue

            self.model_validation_report["default_values"][data] = {}
            table = table.copy()
            for attr in [col for col in cols if col not in table.columns]:
                default_value = self.model_structure[data][attr]["default"]
                table[attr] = default_value
                self.model_validation_report["default_values"][data][attr] = default_value

            for attr in cols:
                default_value = self.model_structure[data][attr]["default"]
                if table[attr].isna().any() and not pd.isna(default_value):
                    table[attr] = table[attr].where(table[attr].notna(), default_value)
                    self.model_validation_report["default_values"][data][attr] = default_value
            setattr(self, data, table)

        if len(self.model_validation_report["empty"]) > 0:
            self.logger.info("Some data was initialized empty. See model_validation_report.")
        self.model_validation_report["default_values"] = tools.remove_empty_subdicts(
            self.model_validation_report["default_values"])
        if len(self.model_validation_report["default_values"]) > 0:
            self.logger.warning("Some data missing or contained NaNs. See model_validation_report.")

    def plant_sets(self):
        """Classify plants by the plant types defined in the options.

        Returns
        -------
        sets : dict(str, list)
            *disp* dispatchable, *ndisp* non-dispatchable, *es* storage, *prs* prosumer
            and *prs_storage* prosumers with storage.
        """
        plant_types = self.options["plant_types"]
        plant_type = self.plants.plant_type
        es = plant_type.isin(plant_types["es"])
        ndisp = plant_type.isin(plant_types["ndisp"]) & ~es
        prs = plant_type.isin(plant_types["prs"]) & ~es & ~ndisp
        prs_storage = prs & (self.plants.storage_capacity.astype(float) > 0)
        return {"disp": list(self.plants.index[~(es | ndisp | prs)]),
                "ndisp": list(self.plants.index[ndisp]),
                "es": list(self.plants.index[es]),
                "prs": list(self.plants.index[prs]),
                "prs_storage": list(self.plants.index[prs_storage])}

    def timeseries_frame(self, data, key, value, timesteps, columns, default=0):
        """Return a timeseries table as timestep x key DataFrame.

        Parameters
        ----------
        data : str
            Name of the long format table, e.g. availability.
        key : str
            Column of the entity, e.g. plant.
        value : str
            Column of the values.
        timesteps : list(int)
            Index of the returned frame.
        columns : list
            Columns of the returned frame.
        default : float, optional
            Value for entries not in the table.
        """
        frame = pd.DataFrame(float(default), index=pd.Index(timesteps), columns=pd.Index(columns))
        table = getattr(self, data)
        if len(table) > 0 and len(columns) > 0:
            condition = table.timestep.isin(timesteps) & table[key].isin(columns)
            if condition.any():
                tmp = table[condition].pivot_table(index="timestep", columns=key, values=value, aggfunc="sum")
                frame.update(tmp.astype(float))
        return frame

    def fuel_price_frame(self, timesteps, fuels):
        """Fuel prices as timestep x fuel DataFrame.

        Prices in the fuel_prices table take precedence over the static fuel_price of the
        plant_types table. The CO2 price is the fuel *co2*. Fuels without price are NaN.
        """
        fuels = list(dict.fromkeys(fuels))
        static = self.plant_types.fuel_price.astype(float).reindex(fuels)
        prices = self.timeseries_frame("fuel_prices", "fuel", "fuel_price", timesteps, fuels, default=np.nan)
        return prices.fillna(static)

    def marginal_cost(self, timesteps):
        """Marginal cost of all plants as timestep x plant DataFrame.

        Plants without mc_el are costed from the fuel price of their plant type, the CO2
        price and the CO2 content of the plant type:

            mc = (fuel_price + co2_price * co2_content) / eta

        Missing prices count as zero, see :meth:`check_marginal_cost`.
        """
        plants = self.plants
        timesteps = pd.Index(timesteps)
        given = plants.mc_el.astype(float)
        mc = pd.DataFrame(np.tile(given.values, (len(timesteps), 1)), index=timesteps, columns=plants.index)

        derived = list(plants.index[given.isna()])
        if not derived:
            return mc
        plant_types = list(pd.unique(plants.loc[derived, "plant_type"]))
        prices = self.fuel_price_frame(timesteps, plant_types + [CO2]).fillna(0)
        co2_content = self.plant_types.co2_content.astype(float).reindex(plant_types).fillna(0)
        for plant in derived:
            plant_type, eta = plants.plant_type[plant], float(plants.eta[plant])
            mc[plant] = (prices[plant_type] + prices[CO2]*co2_content[plant_type])/eta
        return mc

    def check_marginal_cost(self):
        """Add a warning for plants with neither mc_el nor a fuel price of their plant type."""
        if len(self.plants) == 0:
            return
        derived = self.plants[self.plants.mc_el.isna()]
        priced = set(self.plant_types.index[self.plant_types.fuel_price.notna()])
        if len(self.fuel_prices) > 0:
            priced |= set(self.fuel_prices.fuel)
        unpriced = [p for p, plant_type in derived.plant_type.items() if plant_type not in priced]
        if unpriced:
            self.data_validation_report.add_warning(
                "missing_data", f"No marginal cost or fuel price for plants {', '.join(map(str, unpriced))}, "
                                "their marginal cost is 0", "plants")
            self.logger.warning("%d plants without marginal cost or fuel price.", len(unpriced))

    def _planttype_profile(self, data, unit, timesteps):
        """Availability by plant type and node/zone as timestep x (plant_type, unit) DataFrame."""
        table = getattr(self, data)
        if len(table) == 0:
            return pd.DataFrame(index=pd.Index(timesteps))
        table = table[table.timestep.isin(timesteps)]
        if len(table) == 0:
            return pd.DataFrame(index=pd.Index(timesteps))
        profile = table.pivot_table(index="timestep", columns=["plant_type", unit],
                                    values="availability", aggfunc="mean")
        return profile.reindex(pd.Index(timesteps)).astype(float)

    def availability_frame(self, timesteps):
        """Availability of all plants as timestep x plant DataFrame.

        Plants listed in the availability table use their own profile. Other plants use the
        profile of their plant type at their node, then the one in their zone. Without any
        profile, or for timesteps the profile does not cover, the availability is 1.
        """
        plants = self.plants
        frame = self.timeseries_frame("availability", "plant", "availability", timesteps, plants.index,
                                      default=np.nan)
        listed = set(self.availability.plant) if len(self.availability) > 0 else set()
        fallback = [p for p in plants.index if p not in listed]
        if fallback:
            nodal = self._planttype_profile("availability_planttype_nodal", "node", timesteps)
            zonal = self._planttype_profile("availability_planttype_zonal", "zone", timesteps)
            for plant in fallback:
                plant_type, node = plants.plant_type[plant], plants.node[plant]
                zone = self.nodes.zone.get(node)
                if (plant_type, node) in nodal.columns:
                    frame[plant] = nodal[(plant_type, node)].values
                elif (plant_type, zone) in zonal.columns:
                    frame[plant] = zonal[(plant_type, zone)].values
        return frame.fillna(1)

    def process_results(self, result_folder):
        """Initialize :class:`~pomatwo.data.Results` with `result_folder` and attach it."""
        result = Results(self, result_folder)
        self.results[result.name] = result
        return result
