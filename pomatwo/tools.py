"""Collection of tools potentially used by multiple components of POMATWO.

This collection is characterized by a certain degree of generality and they cannot be
attributed to a specified component of pomatwo.
"""

import collections
import copy
import operator
from functools import reduce

from pomatwo.exceptions import ConfigurationError

TimeHorizon = collections.namedtuple("TimeHorizon", ["start", "stop", "split", "offset"],
                                     defaults=[1, 8760, 24, 0])


def create_folder_structure(base_path, logger=None):
    """Create folder structure to run POMATWO.

    Parameters
    ----------
    base_path : pathlib.Path
        POMATWO working directory.
    logger : logger, optional
        If a logger is supplied the status messages will be logged there.
    """
    folder_structure = ["data_input", "data_output", "data_temp", "logs", "profiles"]
    if logger:
        logger.info("Creating Folder Structure")
    for folder in folder_structure:
        if not base_path.joinpath(folder).is_dir():
            if logger:
                logger.info("creating folder %s", folder)
            base_path.joinpath(folder).mkdir(parents=True)


def default_options():
    """Returns the default options of POMATWO."""
    options = {
        "title": "default",
        "abort_on_failure": False,
        "market": {
            "scope": "zonal",
            "formulation": "phase_angle",
            "exchange": "ntc"},
        "redispatch": {
            "include": False,
            "formulation": "phase_angle",
            "cost": 150,
            "curtailment_cost": 1E3},
        "prosumer": {
            "include": False,
            "sell_price": 0,
            "buy_price": 0,
            "retail_type": "buy_price",
            "grid_fee": 250,
            "storage_cost": 10,
            "storage_retention": 0.999},
        "timeseries": {
            "start": 1,
            "stop": 24,
            "split": 24,
            "offset": 0,
            "workers": 1},
        "curtailment": {
            "cost": 50},
        "storages": {
            "chunk_boundary": "cyclic",
            "storage_start": 0.65},
        "infeasibility": {
            "electricity": {
                "cost": 1E3},
            "storage": {
                "cost": 1E4},
            "lines": {
                "cost": 1E3},
            "generation": {
                "cost": 1E3}},
        "plant_types": {
            "es": [],
            "ndisp": [],
            "prs": []},
        "grid": {
            "gsk": "gmax",
            "normalize_empty": "flat",
            "exclude_self": True,
            "capacity_multiplier": 1,
            "default_ntc": 1E5},
        "solver": {
            "name": "appsi_highs",
            "time_limit": None,
            "options": {}},
        "results": {
            "format": "feather"},
    }
    return options


def add_default_values_to_dict(value_dict, default_dict):
    """Combines values from user dict with default values from default_dict.

    Parameters
    ----------
    value_dict : dict
        Dict with values.
    default_dict : dict
        Dict containing default values that are added if not present in value_dict.

    Raises
    ------
    ValueError
        If a key of value_dict does not exist in default_dict. Keys below an empty
        default dict (e.g. solver options) are free-form.
    """
    reference = copy.deepcopy(default_dict)
    for path in _dict_generator(value_dict):
        try:
            parent = _getFromDict(reference, path[:-1])
        except (KeyError, TypeError):
            raise ValueError(".".join(path) + " is not a valid option")
        if not isinstance(parent, dict) or (path[-1] not in parent and parent):
            raise ValueError(".".join(path) + " is not a valid option")
        _setInDict(default_dict, path, _getFromDict(value_dict, path))
    return default_dict


def add_default_options(input_options):
    """Takes the loaded option dict and adds missing values from default options.

    Parameters
    ----------
    input_options : dict
        Optionfile from user input.
    """
    return add_default_values_to_dict(input_options, default_options())


def _dict_generator(indict, pre=None):
    """Flatten Option Dict into lists of keys."""
    pre = pre[:] if pre else []
    for key, value in indict.items():
        if isinstance(value, dict) and value:
            for d in _dict_generator(value, pre + [key]):
                yield d
        else:
            yield pre + [key]


def _getFromDict(dataDict, mapList):
    return reduce(operator.getitem, mapList, dataDict)


def _setInDict(dataDict, mapList, value):
    _getFromDict(dataDict, mapList[:-1])[mapList[-1]] = value


def remove_empty_subdicts(old_dict):
    """Removing all empty subdicts.

    A dictionary is empty when values are empty string, None, {} or [].
    """
    new_dict = {}
    for key, value in old_dict.items():
        if isinstance(value, dict):
            value = remove_empty_subdicts(value)
        if value not in ('', None, {}, []):
            new_dict[key] = value
    return new_dict


def time_horizon_from_options(options):
    """Return the :obj:`TimeHorizon` defined in the timeseries options."""
    timeseries = options["timeseries"]
    return TimeHorizon(start=int(timeseries["start"]), stop=int(timeseries["stop"]),
                       split=int(timeseries["split"]), offset=int(timeseries["offset"]))


def split_time_horizon(time_horizon):
    """Split the model horizon into chunks that are solved independently.

    The horizon [start, stop] is cut into chunks of length *split*. A positive *offset*
    shortens the first chunk to *offset* periods, all following chunks start at
    start + offset. The last chunk can be shorter than *split*.

    Parameters
    ----------
    time_horizon : TimeHorizon
        start, stop (inclusive), split and offset.

    Returns
    -------
    chunks : list(list(int))
        Timesteps of each chunk.
    """
    start, stop, split, offset = time_horizon
    if split < 1:
        raise ConfigurationError(f"Split has to be a positive integer, got {split}")
    if stop < start:
        raise ConfigurationError(f"Stop ({stop}) has to be greater or equal to start ({start})")
    if offset < 0:
        raise ConfigurationError("First split must be greater than or equal to start")

    chunks = []
    chunk_start = start
    if offset > 0:
        chunk_end = min(start + offset - 1, stop)
        chunks.append(list(range(start, chunk_end + 1)))
        chunk_start = chunk_end + 1
    for t in range(chunk_start, stop + 1, split):
        chunks.append(list(range(t, min(t + split - 1, stop) + 1)))
    return chunks


def prev_period(timesteps, t):
    """Return the period before t, the first period wraps to the last period of timesteps."""
    idx = timesteps.index(t)
    return timesteps[idx - 1]


def zbase(voltage):
    """Base impedance for a voltage level in kV and a base power of 500 MVA."""
    return (voltage*1e3)**2 / 500e6
