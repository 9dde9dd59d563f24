"""Data Management of POMATWO which interfaces all components.

This module is divided into one main and three sub-modules:
    * :obj:`~pomatwo.data.DataManagement` : The main hub for the data. An
      instance of this class is attached to the POMATWO main module to provide
      access to all relevant data. It manages the read in of raw data, validates it
      and fills it up to the model structure.

This is done with the help of the sub-modules:
    - :obj:`~pomatwo.data.DataReport` : Collects notes, warnings and errors found while
      validating data, so that all issues are visible at once.
    - :obj:`~pomatwo.data.ResultWriter` : Writes the result tables of each chunk and stage
      of the market model.
    - :obj:`~pomatwo.data.Results` : Reads a result folder back and provides the
      concatenated result tables.

"""
from pomatwo.data.report import DataReport
from pomatwo.data.results import Results, ResultWriter, RESULT_COLUMNS
from pomatwo.data.data import DataManagement
