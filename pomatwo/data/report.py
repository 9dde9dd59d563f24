"""Diagnostic report collecting notes, warnings and errors.

Validation steps do not raise on the first issue they find. Instead every issue is added
to a :class:`DataReport` so that all problems of a data set are visible at once. The
caller decides, based on :meth:`DataReport.has_errors`, whether to continue.
"""
import collections
import logging

import pandas as pd

NOTE = "NOTE"
WARNING = "WARNING"
ERROR = "ERROR"

DataReportItem = collections.namedtuple("DataReportItem", ["level", "category", "message", "location"])


class DataReport():
    """Collection of :class:`DataReportItem`.

    Parameters
    ----------
    name : str, optional
        Name of the report, used when the report is logged.

    Attributes
    ----------
    items : list(DataReportItem)
        All items in the order they were added.
    """
    def __init__(self, name="data"):
        self.logger = logging.getLogger('log.pomatwo.data.DataReport')
        self.name = name
        self.items = []

    def __len__(self):
        return len(self.items)

    def _add(self, level, category, message, location=""):
        self.items.append(DataReportItem(level, category, message, location))

    def add_note(self, category, message, location=""):
        self._add(NOTE, category, message, location)

    def add_warning(self, category, message, location=""):
        self._add(WARNING, category, message, location)

    def add_error(self, category, message, location=""):
        self._add(ERROR, category, message, location)

    def get_notes(self):
        return [item for item in self.items if item.level == NOTE]

    def get_warnings(self):
        return [item for item in self.items if item.level == WARNING]

    def get_errors(self):
        return [item for item in self.items if item.level == ERROR]

    def has_errors(self):
        return any(item.level == ERROR for item in self.items)

    def has_warnings(self):
        return any(item.level == WARNING for item in self.items)

    def extend(self, other):
        """Append all items of another report."""
        self.items.extend(other.items)

    def summary(self):
        """Return number of items per level."""
        return {NOTE: len(self.get_notes()),
                WARNING: len(self.get_warnings()),
                ERROR: len(self.get_errors())}

    def to_frame(self):
        """Return the report as DataFrame with one row per item."""
        return pd.DataFrame(self.items, columns=DataReportItem._fields)

    def log(self, show_notes=False):
        """Write the report to the logger, errors and warnings always, notes optionally."""
        for item in self.items:
            location = f" ({item.location})" if item.location else ""
            if item.level == ERROR:
                self.logger.error("[%s] %s%s", item.category, item.message, location)
            elif item.level == WARNING:
                self.logger.warning("[%s] %s%s", item.category, item.message, location)
            elif show_notes:
                self.logger.info("[%s] %s%s", item.category, item.message, location)
        summary = self.summary()
        self.logger.info("%s report: %d errors, %d warnings, %d notes", self.name,
                         summary[ERROR], summary[WARNING], summary[NOTE])


def validate_required_columns(report, df, columns, name):
    """Add an error for every column of *columns* missing in *df*.

    Returns True if all columns are present.
    """
    missing = [col for col in columns if col not in df.columns]
    for col in missing:
        report.add_error("missing_data", f"Required column {col} missing", name)
    return not missing


def validate_numeric_column(report, df, column, name, allow_negative=True):
    """Check that a column is numeric, contains no NaN and optionally is non-negative."""
    if column not in df.columns:
        return False
    values = pd.to_numeric(df[column], errors="coerce")
    valid = True
    if values.isna().any():
        invalid = list(df.index[values.isna()])
        report.add_error("invalid_data",
                         f"Column {column} contains {len(invalid)} non-numeric or missing values",
                         f"{name}: {', '.join(str(i) for i in invalid[:10])}")
        valid = False
    if not allow_negative and (values < 0).any():
        negative = list(df.index[values < 0])
        report.add_error("invalid_data",
                         f"Column {column} contains {len(negative)} negative values",
                         f"{name}: {', '.join(str(i) for i in negative[:10])}")
        valid = False
    return valid
