"""Exceptions raised by POMATWO.

Recoverable issues are collected in a :class:`~pomatwo.data.DataReport`, the exceptions
below are reserved for conditions which stop the model run.
"""


class TopologyError(ValueError):
    """The network topology contains errors and no PTDF can be calculated.

    The full diagnostic report is attached as *report*.
    """
    def __init__(self, message, report=None):
        super().__init__(message)
        self.report = report


class PTDFError(ArithmeticError):
    """The (reduced) nodal susceptance matrix could not be inverted."""


class ConfigurationError(ValueError):
    """Invalid options or market setup, raised before any model is solved."""


class SolverError(RuntimeError):
    """The solver is not available, or a market stage did not terminate optimal and the run
    is configured to abort.
    """
