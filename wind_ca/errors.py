"""
Exception hierarchy for wind_ca.

Every error raised on purpose by the package derives from WindCAError so
callers (and the CLI) can catch simulator failures in one place.
"""


class WindCAError(Exception):
    """Base class for all wind_ca errors."""


class ConfigurationError(WindCAError, ValueError):
    """Invalid run parameters, rejected before any simulation work starts."""


class DataNotFound(WindCAError, LookupError):
    """No wind data backs the requested cycle, forecast offset or level."""


class ShapeMismatch(WindCAError, ValueError):
    """Two grids combined in one computation differ in shape or georeference."""


class OutOfBoundsStep(WindCAError, IndexError):
    """A cell displacement would leave the grid.

    Raised by step_within. sample_bearing catches it and drops the
    offending neighbour, so it never escapes a run.
    """
