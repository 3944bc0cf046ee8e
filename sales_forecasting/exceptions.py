"""
Exceptions
==========

Error kinds raised by the forecasting pipeline.

Every error derives from ``SalesForecastError`` and from the builtin the
rest of the pipeline historically raised for the same condition, so callers
catching ``ValueError`` or ``FileNotFoundError`` keep working.
"""


class SalesForecastError(Exception):
    """Base class for all pipeline errors."""


class IngestionError(SalesForecastError, ValueError):
    """Source data is missing, malformed or incomplete."""


class FitError(SalesForecastError, RuntimeError):
    """Training failed (invalid hyperparameters, non-finite data, ...)."""


class ArtifactNotFound(SalesForecastError, FileNotFoundError):
    """No model artifact exists at the requested path."""


class ArtifactCorrupt(SalesForecastError, ValueError):
    """The artifact could not be parsed into a fitted pipeline."""
