"""
Exception hierarchy for the data-quality pipeline.

Every error is a structural/input problem (never transient), so nothing is
retried. A stage either completes or raises one of these.
"""


class DataQualityError(ValueError):
    """Base class for all pipeline errors."""


class EmptyDatasetError(DataQualityError):
    """A percentage or statistic was requested over zero rows."""

    def __init__(self, dataset: str, detail: str = ""):
        self.dataset = dataset
        msg = f"{dataset}: no rows to evaluate"
        if detail:
            msg = f"{msg} ({detail})"
        super().__init__(msg)


class MissingColumnError(DataQualityError):
    """A referenced column is absent from the dataset schema."""

    def __init__(self, dataset: str, missing, available=None):
        self.dataset = dataset
        self.missing = list(missing)
        msg = f"{dataset}: missing columns {self.missing}"
        if available is not None:
            msg = f"{msg}; available: {list(available)}"
        super().__init__(msg)


class InvalidKeyError(MissingColumnError):
    """A composite key references a column not present in the dataset."""


class ColumnTypeError(DataQualityError):
    """A numeric operation was requested on a non-numeric column."""


class UnknownDatasetError(DataQualityError):
    """A rule references a dataset that was not supplied."""


class DegenerateDistributionError(DataQualityError):
    """
    The interquartile range is zero.

    Recoverable: the capper only raises this when asked to be strict,
    otherwise the bounds collapse onto q1 and a warning is logged.
    """
