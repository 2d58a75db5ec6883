"""Exception types raised by the subset-selection GA."""


class InvalidArgument(ValueError):
    """Malformed configuration or input data. Raised before any generation runs."""


class DegenerateModel(RuntimeError):
    """A predictor subset that cannot be fitted (empty subset, singular design, failed fit).

    The fitness evaluator turns this into the worst possible fitness instead of
    aborting the search.
    """


class WorkerFailure(RuntimeError):
    """A parallel fitness evaluation task failed; the whole search is aborted."""
