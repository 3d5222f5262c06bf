# exceptions.py


class DegenerateConfigurationError(ValueError):
    """
    Raised when correspondences do not determine a unique transform, e.g.
    too few points, collinear points, parallel rays or zero spread.
    """


class ConvergenceWarning(UserWarning):
    """Issued when an iterative estimate stops at its iteration cap."""
