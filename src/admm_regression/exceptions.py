"""Exceptions and warnings raised by the ADMM solvers."""


class InvalidConfiguration(ValueError):
    """Raised when a problem or its options are malformed.

    Raised before any iteration runs, so no partial work is performed.
    """


class NumericalFailure(ArithmeticError):
    """Raised when a factorization cannot be repaired or an iterate is not finite.

    The iterator catches it and reports ``SolverStatus.NUMERICAL_FAILURE`` in
    the returned solution instead of propagating it.
    """


class NumericalDegradationWarning(UserWarning):
    """Emitted when a ridge term had to be added to factor a linear system."""
