import numpy as np


class MLRegError(Exception):
    """Base class for estimation errors raised by mlreg"""


class InvalidArgumentError(MLRegError, ValueError):
    """Argument outside its valid domain (e.g. non-positive sample size)"""


class DegenerateInputError(MLRegError, ValueError):
    """Too few observations relative to the number of parameters"""


class SingularMatrixError(MLRegError, np.linalg.LinAlgError):
    """Normal-equations or Hessian matrix is not invertible"""


class OptimizationFailure(MLRegError, RuntimeError):
    """
    The likelihood maximizer did not reach an optimal status.

    Attributes
    ----------
    status : SolverStatus
        Status reported by (or inferred from) the solver.
    """

    def __init__(self, status, message: str | None = None) -> None:
        self.status = status
        if message is None:
            message = f"Likelihood maximization failed with status '{status.value}'"
        super().__init__(message)
