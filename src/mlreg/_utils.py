import numpy as np

from dataclasses import dataclass, field
from enum import Enum
from numpy.typing import ArrayLike, NDArray
from typing import Literal

from mlreg._exceptions import InvalidArgumentError


class SolverStatus(Enum):
    """Termination status of a likelihood maximization"""

    OPTIMAL = "optimal"
    LOCALLY_OPTIMAL = "locally_optimal"
    INFEASIBLE = "infeasible"
    UNBOUNDED = "unbounded"
    ITERATION_LIMIT = "iteration_limit"
    NUMERICAL_ERROR = "numerical_error"
    INVALID_PROBLEM = "invalid_problem"

    @property
    def converged(self) -> bool:
        return self in (SolverStatus.OPTIMAL, SolverStatus.LOCALLY_OPTIMAL)


@dataclass
class SolverResult:
    """Output from a solver backend"""

    x: NDArray[np.float64]  # (n_free,) optimal free parameters
    loglik: float  # objective at x
    n_iter: int  # number of iterations
    status: SolverStatus


@dataclass(frozen=True)
class OptimizationResult:
    """
    Result of maximizing the linear-normal log-likelihood.

    `hessian` is the Hessian of the Lagrangian with respect to all declared
    parameters, in the maximization sense (negative definite at a maximum).
    With no fixed parameters it is the Hessian of the log-likelihood itself,
    and `hessian_kind` is "objective". Otherwise it is "lagrangian", and
    standard errors should be computed over the free parameters only.
    """

    params: NDArray[np.float64]  # (n_params + 1,) coefficients followed by scale
    loglik: float
    hessian: NDArray[np.float64]  # (n_params + 1, n_params + 1)
    hessian_kind: Literal["objective", "lagrangian"]
    status: SolverStatus
    n_iter: int
    solver: str
    free: NDArray[np.bool_]  # (n_params + 1,) True where the parameter is free
    multipliers: dict[int, float] = field(default_factory=dict)

    @property
    def coef(self) -> NDArray[np.float64]:
        return self.params[:-1]

    @property
    def scale(self) -> float:
        return float(self.params[-1])

    @property
    def converged(self) -> bool:
        return self.status.converged


@dataclass(frozen=True)
class ParameterEstimate:
    """Coefficient and scale estimates with their standard errors"""

    method: Literal["ols", "ml"]
    coef: NDArray[np.float64]  # (n_params,)
    scale: float
    bse: NDArray[np.float64]  # (n_params + 1,) coefficient SEs then scale SE
    loglik: float  # Gaussian log-likelihood at (coef, scale)

    @property
    def params(self) -> NDArray[np.float64]:
        return np.append(self.coef, self.scale)

    @property
    def coef_bse(self) -> NDArray[np.float64]:
        return self.bse[:-1]

    @property
    def scale_bse(self) -> float:
        return float(self.bse[-1])


def as_design(
    X: ArrayLike, y: ArrayLike
) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
    """Coerce X and y to float64 arrays and check that their shapes agree."""
    X = np.asarray(X, dtype=np.float64)
    y = np.asarray(y, dtype=np.float64)
    if X.ndim != 2:
        raise InvalidArgumentError(f"X must be 2-dimensional, got {X.ndim} dimensions")
    if y.ndim != 1:
        raise InvalidArgumentError(f"y must be 1-dimensional, got {y.ndim} dimensions")
    if X.shape[0] != y.shape[0]:
        raise InvalidArgumentError(
            f"X and y have inconsistent numbers of samples: {X.shape[0]} != {y.shape[0]}"
        )
    return X, y


def format_number(x: float, width: int = 10, decimals: int = 4) -> str:
    """Right-aligned fixed-point text; scientific for very small or large |x|."""
    if np.isnan(x):
        return f"{'NaN':>{width}}"
    if x != 0 and (abs(x) < 10.0**-decimals or abs(x) >= 1e6):
        return f"{x:{width}.{decimals - 1}e}"
    return f"{x:{width}.{decimals}f}"
