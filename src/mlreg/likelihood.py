import importlib.util
import numpy as np

from dataclasses import dataclass
from numpy.typing import NDArray
from typing import Callable, Literal

LOG_2PI = np.log(2.0 * np.pi)

NUMBA_AVAILABLE = importlib.util.find_spec("numba") is not None


def log_likelihood(
    params: NDArray[np.float64],
    X: NDArray[np.float64],
    y: NDArray[np.float64],
) -> float:
    """
    Log-likelihood of the linear-normal model.

    l(β, σ) = -(n/2) log(2π) - n log σ - Σ (yᵢ - xᵢβ)² / (2σ²)

    `params` is the coefficient vector followed by σ. σ is not clamped; a
    non-positive σ gives a non-finite value.
    """
    beta = params[:-1]
    sigma = params[-1]
    n = X.shape[0]
    resid = y - X @ beta
    ssr = resid @ resid
    with np.errstate(divide="ignore", invalid="ignore"):
        return float(-0.5 * n * LOG_2PI - n * np.log(sigma) - ssr / (2.0 * sigma**2))


@dataclass
class NormalQuantities:
    """Quantities needed for one solver iteration"""

    loglik: float
    score: NDArray[np.float64]  # (n_params + 1,) gradient of loglik
    hessian: NDArray[np.float64]  # (n_params + 1, n_params + 1) observed Hessian
    fisher_info: NDArray[
        np.float64
    ]  # (n_params + 1, n_params + 1) blockdiag(X'X/σ², 2n/σ²)


def compute_normal_quantities(
    params: NDArray[np.float64],
    X: NDArray[np.float64],
    y: NDArray[np.float64],
) -> NormalQuantities:
    """Compute loglik, score, observed Hessian and expected information."""
    beta = params[:-1]
    sigma = params[-1]
    n, k = X.shape

    resid = y - X @ beta
    ssr = resid @ resid
    xtx = X.T @ X
    xtr = X.T @ resid

    with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
        s2 = sigma**2
        loglik = -0.5 * n * LOG_2PI - n * np.log(sigma) - ssr / (2.0 * s2)

        score = np.empty(k + 1, dtype=np.float64)
        score[:k] = xtr / s2
        score[k] = -n / sigma + ssr / (s2 * sigma)

        hessian = np.empty((k + 1, k + 1), dtype=np.float64)
        hessian[:k, :k] = -xtx / s2
        cross = -2.0 * xtr / (s2 * sigma)
        hessian[:k, k] = cross
        hessian[k, :k] = cross
        hessian[k, k] = n / s2 - 3.0 * ssr / (s2 * s2)

        # expected information: the cross term has zero expectation
        fisher_info = np.zeros((k + 1, k + 1), dtype=np.float64)
        fisher_info[:k, :k] = xtx / s2
        fisher_info[k, k] = 2.0 * n / s2

    return NormalQuantities(
        loglik=float(loglik),
        score=score,
        hessian=hessian,
        fisher_info=fisher_info,
    )


def _compute_normal_quantities_numba(
    params: NDArray[np.float64],
    X: NDArray[np.float64],
    y: NDArray[np.float64],
) -> NormalQuantities:
    from mlreg._numba.likelihood import compute_normal_quantities as kernel

    n, k = X.shape
    # fresh buffers per call so concurrent evaluations never share state
    workspace = (
        np.empty(n, dtype=np.float64),
        np.empty(k + 1, dtype=np.float64),
        np.empty((k + 1, k + 1), dtype=np.float64),
        np.empty((k + 1, k + 1), dtype=np.float64),
    )
    params = np.ascontiguousarray(params, dtype=np.float64)
    loglik = kernel(X, y, params, workspace)
    _, score, hessian, fisher_info = workspace
    return NormalQuantities(
        loglik=float(loglik),
        score=score,
        hessian=hessian,
        fisher_info=fisher_info,
    )


def resolve_backend(backend: Literal["auto", "numpy", "numba"]) -> str:
    """Map 'auto' to an installed backend and validate explicit choices."""
    if backend == "auto":
        return "numba" if NUMBA_AVAILABLE else "numpy"
    if backend == "numba" and not NUMBA_AVAILABLE:
        raise ImportError("backend='numba' requires numba to be installed")
    if backend not in ("numpy", "numba"):
        raise ValueError(
            f"backend must be 'auto', 'numpy' or 'numba', got '{backend}'"
        )
    return backend


def get_quantities_function(
    backend: Literal["auto", "numpy", "numba"] = "auto",
) -> Callable[[NDArray, NDArray, NDArray], NormalQuantities]:
    """Return `f(params, X, y) -> NormalQuantities` for the given backend."""
    if resolve_backend(backend) == "numba":
        return _compute_normal_quantities_numba
    return compute_normal_quantities
