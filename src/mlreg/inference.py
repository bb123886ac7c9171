import numpy as np
import scipy
import warnings

from dataclasses import dataclass
from numpy.typing import ArrayLike, NDArray
from typing import Sequence

from mlreg._exceptions import SingularMatrixError
from mlreg._utils import ParameterEstimate, format_number
from mlreg.simulate import TrueParameters


def covariance_from_hessian(
    H: ArrayLike, free: ArrayLike | None = None
) -> NDArray[np.float64]:
    """
    Covariance matrix H⁻¹ of the free parameters.

    Parameters
    ----------
    H : array-like of shape (p, p)
        Hessian of the negated log-likelihood at the optimum (flip the sign of
        a maximization Hessian before calling).
    free : array-like of bool, shape (p,), default=None
        Parameters to invert over. None means all of them. Rows and columns of
        the remaining parameters are NaN in the output.

    Returns
    -------
    ndarray, shape (p, p)

    Raises
    ------
    SingularMatrixError
        If the free block of H is not positive definite.
    """
    H = np.asarray(H, dtype=np.float64)
    if H.ndim != 2 or H.shape[0] != H.shape[1]:
        raise ValueError(f"H must be a square matrix, got shape {H.shape}")
    p = H.shape[0]
    free = np.ones(p, dtype=bool) if free is None else np.asarray(free, dtype=bool)
    if free.shape != (p,):
        raise ValueError(f"free must have shape ({p},), got {free.shape}")

    idx = np.flatnonzero(free)
    block = H[np.ix_(idx, idx)]
    block = 0.5 * (block + block.T)
    if not np.all(np.isfinite(block)):
        raise SingularMatrixError("Hessian contains non-finite entries")
    try:
        cho = scipy.linalg.cho_factor(block)
    except scipy.linalg.LinAlgError:
        raise SingularMatrixError(
            "Negative Hessian is not positive definite; covariance is undefined"
        ) from None

    cov = np.full((p, p), np.nan)
    cov[np.ix_(idx, idx)] = scipy.linalg.cho_solve(cho, np.eye(len(idx)))
    return cov


def standard_errors_from_hessian(
    H: ArrayLike,
    free: ArrayLike | None = None,
    hessian_kind: str = "objective",
) -> NDArray[np.float64]:
    """
    Standard errors sqrt(diag(H⁻¹)) from the Hessian of the negated
    log-likelihood. Entries outside `free` are NaN.

    Pass `hessian_kind="lagrangian"` for a Hessian taken from a constrained
    optimum (see `OptimizationResult.hessian_kind`); inverting it over all
    parameters, constrained ones included, then warns.
    """
    if hessian_kind == "lagrangian" and free is None:
        warnings.warn(
            "Inverting a Lagrangian Hessian over all parameters; standard errors "
            "of constrained parameters are not meaningful. Pass `free` to "
            "restrict inference to the free parameters.",
            UserWarning,
            stacklevel=2,
        )
    cov = covariance_from_hessian(H, free=free)
    return np.sqrt(np.diag(cov))


@dataclass(frozen=True)
class ComparisonRow:
    """One parameter of a side-by-side ML vs. OLS comparison"""

    name: str
    ml: float
    ols: float
    true: float
    ml_bse: float
    ols_bse: float


class ComparisonTable:
    """
    ML and OLS estimates next to the true parameters.

    Iterating yields `ComparisonRow`s: one per coefficient, then "sigma".
    """

    def __init__(
        self,
        rows: Sequence[ComparisonRow],
        ml_loglik: float,
        ols_loglik: float,
    ) -> None:
        self.rows = list(rows)
        self.ml_loglik = ml_loglik
        self.ols_loglik = ols_loglik

    def __iter__(self):
        return iter(self.rows)

    def __len__(self) -> int:
        return len(self.rows)

    def __getitem__(self, i: int) -> ComparisonRow:
        return self.rows[i]

    def __str__(self) -> str:
        return self.summary()

    def summary(self, decimals: int = 4) -> str:
        """Fixed-width text table of the comparison."""
        width = 78

        def fmtval(x: float) -> str:
            return format_number(x, width=10, decimals=decimals)

        lines: list[str] = []
        lines.append("Maximum Likelihood vs. Ordinary Least Squares".center(width))
        lines.append("=" * width)
        hdr = (
            f"{'':>12} {'ML':>10} {'OLS':>10} {'true':>10} "
            f"{'ML se':>10} {'OLS se':>10}"
        )
        lines.append(hdr)
        lines.append("-" * width)
        for row in self.rows:
            name = row.name[:12] if len(row.name) > 12 else row.name
            lines.append(
                f"{name:>12} "
                f"{fmtval(row.ml)} "
                f"{fmtval(row.ols)} "
                f"{fmtval(row.true)} "
                f"{fmtval(row.ml_bse)} "
                f"{fmtval(row.ols_bse)}"
            )
        lines.append("=" * width)
        lines.append(
            f"Log-Likelihood: ML {self.ml_loglik:.3f} | OLS {self.ols_loglik:.3f}"
        )
        return "\n".join(lines)

    def to_frame(self):
        """Return the comparison as a pandas DataFrame indexed by name."""
        try:
            import pandas as pd
        except ImportError as e:
            raise ImportError("pandas is required for to_frame()") from e

        return pd.DataFrame(
            {
                "ML": [r.ml for r in self.rows],
                "OLS": [r.ols for r in self.rows],
                "true": [r.true for r in self.rows],
                "ML se": [r.ml_bse for r in self.rows],
                "OLS se": [r.ols_bse for r in self.rows],
            },
            index=[r.name for r in self.rows],
        )


def compare(
    ml: ParameterEstimate,
    ols: ParameterEstimate,
    truth: TrueParameters,
    names: Sequence[str] | None = None,
) -> ComparisonTable:
    """
    Assemble a side-by-side table of ML and OLS estimates and the truth.

    Parameters
    ----------
    ml, ols : ParameterEstimate
        Estimates from `fit_ml` and `fit_ols`.
    truth : TrueParameters
        Data-generating parameters.
    names : sequence of str, default=None
        Coefficient names. Defaults to beta1..betak. "sigma" is appended for
        the scale.

    Returns
    -------
    ComparisonTable
    """
    k = len(truth.coef)
    if len(ml.coef) != k or len(ols.coef) != k:
        raise ValueError(
            f"estimates have {len(ml.coef)} (ML) and {len(ols.coef)} (OLS) "
            f"coefficients but the truth has {k}"
        )
    if names is None:
        names = [f"beta{j + 1}" for j in range(k)]
    elif len(names) != k:
        raise ValueError(f"names must have length {k}, got {len(names)}")

    all_names = list(names) + ["sigma"]
    ml_params, ols_params, true_params = ml.params, ols.params, truth.params
    rows = [
        ComparisonRow(
            name=all_names[j],
            ml=float(ml_params[j]),
            ols=float(ols_params[j]),
            true=float(true_params[j]),
            ml_bse=float(ml.bse[j]),
            ols_bse=float(ols.bse[j]),
        )
        for j in range(k + 1)
    ]
    return ComparisonTable(rows, ml_loglik=ml.loglik, ols_loglik=ols.loglik)
