import numpy as np
import scipy
import warnings

from numbers import Integral
from numpy.typing import ArrayLike, NDArray
from sklearn.base import BaseEstimator, RegressorMixin
from sklearn.exceptions import ConvergenceWarning
from sklearn.utils.validation import check_is_fitted, validate_data
from typing import Literal, Mapping, Self, cast

from mlreg._exceptions import InvalidArgumentError, OptimizationFailure
from mlreg._solvers import newton_raphson, trust_constr
from mlreg._utils import (
    OptimizationResult,
    ParameterEstimate,
    SolverStatus,
    as_design,
)
from mlreg.inference import standard_errors_from_hessian
from mlreg.likelihood import NormalQuantities, get_quantities_function

Solver = Literal["trust-constr", "newton-raphson"]
Backend = Literal["auto", "numpy", "numba"]

_SOLVER_DEFAULTS: dict[str, dict[str, float]] = {
    "trust-constr": {"max_iter": 1000, "gtol": 1e-8, "xtol": 1e-8},
    "newton-raphson": {"max_iter": 100, "gtol": 1e-6, "xtol": 1e-8},
}


def maximize_likelihood(
    X: ArrayLike,
    y: ArrayLike,
    initial_guess: ArrayLike | None = None,
    fixed: Mapping[int, float] | None = None,
    solver: Solver = "trust-constr",
    max_iter: int | None = None,
    gtol: float | None = None,
    xtol: float | None = None,
    backend: Backend = "auto",
) -> OptimizationResult:
    """
    Maximize the linear-normal log-likelihood over (β, σ).

    Declares n_params + 1 parameters: the coefficients (unbounded) followed
    by the scale σ, bounded below by 0. Entries of `fixed` are held at their
    values through equality constraints.

    Parameters
    ----------
    X : array-like of shape (n_obs, n_params)
        Design matrix.
    y : array-like of shape (n_obs,)
        Response vector.
    initial_guess : array-like of shape (n_params + 1,), default=None
        Starting coefficients and scale (scale must be positive). Defaults to
        zero coefficients and the sample standard deviation of y.
    fixed : mapping of int to float, default=None
        Parameter index -> fixed value. Index n_params refers to the scale.
    solver : {'trust-constr', 'newton-raphson'}, default='trust-constr'
        'trust-constr' delegates to `scipy.optimize.minimize`;
        'newton-raphson' runs Fisher scoring with step halving over the free
        parameters.
    max_iter, gtol, xtol : default=None
        Solver limits and tolerances. None uses the solver's defaults.
        Tolerances apply to the problem solved on y divided by its standard
        deviation.
    backend : {'auto', 'numpy', 'numba'}, default='auto'
        Implementation of the likelihood quantities.

    Returns
    -------
    OptimizationResult
        Optimal parameters, log-likelihood and Hessian of the Lagrangian at
        the optimum. With fixed parameters `hessian_kind` is 'lagrangian';
        every constraint here is linear, so it coincides numerically with the
        log-likelihood Hessian, but standard errors should be computed over
        `result.free` only.

    Raises
    ------
    InvalidArgumentError
        If shapes, fixed indices or the initial guess are invalid.
    OptimizationFailure
        If there are no observations, the data are non-finite, the problem is
        infeasible or unbounded, or the solver does not converge.
    """
    X, y = as_design(X, y)
    n, k = X.shape
    n_par = k + 1

    if solver not in _SOLVER_DEFAULTS:
        raise ValueError(
            f"solver must be 'trust-constr' or 'newton-raphson', got '{solver}'"
        )
    options = dict(_SOLVER_DEFAULTS[solver])
    for name, value in (("max_iter", max_iter), ("gtol", gtol), ("xtol", xtol)):
        if value is not None:
            options[name] = value
    compute = get_quantities_function(backend)

    fixed = _validate_fixed(fixed, n_par)

    if n == 0:
        raise OptimizationFailure(
            SolverStatus.INVALID_PROBLEM,
            "Likelihood maximization failed: no observations",
        )
    if not (np.all(np.isfinite(X)) and np.all(np.isfinite(y))):
        raise OptimizationFailure(
            SolverStatus.NUMERICAL_ERROR,
            "Likelihood maximization failed: X or y contains non-finite values",
        )
    if k in fixed and fixed[k] < 0:
        raise OptimizationFailure(
            SolverStatus.INFEASIBLE,
            f"Likelihood maximization failed: scale fixed to {fixed[k]} violates scale >= 0",
        )

    # solve in units of the response spread; the fit is equivariant in y
    y_scale = _response_scale(y)
    y_std = y / y_scale
    x0 = _initial_guess(initial_guess, y, n_par) / y_scale
    for idx, value in fixed.items():
        x0[idx] = value / y_scale

    free = np.ones(n_par, dtype=bool)
    free[list(fixed)] = False

    # free regressors spanning every observation admit an exact fit
    free_coef = np.flatnonzero(free[:k])
    if free[k] and n <= len(free_coef) and np.linalg.matrix_rank(X[:, free_coef]) == n:
        raise OptimizationFailure(
            SolverStatus.UNBOUNDED,
            "Likelihood maximization failed: the fit is exact, so the "
            "log-likelihood is unbounded as the scale goes to 0",
        )

    if solver == "trust-constr":
        lower = np.full(n_par, -np.inf)
        lower[k] = 0.0

        def quantities(params):
            return compute(params, X, y_std)

        raw = trust_constr(
            compute_quantities=quantities,
            x0=x0,
            lower=lower,
            fixed={idx: x0[idx] for idx in fixed},
            objective_scale=1.0 / n,
            max_iter=int(options["max_iter"]),
            gtol=options["gtol"],
            xtol=options["xtol"],
        )
        params = raw.x * y_scale
    else:
        free_indices = np.flatnonzero(free)

        # The solver only sees the free parameters. Fixed values are put back
        # into the full vector, and score and information are sliced to the
        # free block before returning.
        def reduced_quantities(x_free):
            full = x0.copy()
            full[free_indices] = x_free
            q = compute(full, X, y_std)
            return NormalQuantities(
                loglik=q.loglik,
                score=q.score[free_indices],
                hessian=q.hessian[np.ix_(free_indices, free_indices)],
                fisher_info=q.fisher_info[np.ix_(free_indices, free_indices)],
            )

        raw = newton_raphson(
            compute_quantities=reduced_quantities,
            x0=x0[free_indices],
            max_iter=int(options["max_iter"]),
            gtol=options["gtol"],
            xtol=options["xtol"],
        )
        params = x0 * y_scale
        params[free_indices] = raw.x * y_scale

    for idx, value in fixed.items():
        params[idx] = value

    status = raw.status
    # a run that stalls with σ collapsed is chasing l -> +inf at an exact fit
    if not status.converged and free[k] and params[k] <= _scale_floor(y):
        status = SolverStatus.UNBOUNDED
    if not status.converged:
        raise OptimizationFailure(status)
    if status is SolverStatus.LOCALLY_OPTIMAL:
        warnings.warn(
            f"Solver '{solver}' stopped at a locally optimal point after "
            f"{raw.n_iter} iterations without meeting its gradient tolerance.",
            ConvergenceWarning,
            stacklevel=2,
        )

    # constraint curvature vanishes for linear constraints, so the Lagrangian
    # Hessian is the log-likelihood Hessian evaluated at the constrained optimum
    q = compute(params, X, y)
    multipliers = {idx: float(q.score[idx]) for idx in sorted(fixed)}

    return OptimizationResult(
        params=params,
        loglik=q.loglik,
        hessian=q.hessian,
        hessian_kind="lagrangian" if fixed else "objective",
        status=status,
        n_iter=raw.n_iter,
        solver=solver,
        free=free,
        multipliers=multipliers,
    )


def fit_ml(
    X: ArrayLike,
    y: ArrayLike,
    **kwargs,
) -> ParameterEstimate:
    """
    Maximum-likelihood estimate with standard errors from the inverse
    negative Hessian. Keyword arguments are passed to `maximize_likelihood`.
    Fixed parameters get a NaN standard error.
    """
    result = maximize_likelihood(X, y, **kwargs)
    bse = standard_errors_from_hessian(
        -result.hessian, free=result.free, hessian_kind=result.hessian_kind
    )
    return ParameterEstimate(
        method="ml",
        coef=result.coef,
        scale=result.scale,
        bse=bse,
        loglik=result.loglik,
    )


def _validate_fixed(
    fixed: Mapping[int, float] | None, n_par: int
) -> dict[int, float]:
    if fixed is None:
        return {}
    out: dict[int, float] = {}
    for idx, value in fixed.items():
        if isinstance(idx, bool) or not isinstance(idx, Integral):
            raise InvalidArgumentError(f"fixed indices must be integers, got {idx!r}")
        if not 0 <= idx < n_par:
            raise InvalidArgumentError(
                f"fixed index {idx} is out of range for {n_par} parameters"
            )
        value = float(value)
        if not np.isfinite(value):
            raise InvalidArgumentError(f"fixed value for index {idx} must be finite")
        out[int(idx)] = value
    if len(out) == n_par:
        raise InvalidArgumentError("at least one parameter must be free")
    return out


def _initial_guess(
    initial_guess: ArrayLike | None, y: NDArray[np.float64], n_par: int
) -> NDArray[np.float64]:
    if initial_guess is None:
        x0 = np.zeros(n_par, dtype=np.float64)
        sd = float(np.std(y))
        x0[-1] = sd if sd > 0 else 1.0
        return x0

    x0 = np.array(initial_guess, dtype=np.float64).ravel()
    if x0.shape[0] != n_par:
        raise InvalidArgumentError(
            f"initial_guess must have length {n_par}, got {x0.shape[0]}"
        )
    if not np.all(np.isfinite(x0)):
        raise InvalidArgumentError("initial_guess must be finite")
    if x0[-1] <= 0:
        raise InvalidArgumentError(
            f"initial scale must be positive, got {x0[-1]}"
        )
    return x0


def _response_scale(y: NDArray[np.float64]) -> float:
    sd = float(np.std(y))
    if sd > 0:
        return sd
    peak = float(np.max(np.abs(y)))
    return peak if peak > 0 else 1.0


def _scale_floor(y: NDArray[np.float64]) -> float:
    return float(np.sqrt(np.finfo(np.float64).eps) * _response_scale(y))


class LinearNormalMLE(RegressorMixin, BaseEstimator):
    """
    Linear regression with normal errors fitted by maximum likelihood.

    The coefficients and the error standard deviation are estimated jointly
    by maximizing the Gaussian log-likelihood. Standard errors come from the
    inverse of the negative Hessian at the optimum. Absent constraints the
    estimates coincide with OLS; the ML scale divides by n rather than n - k.

    Parameters
    ----------
    solver : {'trust-constr', 'newton-raphson'}, default='trust-constr'
        Optimization algorithm.
    max_iter : int, default=None
        Maximum number of iterations. None uses the solver default.
    gtol : float, default=None
        Gradient tolerance. None uses the solver default.
    xtol : float, default=None
        Step tolerance. None uses the solver default.
    fit_intercept : bool, default=True
        Whether to fit an intercept.
    fixed : dict of int to float, default=None
        Feature index -> fixed coefficient value. Index `n_features` refers to
        the intercept when `fit_intercept=True`.
    backend : {'auto', 'numpy', 'numba'}, default='auto'
        Implementation of the likelihood quantities.

    Attributes
    ----------
    coef_ : ndarray of shape (n_features,)
        The coefficients of the features.
    intercept_ : float
        Fitted intercept. Set to 0.0 if `fit_intercept=False`.
    scale_ : float
        ML estimate of the error standard deviation.
    loglik_ : float
        Fitted log-likelihood.
    n_iter_ : int
        Number of iterations the solver ran.
    converged_ : bool
        Whether the solver converged.
    hessian_kind_ : {'objective', 'lagrangian'}
        Whether the Hessian behind the standard errors is the Lagrangian's.
    bse_ : ndarray of shape (n_features,)
        Standard errors for the coefficients (NaN where fixed).
    intercept_bse_ : float
        Standard error for the intercept.
    scale_bse_ : float
        Standard error for the scale.
    pvalues_ : ndarray of shape (n_features,)
        Wald p-values for the coefficients.
    intercept_pvalue_ : float
        Wald p-value for the intercept.
    n_features_in_ : int
        Number of features seen during `fit`.

    Examples
    --------
    >>> from mlreg import LinearNormalMLE, generate
    >>> data, truth = generate(200, 5, seed=0)
    >>> model = LinearNormalMLE(fit_intercept=False).fit(data.X, data.y)
    >>> round(model.scale_, 1)
    0.3
    """

    def __init__(
        self,
        solver: Solver = "trust-constr",
        max_iter: int | None = None,
        gtol: float | None = None,
        xtol: float | None = None,
        fit_intercept: bool = True,
        fixed: dict[int, float] | None = None,
        backend: Backend = "auto",
    ) -> None:
        self.solver = solver
        self.max_iter = max_iter
        self.gtol = gtol
        self.xtol = xtol
        self.fit_intercept = fit_intercept
        self.fixed = fixed
        self.backend = backend

    def fit(self, X: ArrayLike, y: ArrayLike) -> Self:
        """
        Fit the model by maximum likelihood.

        Parameters
        ----------
        X : array-like of shape (n_samples, n_features)
            Feature matrix.
        y : array-like of shape (n_samples,)
            Target values.

        Returns
        -------
        self : LinearNormalMLE
            Fitted estimator.
        """
        X, y = self._validate_input(X, y)

        if self.fit_intercept:
            X = np.column_stack([X, np.ones(X.shape[0])])

        result = maximize_likelihood(
            X,
            y,
            fixed=self.fixed,
            solver=self.solver,
            max_iter=self.max_iter,
            gtol=self.gtol,
            xtol=self.xtol,
            backend=self.backend,
        )
        k = X.shape[1]
        bse = standard_errors_from_hessian(
            -result.hessian, free=result.free, hessian_kind=result.hessian_kind
        )

        if self.fit_intercept:
            self.coef_ = result.coef[:-1]
            self.intercept_ = float(result.coef[-1])
            self.bse_ = bse[: k - 1]
            self.intercept_bse_ = float(bse[k - 1])
        else:
            self.coef_ = result.coef
            self.intercept_ = 0.0
            self.bse_ = bse[:k]
            self.intercept_bse_ = np.nan

        self.scale_ = result.scale
        self.scale_bse_ = float(bse[k])
        self.loglik_ = result.loglik
        self.n_iter_ = result.n_iter
        self.converged_ = result.converged
        self.hessian_kind_ = result.hessian_kind

        # === Wald ===
        self.pvalues_ = 2 * scipy.stats.norm.sf(np.abs(self.coef_ / self.bse_))
        self.intercept_pvalue_ = (
            float(2 * scipy.stats.norm.sf(abs(self.intercept_ / self.intercept_bse_)))
            if self.fit_intercept
            else np.nan
        )
        return self

    def conf_int(self, alpha: float = 0.05) -> NDArray[np.float64]:
        """
        Wald confidence intervals for the coefficients.

        Returns
        -------
        ndarray, shape(n_features, 2)
            Column 0: lower bounds, Column 1: upper bounds
            Includes intercept as last row if `fit_intercept=True`.
        """
        check_is_fitted(self)
        z = scipy.stats.norm.ppf(1 - alpha / 2)
        if self.fit_intercept:
            beta = np.append(self.coef_, self.intercept_)
            bse = np.append(self.bse_, self.intercept_bse_)
        else:
            beta, bse = self.coef_, self.bse_
        return np.column_stack([beta - z * bse, beta + z * bse])

    def predict(self, X: ArrayLike) -> NDArray[np.float64]:
        """Return the fitted mean X @ coef_ + intercept_."""
        check_is_fitted(self)
        X = validate_data(self, X, dtype=np.float64, reset=False)
        X = cast(NDArray[np.float64], X)  # for mypy
        return X @ self.coef_ + self.intercept_

    def _validate_input(
        self, X: ArrayLike, y: ArrayLike
    ) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
        """Validate parameters and inputs"""
        if self.solver not in _SOLVER_DEFAULTS:
            raise ValueError(
                f"solver='{self.solver}' is not supported. "
                "Use 'trust-constr' or 'newton-raphson'."
            )
        if self.max_iter is not None and self.max_iter <= 0:
            raise ValueError(f"max_iter must be positive, got {self.max_iter}")
        for name in ("gtol", "xtol"):
            value = getattr(self, name)
            if value is not None and value < 0:
                raise ValueError(f"{name} must be non-negative, got {value}")
        X, y = validate_data(
            self, X, y, dtype=np.float64, y_numeric=True, ensure_min_samples=2
        )
        X = cast(NDArray[np.float64], X)  # for mypy
        y = cast(NDArray[np.float64], y)
        return X, y
