import numpy as np
import scipy

from numpy.typing import NDArray
from scipy.optimize import Bounds, LinearConstraint, minimize
from typing import Callable

from mlreg._utils import SolverResult, SolverStatus
from mlreg.likelihood import NormalQuantities

# max |constraint residual| tolerated before a trust-constr result is infeasible
CONSTRAINT_TOL = 1e-6


def newton_raphson(
    compute_quantities: Callable[[NDArray[np.float64]], NormalQuantities],
    x0: NDArray[np.float64],
    max_iter: int = 100,
    max_step: float = 5.0,
    max_halfstep: int = 25,
    gtol: float = 1e-6,
    xtol: float = 1e-8,
    dtol: float = 1e-12,
) -> SolverResult:
    """
    Newton-Raphson solver (Fisher scoring) with step halving

    Parameters
    ----------
    compute_quantities : Callable[[NDArray]]
        Function `callable(x)` that returns loglik, score and fisher_info
    x0 : NDArray
        Starting values
    max_iter : int, default=100
        Maximum number of iterations
    max_step : float, default=5.0
        Maximum step size per parameter
    max_halfstep : int, default=25
        Maximum number of step-halvings per iteration
    gtol : float, default=1e-6
        Stop when max|score| < gtol and max|step| < xtol
    xtol : float, default=1e-8
        Tolerance on the step size
    dtol : float, default=1e-12
        Also stop when the Newton decrement U' I⁻¹ U < dtol. Unlike gtol and
        xtol it does not depend on the units of the parameters.

    Returns
    -------
    SolverResult
        Result of the maximization
    """
    x = np.array(x0, dtype=np.float64)
    q = compute_quantities(x)
    if not np.isfinite(q.loglik):
        return SolverResult(x=x, loglik=q.loglik, n_iter=0, status=SolverStatus.NUMERICAL_ERROR)

    for iteration in range(1, max_iter + 1):
        try:
            cho = scipy.linalg.cho_factor(q.fisher_info)
            delta = scipy.linalg.cho_solve(cho, q.score)
        except scipy.linalg.LinAlgError:
            delta, *_ = np.linalg.lstsq(q.fisher_info, q.score, rcond=None)

        if not np.all(np.isfinite(delta)):
            return SolverResult(
                x=x, loglik=q.loglik, n_iter=iteration, status=SolverStatus.NUMERICAL_ERROR
            )
        decrement = float(q.score @ delta)

        # cap the largest coordinate of the step
        step_size = np.max(np.abs(delta)) if delta.size else 0.0
        if step_size > max_step:
            delta *= max_step / step_size
            step_size = max_step

        # check convergence: max|U| < gtol and max|delta| < xtol
        score_max = np.max(np.abs(q.score), initial=0.0)
        if score_max < gtol and step_size < xtol:
            return SolverResult(
                x=x, loglik=q.loglik, n_iter=iteration, status=SolverStatus.OPTIMAL
            )

        # U' I⁻¹ U < dtol: the step is a vanishing fraction of a standard error,
        # so take it and stop even when U itself is inflated by rounding
        if decrement < dtol:
            q_new = compute_quantities(x + delta)
            if np.isfinite(q_new.loglik):
                x, q = x + delta, q_new
            return SolverResult(
                x=x, loglik=q.loglik, n_iter=iteration, status=SolverStatus.OPTIMAL
            )

        # halve the step until loglik does not decrease (non-finite counts as a decrease)
        x_new = x + delta
        q_new = compute_quantities(x_new)
        n_halvings = 0
        while not (np.isfinite(q_new.loglik) and q_new.loglik >= q.loglik):
            if n_halvings == max_halfstep:
                # no ascent along the scoring direction: x is optimal up to rounding
                stalled = (
                    SolverStatus.OPTIMAL
                    if score_max < gtol
                    else SolverStatus.LOCALLY_OPTIMAL
                )
                return SolverResult(
                    x=x, loglik=q.loglik, n_iter=iteration, status=stalled
                )
            delta *= 0.5
            x_new = x + delta
            q_new = compute_quantities(x_new)
            n_halvings += 1

        x, q = x_new, q_new

    return SolverResult(
        x=x, loglik=q.loglik, n_iter=max_iter, status=SolverStatus.ITERATION_LIMIT
    )


def trust_constr(
    compute_quantities: Callable[[NDArray[np.float64]], NormalQuantities],
    x0: NDArray[np.float64],
    lower: NDArray[np.float64],
    fixed: dict[int, float] | None = None,
    objective_scale: float = 1.0,
    max_iter: int = 1000,
    gtol: float = 1e-8,
    xtol: float = 1e-8,
) -> SolverResult:
    """
    Maximize with scipy's trust-region interior-point method.

    The log-likelihood is negated and multiplied by `objective_scale` (1/n
    keeps the problem well scaled for large samples). Lower bounds are kept
    strictly feasible; fixed parameters enter as linear equality constraints.

    Parameters
    ----------
    compute_quantities : Callable[[NDArray]]
        Function `callable(x)` that returns loglik, score and hessian
    x0 : NDArray
        Starting values, strictly inside the bounds
    lower : NDArray
        Lower bound of each parameter (-inf for unbounded)
    fixed : dict of int to float, default=None
        Parameter index -> value for equality constraints
    objective_scale : float, default=1.0
        Positive factor applied to the negated log-likelihood
    max_iter : int, default=1000
        Maximum number of iterations
    gtol : float, default=1e-8
        Tolerance on the Lagrangian gradient
    xtol : float, default=1e-8
        Tolerance on the trust-region radius

    Returns
    -------
    SolverResult
        Result of the maximization
    """
    n_par = len(x0)
    last: dict[bytes, NormalQuantities] = {}

    # scipy asks for fun, jac and hess at the same point in turn
    def quantities(x: NDArray[np.float64]) -> NormalQuantities:
        key = x.tobytes()
        if key not in last:
            last.clear()
            last[key] = compute_quantities(x)
        return last[key]

    def fun(x):
        return -objective_scale * quantities(x).loglik

    def jac(x):
        return -objective_scale * quantities(x).score

    def hess(x):
        return -objective_scale * quantities(x).hessian

    constraints = []
    if fixed:
        indices = sorted(fixed)
        A = np.zeros((len(indices), n_par), dtype=np.float64)
        A[np.arange(len(indices)), indices] = 1.0
        values = np.array([fixed[i] for i in indices], dtype=np.float64)
        constraints.append(LinearConstraint(A, values, values))

    bounds = Bounds(lower, np.full(n_par, np.inf), keep_feasible=True)

    try:
        res = minimize(
            fun,
            x0,
            method="trust-constr",
            jac=jac,
            hess=hess,
            bounds=bounds,
            constraints=constraints,
            options={"maxiter": max_iter, "gtol": gtol, "xtol": xtol},
        )
    except (ValueError, np.linalg.LinAlgError):
        return SolverResult(
            x=np.array(x0, dtype=np.float64),
            loglik=np.nan,
            n_iter=0,
            status=SolverStatus.NUMERICAL_ERROR,
        )

    loglik = -res.fun / objective_scale
    if not np.isfinite(res.fun) or not np.all(np.isfinite(res.x)):
        status = SolverStatus.NUMERICAL_ERROR
    elif res.constr_violation > CONSTRAINT_TOL:
        status = SolverStatus.INFEASIBLE
    elif res.status == 1:
        status = SolverStatus.OPTIMAL
    elif res.status == 2:
        # interior-point runs usually end on the trust radius; accept as optimal
        # when the Lagrangian gradient is also small
        if res.optimality < np.sqrt(gtol):
            status = SolverStatus.OPTIMAL
        else:
            status = SolverStatus.LOCALLY_OPTIMAL
    elif res.status == 0:
        status = SolverStatus.ITERATION_LIMIT
    else:
        status = SolverStatus.NUMERICAL_ERROR

    return SolverResult(x=res.x, loglik=loglik, n_iter=res.nit, status=status)
