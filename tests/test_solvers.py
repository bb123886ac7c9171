import numpy as np
import pytest

from mlreg._solvers import newton_raphson, trust_constr
from mlreg._utils import SolverStatus
from mlreg.likelihood import compute_normal_quantities


def _ml_solution(X, y):
    beta = np.linalg.lstsq(X, y, rcond=None)[0]
    resid = y - X @ beta
    return np.append(beta, np.sqrt(resid @ resid / len(y)))


class TestNewtonRaphson:
    def test_converges_to_closed_form(self, small_regression):
        X, y = small_regression
        result = newton_raphson(
            lambda p: compute_normal_quantities(p, X, y),
            x0=np.array([0.0, 0.0, 0.0, 1.0]),
        )

        assert result.status is SolverStatus.OPTIMAL
        np.testing.assert_allclose(result.x, _ml_solution(X, y), rtol=1e-8, atol=1e-10)
        assert result.n_iter > 1

    def test_iteration_limit(self, small_regression):
        X, y = small_regression
        result = newton_raphson(
            lambda p: compute_normal_quantities(p, X, y),
            x0=np.array([0.0, 0.0, 0.0, 1.0]),
            max_iter=1,
        )
        assert result.status is SolverStatus.ITERATION_LIMIT
        assert not result.status.converged

    def test_non_finite_start(self, small_regression):
        X, y = small_regression
        result = newton_raphson(
            lambda p: compute_normal_quantities(p, X, y),
            x0=np.array([0.0, 0.0, 0.0, -1.0]),
        )
        assert result.status is SolverStatus.NUMERICAL_ERROR
        assert result.n_iter == 0

    def test_recovers_from_poor_starting_scale(self, small_regression):
        X, y = small_regression
        # the first scoring step from a tiny scale is far larger than max_step
        result = newton_raphson(
            lambda p: compute_normal_quantities(p, X, y),
            x0=np.array([0.0, 0.0, 0.0, 1e-3]),
            max_step=50.0,
        )
        assert result.status.converged
        assert result.x[-1] > 0
        np.testing.assert_allclose(result.x, _ml_solution(X, y), rtol=1e-6, atol=1e-8)

    def test_converges_in_small_units(self, small_regression):
        X, y = small_regression
        y = y * 1e-8
        # with σ of order 1e-9, rounding alone keeps max|U| above gtol
        result = newton_raphson(
            lambda p: compute_normal_quantities(p, X, y),
            x0=np.array([0.0, 0.0, 0.0, np.std(y)]),
        )
        assert result.status.converged
        np.testing.assert_allclose(result.x, _ml_solution(X, y), rtol=1e-5)


class TestTrustConstr:
    def test_converges_to_closed_form(self, small_regression):
        X, y = small_regression
        n, k = X.shape
        lower = np.array([-np.inf] * k + [0.0])
        result = trust_constr(
            lambda p: compute_normal_quantities(p, X, y),
            x0=np.array([0.0, 0.0, 0.0, 1.0]),
            lower=lower,
            objective_scale=1.0 / n,
        )

        assert result.status.converged
        np.testing.assert_allclose(result.x, _ml_solution(X, y), rtol=1e-4, atol=1e-6)
        assert result.loglik == pytest.approx(
            compute_normal_quantities(result.x, X, y).loglik, rel=1e-10
        )

    def test_equality_constraint(self, small_regression):
        X, y = small_regression
        n, k = X.shape
        lower = np.array([-np.inf] * k + [0.0])
        result = trust_constr(
            lambda p: compute_normal_quantities(p, X, y),
            x0=np.array([0.0, 0.0, 0.0, 1.0]),
            lower=lower,
            fixed={1: 0.0},
            objective_scale=1.0 / n,
        )

        assert result.status.converged
        assert result.x[1] == pytest.approx(0.0, abs=1e-6)

        # constrained optimum equals OLS on the remaining columns
        expected = _ml_solution(X[:, [0, 2]], y)
        np.testing.assert_allclose(result.x[[0, 2, 3]], expected, rtol=1e-4, atol=1e-6)

    def test_iteration_limit(self, small_regression):
        X, y = small_regression
        n, k = X.shape
        result = trust_constr(
            lambda p: compute_normal_quantities(p, X, y),
            x0=np.array([0.0, 0.0, 0.0, 1.0]),
            lower=np.array([-np.inf] * k + [0.0]),
            objective_scale=1.0 / n,
            max_iter=1,
        )
        assert result.status is SolverStatus.ITERATION_LIMIT
