import warnings
from concurrent.futures import ThreadPoolExecutor

import numpy as np
import pytest
import scipy.stats
from scipy.optimize import approx_fprime

from mlreg import NUMBA_AVAILABLE, log_likelihood
from mlreg.likelihood import (
    compute_normal_quantities,
    get_quantities_function,
    resolve_backend,
)


@pytest.fixture
def params():
    return np.array([0.8, -0.3, 1.7, 0.55])


class TestLogLikelihood:
    def test_matches_normal_logpdf(self, small_regression, params):
        X, y = small_regression
        expected = scipy.stats.norm.logpdf(y, loc=X @ params[:-1], scale=params[-1]).sum()
        assert log_likelihood(params, X, y) == pytest.approx(expected, rel=1e-12)

    @pytest.mark.parametrize("sigma", [0.0, -1.0])
    def test_non_positive_scale_is_not_finite(self, small_regression, params, sigma):
        X, y = small_regression
        params = params.copy()
        params[-1] = sigma
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            value = log_likelihood(params, X, y)
        assert not np.isfinite(value)

    def test_does_not_modify_inputs(self, small_regression, params):
        X, y = small_regression
        X0, y0, p0 = X.copy(), y.copy(), params.copy()
        log_likelihood(params, X, y)
        compute_normal_quantities(params, X, y)
        np.testing.assert_array_equal(X, X0)
        np.testing.assert_array_equal(y, y0)
        np.testing.assert_array_equal(params, p0)

    def test_concurrent_calls_agree(self, small_regression):
        X, y = small_regression
        rng = np.random.default_rng(1)
        points = [np.append(rng.standard_normal(3), rng.uniform(0.2, 2.0)) for _ in range(32)]

        serial = [log_likelihood(p, X, y) for p in points]
        with ThreadPoolExecutor(max_workers=8) as pool:
            threaded = list(pool.map(lambda p: log_likelihood(p, X, y), points))
        np.testing.assert_array_equal(serial, threaded)


class TestNormalQuantities:
    def test_loglik_consistent(self, small_regression, params):
        X, y = small_regression
        q = compute_normal_quantities(params, X, y)
        assert q.loglik == pytest.approx(log_likelihood(params, X, y), rel=1e-14)

    def test_score_matches_finite_differences(self, small_regression, params):
        X, y = small_regression
        q = compute_normal_quantities(params, X, y)
        numeric = approx_fprime(params, log_likelihood, 1e-7, X, y)
        np.testing.assert_allclose(q.score, numeric, rtol=1e-4, atol=1e-3)

    def test_hessian_matches_finite_differences(self, small_regression, params):
        X, y = small_regression
        q = compute_normal_quantities(params, X, y)
        numeric = np.array(
            [
                approx_fprime(
                    params,
                    lambda p, j=j: compute_normal_quantities(p, X, y).score[j],
                    1e-7,
                )
                for j in range(len(params))
            ]
        )
        np.testing.assert_allclose(q.hessian, numeric, rtol=1e-4, atol=1e-3)
        np.testing.assert_allclose(q.hessian, q.hessian.T)

    def test_fisher_info_is_expected_information(self, small_regression, params):
        X, y = small_regression
        n, k = X.shape
        sigma = params[-1]
        q = compute_normal_quantities(params, X, y)

        np.testing.assert_allclose(q.fisher_info[:k, :k], X.T @ X / sigma**2)
        np.testing.assert_allclose(q.fisher_info[:k, k], 0.0)
        assert q.fisher_info[k, k] == pytest.approx(2 * n / sigma**2)

    def test_score_vanishes_at_ols_with_ml_scale(self, small_regression):
        X, y = small_regression
        n = X.shape[0]
        beta = np.linalg.lstsq(X, y, rcond=None)[0]
        resid = y - X @ beta
        sigma = np.sqrt(resid @ resid / n)
        q = compute_normal_quantities(np.append(beta, sigma), X, y)

        np.testing.assert_allclose(q.score, 0.0, atol=1e-8)
        # at the optimum the σσ entry reduces to -2n/σ²
        assert q.hessian[-1, -1] == pytest.approx(-2 * n / sigma**2)


class TestBackend:
    def test_numpy_backend(self):
        assert resolve_backend("numpy") == "numpy"
        assert get_quantities_function("numpy") is compute_normal_quantities

    def test_auto_backend(self):
        expected = "numba" if NUMBA_AVAILABLE else "numpy"
        assert resolve_backend("auto") == expected

    def test_unknown_backend(self):
        with pytest.raises(ValueError, match="backend must be"):
            resolve_backend("cuda")

    @pytest.mark.skipif(NUMBA_AVAILABLE, reason="numba is installed")
    def test_numba_backend_requires_numba(self):
        with pytest.raises(ImportError, match="numba"):
            resolve_backend("numba")
