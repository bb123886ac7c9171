import numpy as np
import pytest

from mlreg.adapters.statsmodels import NormalMLE, NormalMLEResults


@pytest.fixture
def toy_data(small_regression):
    X, y = small_regression
    return X, y


class TestNormalMLE:
    def test_stores_endog_exog(self, toy_data):
        X, y = toy_data
        model = NormalMLE(y, X)
        assert isinstance(model.endog, np.ndarray)
        assert isinstance(model.exog, np.ndarray)
        np.testing.assert_array_equal(model.endog, y)
        np.testing.assert_array_equal(model.exog, X)

    def test_exog_names_from_array(self, toy_data):
        X, y = toy_data
        model = NormalMLE(y, X)
        assert model.exog_names == ["x1", "x2", "x3"]

    def test_unknown_kwargs_raise_typeerror(self, toy_data):
        X, y = toy_data
        with pytest.raises(TypeError, match="notakwarg"):
            NormalMLE(y, X, notakwarg=123)

    def test_exog_names_from_dataframe(self):
        pd = pytest.importorskip("pandas")
        data = pd.DataFrame(
            {"A": [1.0, 2.0, 3.0, 4.5], "const": 1.0, "B": [4.0, 5.5, 6.0, 7.0]}
        )
        model = NormalMLE(data["A"], data[["const", "B"]])
        assert model.exog_names == ["const", "B"]

    def test_missing_raise_with_nan(self, toy_data):
        X, y = toy_data
        y = y.copy()
        y[2] = np.nan
        with pytest.raises(ValueError, match="NaN"):
            NormalMLE(y, X, missing="raise")

    def test_missing_drop_not_implemented(self, toy_data):
        X, y = toy_data
        with pytest.raises(NotImplementedError):
            NormalMLE(y, X, missing="drop")

    def test_fit_returns_results(self, toy_data):
        X, y = toy_data
        results = NormalMLE(y, X).fit()
        assert isinstance(results, NormalMLEResults)

    def test_unknown_method(self, toy_data):
        X, y = toy_data
        with pytest.raises(ValueError, match="method"):
            NormalMLE(y, X).fit(method="bfgs")

    def test_backend_is_forwarded(self, toy_data):
        X, y = toy_data
        results = NormalMLE(y, X).fit(method="newton", backend="numpy")
        assert results.converged
        with pytest.raises(ValueError, match="backend"):
            NormalMLE(y, X).fit(backend="fortran")


class TestNormalMLEResults:
    @pytest.fixture
    def fitted_results(self, toy_data):
        X, y = toy_data
        return NormalMLE(y, X).fit(method="newton")

    def test_params_match_least_squares(self, fitted_results, toy_data):
        X, y = toy_data
        expected = np.linalg.lstsq(X, y, rcond=None)[0]
        np.testing.assert_allclose(fitted_results.params, expected, rtol=1e-6)

    def test_information_criteria(self, fitted_results):
        k = 4  # three coefficients and the scale
        assert fitted_results.aic == pytest.approx(-2 * fitted_results.llf + 2 * k)
        assert fitted_results.bic == pytest.approx(
            -2 * fitted_results.llf + np.log(60) * k
        )
        assert fitted_results.df_model == 2
        assert fitted_results.df_resid == 57

    def test_predict_default_uses_training_data(self, fitted_results):
        pred = fitted_results.predict()
        assert pred.shape == (60,)
        np.testing.assert_allclose(pred, fitted_results.fittedvalues)

    def test_conf_int_shape(self, fitted_results):
        ci = fitted_results.conf_int()
        assert ci.shape == (3, 2)
        assert np.all(ci[:, 0] < fitted_results.params)
        assert np.all(fitted_results.params < ci[:, 1])

    def test_cov_params(self, fitted_results):
        cov = fitted_results.cov_params()
        assert cov.shape == (3, 3)
        np.testing.assert_allclose(np.sqrt(np.diag(cov)), fitted_results.bse)

    def test_summary(self, fitted_results):
        text = fitted_results.summary().as_text()
        assert "Linear-Normal Maximum Likelihood Results" in text
        assert "sigma" in text
        assert "Newton-Raphson" in text
        assert "Fixed:" not in text

    def test_summary_frame(self, fitted_results):
        pytest.importorskip("pandas")
        frame = fitted_results.summary_frame()
        assert list(frame.index) == ["x1", "x2", "x3"]
        assert frame.shape == (3, 6)

    def test_fixed_parameter(self, toy_data):
        X, y = toy_data
        results = NormalMLE(y, X, fixed={1: 0.0}).fit()
        assert results.params[1] == 0.0
        assert np.isnan(results.bse[1])
        assert results.hessian_kind == "lagrangian"
        text = results.summary().as_text()
        assert "Lagrangian" in text
        assert "Fixed: x2" in text
        assert results.mle_retvals["converged"]
