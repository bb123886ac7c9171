import numpy as np
import pytest

from mlreg import InvalidArgumentError, TRUE_COEF, TRUE_SCALE, generate
from mlreg.simulate import COVARIATE_DISTRIBUTIONS


class TestGenerate:
    def test_same_seed_is_bit_identical(self):
        data1, truth1 = generate(50, 4, seed=7)
        data2, truth2 = generate(50, 4, seed=7)

        np.testing.assert_array_equal(data1.X, data2.X)
        np.testing.assert_array_equal(data1.y, data2.y)
        np.testing.assert_array_equal(truth1.coef, truth2.coef)

    def test_different_seed_differs(self):
        data1, _ = generate(50, 4, seed=7)
        data2, _ = generate(50, 4, seed=8)
        assert not np.array_equal(data1.y, data2.y)

    def test_shapes_and_constant_column(self):
        data, truth = generate(30, 3, seed=0)

        assert data.n_obs == 90
        assert data.X.shape == (90, 1 + len(COVARIATE_DISTRIBUTIONS))
        assert data.n_params == 16
        assert data.y.shape == (90,)
        np.testing.assert_array_equal(data.X[:, 0], np.ones(90))
        assert data.feature_names[0] == "const"
        assert len(data.feature_names) == 16

    def test_true_parameters(self):
        _, truth = generate(2, 2, seed=0)

        np.testing.assert_array_equal(truth.coef, TRUE_COEF)
        assert truth.scale == TRUE_SCALE == 0.3
        assert truth.params.shape == (17,)
        assert truth.params[-1] == 0.3
        assert truth.coef[0] == 2.15

    def test_arrays_are_read_only(self):
        data, truth = generate(5, 2, seed=0)
        with pytest.raises(ValueError):
            data.X[0, 0] = 2.0
        with pytest.raises(ValueError):
            data.y[0] = 0.0
        with pytest.raises(ValueError):
            truth.coef[0] = 0.0

    def test_panel_index_is_entity_major(self):
        data, _ = generate(3, 2, seed=0)
        np.testing.assert_array_equal(data.entity, [0, 0, 1, 1, 2, 2])
        np.testing.assert_array_equal(data.period, [0, 1, 0, 1, 0, 1])

    def test_noise_scale_matches_truth(self):
        data, truth = generate(2000, 2, seed=3)
        noise = data.y - data.X @ truth.coef
        assert abs(noise.mean()) < 0.02
        assert abs(noise.std() - truth.scale) < 0.02

    def test_covariate_moments(self):
        data, _ = generate(4000, 5, seed=11)
        for j, (family, a, b) in enumerate(COVARIATE_DISTRIBUTIONS, start=1):
            col = data.X[:, j]
            if family == "normal":
                expected_mean, expected_sd = a, b
            else:
                expected_mean, expected_sd = (a + b) / 2, (b - a) / np.sqrt(12)
            assert col.mean() == pytest.approx(expected_mean, abs=0.05 * max(expected_sd, 1))
            assert col.std() == pytest.approx(expected_sd, rel=0.05)

    @pytest.mark.parametrize(
        "N, T", [(0, 5), (5, 0), (-1, 5), (2.5, 5), (5, "3"), (True, 5)]
    )
    def test_invalid_sizes_raise(self, N, T):
        with pytest.raises(InvalidArgumentError):
            generate(N, T, seed=0)

    def test_invalid_argument_is_value_error(self):
        with pytest.raises(ValueError, match="cross_section_size must be positive"):
            generate(0, 1, seed=0)
