import numpy as np
import pytest

from mlreg import generate


@pytest.fixture(scope="session")
def panel():
    """Moderate panel (N=1000, T=5) used by most estimation tests."""
    return generate(cross_section_size=1000, panel_length=5, seed=1234)


@pytest.fixture(scope="session")
def large_panel():
    """Panel from the end-to-end scenario (N=10000, T=5, seed=1234)."""
    return generate(cross_section_size=10000, panel_length=5, seed=1234)


@pytest.fixture
def small_regression():
    """Three-parameter regression with 60 observations."""
    rng = np.random.default_rng(0)
    n = 60
    X = np.column_stack([np.ones(n), rng.standard_normal(n), rng.uniform(0, 2, n)])
    y = X @ np.array([1.0, -0.5, 2.0]) + rng.normal(0, 0.4, n)
    return X, y
