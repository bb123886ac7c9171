import numpy as np

from dataclasses import dataclass
from numbers import Integral
from numpy.typing import NDArray
from typing import Literal

from mlreg._exceptions import InvalidArgumentError

TRUE_COEF = np.array(
    [2.15, 0.10, 0.50, 0.10, 0.75, 1.20, 0.10, 0.50, 0.10, 0.75, 1.20, 0.10, 0.50, 0.10, 0.75, 1.20]
)
TRUE_SCALE = 0.3
TRUE_COEF.flags.writeable = False

# (family, a, b): normal -> (loc, scale), uniform -> (low, high)
COVARIATE_DISTRIBUTIONS: tuple[tuple[Literal["normal", "uniform"], float, float], ...] = (
    ("normal", 0.0, 1.0),
    ("uniform", 0.0, 1.0),
    ("normal", 1.0, 0.5),
    ("uniform", -1.0, 1.0),
    ("normal", 2.0, 2.0),
    ("normal", -0.5, 1.5),
    ("uniform", 0.0, 2.0),
    ("normal", 0.5, 0.25),
    ("uniform", -2.0, 0.0),
    ("normal", 0.0, 3.0),
    ("normal", 1.5, 1.0),
    ("uniform", 1.0, 2.0),
    ("normal", -1.0, 0.75),
    ("uniform", -0.5, 0.5),
    ("normal", 0.25, 2.5),
)


@dataclass(frozen=True)
class TrueParameters:
    """Data-generating coefficients and error standard deviation"""

    coef: NDArray[np.float64]  # (n_params,)
    scale: float

    @property
    def params(self) -> NDArray[np.float64]:
        return np.append(self.coef, self.scale)


@dataclass(frozen=True)
class Dataset:
    """
    Synthetic panel of N entities observed over T periods.

    Rows are ordered entity-major: row `i * T + t` is entity `i` in period `t`.
    The first column of `X` is the constant.

    Attributes
    ----------
    X : ndarray, shape (N * T, n_params)
        Design matrix (read-only).
    y : ndarray, shape (N * T,)
        Response vector (read-only).
    cross_section_size : int
        Number of entities N.
    panel_length : int
        Number of periods T.
    feature_names : tuple of str
        Column names of `X`, starting with "const".
    """

    X: NDArray[np.float64]
    y: NDArray[np.float64]
    cross_section_size: int
    panel_length: int
    feature_names: tuple[str, ...]

    @property
    def n_obs(self) -> int:
        return self.X.shape[0]

    @property
    def n_params(self) -> int:
        return self.X.shape[1]

    @property
    def entity(self) -> NDArray[np.intp]:
        return np.repeat(np.arange(self.cross_section_size), self.panel_length)

    @property
    def period(self) -> NDArray[np.intp]:
        return np.tile(np.arange(self.panel_length), self.cross_section_size)


def _check_size(name: str, value) -> int:
    if isinstance(value, bool) or not isinstance(value, Integral):
        raise InvalidArgumentError(f"{name} must be an integer, got {value!r}")
    if value <= 0:
        raise InvalidArgumentError(f"{name} must be positive, got {value}")
    return int(value)


def generate(
    cross_section_size: int, panel_length: int, seed: int
) -> tuple[Dataset, TrueParameters]:
    """
    Simulate a panel from the linear-normal model with known parameters.

    Draws come from `numpy.random.default_rng(seed)` (PCG64) in a fixed order:
    each covariate column in turn (left to right, `n_obs` draws each), then
    the `n_obs` noise draws. The same arguments always reproduce the same
    dataset bit for bit.

    Parameters
    ----------
    cross_section_size : int
        Number of entities N (positive).
    panel_length : int
        Number of periods T (positive).
    seed : int
        Seed for the pseudo-random generator.

    Returns
    -------
    Dataset
        Design matrix with a leading constant and 15 covariates, and response.
    TrueParameters
        Coefficients `TRUE_COEF` and error scale `TRUE_SCALE`.
    """
    N = _check_size("cross_section_size", cross_section_size)
    T = _check_size("panel_length", panel_length)
    n_obs = N * T

    rng = np.random.default_rng(seed)
    X = np.empty((n_obs, 1 + len(COVARIATE_DISTRIBUTIONS)), dtype=np.float64)
    X[:, 0] = 1.0
    for j, (family, a, b) in enumerate(COVARIATE_DISTRIBUTIONS, start=1):
        if family == "normal":
            X[:, j] = rng.normal(a, b, n_obs)
        else:
            X[:, j] = rng.uniform(a, b, n_obs)

    noise = rng.normal(0.0, TRUE_SCALE, n_obs)
    y = X @ TRUE_COEF + noise

    X.flags.writeable = False
    y.flags.writeable = False
    coef = TRUE_COEF.copy()
    coef.flags.writeable = False

    feature_names = ("const",) + tuple(
        f"x{j}" for j in range(1, len(COVARIATE_DISTRIBUTIONS) + 1)
    )
    dataset = Dataset(
        X=X,
        y=y,
        cross_section_size=N,
        panel_length=T,
        feature_names=feature_names,
    )
    return dataset, TrueParameters(coef=coef, scale=TRUE_SCALE)
