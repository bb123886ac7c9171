import numpy as np
import scipy

from numpy.typing import ArrayLike
from sklearn.utils import assert_all_finite

from mlreg._exceptions import DegenerateInputError, SingularMatrixError
from mlreg._utils import ParameterEstimate, as_design
from mlreg.likelihood import log_likelihood


def fit_ols(X: ArrayLike, y: ArrayLike) -> ParameterEstimate:
    """
    Ordinary least squares with homoskedastic standard errors.

    Solves R β = Qᵀy from the reduced QR decomposition of X, so XᵀX is
    never formed or inverted explicitly.

    Parameters
    ----------
    X : array-like of shape (n_obs, n_params)
        Design matrix (include a constant column for an intercept).
    y : array-like of shape (n_obs,)
        Response vector.

    Returns
    -------
    ParameterEstimate
        `coef` = β̂, `scale` = sqrt(e'e / (n_obs - n_params)), `bse` holds
        scale * sqrt(diag((XᵀX)⁻¹)) for the coefficients followed by the
        asymptotic SE of the scale, scale / sqrt(2 (n_obs - n_params)).

    Raises
    ------
    DegenerateInputError
        If n_obs <= n_params.
    SingularMatrixError
        If X does not have full column rank.
    """
    X, y = as_design(X, y)
    n, k = X.shape
    if n <= k:
        raise DegenerateInputError(
            f"OLS needs more observations than parameters, got n_obs={n}, n_params={k}"
        )
    assert_all_finite(X, input_name="X")
    assert_all_finite(y, input_name="y")

    Q, R = np.linalg.qr(X, mode="reduced")
    with np.errstate(divide="ignore", invalid="ignore"):
        rcond = 1.0 / np.linalg.cond(R)
    if not rcond >= k * np.finfo(np.float64).eps:
        raise SingularMatrixError("XᵀX is singular: X does not have full column rank")

    coef = scipy.linalg.solve_triangular(R, Q.T @ y)
    resid = y - X @ coef
    dof = n - k
    scale = float(np.sqrt(resid @ resid / dof))

    # (XᵀX)⁻¹ = R⁻¹R⁻ᵀ, so its diagonal is the row-wise squared norm of R⁻¹
    R_inv = scipy.linalg.solve_triangular(R, np.eye(k))
    xtx_inv_diag = np.einsum("ij,ij->i", R_inv, R_inv)
    coef_bse = scale * np.sqrt(xtx_inv_diag)
    scale_bse = scale / np.sqrt(2.0 * dof)

    return ParameterEstimate(
        method="ols",
        coef=coef,
        scale=scale,
        bse=np.append(coef_bse, scale_bse),
        loglik=log_likelihood(np.append(coef, scale), X, y),
    )
