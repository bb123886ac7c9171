import numpy as np
from numba import njit
from numpy.typing import NDArray

LOG_2PI = np.log(2.0 * np.pi)


@njit(fastmath=True, cache=True)
def sum_squares(
    X: NDArray[np.float64],
    y: NDArray[np.float64],
    beta: NDArray[np.float64],
    resid: NDArray[np.float64],
) -> float:
    n = X.shape[0]
    k = X.shape[1]
    ssr = 0.0
    for i in range(n):
        total = y[i]
        for j in range(k):
            total -= X[i, j] * beta[j]
        resid[i] = total
        ssr += total * total
    return ssr


# no fastmath: sigma may be non-positive while the solver halves a step
@njit(cache=True)
def compute_normal_quantities(
    X: NDArray[np.float64],
    y: NDArray[np.float64],
    params: NDArray[np.float64],
    workspace: tuple[NDArray[np.float64], ...],  # resid, score, hessian, fisher_info
) -> float:
    resid, score, hessian, fisher_info = workspace

    n = X.shape[0]
    k = X.shape[1]
    sigma = params[k]
    s2 = sigma * sigma

    ssr = sum_squares(X, y, params[:k], resid)

    # lower triangle of X'X accumulated into hessian, X'r into score
    for a in range(k + 1):
        score[a] = 0.0
        for b in range(k + 1):
            hessian[a, b] = 0.0
            fisher_info[a, b] = 0.0
    for i in range(n):
        r_i = resid[i]
        for a in range(k):
            x_ia = X[i, a]
            score[a] += x_ia * r_i
            for b in range(a + 1):
                hessian[a, b] += x_ia * X[i, b]

    for a in range(k):
        for b in range(a + 1):
            xtx = hessian[a, b]
            fisher_info[a, b] = xtx / s2
            fisher_info[b, a] = xtx / s2
            hessian[a, b] = -xtx / s2
            hessian[b, a] = -xtx / s2
        cross = -2.0 * score[a] / (s2 * sigma)
        hessian[a, k] = cross
        hessian[k, a] = cross
        score[a] = score[a] / s2

    score[k] = -n / sigma + ssr / (s2 * sigma)
    hessian[k, k] = n / s2 - 3.0 * ssr / (s2 * s2)
    fisher_info[k, k] = 2.0 * n / s2

    return -0.5 * n * LOG_2PI - n * np.log(sigma) - ssr / (2.0 * s2)
