from typing import Literal

import numpy as np
import scipy.stats
from numpy.typing import ArrayLike, NDArray

from mlreg._utils import format_number
from mlreg.inference import covariance_from_hessian
from mlreg.mle import maximize_likelihood


class NormalMLE:
    def __init__(
        self,
        endog: ArrayLike,
        exog: ArrayLike,
        *,
        fixed: dict[int, float] | None = None,
        **kwargs,
    ):
        self.endog = np.asarray(endog, dtype=np.float64)
        self.exog = np.asarray(exog, dtype=np.float64)
        self.fixed = fixed

        missing = kwargs.pop("missing", "none")

        if kwargs:
            raise TypeError(
                f"__init__() got unexpected keyword arguments: {list(kwargs.keys())}"
            )

        if missing == "drop":
            raise NotImplementedError("missing='drop' is not supported")
        elif missing == "raise":
            if np.isnan(self.endog).any() or np.isnan(self.exog).any():
                raise ValueError("Input contains NaN values")

        if hasattr(exog, "columns"):
            self.exog_names = list(exog.columns)
        else:
            self.exog_names = [f"x{i + 1}" for i in range(self.exog.shape[1])]

    @property
    def nobs(self) -> int:
        return self.exog.shape[0]

    def __repr__(self) -> str:
        return f"<NormalMLE: nobs={self.nobs}, k={self.exog.shape[1]}>"

    def fit(
        self,
        start_params: ArrayLike | None = None,
        method: Literal["trust-constr", "newton"] = "trust-constr",
        maxiter: int | None = None,
        backend: Literal["auto", "numpy", "numba"] = "auto",
        **kwargs,  # gtol, xtol
    ):
        gtol = kwargs.pop("gtol", None)
        xtol = kwargs.pop("xtol", None)
        if kwargs:
            raise TypeError(
                f"fit() got unexpected keyword arguments: {list(kwargs.keys())}"
            )
        if method not in ("trust-constr", "newton"):
            raise ValueError("method must be 'trust-constr' or 'newton'.")

        result = maximize_likelihood(
            self.exog,
            self.endog,
            initial_guess=start_params,
            fixed=self.fixed,
            solver="newton-raphson" if method == "newton" else "trust-constr",
            max_iter=maxiter,
            gtol=gtol,
            xtol=xtol,
            backend=backend,
        )
        return NormalMLEResults(self, result)


class NormalMLEResults:
    def __init__(self, model: NormalMLE, result):
        self.model = model
        self.result = result
        self._cov = covariance_from_hessian(-result.hessian, free=result.free)

    @property
    def params(self) -> NDArray[np.float64]:
        return self.result.coef

    @property
    def scale(self) -> float:
        return self.result.scale

    @property
    def bse(self) -> NDArray[np.float64]:
        return np.sqrt(np.diag(self._cov))[:-1]

    @property
    def scale_bse(self) -> float:
        return float(np.sqrt(self._cov[-1, -1]))

    @property
    def tvalues(self) -> NDArray[np.float64]:
        return self.params / self.bse

    @property
    def pvalues(self) -> NDArray[np.float64]:
        return 2 * scipy.stats.norm.sf(np.abs(self.tvalues))

    @property
    def llf(self) -> float:
        return self.result.loglik

    @property
    def k_free(self) -> int:
        return int(self.result.free.sum())

    @property
    def aic(self) -> float:
        return -2.0 * self.llf + 2.0 * self.k_free

    @property
    def bic(self) -> float:
        return -2.0 * self.llf + np.log(self.nobs) * self.k_free

    @property
    def converged(self) -> bool:
        return self.result.converged

    @property
    def hessian_kind(self) -> str:
        return self.result.hessian_kind

    @property
    def nobs(self) -> int:
        return self.model.exog.shape[0]

    @property
    def df_model(self) -> int:
        return int(self.result.free[:-1].sum()) - 1

    @property
    def df_resid(self) -> int:
        return self.nobs - int(self.result.free[:-1].sum())

    @property
    def mle_retvals(self) -> dict:
        return {
            "converged": self.converged,
            "iterations": self.result.n_iter,
            "status": self.result.status.value,
        }

    @property
    def fittedvalues(self) -> NDArray[np.float64]:
        return self.predict()

    def __repr__(self) -> str:
        return f"<NormalMLEResults: nobs={self.nobs}, converged={self.converged}>"

    def predict(self, exog: ArrayLike | None = None) -> NDArray[np.float64]:
        if exog is None:
            exog = self.model.exog
        return np.asarray(exog, dtype=np.float64) @ self.params

    def cov_params(self) -> NDArray[np.float64]:
        return self._cov[:-1, :-1]

    def conf_int(self, alpha: float = 0.05) -> NDArray[np.float64]:
        z = scipy.stats.norm.ppf(1 - alpha / 2)
        lower = self.params - z * self.bse
        upper = self.params + z * self.bse
        return np.column_stack([lower, upper])

    def _coef_columns(self, alpha: float) -> list[str]:
        return ["coef", "std err", "z", "P>|z|", f"[{alpha / 2:.3g}", f"{1 - alpha / 2:.3g}]"]

    def _coef_table(self, alpha: float) -> NDArray[np.float64]:
        # one row per coefficient: estimate, SE, z, p-value, CI bounds
        return np.column_stack(
            [self.params, self.bse, self.tvalues, self.pvalues, self.conf_int(alpha)]
        )

    def summary(self, alpha: float = 0.05) -> "NormalMLESummary":
        """Model information followed by the coefficient table and the scale."""
        width = 78
        info = [
            ("Solver:", self.result.solver.title(), "No. Observations:", self.nobs),
            ("Converged:", self.converged, "Df Model:", self.df_model),
            ("No. Iterations:", self.result.n_iter, "Df Residual:", self.df_resid),
            ("Log-Likelihood:", f"{self.llf:.3f}", "AIC:", f"{self.aic:.3f}"),
            ("Status:", self.result.status.value, "BIC:", f"{self.bic:.3f}"),
        ]

        lines = ["Linear-Normal Maximum Likelihood Results".center(width), "=" * width]
        for l_lbl, l_val, r_lbl, r_val in info:
            lines.append(f"{l_lbl:<18} {str(l_val):<20}{r_lbl:<18} {str(r_val):>10}")
        lines.append("=" * width)

        lines.append(f"{'':>12}" + "".join(f"{c:>11}" for c in self._coef_columns(alpha)))
        lines.append("-" * width)
        table = self._coef_table(alpha)
        for name, row in zip(self.model.exog_names, table):
            lines.append(f"{name[:12]:>12}" + "".join(format_number(v, width=11) for v in row))
        lines.append(
            f"{'sigma':>12}" + format_number(self.scale, width=11)
            + format_number(self.scale_bse, width=11)
        )
        lines.append("=" * width)

        if self.hessian_kind == "lagrangian":
            names = self.model.exog_names + ["sigma"]
            fixed = [names[i] for i in sorted(self.result.multipliers)]
            lines.append(
                "Std. errors: inverse negative Lagrangian Hessian over free parameters"
            )
            lines.append(f"Fixed: {', '.join(fixed)}")
        else:
            lines.append("Std. errors: inverse negative Hessian | CIs: Wald")

        return NormalMLESummary("\n".join(lines))

    def summary_frame(self, alpha: float = 0.05):
        """Return the coefficient table as a pandas DataFrame."""
        try:
            import pandas as pd
        except ImportError as e:
            raise ImportError("pandas is required for summary_frame()") from e

        return pd.DataFrame(
            self._coef_table(alpha),
            columns=self._coef_columns(alpha),
            index=self.model.exog_names,
        )


class NormalMLESummary:
    def __init__(self, text: str):
        self._text = text

    def __str__(self) -> str:
        return self._text

    def as_text(self) -> str:
        return self._text
