from mlreg._exceptions import (
    DegenerateInputError,
    InvalidArgumentError,
    MLRegError,
    OptimizationFailure,
    SingularMatrixError,
)
from mlreg._utils import OptimizationResult, ParameterEstimate, SolverStatus
from mlreg.inference import (
    ComparisonRow,
    ComparisonTable,
    compare,
    covariance_from_hessian,
    standard_errors_from_hessian,
)
from mlreg.likelihood import NUMBA_AVAILABLE, log_likelihood
from mlreg.mle import LinearNormalMLE, fit_ml, maximize_likelihood
from mlreg.ols import fit_ols
from mlreg.simulate import TRUE_COEF, TRUE_SCALE, Dataset, TrueParameters, generate

__all__ = [
    "NUMBA_AVAILABLE",
    "TRUE_COEF",
    "TRUE_SCALE",
    "ComparisonRow",
    "ComparisonTable",
    "Dataset",
    "DegenerateInputError",
    "InvalidArgumentError",
    "LinearNormalMLE",
    "MLRegError",
    "OptimizationFailure",
    "OptimizationResult",
    "ParameterEstimate",
    "SingularMatrixError",
    "SolverStatus",
    "TrueParameters",
    "compare",
    "covariance_from_hessian",
    "fit_ml",
    "fit_ols",
    "generate",
    "log_likelihood",
    "maximize_likelihood",
    "standard_errors_from_hessian",
]
