"""
Benchmark: closed-form OLS vs. likelihood maximization.

Measures fit time of OLS and of each ML solver as the panel grows, and checks
that the ML estimates and standard errors agree with OLS.

Run with: python benchmark_mle.py [--output results.csv]
"""

import argparse
import platform as plat
import sys
import time
from pathlib import Path

import numpy as np
import pandas as pd

from mlreg import NUMBA_AVAILABLE, fit_ml, fit_ols, generate

# -----------------------------------------------------------------------------
# Benchmark parameters
# -----------------------------------------------------------------------------
PANEL_LENGTH = 5
CROSS_SECTION_SIZES = [1_000, 2_500, 5_000, 10_000, 20_000]
N_RUNS = 5
BASE_SEED = 1234

SOLVERS = ["trust-constr", "newton-raphson"]
BACKENDS = ["numpy", "numba"] if NUMBA_AVAILABLE else ["numpy"]

# Tolerance for checking agreement between ML and OLS
COEF_RTOL = 1e-2
BSE_RTOL = 1e-2


# -----------------------------------------------------------------------------
# Timing
# -----------------------------------------------------------------------------
def time_fit(fit, n_runs: int) -> tuple[float, object]:
    """Return the median wall time over `n_runs` calls and the last result."""
    times = []
    result = None
    for _ in range(n_runs):
        start = time.perf_counter()
        result = fit()
        times.append(time.perf_counter() - start)
    return float(np.median(times)), result


def run_benchmarks(n_runs: int) -> pd.DataFrame:
    rows = []
    for N in CROSS_SECTION_SIZES:
        data, _ = generate(N, PANEL_LENGTH, seed=BASE_SEED)
        ols_time, ols = time_fit(lambda: fit_ols(data.X, data.y), n_runs)
        rows.append(
            {
                "n_obs": data.n_obs,
                "method": "ols",
                "backend": "",
                "seconds": ols_time,
                "max_coef_rel_diff": 0.0,
                "max_bse_rel_diff": 0.0,
            }
        )
        print(f"n_obs={data.n_obs:>7}  ols                      {ols_time:8.4f}s")

        for solver in SOLVERS:
            for backend in BACKENDS:
                # first call compiles the numba kernel
                if backend == "numba":
                    fit_ml(data.X, data.y, solver=solver, backend=backend)
                ml_time, ml = time_fit(
                    lambda: fit_ml(data.X, data.y, solver=solver, backend=backend),
                    n_runs,
                )
                coef_diff = np.max(np.abs(ml.coef - ols.coef) / np.abs(ols.coef))
                bse_diff = np.max(np.abs(ml.bse - ols.bse) / ols.bse)
                rows.append(
                    {
                        "n_obs": data.n_obs,
                        "method": solver,
                        "backend": backend,
                        "seconds": ml_time,
                        "max_coef_rel_diff": coef_diff,
                        "max_bse_rel_diff": bse_diff,
                    }
                )
                flag = "" if coef_diff < COEF_RTOL and bse_diff < BSE_RTOL else "  MISMATCH"
                print(
                    f"n_obs={data.n_obs:>7}  {solver:<15} {backend:<8} "
                    f"{ml_time:8.4f}s{flag}"
                )
    return pd.DataFrame(rows)


def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument(
        "--output",
        type=Path,
        default=Path(__file__).parent / "mle_results.csv",
        help="CSV file for the results",
    )
    parser.add_argument("--runs", type=int, default=N_RUNS, help="timed runs per fit")
    args = parser.parse_args()

    print(f"Python {plat.python_version()} on {plat.system()} {plat.machine()}")
    print(f"numba available: {NUMBA_AVAILABLE}")

    df = run_benchmarks(args.runs)
    df.to_csv(args.output, index=False)
    print(f"Results written to {args.output}")

    mismatched = df[
        (df["max_coef_rel_diff"] >= COEF_RTOL) | (df["max_bse_rel_diff"] >= BSE_RTOL)
    ]
    return 1 if len(mismatched) else 0


if __name__ == "__main__":
    sys.exit(main())
