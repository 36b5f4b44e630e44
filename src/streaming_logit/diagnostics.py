"""Wald diagnostics for a finalized transition state.

Both solvers leave the information matrix of their last iteration,

    I(c) = XᵀAX,   A = diag(aᵢ),   aᵢ = σ(xᵢᵀc)·σ(−xᵢᵀc),

in the finalized state.  I(c) is the negative Hessian of the
log-likelihood, so its inverse estimates the covariance of ĉ:

    SE(ĉⱼ)  = √[I(ĉ)⁻¹]ⱼⱼ
    zⱼ      = ĉⱼ / SE(ĉⱼ)
    pⱼ      = 2·Φ(−|zⱼ|)
    ORⱼ     = exp(ĉⱼ)

The inverse is the Moore–Penrose pseudo-inverse so that a
rank-deficient design (collinear or constant columns) yields finite
estimates for the identifiable directions instead of an exception.
Coefficients in the null space get a zero standard error and, by IEEE
rules, an infinite or NaN z-statistic; those are reported as-is.
"""

from __future__ import annotations

import numpy as np
from scipy import stats

from ._exceptions import IncompatibleStatesError
from ._results import LogisticRegressionResult
from ._state import EmptyState, State


def wald_statistics(
    coef: np.ndarray,
    log_likelihood: float,
    inverse_info: np.ndarray,
    num_rows: int = 0,
) -> LogisticRegressionResult:
    """Standard errors, z-statistics, p-values and odds ratios.

    Args:
        coef: Coefficient vector ``(w,)``.
        log_likelihood: Log-likelihood to report alongside.
        inverse_info: (Pseudo-)inverse of the information matrix
            ``(w, w)``.
        num_rows: Row count to report alongside.

    Returns:
        A :class:`LogisticRegressionResult` without driver metadata.
    """
    coef = np.asarray(coef, dtype=np.float64)
    with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
        std_err = np.sqrt(np.diag(inverse_info))
        z_stats = coef / std_err
        odds_ratios = np.exp(coef)
    p_values = 2.0 * stats.norm.cdf(-np.abs(z_stats))

    return LogisticRegressionResult(
        coef=coef.copy(),
        log_likelihood=float(log_likelihood),
        std_err=std_err,
        z_stats=z_stats,
        p_values=np.asarray(p_values, dtype=np.float64),
        odds_ratios=odds_ratios,
        num_rows=int(num_rows),
    )


def state_to_result(state: State) -> LogisticRegressionResult:
    """Diagnostics reporter shared by the CG and IRLS solvers.

    Raises:
        IncompatibleStatesError: If *state* is empty.
    """
    if isinstance(state, EmptyState):
        raise IncompatibleStatesError(
            "Cannot report results for an empty state (no rows were seen)."
        )
    inverse_info = np.linalg.pinv(state.info_matrix)
    return wald_statistics(
        state.coef, state.log_likelihood, inverse_info, state.row_count
    )


def wald_confidence_intervals(
    result: LogisticRegressionResult,
    confidence_level: float = 0.95,
) -> dict[str, np.ndarray]:
    """Wald confidence intervals for coefficients and odds ratios.

    ``ĉⱼ ± z_{1−α/2}·SE(ĉⱼ)``, exponentiated for the odds-ratio
    scale.

    Args:
        result: A result carrying ``coef`` and ``std_err``.
        confidence_level: Coverage in ``(0, 1)``.

    Returns:
        ``{"coef": (w, 2), "odds_ratio": (w, 2)}`` arrays of
        ``[lower, upper]`` bounds.

    Raises:
        ValueError: If *confidence_level* is not in ``(0, 1)``.
    """
    if not 0.0 < confidence_level < 1.0:
        raise ValueError(
            f"confidence_level must be in (0, 1), got {confidence_level}."
        )
    z_crit = stats.norm.ppf(0.5 + confidence_level / 2.0)
    half_width = z_crit * result.std_err
    bounds = np.column_stack([result.coef - half_width, result.coef + half_width])
    with np.errstate(over="ignore"):
        odds_bounds = np.exp(bounds)
    return {"coef": bounds, "odds_ratio": odds_bounds}


__all__ = ["state_to_result", "wald_confidence_intervals", "wald_statistics"]
