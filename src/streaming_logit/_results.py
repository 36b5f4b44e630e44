"""Result container for a logistic-regression fit.

:class:`LogisticRegressionResult` is a frozen snapshot of a finalized
state.  Besides attribute access it offers:

* ``result["p_values"]``, ``result.get("converged")`` and
  ``"std_err" in result`` for code that treats results as mappings;
* :meth:`~LogisticRegressionResult.as_tuple` for the positional
  ``(coef, log_likelihood, std_err, z_stats, p_values, odds_ratios)``
  form;
* ``to_dict()`` for a JSON-ready copy with NumPy values unwrapped.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any

import numpy as np

# ------------------------------------------------------------------ #
# Serialisation helper
# ------------------------------------------------------------------ #


def _numpy_to_python(obj: Any) -> Any:
    """Unwrap arrays and NumPy scalars, recursing into lists and tuples."""
    if isinstance(obj, np.ndarray):
        return obj.tolist()
    if isinstance(obj, np.generic):
        return obj.item()
    if isinstance(obj, (list, tuple)):
        return type(obj)(_numpy_to_python(item) for item in obj)
    return obj


# ------------------------------------------------------------------ #
# Mapping-style access
# ------------------------------------------------------------------ #


class _DictAccessMixin:
    """Read-only mapping view over a dataclass's attributes."""

    def __getitem__(self, key: str) -> Any:
        try:
            return getattr(self, key)
        except AttributeError:
            raise KeyError(key) from None

    def get(self, key: str, default: Any = None) -> Any:
        return getattr(self, key, default)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and hasattr(self, key)

    def to_dict(self) -> dict[str, Any]:
        """Field-by-field copy with NumPy types converted to Python."""
        return {
            f.name: _numpy_to_python(getattr(self, f.name))
            for f in fields(self)  # type: ignore[arg-type]
        }


# ------------------------------------------------------------------ #
# LogisticRegressionResult
# ------------------------------------------------------------------ #


@dataclass(frozen=True, eq=False)
class LogisticRegressionResult(_DictAccessMixin):
    """Coefficients and Wald diagnostics of a finalized state.

    Returned by the ``result`` operation of both solvers and by
    :func:`~streaming_logit.fit_logistic_regression`.  The driver
    fields (``solver`` onwards) are ``None`` / empty when the result
    was produced directly from a state.
    """

    # ---- Estimates ---------------------------------------------------
    coef: np.ndarray
    """Coefficient estimates, shape ``(w,)``."""

    log_likelihood: float
    """Log-likelihood accumulated in the final iteration."""

    std_err: np.ndarray
    """Standard errors ``sqrt(diag(pinv(XᵀAX)))``, shape ``(w,)``."""

    z_stats: np.ndarray
    """Wald z-statistics ``coef / std_err``, shape ``(w,)``."""

    p_values: np.ndarray
    """Two-sided Wald p-values ``2·Φ(−|z|)``, shape ``(w,)``."""

    odds_ratios: np.ndarray
    """Odds ratios ``exp(coef)``, shape ``(w,)``."""

    num_rows: int
    """Number of rows accumulated in the final iteration."""

    # ---- Fit metadata (set by the driver) ----------------------------
    solver: str | None = None
    """``"cg"`` or ``"irls"``."""

    feature_names: list[str] | None = None
    """Column names, one per coefficient."""

    n_iterations: int | None = None
    """Number of finalized iterations."""

    converged: bool | None = None
    """Whether the log-likelihood distance fell below the tolerance."""

    log_likelihood_history: list[float] = field(default_factory=list)
    """Log-likelihood of each finalized iteration, in order."""

    def as_tuple(
        self,
    ) -> tuple[np.ndarray, float, np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
        """``(coef, log_likelihood, std_err, z_stats, p_values, odds_ratios)``."""
        return (
            self.coef,
            self.log_likelihood,
            self.std_err,
            self.z_stats,
            self.p_values,
            self.odds_ratios,
        )


__all__ = ["LogisticRegressionResult"]
