"""Formatted ASCII table display for logistic-regression results.

The table mirrors the statsmodels ``Logit`` summary style: a header
panel with fit metadata (solver, rows, iterations, log-likelihood)
and a coefficient panel with Wald standard errors, z-statistics,
p-values, odds ratios and confidence intervals.
"""

from __future__ import annotations

import math
import textwrap

from ._results import LogisticRegressionResult
from .diagnostics import wald_confidence_intervals


def _truncate(name: str, max_len: int) -> str:
    """Truncate *name* to *max_len*, appending ``'...'`` if needed."""
    if len(name) <= max_len:
        return name
    return name[: max_len - 3] + "..."


def _fmt_diag_val(val: object) -> str:
    """Header value as text; ``None`` and NaN render as ``'N/A'``."""
    missing = val is None or (isinstance(val, float) and math.isnan(val))
    return "N/A" if missing else str(val)


def _fmt_num(val: float, width: int, precision: int = 4) -> str:
    """Right-aligned fixed-point number, ``'nan'``/``'inf'`` passed through."""
    return f"{val:>{width}.{precision}f}"


def print_results_table(
    result: LogisticRegressionResult,
    *,
    title: str = "Logistic Regression Results",
    confidence_level: float = 0.95,
) -> None:
    """Print a fitted model in a formatted ASCII table.

    Args:
        result: Result returned by
            :func:`~streaming_logit.fit_logistic_regression` or by a
            solver's ``result`` operation.
        title: Title for the output table.
        confidence_level: Coverage of the Wald intervals shown in the
            last two columns.
    """
    w = len(result.coef)
    feature_names = result.feature_names or [f"x{i + 1}" for i in range(w)]

    print("=" * 80)
    for line in textwrap.wrap(title, width=78):
        print(f"{line:^80}")
    print("=" * 80)

    col1 = 40
    col2 = 38
    converged = result.converged
    converged_str = "N/A" if converged is None else str(converged)
    print(
        f"{'Solver:':<16}{_fmt_diag_val(result.solver):<{col1 - 16}}"
        f"{'No. Observations:':>{col2 - 11}} {result.num_rows:>10}"
    )
    print(
        f"{'Converged:':<16}{converged_str:<{col1 - 16}}"
        f"{'No. Coefficients:':>{col2 - 11}} {w:>10}"
    )
    print(
        f"{'Iterations:':<16}{_fmt_diag_val(result.n_iterations):<{col1 - 16}}"
        f"{'Log-Likelihood:':>{col2 - 11}} {result.log_likelihood:>10.4f}"
    )
    print("-" * 80)

    # ── Table geometry (W = 80 chars) ─────────────────────────── #
    #
    #   Feature (14) | Coef (10) | Std Err (10) | z (8) | P>|z| (8)
    #   | Odds Ratio (10) | lower (10) | upper (10)  =  80
    fc = 14
    ci = wald_confidence_intervals(result, confidence_level)["coef"]
    lo_hdr = f"[{(1 - confidence_level) / 2:.3f}"
    hi_hdr = f"{1 - (1 - confidence_level) / 2:.3f}]"
    print(
        f"{'Feature':<{fc}}{'Coef':>10}{'Std Err':>10}{'z':>8}{'P>|z|':>8}"
        f"{'Odds Ratio':>10}{lo_hdr:>10}{hi_hdr:>10}"
    )
    print("-" * 80)

    for i, feat in enumerate(feature_names):
        print(
            f"{_truncate(feat, fc - 1):<{fc}}"
            f"{_fmt_num(result.coef[i], 10)}"
            f"{_fmt_num(result.std_err[i], 10)}"
            f"{_fmt_num(result.z_stats[i], 8, 3)}"
            f"{_fmt_num(result.p_values[i], 8, 3)}"
            f"{_fmt_num(result.odds_ratios[i], 10)}"
            f"{_fmt_num(ci[i, 0], 10)}"
            f"{_fmt_num(ci[i, 1], 10)}"
        )

    if converged is False:
        print("-" * 80)
        print("Notes:")
        print(
            textwrap.fill(
                "  [1] The solver stopped at the iteration cap before the "
                "log-likelihood change fell below the tolerance; estimates "
                "may not be at the maximum.",
                width=80,
                subsequent_indent="      ",
            )
        )
    print("=" * 80)


__all__ = ["print_results_table"]
