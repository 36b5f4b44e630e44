"""DataFrame entry point for partitioned logistic regression.

:func:`fit_logistic_regression` validates a pandas (or Polars) design
matrix and binary response, cuts the rows into contiguous partitions,
and runs an :class:`~streaming_logit.engine.AggregationEngine` over
them.  The partitions stand in for the chunks a distributed engine
would hand to each worker: every partition is accumulated
independently, so the fitted coefficients do not depend on how many
partitions there are or in which order they are merged (up to
floating-point rounding).

Model
~~~~~
    P(Y = 1 | x) = σ(xᵀc) = 1 / (1 + exp(−xᵀc))

fitted by maximum likelihood, without regularisation.  When
``fit_intercept=True`` a ``const`` column of ones is prepended, and
the intercept is reported as the first coefficient, matching
``statsmodels.Logit`` on ``sm.add_constant(X)``.
"""

from __future__ import annotations

from dataclasses import replace

import numpy as np
import pandas as pd

from ._compat import DataFrameLike, _ensure_pandas_df
from ._exceptions import NonFiniteInputError
from ._results import LogisticRegressionResult
from .engine import AggregationEngine


def _validate_binary(y_values: np.ndarray) -> np.ndarray:
    """Return *y_values* as booleans; reject anything but {0, 1}."""
    if y_values.dtype.kind == "b":
        return y_values
    if not np.issubdtype(y_values.dtype, np.number):
        raise ValueError(
            "y must be boolean or numeric with values in {0, 1}, "
            f"got dtype {y_values.dtype}."
        )
    if not np.all(np.isfinite(y_values)):
        raise NonFiniteInputError("Dependent variables are not finite.")
    if not np.all(np.isin(y_values, [0, 1])):
        raise ValueError("y must be binary with values in {0, 1}.")
    return y_values.astype(bool)


def _partition_indices(
    n_samples: int,
    n_partitions: int,
    random_state: int | None,
) -> list[np.ndarray]:
    """Contiguous row blocks, optionally visited in shuffled order."""
    blocks = np.array_split(np.arange(n_samples), n_partitions)
    if random_state is not None:
        order = np.random.default_rng(random_state).permutation(n_partitions)
        blocks = [blocks[i] for i in order]
    return blocks


def fit_logistic_regression(
    X: DataFrameLike,
    y: DataFrameLike,
    *,
    solver: str | None = None,
    fit_intercept: bool = True,
    max_iter: int = 20,
    tolerance: float = 1e-4,
    n_partitions: int = 1,
    n_jobs: int = 1,
    random_state: int | None = None,
) -> LogisticRegressionResult:
    """Fit a binary logistic regression over partitioned rows.

    Args:
        X: Feature matrix of shape ``(n_samples, n_features)``.
            Accepts pandas or Polars DataFrames.
        y: Binary target of shape ``(n_samples,)``: booleans or
            values in ``{0, 1}``.  Accepts a pandas/Polars DataFrame
            with one column or a Series.
        solver: ``"cg"`` or ``"irls"``; ``None`` uses the configured
            default (see :func:`~streaming_logit.get_solver`).
        fit_intercept: Prepend a ``const`` column of ones.
        max_iter: Maximum number of iterations (``final`` calls).
        tolerance: Stop once the absolute change in log-likelihood
            between consecutive iterations is below this value.
        n_partitions: Number of contiguous row chunks to accumulate
            independently.
        n_jobs: joblib workers for the accumulate phase.
        random_state: When given, the partitions are merged in a
            shuffled order drawn from this seed.

    Returns:
        A :class:`LogisticRegressionResult` with coefficients, Wald
        diagnostics, and fit metadata (``feature_names``, ``solver``,
        ``n_iterations``, ``converged``, ``log_likelihood_history``).

    Raises:
        ValueError: On empty or mismatched inputs, non-numeric
            features, a non-binary target, or an invalid
            *n_partitions*.
        NonFiniteInputError: If *X* or *y* contains NaN or ±inf.
        DegenerateStepError: If the CG step length becomes undefined.
    """
    X = _ensure_pandas_df(X, name="X")
    y = _ensure_pandas_df(y, name="y")

    if y.shape[1] != 1:
        raise ValueError(f"y must have exactly one column, got {y.shape[1]}.")
    if X.shape[0] == 0:
        raise ValueError("X must contain at least one observation.")
    if X.shape[1] == 0:
        raise ValueError("X must contain at least one feature.")
    if X.shape[0] != y.shape[0]:
        raise ValueError(
            f"X has {X.shape[0]} rows but y has {y.shape[0]}; they must match."
        )
    non_numeric = [
        str(c) for c in X.columns if not pd.api.types.is_numeric_dtype(X[c])
    ]
    if non_numeric:
        raise ValueError(
            f"All feature columns must be numeric; non-numeric: {non_numeric}."
        )

    n_samples = X.shape[0]
    if not 1 <= n_partitions <= n_samples:
        raise ValueError(
            f"n_partitions must be between 1 and the number of rows "
            f"({n_samples}), got {n_partitions}."
        )

    y_values = _validate_binary(np.ravel(y.to_numpy()))
    X_values = X.to_numpy(dtype=np.float64)
    feature_names = [str(c) for c in X.columns]
    if fit_intercept:
        X_values = np.column_stack([np.ones(n_samples), X_values])
        feature_names = ["const", *feature_names]

    partitions = [
        (y_values[idx], X_values[idx])
        for idx in _partition_indices(n_samples, n_partitions, random_state)
    ]

    engine = AggregationEngine(
        solver, max_iter=max_iter, tolerance=tolerance, n_jobs=n_jobs
    )
    run = engine.fit(partitions)

    return replace(
        engine.solver.result(run.state),
        feature_names=feature_names,
        n_iterations=run.n_iterations,
        converged=run.converged,
        log_likelihood_history=run.log_likelihood_history,
    )


__all__ = ["fit_logistic_regression"]
