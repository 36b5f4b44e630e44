"""Row validation and state start-up shared by both solvers.

Labels arrive as booleans (or 0/1 numbers) and are remapped to the
±1 coding used throughout the log-likelihood formulas:

    P[Y = y | x] = σ(y · xᵀc),   y ∈ {−1, +1}

Validation runs before anything is accumulated.  A NaN that slipped
into the information matrix would only surface much later, inside the
pseudo-inverse, where LAPACK's SVD may fail to converge.  It is therefore
rejected at the row.
"""

from __future__ import annotations

import math

import numpy as np

from .._exceptions import IncompatibleStatesError, NonFiniteInputError
from .._state import EmptyState, State


def label_sign(y: object) -> float:
    """Map a boolean-like label to ``+1.0`` / ``-1.0``.

    Raises:
        NonFiniteInputError: If *y* is a NaN or infinite number.
    """
    if isinstance(y, (bool, np.bool_)):
        return 1.0 if y else -1.0
    value = float(y)  # type: ignore[arg-type]
    if not math.isfinite(value):
        raise NonFiniteInputError("Dependent variables are not finite.")
    return 1.0 if value else -1.0


def label_signs(y: np.ndarray) -> np.ndarray:
    """Vectorised :func:`label_sign` for a chunk of labels.

    Raises:
        ValueError: If *y* is not one-dimensional.
        NonFiniteInputError: If *y* contains NaN or ±inf.
    """
    y = np.asarray(y)
    if y.ndim != 1:
        raise ValueError(
            f"Labels must be one-dimensional, got shape {y.shape}."
        )
    if y.dtype.kind == "b":
        return np.where(y, 1.0, -1.0)
    values = y.astype(np.float64)
    if not np.all(np.isfinite(values)):
        raise NonFiniteInputError("Dependent variables are not finite.")
    return np.where(values != 0.0, 1.0, -1.0)


def feature_row(x: object) -> np.ndarray:
    """Coerce one feature vector to a finite float64 array.

    Raises:
        ValueError: If *x* is not one-dimensional or is empty.
        NonFiniteInputError: If *x* contains NaN or ±inf.
    """
    x = np.asarray(x, dtype=np.float64)
    if x.ndim != 1 or x.shape[0] == 0:
        raise ValueError(
            f"Feature vector must be one-dimensional and non-empty, "
            f"got shape {x.shape}."
        )
    if not np.all(np.isfinite(x)):
        raise NonFiniteInputError("Design matrix is not finite.")
    return x


def feature_matrix(X: object, n_rows: int) -> np.ndarray:
    """Coerce a chunk of feature vectors to a finite ``(n, w)`` array."""
    X = np.asarray(X, dtype=np.float64)
    if X.ndim != 2 or X.shape[1] == 0:
        raise ValueError(
            f"Feature matrix must be two-dimensional with at least one "
            f"column, got shape {X.shape}."
        )
    if X.shape[0] != n_rows:
        raise ValueError(
            f"Feature matrix has {X.shape[0]} rows but {n_rows} labels "
            "were given."
        )
    if not np.all(np.isfinite(X)):
        raise NonFiniteInputError("Design matrix is not finite.")
    return X


def start_state(state: State, width: int, previous: State | None, state_cls):
    """Return the populated state a row of *width* accumulates into.

    * An empty *state* becomes a zero state of *width*, or, when a
      finalized *previous* state is supplied, a copy of *previous*
      with its accumulators reset.
    * A populated state with no rows yet also picks up *previous*
      when one is supplied.
    * Otherwise *state* is used as-is.

    Raises:
        IncompatibleStatesError: If *state* or *previous* belongs to
            another solver or has a different width than the row.
    """
    fresh = isinstance(state, EmptyState) or state.row_count == 0
    if not isinstance(state, (EmptyState, state_cls)):
        raise IncompatibleStatesError(
            f"Expected a {state_cls.__name__}, got {type(state).__name__}."
        )

    if fresh and previous is not None and not isinstance(previous, EmptyState):
        if not isinstance(previous, state_cls):
            raise IncompatibleStatesError(
                f"Previous state must be a {state_cls.__name__}, "
                f"got {type(previous).__name__}."
            )
        if previous.width != width:
            raise IncompatibleStatesError(
                f"Previous state has width {previous.width} but the row "
                f"has {width} features."
            )
        return previous.reset()

    if isinstance(state, EmptyState):
        return state_cls.zeros(width)

    if state.width != width:
        raise IncompatibleStatesError(
            f"State has width {state.width} but the row has {width} features."
        )
    return state
