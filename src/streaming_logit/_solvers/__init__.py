"""Solver abstraction layer for the streaming logistic aggregate.

Each solver implements the :class:`SolverProtocol` interface: the five
operations of a commutative, associative streaming aggregate over
(label, feature-vector) rows.

    transition  fold one row (or one chunk) into a partial state
    merge       combine two partial states of the same iteration
    final       advance the model once per iteration
    distance    |Δ log-likelihood| between two finalized states
    result      coefficients plus Wald diagnostics

The driver (:class:`~streaming_logit.engine.AggregationEngine`)
dispatches to a solver via :func:`resolve_solver` rather than testing
the solver name at every call site.

Resolution follows the policy set by :mod:`._config`:

1. Programmatic override via :func:`~streaming_logit.set_solver`.
2. ``STREAMING_LOGIT_SOLVER`` environment variable.
3. The default, ``"irls"``.

Adding a new solver (e.g. L-BFGS) requires:

1. A new state class in :mod:`.._state` and a matching entry in its
   ``_STATE_TYPES`` table.
2. A new module ``_solvers/_lbfgs.py`` with a class implementing
   :class:`SolverProtocol`.
3. A branch in :func:`resolve_solver` and the name in
   ``_SOLVER_NAMES`` in :mod:`.._config`.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

import numpy as np

from .._config import get_solver
from .._results import LogisticRegressionResult
from .._state import State

# ------------------------------------------------------------------ #
# SolverProtocol
# ------------------------------------------------------------------ #


@runtime_checkable
class SolverProtocol(Protocol):
    """Interface that every iterative solver must implement.

    All operations are pure: they return new states and never mutate
    their arguments.

    Attributes:
        name: Short identifier (e.g. ``"cg"``, ``"irls"``).
    """

    @property
    def name(self) -> str: ...

    def initial_state(self) -> State:
        """The identity state a partition starts from."""
        ...

    def transition(
        self,
        state: State,
        y: Any,
        x: Any,
        previous: State | None = None,
    ) -> State:
        """Accumulate one row.

        Args:
            state: Partial state of the current iteration.
            y: Boolean-like label.
            x: Feature vector ``(w,)``.
            previous: Finalized state of the previous iteration, used
                only when *state* has no rows yet.

        Returns:
            The updated state.
        """
        ...

    def transition_batch(
        self,
        state: State,
        y: np.ndarray,
        X: np.ndarray,
        previous: State | None = None,
    ) -> State:
        """Accumulate a chunk of rows ``(n,)`` / ``(n, w)`` at once."""
        ...

    def merge(self, left: State, right: State) -> State:
        """Combine two partial states of the same iteration."""
        ...

    def final(self, state: State) -> State:
        """Advance the model using a fully merged state."""
        ...

    def distance(self, left: State, right: State) -> float:
        """Absolute log-likelihood difference of two finalized states."""
        ...

    def result(self, state: State) -> LogisticRegressionResult:
        """Coefficients and Wald diagnostics of a finalized state."""
        ...


# ------------------------------------------------------------------ #
# Solver resolution
# ------------------------------------------------------------------ #

# Singleton cache, one instance per solver name.
_SOLVER_CACHE: dict[str, SolverProtocol] = {}


def resolve_solver(name: str | None = None) -> SolverProtocol:
    """Return a :class:`SolverProtocol` instance for *name*.

    When *name* is ``None`` (the default), the policy from
    :func:`~streaming_logit._config.get_solver` is used.

    Args:
        name: ``"cg"``, ``"irls"``, or ``None`` for policy default.

    Returns:
        A solver instance.

    Raises:
        ValueError: If *name* is not a recognised solver.
    """
    if name is None:
        name = get_solver()
    name = name.strip().lower()

    if name in _SOLVER_CACHE:
        return _SOLVER_CACHE[name]

    if name == "cg":
        from ._cg import ConjugateGradientSolver

        solver: SolverProtocol = ConjugateGradientSolver()

    elif name == "irls":
        from ._irls import IRLSSolver

        solver = IRLSSolver()

    else:
        msg = f"Unknown solver {name!r}.  Choose 'cg' or 'irls'."
        raise ValueError(msg)

    _SOLVER_CACHE[name] = solver
    return solver
