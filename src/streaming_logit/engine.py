"""Aggregation engine: drives a solver over partitioned data.

The solvers in :mod:`._solvers` are pure aggregates; something has to
feed them rows, combine the partial states and decide when to stop.
:class:`AggregationEngine` plays that role for data that already lives
in memory as a list of chunks (or that can be re-read chunk by chunk
through a callable).

One iteration
~~~~~~~~~~~~~
1. **Accumulate**: every partition is folded into its own state with
   ``transition_batch``, starting from the identity state and carrying
   the previous iteration's finalized state forward.  Partitions share
   nothing, so they may run concurrently.
2. **Merge**: the partial states are combined pairwise, level by
   level (a balanced merge tree).  Because ``merge`` is commutative
   and associative, the tree shape does not change the result beyond
   floating-point rounding.
3. **Finalize**: ``final`` is called exactly once, on the fully
   merged state.

Stopping rule
~~~~~~~~~~~~~
The solvers only *report* ``distance``, the absolute change in
log-likelihood between two consecutive finalized states.  The engine
stops when that distance falls below ``tolerance``, or after
``max_iter`` iterations, in which case a
:class:`~streaming_logit.ConvergenceWarning` is emitted.

Parallelism
~~~~~~~~~~~
When ``n_jobs != 1``, partitions are accumulated with
``joblib.Parallel(prefer="threads")``.  The per-chunk work is a pair
of BLAS matrix products that release the GIL, so threads overlap
without the serialisation cost of process-based workers.
"""

from __future__ import annotations

import logging
import warnings
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any

import numpy as np
from joblib import Parallel, delayed

from ._exceptions import ConvergenceWarning
from ._solvers import SolverProtocol, resolve_solver
from ._state import State, is_identity

logger = logging.getLogger(__name__)

# A partition is a ``(y, X)`` chunk: labels ``(n,)`` and features ``(n, w)``.
Partition = tuple[Any, Any]
PartitionSource = Sequence[Partition] | Callable[[], Iterable[Partition]]


@dataclass(frozen=True)
class EngineRun:
    """Outcome of :meth:`AggregationEngine.fit`."""

    state: State
    """Last finalized state."""

    n_iterations: int
    """Number of ``final`` calls performed."""

    converged: bool
    """Whether the distance fell below the tolerance."""

    log_likelihood_history: list[float] = field(default_factory=list)
    """Log-likelihood of every finalized state, in order."""

    distances: list[float] = field(default_factory=list)
    """Distance between each pair of consecutive finalized states."""


class AggregationEngine:
    """Run a streaming solver over partitioned data until convergence.

    Attributes:
        solver: The resolved solver instance.
        max_iter: Iteration cap.
        tolerance: Log-likelihood distance at which iteration stops.
        n_jobs: Number of joblib workers for the accumulate phase.
    """

    def __init__(
        self,
        solver: str | SolverProtocol | None = None,
        *,
        max_iter: int = 20,
        tolerance: float = 1e-4,
        n_jobs: int = 1,
    ) -> None:
        if max_iter < 1:
            raise ValueError(f"max_iter must be at least 1, got {max_iter}.")
        if not tolerance >= 0:
            raise ValueError(f"tolerance must be non-negative, got {tolerance}.")

        if isinstance(solver, SolverProtocol):
            self.solver: SolverProtocol = solver
        else:
            self.solver = resolve_solver(solver)
        self.max_iter = max_iter
        self.tolerance = tolerance
        self.n_jobs = n_jobs

    # ---- Phases ----------------------------------------------------

    def _accumulate_partition(
        self,
        partition: Partition,
        previous: State | None,
    ) -> State:
        y, X = partition
        return self.solver.transition_batch(
            self.solver.initial_state(), np.asarray(y), np.asarray(X), previous
        )

    def accumulate(
        self,
        partitions: Iterable[Partition],
        previous: State | None = None,
    ) -> list[State]:
        """Fold every partition into its own partial state."""
        if self.n_jobs == 1:
            return [self._accumulate_partition(p, previous) for p in partitions]

        return list(
            Parallel(n_jobs=self.n_jobs, prefer="threads")(
                delayed(self._accumulate_partition)(p, previous) for p in partitions
            )
        )

    def reduce(self, states: Sequence[State]) -> State:
        """Combine partial states with a balanced pairwise merge tree."""
        level = list(states)
        if not level:
            return self.solver.initial_state()
        while len(level) > 1:
            merged = [
                self.solver.merge(level[i], level[i + 1])
                for i in range(0, len(level) - 1, 2)
            ]
            if len(level) % 2:
                merged.append(level[-1])
            level = merged
        return level[0]

    def run_iteration(
        self,
        partitions: PartitionSource,
        previous: State | None = None,
    ) -> State:
        """Accumulate, merge and finalize once.

        Raises:
            ValueError: If the partitions contain no rows at all.
        """
        chunks = partitions() if callable(partitions) else partitions
        merged = self.reduce(self.accumulate(chunks, previous))
        if is_identity(merged):
            raise ValueError("Partitions must contain at least one observation.")
        return self.solver.final(merged)

    # ---- Driver loop -----------------------------------------------

    def fit(self, partitions: PartitionSource) -> EngineRun:
        """Iterate until the log-likelihood distance meets the tolerance.

        Args:
            partitions: A sequence of ``(y, X)`` chunks, or a
                zero-argument callable returning a fresh iterable of
                chunks (re-invoked once per iteration).

        Returns:
            An :class:`EngineRun` with the last finalized state.

        Raises:
            TypeError: If *partitions* is a one-shot iterator such as a
                generator.  Wrap it in a callable instead.
        """
        if not callable(partitions) and iter(partitions) is partitions:
            raise TypeError(
                "partitions must be re-iterable; got a one-shot "
                f"{type(partitions).__name__}.  Pass a sequence, or a "
                "callable that returns a fresh iterable of chunks."
            )

        history: list[float] = []
        distances: list[float] = []
        previous: State | None = None
        converged = False
        n_iterations = 0

        while n_iterations < self.max_iter:
            current = self.run_iteration(partitions, previous)
            n_iterations += 1
            history.append(current.log_likelihood)

            if previous is None:
                logger.debug(
                    "%s iteration %d: rows=%d log_likelihood=%.10g",
                    self.solver.name,
                    n_iterations,
                    current.row_count,
                    current.log_likelihood,
                )
            else:
                dist = self.solver.distance(previous, current)
                distances.append(dist)
                logger.debug(
                    "%s iteration %d: rows=%d log_likelihood=%.10g distance=%.3g",
                    self.solver.name,
                    n_iterations,
                    current.row_count,
                    current.log_likelihood,
                    dist,
                )
                if dist < self.tolerance:
                    converged = True
                    previous = current
                    break
            previous = current

        if not converged:
            warnings.warn(
                f"{self.solver.name} solver did not converge within "
                f"{self.max_iter} iterations (tolerance {self.tolerance:g}).  "
                "Increase max_iter or loosen the tolerance.",
                ConvergenceWarning,
                stacklevel=2,
            )

        assert previous is not None  # noqa: S101
        return EngineRun(
            state=previous,
            n_iterations=n_iterations,
            converged=converged,
            log_likelihood_history=history,
            distances=distances,
        )


__all__ = ["AggregationEngine", "EngineRun"]
