"""Iteratively-reweighted-least-squares solver for logistic regression.

Each iteration is one Newton step written as a weighted least-squares
problem.  At the current coefficients c, every row contributes a
weight and a *working response*

    aᵢ = σ(xᵢᵀc)·σ(−xᵢᵀc)

                  σ(−yᵢ·xᵢᵀc)·yᵢ
    zᵢ = xᵢᵀc  +  --------------
                        aᵢ

and the next iterate solves the weighted normal equations

    (XᵀAX) c_new = XᵀAz.

XᵀAX and XᵀAz are sums over rows, so partitions accumulate them
independently and ``merge`` adds them up.  ``final`` solves the system
with the Moore–Penrose pseudo-inverse, which tolerates a
rank-deficient design.  Every iteration is a full re-solve; there is
no direction or gradient bookkeeping between iterations.

The product aᵢ·zᵢ is accumulated in its expanded form
aᵢ·xᵢᵀc + σ(−yᵢ·xᵢᵀc)·yᵢ, which equals aᵢ·zᵢ exactly in real
arithmetic and stays finite when aᵢ underflows to zero for very large
|xᵢᵀc|.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any

import numpy as np
from scipy.special import expit

from .._exceptions import IncompatibleStatesError, NonFiniteInputError
from .._results import LogisticRegressionResult
from .._state import EMPTY_STATE, EmptyState, IRLSState, State, merge_states
from ..diagnostics import state_to_result
from ._rows import (
    feature_matrix,
    feature_row,
    label_sign,
    label_signs,
    start_state,
)


@dataclass(frozen=True)
class IRLSSolver:
    """IRLS aggregate with a pseudo-inverse normal-equation solve.

    Stateless frozen dataclass, safe to cache in the module-level
    ``_SOLVER_CACHE`` singleton.
    """

    @property
    def name(self) -> str:
        return "irls"

    def initial_state(self) -> EmptyState:
        return EMPTY_STATE

    # ---- Transition ------------------------------------------------

    def transition(
        self,
        state: State,
        y: Any,
        x: Any,
        previous: State | None = None,
    ) -> IRLSState:
        """Fold one observation into *state*."""
        sign = label_sign(y)
        x = feature_row(x)
        state = start_state(state, x.shape[0], previous, IRLSState)

        xc = float(x @ state.coef)
        a = expit(xc) * expit(-xc)
        a_times_z = a * xc + expit(-sign * xc) * sign

        return replace(
            state,
            row_count=state.row_count + 1,
            rhs_accum=state.rhs_accum + a_times_z * x,
            info_matrix=state.info_matrix + a * np.outer(x, x),
            log_likelihood=state.log_likelihood
            - float(np.logaddexp(0.0, -sign * xc)),
        )

    def transition_batch(
        self,
        state: State,
        y: np.ndarray,
        X: np.ndarray,
        previous: State | None = None,
    ) -> State:
        """Fold a chunk of observations into *state* with matrix algebra."""
        signs = label_signs(y)
        if signs.shape[0] == 0:
            return state
        X = feature_matrix(X, signs.shape[0])
        state = start_state(state, X.shape[1], previous, IRLSState)

        xc = X @ state.coef  # shape: (n,)
        a = expit(xc) * expit(-xc)  # shape: (n,)
        a_times_z = a * xc + expit(-signs * xc) * signs  # shape: (n,)

        return replace(
            state,
            row_count=state.row_count + signs.shape[0],
            rhs_accum=state.rhs_accum + X.T @ a_times_z,
            info_matrix=state.info_matrix + (X * a[:, np.newaxis]).T @ X,
            log_likelihood=state.log_likelihood
            - float(np.sum(np.logaddexp(0.0, -signs * xc))),
        )

    # ---- Merge -----------------------------------------------------

    def merge(self, left: State, right: State) -> State:
        return merge_states(left, right)

    # ---- Final -----------------------------------------------------

    def final(self, state: State) -> IRLSState:
        """Solve the weighted normal equations for the next iterate.

        Raises:
            IncompatibleStatesError: If *state* has no rows.
            NonFiniteInputError: If ``XᵀAX`` or ``XᵀAz`` is not finite.
        """
        if isinstance(state, EmptyState) or state.row_count == 0:
            raise IncompatibleStatesError(
                "Cannot finalize a state that has accumulated no rows."
            )
        if not isinstance(state, IRLSState):
            raise IncompatibleStatesError(
                f"Expected an IRLSState, got {type(state).__name__}."
            )

        # The SVD behind pinv may fail to converge on non-finite input.
        if not (
            np.all(np.isfinite(state.info_matrix))
            and np.all(np.isfinite(state.rhs_accum))
        ):
            raise NonFiniteInputError("Design matrix is not finite.")

        coef = np.linalg.pinv(state.info_matrix) @ state.rhs_accum
        return replace(state, coef=coef)

    # ---- Distance / result -----------------------------------------

    def distance(self, left: State, right: State) -> float:
        for side in (left, right):
            if not isinstance(side, IRLSState):
                raise IncompatibleStatesError(
                    f"distance() needs two IRLSState values, got "
                    f"{type(side).__name__}."
                )
        return abs(left.log_likelihood - right.log_likelihood)

    def result(self, state: State) -> LogisticRegressionResult:
        if not isinstance(state, (IRLSState, EmptyState)):
            raise IncompatibleStatesError(
                f"Expected an IRLSState, got {type(state).__name__}."
            )
        return replace(state_to_result(state), solver=self.name)
