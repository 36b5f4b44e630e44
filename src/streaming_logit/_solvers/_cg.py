"""Conjugate-gradient solver for logistic regression.

Objective
~~~~~~~~~
With labels coded yᵢ ∈ {−1, +1}, the log-likelihood of coefficients c
is

    ℓ(c) = −Σᵢ ln(1 + exp(−yᵢ·xᵢᵀc))

with gradient and negative Hessian

    g(c) = Σᵢ σ(−yᵢ·xᵢᵀc)·yᵢ·xᵢ
    H(c) = Σᵢ aᵢ·xᵢxᵢᵀ,   aᵢ = σ(xᵢᵀc)·σ(−xᵢᵀc).

Both are sums over rows, which is what makes the solver an aggregate:
each partition accumulates its share of g, H and ℓ, the partial
states are summed, and one ``final`` call turns the totals into the
next iterate.

Iteration
~~~~~~~~~
For k = 0 the search direction is the gradient (steepest ascent).
For k ≥ 1 the Hestenes–Stiefel update is used:

              g_kᵀ (g_k − g_{k−1})
    β_k  =  ------------------------
            d_{k−1}ᵀ (g_k − g_{k−1})

    d_k  =  g_k − β_k·d_{k−1}

with a Powell restart (β_k := 0) whenever the Polak–Ribière value
g_kᵀ(g_k − g_{k−1}) / g_{k−1}ᵀg_{k−1} is negative.  The step length
is the maximiser of the local quadratic model along d_k:

                        g_kᵀ d_k
    c_k  =  c_{k−1} + ----------- d_k
                      d_kᵀ H d_k

A zero (or non-finite) denominator makes the step undefined and is
raised as :class:`~streaming_logit.DegenerateStepError` rather than
being allowed to poison the coefficients with NaN.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any

import numpy as np
from scipy.special import expit

from .._exceptions import DegenerateStepError, IncompatibleStatesError
from .._results import LogisticRegressionResult
from .._state import EMPTY_STATE, CGState, EmptyState, State, merge_states
from ..diagnostics import state_to_result
from ._rows import (
    feature_matrix,
    feature_row,
    label_sign,
    label_signs,
    start_state,
)


@dataclass(frozen=True)
class ConjugateGradientSolver:
    """Conjugate-gradient aggregate (Hestenes–Stiefel, Powell restart).

    The class is a frozen dataclass with no instance state; it
    exists solely to namespace the aggregate operations behind the
    :class:`~streaming_logit._solvers.SolverProtocol` interface.
    """

    @property
    def name(self) -> str:
        return "cg"

    def initial_state(self) -> EmptyState:
        return EMPTY_STATE

    # ---- Transition ------------------------------------------------

    def transition(
        self,
        state: State,
        y: Any,
        x: Any,
        previous: State | None = None,
    ) -> CGState:
        """Fold one observation into *state*."""
        sign = label_sign(y)
        x = feature_row(x)
        state = start_state(state, x.shape[0], previous, CGState)

        xc = float(x @ state.coef)
        # σ(−t) = 1 − σ(t), so a = σ(t)·(1 − σ(t)).
        a = expit(xc) * expit(-xc)

        return replace(
            state,
            row_count=state.row_count + 1,
            grad_accum=state.grad_accum + expit(-sign * xc) * sign * x,
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
        state = start_state(state, X.shape[1], previous, CGState)

        xc = X @ state.coef  # shape: (n,)
        a = expit(xc) * expit(-xc)  # shape: (n,)

        return replace(
            state,
            row_count=state.row_count + signs.shape[0],
            grad_accum=state.grad_accum + X.T @ (expit(-signs * xc) * signs),
            info_matrix=state.info_matrix + (X * a[:, np.newaxis]).T @ X,
            log_likelihood=state.log_likelihood
            - float(np.sum(np.logaddexp(0.0, -signs * xc))),
        )

    # ---- Merge -----------------------------------------------------

    def merge(self, left: State, right: State) -> State:
        return merge_states(left, right)

    # ---- Final -----------------------------------------------------

    def final(self, state: State) -> CGState:
        """Compute the next search direction and take one step.

        Raises:
            IncompatibleStatesError: If *state* has no rows.
            DegenerateStepError: If ``dᵀ·H·d`` is zero or not finite.
        """
        if isinstance(state, EmptyState) or state.row_count == 0:
            raise IncompatibleStatesError(
                "Cannot finalize a state that has accumulated no rows."
            )
        if not isinstance(state, CGState):
            raise IncompatibleStatesError(
                f"Expected a CGState, got {type(state).__name__}."
            )

        grad_new = state.grad_accum
        beta = state.beta

        if state.iteration == 0:
            direction = grad_new.copy()
        else:
            diff = grad_new - state.grad
            numerator = float(grad_new @ diff)
            with np.errstate(divide="ignore", invalid="ignore"):
                beta = numerator / np.float64(state.direction @ diff)
                # Powell restart, tested on the Polak–Ribière β.
                if numerator / np.float64(state.grad @ state.grad) < 0:
                    beta = 0.0
            beta = float(beta)
            direction = grad_new - beta * state.direction

        curvature = float(direction @ state.info_matrix @ direction)
        if curvature == 0.0 or not np.isfinite(curvature):
            raise DegenerateStepError(
                f"Step length is undefined at iteration {state.iteration}: "
                f"dᵀ·H·d = {curvature}."
            )
        step = float(grad_new @ direction) / curvature

        return replace(
            state,
            iteration=state.iteration + 1,
            coef=state.coef + step * direction,
            direction=direction,
            grad=grad_new.copy(),
            beta=beta,
        )

    # ---- Distance / result -----------------------------------------

    def distance(self, left: State, right: State) -> float:
        for side in (left, right):
            if not isinstance(side, CGState):
                raise IncompatibleStatesError(
                    f"distance() needs two CGState values, got "
                    f"{type(side).__name__}."
                )
        return abs(left.log_likelihood - right.log_likelihood)

    def result(self, state: State) -> LogisticRegressionResult:
        if not isinstance(state, (CGState, EmptyState)):
            raise IncompatibleStatesError(
                f"Expected a CGState, got {type(state).__name__}."
            )
        return replace(state_to_result(state), solver=self.name)
