"""Transition states and their flat wire layout.

A transition state is the value threaded through the aggregate: one
state per partition is built row by row (``transition``), partial
states are combined pairwise (``merge``), and the fully merged state
is advanced once per iteration (``final``).

States form a tagged sum type:

* :class:`EmptyState`: the identity element.  It carries no width;
  the width is only known once the first row has been seen.
* :class:`CGState` / :class:`IRLSState`: populated states holding
  scalar, vector and matrix fields.

Populated states are frozen dataclasses.  Every operation returns a
new state, so a failed update can never leave a half-written state
behind.

Fields fall into two groups:

* **inter-iteration** fields (the model: coefficients and, for CG,
  the search direction, previous gradient and β) persist across
  iterations and are only changed by ``final``;
* **intra-iteration** fields (the accumulators: row count, gradient
  or right-hand side, information matrix, log-likelihood) are zeroed
  at the start of every iteration and summed by ``merge``.

Wire layout
~~~~~~~~~~~
At the boundary a state is a flat float64 array.  Offsets are a
function of the width *w* only::

    CG:   [iteration, width, coef(w), dir(w), grad(w), beta,
           rowCount, gradAccum(w), infoMatrix(w·w), logLikelihood]
          length 5 + w² + 4w

    IRLS: [width, coef(w), rowCount, rhsAccum(w), infoMatrix(w·w),
           logLikelihood]
          length 3 + w² + 2w

``infoMatrix`` is symmetric, so row-major and column-major storage
coincide.  :meth:`from_array` reinterprets a buffer without copying;
vector and matrix fields are NumPy views onto it.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from typing import ClassVar

import numpy as np

from ._exceptions import IncompatibleStatesError

# ------------------------------------------------------------------ #
# Identity element
# ------------------------------------------------------------------ #


@dataclass(frozen=True)
class EmptyState:
    """The identity state: no rows seen, width not yet known."""

    @property
    def row_count(self) -> int:
        return 0


EMPTY_STATE = EmptyState()


# ------------------------------------------------------------------ #
# Shared behaviour of populated states
# ------------------------------------------------------------------ #


class _PopulatedState:
    """Layout arithmetic, reset and summation shared by both variants.

    Subclasses declare how many scalar slots and length-*w* vectors
    their flat layout holds, and which array fields are accumulators.
    """

    solver: ClassVar[str]
    _N_SCALARS: ClassVar[int]
    _N_VECTORS: ClassVar[int]
    _INTRA_ARRAYS: ClassVar[tuple[str, ...]]

    width: int
    row_count: int
    log_likelihood: float

    @classmethod
    def array_size(cls, width: int) -> int:
        """Length of the flat buffer for a state of *width*."""
        return cls._N_SCALARS + width * width + cls._N_VECTORS * width

    @classmethod
    def _read_width(cls, buffer: np.ndarray, index: int) -> int:
        if buffer.ndim != 1:
            raise IncompatibleStatesError(
                f"{cls.__name__} buffer must be one-dimensional, "
                f"got shape {buffer.shape}."
            )
        if buffer.shape[0] < cls.array_size(0):
            raise IncompatibleStatesError(
                f"{cls.__name__} buffer of length {buffer.shape[0]} is too "
                f"short to hold any state (minimum {cls.array_size(0)})."
            )
        raw = buffer[index]
        if not math.isfinite(raw) or raw < 0 or raw != int(raw):
            raise IncompatibleStatesError(
                f"{cls.__name__} buffer declares an invalid width {raw!r}."
            )
        width = int(raw)
        expected = cls.array_size(width)
        if buffer.shape[0] != expected:
            raise IncompatibleStatesError(
                f"{cls.__name__} buffer of length {buffer.shape[0]} does not "
                f"match its declared width {width} (expected {expected})."
            )
        return width

    def reset(self):
        """Return a copy with every intra-iteration field zeroed."""
        zeroed = {
            name: np.zeros_like(getattr(self, name)) for name in self._INTRA_ARRAYS
        }
        return replace(self, row_count=0, log_likelihood=0.0, **zeroed)

    def merged_with(self, other):
        """Sum the intra-iteration fields of *self* and *other*.

        Inter-iteration fields are taken from *self*.  Both operands
        are left untouched.

        Raises:
            IncompatibleStatesError: If *other* is a different variant
                or has a different width.
        """
        check_compatible(self, other)
        summed = {
            name: getattr(self, name) + getattr(other, name)
            for name in self._INTRA_ARRAYS
        }
        return replace(
            self,
            row_count=self.row_count + other.row_count,
            log_likelihood=self.log_likelihood + other.log_likelihood,
            **summed,
        )


# ------------------------------------------------------------------ #
# Conjugate-gradient state
# ------------------------------------------------------------------ #


@dataclass(frozen=True, eq=False)
class CGState(_PopulatedState):
    """Transition state for the conjugate-gradient solver."""

    solver: ClassVar[str] = "cg"
    _N_SCALARS: ClassVar[int] = 5
    _N_VECTORS: ClassVar[int] = 4
    _INTRA_ARRAYS: ClassVar[tuple[str, ...]] = ("grad_accum", "info_matrix")

    # ---- Inter-iteration -------------------------------------------
    iteration: int
    """Number of completed ``final`` calls."""

    width: int
    """Number of coefficients *w*."""

    coef: np.ndarray
    """Current coefficient estimate, shape ``(w,)``."""

    direction: np.ndarray
    """Current search direction, shape ``(w,)``."""

    grad: np.ndarray
    """Gradient from the previous iteration, shape ``(w,)``."""

    beta: float
    """Last conjugate-gradient scale factor."""

    # ---- Intra-iteration -------------------------------------------
    row_count: int
    """Rows accumulated in the current iteration."""

    grad_accum: np.ndarray
    """Gradient of the log-likelihood at ``coef``, shape ``(w,)``."""

    info_matrix: np.ndarray
    """Weighted cross-product ``XᵀAX``, shape ``(w, w)``."""

    log_likelihood: float
    """Log-likelihood of ``coef`` over the rows seen."""

    @classmethod
    def zeros(cls, width: int) -> CGState:
        """Fresh state with every field zero."""
        return cls(
            iteration=0,
            width=width,
            coef=np.zeros(width),
            direction=np.zeros(width),
            grad=np.zeros(width),
            beta=0.0,
            row_count=0,
            grad_accum=np.zeros(width),
            info_matrix=np.zeros((width, width)),
            log_likelihood=0.0,
        )

    @classmethod
    def from_array(cls, buffer: np.ndarray) -> CGState | EmptyState:
        """Reinterpret a flat buffer as a state (fields are views).

        Raises:
            IncompatibleStatesError: If the buffer length does not
                match the width it declares.
        """
        buf = np.asarray(buffer, dtype=np.float64)
        w = cls._read_width(buf, 1)
        row_count = int(buf[3 + 3 * w])
        if w == 0:
            if row_count != 0:
                raise IncompatibleStatesError(
                    "CGState buffer of width 0 cannot hold any rows."
                )
            return EMPTY_STATE
        return cls(
            iteration=int(buf[0]),
            width=w,
            coef=buf[2 : 2 + w],
            direction=buf[2 + w : 2 + 2 * w],
            grad=buf[2 + 2 * w : 2 + 3 * w],
            beta=float(buf[2 + 3 * w]),
            row_count=row_count,
            grad_accum=buf[4 + 3 * w : 4 + 4 * w],
            info_matrix=buf[4 + 4 * w : 4 + 4 * w + w * w].reshape(w, w),
            log_likelihood=float(buf[4 + 4 * w + w * w]),
        )

    def to_array(self) -> np.ndarray:
        """Serialise into the flat CG layout."""
        return np.concatenate(
            [
                [float(self.iteration), float(self.width)],
                self.coef,
                self.direction,
                self.grad,
                [self.beta, float(self.row_count)],
                self.grad_accum,
                np.ravel(self.info_matrix),
                [self.log_likelihood],
            ]
        ).astype(np.float64, copy=False)


# ------------------------------------------------------------------ #
# IRLS state
# ------------------------------------------------------------------ #


@dataclass(frozen=True, eq=False)
class IRLSState(_PopulatedState):
    """Transition state for the iteratively-reweighted-least-squares solver."""

    solver: ClassVar[str] = "irls"
    _N_SCALARS: ClassVar[int] = 3
    _N_VECTORS: ClassVar[int] = 2
    _INTRA_ARRAYS: ClassVar[tuple[str, ...]] = ("rhs_accum", "info_matrix")

    # ---- Inter-iteration -------------------------------------------
    width: int
    coef: np.ndarray

    # ---- Intra-iteration -------------------------------------------
    row_count: int
    rhs_accum: np.ndarray
    """Weighted response cross-product ``XᵀAz``, shape ``(w,)``."""

    info_matrix: np.ndarray
    log_likelihood: float

    @classmethod
    def zeros(cls, width: int) -> IRLSState:
        """Fresh state with every field zero."""
        return cls(
            width=width,
            coef=np.zeros(width),
            row_count=0,
            rhs_accum=np.zeros(width),
            info_matrix=np.zeros((width, width)),
            log_likelihood=0.0,
        )

    @classmethod
    def from_array(cls, buffer: np.ndarray) -> IRLSState | EmptyState:
        """Reinterpret a flat buffer as a state (fields are views).

        Raises:
            IncompatibleStatesError: If the buffer length does not
                match the width it declares.
        """
        buf = np.asarray(buffer, dtype=np.float64)
        w = cls._read_width(buf, 0)
        row_count = int(buf[1 + w])
        if w == 0:
            if row_count != 0:
                raise IncompatibleStatesError(
                    "IRLSState buffer of width 0 cannot hold any rows."
                )
            return EMPTY_STATE
        return cls(
            width=w,
            coef=buf[1 : 1 + w],
            row_count=row_count,
            rhs_accum=buf[2 + w : 2 + 2 * w],
            info_matrix=buf[2 + 2 * w : 2 + 2 * w + w * w].reshape(w, w),
            log_likelihood=float(buf[2 + 2 * w + w * w]),
        )

    def to_array(self) -> np.ndarray:
        """Serialise into the flat IRLS layout."""
        return np.concatenate(
            [
                [float(self.width)],
                self.coef,
                [float(self.row_count)],
                self.rhs_accum,
                np.ravel(self.info_matrix),
                [self.log_likelihood],
            ]
        ).astype(np.float64, copy=False)


# ------------------------------------------------------------------ #
# Helpers
# ------------------------------------------------------------------ #

State = EmptyState | CGState | IRLSState

_STATE_TYPES: dict[str, type[CGState] | type[IRLSState]] = {
    "cg": CGState,
    "irls": IRLSState,
}


def state_type(solver: str) -> type[CGState] | type[IRLSState]:
    """Return the populated state class for *solver*."""
    try:
        return _STATE_TYPES[solver]
    except KeyError:
        raise ValueError(
            f"Unknown solver {solver!r}.  Choose from: {sorted(_STATE_TYPES)}"
        ) from None


def is_identity(state: State) -> bool:
    """Whether *state* is a no-op operand for ``merge``."""
    return isinstance(state, EmptyState) or state.row_count == 0


def check_compatible(left: State, right: State) -> None:
    """Raise unless *left* and *right* can be merged.

    Raises:
        IncompatibleStatesError: On differing variants, widths or
            flat sizes.
    """
    if type(left) is not type(right):
        raise IncompatibleStatesError(
            "Internal error: incompatible transition states "
            f"({type(left).__name__} and {type(right).__name__})."
        )
    if isinstance(left, EmptyState):
        return
    if left.width != right.width or left.array_size(left.width) != right.array_size(
        right.width
    ):
        raise IncompatibleStatesError(
            "Internal error: incompatible transition states "
            f"(width {left.width} and width {right.width})."
        )


def merge_states(left: State, right: State) -> State:
    """Combine two partial states of the same iteration.

    If either operand is an identity (empty, or populated with no
    rows), the other operand is returned unchanged.  No arithmetic is
    performed, so the result is bit-identical.
    """
    if is_identity(left):
        if not isinstance(left, EmptyState) and not isinstance(right, EmptyState):
            check_compatible(left, right)
        return right
    if is_identity(right):
        if not isinstance(right, EmptyState):
            check_compatible(left, right)
        return left
    return left.merged_with(right)


def encode_state(state: State, solver: str) -> np.ndarray:
    """Serialise *state*; the empty state becomes the width-0 zero buffer."""
    if isinstance(state, EmptyState):
        return np.zeros(state_type(solver).array_size(0))
    if state.solver != solver:
        raise IncompatibleStatesError(
            f"Cannot encode a {type(state).__name__} as a {solver!r} state."
        )
    return state.to_array()


def decode_state(buffer: np.ndarray, solver: str) -> State:
    """Reinterpret *buffer* as a state of *solver*."""
    return state_type(solver).from_array(buffer)


__all__ = [
    "EMPTY_STATE",
    "CGState",
    "EmptyState",
    "IRLSState",
    "State",
    "check_compatible",
    "decode_state",
    "encode_state",
    "is_identity",
    "merge_states",
    "state_type",
]
