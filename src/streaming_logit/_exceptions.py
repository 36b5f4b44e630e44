"""Exception hierarchy for the streaming_logit package.

Three failure classes can terminate a fit, and each one is surfaced to
the caller as its own type so that drivers can tell them apart from a
normal result:

* :class:`NonFiniteInputError`: a label, feature vector, or
  accumulated matrix contains NaN or ±inf.  Raised *before* anything
  is accumulated so that a non-finite matrix never reaches the
  pseudo-inverse (LAPACK's SVD can fail to converge on such input).
* :class:`IncompatibleStatesError`: two states that cannot be
  combined (different solver, width, or flat size), or an operation
  applied to a state in the wrong phase.  Usually a driver bug.
* :class:`DegenerateStepError`: the conjugate-gradient step length
  has a zero (or non-finite) denominator ``dᵀ·H·d``.

All three inherit from a builtin as well as from
:class:`StreamingLogitError`, so ``except ValueError`` keeps working
for callers that only care about bad input.
"""

from __future__ import annotations


class StreamingLogitError(Exception):
    """Base class for all errors raised by streaming_logit."""


class NonFiniteInputError(StreamingLogitError, ValueError):
    """A label, feature vector, or accumulator is not finite."""


class IncompatibleStatesError(StreamingLogitError, RuntimeError):
    """Two states (or a state and a row) cannot be combined."""


class DegenerateStepError(StreamingLogitError, FloatingPointError):
    """The conjugate-gradient step length is undefined."""


class ConvergenceWarning(UserWarning):
    """The iteration cap was reached before the tolerance was met."""


__all__ = [
    "ConvergenceWarning",
    "DegenerateStepError",
    "IncompatibleStatesError",
    "NonFiniteInputError",
    "StreamingLogitError",
]
