"""Solver configuration for the streaming_logit package.

Controls which iterative solver is used when a caller does not name
one explicitly.

Resolution order (first match wins):
    1. Programmatic override via :func:`set_solver`.
    2. The ``STREAMING_LOGIT_SOLVER`` environment variable.
    3. The default, ``"irls"``.

Valid solver names are ``"cg"`` and ``"irls"`` (case-insensitive).

Examples:
    Use conjugate gradient globally from the shell::

        export STREAMING_LOGIT_SOLVER=cg

    Use conjugate gradient programmatically::

        import streaming_logit
        streaming_logit.set_solver("cg")

    Restore the default resolution order::

        streaming_logit.set_solver("auto")
"""

from __future__ import annotations

import os

_SOLVER_NAMES = {"cg", "irls"}
_VALID_SOLVERS = _SOLVER_NAMES | {"auto"}

_DEFAULT_SOLVER = "irls"

# Sentinel indicating "no programmatic override has been set".
_solver_override: str | None = None


def get_solver() -> str:
    """Return the active solver name (``"cg"`` or ``"irls"``).

    Resolution order:
        1. Value set by :func:`set_solver` (unless ``"auto"``).
        2. ``STREAMING_LOGIT_SOLVER`` environment variable.
        3. ``"irls"``.

    Returns:
        ``"cg"`` or ``"irls"``.
    """
    # 1. Programmatic override
    if _solver_override is not None and _solver_override != "auto":
        return _solver_override

    # 2. Environment variable
    env = os.environ.get("STREAMING_LOGIT_SOLVER", "").strip().lower()
    if env in _SOLVER_NAMES:
        return env

    # 3. Default
    return _DEFAULT_SOLVER


def set_solver(name: str) -> None:
    """Override the solver selection.

    Args:
        name: One of ``"cg"``, ``"irls"``, or ``"auto"``
            (case-insensitive).  ``"auto"`` restores the default
            resolution order.

    Raises:
        ValueError: If *name* is not a recognised solver.
    """
    global _solver_override
    normalised = name.strip().lower()
    if normalised not in _VALID_SOLVERS:
        raise ValueError(
            f"Unknown solver '{name}'. Choose from: {sorted(_VALID_SOLVERS)}"
        )
    _solver_override = normalised
