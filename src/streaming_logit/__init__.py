"""streaming_logit: logistic regression as a partitioned streaming aggregate.

Fits binary logistic regression by maximum likelihood over data that
arrives in arbitrarily partitioned, arbitrarily ordered chunks, without
materialising the full design matrix.  Two solvers are provided,
conjugate gradient (Hestenes–Stiefel with a Powell restart) and
iteratively reweighted least squares, each written as a commutative,
associative aggregate: per-row ``transition``, pairwise ``merge``, a
per-iteration ``final``, a ``distance`` convergence metric and a
``result`` diagnostics report.

Public API:
    .. autosummary::
        fit_logistic_regression
        AggregationEngine
        EngineRun
        ConjugateGradientSolver
        IRLSSolver
        SolverProtocol
        resolve_solver
        get_solver
        set_solver
        EMPTY_STATE
        EmptyState
        CGState
        IRLSState
        encode_state
        decode_state
        LogisticRegressionResult
        state_to_result
        wald_confidence_intervals
        print_results_table
        StreamingLogitError
        NonFiniteInputError
        IncompatibleStatesError
        DegenerateStepError
        ConvergenceWarning
"""

from ._config import get_solver, set_solver
from ._exceptions import (
    ConvergenceWarning,
    DegenerateStepError,
    IncompatibleStatesError,
    NonFiniteInputError,
    StreamingLogitError,
)
from ._results import LogisticRegressionResult
from ._solvers import SolverProtocol, resolve_solver
from ._solvers._cg import ConjugateGradientSolver
from ._solvers._irls import IRLSSolver
from ._state import (
    EMPTY_STATE,
    CGState,
    EmptyState,
    IRLSState,
    decode_state,
    encode_state,
)
from .core import fit_logistic_regression
from .diagnostics import state_to_result, wald_confidence_intervals
from .display import print_results_table
from .engine import AggregationEngine, EngineRun

__all__ = [
    "EMPTY_STATE",
    "AggregationEngine",
    "CGState",
    "ConjugateGradientSolver",
    "ConvergenceWarning",
    "DegenerateStepError",
    "EmptyState",
    "EngineRun",
    "IRLSSolver",
    "IRLSState",
    "IncompatibleStatesError",
    "LogisticRegressionResult",
    "NonFiniteInputError",
    "SolverProtocol",
    "StreamingLogitError",
    "decode_state",
    "encode_state",
    "fit_logistic_regression",
    "get_solver",
    "print_results_table",
    "resolve_solver",
    "set_solver",
    "state_to_result",
    "wald_confidence_intervals",
]

__version__ = "0.1.0"
