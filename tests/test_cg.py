"""Tests for the conjugate-gradient solver.

Hand-computed reference (width 1, three rows, c = 0):

    rows (True, [1]), (False, [-1]), (True, [2])

    σ(0) = 0.5, a = 0.25 for every row
    grad  = 0.5·(1) + 0.5·(1) + 0.5·(2)   = 2.0
    H     = 0.25·(1 + 1 + 4)              = 1.5
    ℓ     = −3·ln 2

    iteration 0: d = g = 2,  step = g·d / (d·H·d) = 4 / 6
    c₁    = 0 + (2/3)·2 = 4/3
"""

import math

import numpy as np
import pytest
from scipy import stats

from streaming_logit import (
    EMPTY_STATE,
    CGState,
    ConjugateGradientSolver,
    DegenerateStepError,
    IncompatibleStatesError,
    IRLSState,
    NonFiniteInputError,
    SolverProtocol,
    resolve_solver,
)

ROWS = [(True, [1.0]), (False, [-1.0]), (True, [2.0])]

# ------------------------------------------------------------------ #
# Helpers
# ------------------------------------------------------------------ #


def _binary_data(n: int = 400, seed: int = 0):
    """Overlapping classes with an intercept column, so the MLE exists."""
    rng = np.random.default_rng(seed)
    X = np.column_stack([np.ones(n), rng.standard_normal((n, 2))])
    logits = X @ np.array([-0.3, 0.8, -0.5])
    y = rng.random(n) < 1 / (1 + np.exp(-logits))
    return y, X


def _accumulate(solver, y, X, previous=None):
    state = solver.initial_state()
    for yi, xi in zip(y, X):
        state = solver.transition(state, yi, xi, previous)
    return state


def _iterate(solver, y, X, max_iter, tolerance=1e-10):
    """Drive the aggregate to convergence on a single partition."""
    previous = solver.final(_accumulate(solver, y, X))
    for _ in range(max_iter - 1):
        current = solver.final(_accumulate(solver, y, X, previous))
        done = solver.distance(current, previous) < tolerance
        previous = current
        if done:
            break
    return previous


def _cg_state(**overrides) -> CGState:
    """A width-2 state with identity information matrix and one row."""
    fields = dict(
        iteration=1,
        width=2,
        coef=np.zeros(2),
        direction=np.array([1.0, 0.0]),
        grad=np.array([1.0, 0.0]),
        beta=0.0,
        row_count=1,
        grad_accum=np.zeros(2),
        info_matrix=np.eye(2),
        log_likelihood=-1.0,
    )
    fields.update(overrides)
    return CGState(**fields)


@pytest.fixture()
def cg():
    return resolve_solver("cg")


# ------------------------------------------------------------------ #
# Protocol
# ------------------------------------------------------------------ #


class TestProtocol:
    def test_implements_protocol(self):
        assert isinstance(ConjugateGradientSolver(), SolverProtocol)

    def test_name(self, cg):
        assert cg.name == "cg"

    def test_initial_state_is_empty(self, cg):
        assert cg.initial_state() is EMPTY_STATE


# ------------------------------------------------------------------ #
# Transition
# ------------------------------------------------------------------ #


class TestTransition:
    def test_hand_computed_accumulators(self, cg):
        state = EMPTY_STATE
        for y, x in ROWS:
            state = cg.transition(state, y, x)
        assert isinstance(state, CGState)
        assert state.width == 1
        assert state.row_count == 3
        np.testing.assert_allclose(state.grad_accum, [2.0])
        np.testing.assert_allclose(state.info_matrix, [[1.5]])
        assert state.log_likelihood == pytest.approx(-3 * math.log(2))

    def test_numeric_labels_match_boolean(self, cg):
        a = cg.transition(EMPTY_STATE, True, [1.0, 2.0])
        b = cg.transition(EMPTY_STATE, 1, [1.0, 2.0])
        c = cg.transition(EMPTY_STATE, 0.0, [1.0, 2.0])
        d = cg.transition(EMPTY_STATE, False, [1.0, 2.0])
        np.testing.assert_array_equal(a.to_array(), b.to_array())
        np.testing.assert_array_equal(c.to_array(), d.to_array())

    def test_transition_does_not_mutate_input(self, cg):
        s1 = cg.transition(EMPTY_STATE, True, [1.0, 2.0])
        before = s1.to_array().copy()
        cg.transition(s1, False, [0.5, -1.0])
        np.testing.assert_array_equal(s1.to_array(), before)

    def test_nan_label_raises(self, cg):
        with pytest.raises(NonFiniteInputError, match="Dependent variables"):
            cg.transition(EMPTY_STATE, float("nan"), [1.0])

    def test_nonfinite_feature_raises_and_state_unchanged(self, cg):
        s1 = cg.transition(EMPTY_STATE, True, [1.0, 2.0])
        before = s1.to_array().copy()
        with pytest.raises(NonFiniteInputError, match="Design matrix"):
            cg.transition(s1, True, [np.inf, 0.0])
        np.testing.assert_array_equal(s1.to_array(), before)

    def test_empty_feature_vector_raises(self, cg):
        with pytest.raises(ValueError, match="non-empty"):
            cg.transition(EMPTY_STATE, True, [])

    def test_width_change_raises(self, cg):
        s1 = cg.transition(EMPTY_STATE, True, [1.0, 2.0])
        with pytest.raises(IncompatibleStatesError):
            cg.transition(s1, True, [1.0, 2.0, 3.0])

    def test_foreign_state_raises(self, cg):
        with pytest.raises(IncompatibleStatesError):
            cg.transition(IRLSState.zeros(1), True, [1.0])

    def test_previous_seeds_first_row(self, cg):
        previous = cg.final(_accumulate(cg, *zip(*ROWS)))
        s = cg.transition(EMPTY_STATE, True, [1.0], previous)
        assert s.iteration == previous.iteration
        np.testing.assert_array_equal(s.coef, previous.coef)
        np.testing.assert_array_equal(s.direction, previous.direction)
        assert s.row_count == 1

    def test_previous_width_mismatch_raises(self, cg):
        previous = cg.final(_accumulate(cg, *zip(*ROWS)))
        with pytest.raises(IncompatibleStatesError, match="width"):
            cg.transition(EMPTY_STATE, True, [1.0, 2.0], previous)

    def test_previous_ignored_once_rows_are_present(self, cg):
        previous = cg.final(_accumulate(cg, *zip(*ROWS)))
        s1 = cg.transition(EMPTY_STATE, True, [1.0])
        s2 = cg.transition(s1, False, [2.0], previous)
        np.testing.assert_array_equal(s2.coef, [0.0])


class TestTransitionBatch:
    def test_batch_matches_row_by_row(self, cg):
        y, X = _binary_data(n=50)
        rowwise = _accumulate(cg, y, X)
        batched = cg.transition_batch(EMPTY_STATE, y, X)
        assert batched.row_count == rowwise.row_count
        np.testing.assert_allclose(batched.grad_accum, rowwise.grad_accum, rtol=1e-12)
        np.testing.assert_allclose(
            batched.info_matrix, rowwise.info_matrix, rtol=1e-12
        )
        assert batched.log_likelihood == pytest.approx(rowwise.log_likelihood)

    def test_batch_in_two_chunks(self, cg):
        y, X = _binary_data(n=50)
        whole = cg.transition_batch(EMPTY_STATE, y, X)
        split = cg.transition_batch(
            cg.transition_batch(EMPTY_STATE, y[:20], X[:20]), y[20:], X[20:]
        )
        np.testing.assert_allclose(split.grad_accum, whole.grad_accum, rtol=1e-12)

    def test_empty_batch_returns_state(self, cg):
        assert cg.transition_batch(EMPTY_STATE, np.array([]), np.empty((0, 2))) is (
            EMPTY_STATE
        )

    def test_row_count_mismatch_raises(self, cg):
        with pytest.raises(ValueError, match="rows"):
            cg.transition_batch(EMPTY_STATE, np.array([True, False]), np.ones((3, 2)))

    def test_nan_in_batch_raises(self, cg):
        X = np.ones((2, 2))
        X[1, 0] = np.nan
        with pytest.raises(NonFiniteInputError):
            cg.transition_batch(EMPTY_STATE, np.array([True, False]), X)

    def test_column_shaped_labels_raise(self, cg):
        # n == w, so a (n, 1) column would broadcast silently.
        y = np.array([[True], [False]])
        with pytest.raises(ValueError, match="one-dimensional"):
            cg.transition_batch(EMPTY_STATE, y, np.eye(2))


# ------------------------------------------------------------------ #
# Final
# ------------------------------------------------------------------ #


class TestFinal:
    def test_first_iteration_hand_computed(self, cg):
        state = _accumulate(cg, *zip(*ROWS))
        out = cg.final(state)
        assert out.iteration == 1
        np.testing.assert_allclose(out.coef, [4.0 / 3.0])
        np.testing.assert_allclose(out.direction, [2.0])
        np.testing.assert_allclose(out.grad, [2.0])

    def test_first_direction_is_gradient(self, cg):
        y, X = _binary_data(n=40)
        state = _accumulate(cg, y, X)
        out = cg.final(state)
        np.testing.assert_allclose(out.direction, state.grad_accum)

    def test_final_keeps_accumulators(self, cg):
        state = _accumulate(cg, *zip(*ROWS))
        out = cg.final(state)
        assert out.row_count == state.row_count
        assert out.log_likelihood == state.log_likelihood
        np.testing.assert_array_equal(out.info_matrix, state.info_matrix)

    def test_hestenes_stiefel_update(self, cg):
        # g_prev = (1, 0), d_prev = (1, 1), g = (0.5, 1)
        # diff = (-0.5, 1); β = 0.75 / 0.5 = 1.5; d = g − 1.5·d_prev
        state = _cg_state(
            direction=np.array([1.0, 1.0]),
            grad_accum=np.array([0.5, 1.0]),
        )
        out = cg.final(state)
        assert out.beta == pytest.approx(1.5)
        np.testing.assert_allclose(out.direction, [-1.0, -0.5])
        # step = g·d / dᵀd = −1 / 1.25
        np.testing.assert_allclose(out.coef, [0.8, 0.4])

    def test_powell_restart_resets_beta(self, cg):
        # g·(g − g_prev) = 0.5·(−0.5) < 0
        state = _cg_state(grad_accum=np.array([0.5, 0.0]))
        out = cg.final(state)
        assert out.beta == 0.0
        np.testing.assert_allclose(out.direction, [0.5, 0.0])
        np.testing.assert_allclose(out.coef, [0.5, 0.0])

    def test_degenerate_direction_raises(self, cg):
        # Sign change in one dimension: β = −1 and d collapses to zero.
        state = CGState(
            iteration=1,
            width=1,
            coef=np.array([3.0]),
            direction=np.array([1.0]),
            grad=np.array([1.0]),
            beta=0.0,
            row_count=4,
            grad_accum=np.array([-1.0]),
            info_matrix=np.array([[2.0]]),
            log_likelihood=-2.0,
        )
        with pytest.raises(DegenerateStepError, match="undefined"):
            cg.final(state)

    def test_zero_information_raises(self, cg):
        state = _cg_state(
            iteration=0,
            grad_accum=np.array([1.0, 0.0]),
            info_matrix=np.zeros((2, 2)),
        )
        with pytest.raises(DegenerateStepError):
            cg.final(state)

    def test_empty_state_raises(self, cg):
        with pytest.raises(IncompatibleStatesError, match="no rows"):
            cg.final(EMPTY_STATE)

    def test_zero_row_state_raises(self, cg):
        with pytest.raises(IncompatibleStatesError):
            cg.final(CGState.zeros(2))

    def test_final_does_not_mutate_input(self, cg):
        state = _accumulate(cg, *zip(*ROWS))
        before = state.to_array().copy()
        cg.final(state)
        np.testing.assert_array_equal(state.to_array(), before)


# ------------------------------------------------------------------ #
# Iteration behaviour
# ------------------------------------------------------------------ #


class TestIteration:
    def test_separable_scenario_increases_likelihood(self, cg):
        y, X = zip(*ROWS)
        previous = None
        history = []
        for _ in range(5):
            state = _accumulate(cg, y, X, previous)
            history.append(state.log_likelihood)
            previous = cg.final(state)
        assert np.all(np.isfinite(previous.coef))
        assert previous.coef[0] > 0
        assert np.all(np.diff(history) >= -1e-12)

    def test_loglik_non_decreasing(self, cg):
        y, X = _binary_data()
        previous = None
        history = []
        for _ in range(30):
            state = cg.transition_batch(EMPTY_STATE, y, X, previous)
            history.append(state.log_likelihood)
            if len(history) > 1 and abs(history[-1] - history[-2]) < 1e-12:
                break
            previous = cg.final(state)
        assert len(history) > 5
        assert np.all(np.diff(history) >= -1e-9)

    def test_converges_to_statsmodels(self, cg):
        sm = pytest.importorskip("statsmodels.api")
        y, X = _binary_data()
        state = _iterate(cg, y, X, 100)
        ref = sm.Logit(y.astype(float), X).fit(disp=0)
        np.testing.assert_allclose(state.coef, ref.params, atol=1e-3)

    def test_distance_is_abs_loglik_difference(self, cg):
        a = _cg_state(log_likelihood=-10.0)
        b = _cg_state(log_likelihood=-7.5)
        assert cg.distance(a, b) == 2.5
        assert cg.distance(b, a) == 2.5

    def test_distance_rejects_empty(self, cg):
        with pytest.raises(IncompatibleStatesError):
            cg.distance(EMPTY_STATE, _cg_state())


# ------------------------------------------------------------------ #
# Result
# ------------------------------------------------------------------ #


class TestResult:
    def test_hand_computed_result(self, cg):
        out = cg.final(_accumulate(cg, *zip(*ROWS)))
        res = cg.result(out)
        se = math.sqrt(1 / 1.5)
        z = (4 / 3) / se
        assert res.solver == "cg"
        assert res.num_rows == 3
        np.testing.assert_allclose(res.coef, [4 / 3])
        np.testing.assert_allclose(res.std_err, [se])
        np.testing.assert_allclose(res.z_stats, [z])
        np.testing.assert_allclose(res.p_values, [2 * stats.norm.cdf(-z)])
        np.testing.assert_allclose(res.odds_ratios, [math.exp(4 / 3)])
        assert res.log_likelihood == pytest.approx(-3 * math.log(2))

    def test_result_of_empty_raises(self, cg):
        with pytest.raises(IncompatibleStatesError):
            cg.result(EMPTY_STATE)

    def test_result_of_foreign_state_raises(self, cg):
        with pytest.raises(IncompatibleStatesError):
            cg.result(IRLSState.zeros(1))
