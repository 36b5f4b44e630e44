"""Tests for the DataFrame entry point ``fit_logistic_regression``."""

import numpy as np
import pandas as pd
import pytest

from streaming_logit import (
    ConvergenceWarning,
    LogisticRegressionResult,
    NonFiniteInputError,
    fit_logistic_regression,
)

# ------------------------------------------------------------------ #
# Helpers
# ------------------------------------------------------------------ #


def _binary_data(n: int = 300, seed: int = 42):
    """Three-feature DataFrame and a one-column binary outcome frame."""
    rng = np.random.default_rng(seed)
    X = pd.DataFrame(
        {
            "age": rng.normal(40, 10, n),
            "dose": rng.normal(0, 1, n),
            "score": rng.normal(0, 1, n),
        }
    )
    logits = -2.0 + 0.05 * X["age"] + 0.8 * X["dose"] - 0.4 * X["score"]
    outcome = rng.random(n) < 1 / (1 + np.exp(-logits))
    y = pd.DataFrame({"outcome": outcome.astype(int)})
    return X, y


# ------------------------------------------------------------------ #
# Fitting
# ------------------------------------------------------------------ #


class TestFit:
    def test_returns_result_with_metadata(self):
        X, y = _binary_data()
        res = fit_logistic_regression(X, y, solver="irls")
        assert isinstance(res, LogisticRegressionResult)
        assert res.solver == "irls"
        assert res.feature_names == ["const", "age", "dose", "score"]
        assert res.num_rows == 300
        assert res.converged is True
        assert res.n_iterations == len(res.log_likelihood_history)

    def test_no_intercept(self):
        X, y = _binary_data()
        res = fit_logistic_regression(X, y, fit_intercept=False)
        assert res.feature_names == ["age", "dose", "score"]
        assert res.coef.shape == (3,)

    def test_matches_statsmodels(self):
        sm = pytest.importorskip("statsmodels.api")
        X, y = _binary_data()
        res = fit_logistic_regression(X, y, solver="irls", tolerance=1e-10)
        ref = sm.Logit(y["outcome"], sm.add_constant(X)).fit(disp=0)
        np.testing.assert_allclose(res.coef, ref.params.to_numpy(), atol=1e-6)
        np.testing.assert_allclose(res.std_err, ref.bse.to_numpy(), rtol=1e-4)

    def test_cg_agrees_with_irls(self):
        X, y = _binary_data()
        X = X[["dose", "score"]]
        irls = fit_logistic_regression(X, y, solver="irls", tolerance=1e-10)
        cg = fit_logistic_regression(
            X, y, solver="cg", max_iter=200, tolerance=1e-10
        )
        assert cg.solver == "cg"
        np.testing.assert_allclose(cg.coef, irls.coef, atol=1e-3)

    def test_series_target(self):
        X, y = _binary_data()
        a = fit_logistic_regression(X, y)
        b = fit_logistic_regression(X, y["outcome"])
        np.testing.assert_array_equal(a.coef, b.coef)

    def test_boolean_target(self):
        X, y = _binary_data()
        a = fit_logistic_regression(X, y)
        b = fit_logistic_regression(X, y["outcome"].astype(bool))
        np.testing.assert_array_equal(a.coef, b.coef)

    @pytest.mark.parametrize("n_partitions", [2, 7, 300])
    def test_partitioning_invariance(self, n_partitions):
        X, y = _binary_data()
        base = fit_logistic_regression(X, y, tolerance=1e-10)
        split = fit_logistic_regression(
            X, y, tolerance=1e-10, n_partitions=n_partitions
        )
        np.testing.assert_allclose(split.coef, base.coef, atol=1e-8)

    def test_shuffled_merge_order(self):
        X, y = _binary_data()
        a = fit_logistic_regression(X, y, n_partitions=6, random_state=0)
        b = fit_logistic_regression(X, y, n_partitions=6, random_state=1)
        np.testing.assert_allclose(a.coef, b.coef, atol=1e-8)

    def test_parallel_matches_serial(self):
        X, y = _binary_data()
        a = fit_logistic_regression(X, y, n_partitions=4)
        b = fit_logistic_regression(X, y, n_partitions=4, n_jobs=2)
        np.testing.assert_array_equal(a.coef, b.coef)

    def test_iteration_cap_warns(self):
        X, y = _binary_data()
        with pytest.warns(ConvergenceWarning):
            res = fit_logistic_regression(X, y, max_iter=1)
        assert res.converged is False
        assert res.n_iterations == 1


# ------------------------------------------------------------------ #
# Validation
# ------------------------------------------------------------------ #


class TestValidation:
    def test_multi_column_y(self):
        X, y = _binary_data()
        with pytest.raises(ValueError, match="exactly one column"):
            fit_logistic_regression(X, pd.concat([y, y], axis=1))

    def test_empty_X(self):
        with pytest.raises(ValueError, match="at least one observation"):
            fit_logistic_regression(
                pd.DataFrame({"a": pd.Series([], dtype=float)}),
                pd.Series([], dtype=int),
            )

    def test_no_features(self):
        X, y = _binary_data()
        with pytest.raises(ValueError, match="at least one feature"):
            fit_logistic_regression(X[[]], y)

    def test_row_mismatch(self):
        X, y = _binary_data()
        with pytest.raises(ValueError, match="rows but y has"):
            fit_logistic_regression(X, y.iloc[:-1])

    def test_non_numeric_feature(self):
        X, y = _binary_data()
        X = X.assign(group="a")
        with pytest.raises(ValueError, match="numeric"):
            fit_logistic_regression(X, y)

    def test_non_binary_target(self):
        X, y = _binary_data()
        y = y.copy()
        y.iloc[0, 0] = 2
        with pytest.raises(ValueError, match="binary"):
            fit_logistic_regression(X, y)

    def test_string_target(self):
        X, y = _binary_data()
        with pytest.raises(ValueError, match="boolean or numeric"):
            fit_logistic_regression(X, y["outcome"].map({0: "no", 1: "yes"}))

    def test_nan_target(self):
        X, y = _binary_data()
        y = y.astype(float)
        y.iloc[3, 0] = np.nan
        with pytest.raises(NonFiniteInputError, match="Dependent"):
            fit_logistic_regression(X, y)

    def test_infinite_feature(self):
        X, y = _binary_data()
        X.iloc[5, 1] = np.inf
        with pytest.raises(NonFiniteInputError, match="Design matrix"):
            fit_logistic_regression(X, y)

    @pytest.mark.parametrize("n_partitions", [0, 301])
    def test_bad_partition_count(self, n_partitions):
        X, y = _binary_data()
        with pytest.raises(ValueError, match="n_partitions"):
            fit_logistic_regression(X, y, n_partitions=n_partitions)

    def test_unsupported_input_type(self):
        X, y = _binary_data()
        with pytest.raises(TypeError, match="'X' must be a pandas DataFrame"):
            fit_logistic_regression(X.to_numpy(), y)
