"""
Logistic Regression over Partitioned Data (Binary Outcome)
Breast Cancer Wisconsin (Diagnostic) dataset (UCI ML Repository ID=17)

Demonstrates:
- ``fit_logistic_regression`` with both solvers (``"irls"`` and ``"cg"``)
- Partition invariance: 1, 8 and 64 partitions, shuffled merge order,
  threaded accumulation
- External validation against statsmodels ``Logit``
- Direct aggregate usage (initial_state / transition_batch / merge /
  final / distance / result) with a hand-rolled driver loop
- Flat-array state encoding between "workers"
"""

import logging

import numpy as np
import statsmodels.api as sm
from ucimlrepo import fetch_ucirepo

from streaming_logit import (
    decode_state,
    encode_state,
    fit_logistic_regression,
    print_results_table,
    resolve_solver,
    wald_confidence_intervals,
)

logging.basicConfig(level=logging.INFO)
logging.getLogger("streaming_logit.engine").setLevel(logging.DEBUG)

# ============================================================================
# Load data
# ============================================================================

breast_cancer = fetch_ucirepo(id=17)
X_bc = breast_cancer.data.features
y_bc = breast_cancer.data.targets

# Convert target to binary: malignant (M) -> 1, benign (B) -> 0
y_bc = (y_bc == "M").astype(int)

selected_features = ["radius1", "texture1", "smoothness1", "compactness1"]
# Standardised features keep the CG curvature well scaled.
X_bc = X_bc[selected_features]
X_bc = (X_bc - X_bc.mean()) / X_bc.std()

print("Dataset: Breast Cancer Wisconsin (UCI ID=17)")
print(f"  Observations:  {len(y_bc)}")
print(f"  Features:      {X_bc.shape[1]} ({', '.join(selected_features)})")
print(f"  Malignant:     {int(y_bc.to_numpy().sum())}")
print()

# ============================================================================
# External validation: statsmodels Logit
# ============================================================================

sm_model = sm.Logit(np.ravel(y_bc), sm.add_constant(X_bc)).fit(disp=0)

# ============================================================================
# IRLS, single partition
# ============================================================================

results_irls = fit_logistic_regression(X_bc, y_bc, solver="irls", tolerance=1e-10)
print_results_table(results_irls, title="IRLS (1 partition)")

np.testing.assert_allclose(results_irls.coef, sm_model.params.to_numpy(), atol=1e-6)
np.testing.assert_allclose(results_irls.std_err, sm_model.bse.to_numpy(), rtol=1e-4)
print("IRLS matches statsmodels Logit (coef atol=1e-6, SE rtol=1e-4)")
print()

# ============================================================================
# Conjugate gradient, 8 partitions, threaded
# ============================================================================

results_cg = fit_logistic_regression(
    X_bc,
    y_bc,
    solver="cg",
    max_iter=200,
    tolerance=1e-10,
    n_partitions=8,
    n_jobs=4,
)
print_results_table(results_cg, title="Conjugate Gradient (8 partitions, 4 threads)")
print(
    f"max |coef_cg - coef_irls| = "
    f"{np.max(np.abs(results_cg.coef - results_irls.coef)):.2e}"
)
print()

# ============================================================================
# Partition invariance
# ============================================================================

for n_partitions in (8, 64):
    for seed in (None, 0):
        res = fit_logistic_regression(
            X_bc,
            y_bc,
            solver="irls",
            tolerance=1e-10,
            n_partitions=n_partitions,
            random_state=seed,
        )
        diff = np.max(np.abs(res.coef - results_irls.coef))
        print(
            f"  n_partitions={n_partitions:<3} random_state={seed!s:<5} "
            f"max |Δcoef| = {diff:.2e}"
        )
        assert diff < 1e-8
print()

# ============================================================================
# Confidence intervals (90%)
# ============================================================================

ci = wald_confidence_intervals(results_irls, confidence_level=0.90)
for name, (lo, hi) in zip(results_irls.feature_names, ci["odds_ratio"]):
    print(f"  {name:<14} OR 90% CI: [{lo:8.4f}, {hi:8.4f}]")
print()

# ============================================================================
# Direct aggregate usage: manual driver with encoded states
# ============================================================================
#
# Each "worker" accumulates its chunk and ships a flat float64 array;
# the coordinator decodes, merges, finalizes and broadcasts the
# finalized state back for the next pass.

solver = resolve_solver("irls")
X_np = np.column_stack([np.ones(len(X_bc)), X_bc.to_numpy()])
y_np = np.ravel(y_bc).astype(bool)
chunks = np.array_split(np.arange(len(y_np)), 5)

previous = None
for iteration in range(1, 26):
    wire = [
        encode_state(
            solver.transition_batch(
                solver.initial_state(), y_np[idx], X_np[idx], previous
            ),
            solver.name,
        )
        for idx in chunks
    ]
    merged = solver.initial_state()
    for buf in wire:
        merged = solver.merge(merged, decode_state(buf, solver.name))
    current = solver.final(merged)
    if previous is not None and solver.distance(previous, current) < 1e-10:
        previous = current
        break
    previous = current

manual = solver.result(previous)
print(f"Manual driver: {iteration} iterations")
np.testing.assert_allclose(manual.coef, results_irls.coef, atol=1e-8)
print("Manual driver matches fit_logistic_regression (atol=1e-8)")
