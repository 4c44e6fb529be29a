"""
Exact solvers for the same problem the heuristic engine approximates.

    minimize  over + under
    s.t.      Σ x[g,t]·w[g,t] - over + under = target
              x[g,t] ≤ x[g,t-1]                 (both variants)
              x[g,t-1] - x[g,t] ≤ 1             (smooth only)
              0 ≤ x[g,t] ≤ ub[g], integer

• PuLP (CBC) path works on floats; the returned matrix is re-scored exactly.
• OR-Tools CP-SAT path scales weights/target to integers and can be warm
  started from the heuristic (AddHint).
Both return (AllocationMatrix | None, seconds); None when the backend is
missing, the model is too big, or no solution came back in time.
"""

from __future__ import annotations
import logging
import time
from decimal import Decimal
from typing import List

import numpy as np

from .constraints import Variant, enforce_rows
from .engine import allocate
from .matrix import TIER_COUNT, ZERO, AllocationMatrix, check_target, normalize_weights, weighted_sum

logger = logging.getLogger(__name__)

# Optional solvers
try:
    import pulp
    HAVE_PULP = True
except Exception:
    HAVE_PULP = False

try:
    from ortools.sat.python import cp_model
    HAVE_OR = True
except Exception:
    HAVE_OR = False

MAX_ILP_CELLS = 600_000  # guard (x vars = groups × TIER_COUNT)


def _cell_bounds(weight_rows, target: Decimal) -> List[int]:
    """Per-group cap on any cell: enough units of the lightest positive weight to pass the target."""
    ub = []
    for row in weight_rows:
        positive = [w for w in row if w > ZERO]
        ub.append(int(target / min(positive)) + 1 if positive else 0)
    return ub


def _scale(values) -> int:
    places = 0
    for v in values:
        exp = v.normalize().as_tuple().exponent
        if exp < 0:
            places = max(places, -exp)
    return 10 ** places


def _finish(groups, rows, weight_rows, target, variant, label, t0):
    rows = enforce_rows(rows, variant)
    actual = weighted_sum(rows, weight_rows)
    t = time.time() - t0
    logger.info(f"→ {label} …actual={actual}  error={abs(target - actual)}  time={t:.1f}s")
    return AllocationMatrix(list(groups), rows), t


# ───────────── PuLP ─────────────
def ilp_pulp(groups, weights, target, variant=Variant.BASIC, timeout=60):
    if not HAVE_PULP:
        logger.info("→ Skipping PuLP: HAVE_PULP=False")
        return None, 0.0
    groups = list(groups)
    variant = Variant.parse(variant)
    target = check_target(target)
    weight_rows = normalize_weights(groups, weights)
    t0 = time.time()

    ub = _cell_bounds(weight_rows, target)
    prob = pulp.LpProblem("tier_allocation", pulp.LpMinimize)
    x = {(g, t): pulp.LpVariable(f"x_{g}_{t}", lowBound=0, upBound=ub[g], cat="Integer")
         for g in range(len(groups)) for t in range(TIER_COUNT)}
    over = pulp.LpVariable("over", lowBound=0)
    under = pulp.LpVariable("under", lowBound=0)

    prob += over + under
    prob += pulp.lpSum(float(weight_rows[g][t]) * x[(g, t)]
                       for g in range(len(groups)) for t in range(TIER_COUNT)
                       if weight_rows[g][t]) - over + under == float(target)
    for g in range(len(groups)):
        for t in range(1, TIER_COUNT):
            prob += x[(g, t)] <= x[(g, t - 1)]
            if variant is Variant.SMOOTH:
                prob += x[(g, t - 1)] - x[(g, t)] <= 1

    solver = pulp.PULP_CBC_CMD(msg=False, timeLimit=int(timeout))
    try:
        prob.solve(solver)
    except pulp.PulpSolverError as e:
        logger.warning(f"→ PuLP ILP …solver failed: {e}")
        return None, time.time() - t0
    status = pulp.LpStatus.get(prob.status, "Unknown")
    logger.info(f"→ PuLP ILP ……status={status}")
    if status not in ("Optimal", "Feasible"):
        return None, time.time() - t0

    rows = [[Decimal(int(round(x[(g, t)].value() or 0))) for t in range(TIER_COUNT)]
            for g in range(len(groups))]
    return _finish(groups, rows, weight_rows, target, variant, "PuLP ILP", t0)


# ---- safe sum wrapper for CP-SAT (avoids Python built-in 'sum' ambiguity)
def LSum(items):
    return cp_model.LinearExpr.Sum(list(items))


# ───────────── OR-Tools CP-SAT ─────────────
def ilp_ortools(groups, weights, target, variant=Variant.BASIC, timeout=60,
                or_workers=8, or_log=False, warm_start=True):
    groups = list(groups)
    if (not HAVE_OR) or (len(groups) * TIER_COUNT > MAX_ILP_CELLS):
        reason = []
        if not HAVE_OR: reason.append("HAVE_OR=False")
        if len(groups) * TIER_COUNT > MAX_ILP_CELLS:
            reason.append(f"cells={len(groups) * TIER_COUNT:,} > {MAX_ILP_CELLS:,}")
        logger.info(f"→ Skipping OR-Tools: {'; '.join(reason)}")
        return None, 0.0

    variant = Variant.parse(variant)
    target = check_target(target)
    weight_rows = normalize_weights(groups, weights)
    t0 = time.time()

    scale = _scale([target] + [w for row in weight_rows for w in row])
    coeffs = [[int(w * scale) for w in row] for row in weight_rows]
    goal = int(target * scale)
    ub = _cell_bounds(weight_rows, target)
    reach = sum(ub[g] * sum(coeffs[g]) for g in range(len(groups)))

    m = cp_model.CpModel()
    x = [[m.NewIntVar(0, ub[g], f"x_{g}_{t}") for t in range(TIER_COUNT)] for g in range(len(groups))]
    over = m.NewIntVar(0, max(reach, 0), "over")
    under = m.NewIntVar(0, goal, "under")

    terms = [coeffs[g][t] * x[g][t] for g in range(len(groups)) for t in range(TIER_COUNT) if coeffs[g][t]]
    m.Add(LSum(terms) - over + under == goal)
    for g in range(len(groups)):
        for t in range(1, TIER_COUNT):
            m.Add(x[g][t] <= x[g][t - 1])
            if variant is Variant.SMOOTH:
                m.Add(x[g][t - 1] - x[g][t] <= 1)
    m.Minimize(over + under)

    solver = cp_model.CpSolver()
    solver.parameters.max_time_in_seconds = float(timeout)
    solver.parameters.num_search_workers = max(1, int(or_workers))
    solver.parameters.log_search_progress = bool(or_log)

    # Warm start from the heuristic engine (optional)
    if warm_start:
        t_ws = time.time()
        seed = allocate(groups, weight_rows, target, variant)
        for g, row in enumerate(seed.rows):
            for t, v in enumerate(row):
                m.AddHint(x[g][t], min(int(v), ub[g]))
        logger.info(f"[warm-start] hinted {len(groups) * TIER_COUNT:,} vars in {time.time() - t_ws:.1f}s")

    status = solver.Solve(m)
    status_str = {cp_model.OPTIMAL: "OPTIMAL", cp_model.FEASIBLE: "FEASIBLE"}.get(status, str(status))
    logger.info(f"→ OR-Tools ILP …status={status_str}")
    if status not in (cp_model.OPTIMAL, cp_model.FEASIBLE):
        return None, time.time() - t0

    values = np.fromiter((solver.Value(v) for row in x for v in row), dtype=np.int64,
                         count=len(groups) * TIER_COUNT).reshape(len(groups), TIER_COUNT)
    rows = [[Decimal(int(v)) for v in r] for r in values]
    return _finish(groups, rows, weight_rows, target, variant, "OR-Tools ILP", t0)
