#!/usr/bin/env python3
"""
Tier Allocator – CSV front end for the allocation engine

• Weights table: one row per group, column `group` plus tier columns D30..D1
  (D30 = highest tier). Blank cells count as zero.
• Output table: same layout, allocation counts instead of weights.

Solvers:
  - heuristic  → coarse fill + local refinement (default, deterministic)
  - pulp / or  → exact ILP via CBC or CP-SAT (CP-SAT warm-started from the heuristic)
  - both       → PuLP first, OR-Tools if PuLP gave nothing, heuristic as last fallback

Cohort split (--cohorts urban,rural --ratios 0.4,0.6, or --profile market)
always runs on the heuristic engine.
"""

from __future__ import annotations
import argparse, sys, time, textwrap, logging
from decimal import Decimal

import pandas as pd

from .constraints import Variant
from .engine import allocate
from .errors import ConfigurationError
from .ilp import ilp_ortools, ilp_pulp
from .matrix import TIER_LABELS, AllocationMatrix, check_target, normalize_weights, to_decimal
from .profiles import allocate_for_profile, get_profile
from .splitter import allocate_proportional

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)
logger = logging.getLogger(__name__)


def _read_tier_table(path, what):
    frame = (pd.read_csv(path, dtype=str)
               .rename(columns=str.strip))
    need = {'group', *TIER_LABELS}
    if (m := need - set(frame.columns)):
        raise ValueError(f"{what} missing {sorted(m)}")
    frame['group'] = frame['group'].str.strip()
    if frame['group'].isna().any():
        raise ValueError(f"{what} has {int(frame['group'].isna().sum())} rows without a group")
    return frame


def load_inputs(weights_csv, groups=None):
    """Returns (groups, {group: [30 Decimal weights]}) in file order, or in `groups` order when given."""
    frame = _read_tier_table(weights_csv, "weights")
    dupes = frame['group'].duplicated()
    if dupes.any():
        logger.warning(f"weights: {int(dupes.sum())} duplicate group rows dropped (first kept)")
        frame = frame[~dupes]

    weights = {row['group']: [to_decimal(row[c], f"{row['group']}.{c}") for c in TIER_LABELS]
               for _, row in frame.iterrows()}
    if groups:
        if (m := [g for g in groups if g not in weights]):
            raise ValueError(f"weights missing groups {m}")
        return list(groups), weights
    return frame['group'].tolist(), weights


def load_allocation(alloc_csv) -> AllocationMatrix:
    frame = _read_tier_table(alloc_csv, "allocation")
    rows = [[to_decimal(row[c], f"{row['group']}.{c}") for c in TIER_LABELS] for _, row in frame.iterrows()]
    return AllocationMatrix(frame['group'].tolist(), rows)


def summarize(matrix: AllocationMatrix, weights, target):
    target = check_target(target)
    weight_rows = normalize_weights(matrix.groups, weights)
    per_group = pd.Series(
        [sum((c * w for c, w in zip(r, wr)), Decimal(0)) for r, wr in zip(matrix.rows, weight_rows)],
        index=pd.Index(matrix.groups, name='group'), dtype=object,
    )
    actual = sum(per_group, Decimal(0))
    cells = pd.DataFrame([list(r) for r in matrix.rows], columns=TIER_LABELS, dtype=object)
    return {'n_groups': len(matrix.groups),
            'actual': actual,
            'error': abs(target - actual),
            'fill_rate': float(actual / target) if target else 0.0,
            'nonzero_cells': int((cells != 0).to_numpy().sum()),
            'per_group': per_group.to_dict()}


def print_summary(matrix, weights, target, label, t_sec):
    stats = summarize(matrix, weights, target)
    logger.info(textwrap.dedent(f"""
        ── {label} summary ───────────────────────────────────────
        groups            : {stats['n_groups']:,}
        target            : {target}
        actual            : {stats['actual']}
        error             : {stats['error']}
        fill rate         : {stats['fill_rate']*100:.2f} %
        non-zero cells    : {stats['nonzero_cells']:,}
        wall time         : {t_sec:.1f}s
        ──────────────────────────────────────────────────────────
    """).strip())
    return stats


def _parse_pair(s, what):
    if not s:
        return None, None
    parts = [x.strip() for x in s.split(',') if x.strip()]
    if len(parts) != 2:
        raise ConfigurationError(f"{what} needs exactly two comma-separated values, got {s!r}")
    return parts[0], parts[1]


def run(cfg, groups, weights, target):
    """Pick the allocation path from cfg; returns (matrix, label, solver seconds)."""
    ratio_a, ratio_b = _parse_pair(cfg.ratios, "--ratios")

    if cfg.profile:
        profile = get_profile(cfg.profile)
        logger.info(f"→ Profile {profile.name} ({profile.description})")
        t0 = time.time()
        return allocate_for_profile(profile, groups, weights, target, ratio_a, ratio_b), profile.name, time.time() - t0

    if cfg.cohorts:
        cohort_a, cohort_b = _parse_pair(cfg.cohorts, "--cohorts")
        if cfg.solver != "heuristic":
            logger.info("→ Cohort split runs on the heuristic engine only")
        t0 = time.time()
        m = allocate_proportional(groups, weights, target, cohort_a, cohort_b,
                                  ratio_a, ratio_b, cfg.variant, cfg.max_iter)
        return m, "Split", time.time() - t0

    m = None; t_used = 0.0; label = "Heuristic"
    if cfg.solver in ("pulp", "both"):
        m, t_used = ilp_pulp(groups, weights, target, cfg.variant, cfg.timeout)
        label = "PuLP"
    if m is None and cfg.solver in ("or", "both"):
        m, t_used = ilp_ortools(groups, weights, target, cfg.variant, cfg.timeout,
                                cfg.or_workers, cfg.or_log, cfg.warm_start)
        label = "OR-Tools"
    if m is None:
        if cfg.solver != "heuristic":
            logger.info("→ Heuristic fallback")
        t0 = time.time()
        m = allocate(groups, weights, target, cfg.variant, cfg.max_iter)
        label, t_used = "Heuristic", time.time() - t0
    return m, label, t_used


def main(cfg):
    t0 = time.time()
    groups, weights = load_inputs(cfg.weights, cfg.groups.split(',') if cfg.groups else None)
    target = to_decimal(cfg.target, "target")
    logger.info(f"groups: {len(groups):,}   target: {target}   variant: {cfg.variant}")

    matrix, label, t_used = run(cfg, groups, weights, target)
    if not matrix.ok:
        raise matrix.input_error

    print_summary(matrix, weights, target, label, t_used)
    matrix.to_frame().to_csv(cfg.out, index=False)
    logger.info(f"✅ wrote {cfg.out}   (total wall time {time.time()-t0:.1f}s)")
    return matrix


def build_parser():
    ap = argparse.ArgumentParser(description="Allocate a target across groups × 30 tiers.")
    ap.add_argument("--weights", required=True, help="CSV: group,D30..D1")
    ap.add_argument("--target", required=True, help="aggregate quantity to approximate")
    ap.add_argument("--out", required=True)
    ap.add_argument("--groups", default=None, help="comma-separated subset/order of groups (default: all)")
    ap.add_argument("--variant", type=Variant.parse, choices=list(Variant), default=Variant.BASIC,
                    help="row shape: basic=non-increasing, smooth=non-increasing with steps ≤ 1")
    ap.add_argument("--max_iter", type=int, default=None,
                    help="refinement iterations (default 100 basic / 500 smooth)")
    ap.add_argument("--profile", default=None, help="delivery profile name (overrides variant/cohorts)")
    ap.add_argument("--cohorts", default=None, help="two cohort group names, e.g. urban,rural")
    ap.add_argument("--ratios", default=None, help="cohort ratios summing to 1, e.g. 0.4,0.6")
    ap.add_argument("--solver", choices=("heuristic", "pulp", "or", "both"), default="heuristic")
    ap.add_argument("--timeout", type=int, default=60, help="ILP time limit (s)")
    ap.add_argument("--or_workers", type=int, default=8)
    ap.add_argument("--or_log", action="store_true")
    ap.add_argument("--warm_start", dest="warm_start", action="store_true", default=True,
                    help="seed CP-SAT with the heuristic via AddHint (default)")
    ap.add_argument("--no_warm_start", dest="warm_start", action="store_false",
                    help="disable warm start")
    return ap


def cli(argv=None):
    cfg = build_parser().parse_args(argv)
    try:
        main(cfg)
    except Exception as e:
        print("ERROR:", e, file=sys.stderr); sys.exit(1)


if __name__ == "__main__":
    cli()
