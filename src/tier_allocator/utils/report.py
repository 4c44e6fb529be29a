#!/usr/bin/env python3
import argparse
import pandas as pd, numpy as np

from tier_allocator.main import load_allocation, load_inputs
from tier_allocator.matrix import TIER_LABELS, normalize_weights, to_decimal


def tier_breakdown(matrix, weights) -> pd.DataFrame:
    """Per tier: units allocated, groups reached, delivered amount."""
    weight_rows = normalize_weights(matrix.groups, weights)
    alloc = np.array([[float(c) for c in r] for r in matrix.rows], dtype=float).reshape(-1, len(TIER_LABELS))
    w = np.array([[float(c) for c in r] for r in weight_rows], dtype=float).reshape(-1, len(TIER_LABELS))
    return pd.DataFrame({'tier': TIER_LABELS,
                         'units': alloc.sum(axis=0),
                         'groups_reached': (alloc > 0).sum(axis=0),
                         'amount': (alloc * w).sum(axis=0)})


def group_breakdown(matrix, weights) -> pd.DataFrame:
    weight_rows = normalize_weights(matrix.groups, weights)
    amounts = [sum((c * w for c, w in zip(r, wr)), to_decimal(0)) for r, wr in zip(matrix.rows, weight_rows)]
    df = pd.DataFrame({'group': matrix.groups,
                       'top_tier_units': [r[0] for r in matrix.rows],
                       'tiers_reached': [sum(1 for c in r if c > 0) for r in matrix.rows],
                       'amount': amounts})
    total = sum(amounts, to_decimal(0))
    df['share'] = [float(a / total) if total else 0.0 for a in amounts]
    return df


def main(argv=None):
    ap = argparse.ArgumentParser()
    ap.add_argument("--weights", required=True)
    ap.add_argument("--alloc", required=True)
    ap.add_argument("--target", default=None)
    ap.add_argument("--top", type=int, default=15, help="groups to list")
    args = ap.parse_args(argv)

    _, weights = load_inputs(args.weights)
    matrix = load_allocation(args.alloc)
    groups = group_breakdown(matrix, weights)
    tiers = tier_breakdown(matrix, weights)
    actual = sum(groups['amount'], to_decimal(0))

    print("── report ─────────────────────────────")
    print(f"groups            : {len(groups):,}")
    print(f"actual amount     : {actual}")
    if args.target is not None:
        target = to_decimal(args.target, "target")
        print(f"target / error    : {target} / {abs(target - actual)}")
    print(f"tiers reached     : {int((tiers['units'] > 0).sum())} of {len(TIER_LABELS)}")
    print("\nLargest groups:")
    top = groups.sort_values('share', ascending=False).head(args.top)
    for _, r in top.iterrows():
        print(f"  {r.group:<24} amount={r.amount}  share={r.share*100:.1f}%  "
              f"top={r.top_tier_units}  tiers={r.tiers_reached}")
    print("\nPer tier:")
    print(tiers[tiers['units'] > 0].to_string(index=False))
    print("──────────────────────────────────────")


if __name__ == "__main__":
    main()
