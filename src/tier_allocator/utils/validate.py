#!/usr/bin/env python3
import argparse, sys
import pandas as pd
import numpy as np

from tier_allocator.constraints import Variant, is_valid_row
from tier_allocator.main import load_allocation, load_inputs
from tier_allocator.matrix import TIER_LABELS, ZERO, normalize_weights, to_decimal, weighted_sum


def fmt(n):
    return f"{n:,}" if pd.notna(n) else "n/a"


def check_allocation(matrix, weights, target=None, variant=Variant.BASIC):
    """Audit an allocation against its weights: shape per row, negatives, unknown groups, error."""
    variant = Variant.parse(variant)
    unknown = [g for g in matrix.groups if g not in weights]
    known = [(g, r) for g, r in matrix if g in weights]

    cells = np.array([[float(c) for c in r] for _, r in known], dtype=float).reshape(-1, len(TIER_LABELS))
    negative_cells = int((cells < 0).sum())
    non_integer_cells = int((cells != np.floor(cells)).sum())
    bad_rows = [g for g, r in known if not is_valid_row(r, variant)]

    actual = ZERO
    if known:
        groups = [g for g, _ in known]
        actual = weighted_sum([r for _, r in known], normalize_weights(groups, weights))
    error = abs(to_decimal(target) - actual) if target is not None else None

    return {'groups': len(matrix.groups),
            'unknown_groups': unknown,
            'negative_cells': negative_cells,
            'non_integer_cells': non_integer_cells,
            'shape_violations': bad_rows,
            'actual': actual,
            'error': error,
            'ok': not (unknown or negative_cells or non_integer_cells or bad_rows)}


def main(argv=None):
    ap = argparse.ArgumentParser()
    ap.add_argument("--weights", required=True)
    ap.add_argument("--alloc", required=True)
    ap.add_argument("--target", default=None)
    ap.add_argument("--variant", type=Variant.parse, choices=list(Variant), default=Variant.BASIC)
    args = ap.parse_args(argv)

    _, weights = load_inputs(args.weights)
    matrix = load_allocation(args.alloc)
    res = check_allocation(matrix, weights, args.target, args.variant)

    print("── validator ─────────────────────────────────────────")
    print(f"groups in allocation           : {fmt(res['groups'])}")
    print(f"variant                        : {args.variant}")
    print(f"negative cells                 : {fmt(res['negative_cells'])}")
    print(f"non-integer cells              : {fmt(res['non_integer_cells'])}")
    print(f"rows breaking the shape        : {fmt(len(res['shape_violations']))}")
    print(f"actual (Σ allocation × weight) : {res['actual']}")
    if res['error'] is not None:
        print(f"target / error                 : {args.target} / {res['error']}")
    if res['unknown_groups']:
        print(f"  WARN: {fmt(len(res['unknown_groups']))} groups have no weights: {res['unknown_groups'][:10]}")
    if res['shape_violations']:
        print("\nRows breaking the shape:")
        for g in res['shape_violations'][:20]:
            print(f"  {g}: {[int(c) if c == int(c) else c for c in matrix[g]]}")
    print(f"\n{'✅ allocation valid' if res['ok'] else '❌ allocation invalid'}")
    print("───────────────────────────────────────────────────────")
    return 0 if res['ok'] else 1


if __name__ == "__main__":
    pd.set_option("display.max_rows", 200)
    sys.exit(main())
