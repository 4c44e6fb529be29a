"""
Tests for the CSV front end, the exact solvers and the audit utilities
"""

from decimal import Decimal

import pandas as pd
import pytest

from tier_allocator import AllocationMatrix, Variant, allocate, is_valid_row
from tier_allocator import ilp
from tier_allocator.main import build_parser, cli, load_allocation, load_inputs, run, summarize
from tier_allocator.matrix import TIER_LABELS
from tier_allocator.utils import report, validate
from conftest import pad


def D(values):
    return [Decimal(v) for v in values]


def write_table(path, table):
    frame = pd.DataFrame([[g] + list(row) for g, row in table.items()], columns=['group'] + TIER_LABELS)
    frame.to_csv(path, index=False)
    return str(path)


@pytest.fixture
def weights_csv(tmp_path, paired_weights):
    return write_table(tmp_path / "weights.csv", paired_weights)


class TestLoadInputs:
    """Test cases for load_inputs() / load_allocation()"""

    def test_file_order_and_values(self, weights_csv, paired_weights):
        groups, weights = load_inputs(weights_csv)
        assert groups == ['A', 'B']
        assert weights['A'] == D(paired_weights['A'])
        assert all(isinstance(w, Decimal) for w in weights['B'])

    def test_requested_groups(self, weights_csv):
        groups, _ = load_inputs(weights_csv, ['B', 'A'])
        assert groups == ['B', 'A']
        with pytest.raises(ValueError):
            load_inputs(weights_csv, ['A', 'C'])

    def test_blank_cells_are_zero(self, tmp_path):
        path = write_table(tmp_path / "w.csv", {'A': pad([3, None, 1])})
        _, weights = load_inputs(path)
        assert weights['A'][:3] == D([3, 0, 1])

    def test_missing_columns(self, tmp_path):
        path = tmp_path / "bad.csv"
        pd.DataFrame({'group': ['A'], 'D30': [1]}).to_csv(path, index=False)
        with pytest.raises(ValueError, match="missing"):
            load_inputs(str(path))

    def test_duplicates_dropped(self, tmp_path, paired_weights):
        path = tmp_path / "dup.csv"
        write_table(path, paired_weights)
        frame = pd.read_csv(path)
        pd.concat([frame, frame.iloc[[0]]]).to_csv(path, index=False)
        groups, _ = load_inputs(str(path))
        assert groups == ['A', 'B']

    def test_allocation_round_trip(self, tmp_path, paired_weights):
        m = allocate(['A', 'B'], paired_weights, 100)
        path = tmp_path / "alloc.csv"
        m.to_frame().to_csv(path, index=False)
        assert load_allocation(str(path)).as_dict() == m.as_dict()


class TestSummarize:

    def test_paired(self, paired_weights):
        m = allocate(['A', 'B'], paired_weights, 100)
        stats = summarize(m, paired_weights, 100)
        assert stats['n_groups'] == 2
        assert stats['actual'] == 100
        assert stats['error'] == 0
        assert stats['fill_rate'] == pytest.approx(1.0)
        assert stats['nonzero_cells'] == 20
        assert stats['per_group'] == {'A': 70, 'B': 30}


class TestCli:
    """End-to-end runs through cli()"""

    def test_heuristic_run(self, tmp_path, weights_csv):
        out = tmp_path / "out.csv"
        cli(["--weights", weights_csv, "--target", "100", "--out", str(out)])
        m = load_allocation(str(out))
        assert m.groups == ['A', 'B']
        assert m.rows == [D(pad([2] + [1] * 9)), D(pad([1] * 10))]

    def test_profile_run(self, tmp_path, paired_weights):
        path = write_table(tmp_path / "w.csv", {'urban': paired_weights['A'], 'rural': paired_weights['B']})
        out = tmp_path / "out.csv"
        cli(["--weights", path, "--target", "1000", "--out", str(out),
             "--profile", "market", "--ratios", "0.4,0.6"])
        m = load_allocation(str(out))
        assert all(is_valid_row(r, Variant.SMOOTH) for r in m.rows)

    @pytest.mark.parametrize("extra", [
        ["--target", "-5"],
        ["--target", "100", "--profile", "market"],
        ["--target", "100", "--cohorts", "A,B", "--ratios", "0.4"],
        ["--target", "100", "--profile", "nowhere"],
    ])
    def test_errors_exit_nonzero(self, tmp_path, paired_weights, capsys, extra):
        path = write_table(tmp_path / "w.csv", {'urban': paired_weights['A'], 'rural': paired_weights['B']})
        with pytest.raises(SystemExit) as exc:
            cli(["--weights", path, "--out", str(tmp_path / "out.csv")] + extra)
        assert exc.value.code == 1
        assert "ERROR:" in capsys.readouterr().err

    def test_run_picks_heuristic(self, weights_csv, paired_weights):
        cfg = build_parser().parse_args(["--weights", weights_csv, "--target", "100", "--out", "x.csv",
                                         "--variant", "smooth"])
        assert cfg.variant is Variant.SMOOTH
        m, label, _ = run(cfg, ['A', 'B'], paired_weights, Decimal(100))
        assert label == "Heuristic"
        assert m.weighted_sum(paired_weights) == 100


class TestIlp:
    """Exact solvers; skipped when the backend is not installed"""

    @pytest.mark.skipif(not ilp.HAVE_PULP, reason="pulp not installed")
    @pytest.mark.parametrize("variant", list(Variant))
    def test_pulp(self, flat_weights, variant):
        m, _ = ilp.ilp_pulp(['A', 'B'], flat_weights, 27, variant, timeout=30)
        if m is None:
            pytest.skip("CBC returned no solution")
        assert all(is_valid_row(r, variant) for r in m.rows)
        heuristic = allocate(['A', 'B'], flat_weights, 27, variant)
        assert abs(27 - m.weighted_sum(flat_weights)) <= abs(27 - heuristic.weighted_sum(flat_weights))

    @pytest.mark.skipif(not ilp.HAVE_OR, reason="ortools not installed")
    @pytest.mark.parametrize("warm_start", [True, False])
    def test_ortools(self, paired_weights, warm_start):
        m, _ = ilp.ilp_ortools(['A', 'B'], paired_weights, 97, Variant.BASIC, timeout=30,
                               or_workers=2, warm_start=warm_start)
        if m is None:
            pytest.skip("CP-SAT returned no solution")
        assert all(is_valid_row(r) for r in m.rows)
        heuristic = allocate(['A', 'B'], paired_weights, 97)
        assert abs(97 - m.weighted_sum(paired_weights)) <= abs(97 - heuristic.weighted_sum(paired_weights))

    def test_ortools_size_guard(self, monkeypatch, paired_weights):
        monkeypatch.setattr(ilp, "MAX_ILP_CELLS", 10)
        assert ilp.ilp_ortools(['A', 'B'], paired_weights, 97) == (None, 0.0)


class TestAudit:
    """Test cases for utils.validate and utils.report"""

    def test_clean_allocation(self, paired_weights):
        m = allocate(['A', 'B'], paired_weights, 100)
        res = validate.check_allocation(m, paired_weights, 100)
        assert res['ok']
        assert res['error'] == 0
        assert res['shape_violations'] == []

    def test_violations(self, paired_weights):
        m = AllocationMatrix(['A', 'B', 'Z'], [D(pad([1, 2, -1])), D(pad(["1.5"])), D(pad([]))])
        res = validate.check_allocation(m, paired_weights)
        assert not res['ok']
        assert res['unknown_groups'] == ['Z']
        assert res['negative_cells'] == 1
        assert res['non_integer_cells'] == 1
        assert res['shape_violations'] == ['A']
        assert res['error'] is None

    def test_smooth_audit(self, paired_weights):
        m = AllocationMatrix(['A'], [D(pad([3, 1]))])
        assert validate.check_allocation(m, paired_weights, variant="basic")['ok']
        assert validate.check_allocation(m, paired_weights, variant="smooth")['shape_violations'] == ['A']

    def test_validate_main(self, tmp_path, weights_csv, paired_weights):
        alloc = tmp_path / "alloc.csv"
        allocate(['A', 'B'], paired_weights, 100).to_frame().to_csv(alloc, index=False)
        assert validate.main(["--weights", weights_csv, "--alloc", str(alloc), "--target", "100"]) == 0

    def test_breakdowns(self, paired_weights):
        m = allocate(['A', 'B'], paired_weights, 100)
        tiers = report.tier_breakdown(m, paired_weights)
        assert list(tiers['tier'][:2]) == ['D30', 'D29']
        top = tiers.iloc[0]
        assert (top['units'], top['groups_reached'], top['amount']) == (3, 2, 25)
        assert tiers['amount'].sum() == pytest.approx(100)

        groups = report.group_breakdown(m, paired_weights).set_index('group')
        assert groups.loc['A', 'share'] == pytest.approx(0.7)
        assert groups.loc['B', 'tiers_reached'] == 10


if __name__ == "__main__":
    pytest.main([__file__])
