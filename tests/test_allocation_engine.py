"""Tests for the rule-based allocation engine."""
from __future__ import annotations

import itertools

import pytest

from engine.allocation_engine import allocate, compute_targets, default_rules
from policy.allocation_rules import AllocationRules
from policy.types import GOALS, HORIZONS, Profile
from portfolio.recommendation import RULES


UNIVERSE_TICKERS = {
    "SPY", "IJR", "VTV", "QQQ", "VEA", "VWO", "BND", "IEF",
    "TIP", "SHY", "VNQ", "GLD", "DBC", "BIL", "AGG",
}

CONSTRAINT_SETS = [
    frozenset(),
    frozenset(["Avoid EM"]),
    frozenset(["Avoid REITs", "Avoid commodities"]),
    frozenset(["Avoid EM", "Avoid REITs", "Avoid commodities"]),
]


def make_profile(risk=3, horizon="5-10y", goal="balanced", constraints=()) -> Profile:
    return Profile(risk=risk, horizon=horizon, goal=goal, constraints=frozenset(constraints))


class TestSumToOne:
    """Every profile yields a basket summing to exactly 1 within the universe."""

    @pytest.mark.parametrize(
        "risk,horizon,goal",
        list(itertools.product([1, 2, 3, 4, 5], HORIZONS, GOALS)),
    )
    def test_all_table_profiles_sum_to_one(self, risk, horizon, goal):
        for constraints in CONSTRAINT_SETS:
            rec = allocate(make_profile(risk, horizon, goal, constraints))

            assert abs(rec.allocations.total() - 1.0) < 1e-9
            assert set(rec.allocations.tickers()) <= UNIVERSE_TICKERS
            assert all(w.weight >= 0 for w in rec.allocations.weights)

    def test_weights_are_rounded_to_rule_precision(self):
        """Weights carry at most 4 decimals after residual correction."""
        rec = allocate(make_profile(risk=4, horizon="10y+", goal="growth"))

        for w in rec.allocations.weights:
            assert round(w.weight, 4) == pytest.approx(w.weight, abs=1e-12)

    def test_source_is_rules(self):
        rec = allocate(make_profile())

        assert rec.source == RULES


class TestTargets:
    """Tests for equity/bond target resolution."""

    def test_balanced_mid_risk_example(self):
        """risk=3, 5-10y, balanced keeps the base 55% equity target."""
        targets = compute_targets(make_profile(), default_rules())

        assert targets.equity == pytest.approx(0.55)
        assert targets.bonds == pytest.approx(0.45)

    def test_horizon_caps_equity(self):
        """Short horizon caps equity at 50% even for max risk."""
        targets = compute_targets(make_profile(risk=5, horizon="<2y", goal="growth"), default_rules())

        # min(0.85, 0.50) = 0.50, then max(0.50, growth floor 0.60) = 0.60
        assert targets.equity == pytest.approx(0.60)

    def test_goal_floors_equity(self):
        """Growth goal lifts a low-risk equity target to its floor."""
        targets = compute_targets(make_profile(risk=1, goal="growth"), default_rules())

        assert targets.equity == pytest.approx(0.60)

    def test_bond_floor_can_push_targets_above_one(self):
        """Bond floors are applied after 1 - equity; the excess is left to normalization."""
        targets = compute_targets(make_profile(risk=5, horizon="10y+", goal="income"), default_rules())

        assert targets.equity == pytest.approx(0.85)
        assert targets.bonds == pytest.approx(0.40)
        assert targets.equity + targets.bonds > 1.0

        rec = allocate(make_profile(risk=5, horizon="10y+", goal="income"))
        assert abs(rec.allocations.total() - 1.0) < 1e-9

    def test_unknown_horizon_and_goal_use_defaults(self):
        rules = default_rules()
        odd = compute_targets(make_profile(horizon="30y", goal="yolo"), rules)
        default = compute_targets(make_profile(horizon="5-10y", goal="balanced"), rules)

        assert odd == default

    @pytest.mark.parametrize("risk", [0, 6, 42, -3])
    def test_out_of_range_risk_uses_default_equity(self, risk):
        targets = compute_targets(make_profile(risk=risk), default_rules())

        assert targets.equity == pytest.approx(0.55)


class TestRationale:
    """Tests for the emitted rationale and risk notes."""

    def test_rationale_mentions_equity_target(self):
        rec = allocate(make_profile())

        assert "55%" in rec.rationale
        assert "risk=3" in rec.rationale
        assert "horizon=5-10y" in rec.rationale
        assert "goal=balanced" in rec.rationale

    def test_risk_notes_are_educational(self):
        rec = allocate(make_profile())

        assert "educational" in rec.risk_notes.lower()


class TestConstraints:
    """Tests for constraint exclusions."""

    def test_avoid_em_zeroes_emerging_markets(self):
        rec = allocate(make_profile(constraints=["Avoid EM"]))

        assert rec.allocations.weight_of("VWO") == 0.0
        assert "VWO" not in rec.allocations.tickers()

    def test_avoid_em_redistributes_to_other_equity(self):
        """The EM share moves to the remaining equity buckets."""
        base = allocate(make_profile())
        no_em = allocate(make_profile(constraints=["Avoid EM"]))

        for ticker in ("IJR", "VEA", "QQQ", "VTV"):
            assert no_em.allocations.weight_of(ticker) > base.allocations.weight_of(ticker)

    def test_avoid_reits(self):
        rec = allocate(make_profile(constraints=["Avoid REITs"]))

        assert rec.allocations.weight_of("VNQ") == 0.0

    def test_avoid_commodities(self):
        rec = allocate(make_profile(constraints=["Avoid commodities"]))

        assert rec.allocations.weight_of("GLD") == 0.0
        assert rec.allocations.weight_of("DBC") == 0.0

    def test_unknown_constraint_is_ignored(self):
        base = allocate(make_profile())
        rec = allocate(make_profile(constraints=["Only ESG"]))

        assert rec.allocations == base.allocations

    def test_satellites_and_cash_present_by_default(self):
        rec = allocate(make_profile())

        for ticker in ("VNQ", "GLD", "DBC", "BIL"):
            assert rec.allocations.weight_of(ticker) > 0


class TestDegenerateRules:
    """Rule tables that exclude everything still produce a valid basket."""

    def test_everything_excluded_falls_back_to_anchor(self):
        raw = dict(default_rules().raw)
        raw["constraints"] = {
            "Avoid all": ["SPY", "IJR", "VEA", "VWO", "QQQ", "VTV", "BND",
                          "AGG", "IEF", "TIP", "SHY", "VNQ", "GLD", "DBC", "BIL"],
        }
        rules = AllocationRules(raw)

        rec = allocate(make_profile(constraints=["Avoid all"]), rules)

        assert rec.allocations.as_dict() == {"SPY": 1.0}

    def test_all_equity_buckets_excluded(self):
        raw = dict(default_rules().raw)
        raw["constraints"] = {"No stocks": ["SPY", "IJR", "VEA", "VWO", "QQQ", "VTV"]}
        rules = AllocationRules(raw)

        rec = allocate(make_profile(constraints=["No stocks"]), rules)

        assert abs(rec.allocations.total() - 1.0) < 1e-9
        assert rec.allocations.weight_of("SPY") == 0.0
