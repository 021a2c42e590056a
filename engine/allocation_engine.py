"""Rule-based allocation engine.

Maps an investor profile to a weighted ETF basket using the rule tables in
``config/allocation_rules.yaml``:
- Risk level sets the base equity share
- Horizon caps equity and floors bonds
- Goal floors equity and/or bonds
- Constraint tags exclude tickers before each sleeve is split

The engine is total: any profile produces a normalized recommendation.
"""
from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from typing import Dict, FrozenSet, Iterable, Optional

from common.config_loader import load_all
from engine.explanation_engine import RULE_RISK_NOTES, explain_rule_allocation
from policy.allocation_rules import AllocationRules, Bucket, load_rules
from policy.types import Profile
from portfolio.allocation import Allocation, round_to_one
from portfolio.recommendation import RULES, Recommendation
from portfolio.universe import build_universe


@dataclass(frozen=True)
class SleeveTargets:
    """Pre-normalization sleeve targets.

    ``equity + bonds`` may exceed 1 when the bond floors bind; final
    normalization absorbs the excess.
    """

    equity: float
    bonds: float


@lru_cache(maxsize=1)
def default_rules() -> AllocationRules:
    """Rules from the bundled configuration, validated against the bundled universe."""
    cfg = load_all()
    return load_rules(cfg.rules, build_universe(cfg.universe))


def compute_targets(profile: Profile, rules: AllocationRules) -> SleeveTargets:
    """Resolve equity and bond targets from the rule tables.

    Args:
        profile: Investor profile.
        rules: Rule tables.

    Returns:
        SleeveTargets before normalization.
    """
    limits = rules.horizon_limits(profile.horizon)
    bias = rules.goal_bias(profile.goal)

    equity = rules.equity_for_risk(profile.risk)
    equity = min(equity, limits.equity_max)
    equity = max(equity, bias.equity_min)

    bonds = 1.0 - equity
    bonds = max(bonds, bias.bonds_min)
    bonds = max(bonds, limits.bonds_min)

    return SleeveTargets(equity=equity, bonds=bonds)


def _distribute(
    buckets: Iterable[Bucket],
    target: float,
    excluded: FrozenSet[str],
    out: Dict[str, float],
) -> None:
    """Split ``target`` across buckets pro rata, skipping excluded and zero buckets."""
    live = [b for b in buckets if b.weight > 0 and b.ticker not in excluded]
    total = sum(b.weight for b in live)
    if total <= 0:
        return
    for b in live:
        out[b.ticker] = out.get(b.ticker, 0.0) + (b.weight / total) * target


def _add_fixed(buckets: Iterable[Bucket], excluded: FrozenSet[str], out: Dict[str, float]) -> None:
    for b in buckets:
        if b.weight > 0 and b.ticker not in excluded:
            out[b.ticker] = out.get(b.ticker, 0.0) + b.weight


def allocate(profile: Profile, rules: Optional[AllocationRules] = None) -> Recommendation:
    """Produce a deterministic, normalized recommendation for a profile.

    Args:
        profile: Investor profile. Out-of-table risk, horizon and goal values
            fall back to the table defaults.
        rules: Rule tables; the bundled configuration when omitted.

    Returns:
        Recommendation whose weights sum to 1.
    """
    rules = rules or default_rules()
    targets = compute_targets(profile, rules)
    excluded = rules.excluded_tickers(profile.constraints)

    weights: Dict[str, float] = {}
    _distribute(rules.equity_buckets, targets.equity, excluded, weights)
    _distribute(rules.bond_buckets, targets.bonds, excluded, weights)
    _add_fixed(rules.satellites, excluded, weights)
    _add_fixed(rules.cash, excluded, weights)

    if sum(weights.values()) <= 0:
        # Everything excluded
        weights = {rules.anchor_ticker: 1.0}

    normalized = round_to_one(weights, rules.precision, anchor=rules.anchor_ticker)
    allocation = Allocation.from_mapping(normalized)
    allocation.validate_sum_to_one()

    return Recommendation(
        allocations=allocation,
        rationale=explain_rule_allocation(profile, targets.equity),
        risk_notes=RULE_RISK_NOTES,
        source=RULES,
    )
