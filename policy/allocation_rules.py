from __future__ import annotations
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, Iterable, Mapping, Tuple

from portfolio.universe import Universe

class RulesError(ValueError):
    """Raised when rule tables are inconsistent with the universe."""

    pass

@dataclass(frozen=True)
class HorizonLimits:
    equity_max: float
    bonds_min: float

@dataclass(frozen=True)
class GoalBias:
    equity_min: float
    bonds_min: float

@dataclass(frozen=True)
class Bucket:
    ticker: str
    weight: float

def freeze(obj: Any) -> Any:
    if isinstance(obj, Mapping):
        return MappingProxyType({k: freeze(v) for k, v in obj.items()})
    if isinstance(obj, (list, tuple)):
        return tuple(freeze(v) for v in obj)
    return obj

def _buckets(rows: Iterable[Mapping[str, Any]]) -> Tuple[Bucket, ...]:
    return tuple(Bucket(str(r["ticker"]), float(r["weight"])) for r in rows or ())

@dataclass(frozen=True)
class AllocationRules:
    raw: Mapping[str, Any]

    def __post_init__(self) -> None:
        object.__setattr__(self, "raw", freeze(self.raw))

    @property
    def default_equity(self) -> float:
        return float(self.raw.get("default_equity", 0.55))

    def equity_for_risk(self, risk: int) -> float:
        table = self.raw.get("risk_equity") or {}
        value = table.get(risk)
        if value is None:
            value = table.get(str(risk))
        return float(value) if value is not None else self.default_equity

    def horizon_limits(self, horizon: str) -> HorizonLimits:
        table = self.raw["horizon_limits"]
        row = table.get(horizon) or table[self.raw.get("default_horizon", "5-10y")]
        return HorizonLimits(
            equity_max=float(row.get("equity_max", 0.9)),
            bonds_min=float(row.get("bonds_min", 0.0)),
        )

    def goal_bias(self, goal: str) -> GoalBias:
        table = self.raw["goal_bias"]
        row = table.get(goal) or table[self.raw.get("default_goal", "balanced")]
        return GoalBias(
            equity_min=float(row.get("equity_min", 0.0)),
            bonds_min=float(row.get("bonds_min", 0.0)),
        )

    @property
    def equity_buckets(self) -> Tuple[Bucket, ...]:
        return _buckets(self.raw.get("equity_buckets"))

    @property
    def bond_buckets(self) -> Tuple[Bucket, ...]:
        return _buckets(self.raw.get("bond_buckets"))

    @property
    def satellites(self) -> Tuple[Bucket, ...]:
        return _buckets(self.raw.get("satellites"))

    @property
    def cash(self) -> Tuple[Bucket, ...]:
        return _buckets(self.raw.get("cash"))

    @property
    def anchor_ticker(self) -> str:
        return str(self.raw.get("anchor_ticker", "SPY"))

    @property
    def precision(self) -> int:
        return int(self.raw.get("precision", 4))

    def excluded_tickers(self, constraints: Iterable[str]) -> FrozenSet[str]:
        """Tickers removed by the recognized constraint tags; unknown tags are ignored."""
        table = self.raw.get("constraints") or {}
        out = set()
        for c in constraints:
            out.update(table.get(c, ()))
        return frozenset(out)

    def referenced_tickers(self) -> FrozenSet[str]:
        tickers = {self.anchor_ticker}
        for group in (self.equity_buckets, self.bond_buckets, self.satellites, self.cash):
            tickers.update(b.ticker for b in group)
        for excluded in (self.raw.get("constraints") or {}).values():
            tickers.update(excluded)
        return frozenset(tickers)

def validate_rules(rules: AllocationRules, universe: Universe) -> None:
    """Fail loudly at startup if the rule tables cannot produce a valid allocation."""
    unknown = sorted(rules.referenced_tickers() - universe.ticker_set)
    if unknown:
        raise RulesError(f"Rule tables reference tickers outside the universe: {', '.join(unknown)}")
    for name in ("horizon_limits", "goal_bias"):
        table = rules.raw.get(name)
        if not isinstance(table, Mapping) or not table:
            raise RulesError(f"Rule table '{name}' is missing")
    if rules.raw.get("default_horizon", "5-10y") not in rules.raw["horizon_limits"]:
        raise RulesError("default_horizon has no row in horizon_limits")
    if rules.raw.get("default_goal", "balanced") not in rules.raw["goal_bias"]:
        raise RulesError("default_goal has no row in goal_bias")
    for group in (rules.equity_buckets, rules.bond_buckets, rules.satellites, rules.cash):
        for b in group:
            if b.weight < 0:
                raise RulesError(f"Negative rule weight for {b.ticker}")
    if rules.precision < 1:
        raise RulesError("precision must be at least 1")

def load_rules(raw: Dict[str, Any], universe: Universe) -> AllocationRules:
    rules = AllocationRules(raw)
    validate_rules(rules, universe)
    return rules
