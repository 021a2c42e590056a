from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Mapping, Optional

HORIZONS = ("<2y", "2-5y", "5-10y", "10y+")
GOALS = ("growth", "income", "balanced")

DEFAULT_RISK = 3
DEFAULT_HORIZON = "5-10y"
DEFAULT_GOAL = "balanced"

@dataclass(frozen=True)
class AssetMeta:
    ticker: str
    asset_class: str

def _coerce_risk(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    try:
        f = float(value)
    except (TypeError, ValueError):
        return None
    if f != f or not f.is_integer():
        return None
    return int(f)

@dataclass(frozen=True)
class Profile:
    """Investor profile. Out-of-table values are kept and resolved by the engine."""

    risk: int = DEFAULT_RISK
    horizon: str = DEFAULT_HORIZON
    goal: str = DEFAULT_GOAL
    constraints: FrozenSet[str] = field(default_factory=frozenset)

    @classmethod
    def from_dict(cls, raw: Optional[Mapping[str, Any]]) -> "Profile":
        raw = raw or {}
        risk = _coerce_risk(raw.get("risk"))
        if risk is None or risk == 0:
            risk = DEFAULT_RISK
        horizon = raw.get("horizon")
        goal = raw.get("goal")
        constraints = raw.get("constraints")
        if isinstance(constraints, str) or not isinstance(constraints, (list, tuple, set, frozenset)):
            constraints = ()
        return cls(
            risk=risk,
            horizon=str(horizon) if horizon else DEFAULT_HORIZON,
            goal=str(goal) if goal else DEFAULT_GOAL,
            constraints=frozenset(str(c) for c in constraints if c),
        )

    def with_risk(self, risk: int) -> "Profile":
        return Profile(risk=risk, horizon=self.horizon, goal=self.goal, constraints=self.constraints)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "risk": self.risk,
            "horizon": self.horizon,
            "goal": self.goal,
            "constraints": sorted(self.constraints),
        }
