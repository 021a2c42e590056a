from __future__ import annotations
from typing import List

from policy.types import Profile
from portfolio.recommendation import Recommendation
from portfolio.universe import Universe

RULE_RISK_NOTES = (
    "This is an educational, rule-based suggestion. It does not consider current "
    "market data or personalize taxes."
)

def explain_rule_allocation(profile: Profile, equity_target: float) -> str:
    return (
        f"Rule-based allocation for risk={profile.risk}, horizon={profile.horizon}, "
        f"goal={profile.goal}. Equity target {round(equity_target * 100)}%"
    )

def explain_allocations(rec: Recommendation, universe: Universe) -> List[str]:
    lines = []
    for w in rec.allocations.weights:
        asset_class = universe.asset_class(w.ticker) if w.ticker in universe else "unknown"
        lines.append(f"{w.ticker:6} {w.weight:7.2%}  |  {asset_class}")
    return lines
