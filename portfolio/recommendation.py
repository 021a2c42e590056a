from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, Mapping

from portfolio.allocation import Allocation, Weight

RULES = "rules"
MODEL = "model"

@dataclass(frozen=True)
class Recommendation:
    allocations: Allocation
    rationale: str
    risk_notes: str
    source: str = RULES

    def to_dict(self) -> Dict[str, Any]:
        return {
            "allocations": self.allocations.to_list(),
            "rationale": self.rationale,
            "risk_notes": self.risk_notes,
            "source": self.source,
        }

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "Recommendation":
        weights = tuple(Weight(str(a["ticker"]), float(a["weight"])) for a in raw.get("allocations") or [])
        return cls(
            allocations=Allocation(weights),
            rationale=str(raw.get("rationale", "")),
            risk_notes=str(raw.get("risk_notes", "")),
            source=str(raw.get("source", RULES)),
        )
