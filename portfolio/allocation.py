from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

@dataclass(frozen=True)
class Weight:
    ticker: str
    weight: float

    def to_dict(self) -> Dict[str, Any]:
        return {"ticker": self.ticker, "weight": self.weight}

@dataclass(frozen=True)
class Allocation:
    weights: Tuple[Weight, ...]

    @classmethod
    def from_mapping(cls, targets: Mapping[str, float]) -> "Allocation":
        return cls(tuple(Weight(t, float(w)) for t, w in targets.items()))

    def as_dict(self) -> Dict[str, float]:
        return {w.ticker: w.weight for w in self.weights}

    def tickers(self) -> List[str]:
        return [w.ticker for w in self.weights]

    def total(self) -> float:
        return sum(w.weight for w in self.weights)

    def weight_of(self, ticker: str) -> float:
        return sum(w.weight for w in self.weights if w.ticker == ticker)

    def validate_sum_to_one(self, tol: float = 1e-6) -> None:
        s = self.total()
        if abs(s - 1.0) > tol:
            raise ValueError(f"Targets must sum to 1.0, got {s}")

    def to_list(self) -> List[Dict[str, Any]]:
        return [w.to_dict() for w in self.weights]

def round_to_one(weights: Dict[str, float], precision: int, anchor: Optional[str] = None) -> Dict[str, float]:
    """Scale weights to sum to 1 and push the rounding residual onto one ticker.

    The residual goes to ``anchor`` when it is present, otherwise to the first
    ticker in iteration order. A ticker the residual would push below zero is
    skipped in favour of the largest weight.
    """
    total = sum(weights.values()) or 1.0
    out = {t: round(w / total, precision) for t, w in weights.items()}
    if not out:
        return out
    residual = round(1.0 - round(sum(out.values()), 6), 6)
    if residual != 0:
        preferred = [anchor] if anchor in out else []
        preferred.append(next(iter(out)))
        target = next(
            (t for t in preferred if out[t] + residual >= 0),
            max(out, key=out.get),
        )
        out[target] = round(out[target] + residual, precision)
    return out

def merge_weights(entries: Iterable[Tuple[str, float]]) -> Dict[str, float]:
    merged: Dict[str, float] = {}
    for t, w in entries:
        merged[t] = merged.get(t, 0.0) + w
    return merged
