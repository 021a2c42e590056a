"""Sanitizer for model-generated allocations.

Model output is untrusted text. It is turned into an allocation in three
composable steps:
- extract_candidate: pull the JSON object out of free text
- validate: structural and universe checks, accumulating every problem
- normalize: merge duplicates, rescale to sum to 1, settle rounding residual
"""
from __future__ import annotations

import json
import math
import re
from dataclasses import dataclass
from typing import Any, Container, Dict, List, Optional

from portfolio.allocation import Allocation, merge_weights, round_to_one

# Greedy: spans from the first "{" to the last "}" so nested objects survive.
_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")

PRECISION = 6
ANCHOR_TICKER = "SPY"


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validating a candidate. ``ok=False`` means discard it."""

    ok: bool
    errors: List[str]
    sum: float


@dataclass(frozen=True)
class NormalizedAllocation:
    allocations: Allocation
    sum: float


def _to_number(value: Any) -> float:
    """Coerce a weight to float; anything unusable becomes NaN."""
    if value is None or isinstance(value, bool):
        return math.nan
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return math.nan
    return math.nan


def extract_candidate(text: Any) -> Optional[Dict[str, Any]]:
    """Return the first JSON object embedded in ``text``, or None.

    Never raises; unparseable or absent JSON is reported as None.
    """
    if not text or not isinstance(text, str):
        return None
    match = _JSON_OBJECT.search(text)
    if not match:
        return None
    try:
        obj = json.loads(match.group(0))
    except ValueError:
        return None
    return obj if isinstance(obj, dict) else None


def validate(candidate: Any, universe: Optional[Container[str]]) -> ValidationResult:
    """Check a candidate allocation against the universe.

    Every problem found is reported; validation does not stop at the first
    error.

    Args:
        candidate: Parsed model output.
        universe: Approved tickers. ``None`` skips the membership check.

    Returns:
        ValidationResult with the accumulated errors and the weight sum.
    """
    errors: List[str] = []
    allocations = candidate.get("allocations") if isinstance(candidate, dict) else None
    if not isinstance(allocations, list):
        errors.append("allocations missing or not an array")
        return ValidationResult(ok=False, errors=errors, sum=0.0)

    total = 0.0
    for i, entry in enumerate(allocations):
        if not isinstance(entry, dict):
            errors.append(f"allocation entry {i} is not an object")
            continue
        ticker = entry.get("ticker")
        if ticker is None or ticker == "":
            errors.append("allocation missing ticker")
            continue
        if not isinstance(ticker, str):
            errors.append(f"invalid ticker type in allocation entry {i}")
            continue
        if universe is not None and ticker not in universe:
            errors.append(f"unknown ticker: {ticker}")
        w = _to_number(entry.get("weight"))
        if not math.isfinite(w) or w < 0:
            errors.append(f"invalid weight for {ticker}")
        if math.isfinite(w):
            total += w

    if total <= 0:
        errors.append("sum of weights is zero")

    return ValidationResult(ok=not errors, errors=errors, sum=total)


def normalize(
    candidate: Dict[str, Any],
    anchor: str = ANCHOR_TICKER,
    precision: int = PRECISION,
) -> NormalizedAllocation:
    """Rescale a candidate's weights so they sum to exactly 1.

    Missing or non-numeric weights count as 0 and duplicate tickers are
    merged. The rounding residual lands on ``anchor`` when present, else on
    the first ticker.
    """
    entries = []
    for entry in candidate.get("allocations") or []:
        if not isinstance(entry, dict) or not entry.get("ticker"):
            continue
        w = _to_number(entry.get("weight"))
        entries.append((str(entry["ticker"]), w if math.isfinite(w) else 0.0))

    weights = round_to_one(merge_weights(entries), precision, anchor=anchor)
    allocation = Allocation.from_mapping(weights)
    return NormalizedAllocation(allocations=allocation, sum=allocation.total())
