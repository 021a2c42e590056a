"""Approved ticker universe.

The universe is loaded once at startup and treated as immutable for the
lifetime of the process. Corrupt universe data is a startup failure.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, Iterator, List, Tuple

from policy.types import AssetMeta


class UniverseError(ValueError):
    """Raised when universe configuration is malformed."""

    pass


@dataclass(frozen=True)
class Universe:
    """Ordered, read-only sequence of approved assets."""

    assets: Tuple[AssetMeta, ...]

    def __post_init__(self) -> None:
        seen = set()
        for a in self.assets:
            if not a.ticker:
                raise UniverseError("Universe entry with empty ticker")
            if a.ticker in seen:
                raise UniverseError(f"Duplicate ticker in universe: {a.ticker}")
            seen.add(a.ticker)
        if not self.assets:
            raise UniverseError("Universe is empty")

    @property
    def tickers(self) -> Tuple[str, ...]:
        return tuple(a.ticker for a in self.assets)

    @property
    def ticker_set(self) -> FrozenSet[str]:
        return frozenset(self.tickers)

    def __contains__(self, ticker: object) -> bool:
        return ticker in self.ticker_set

    def __iter__(self) -> Iterator[AssetMeta]:
        return iter(self.assets)

    def __len__(self) -> int:
        return len(self.assets)

    def asset_class(self, ticker: str) -> str:
        for a in self.assets:
            if a.ticker == ticker:
                return a.asset_class
        raise KeyError(ticker)

    def summary(self) -> str:
        """One-line description used in model prompts."""
        return "; ".join(f"{a.ticker}: {a.asset_class}" for a in self.assets)

    def to_list(self) -> List[Dict[str, str]]:
        return [{"ticker": a.ticker, "asset_class": a.asset_class} for a in self.assets]


def build_universe(raw: Dict[str, Any]) -> Universe:
    """Build the universe from configuration.

    Args:
        raw: Parsed universe YAML with an ``assets`` list of
            ``{ticker, asset_class}`` mappings.

    Returns:
        Validated Universe.

    Raises:
        UniverseError: If the configuration is malformed.
    """
    entries = raw.get("assets")
    if not isinstance(entries, list):
        raise UniverseError("Universe config must contain an 'assets' list")
    assets = []
    for e in entries:
        if not isinstance(e, dict):
            raise UniverseError(f"Malformed universe entry: {e!r}")
        assets.append(AssetMeta(ticker=str(e.get("ticker") or "").strip(), asset_class=str(e.get("asset_class", ""))))
    return Universe(assets=tuple(assets))
