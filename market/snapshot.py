"""Market snapshot providers.

The snapshot is a best-effort, short text appended to model prompts. An
unavailable data source yields an empty summary, never an error.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Protocol, Sequence

import pandas as pd
import yfinance as yf

from common.ttl_cache import TTLCache

logger = logging.getLogger(__name__)

DEFAULT_TICKERS = ("^VIX", "IEF", "SPY", "QQQ", "VEA", "VWO", "BND", "VNQ", "GLD")
SUMMARY_TICKERS = (("^VIX", "VIX"), ("IEF", "IEF"), ("SPY", "SPY"))


@dataclass(frozen=True)
class Quote:
    ticker: str
    price: float
    change_pct: float


class SnapshotProvider(Protocol):
    def summary_text(self) -> str:
        ...


def yf_closes(tickers: Sequence[str]) -> pd.DataFrame:
    """Recent daily closes, one column per ticker."""
    df = yf.download(
        tickers=list(tickers), period="5d", interval="1d",
        auto_adjust=False, actions=False, group_by="column",
        progress=False, threads=True,
    )
    if isinstance(df.columns, pd.MultiIndex):
        if "Close" in df.columns.get_level_values(0):
            df = df["Close"].copy()
        else:
            df.columns = df.columns.get_level_values(-1)
    if isinstance(df, pd.Series):
        df = df.to_frame(name=tickers[0])
    elif "Close" in df.columns and len(tickers) == 1:
        df = df[["Close"]].rename(columns={"Close": tickers[0]})
    return df.dropna(how="all").sort_index()


def quotes_from_closes(closes: pd.DataFrame) -> Dict[str, Quote]:
    quotes: Dict[str, Quote] = {}
    for ticker in closes.columns:
        series = closes[ticker].dropna()
        if series.empty:
            continue
        changes = series.pct_change().dropna()
        change = float(changes.iloc[-1]) * 100 if not changes.empty else 0.0
        quotes[str(ticker)] = Quote(ticker=str(ticker), price=float(series.iloc[-1]), change_pct=change)
    return quotes


def format_summary(quotes: Dict[str, Quote]) -> str:
    parts = []
    for ticker, label in SUMMARY_TICKERS:
        q = quotes.get(ticker)
        if q:
            parts.append(f"{label} {q.price:.2f} ({q.change_pct:.2f}%)")
    return " | ".join(parts)


class YahooSnapshotProvider:
    """Yahoo Finance snapshot, cached for ``ttl_s`` seconds."""

    def __init__(
        self,
        tickers: Sequence[str] = DEFAULT_TICKERS,
        ttl_s: float = 60.0,
        fetch: Optional[Callable[[Sequence[str]], pd.DataFrame]] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.tickers = tuple(tickers)
        self._fetch = fetch or yf_closes
        self._cache: TTLCache[Dict[str, Quote]] = TTLCache(ttl_s, clock=clock)

    def _load(self) -> Dict[str, Quote]:
        return quotes_from_closes(self._fetch(self.tickers))

    def snapshot(self) -> Dict[str, Quote]:
        try:
            return self._cache.get_or_load(self._load)
        except Exception as e:
            logger.warning("Market snapshot unavailable: %s", e)
            return {}

    def summary_text(self) -> str:
        return format_summary(self.snapshot())


class StaticSnapshotProvider:
    """Fixed summary text."""

    def __init__(self, text: str = ""):
        self.text = text

    def summary_text(self) -> str:
        return self.text
