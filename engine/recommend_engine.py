"""Recommendation orchestration.

Chooses between the rule engine and a model-informed allocation, runs model
output through the sanitizer, and falls back to the rule engine on any
failure. Persistence is a side effect that never affects the result.
"""
from __future__ import annotations

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from common.config_loader import LoadedConfig
from engine.allocation_engine import allocate
from engine.model_client import (
    DEFAULT_MAX_TOKENS,
    DEFAULT_TEMPERATURE,
    DEFAULT_TIMEOUT_S,
    ModelClient,
    build_model_request,
)
from engine.sanitizer import extract_candidate, normalize, validate
from market.snapshot import SnapshotProvider
from policy.allocation_rules import AllocationRules, load_rules
from policy.types import Profile
from portfolio.recommendation import MODEL, Recommendation
from portfolio.universe import Universe, build_universe
from storage.recommendation_store import RecommendationStore, StoredRecommendation

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Comparison:
    """Rule-based and model-informed results for the same profile."""

    rule_result: Recommendation
    model_result: Optional[Recommendation]


def market_summary(market: Optional[SnapshotProvider]) -> str:
    if market is None:
        return ""
    try:
        return market.summary_text() or ""
    except Exception as e:
        logger.warning("Market summary failed: %s", e)
        return ""


def recommend_from_model(
    profile: Profile,
    universe: Universe,
    client: ModelClient,
    anchor: str,
    summary: str = "",
    max_tokens: int = DEFAULT_MAX_TOKENS,
    temperature: float = DEFAULT_TEMPERATURE,
) -> Optional[Recommendation]:
    """Ask the model for an allocation and sanitize it.

    Returns:
        The sanitized Recommendation, or None if the call failed or the
        output was rejected.
    """
    request = build_model_request(profile, universe, summary, max_tokens=max_tokens, temperature=temperature)
    try:
        text = client.complete(request)
    except Exception as e:
        logger.warning("Model call failed: %s", e)
        return None

    candidate = extract_candidate(text)
    if candidate is None:
        logger.warning("Model output contained no parseable JSON object")
        logger.debug("Raw model output: %r", text)
        return None

    result = validate(candidate, universe.ticker_set)
    if not result.ok:
        logger.warning("Model allocation rejected: %s", "; ".join(result.errors))
        return None

    rationale = candidate.get("rationale")
    risk_notes = candidate.get("risk_notes")
    if not isinstance(rationale, str) or not isinstance(risk_notes, str):
        logger.warning("Model allocation rejected: rationale or risk_notes missing")
        return None

    normalized = normalize(candidate, anchor=anchor)
    return Recommendation(
        allocations=normalized.allocations,
        rationale=rationale,
        risk_notes=risk_notes,
        source=MODEL,
    )


def recommend(
    profile: Profile,
    use_model: bool,
    client: Optional[ModelClient],
    universe: Universe,
    rules: AllocationRules,
    market: Optional[SnapshotProvider] = None,
    max_tokens: int = DEFAULT_MAX_TOKENS,
    temperature: float = DEFAULT_TEMPERATURE,
) -> Recommendation:
    """Recommend an allocation, preferring the model when asked and available.

    Never raises for profile-shaped input; every failure path returns the
    rule engine's allocation.
    """
    if not use_model or client is None:
        return allocate(profile, rules)

    rec = recommend_from_model(
        profile,
        universe,
        client,
        anchor=rules.anchor_ticker,
        summary=market_summary(market),
        max_tokens=max_tokens,
        temperature=temperature,
    )
    if rec is None:
        logger.info("Falling back to rule-based allocation")
        return allocate(profile, rules)
    return rec


@dataclass
class Advisor:
    """Wires the allocation core to its collaborators."""

    universe: Universe
    rules: AllocationRules
    client: Optional[ModelClient] = None
    market: Optional[SnapshotProvider] = None
    store: Optional[RecommendationStore] = None
    timeout_s: float = DEFAULT_TIMEOUT_S
    max_tokens: int = DEFAULT_MAX_TOKENS
    temperature: float = DEFAULT_TEMPERATURE

    @classmethod
    def from_config(
        cls,
        cfg: LoadedConfig,
        client: Optional[ModelClient] = None,
        market: Optional[SnapshotProvider] = None,
        store: Optional[RecommendationStore] = None,
    ) -> "Advisor":
        """Build an advisor; raises on a corrupt universe or rule tables."""
        universe = build_universe(cfg.universe)
        model = cfg.settings.get("model") or {}
        return cls(
            universe=universe,
            rules=load_rules(cfg.rules, universe),
            client=client,
            market=market,
            store=store,
            timeout_s=float(model.get("timeout_s", DEFAULT_TIMEOUT_S)),
            max_tokens=int(model.get("max_tokens", DEFAULT_MAX_TOKENS)),
            temperature=float(model.get("temperature", DEFAULT_TEMPERATURE)),
        )

    def _recommend(self, profile: Profile, use_model: bool) -> Recommendation:
        return recommend(
            profile,
            use_model,
            self.client,
            self.universe,
            self.rules,
            market=self.market,
            max_tokens=self.max_tokens,
            temperature=self.temperature,
        )

    def recommend(
        self,
        profile: Profile,
        use_model: bool = False,
        session_id: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> Recommendation:
        rec = self._recommend(profile, use_model)
        if session_id is not None or user_id is not None:
            self.save(profile, rec, session_id or "", user_id)
        return rec

    def save(self, profile: Profile, rec: Recommendation, session_id: str, user_id: Optional[str] = None) -> Optional[int]:
        """Persist a result; failures are logged and swallowed."""
        if self.store is None:
            return None
        payload: Dict[str, Any] = {"profile": profile.to_dict(), "result": rec.to_dict()}
        try:
            return self.store.save(session_id, payload, user_id=user_id)
        except Exception:
            logger.exception("Failed to persist recommendation for session %s", session_id)
            return None

    def history(self, session_id: str, user_id: Optional[str] = None, limit: Optional[int] = None) -> List[StoredRecommendation]:
        if self.store is None:
            return []
        return self.store.list(session_id, user_id=user_id, limit=limit)

    async def _model_branch(self, profile: Profile, executor: ThreadPoolExecutor) -> Recommendation:
        loop = asyncio.get_running_loop()
        try:
            return await asyncio.wait_for(
                loop.run_in_executor(executor, self._recommend, profile, True),
                timeout=self.timeout_s,
            )
        except asyncio.TimeoutError:
            logger.warning("Model branch exceeded %.1fs; using rule-based allocation", self.timeout_s)
            return allocate(profile, self.rules)

    async def compare_async(self, profile: Profile, use_model: bool = True) -> Comparison:
        """Run the rule and model branches concurrently.

        ``model_result`` is None when the caller did not opt in. A failed,
        timed-out or cancelled model branch yields the rule-based fallback.
        A timed-out model call is abandoned on its worker thread rather than
        awaited, so it does not delay the comparison.
        """
        if not use_model:
            return Comparison(rule_result=allocate(profile, self.rules), model_result=None)

        loop = asyncio.get_running_loop()
        executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="advisor-compare")
        try:
            rule_result, model_result = await asyncio.gather(
                loop.run_in_executor(executor, allocate, profile, self.rules),
                self._model_branch(profile, executor),
                return_exceptions=True,
            )
        finally:
            executor.shutdown(wait=False, cancel_futures=True)
        if isinstance(rule_result, BaseException):
            raise rule_result
        if isinstance(model_result, BaseException):
            logger.warning("Model branch aborted: %r", model_result)
            model_result = rule_result
        return Comparison(rule_result=rule_result, model_result=model_result)

    def compare(self, profile: Profile, use_model: bool = True) -> Comparison:
        return asyncio.run(self.compare_async(profile, use_model))
