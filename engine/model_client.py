"""Text-generation client used for model-informed allocations.

One attempt per request, bounded by a timeout. Every failure surfaces as
ModelClientError so callers have a single thing to catch.
"""
from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Protocol

import openai
from openai import OpenAI

from policy.types import Profile
from portfolio.universe import Universe

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a financial education assistant. Output ONLY valid JSON with keys: "
    "allocations (array of {ticker, weight}), rationale (string), risk_notes (string). "
    "Weights must sum to 1.0."
)

DEFAULT_MODEL = "gpt-4o-mini"
DEFAULT_TIMEOUT_S = 15.0
DEFAULT_MAX_TOKENS = 800
DEFAULT_TEMPERATURE = 0.2


class ModelClientError(Exception):
    """Transport, timeout, API or empty-response failure."""

    pass


@dataclass(frozen=True)
class ModelRequest:
    system: str
    user: str
    max_tokens: int = DEFAULT_MAX_TOKENS
    temperature: float = DEFAULT_TEMPERATURE


class ModelClient(Protocol):
    def complete(self, request: ModelRequest) -> str:
        ...


def build_model_request(
    profile: Profile,
    universe: Universe,
    market_summary: str = "",
    max_tokens: int = DEFAULT_MAX_TOKENS,
    temperature: float = DEFAULT_TEMPERATURE,
) -> ModelRequest:
    """Compose the prompt for a profile.

    Args:
        profile: Investor profile.
        universe: Eligible ETFs.
        market_summary: Optional one-line market snapshot, appended verbatim.
        max_tokens: Output size cap.
        temperature: Sampling temperature.

    Returns:
        ModelRequest ready for a ModelClient.
    """
    lines = [
        "User profile:",
        f"- risk: {profile.risk}",
        f"- horizon: {profile.horizon}",
        f"- goal: {profile.goal}",
        f"- constraints: {json.dumps(sorted(profile.constraints))}",
        f"Eligible ETFs: {universe.summary()}",
    ]
    if market_summary:
        lines.append(f"Market snapshot: {market_summary}")
    lines.append("Return a diversified allocation adhering to the constraints.")
    return ModelRequest(
        system=SYSTEM_PROMPT,
        user="\n".join(lines),
        max_tokens=max_tokens,
        temperature=temperature,
    )


@dataclass
class OpenAIModelClient:
    """ModelClient backed by an OpenAI-compatible chat completions API."""

    api_key: str
    model: str = DEFAULT_MODEL
    base_url: Optional[str] = None
    timeout_s: float = DEFAULT_TIMEOUT_S
    sdk: Any = field(default=None, repr=False)

    def __post_init__(self) -> None:
        if self.sdk is None:
            self.sdk = OpenAI(
                api_key=self.api_key,
                base_url=self.base_url,
                timeout=self.timeout_s,
                max_retries=0,
            )

    def complete(self, request: ModelRequest) -> str:
        try:
            resp = self.sdk.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": request.system},
                    {"role": "user", "content": request.user},
                ],
                max_tokens=request.max_tokens,
                temperature=request.temperature,
                timeout=self.timeout_s,
            )
        except openai.OpenAIError as e:
            raise ModelClientError(f"{type(e).__name__}: {e}") from e

        choices = getattr(resp, "choices", None) or []
        text = (choices[0].message.content or "").strip() if choices else ""
        if not text:
            raise ModelClientError("Model returned no content")
        return text


def client_from_settings(settings: Dict[str, Any]) -> Optional[OpenAIModelClient]:
    """Build a client from ``advisor.yaml`` settings, or None when no API key is set."""
    model = settings.get("model") or {}
    key_env = model.get("api_key_env", "OPENAI_API_KEY")
    api_key = os.environ.get(key_env)
    if not api_key:
        logger.info("%s not set; model calls disabled", key_env)
        return None
    return OpenAIModelClient(
        api_key=api_key,
        model=model.get("name", DEFAULT_MODEL),
        base_url=model.get("base_url"),
        timeout_s=float(model.get("timeout_s", DEFAULT_TIMEOUT_S)),
    )
