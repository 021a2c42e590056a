"""Scenario stress evaluation.

A scenario is a named, deterministic perturbation of a profile. The
perturbed profile is run through the rule engine and, when requested, the
model-informed path so both results can be shown side by side.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Optional

from engine.recommend_engine import Advisor
from policy.types import Profile
from portfolio.recommendation import Recommendation

RATE_RISE = "rate-rise"
MIN_RISK = 1


def _rate_rise(profile: Profile) -> Profile:
    """Rate shock: one notch less risk, never below the floor."""
    return profile.with_risk(max(MIN_RISK, profile.risk - 1))


SCENARIOS: Dict[str, Callable[[Profile], Profile]] = {
    RATE_RISE: _rate_rise,
}


@dataclass(frozen=True)
class ScenarioResult:
    scenario: str
    modified_profile: Profile
    rule_result: Recommendation
    model_result: Optional[Recommendation]

    def to_dict(self) -> dict:
        return {
            "scenario": self.scenario,
            "modified_profile": self.modified_profile.to_dict(),
            "rule_result": self.rule_result.to_dict(),
            "model_result": self.model_result.to_dict() if self.model_result else None,
        }


def apply_scenario(scenario: str, profile: Profile) -> Profile:
    """Return the perturbed profile; unknown scenarios pass through unchanged."""
    transform = SCENARIOS.get(scenario)
    return transform(profile) if transform else profile


def run_scenario(
    scenario: str,
    profile: Profile,
    advisor: Advisor,
    use_model: bool = False,
) -> ScenarioResult:
    modified = apply_scenario(scenario, profile)
    comparison = advisor.compare(modified, use_model=use_model)
    return ScenarioResult(
        scenario=scenario,
        modified_profile=modified,
        rule_result=comparison.rule_result,
        model_result=comparison.model_result,
    )
