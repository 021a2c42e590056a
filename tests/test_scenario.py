"""Tests for scenario stress evaluation."""
from __future__ import annotations

import json

import pytest

from common.config_loader import load_all
from engine.allocation_engine import allocate
from engine.recommend_engine import Advisor
from engine.scenario_engine import RATE_RISE, apply_scenario, run_scenario
from policy.types import Profile
from portfolio.recommendation import MODEL, RULES


MODEL_OUTPUT = json.dumps({
    "allocations": [{"ticker": "BND", "weight": 0.7}, {"ticker": "SPY", "weight": 0.3}],
    "rationale": "Shorter duration after the shock.",
    "risk_notes": "Bond prices fall when rates rise.",
})


class FakeClient:
    def __init__(self, response=MODEL_OUTPUT):
        self.response = response
        self.requests = []

    def complete(self, request):
        self.requests.append(request)
        return self.response


def make_advisor(client=None) -> Advisor:
    return Advisor.from_config(load_all(), client=client)


class TestApplyScenario:
    """Tests for profile perturbation."""

    @pytest.mark.parametrize("risk,expected", [(5, 4), (4, 3), (3, 2), (2, 1), (1, 1)])
    def test_rate_rise_lowers_risk_by_one(self, risk, expected):
        profile = Profile(risk=risk, horizon="2-5y", goal="income", constraints=frozenset(["Avoid EM"]))

        modified = apply_scenario(RATE_RISE, profile)

        assert modified.risk == expected
        assert modified.horizon == "2-5y"
        assert modified.goal == "income"
        assert modified.constraints == frozenset(["Avoid EM"])

    def test_original_profile_untouched(self):
        profile = Profile(risk=4)

        apply_scenario(RATE_RISE, profile)

        assert profile.risk == 4

    def test_unknown_scenario_passes_through(self):
        profile = Profile(risk=4)

        assert apply_scenario("alien-invasion", profile) == profile


class TestRunScenario:
    """Tests for scenario evaluation against the engines."""

    def test_rule_result_uses_modified_profile(self):
        advisor = make_advisor()
        profile = Profile(risk=4, horizon="10y+", goal="growth")

        result = run_scenario(RATE_RISE, profile, advisor)

        assert result.modified_profile.risk == 3
        assert result.rule_result == allocate(Profile(risk=3, horizon="10y+", goal="growth"), advisor.rules)
        assert "risk=3" in result.rule_result.rationale
        assert result.model_result is None

    def test_floor_at_one(self):
        advisor = make_advisor()

        result = run_scenario(RATE_RISE, Profile(risk=1), advisor)

        assert result.modified_profile.risk == 1
        assert "risk=1" in result.rule_result.rationale

    def test_model_result_when_opted_in(self):
        client = FakeClient()
        advisor = make_advisor(client=client)

        result = run_scenario(RATE_RISE, Profile(risk=3), advisor, use_model=True)

        assert result.rule_result.source == RULES
        assert result.model_result is not None
        assert result.model_result.source == MODEL
        assert result.model_result.allocations.as_dict() == {"BND": 0.7, "SPY": 0.3}
        assert "- risk: 2" in client.requests[0].user

    def test_model_failure_yields_rule_fallback(self):
        advisor = make_advisor(client=FakeClient("no json here"))

        result = run_scenario(RATE_RISE, Profile(risk=3), advisor, use_model=True)

        assert result.model_result is not None
        assert result.model_result.source == RULES

    def test_to_dict_is_json_compatible(self):
        result = run_scenario(RATE_RISE, Profile(risk=3), make_advisor())

        data = json.loads(json.dumps(result.to_dict()))

        assert data["scenario"] == RATE_RISE
        assert data["modified_profile"]["risk"] == 2
        assert data["model_result"] is None
