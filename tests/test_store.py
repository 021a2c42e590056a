"""Tests for recommendation persistence backends."""
from __future__ import annotations

import pytest

from storage.recommendation_store import InMemoryRecommendationStore, SQLiteRecommendationStore


PAYLOAD = {
    "profile": {"risk": 3, "horizon": "5-10y", "goal": "balanced", "constraints": []},
    "result": {
        "allocations": [{"ticker": "SPY", "weight": 0.6}, {"ticker": "BND", "weight": 0.4}],
        "rationale": "r",
        "risk_notes": "n",
        "source": "rules",
    },
}


@pytest.fixture(params=["memory", "sqlite"])
def store(request, tmp_path):
    if request.param == "memory":
        return InMemoryRecommendationStore()
    return SQLiteRecommendationStore(tmp_path / "nested" / "advisor.db")


def payload_with_risk(risk: int) -> dict:
    return {**PAYLOAD, "profile": {**PAYLOAD["profile"], "risk": risk}}


class TestRecommendationStore:
    """Contract shared by every store."""

    def test_round_trip(self, store):
        store.save("s1", PAYLOAD)

        rows = store.list("s1")

        assert len(rows) == 1
        assert rows[0].payload == PAYLOAD
        assert rows[0].session_id == "s1"
        assert rows[0].user_id is None
        assert rows[0].created_at

    def test_newest_first(self, store):
        for risk in (1, 2, 3):
            store.save("s1", payload_with_risk(risk))

        rows = store.list("s1")

        assert [r.payload["profile"]["risk"] for r in rows] == [3, 2, 1]

    def test_filters_by_session(self, store):
        store.save("s1", payload_with_risk(1))
        store.save("s2", payload_with_risk(2))

        rows = store.list("s2")

        assert [r.payload["profile"]["risk"] for r in rows] == [2]

    def test_user_takes_precedence_over_session(self, store):
        store.save("s1", payload_with_risk(1), user_id="alice")
        store.save("s2", payload_with_risk(2), user_id="alice")
        store.save("s1", payload_with_risk(3))

        rows = store.list("s1", user_id="alice")

        assert [r.payload["profile"]["risk"] for r in rows] == [2, 1]
        assert all(r.user_id == "alice" for r in rows)

    def test_limit(self, store):
        for risk in (1, 2, 3, 4):
            store.save("s1", payload_with_risk(risk))

        rows = store.list("s1", limit=2)

        assert [r.payload["profile"]["risk"] for r in rows] == [4, 3]

    def test_saved_payload_is_a_snapshot(self, store):
        payload = payload_with_risk(1)
        store.save("s1", payload)
        payload["profile"]["risk"] = 5

        assert store.list("s1")[0].payload["profile"]["risk"] == 1


class TestSQLiteStore:
    def test_survives_reopen(self, tmp_path):
        path = tmp_path / "advisor.db"
        SQLiteRecommendationStore(path).save("s1", PAYLOAD)

        rows = SQLiteRecommendationStore(path).list("s1")

        assert len(rows) == 1
