"""ETF allocation advisor CLI.

Provides commands for:
- universe: List the approved ETFs
- recommend: Produce (and persist) an allocation for a profile
- compare: Rule-based vs model-informed allocation side by side
- scenario: Stress a profile and show both allocations
- history: List persisted recommendations
"""
from __future__ import annotations

import argparse
import json
import logging
import uuid
from typing import Any, Dict, List, Optional

from common.config_loader import load_all, resolve_path
from engine.explanation_engine import explain_allocations
from engine.model_client import client_from_settings
from engine.recommend_engine import Advisor
from engine.scenario_engine import SCENARIOS, run_scenario
from market.snapshot import DEFAULT_TICKERS, YahooSnapshotProvider
from policy.types import GOALS, HORIZONS, Profile
from portfolio.recommendation import Recommendation
from storage.recommendation_store import SQLiteRecommendationStore


def build_advisor(args, with_model: bool = False) -> Advisor:
    """Build the advisor and its collaborators from configuration."""
    cfg = load_all(args.rules, args.universe, args.settings)
    client = client_from_settings(cfg.settings) if with_model else None
    market = None
    if client is not None:
        market_cfg = cfg.settings.get("market") or {}
        market = YahooSnapshotProvider(
            tickers=market_cfg.get("tickers") or DEFAULT_TICKERS,
            ttl_s=float(market_cfg.get("ttl_s", 60)),
        )
    db_path = args.db or (cfg.settings.get("storage") or {}).get("path", "data/advisor.db")
    store = SQLiteRecommendationStore(resolve_path(db_path))
    return Advisor.from_config(cfg, client=client, market=market, store=store)


def profile_from_args(args) -> Profile:
    return Profile.from_dict({
        "risk": args.risk,
        "horizon": args.horizon,
        "goal": args.goal,
        "constraints": args.constraint or [],
    })


def print_recommendation(title: str, rec: Recommendation, advisor: Advisor) -> None:
    print(title)
    print("=" * 50)
    print(f"Source: {rec.source}")
    print("\nAllocations:")
    for line in explain_allocations(rec, advisor.universe):
        print("  " + line)
    print(f"  {'Total':6} {rec.allocations.total():7.2%}")
    print(f"\nRationale: {rec.rationale}")
    print(f"Risk notes: {rec.risk_notes}")


def emit_json(obj: Dict[str, Any]) -> None:
    print(json.dumps(obj, indent=2))


def cmd_universe(args) -> int:
    """Handle universe command: list approved ETFs."""
    cfg = load_all(args.rules, args.universe, args.settings)
    advisor = Advisor.from_config(cfg)
    if args.json:
        emit_json({"universe": advisor.universe.to_list()})
        return 0
    print("ETF Universe")
    print("=" * 40)
    for a in advisor.universe:
        print(f"  {a.ticker:6} {a.asset_class}")
    return 0


def cmd_recommend(args) -> int:
    """Handle recommend command: allocation for a profile."""
    advisor = build_advisor(args, with_model=args.llm)
    profile = profile_from_args(args)
    session_id = args.session or uuid.uuid4().hex

    rec = advisor.recommend(profile, use_model=args.llm, session_id=session_id, user_id=args.user)

    if args.json:
        emit_json({"session_id": session_id, "profile": profile.to_dict(), "result": rec.to_dict()})
    else:
        print_recommendation(f"Recommendation (session: {session_id})", rec, advisor)
    return 0


def cmd_compare(args) -> int:
    """Handle compare command: rule vs model allocation."""
    advisor = build_advisor(args, with_model=True)
    profile = profile_from_args(args)

    comparison = advisor.compare(profile, use_model=True)

    if args.json:
        emit_json({
            "profile": profile.to_dict(),
            "rule_result": comparison.rule_result.to_dict(),
            "model_result": comparison.model_result.to_dict() if comparison.model_result else None,
        })
        return 0

    print_recommendation("Rule-based", comparison.rule_result, advisor)
    if comparison.model_result is not None:
        print()
        print_recommendation("Model-informed", comparison.model_result, advisor)
    return 0


def cmd_scenario(args) -> int:
    """Handle scenario command: stressed profile allocations."""
    advisor = build_advisor(args, with_model=args.llm)
    profile = profile_from_args(args)

    result = run_scenario(args.kind, profile, advisor, use_model=args.llm)

    if args.json:
        emit_json(result.to_dict())
        return 0

    print(f"Scenario: {result.scenario}")
    print(f"Modified profile: {json.dumps(result.modified_profile.to_dict())}")
    print()
    print_recommendation("Rule-based", result.rule_result, advisor)
    if result.model_result is not None:
        print()
        print_recommendation("Model-informed", result.model_result, advisor)
    return 0


def cmd_history(args) -> int:
    """Handle history command: persisted recommendations, newest first."""
    if not args.session and not args.user:
        print("Error: --session or --user is required")
        return 1
    advisor = build_advisor(args)
    rows = advisor.history(args.session or "", user_id=args.user, limit=args.limit)

    if args.json:
        emit_json({"history": [
            {"id": r.id, "ts": r.created_at, "payload": r.payload} for r in rows
        ]})
        return 0

    if not rows:
        print("No saved recommendations.")
        return 0
    for r in rows:
        result = r.payload.get("result") or {}
        top = sorted(result.get("allocations") or [], key=lambda a: -a["weight"])[:3]
        top_text = ", ".join(f"{a['ticker']} {a['weight']:.1%}" for a in top)
        print(f"  #{r.id} {r.created_at}  {result.get('source', '?'):5}  {top_text}")
    return 0


def add_profile_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--risk", type=int, default=3, help="Risk tolerance 1-5")
    p.add_argument("--horizon", choices=HORIZONS, default="5-10y", help="Investment horizon")
    p.add_argument("--goal", choices=GOALS, default="balanced", help="Investment goal")
    p.add_argument(
        "--constraint",
        action="append",
        help='Constraint tag, repeatable (e.g., --constraint "Avoid EM")',
    )


def main(argv: Optional[List[str]] = None):
    """Main entry point."""
    p = argparse.ArgumentParser(
        prog="cli.main",
        description="ETF allocation advisor: rule-based and model-informed allocations",
    )
    sub = p.add_subparsers(dest="cmd", required=True)

    # Common arguments for all commands
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--rules", default="config/allocation_rules.yaml", help="Allocation rules file")
    common.add_argument("--universe", default="config/universe.yaml", help="ETF universe file")
    common.add_argument("--settings", default="config/advisor.yaml", help="Advisor settings file")
    common.add_argument("--db", default=None, help="SQLite database path (overrides settings)")
    common.add_argument("--json", action="store_true", help="Emit JSON")
    common.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    uni = sub.add_parser("universe", parents=[common], help="List approved ETFs")
    uni.set_defaults(func=cmd_universe)

    rec = sub.add_parser("recommend", parents=[common], help="Recommend an allocation")
    add_profile_args(rec)
    rec.add_argument("--llm", action="store_true", help="Consult the language model")
    rec.add_argument("--session", default=None, help="Session id (generated if omitted)")
    rec.add_argument("--user", default=None, help="User id")
    rec.set_defaults(func=cmd_recommend)

    cmp_p = sub.add_parser("compare", parents=[common], help="Rule vs model allocation")
    add_profile_args(cmp_p)
    cmp_p.set_defaults(func=cmd_compare)

    sc = sub.add_parser("scenario", parents=[common], help="Run a stress scenario")
    add_profile_args(sc)
    sc.add_argument("--kind", choices=sorted(SCENARIOS), default="rate-rise", help="Scenario kind")
    sc.add_argument("--llm", action="store_true", help="Also compute a model-informed result")
    sc.set_defaults(func=cmd_scenario)

    hist = sub.add_parser("history", parents=[common], help="List saved recommendations")
    hist.add_argument("--session", default=None, help="Session id")
    hist.add_argument("--user", default=None, help="User id (takes precedence)")
    hist.add_argument("--limit", type=int, default=20, help="Max rows")
    hist.set_defaults(func=cmd_history)

    args = p.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s: %(message)s",
    )
    raise SystemExit(args.func(args))


if __name__ == "__main__":
    main()
