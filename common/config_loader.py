from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict
import yaml

ROOT = Path(__file__).resolve().parent.parent

def resolve_path(path: str | Path) -> Path:
    p = Path(path)
    if p.is_absolute() or p.exists():
        return p
    return ROOT / p

def load_yaml(path: str | Path) -> Dict[str, Any]:
    p = resolve_path(path)
    with p.open("r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}

@dataclass(frozen=True)
class LoadedConfig:
    rules: Dict[str, Any]
    universe: Dict[str, Any]
    settings: Dict[str, Any]

def load_all(
    rules_path: str = "config/allocation_rules.yaml",
    universe_path: str = "config/universe.yaml",
    settings_path: str = "config/advisor.yaml",
) -> LoadedConfig:
    return LoadedConfig(
        rules=load_yaml(rules_path),
        universe=load_yaml(universe_path),
        settings=load_yaml(settings_path),
    )
