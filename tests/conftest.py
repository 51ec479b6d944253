"""Shared fixtures for setup_cursor tests."""

from __future__ import annotations

import argparse
import importlib.util
import sys
from pathlib import Path
from typing import Any

import pytest

# ---------------------------------------------------------------------------
# Load the script as a module (not in a package).
# Register in sys.modules so all test files share the SAME instance.
# ---------------------------------------------------------------------------

_SCRIPT = Path(__file__).parent.parent / "scripts" / "setup_cursor.py"

if "setup_cursor" not in sys.modules:
    _spec = importlib.util.spec_from_file_location("setup_cursor", _SCRIPT)
    _mod = importlib.util.module_from_spec(_spec)
    sys.modules["setup_cursor"] = _mod
    _spec.loader.exec_module(_mod)

mod = sys.modules["setup_cursor"]


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def repo(tmp_path):
    """An empty repository root with a resources/ directory."""
    root = tmp_path.resolve() / "repo"
    (root / "resources").mkdir(parents=True)
    return root


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def seed_resources(
    root: Path,
    rules: dict[str, list[str]] | None = None,
    agents: bool = True,
    skills: bool = True,
) -> Path:
    """Populate root/resources with rule files and agent/skill docs. Returns resources dir."""
    resources = root / "resources"
    if rules is None:
        rules = {"code_quality": ["a.mdc"], "security": ["b.mdc"]}
    for category, names in rules.items():
        category_dir = resources / "rules" / category
        category_dir.mkdir(parents=True, exist_ok=True)
        for name in names:
            (category_dir / name).write_text(
                f"---\ndescription: {category} {name}\nalwaysApply: true\n---\n# {name}\n"
            )
    if agents:
        (resources / "agents").mkdir(parents=True, exist_ok=True)
        (resources / "agents" / "reviewer.md").write_text("# Reviewer\n")
    if skills:
        (resources / "skills").mkdir(parents=True, exist_ok=True)
        (resources / "skills" / "refactor.md").write_text("# Refactor\n")
    return resources


def make_args(**overrides: Any) -> argparse.Namespace:
    """Create an argparse.Namespace with sensible test defaults."""
    defaults: dict[str, Any] = {
        "rules": None,
        "root": None,
        "target": None,
        "prune": False,
        "dry_run": False,
        "verbose": False,
        "yes": True,
        "command": "sync",
    }
    defaults.update(overrides)
    if isinstance(defaults["root"], Path):
        defaults["root"] = str(defaults["root"])
    return argparse.Namespace(**defaults)
