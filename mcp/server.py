#!/usr/bin/env python3
"""MCP server exposing setup-cursor link operations as structured tools."""

from __future__ import annotations

import argparse
import io
import sys
from contextlib import contextmanager
from pathlib import Path
from typing import Any

SCRIPT_DIR = Path(__file__).resolve().parent.parent / "scripts"
sys.path.insert(0, str(SCRIPT_DIR))

import setup_cursor as linker  # noqa: E402
from mcp.server.fastmcp import FastMCP  # noqa: E402

mcp = FastMCP(
    "setup-cursor",
    instructions="Link a repository's resources/ rules, agents and skills into .cursor/ for Cursor IDE.",
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _mock_args(**kwargs: Any) -> argparse.Namespace:
    defaults = {
        "rules": None,
        "root": None,
        "target": None,
        "prune": False,
        "dry_run": False,
        "verbose": False,
        "yes": True,
    }
    defaults.update(kwargs)
    return argparse.Namespace(**defaults)


@contextmanager
def _capture_output():
    old_out, old_err = sys.stdout, sys.stderr
    sys.stdout = buf_out = io.StringIO()
    sys.stderr = buf_err = io.StringIO()
    try:
        yield buf_out, buf_err
    finally:
        sys.stdout, sys.stderr = old_out, old_err


def _run_cmd(fn, args: argparse.Namespace) -> dict[str, Any]:
    with _capture_output() as (out, err):
        try:
            fn(args)
        except SystemExit as e:
            return {
                "success": False,
                "error": err.getvalue().strip() or out.getvalue().strip() or f"exit code {e.code}",
            }
    return {
        "success": True,
        "output": out.getvalue().strip(),
    }


def _run_query(fn, args: argparse.Namespace) -> dict[str, Any]:
    with _capture_output() as (_, err):
        try:
            return {"success": True, "data": fn(args)}
        except SystemExit as e:
            return {"success": False, "error": err.getvalue().strip() or f"exit code {e.code}"}


# ---------------------------------------------------------------------------
# Read-only tools
# ---------------------------------------------------------------------------


@mcp.tool()
def link_status(rules: str | None = None, root: str | None = None) -> dict[str, Any]:
    """Return the state of every planned link (linked, absent, stale, conflict, missing).

    Args:
        rules: Comma-separated rule categories to consider (default: all).
        root: Repository root containing resources/.
    """
    return _run_query(linker.collect_status, _mock_args(rules=rules, root=root))


@mcp.tool()
def list_categories(root: str | None = None) -> dict[str, Any]:
    """List rule categories with each rule's description and apply settings.

    Args:
        root: Repository root containing resources/.
    """
    return _run_query(linker.collect_categories, _mock_args(root=root))


# ---------------------------------------------------------------------------
# Link tools
# ---------------------------------------------------------------------------


@mcp.tool()
def link_resources(
    rules: str | None = None,
    root: str | None = None,
    dry_run: bool = False,
    prune: bool = False,
) -> dict[str, Any]:
    """Create or refresh the .cursor/ links to resources/.

    Args:
        rules: Comma-separated rule categories to link (e.g. "code_quality,security").
        root: Repository root containing resources/.
        dry_run: Preview changes without writing.
        prune: Remove rule links whose category is no longer selected.
    """
    args = _mock_args(rules=rules, root=root, dry_run=dry_run, prune=prune)
    return _run_cmd(linker.cmd_sync, args)


@mcp.tool()
def clean_links(root: str | None = None, dry_run: bool = False) -> dict[str, Any]:
    """Remove every .cursor/ link that points into resources/.

    Args:
        root: Repository root containing resources/.
        dry_run: Preview without removing.
    """
    return _run_cmd(linker.cmd_clean, _mock_args(root=root, dry_run=dry_run))


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    mcp.run(transport="stdio")
