#!/usr/bin/env python3
"""Link the canonical resources/ tree into .cursor/ so Cursor reads rules, agents and skills in place."""

from __future__ import annotations

import argparse
import os
import re
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Optional

# ---------------------------------------------------------------------------
# Terminal colors (respects NO_COLOR and non-TTY)
# ---------------------------------------------------------------------------

_USE_COLOR = (
    sys.stdout.isatty()
    and os.environ.get("NO_COLOR") is None
    and os.environ.get("TERM") != "dumb"
)


def _ansi(code: str) -> str:
    return f"\033[{code}m" if _USE_COLOR else ""


class C:
    """ANSI escape sequences, empty strings when color is disabled."""
    RESET = _ansi("0")
    BOLD = _ansi("1")
    DIM = _ansi("2")
    GREEN = _ansi("32")
    YELLOW = _ansi("33")
    MAGENTA = _ansi("35")
    CYAN = _ansi("36")
    BOLD_RED = _ansi("1;31")
    BOLD_GREEN = _ansi("1;32")
    BOLD_YELLOW = _ansi("1;33")
    BOLD_CYAN = _ansi("1;36")


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

SCRIPT_ROOT = Path(__file__).resolve().parent.parent

RESOURCES_DIRNAME = "resources"
TARGET_DIRNAME = ".cursor"
RULES_DIRNAME = "rules"
RULE_EXT = ".mdc"
LINKED_DIRS = ("agents", "skills")

KIND_RULE = "rule"
KIND_DIR = "dir"

LINKED = "linked"
UNCHANGED = "unchanged"
SKIPPED = "skipped"
MISSING = "missing"
WOULD_LINK = "would-link"
PRUNED = "pruned"

# link_state() values
STATE_LINKED = "linked"
STATE_ABSENT = "absent"
STATE_STALE = "stale"
STATE_CONFLICT = "conflict"
STATE_MISSING = "missing"

WINDOWS_SYMLINK_HINT = (
    "Creating symlinks on Windows requires Developer Mode or an elevated shell."
)


# ---------------------------------------------------------------------------
# Data structures
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LinkMapping:
    source: Path
    target: Path
    kind: str
    category: str = ""

    @property
    def label(self) -> str:
        if self.kind == KIND_RULE:
            return f"rule {self.target.name} [{self.category}]"
        return f"{self.target.name} directory"


@dataclass
class Plan:
    resources_dir: Path
    target_dir: Path
    mappings: list[LinkMapping] = field(default_factory=list)
    skipped_categories: list[str] = field(default_factory=list)
    unknown_categories: list[str] = field(default_factory=list)
    shadowed: list[tuple[LinkMapping, LinkMapping]] = field(default_factory=list)

    @property
    def rule_mappings(self) -> list[LinkMapping]:
        return [m for m in self.mappings if m.kind == KIND_RULE]


@dataclass
class StepResult:
    mapping: LinkMapping
    status: str
    message: str = ""


class LinkError(Exception):
    """A filesystem step failed; remaining steps were not attempted."""

    def __init__(self, step: str, path: Path, cause: OSError):
        self.step = step
        self.path = path
        self.cause = cause
        reason = cause.strerror or str(cause)
        super().__init__(f"{step} failed: {path}: {reason}")


@dataclass
class SyncReport:
    results: list[StepResult] = field(default_factory=list)
    error: Optional[LinkError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def count(self, status: str) -> int:
        return sum(1 for r in self.results if r.status == status)


# ---------------------------------------------------------------------------
# CLI setup
# ---------------------------------------------------------------------------


def _add_common_options(parser: argparse.ArgumentParser, suppress: bool = False) -> None:
    # Subcommands repeat the global flags with suppressed defaults so values
    # given before the subcommand are not reset.
    def default(value: Any) -> Any:
        return argparse.SUPPRESS if suppress else value

    parser.add_argument("--rules", metavar="CATEGORIES", default=default(None),
                        help="Comma-separated rule categories to link (default: all)")
    parser.add_argument("--root", metavar="DIR", default=default(None),
                        help="Repository root containing resources/")
    parser.add_argument("--target", metavar="DIR", default=default(None),
                        help="Target directory (default: <root>/.cursor)")
    parser.add_argument("--prune", action="store_true", default=default(False),
                        help="Remove rule links no longer selected")
    parser.add_argument("--dry-run", action="store_true", default=default(False),
                        help="Preview changes without writing")
    parser.add_argument("--verbose", action="store_true", default=default(False),
                        help="Detailed output")
    parser.add_argument("--yes", action="store_true", default=default(False),
                        help="Skip confirmation prompts")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="setup_cursor.py",
        description="Symlink resources/{rules,agents,skills} into .cursor/ for Cursor IDE.",
    )
    _add_common_options(parser)

    sub = parser.add_subparsers(dest="command")
    for name, help_text in (
        ("sync", "Create or refresh the links (default)"),
        ("status", "Show the state of every link"),
        ("categories", "List rule categories and their rules"),
        ("clean", "Remove links pointing into resources/"),
    ):
        _add_common_options(sub.add_parser(name, help=help_text), suppress=True)

    return parser


# ---------------------------------------------------------------------------
# Utilities
# ---------------------------------------------------------------------------


def section_header(title: str) -> None:
    width = 50
    rule = "─" * max(1, width - len(title) - 5)
    print(f"\n{C.BOLD_CYAN}─── {title} {rule}{C.RESET}")


def summary_line(label: str, count: int, detail: str = "") -> None:
    extra = f"  {C.DIM}({detail}){C.RESET}" if detail else ""
    print(f"  {label:15s} {C.BOLD}{count}{C.RESET}{extra}")


def log(msg: str) -> None:
    print(f"  {msg}")


def log_verbose(msg: str, args: argparse.Namespace) -> None:
    if args.verbose:
        print(f"  {C.DIM}[verbose] {msg}{C.RESET}")


def warn(msg: str) -> None:
    log(f"{C.BOLD_YELLOW}WARNING:{C.RESET} {msg}")


def fail(msg: str) -> None:
    print(f"{C.BOLD_RED}Error:{C.RESET} {msg}", file=sys.stderr)
    sys.exit(1)


def confirm(prompt: str, default: bool = True) -> bool:
    suffix = f"{C.BOLD}[Y/n]{C.RESET}" if default else f"{C.BOLD}[y/N]{C.RESET}"
    answer = input(f"{prompt} {suffix} ").strip().lower()
    if not answer:
        return default
    return answer in ("y", "yes")


def _display(path: Path, root: Path) -> str:
    try:
        return str(path.relative_to(root))
    except ValueError:
        return str(path)


# ---------------------------------------------------------------------------
# Frontmatter parser (minimal YAML subset for Cursor .mdc)
# ---------------------------------------------------------------------------


def parse_frontmatter(text: str) -> tuple[dict[str, Any], str]:
    """Parse flat key: value YAML frontmatter between --- delimiters.
    Returns (metadata, body). If no frontmatter, returns ({}, text)."""
    if not text.startswith("---"):
        return {}, text
    end = text.find("\n---", 3)
    if end == -1:
        return {}, text
    fm_block = text[3:end].strip()
    body = text[end + 4:].lstrip("\n")
    meta: dict[str, Any] = {}
    for line in fm_block.splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        m = re.match(r"^(\w+)\s*:\s*(.*)$", line)
        if not m:
            continue
        key, val = m.group(1), m.group(2).strip()
        if val.lower() in ("true", "false"):
            meta[key] = val.lower() == "true"
        elif len(val) >= 2 and val[0] == val[-1] and val[0] in "\"'":
            meta[key] = val[1:-1]
        else:
            meta[key] = val
    return meta, body


def rule_summary(path: Path) -> dict[str, Any]:
    """Name plus the Cursor frontmatter fields of one .mdc rule file."""
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        text = ""
    meta, _ = parse_frontmatter(text)
    return {
        "name": path.name,
        "description": meta.get("description", ""),
        "alwaysApply": meta.get("alwaysApply", False),
        "globs": meta.get("globs", ""),
    }


# ---------------------------------------------------------------------------
# Planning
# ---------------------------------------------------------------------------

RuleScanner = Callable[[Path], dict[str, list[Path]]]


def parse_rule_filter(raw: Optional[str]) -> Optional[set[str]]:
    """Turn "a, b" into {"a", "b"}. None or an empty list means all categories."""
    if raw is None:
        return None
    categories = {part.strip() for part in raw.split(",") if part.strip()}
    return categories or None


def scan_rules(rules_dir: Path) -> dict[str, list[Path]]:
    """Map each category directory under rules_dir to its sorted .mdc files."""
    catalog: dict[str, list[Path]] = {}
    if not rules_dir.is_dir():
        return catalog
    # Hidden entries are skipped, as a shell glob would.
    for category_dir in sorted(rules_dir.iterdir()):
        if category_dir.name.startswith(".") or not category_dir.is_dir():
            continue
        catalog[category_dir.name] = sorted(
            f for f in category_dir.glob(f"*{RULE_EXT}")
            if not f.name.startswith(".") and f.is_file()
        )
    return catalog


def plan(
    root: Path,
    rule_filter: Optional[set[str]] = None,
    target_dir: Optional[Path] = None,
    scan: RuleScanner = scan_rules,
) -> Plan:
    """Compute every link for one run. Touches the filesystem only through scan."""
    resources = root / RESOURCES_DIRNAME
    target = target_dir if target_dir is not None else root / TARGET_DIRNAME
    result = Plan(resources_dir=resources, target_dir=target)
    catalog = scan(resources / RULES_DIRNAME)

    by_target: dict[Path, LinkMapping] = {}
    for category in sorted(catalog):
        if rule_filter and category not in rule_filter:
            result.skipped_categories.append(category)
            continue
        for rule_file in sorted(catalog[category]):
            mapping = LinkMapping(
                source=rule_file,
                target=target / RULES_DIRNAME / rule_file.name,
                kind=KIND_RULE,
                category=category,
            )
            # Flattening: a later category wins the shared file name.
            previous = by_target.pop(mapping.target, None)
            if previous is not None:
                result.shadowed.append((previous, mapping))
            by_target[mapping.target] = mapping

    result.mappings.extend(by_target.values())
    if rule_filter:
        result.unknown_categories = sorted(rule_filter - set(catalog))

    for name in LINKED_DIRS:
        result.mappings.append(LinkMapping(
            source=resources / name,
            target=target / name,
            kind=KIND_DIR,
        ))
    return result


# ---------------------------------------------------------------------------
# Linking
# ---------------------------------------------------------------------------


def _points_to(link: Path, source: Path) -> bool:
    try:
        raw = os.readlink(link)
        return (link.parent / raw).resolve() == source.resolve()
    except (OSError, RuntimeError):
        # RuntimeError: symlink loop on Python < 3.13
        return False


def link_state(mapping: LinkMapping) -> str:
    """Inspect one mapping without changing anything."""
    link = mapping.target
    if link.is_symlink():
        if _points_to(link, mapping.source):
            return STATE_LINKED if mapping.source.exists() else STATE_MISSING
        return STATE_STALE
    if link.exists():
        return STATE_CONFLICT
    if not mapping.source.exists():
        return STATE_MISSING
    return STATE_ABSENT


def link_one(mapping: LinkMapping, args: argparse.Namespace) -> StepResult:
    """Create or refresh a single link. OS errors propagate to the caller."""
    link = mapping.target
    if not mapping.source.exists():
        return StepResult(mapping, MISSING, f"{mapping.source} does not exist")

    if link.is_symlink():
        if _points_to(link, mapping.source):
            return StepResult(mapping, UNCHANGED)
        if args.dry_run:
            return StepResult(mapping, WOULD_LINK, "would replace existing link")
        link.unlink()
    elif link.exists():
        return StepResult(mapping, SKIPPED, "already exists and is not a symlink")
    elif args.dry_run:
        return StepResult(mapping, WOULD_LINK)

    link.symlink_to(mapping.source, target_is_directory=mapping.kind == KIND_DIR)
    return StepResult(mapping, LINKED)


def _links_into(directory: Path, source_root: Path) -> list[Path]:
    """Symlinks directly in directory whose destination lies under source_root."""
    found: list[Path] = []
    if not directory.is_dir():
        return found
    source_root = source_root.resolve()
    for entry in sorted(directory.iterdir()):
        if not entry.is_symlink():
            continue
        try:
            resolved = (entry.parent / os.readlink(entry)).resolve()
        except (OSError, RuntimeError):
            continue
        if resolved == source_root or source_root in resolved.parents:
            found.append(entry)
    return found


def prune_stale(p: Plan, args: argparse.Namespace) -> list[StepResult]:
    """Drop rule links that point into resources/rules but are no longer planned."""
    wanted = {m.target for m in p.rule_mappings}
    results: list[StepResult] = []
    rules_target = p.target_dir / RULES_DIRNAME
    for entry in _links_into(rules_target, p.resources_dir / RULES_DIRNAME):
        if entry in wanted:
            continue
        mapping = LinkMapping(source=Path(os.readlink(entry)), target=entry, kind=KIND_RULE)
        if not args.dry_run:
            entry.unlink()
        results.append(StepResult(mapping, PRUNED))
    return results


def _report_step(result: StepResult, args: argparse.Namespace) -> None:
    m = result.mapping
    dry = f"{C.MAGENTA}[dry-run]{C.RESET} "
    if m.kind == KIND_RULE:
        if result.status == LINKED:
            log(f"Linked rule: {m.target.name} [{m.category}]")
        elif result.status == WOULD_LINK:
            log(f"{dry}Would link rule: {m.target.name} [{m.category}]")
        elif result.status == UNCHANGED:
            log_verbose(f"Already linked: {m.target.name} [{m.category}]", args)
        elif result.status == SKIPPED:
            warn(f"{TARGET_DIRNAME}/{RULES_DIRNAME}/{m.target.name} already exists "
                 "and is not a symlink. Skipping.")
        elif result.status == PRUNED:
            prefix = dry if args.dry_run else ""
            log(f"{prefix}{C.YELLOW}Pruned rule:{C.RESET} {m.target.name}")
        return

    name = m.target.name
    if result.status == LINKED:
        log(f"Linked {name} directory")
    elif result.status == WOULD_LINK:
        log(f"{dry}Would link {name} directory")
    elif result.status == UNCHANGED:
        log_verbose(f"Already linked: {name} directory", args)
    elif result.status == SKIPPED:
        warn(f"{TARGET_DIRNAME}/{name}/ already exists and is not a symlink. Skipping.")
    elif result.status == MISSING:
        warn(f"{RESOURCES_DIRNAME}/{name}/ does not exist. Skipping {name} link.")


def apply(p: Plan, args: argparse.Namespace) -> SyncReport:
    """Run every planned step in order, stopping at the first OS failure."""
    report = SyncReport()
    rules_target = p.target_dir / RULES_DIRNAME

    if not args.dry_run:
        try:
            rules_target.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            report.error = LinkError("create rules directory", rules_target, exc)
            return report

    if args.prune:
        try:
            pruned = prune_stale(p, args)
        except OSError as exc:
            report.error = LinkError("prune stale rules", rules_target, exc)
            return report
        for result in pruned:
            report.results.append(result)
            _report_step(result, args)

    for mapping in p.mappings:
        try:
            result = link_one(mapping, args)
        except OSError as exc:
            report.error = LinkError(f"link {mapping.label}", mapping.target, exc)
            return report
        report.results.append(result)
        _report_step(result, args)

    return report


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def resolve_root(raw: Optional[str]) -> Path:
    """--root if given, else the checkout this script lives in, else the cwd."""
    if raw:
        return Path(raw).expanduser().resolve()
    if (SCRIPT_ROOT / RESOURCES_DIRNAME).is_dir():
        return SCRIPT_ROOT
    return Path.cwd().resolve()


def _plan_from_args(args: argparse.Namespace) -> tuple[Path, Plan]:
    root = resolve_root(args.root)
    if not (root / RESOURCES_DIRNAME).is_dir():
        fail(f"{root / RESOURCES_DIRNAME} not found. Run from a repository "
             "containing resources/ or pass --root.")
    target = Path(args.target).expanduser().resolve() if args.target else None
    return root, plan(root, parse_rule_filter(args.rules), target_dir=target)


def cmd_sync(args: argparse.Namespace) -> None:
    root, p = _plan_from_args(args)

    print("Setting up Cursor IDE integration...")
    for category in p.skipped_categories:
        log(f"Skipping category: {category}")
    for category in p.unknown_categories:
        warn(f"no rule category named '{category}'.")
    for hidden, winner in p.shadowed:
        log_verbose(
            f"{hidden.target.name} [{hidden.category}] is shadowed by [{winner.category}]",
            args,
        )

    report = apply(p, args)

    if not report.ok:
        print(f"{C.BOLD_RED}Error:{C.RESET} {report.error}", file=sys.stderr)
        if os.name == "nt":
            print(f"  {WINDOWS_SYMLINK_HINT}", file=sys.stderr)
        sys.exit(1)

    section_header("Summary")
    summary_line("Linked", report.count(LINKED) + report.count(WOULD_LINK))
    summary_line("Unchanged", report.count(UNCHANGED))
    summary_line("Skipped", report.count(SKIPPED) + report.count(MISSING), "warnings")
    if args.prune:
        summary_line("Pruned", report.count(PRUNED))

    if args.dry_run:
        print(f"\n  {C.MAGENTA}(dry-run){C.RESET} nothing was written.")
        return
    print("")
    print(f"{C.BOLD_GREEN}Done!{C.RESET} Cursor will now automatically apply rules, and you can")
    print(f"@mention agents and skills from {_display(p.resources_dir, root)}/ in Cursor Chat.")


def collect_status(args: argparse.Namespace) -> list[dict[str, Any]]:
    _, p = _plan_from_args(args)
    return [
        {
            "kind": m.kind,
            "category": m.category,
            "source": str(m.source),
            "target": str(m.target),
            "state": link_state(m),
        }
        for m in p.mappings
    ]


_STATE_COLORS = {
    STATE_LINKED: C.GREEN,
    STATE_ABSENT: C.DIM,
    STATE_STALE: C.YELLOW,
    STATE_CONFLICT: C.BOLD_YELLOW,
    STATE_MISSING: C.BOLD_YELLOW,
}


def cmd_status(args: argparse.Namespace) -> None:
    entries = collect_status(args)
    rules = [e for e in entries if e["kind"] == KIND_RULE]
    dirs = [e for e in entries if e["kind"] == KIND_DIR]

    section_header(f"Rules ({len(rules)})")
    if rules:
        for e in rules:
            color = _STATE_COLORS.get(e["state"], "")
            name = Path(e["target"]).name
            print(f"  {C.BOLD}{name:30s}{C.RESET} {C.DIM}[{e['category']}]{C.RESET}  "
                  f"{color}{e['state']}{C.RESET}")
    else:
        print(f"  {C.DIM}(none){C.RESET}")

    section_header("Directories")
    for e in dirs:
        color = _STATE_COLORS.get(e["state"], "")
        print(f"  {C.BOLD}{Path(e['target']).name:30s}{C.RESET} {color}{e['state']}{C.RESET}")

    pending = [e for e in entries if e["state"] != STATE_LINKED]
    section_header("Summary")
    summary_line("Linked", len(entries) - len(pending))
    summary_line("Needs sync", len(pending))
    print()


def collect_categories(args: argparse.Namespace) -> dict[str, list[dict[str, Any]]]:
    root = resolve_root(args.root)
    catalog = scan_rules(root / RESOURCES_DIRNAME / RULES_DIRNAME)
    return {
        category: [rule_summary(f) for f in files]
        for category, files in sorted(catalog.items())
    }


def cmd_categories(args: argparse.Namespace) -> None:
    categories = collect_categories(args)
    if not categories:
        print(f"\n  {C.DIM}(no rule categories found){C.RESET}\n")
        return
    for category, rules in categories.items():
        section_header(f"{category} ({len(rules)})")
        for r in rules:
            flags = []
            if r["alwaysApply"]:
                flags.append("alwaysApply")
            if r["globs"]:
                flags.append(f"globs={r['globs']}")
            flag_str = ", ".join(flags)
            print(f"  {C.BOLD}{r['name']:30s}{C.RESET} {flag_str:20s} {r['description']}")
    print(f"\n  Use {C.BOLD}--rules {','.join(categories)}{C.RESET} to pick categories.\n")


def find_resource_links(root: Path, target: Path) -> list[Path]:
    """Every link under target that points into root/resources."""
    resources = root / RESOURCES_DIRNAME
    found = _links_into(target / RULES_DIRNAME, resources)
    found.extend(
        link for link in _links_into(target, resources) if link.name in LINKED_DIRS
    )
    return found


def cmd_clean(args: argparse.Namespace) -> None:
    root = resolve_root(args.root)
    target = Path(args.target).expanduser().resolve() if args.target else root / TARGET_DIRNAME
    links = find_resource_links(root, target)

    if not links:
        print(f"\n  {C.GREEN}Nothing to clean{C.RESET} -- no links into {RESOURCES_DIRNAME}/ found.")
        return

    section_header(f"Links ({len(links)})")
    for link in links:
        print(f"  {_display(link, root)}")
    print(f"\n  Your {RESOURCES_DIRNAME}/ tree is {C.GREEN}not affected{C.RESET}.\n")

    if not args.yes and not args.dry_run and not confirm("  Proceed?"):
        print(f"  {C.DIM}Aborted.{C.RESET}")
        return

    for link in links:
        if args.dry_run:
            log_verbose(f"{C.MAGENTA}[dry-run]{C.RESET} Would remove {link}", args)
            continue
        try:
            link.unlink()
        except OSError as exc:
            fail(str(LinkError("remove link", link, exc)))
        log_verbose(f"{C.YELLOW}Removed{C.RESET} {link}", args)

    section_header("Summary")
    dry = f" {C.MAGENTA}(dry-run){C.RESET}" if args.dry_run else ""
    print(f"  {C.BOLD}{len(links)}{C.RESET} links removed{dry}")
    print()


COMMANDS: dict[str, Callable[[argparse.Namespace], None]] = {
    "sync": cmd_sync,
    "status": cmd_status,
    "categories": cmd_categories,
    "clean": cmd_clean,
}


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------


def main(argv: Optional[list[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    COMMANDS[args.command or "sync"](args)


if __name__ == "__main__":
    main()
