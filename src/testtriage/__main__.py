import argparse
import logging
import sys
from dataclasses import asdict
from .config import ConfigError, load_config
from .metrics import load_eslint_cognitive
from .renderer import write_report
from .scanner import score_targets
from .signals import PRIORITIES, FunctionMetrics, FunctionTarget, GitSignals
from .utils import collect_git_signals, find_repo_root, iter_source_files, load_json, write_json

TIER_LABELS = {"P0": "Must Test", "P1": "High Priority", "P2": "Medium Priority", "P3": "Low Priority"}


def load_metrics(path):
    data = load_json(path, {}) or {}
    by_func = data.get("byFunc", data)
    return {
        key: FunctionMetrics(cyclomatic=int(v.get("cyclomatic", 1) or 1), cognitive=v.get("cognitive"))
        for key, v in by_func.items()
    }


def main(argv=None):
    parser = argparse.ArgumentParser(prog="testtriage", description="Rank functions by unit-test priority")
    sub = parser.add_subparsers(dest="cmd", required=True)

    score = sub.add_parser("score", help="Score targets and write the priority report")
    score.add_argument("path", nargs="?", default=".", help="Path to repo (or any child path)")
    score.add_argument("--targets", required=True, help="Scanner output: JSON list of targets")
    score.add_argument("--config", default=None, help="Scoring config (.yml/.json/.jsonc)")
    score.add_argument("--git-signals", default=None, help="JSON map of path -> git signals")
    score.add_argument("--mine-git", action="store_true", help="Collect git signals from local history")
    score.add_argument("--since-days", type=int, default=180, help="Git history window (days)")
    score.add_argument("--coverage", default=None, help="JSON map of path -> {lineCoverage}")
    score.add_argument("--metrics", default=None, help="JSON map of path#name -> {cyclomatic, cognitive}")
    score.add_argument("--eslint", default=None, help="ESLint JSON output with cognitive complexity")
    score.add_argument("--report", default="reports/ut_scores.md", help="Report file path")
    score.add_argument("--format", choices=("md", "csv"), default="md")
    score.add_argument("--json", default=None, help="Also dump scored targets to this JSON file")
    score.add_argument("--whole-repo-graph", action="store_true", help="Count importers outside the target set")
    score.add_argument("-v", "--verbose", action="store_true")

    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    repo_root = find_repo_root(args.path)
    try:
        cfg = load_config(repo_root, args.config)
    except ConfigError as e:
        print(f"[error] {e}", file=sys.stderr)
        return 2

    targets = [FunctionTarget.from_dict(t) for t in load_json(args.targets, []) or []]
    if not targets:
        print("[warn] No targets found. Run the scanner first.")
        return 0
    paths = {t.path for t in targets}

    if args.git_signals:
        git_data = {p: GitSignals.from_dict(v) for p, v in (load_json(args.git_signals, {}) or {}).items()}
    elif args.mine_git:
        git_data = collect_git_signals(repo_root, paths, args.since_days)
    else:
        git_data = {}

    result = score_targets(
        targets,
        cfg,
        git_data=git_data,
        coverage=load_json(args.coverage, {}),
        metrics=load_metrics(args.metrics),
        cognitive=load_eslint_cognitive(args.eslint) if args.eslint else None,
        root=repo_root,
        extra_paths=iter_source_files(repo_root) if args.whole_repo_graph else (),
    )

    write_report(result, args.report, args.format)
    if args.json:
        write_json({"targets": [asdict(t) for t in result.targets], "skipped": [asdict(s) for s in result.skipped]}, args.json)

    summary = result.summary()
    print("Summary:")
    print(f"  Total: {summary['total']}")
    for p in PRIORITIES:
        print(f"  {p} ({TIER_LABELS[p]}): {summary[p]}")
    if result.skipped:
        print(f"  Skipped: {len(result.skipped)}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
