from __future__ import annotations
import csv, io, logging, os
from typing import Dict, List, Optional, Sequence
from jinja2 import Environment, FileSystemLoader, select_autoescape

from .signals import DEFAULT_STATUS, STATUSES, ScoredTarget, ScoreResult, SkippedTarget

logger = logging.getLogger(__name__)

CSV_COLUMNS = (
    "status", "score", "priority", "name", "path", "type", "layer", "coveragePct",
    "coverageScore", "BC", "CC", "ER", "testability", "dependencyCount",
)


class ReportParseError(ValueError):
    """Raised when a previous report has a table we cannot read statuses from."""


def format_score(score: float) -> str:
    return ("%.2f" % score).rstrip("0").rstrip(".")


def format_pct(pct: Optional[float]) -> str:
    return "N/A" if pct is None else f"{pct:.1f}%"


def _env() -> Environment:
    tmpl_dir = os.path.join(os.path.dirname(__file__), "templates")
    env = Environment(
        loader=FileSystemLoader(tmpl_dir),
        autoescape=select_autoescape(),
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
    )
    env.filters["score"] = format_score
    env.filters["pct"] = format_pct
    return env


def rank(targets: Sequence[ScoredTarget]) -> List[ScoredTarget]:
    return sorted(targets, key=lambda t: t.score, reverse=True)


def merge_statuses(targets: Sequence[ScoredTarget], prior: Dict[str, str]) -> Dict[str, str]:
    """Carry prior statuses forward; new keys get TODO and stale keys drop out."""
    return {t.key: prior.get(t.key, DEFAULT_STATUS) for t in targets}


def summarize(targets: Sequence[ScoredTarget]) -> Dict[str, int]:
    return ScoreResult(targets=list(targets)).summary()


def render_markdown(
    targets: Sequence[ScoredTarget],
    statuses: Optional[Dict[str, str]] = None,
    skipped: Sequence[SkippedTarget] = (),
    report_name: str = "reports/ut_scores.md",
) -> str:
    statuses = statuses or {}
    ranked = rank(targets)
    rows = [{"status": statuses.get(t.key, DEFAULT_STATUS), "target": t} for t in ranked]
    tmpl = _env().get_template("report.md.j2")
    return tmpl.render(rows=rows, summary=summarize(ranked), skipped=list(skipped), report_name=report_name)


def render_csv(targets: Sequence[ScoredTarget], statuses: Optional[Dict[str, str]] = None) -> str:
    statuses = statuses or {}
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(CSV_COLUMNS)
    for t in rank(targets):
        writer.writerow([
            statuses.get(t.key, DEFAULT_STATUS),
            format_score(t.score),
            t.priority,
            t.name,
            t.path,
            t.type,
            t.layer,
            format_pct(t.coverage_pct),
            t.coverage_score,
            t.BC,
            t.CC,
            t.ER,
            t.testability,
            t.dependency_count,
        ])
    return buf.getvalue()


def _cells(line: str) -> List[str]:
    return [c.strip() for c in line.strip()[1:-1].split("|")]


# older layout: Status | Score | Priority | Name | Type | Layer | Path
POSITIONAL_COLUMNS = {"status": 0, "name": 3, "path": 6}


def parse_markdown_status(text: str) -> Dict[str, str]:
    """Recover ``path#name -> status`` from the report table.

    Columns are located through the header row, so reports written with a
    different column order still merge. Rows of a table without a header
    are read by ``POSITIONAL_COLUMNS``.
    """
    statuses: Dict[str, str] = {}
    columns: Optional[Dict[str, int]] = None
    header_seen = False
    short_rows = 0
    for line in text.splitlines():
        if not line.strip().startswith("|"):
            columns = None
            continue
        cells = _cells(line)
        if all(set(c) <= set("-: ") for c in cells):
            continue
        lowered = [c.lower() for c in cells]
        if {"status", "name", "path"} <= set(lowered):
            columns = {name: lowered.index(name) for name in ("status", "name", "path")}
            header_seen = True
            continue
        cols = columns or POSITIONAL_COLUMNS
        if len(cells) <= max(cols.values()):
            if columns is None:
                short_rows += 1
            continue
        status = cells[cols["status"]].upper()
        name, path = cells[cols["name"]], cells[cols["path"]]
        if status in STATUSES and name and path:
            statuses[f"{path}#{name}"] = status
    if short_rows and not statuses and not header_seen:
        raise ReportParseError("table has no Status/Name/Path header")
    return statuses


def parse_csv_status(text: str) -> Dict[str, str]:
    reader = csv.DictReader(io.StringIO(text))
    if not reader.fieldnames or not {"status", "name", "path"} <= set(reader.fieldnames):
        raise ReportParseError("CSV report lacks status/name/path columns")
    statuses: Dict[str, str] = {}
    for row in reader:
        status = (row.get("status") or "").strip().upper()
        name, path = (row.get("name") or "").strip(), (row.get("path") or "").strip()
        if status in STATUSES and name and path:
            statuses[f"{path}#{name}"] = status
    return statuses


def read_existing_status(path: str) -> Dict[str, str]:
    """Statuses from a previous report at ``path``; ``{}`` when absent or unreadable."""
    if not os.path.exists(path):
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            text = f.read()
        if path.lower().endswith(".csv"):
            return parse_csv_status(text)
        return parse_markdown_status(text)
    except (OSError, UnicodeDecodeError, csv.Error, ReportParseError) as e:
        logger.warning("Could not read statuses from %s, defaulting all to TODO: %s", path, e)
        return {}


def write_report(result: ScoreResult, path: str, fmt: str = "md") -> str:
    """Merge with the report already at ``path``, then overwrite it."""
    statuses = merge_statuses(result.targets, read_existing_status(path))
    if fmt == "csv":
        out = render_csv(result.targets, statuses)
    else:
        out = render_markdown(result.targets, statuses, result.skipped, report_name=path)
    os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        f.write(out)
    print(f"Wrote {path}")
    return out
