from __future__ import annotations
import os, subprocess, json, re, math, logging
from datetime import datetime, timedelta, timezone
from typing import Dict, Any, List, Optional, Iterable
from pathspec import GitIgnoreSpec, PathSpec

from .signals import GitSignals

logger = logging.getLogger(__name__)

SOURCE_EXT = {".ts", ".tsx", ".js", ".jsx", ".mjs", ".cjs", ".py", ".vue"}

TEXT_EXT = SOURCE_EXT | {
    ".json", ".yml", ".yaml", ".md", ".txt", ".toml", ".ini", ".env",
}


def find_repo_root(start: str) -> str:
    start = os.path.abspath(start)
    p = start
    while p and p != os.path.dirname(p):
        if os.path.exists(os.path.join(p, ".git")):
            return p
        p = os.path.dirname(p)
    return start


def load_gitignore(repo_root: str) -> PathSpec:
    path = os.path.join(repo_root, ".gitignore")
    if os.path.exists(path):
        with open(path, "r", encoding="utf-8") as f:
            return GitIgnoreSpec.from_lines(f)
    return GitIgnoreSpec.from_lines([])


def is_text_file(path: str) -> bool:
    _, ext = os.path.splitext(path.lower())
    if ext in TEXT_EXT:
        return True
    try:
        with open(path, "rb") as f:
            chunk = f.read(2048)
        return b"\0" not in chunk
    except OSError:
        return False


def iter_source_files(repo_root: str, excludes: Optional[List[str]] = None) -> Iterable[str]:
    """Yield repo-relative POSIX paths of source files, honouring .gitignore."""
    ignore = load_gitignore(repo_root)
    exclude_spec = GitIgnoreSpec.from_lines([".git/", "node_modules/"] + list(excludes or []))
    for root, dirs, files in os.walk(repo_root):
        dirs[:] = [d for d in dirs if d not in (".git", "node_modules")]
        for name in files:
            rel = to_posix(os.path.relpath(os.path.join(root, name), repo_root))
            if ignore.match_file(rel) or exclude_spec.match_file(rel):
                continue
            if os.path.splitext(name)[1].lower() in SOURCE_EXT:
                yield rel


def to_posix(path: str) -> str:
    return path.replace("\\", "/")


def read_source(repo_root: str, rel_path: str) -> Optional[str]:
    abspath = os.path.join(repo_root, rel_path)
    if not os.path.isfile(abspath) or not is_text_file(abspath):
        return None
    try:
        with open(abspath, "r", encoding="utf-8", errors="ignore") as f:
            return f.read()
    except OSError as e:
        logger.debug("Cannot read %s: %s", abspath, e)
        return None


# Numeric helpers shared by the calculators and the aggregator.

def clamp(n: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, n))


def round_half_up(x: float) -> int:
    # 4.5 -> 5, matching the rounding the scores were calibrated against
    return int(math.floor(x + 0.5))


def to_fixed_down(num: float, digits: int = 2) -> float:
    m = 10 ** digits
    # the epsilon absorbs float noise such as 0.29 * 100 == 28.999999999999996
    return math.floor(num * m + 1e-9) / m


_PATTERN_CACHE: Dict[str, "re.Pattern[str]"] = {}


def compile_glob(pattern: str) -> "re.Pattern[str]":
    # ** crosses directories, * stays inside one segment; anchored at both ends
    parts = re.split(r"(\*\*|\*)", pattern)
    body = "".join(".*" if p == "**" else "[^/]*" if p == "*" else re.escape(p) for p in parts)
    return re.compile(f"^{body}$")


def match_pattern(path: str, pattern: str) -> bool:
    """Glob-match the whole of ``path`` against ``pattern``.

    ``*`` does not cross ``/`` and ``**`` does. A leading ``src/`` is
    optional on the path, so ``services/**`` and ``src/services/**`` both
    match ``src/services/user.ts``.
    """
    if not path or not pattern:
        return False
    regex = _PATTERN_CACHE.get(pattern)
    if regex is None:
        regex = _PATTERN_CACHE[pattern] = compile_glob(pattern)
    path = to_posix(path)
    if regex.match(path):
        return True
    return path.startswith("src/") and regex.match(path[len("src/"):]) is not None


def strip_json_comments(text: str) -> str:
    text = re.sub(r"/\*[\s\S]*?\*/", "", text)
    return re.sub(r"(^|\s)//.*$", r"\1", text, flags=re.M)


def run(cmd: List[str], cwd: Optional[str] = None, timeout: int = 30) -> str:
    try:
        res = subprocess.run(
            cmd,
            cwd=cwd,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            timeout=timeout,
            check=False,
            text=True,
        )
        return res.stdout
    except (OSError, subprocess.SubprocessError) as e:
        logger.debug("Command %s failed: %s", cmd, e)
        return ""


def parse_git_log(out: str, now: datetime, recent_days: int = 30) -> Dict[str, GitSignals]:
    """Turn ``git log --pretty=format:---%H|%an|%ct --name-only`` output into signals."""
    commits: Dict[str, List[tuple]] = {}
    author = None
    stamp = None
    for line in out.splitlines():
        line = line.strip()
        if not line:
            continue
        if line.startswith("---"):
            parts = line[3:].split("|")
            if len(parts) >= 3 and parts[2].isdigit():
                author = parts[1]
                stamp = datetime.fromtimestamp(int(parts[2]), tz=timezone.utc)
            else:
                author, stamp = None, None
            continue
        if stamp is None:
            continue
        commits.setdefault(line, []).append((author, stamp))

    recent_cutoff = now - timedelta(days=recent_days)
    signals: Dict[str, GitSignals] = {}
    for path, entries in commits.items():
        stamps = sorted(s for _, s in entries)
        gaps = [(b - a).total_seconds() / 86400.0 for a, b in zip(stamps, stamps[1:])]
        signals[path] = GitSignals(
            total_commits=len(entries),
            recent_commits=sum(1 for _, s in entries if s >= recent_cutoff),
            unique_authors=len({a for a, _ in entries}),
            avg_time_gap=round(sum(gaps) / len(gaps), 2) if gaps else 0.0,
        )
    return signals


def collect_git_signals(repo_root: str, paths: Iterable[str], since_days: int = 180) -> Dict[str, GitSignals]:
    """Mine commit counts and authorship for ``paths`` from the local git history.

    Cross-module references are not derivable from history and stay at zero.
    """
    now = datetime.now(timezone.utc)
    since = (now - timedelta(days=since_days)).strftime("%Y-%m-%d")
    out = run(["git", "log", f"--since={since}", "--name-only", "--pretty=format:---%H|%an|%ct"], cwd=repo_root)
    mined = parse_git_log(out, now)
    wanted = set(paths)
    return {p: s for p, s in mined.items() if p in wanted}


def load_json(path: Optional[str], default: Any = None) -> Any:
    if not path:
        return default
    with open(path, "r", encoding="utf-8") as f:
        return json.loads(strip_json_comments(f.read()))


def write_json(data: Any, path: str):
    os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, default=str)
    print(f"Wrote {path}")
