"""File-level dependency graph built from static imports and re-exports."""
from __future__ import annotations
import logging, posixpath, re
from typing import Iterable, List, Optional, Set, Tuple

import networkx as nx

from .utils import read_source, to_posix

logger = logging.getLogger(__name__)

JS_EXTENSIONS = (".ts", ".tsx", ".js", ".jsx", ".mjs", ".cjs", ".vue")
RESOLVE_SUFFIXES = ("",) + JS_EXTENSIONS + tuple(f"/index{ext}" for ext in JS_EXTENSIONS)

_JS_IMPORT = re.compile(r"""\bimport\s+(?:type\s+)?(?:[^'";]*?\s+from\s+)?['"]([^'"]+)['"]""", re.S)
_JS_DYNAMIC = re.compile(r"""\b(?:require|import)\(\s*['"]([^'"]+)['"]\s*\)""")
_JS_REEXPORT = re.compile(r"""\bexport\s+(?:type\s+)?(?:\*(?:\s+as\s+\w+)?|\{[^}]*\})\s+from\s+['"]([^'"]+)['"]""", re.S)
_PY_IMPORT = re.compile(r"^\s*import\s+([\w.]+(?:\s*,\s*[\w.]+)*)", re.M)
_PY_FROM = re.compile(r"^\s*from\s+(\.*[\w.]*)\s+import\b", re.M)


def extract_specifiers(path: str, text: str) -> Tuple[List[str], List[str]]:
    """Return ``(imports, exports)`` module specifiers found in ``text``."""
    if path.endswith(".py"):
        imports = [m.group(1) for m in _PY_FROM.finditer(text)]
        for m in _PY_IMPORT.finditer(text):
            imports.extend(part.strip() for part in m.group(1).split(","))
        return _dedupe(imports), []
    imports = [m.group(1) for m in _JS_IMPORT.finditer(text)]
    imports += [m.group(1) for m in _JS_DYNAMIC.finditer(text)]
    exports = [m.group(1) for m in _JS_REEXPORT.finditer(text)]
    return _dedupe(imports), _dedupe(exports)


def _dedupe(items: Iterable[str]) -> List[str]:
    seen: Set[str] = set()
    return [x for x in items if not (x in seen or seen.add(x))]


def resolve_specifier(importer: str, spec: str, known: Set[str]) -> Optional[str]:
    """Map a module specifier to one of the ``known`` file paths, if any."""
    if importer.endswith(".py"):
        return _resolve_python(importer, spec, known)
    if not spec.startswith("."):
        return None
    base = posixpath.normpath(posixpath.join(posixpath.dirname(importer), spec))
    for suffix in RESOLVE_SUFFIXES:
        if base + suffix in known:
            return base + suffix
    return None


def _resolve_python(importer: str, spec: str, known: Set[str]) -> Optional[str]:
    dots = len(spec) - len(spec.lstrip("."))
    module = spec[dots:].replace(".", "/")
    if dots:
        base = posixpath.dirname(importer)
        for _ in range(dots - 1):
            base = posixpath.dirname(base)
        roots = [posixpath.join(base, module) if module else base]
    else:
        roots = [module, f"src/{module}"]
    for root in roots:
        for candidate in (root + ".py", root + "/__init__.py"):
            if candidate in known:
                return candidate
    return None


class DependencyGraph:
    """Read-only view over a networkx ``DiGraph`` of file imports.

    An edge ``a -> b`` means file ``a`` imports (or re-exports from) ``b``.
    """

    def __init__(self, graph: "nx.DiGraph[str]"):
        self.graph = graph

    @property
    def node_count(self) -> int:
        return self.graph.number_of_nodes()

    def imports(self, path: str) -> List[str]:
        return list(self.graph.nodes[path]["imports"]) if path in self.graph else []

    def exports(self, path: str) -> List[str]:
        return list(self.graph.nodes[path]["exports"]) if path in self.graph else []

    def fan_in(self, path: str) -> int:
        return self.graph.in_degree(path) if path in self.graph else 0

    def fan_out(self, path: str) -> int:
        return self.graph.out_degree(path) if path in self.graph else 0

    def dependency_count(self, path: str, metric: str = "fanIn") -> int:
        if metric == "fanOut":
            return self.fan_out(path)
        if metric == "graphSize":
            return self.node_count
        return self.fan_in(path)


def build_dependency_graph(
    paths: Iterable[str], root: Optional[str], extra_paths: Iterable[str] = ()
) -> DependencyGraph:
    """Build the graph once for a scoring run.

    ``paths`` are the files referenced by targets; ``extra_paths`` adds the
    rest of the project so that importers outside the target set count
    towards fan-in. Without a ``root`` only the nodes are recorded.
    """
    nodes = sorted({to_posix(p) for p in paths} | {to_posix(p) for p in extra_paths})
    known = set(nodes)
    G: nx.DiGraph = nx.DiGraph()
    for path in nodes:
        text = read_source(root, path) if root is not None else None
        imports, exports = extract_specifiers(path, text) if text is not None else ([], [])
        G.add_node(path, file_path=path, imports=imports, exports=exports, readable=text is not None)

    for path in nodes:
        data = G.nodes[path]
        for spec in data["imports"] + data["exports"]:
            dep = resolve_specifier(path, spec, known)
            if dep is not None and dep != path:
                G.add_edge(path, dep)

    logger.debug("Built dependency graph with %s nodes and %s edges", G.number_of_nodes(), G.number_of_edges())
    return DependencyGraph(G)
