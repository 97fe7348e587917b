"""Tests for testtriage.graph."""

from __future__ import annotations

from testtriage.graph import build_dependency_graph, extract_specifiers, resolve_specifier

JS_FILES = {
    "src/app.ts": "import { b } from './b'\nimport React from 'react'\nexport * from './util/c'\n",
    "src/b.ts": "import c from \"./util/c\"\nconst d = require('./util/d')\nexport const b = () => c(d)\n",
    "src/util/c.ts": "export default function c() {}\n",
    "src/util/d/index.js": "module.exports = 1\n",
}


def test_extract_specifiers_js() -> None:
    text = (
        "import type { A } from './types'\n"
        "import {\n  x,\n  y,\n} from '../lib/xy'\n"
        "import './side-effect.css'\n"
        "const lazy = import('./lazy')\n"
        "export { z } from './z'\n"
        "export * as all from './all'\n"
    )

    imports, exports = extract_specifiers("src/mod.ts", text)

    assert imports == ["./types", "../lib/xy", "./side-effect.css", "./lazy"]
    assert exports == ["./z", "./all"]


def test_extract_specifiers_python() -> None:
    text = "import os, json\nfrom .models import User\nfrom pkg.util import helper\n"

    imports, exports = extract_specifiers("pkg/views.py", text)

    assert set(imports) == {"os", "json", ".models", "pkg.util"}
    assert exports == []


def test_resolve_specifier_tries_extensions_and_index() -> None:
    known = {"src/b.ts", "src/util/d/index.js", "pkg/models.py", "pkg/util.py"}

    assert resolve_specifier("src/app.ts", "./b", known) == "src/b.ts"
    assert resolve_specifier("src/b.ts", "./util/d", known) == "src/util/d/index.js"
    assert resolve_specifier("src/app.ts", "react", known) is None
    assert resolve_specifier("pkg/views.py", ".models", known) == "pkg/models.py"
    assert resolve_specifier("pkg/views.py", "pkg.util", known) == "pkg/util.py"


def test_build_dependency_graph_edges_and_counts(make_repo) -> None:
    root = make_repo(JS_FILES)

    graph = build_dependency_graph(JS_FILES.keys(), str(root))

    assert graph.node_count == 4
    assert graph.graph.has_edge("src/app.ts", "src/b.ts")
    assert graph.graph.has_edge("src/app.ts", "src/util/c.ts")
    assert graph.graph.has_edge("src/b.ts", "src/util/d/index.js")
    assert graph.fan_in("src/util/c.ts") == 2
    assert graph.fan_out("src/app.ts") == 2
    assert "react" in graph.imports("src/app.ts")
    assert graph.exports("src/app.ts") == ["./util/c"]


def test_dependency_count_modes(make_repo) -> None:
    root = make_repo(JS_FILES)
    graph = build_dependency_graph(JS_FILES.keys(), str(root))

    assert graph.dependency_count("src/util/c.ts") == 2
    assert graph.dependency_count("src/util/c.ts", "fanOut") == 0
    assert graph.dependency_count("src/util/c.ts", "graphSize") == 4
    assert graph.dependency_count("src/missing.ts") == 0


def test_extra_paths_count_towards_fan_in(make_repo) -> None:
    root = make_repo(JS_FILES)

    only_targets = build_dependency_graph(["src/util/c.ts"], str(root))
    whole = build_dependency_graph(["src/util/c.ts"], str(root), extra_paths=JS_FILES.keys())

    assert only_targets.fan_in("src/util/c.ts") == 0
    assert whole.fan_in("src/util/c.ts") == 2


def test_unreadable_files_become_isolated_nodes(tmp_path) -> None:
    graph = build_dependency_graph(["src/ghost.ts"], str(tmp_path))

    assert graph.node_count == 1
    assert graph.imports("src/ghost.ts") == []
    assert graph.fan_out("src/ghost.ts") == 0


def test_graph_without_root_has_nodes_only() -> None:
    graph = build_dependency_graph(["a.ts", "b.ts", "a.ts"], None)

    assert graph.node_count == 2
    assert graph.graph.number_of_edges() == 0
