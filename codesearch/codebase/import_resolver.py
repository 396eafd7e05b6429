# Copyright 2025 Vijaykumar Singh <singhvjd@gmail.com>
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.



"""Map import strings to the workspace files they name.

Resolution is path based only: no build files, module search paths or package
manifests are consulted. An import of something outside the workspace (a
standard library module, a third-party package, a system header) resolves to
nothing. A package-level import (Go, a Java wildcard) resolves to every file in
the package directory.
"""

import posixpath
from typing import Callable, Collection, Dict, Iterable, List, Optional

from codesearch.languages.base import LanguageTag

Resolver = Callable[[str, str, Collection[str]], List[str]]

_SCRIPT_EXTENSIONS = (".ts", ".tsx", ".d.ts", ".js", ".jsx", ".mjs", ".cjs", ".mts", ".cts")
_EMITTED_EXTENSIONS = {".js": ".ts", ".jsx": ".tsx", ".mjs": ".mts", ".cjs": ".cts"}


def _first_known(candidates: Iterable[str], known: Collection[str]) -> List[str]:
    for candidate in candidates:
        candidate = posixpath.normpath(candidate)
        if candidate in known:
            return [candidate]
    return []


def _suffix_matches(suffixes: Iterable[str], known: Collection[str]) -> List[str]:
    """Known paths ending in one of ``suffixes`` at a directory boundary, shallowest first."""
    suffixes = [s for s in suffixes if s and not s.startswith("../")]
    found = {
        path for path in known for suffix in suffixes if path == suffix or path.endswith("/" + suffix)
    }
    return sorted(found, key=lambda p: (p.count("/"), p))


def _package_files(directory: str, known: Collection[str], extensions: Collection[str]) -> List[str]:
    """Files directly inside the deepest known directory ending in ``directory``."""
    by_dir: Dict[str, List[str]] = {}
    for path in known:
        parent = posixpath.dirname(path)
        if posixpath.splitext(path)[1] not in extensions:
            continue
        if parent == directory or parent.endswith("/" + directory):
            by_dir.setdefault(parent, []).append(path)
    if not by_dir:
        return []
    best = max(by_dir, key=lambda d: (len(d), d))
    return sorted(by_dir[best])


def _resolve_python(importer: str, source: str, known: Collection[str]) -> List[str]:
    if source.startswith("."):
        dots = len(source) - len(source.lstrip("."))
        base = posixpath.dirname(importer)
        for _ in range(dots - 1):
            base = posixpath.dirname(base)
        rest = source[dots:].replace(".", "/")
        stem = posixpath.join(base, rest) if rest else base
        return _first_known(
            [stem + ".py", stem + ".pyi", posixpath.join(stem, "__init__.py")], known
        )
    stem = source.replace(".", "/")
    candidates = [stem + ".py", stem + ".pyi", posixpath.join(stem, "__init__.py")]
    return _first_known(candidates, known) or _suffix_matches(candidates, known)[:1]


def _resolve_script(importer: str, source: str, known: Collection[str]) -> List[str]:
    # Bare specifiers name packages
    if not source.startswith("."):
        return []
    stem = posixpath.normpath(posixpath.join(posixpath.dirname(importer), source))
    candidates = [stem]
    candidates.extend(stem + ext for ext in _SCRIPT_EXTENSIONS)
    candidates.extend(posixpath.join(stem, "index" + ext) for ext in _SCRIPT_EXTENSIONS)
    root, ext = posixpath.splitext(stem)
    if ext in _EMITTED_EXTENSIONS:
        candidates.append(root + _EMITTED_EXTENSIONS[ext])
    return _first_known(candidates, known)


def _resolve_go(importer: str, source: str, known: Collection[str]) -> List[str]:
    by_dir: Dict[str, List[str]] = {}
    for path in known:
        parent = posixpath.dirname(path)
        if path.endswith(".go") and parent and (source == parent or source.endswith("/" + parent)):
            by_dir.setdefault(parent, []).append(path)
    if not by_dir:
        return []
    return sorted(by_dir[max(by_dir, key=len)])


def _qualified_resolver(separator: str, extensions: Collection[str]) -> Resolver:
    """Resolver for ``pkg.sub.Type`` style imports (Java, Kotlin, C#, PHP)."""

    def resolve(importer: str, source: str, known: Collection[str]) -> List[str]:
        parts = [p for p in source.strip(separator).split(separator) if p and p != "*"]
        if not parts:
            return []
        # Longest prefix naming a file wins: pkg.Type, pkg.Type.member
        for end in range(len(parts), min(2, len(parts)) - 1, -1):
            stem = "/".join(parts[:end])
            found = _suffix_matches([stem + ext for ext in extensions], known)
            if found:
                return found[:1]
        return _package_files("/".join(parts), known, extensions)

    return resolve


_resolve_java = _qualified_resolver(".", (".java",))
_resolve_kotlin = _qualified_resolver(".", (".kt", ".kts", ".java"))
_resolve_csharp = _qualified_resolver(".", (".cs",))
_resolve_php_namespace = _qualified_resolver("\\", (".php",))


def _rust_module_dir(path: str) -> str:
    directory, name = posixpath.split(path)
    stem = posixpath.splitext(name)[0]
    if stem in ("mod", "lib", "main"):
        return directory
    return posixpath.join(directory, stem)


def _resolve_rust(importer: str, source: str, known: Collection[str]) -> List[str]:
    segments = [s.strip() for s in source.split("{", 1)[0].split("::")]
    segments = [s for s in segments if s and s != "*"]
    if not segments:
        return []
    if segments[0] == "crate":
        parts = importer.split("/")
        if "src" in parts[:-1]:
            base = "/".join(parts[: parts.index("src") + 1])
        else:
            base = posixpath.dirname(importer)
        segments = segments[1:]
    elif segments[0] in ("self", "super"):
        base = _rust_module_dir(importer)
        if segments[0] == "self":
            segments = segments[1:]
        while segments and segments[0] == "super":
            base = posixpath.dirname(base)
            segments = segments[1:]
    else:
        # External crate
        return []
    for end in range(len(segments), 0, -1):
        stem = posixpath.join(base, *segments[:end])
        found = _first_known([stem + ".rs", posixpath.join(stem, "mod.rs")], known)
        if found:
            return found
    return []


def _resolve_include(importer: str, source: str, known: Collection[str]) -> List[str]:
    local = _first_known([posixpath.join(posixpath.dirname(importer), source)], known)
    return local or _suffix_matches([source], known)[:1]


def _resolve_ruby(importer: str, source: str, known: Collection[str]) -> List[str]:
    name = source if source.endswith(".rb") else source + ".rb"
    return (
        _first_known([posixpath.join(posixpath.dirname(importer), name), "lib/" + name], known)
        or _suffix_matches([name], known)[:1]
    )


def _resolve_php(importer: str, source: str, known: Collection[str]) -> List[str]:
    if source.endswith(".php"):
        return _resolve_include(importer, source, known)
    # PSR-4 roots usually drop the vendor namespace: App\Models -> src/Models
    return _resolve_php_namespace(importer, source, known) or _resolve_php_namespace(
        importer, source.strip("\\").partition("\\")[2], known
    )


_RESOLVERS: Dict[LanguageTag, Resolver] = {
    LanguageTag.PYTHON: _resolve_python,
    LanguageTag.JAVASCRIPT: _resolve_script,
    LanguageTag.TYPESCRIPT: _resolve_script,
    LanguageTag.TSX: _resolve_script,
    LanguageTag.GO: _resolve_go,
    LanguageTag.JAVA: _resolve_java,
    LanguageTag.KOTLIN: _resolve_kotlin,
    LanguageTag.CSHARP: _resolve_csharp,
    LanguageTag.RUST: _resolve_rust,
    LanguageTag.C: _resolve_include,
    LanguageTag.CPP: _resolve_include,
    LanguageTag.RUBY: _resolve_ruby,
    LanguageTag.PHP: _resolve_php,
}


def resolve_import(
    importer: str, source: str, language: Optional[str], known_files: Collection[str]
) -> List[str]:
    """Workspace files named by one import statement.

    Args:
        importer: Workspace-relative path of the importing file
        source: Import source as indexed, e.g. ``..models`` or ``./util``
        language: Language tag value of the importing file
        known_files: Every indexed workspace-relative path

    Returns:
        Matching paths (never the importer itself); empty when the import
        names nothing in the workspace
    """
    try:
        resolver = _RESOLVERS.get(LanguageTag(language)) if language else None
    except ValueError:
        return []
    if resolver is None or not source.strip():
        return []
    return [path for path in resolver(importer, source.strip(), known_files) if path != importer]
