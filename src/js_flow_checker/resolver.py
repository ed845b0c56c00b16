"""
Module resolution for AMD loader dependencies.

Maps the string literals listed at a ``define``/``require`` call site onto
files of the project tree, or explains why a dependency was left unresolved.
Resolution is a pure function of the dependency, the tree and the resolver
settings: nothing is cached or mutated between calls.
"""

import os
import posixpath
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple, Union

from .config import config
from .locations import SourceLocation


# Reasons attached to unresolved results
AMBIGUOUS = "ambiguous"
TOO_SHORT = "too-short"
NO_MATCH = "no-match"
BUILTIN = "builtin"

UNRESOLVED_REASONS = (AMBIGUOUS, TOO_SHORT, NO_MATCH, BUILTIN)

# Dependencies provided by the loader itself rather than by a file
AMD_PSEUDO_DEPENDENCIES = frozenset({"require", "exports", "module"})

SKIPPED_DIRECTORIES = frozenset({"node_modules"})


@dataclass(frozen=True)
class DependencySpec:
    """A dependency string literal as written in a loader call."""
    raw: str
    location: Optional[SourceLocation] = None

    def __str__(self) -> str:
        return self.raw


@dataclass(frozen=True)
class ProjectTree:
    """
    An ordered set of known file paths, relative to the analysis root.

    Paths use ``/`` as separator regardless of platform.
    """
    paths: Tuple[str, ...] = ()

    @classmethod
    def from_paths(cls, paths: Iterable[str]) -> "ProjectTree":
        """
        Build a tree from relative paths, dropping duplicates but keeping order.

        Args:
            paths: Relative file paths

        Returns:
            ProjectTree
        """
        seen: Dict[str, None] = {}
        for path in paths:
            normalized = posixpath.normpath(path.replace("\\", "/")).lstrip("/")
            seen.setdefault(normalized, None)
        return cls(tuple(seen))

    @classmethod
    def from_directory(cls, root: Path, extensions: Optional[Iterable[str]] = None) -> "ProjectTree":
        """
        Collect every file below ``root`` with one of the given extensions.

        Hidden directories and ``node_modules`` are not entered.

        Args:
            root: Directory to walk
            extensions: File suffixes to keep (defaults to the configured set)

        Returns:
            ProjectTree with paths relative to ``root``, sorted
        """
        root = Path(root)
        suffixes = {ext.lower() for ext in (extensions if extensions is not None else config.extensions)}
        found = []
        for dirpath, dirnames, filenames in os.walk(root):
            dirnames[:] = sorted(
                d for d in dirnames
                if not d.startswith(".") and d not in SKIPPED_DIRECTORIES
            )
            for filename in filenames:
                if Path(filename).suffix.lower() in suffixes:
                    relative = Path(dirpath, filename).relative_to(root)
                    found.append(relative.as_posix())
        return cls.from_paths(sorted(found))

    def __contains__(self, path: object) -> bool:
        return path in self.paths

    def __iter__(self) -> Iterator[str]:
        return iter(self.paths)

    def __len__(self) -> int:
        return len(self.paths)


@dataclass(frozen=True)
class ResolutionResult:
    """
    Outcome of resolving one dependency.

    Exactly one of ``path`` (resolved) or ``reason`` (unresolved) is set.
    ``candidates`` lists the competing paths of an ambiguous result.
    """
    spec: DependencySpec
    path: Optional[str] = None
    reason: Optional[str] = None
    candidates: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def is_resolved(self) -> bool:
        return self.path is not None

    def describe(self) -> str:
        if self.is_resolved:
            return f"resolved to `{self.path}`"
        if self.reason == AMBIGUOUS:
            return f"not resolved: ambiguous ({', '.join(self.candidates)})"
        return f"not resolved: {self.reason}"

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "dependency": self.spec.raw,
            "resolved": self.is_resolved,
        }
        if self.spec.location is not None:
            result["line"] = self.spec.location.start_line
            result["column"] = self.spec.location.start_column
        if self.is_resolved:
            result["path"] = self.path
        else:
            result["reason"] = self.reason
            if self.candidates:
                result["candidates"] = list(self.candidates)
        return result


class ModuleResolver:
    """
    Resolves AMD dependency identifiers against a project tree.

    Resolution order:

    0. a name that is verbatim a tree path resolves to that path;
    1. loader pseudo-dependencies (``require``, ``exports``, ``module``)
       are reported as ``builtin``;
    2. an exact match of the name, or the name with ``.js`` appended;
    3. the same lookup relative to a base directory, if one is given;
    4. bare names shorter than ``min_name_length`` are ``too-short``;
    5. a unique path ending in the name (on a ``/`` boundary) resolves,
       several are ``ambiguous`` and none is ``no-match``.
    """

    def __init__(self, min_name_length: Optional[int] = None, verbose: bool = False):
        """
        Initialize the resolver.

        Args:
            min_name_length: Shortest bare name accepted for suffix guessing
            verbose: Enable verbose output
        """
        self.min_name_length = config.min_name_length if min_name_length is None else min_name_length
        self.verbose = verbose

    def resolve(
        self,
        spec: Union[DependencySpec, str],
        tree: ProjectTree,
        base_dir: Optional[str] = None,
    ) -> ResolutionResult:
        """
        Resolve a single dependency.

        Args:
            spec: Dependency literal
            tree: Known project files
            base_dir: Tree-relative directory that relative names are joined to

        Returns:
            ResolutionResult; never raises for any input string
        """
        if isinstance(spec, str):
            spec = DependencySpec(spec)

        result = self._resolve(spec, tree, base_dir)
        if self.verbose:
            print(f"  {spec.raw!r}: {result.describe()}")
        return result

    def resolve_all(
        self,
        specs: Iterable[Union[DependencySpec, str]],
        tree: ProjectTree,
        base_dir: Optional[str] = None,
    ) -> List[ResolutionResult]:
        """Resolve each dependency independently, in order."""
        return [self.resolve(spec, tree, base_dir) for spec in specs]

    def _resolve(self, spec: DependencySpec, tree: ProjectTree, base_dir: Optional[str]) -> ResolutionResult:
        # Verbatim tree paths resolve to themselves, even with a "!" or a pseudo-dependency name
        literal = self._normalize_path(spec.raw.strip())
        if literal and literal in tree:
            return ResolutionResult(spec, path=literal)

        name = self._normalize(spec.raw)
        if not name:
            return ResolutionResult(spec, reason=NO_MATCH)

        if name in AMD_PSEUDO_DEPENDENCIES:
            return ResolutionResult(spec, reason=BUILTIN)

        escapes_root = name == ".." or name.startswith("../")

        if not escapes_root:
            exact = self._lookup(name, tree)
            if exact:
                return ResolutionResult(spec, path=exact)

        if base_dir:
            joined = posixpath.normpath(posixpath.join(base_dir, name))
            if joined != ".." and not joined.startswith("../"):
                relative = self._lookup(joined, tree)
                if relative:
                    return ResolutionResult(spec, path=relative)

        if escapes_root:
            return ResolutionResult(spec, reason=NO_MATCH)

        if "/" not in name and len(name) < self.min_name_length:
            return ResolutionResult(spec, reason=TOO_SHORT)

        matches = self._suffix_matches(name, tree)
        if len(matches) == 1:
            return ResolutionResult(spec, path=matches[0])
        if len(matches) > 1:
            return ResolutionResult(spec, reason=AMBIGUOUS, candidates=tuple(matches))
        return ResolutionResult(spec, reason=NO_MATCH)

    @staticmethod
    def _normalize(raw: str) -> str:
        """Strip a loader plugin prefix and leading ``./`` or ``/`` from a name."""
        name = raw.strip()
        if "!" in name:
            # text!templates/a.html names the resource after the plugin
            name = name.split("!", 1)[1]
        return ModuleResolver._normalize_path(name)

    @staticmethod
    def _normalize_path(name: str) -> str:
        if not name:
            return ""
        name = posixpath.normpath(name.replace("\\", "/"))
        if name == ".":
            return ""
        return name.lstrip("/")

    @staticmethod
    def _candidates(name: str) -> List[str]:
        if name.endswith(".js"):
            return [name]
        return [name, name + ".js"]

    def _lookup(self, name: str, tree: ProjectTree) -> Optional[str]:
        for candidate in self._candidates(name):
            if candidate in tree:
                return candidate
        return None

    def _suffix_matches(self, name: str, tree: ProjectTree) -> List[str]:
        suffixes = ["/" + candidate for candidate in self._candidates(name)]
        matches = []
        for path in tree:
            if any(path.endswith(suffix) for suffix in suffixes):
                matches.append(path)
        return matches


def resolve(spec: Union[DependencySpec, str], tree: ProjectTree) -> ResolutionResult:
    """Resolve a dependency with the configured settings."""
    return ModuleResolver().resolve(spec, tree)
