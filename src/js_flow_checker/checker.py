"""
Main checker module that coordinates parsing, module resolution and
property taint tracking.

This module provides the high-level API for the tool.
"""

import json
import posixpath
from pathlib import Path
from typing import Any, Dict, List, Optional

from .amd import LoaderCall, find_loader_calls_in_parse_result
from .config import config
from .expectations import check_expectations
from .parser import HTML_SUFFIXES, JavaScriptParser
from .resolver import ModuleResolver, ProjectTree, ResolutionResult
from .taint import PropertyTaintTracker, SinkVerdict


class FlowChecker:
    """
    Main checker class.

    For every JavaScript or HTML file it resolves the dependencies listed at
    AMD loader calls against the project tree and reports the taint of every
    sink variable.
    """

    def __init__(self, verbose: bool = False, base_url: Optional[str] = None):
        """
        Initialize the checker.

        Args:
            verbose: Enable verbose output
            base_url: Tree-relative directory used as the loader baseUrl;
                defaults to the directory of each analyzed file
        """
        self.verbose = verbose
        self.base_url = config.base_url if base_url is None else base_url
        self.parser = JavaScriptParser(verbose=verbose)
        self.resolver = ModuleResolver(verbose=verbose)
        self.tracker = PropertyTaintTracker(verbose=verbose)

    def analyze(self, path: Path) -> Dict[str, Any]:
        """
        Analyze a JavaScript/HTML file or a directory.

        Args:
            path: Path to a file or directory

        Returns:
            Dictionary containing analysis results

        Raises:
            ValueError: If the path is invalid
        """
        path = Path(path)
        if path.is_file():
            tree = ProjectTree.from_directory(path.parent)
            return self._analyze_file(path, path.parent, tree)
        elif path.is_dir():
            return self._analyze_directory(path)
        else:
            raise ValueError(f"Invalid path: {path}")

    def _analyze_directory(self, dir_path: Path) -> Dict[str, Any]:
        """
        Analyze every JavaScript and HTML file below a directory.

        Args:
            dir_path: Path to the directory

        Returns:
            Dictionary containing analysis results for all files
        """
        if self.verbose:
            print(f"Analyzing directory: {dir_path}")

        tree = ProjectTree.from_directory(dir_path)
        results = {
            "directory": str(dir_path),
            "files": [],
            "total_unresolved": 0,
            "total_tainted_sinks": 0,
            "total_mismatches": 0,
        }

        for relative in tree:
            file_result = self._analyze_file(dir_path / relative, dir_path, tree)
            results["files"].append(file_result)
            results["total_unresolved"] += file_result.get("unresolved_count", 0)
            results["total_tainted_sinks"] += file_result.get("tainted_sink_count", 0)
            results["total_mismatches"] += len(file_result.get("mismatches", []))

        return results

    def _analyze_file(self, file_path: Path, root: Path, tree: ProjectTree) -> Dict[str, Any]:
        """
        Analyze a single file against the project tree rooted at ``root``.

        Args:
            file_path: Path to the file
            root: Directory the tree paths are relative to
            tree: Known project files

        Returns:
            Dictionary containing analysis results
        """
        relative = file_path.relative_to(root).as_posix()
        if self.verbose:
            print(f"Analyzing file: {relative}")

        try:
            parsed = self.parser.parse_file(file_path)
        except (OSError, UnicodeError) as e:
            return {"file": relative, "error": str(e)}

        if parsed.get("parse_error"):
            return {"file": relative, "error": parsed["parse_error"]}

        base_dir = self.base_url or posixpath.dirname(relative) or None
        calls = find_loader_calls_in_parse_result(parsed)
        call_results = [
            (call, self.resolver.resolve_all(call.dependencies, tree, base_dir))
            for call in calls
        ]
        verdicts = self._track_taint(parsed)

        mismatches = []
        if file_path.suffix.lower() not in HTML_SUFFIXES:
            comments = self.parser.comments_by_line(parsed)
            resolutions = [r for _, results in call_results for r in results]
            mismatches = check_expectations(comments, resolutions, verdicts)

        return {
            "file": relative,
            "loader_calls": [self._loader_call_to_dict(call, results) for call, results in call_results],
            "sinks": [v.to_dict() for v in verdicts],
            "unresolved_count": sum(
                1 for _, results in call_results for r in results if not r.is_resolved
            ),
            "tainted_sink_count": sum(1 for v in verdicts if v.tainted),
            "mismatches": [str(m) for m in mismatches],
        }

    def _track_taint(self, parsed: Dict[str, Any]) -> List[SinkVerdict]:
        if parsed.get("file_type") != "html":
            return self.tracker.analyze(parsed.get("ast"))
        verdicts = []
        for script in parsed.get("inline_scripts", []):
            offset = script.get("line_offset", 0)
            for verdict in self.tracker.analyze(script.get("ast")):
                if verdict.location is not None and offset:
                    verdict = SinkVerdict(verdict.name, verdict.tainted, verdict.location.shifted(offset))
                verdicts.append(verdict)
        return verdicts

    @staticmethod
    def _loader_call_to_dict(call: LoaderCall, results: List[ResolutionResult]) -> Dict[str, Any]:
        entry: Dict[str, Any] = {
            "kind": call.kind,
            "line": call.location.start_line if call.location else None,
            "dependencies": [],
        }
        for result, (_, param) in zip(results, call.dependency_parameters()):
            dependency = result.to_dict()
            if param:
                dependency["parameter"] = param
            entry["dependencies"].append(dependency)
        if call.module_name:
            entry["module"] = call.module_name
        if call.factory_params:
            entry["parameters"] = call.factory_params
        return entry

    def print_results(self, results: Dict[str, Any]) -> None:
        """
        Print analysis results to stdout in a human-readable format.

        Args:
            results: Analysis results dictionary
        """
        if "directory" in results:
            print(f"\n=== Analysis Results for {results['directory']} ===\n")
            print(f"Files analyzed: {len(results['files'])}")
            print(f"Unresolved dependencies: {results['total_unresolved']}")
            print(f"Tainted sinks: {results['total_tainted_sinks']}")
            print(f"Annotation mismatches: {results['total_mismatches']}\n")

            for file_result in results["files"]:
                self._print_single_file_result(file_result)
        else:
            self._print_single_file_result(results, header=True)

    def _print_single_file_result(self, result: Dict[str, Any], header: bool = False) -> None:
        """Helper to print result for a single file."""
        file_path = result.get("file", "Unknown")

        if header:
            print(f"\n=== Analysis Results for {file_path} ===\n")

        if "error" in result:
            print(f"[-] {file_path}: Error - {result['error']}")
            return

        mismatches = result.get("mismatches", [])
        status_symbol = "[!]" if mismatches else "[+]"
        print(
            f"{status_symbol} {file_path}: {len(result.get('loader_calls', []))} loader call(s), "
            f"{len(result.get('sinks', []))} sink(s)"
        )

        for call in result.get("loader_calls", []):
            print(f"   {call['kind']} (line {call['line']})")
            for dep in call["dependencies"]:
                if dep["resolved"]:
                    print(f"     {dep['dependency']!r} -> {dep['path']}")
                else:
                    print(f"     {dep['dependency']!r} -> unresolved ({dep['reason']})")

        for sink in result.get("sinks", []):
            state = "TAINTED" if sink["tainted"] else "clean"
            print(f"   Line {sink.get('line')}: {sink['sink']} is {state}")

        for mismatch in mismatches:
            print(f"   MISMATCH {mismatch}")

    def save_results(self, results: Dict[str, Any], output_path: Path) -> None:
        """
        Save analysis results to a JSON file.

        Args:
            results: Analysis results dictionary
            output_path: Path to save the results
        """
        with open(output_path, "w") as f:
            json.dump(results, f, indent=2)

        if self.verbose:
            print(f"Results saved to {output_path}")
