"""
Command-line interface for jsflowcheck.
"""

import argparse
import sys
from pathlib import Path
from typing import Optional

from . import __version__
from .checker import FlowChecker
from .config import config
from .resolver import ModuleResolver, ProjectTree


def main(argv: Optional[list] = None) -> int:
    """
    Main entry point for the CLI.

    Args:
        argv: Command-line arguments (defaults to sys.argv)

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    parser = argparse.ArgumentParser(
        prog="jsflowcheck",
        description="Resolve AMD module dependencies and track property taint in JavaScript code",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Analyze local files
  %(prog)s analyze path/to/file.js
  %(prog)s analyze path/to/directory/ -o results.json

  # Resolve dependency names against a project
  %(prog)s resolve nested/a lib/foo.js --root path/to/project

  # Compare verdicts with the annotations in fixture comments
  %(prog)s check path/to/fixtures/
        """,
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    # Analyze command
    analyze_parser = subparsers.add_parser(
        "analyze",
        help="Resolve loader dependencies and report sink taint for JavaScript/HTML files"
    )
    analyze_parser.add_argument(
        "path",
        type=str,
        help="Path to JavaScript/HTML file or directory to analyze",
    )
    analyze_parser.add_argument(
        "-o", "--output",
        type=str,
        help="Output file for results (default: stdout)",
        default=None,
    )
    analyze_parser.add_argument(
        "--base-url",
        type=str,
        help="Project-relative directory relative dependencies are joined to",
        default=None,
    )
    analyze_parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose output",
    )

    # Resolve command
    resolve_parser = subparsers.add_parser(
        "resolve",
        help="Resolve dependency names against a project directory"
    )
    resolve_parser.add_argument(
        "specs",
        type=str,
        nargs="+",
        help="Dependency names as written in a define/require call",
    )
    resolve_parser.add_argument(
        "--root",
        type=str,
        default=".",
        help="Project root directory (default: current directory)",
    )
    resolve_parser.add_argument(
        "--base",
        type=str,
        default=None,
        help="Project-relative directory relative names are joined to",
    )
    resolve_parser.add_argument(
        "--min-length",
        type=int,
        default=None,
        help=f"Shortest bare name to guess (default: {config.min_name_length})",
    )
    resolve_parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose output",
    )

    # Check command
    check_parser = subparsers.add_parser(
        "check",
        help="Check verdicts against annotations in source comments"
    )
    check_parser.add_argument(
        "path",
        type=str,
        help="Path to fixture file or directory",
    )
    check_parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose output",
    )

    # Global arguments
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    args = parser.parse_args(argv)

    validation = config.validate()
    for warning in validation["warnings"]:
        print(f"Warning: {warning}", file=sys.stderr)

    if args.command == "analyze":
        return handle_analyze(args)
    elif args.command == "resolve":
        return handle_resolve(args)
    elif args.command == "check":
        return handle_check(args)
    else:
        parser.print_help()
        return 1


def handle_analyze(args) -> int:
    """Handle the analyze command."""
    input_path = Path(args.path)
    if not input_path.exists():
        print(f"Error: Path '{args.path}' does not exist", file=sys.stderr)
        return 1

    checker = FlowChecker(verbose=args.verbose, base_url=args.base_url)

    try:
        results = checker.analyze(input_path)

        if args.output:
            output_path = Path(args.output)
            checker.save_results(results, output_path)
            print(f"Results saved to {args.output}")
        else:
            checker.print_results(results)

        return 0

    except (OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        if args.verbose:
            import traceback
            traceback.print_exc()
        return 1


def handle_resolve(args) -> int:
    """Handle the resolve command."""
    root = Path(args.root)
    if not root.is_dir():
        print(f"Error: Root '{args.root}' is not a directory", file=sys.stderr)
        return 1

    tree = ProjectTree.from_directory(root)
    if args.verbose:
        print(f"Project tree: {len(tree)} file(s) under {root}")

    resolver = ModuleResolver(min_name_length=args.min_length, verbose=args.verbose)
    for result in resolver.resolve_all(args.specs, tree, args.base):
        print(f"{result.spec.raw}: {result.describe()}")

    return 0


def handle_check(args) -> int:
    """Handle the check command."""
    input_path = Path(args.path)
    if not input_path.exists():
        print(f"Error: Path '{args.path}' does not exist", file=sys.stderr)
        return 1

    checker = FlowChecker(verbose=args.verbose)

    try:
        results = checker.analyze(input_path)
    except (OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    file_results = results["files"] if "directory" in results else [results]
    failed = False
    for file_result in file_results:
        if "error" in file_result:
            print(f"[-] {file_result['file']}: Error - {file_result['error']}", file=sys.stderr)
            failed = True
            continue
        for mismatch in file_result.get("mismatches", []):
            print(f"{file_result['file']}: {mismatch}")
            failed = True

    if not failed:
        print(f"All annotations in {len(file_results)} file(s) match")
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
