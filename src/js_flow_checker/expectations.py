"""
Checking verdicts against expectations written in fixture comments.

Resolver fixtures annotate each dependency with a trailing comment::

    'nested/a',  // resolved to `lib/nested/a.js`
    'a.js',      // not resolved: ambiguous

Taint fixtures may annotate sink declarations::

    var sink1 = a1.x;   // tainted
    var sink3 = a2.x;   // not tainted
"""

import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

from .resolver import AMBIGUOUS, BUILTIN, NO_MATCH, TOO_SHORT, ResolutionResult
from .taint import SinkVerdict


RESOLVED_TO = re.compile(r"\bresolved to\s+`([^`]+)`")
NOT_RESOLVED = re.compile(r"\bnot resolved\b:?\s*(.*)", re.IGNORECASE)


@dataclass(frozen=True)
class Mismatch:
    """A verdict that disagrees with its annotation."""
    line: int
    subject: str
    expected: str
    actual: str

    def __str__(self) -> str:
        return f"line {self.line}: {self.subject}: expected {self.expected}, got {self.actual}"


def reason_from_text(text: str) -> str:
    """Map the free text after ``not resolved:`` to a reason tag."""
    lowered = text.lower()
    if "ambiguous" in lowered:
        return AMBIGUOUS
    if "too short" in lowered or "too-short" in lowered:
        return TOO_SHORT
    if "builtin" in lowered or "built-in" in lowered:
        return BUILTIN
    return NO_MATCH


def parse_resolution_expectation(text: str) -> Optional[Tuple[bool, str]]:
    """
    Parse a resolver annotation.

    Returns:
        ``(True, path)`` for a resolved expectation, ``(False, reason)`` for
        an unresolved one, or None if the comment is not an annotation
    """
    not_resolved = NOT_RESOLVED.search(text)
    if not_resolved:
        return False, reason_from_text(not_resolved.group(1))
    resolved = RESOLVED_TO.search(text)
    if resolved:
        return True, resolved.group(1)
    return None


def parse_taint_expectation(text: str) -> Optional[bool]:
    """Parse a sink annotation: True for tainted, False for clean."""
    lowered = text.lower()
    if "not tainted" in lowered or "untainted" in lowered or re.search(r"\bclean\b", lowered):
        return False
    if re.search(r"\btainted\b", lowered):
        return True
    return None


def _describe_result(result: ResolutionResult) -> str:
    if result.is_resolved:
        return f"resolved to `{result.path}`"
    return f"not resolved: {result.reason}"


def check_resolutions(
    comments_by_line: Dict[int, List[str]],
    results: Iterable[ResolutionResult],
) -> List[Mismatch]:
    """
    Compare resolution results with the annotations on their lines.

    Annotations on lines with no dependency are reported as mismatches too.

    Args:
        comments_by_line: Comment texts keyed by line number
        results: Resolution results carrying dependency locations

    Returns:
        List of mismatches, in line order
    """
    mismatches = []
    seen_lines = set()

    for result in results:
        location = result.spec.location
        if location is None:
            continue
        line = location.start_line
        seen_lines.add(line)
        for text in comments_by_line.get(line, []):
            expectation = parse_resolution_expectation(text)
            if expectation is None:
                continue
            is_resolved, detail = expectation
            if is_resolved:
                ok = result.path == detail
                expected = f"resolved to `{detail}`"
            else:
                ok = not result.is_resolved and result.reason == detail
                expected = f"not resolved: {detail}"
            if not ok:
                mismatches.append(Mismatch(line, repr(result.spec.raw), expected, _describe_result(result)))

    for line, texts in comments_by_line.items():
        if line in seen_lines:
            continue
        for text in texts:
            if parse_resolution_expectation(text) is not None:
                mismatches.append(Mismatch(line, "annotation", text, "no dependency on this line"))

    return sorted(mismatches, key=lambda m: m.line)


def check_sinks(
    comments_by_line: Dict[int, List[str]],
    verdicts: Iterable[SinkVerdict],
) -> List[Mismatch]:
    """
    Compare sink verdicts with the annotations on their lines.

    Taint annotations on lines with no sink are reported as mismatches too.

    Args:
        comments_by_line: Comment texts keyed by line number
        verdicts: Sink verdicts carrying locations

    Returns:
        List of mismatches, in line order
    """
    mismatches = []
    seen_lines = set()

    for verdict in verdicts:
        if verdict.location is None:
            continue
        line = verdict.location.start_line
        seen_lines.add(line)
        for text in comments_by_line.get(line, []):
            expected = parse_taint_expectation(text)
            if expected is None or expected == verdict.tainted:
                continue
            mismatches.append(Mismatch(
                line,
                verdict.name,
                "tainted" if expected else "clean",
                "tainted" if verdict.tainted else "clean",
            ))

    for line, texts in comments_by_line.items():
        if line in seen_lines:
            continue
        for text in texts:
            if parse_resolution_expectation(text) is not None:
                continue
            if parse_taint_expectation(text) is not None:
                mismatches.append(Mismatch(line, "annotation", text, "no sink on this line"))

    return sorted(mismatches, key=lambda m: m.line)


def check_expectations(
    comments_by_line: Dict[int, List[str]],
    resolutions: Iterable[ResolutionResult],
    verdicts: Iterable[SinkVerdict],
) -> List[Mismatch]:
    """Run both resolver and sink checks over one file, in line order."""
    mismatches = check_resolutions(comments_by_line, resolutions) + check_sinks(comments_by_line, verdicts)
    return sorted(mismatches, key=lambda m: m.line)
