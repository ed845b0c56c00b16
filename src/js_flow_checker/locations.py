"""
Source locations for AST nodes.
"""

from dataclasses import dataclass, replace
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class SourceLocation:
    """
    A range of characters in a source file.

    Lines are 1-based and columns 0-based, as reported by esprima.
    """
    start_line: int
    start_column: int
    end_line: int
    end_column: int
    start_offset: int = 0
    end_offset: int = 0

    @classmethod
    def from_node(cls, node: Optional[Dict[str, Any]]) -> Optional["SourceLocation"]:
        """
        Build a location from an esprima node dict carrying ``loc`` and ``range``.

        Args:
            node: AST node dictionary

        Returns:
            SourceLocation, or None if the node has no position information
        """
        if not isinstance(node, dict):
            return None
        loc = node.get("loc") or {}
        start = loc.get("start") or {}
        end = loc.get("end") or {}
        if "line" not in start:
            return None
        rng = node.get("range") or [0, 0]
        return cls(
            start_line=start.get("line", 0),
            start_column=start.get("column", 0),
            end_line=end.get("line", start.get("line", 0)),
            end_column=end.get("column", start.get("column", 0)),
            start_offset=rng[0],
            end_offset=rng[1],
        )

    def get_source(self, code: str) -> str:
        """The source code contained in this location."""
        end = min(self.end_offset, len(code))
        if self.start_offset >= end:
            return ""
        return code[self.start_offset:end]

    def shifted(self, lines: int) -> "SourceLocation":
        """This location moved down by ``lines`` lines (offsets unchanged)."""
        return replace(self, start_line=self.start_line + lines, end_line=self.end_line + lines)

    def to_dict(self) -> Dict[str, int]:
        return {
            "line": self.start_line,
            "column": self.start_column,
            "end_line": self.end_line,
            "end_column": self.end_column,
        }

    def __str__(self) -> str:
        return f"{self.start_line}:{self.start_column}"
