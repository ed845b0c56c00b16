"""
JavaScript and HTML parser module for extracting AST and code structure.

This module parses JavaScript files, and the scripts embedded in HTML pages,
into plain-dictionary ESTree ASTs that the resolver and taint tracker walk.
"""

from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

import esprima
from esprima.error_handler import Error as EsprimaError
from bs4 import BeautifulSoup


JS_SUFFIXES = {".js", ".jsx", ".mjs", ".cjs"}
HTML_SUFFIXES = {".html", ".htm"}

# Keys that never hold child nodes
SKIP_KEYS = ("loc", "range", "leadingComments", "trailingComments", "comments", "errors")


def iter_child_nodes(node: Dict[str, Any]) -> Iterator[Dict[str, Any]]:
    """Yield the direct child nodes of an AST node in source order."""
    for key, value in node.items():
        if key in SKIP_KEYS:
            continue
        if isinstance(value, dict):
            yield value
        elif isinstance(value, list):
            for item in value:
                if isinstance(item, dict):
                    yield item


def walk(node: Any) -> Iterator[Dict[str, Any]]:
    """Yield every node of an AST, depth first, parents before children."""
    if not isinstance(node, dict):
        return
    yield node
    for child in iter_child_nodes(node):
        yield from walk(child)


def get_property_name(node: Dict[str, Any]) -> Optional[str]:
    """
    Extract the property name from a MemberExpression node.

    Computed accesses are only named when the key is a literal (``o["x"]``).
    """
    prop = node.get("property") or {}
    if prop.get("type") == "Identifier" and not node.get("computed"):
        return prop.get("name")
    elif prop.get("type") == "Literal":
        return str(prop.get("value"))
    return None


def _attr(obj: Any, name: str) -> Any:
    """Field of a node that may be a dict or a not-yet-converted esprima object."""
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


class JavaScriptParser:
    """
    Parser for JavaScript code and HTML files.

    This class handles parsing JavaScript files and the scripts found in
    HTML files, producing the ESTree AST as nested dictionaries together
    with the line comments that carry fixture annotations.
    """

    def __init__(self, verbose: bool = False):
        """
        Initialize the parser.

        Args:
            verbose: Enable verbose output
        """
        self.verbose = verbose

    def parse_file(self, file_path: Path) -> Dict[str, Any]:
        """
        Parse a JavaScript or HTML file and return its AST representation.

        Args:
            file_path: Path to the JavaScript or HTML file

        Returns:
            Dictionary containing parsed AST and metadata

        Raises:
            FileNotFoundError: If the file doesn't exist
        """
        file_path = Path(file_path)
        if not file_path.exists():
            raise FileNotFoundError(f"File not found: {file_path}")

        if self.verbose:
            print(f"Parsing file: {file_path}")

        if file_path.suffix.lower() in HTML_SUFFIXES:
            return self._parse_html_file(file_path)

        # Everything else is treated as JavaScript
        content = file_path.read_text(encoding="utf-8", errors="ignore")
        return self.parse_code(content, str(file_path))

    def _parse_html_file(self, file_path: Path) -> Dict[str, Any]:
        """
        Parse an HTML file, extracting inline scripts and RequireJS entry points.

        Args:
            file_path: Path to the HTML file

        Returns:
            Dictionary containing parsed information
        """
        content = file_path.read_text(encoding="utf-8", errors="ignore")
        return self.parse_html(content, str(file_path))

    def parse_html(self, content: str, filename: str = "<string>") -> Dict[str, Any]:
        """
        Parse HTML markup from a string.

        Args:
            content: HTML markup
            filename: Optional filename for error reporting

        Returns:
            Dictionary with ``script_tags``, ``inline_scripts`` (parse results
            of each inline script) and ``data_main`` entries
        """
        result = {
            "file": filename,
            "file_type": "html",
            "source": content,
            "ast": None,
            "comments": [],
            "script_tags": [],
            "inline_scripts": [],
            "data_main": [],
        }

        soup = BeautifulSoup(content, "lxml")

        for index, script in enumerate(soup.find_all("script")):
            line = getattr(script, "sourceline", None)
            script_info = {
                "type": script.get("type", "text/javascript"),
                "src": script.get("src"),
                "line": line,
            }
            result["script_tags"].append(script_info)

            # <script data-main="js/app" src="require.js"> names the entry module
            data_main = script.get("data-main")
            if data_main:
                result["data_main"].append({"value": data_main, "line": line})

            script_content = script.string
            if script_content and script_content.strip():
                script_info["content"] = script_content
                parsed = self.parse_code(script_content, f"{filename}:script[{index}]")
                parsed["line_offset"] = (line or 1) - 1
                result["inline_scripts"].append(parsed)

        return result

    def parse_code(self, code: str, filename: str = "<string>") -> Dict[str, Any]:
        """
        Parse JavaScript code from a string.

        Args:
            code: JavaScript code as a string
            filename: Optional filename for error reporting

        Returns:
            Dictionary containing parsed AST and metadata. On a syntax error
            ``ast`` is None and ``parse_error`` holds the message.
        """
        if self.verbose:
            print(f"Parsing code from {filename}")

        result = {
            "file": filename,
            "file_type": "javascript",
            "source": code,
            "ast": None,
            "comments": [],
        }

        parse_kwargs = {"loc": True, "range": True, "comment": True, "tolerant": True}

        def _parse_with_module_fallback() -> Any:
            """Try parseScript first, then fall back to parseModule."""
            try:
                script = esprima.parseScript(code, **parse_kwargs)
            except EsprimaError as script_err:
                try:
                    return esprima.parseModule(code, **parse_kwargs)
                except EsprimaError:
                    raise script_err

            # In tolerant mode import/export only show up as recorded errors
            script_errors = getattr(script, "errors", None) or []
            if not script_errors:
                return script
            try:
                module = esprima.parseModule(code, **parse_kwargs)
            except EsprimaError:
                return script
            if len(getattr(module, "errors", None) or []) < len(script_errors):
                return module
            return script

        try:
            ast_obj = _parse_with_module_fallback()
        except EsprimaError as e:
            if self.verbose:
                print(f"Warning: Could not parse JavaScript with esprima: {e}")
            result["parse_error"] = str(e)
            return result

        # Errors recovered from in tolerant mode are exceptions, not nodes
        tolerated = getattr(ast_obj, "errors", None) or []
        if tolerated:
            result["tolerated_errors"] = [str(e) for e in tolerated]
            if self.verbose:
                for error in result["tolerated_errors"]:
                    print(f"Warning: {filename}: {error}")
        if hasattr(ast_obj, "errors"):
            ast_obj.errors = []

        ast = ast_obj.toDict() if hasattr(ast_obj, "toDict") else ast_obj
        result["ast"] = ast
        self._extract_from_ast(ast, result)

        return result

    def _extract_from_ast(self, ast: Dict[str, Any], result: Dict[str, Any]) -> None:
        """
        Extract comments from the AST.

        Args:
            ast: Parsed AST
            result: Result dictionary to populate
        """
        for comment in ast.get("comments") or []:
            start = _attr(_attr(comment, "loc"), "start")
            result["comments"].append({
                "kind": _attr(comment, "type"),
                "text": (_attr(comment, "value") or "").strip(),
                "line": _attr(start, "line"),
                "column": _attr(start, "column"),
            })

    def comments_by_line(self, parsed: Dict[str, Any]) -> Dict[int, List[str]]:
        """
        Group comment texts by the line they start on.

        Args:
            parsed: Result of ``parse_code``

        Returns:
            Mapping from line number to comment texts on that line
        """
        by_line: Dict[int, List[str]] = {}
        for comment in parsed.get("comments", []):
            line = comment.get("line")
            if line is not None:
                by_line.setdefault(line, []).append(comment["text"])
        return by_line
