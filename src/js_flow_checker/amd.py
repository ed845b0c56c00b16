"""
Extraction of AMD loader calls from parsed JavaScript.

Recognized call shapes::

    define([deps...], factory)
    define("name", [deps...], factory)
    define(function (require) { var a = require("a"); })
    require([deps...], callback)
    requirejs([deps...], callback)

HTML pages add a ``data-main`` entry for ``<script data-main="...">``.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from .locations import SourceLocation
from .parser import walk
from .resolver import DependencySpec


LOADER_FUNCTIONS = {"define", "require", "requirejs"}

FUNCTION_TYPES = ("FunctionExpression", "ArrowFunctionExpression")


@dataclass
class LoaderCall:
    """A loader call site and the dependencies it lists."""
    kind: str  # 'define', 'require', 'requirejs' or 'data-main'
    dependencies: List[DependencySpec]
    module_name: Optional[str] = None
    factory_params: List[str] = field(default_factory=list)
    location: Optional[SourceLocation] = None

    def dependency_parameters(self) -> List[Tuple[DependencySpec, Optional[str]]]:
        """
        Pair each dependency with the factory parameter that receives it.

        Dependencies beyond the parameter list are paired with None.
        """
        return [
            (dep, self.factory_params[i] if i < len(self.factory_params) else None)
            for i, dep in enumerate(self.dependencies)
        ]


def _string_literal(node: Dict[str, Any]) -> Optional[str]:
    if node.get("type") == "Literal" and isinstance(node.get("value"), str):
        return node["value"]
    return None


def _dependency_specs(array_node: Dict[str, Any], line_offset: int) -> List[DependencySpec]:
    specs = []
    for element in array_node.get("elements") or []:
        if not isinstance(element, dict):
            continue
        value = _string_literal(element)
        if value is None:
            # Computed dependency names cannot be resolved statically
            continue
        specs.append(DependencySpec(value, _location(element, line_offset)))
    return specs


def _location(node: Dict[str, Any], line_offset: int) -> Optional[SourceLocation]:
    location = SourceLocation.from_node(node)
    if location is not None and line_offset:
        location = location.shifted(line_offset)
    return location


def _param_names(func: Dict[str, Any]) -> List[str]:
    return [p.get("name") for p in func.get("params") or [] if p.get("type") == "Identifier"]


def _sugared_requires(factory: Dict[str, Any], line_offset: int) -> List[DependencySpec]:
    """Collect ``require("x")`` calls inside a CommonJS-style factory."""
    params = _param_names(factory)
    if not params:
        return []
    require_name = params[0]
    specs = []
    for node in walk(factory.get("body")):
        if node.get("type") != "CallExpression":
            continue
        callee = node.get("callee") or {}
        args = node.get("arguments") or []
        if callee.get("type") == "Identifier" and callee.get("name") == require_name and len(args) == 1:
            value = _string_literal(args[0])
            if value is not None:
                specs.append(DependencySpec(value, _location(args[0], line_offset)))
    return specs


def _loader_call(node: Dict[str, Any], line_offset: int) -> Optional[LoaderCall]:
    callee = node.get("callee") or {}
    if callee.get("type") != "Identifier":
        return None
    kind = callee.get("name")
    if kind not in LOADER_FUNCTIONS:
        return None

    args = [a for a in node.get("arguments") or [] if isinstance(a, dict)]
    module_name = None
    if kind == "define" and args and _string_literal(args[0]) is not None:
        module_name = _string_literal(args[0])
        args = args[1:]

    location = _location(node, line_offset)

    if args and args[0].get("type") == "ArrayExpression":
        factory = args[1] if len(args) > 1 and args[1].get("type") in FUNCTION_TYPES else None
        return LoaderCall(
            kind=kind,
            dependencies=_dependency_specs(args[0], line_offset),
            module_name=module_name,
            factory_params=_param_names(factory) if factory else [],
            location=location,
        )

    if kind == "define" and args and args[0].get("type") in FUNCTION_TYPES:
        factory = args[0]
        return LoaderCall(
            kind=kind,
            dependencies=_sugared_requires(factory, line_offset),
            module_name=module_name,
            factory_params=_param_names(factory),
            location=location,
        )

    return None


def find_loader_calls(ast: Optional[Dict[str, Any]], line_offset: int = 0) -> List[LoaderCall]:
    """
    Find every AMD loader call in an AST, in source order.

    Args:
        ast: Program node (as produced by ``JavaScriptParser.parse_code``)
        line_offset: Lines to add to reported locations (inline HTML scripts)

    Returns:
        List of LoaderCall
    """
    calls = []
    for node in walk(ast):
        if node.get("type") != "CallExpression":
            continue
        call = _loader_call(node, line_offset)
        if call is not None:
            calls.append(call)
    return calls


def find_loader_calls_in_parse_result(parsed: Dict[str, Any]) -> List[LoaderCall]:
    """
    Find loader calls in a parser result, JavaScript or HTML.

    Args:
        parsed: Result of ``parse_file``, ``parse_code`` or ``parse_html``

    Returns:
        List of LoaderCall
    """
    if parsed.get("file_type") != "html":
        return find_loader_calls(parsed.get("ast"))

    calls = []
    for entry in parsed.get("data_main", []):
        line = entry.get("line") or 0
        location = SourceLocation(line, 0, line, 0) if line else None
        calls.append(LoaderCall(
            kind="data-main",
            dependencies=[DependencySpec(entry["value"], location)],
            location=location,
        ))
    for script in parsed.get("inline_scripts", []):
        calls.extend(find_loader_calls(script.get("ast"), script.get("line_offset", 0)))
    return calls
