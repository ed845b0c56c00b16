"""
Field-sensitive taint tracking through object properties and accessors.

The tracker makes a single pass over straight-line code. Values are either
a taint state or a reference to an instance record; every ``new`` expression
allocates a fresh record, so property taint is scoped to one instance and
never leaks to other instances of the same class.

Accessor methods are recognized by the shape of their bodies:

    setX(v) { this.x = v; }      -> SetterShape("x", 0)
    getX() { return this.x; }    -> GetterShape("x")
    constructor(a) { this.x = a; }  -> InitializerShape((("x", 0),))

Anything else is an OpaqueShape: calls to it return clean values and
propagate nothing.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple, Union

from .config import config
from .locations import SourceLocation
from .parser import get_property_name, iter_child_nodes, walk


class TaintState(Enum):
    """Taint tag carried by a value."""
    CLEAN = "clean"
    TAINTED = "tainted"

    def join(self, other: "TaintState") -> "TaintState":
        if TaintState.TAINTED in (self, other):
            return TaintState.TAINTED
        return TaintState.CLEAN

    @property
    def is_tainted(self) -> bool:
        return self is TaintState.TAINTED


@dataclass(frozen=True)
class SetterShape:
    """Method body is exactly ``this.<prop> = <param>``."""
    prop: str
    param_index: int


@dataclass(frozen=True)
class GetterShape:
    """Method body is exactly ``return this.<prop>``."""
    prop: str


@dataclass(frozen=True)
class InitializerShape:
    """Constructor body made only of ``this.<prop> = <param>`` statements."""
    fields: Tuple[Tuple[str, int], ...] = ()


@dataclass(frozen=True)
class OpaqueShape:
    """Any body the recognizer does not understand."""
    reason: str


MethodShape = Union[SetterShape, GetterShape, InitializerShape, OpaqueShape]

FUNCTION_TYPES = ("FunctionExpression", "ArrowFunctionExpression", "FunctionDeclaration")


def _this_property(node: Optional[Dict[str, Any]]) -> Optional[str]:
    """Name of ``p`` if ``node`` is the expression ``this.p``."""
    if not node or node.get("type") != "MemberExpression":
        return None
    if (node.get("object") or {}).get("type") != "ThisExpression":
        return None
    return get_property_name(node)


def _field_write(statement: Dict[str, Any], params: List[Optional[str]]) -> Optional[Tuple[str, int]]:
    """Match ``this.<prop> = <param>;`` and return (prop, param index)."""
    if statement.get("type") != "ExpressionStatement":
        return None
    expr = statement.get("expression") or {}
    if expr.get("type") != "AssignmentExpression" or expr.get("operator") != "=":
        return None
    prop = _this_property(expr.get("left"))
    right = expr.get("right") or {}
    if prop is None or right.get("type") != "Identifier":
        return None
    name = right.get("name")
    if name not in params:
        return None
    return prop, params.index(name)


def _body_statements(func: Dict[str, Any]) -> Optional[List[Dict[str, Any]]]:
    body = func.get("body") or {}
    if body.get("type") != "BlockStatement":
        return None
    return [s for s in body.get("body") or [] if s.get("type") != "EmptyStatement"]


def _params(func: Dict[str, Any]) -> List[Optional[str]]:
    return [
        p.get("name") if p.get("type") == "Identifier" else None
        for p in func.get("params") or []
    ]


def classify_method(func: Dict[str, Any]) -> MethodShape:
    """
    Classify a method's function node as setter, getter or opaque.

    Args:
        func: FunctionExpression node of a method definition

    Returns:
        The recognized MethodShape
    """
    statements = _body_statements(func)
    if statements is None:
        return OpaqueShape("expression body")
    if len(statements) != 1:
        return OpaqueShape(f"{len(statements)} statements")

    statement = statements[0]
    write = _field_write(statement, _params(func))
    if write is not None:
        return SetterShape(*write)

    if statement.get("type") == "ReturnStatement":
        prop = _this_property(statement.get("argument"))
        if prop is not None:
            return GetterShape(prop)

    return OpaqueShape(f"unrecognized {statement.get('type')}")


def classify_constructor(func: Dict[str, Any]) -> MethodShape:
    """
    Classify a constructor as a field initializer or opaque.

    Args:
        func: FunctionExpression node of the constructor

    Returns:
        InitializerShape, or OpaqueShape if any statement is not a field write
    """
    statements = _body_statements(func)
    if statements is None:
        return OpaqueShape("expression body")
    params = _params(func)
    fields = []
    for statement in statements:
        write = _field_write(statement, params)
        if write is None:
            return OpaqueShape(f"unrecognized {statement.get('type')}")
        fields.append(write)
    return InitializerShape(tuple(fields))


@dataclass
class ClassInfo:
    """Accessor shapes recognized for one class."""
    name: str
    methods: Dict[str, MethodShape] = field(default_factory=dict)
    property_getters: Dict[str, MethodShape] = field(default_factory=dict)
    property_setters: Dict[str, MethodShape] = field(default_factory=dict)
    constructor: MethodShape = field(default_factory=InitializerShape)

    @classmethod
    def from_node(cls, name: str, node: Dict[str, Any], parent: Optional["ClassInfo"] = None) -> "ClassInfo":
        """
        Build class information from a ClassDeclaration or ClassExpression.

        Shapes inherited from ``parent`` are overridden by the class's own.
        """
        info = cls(name)
        if parent is not None:
            info.methods.update(parent.methods)
            info.property_getters.update(parent.property_getters)
            info.property_setters.update(parent.property_setters)
            info.constructor = parent.constructor

        for member in (node.get("body") or {}).get("body") or []:
            if member.get("type") != "MethodDefinition" or member.get("static"):
                continue
            key = member.get("key") or {}
            if member.get("computed") or key.get("type") != "Identifier":
                continue
            func = member.get("value") or {}
            kind = member.get("kind")
            member_name = key.get("name")
            if kind == "constructor":
                info.constructor = classify_constructor(func)
            elif kind == "get":
                info.property_getters[member_name] = classify_method(func)
            elif kind == "set":
                info.property_setters[member_name] = classify_method(func)
            else:
                info.methods[member_name] = classify_method(func)
        return info


@dataclass(frozen=True)
class InstanceRef:
    """Reference to an instance record in the arena."""
    index: int


@dataclass
class InstanceRecord:
    """Per-allocation property taint."""
    class_info: ClassInfo
    location: Optional[SourceLocation] = None
    properties: Dict[str, TaintState] = field(default_factory=dict)


Value = Union[TaintState, InstanceRef]


def taint_of(value: Value) -> TaintState:
    if isinstance(value, TaintState):
        return value
    return TaintState.CLEAN


@dataclass(frozen=True)
class SinkVerdict:
    """Taint reported at one sink site."""
    name: str
    tainted: bool
    location: Optional[SourceLocation] = None

    @property
    def site_id(self) -> str:
        """Sink name qualified by its position, ``sink1@10:4``."""
        if self.location is None:
            return self.name
        return f"{self.name}@{self.location}"

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"sink": self.name, "site": self.site_id, "tainted": self.tainted}
        if self.location is not None:
            result["line"] = self.location.start_line
            result["column"] = self.location.start_column
        return result


class _AnalysisState:
    """Mutable state of one analysis run."""

    def __init__(self):
        self.classes: Dict[str, ClassInfo] = {}
        self.env: Dict[str, Value] = {}
        self.arena: List[InstanceRecord] = []
        self.verdicts: List[SinkVerdict] = []

    def allocate(self, class_info: ClassInfo, location: Optional[SourceLocation]) -> InstanceRef:
        self.arena.append(InstanceRecord(class_info, location))
        return InstanceRef(len(self.arena) - 1)

    def read(self, ref: InstanceRef, prop: str) -> TaintState:
        return self.arena[ref.index].properties.get(prop, TaintState.CLEAN)

    def write(self, ref: InstanceRef, prop: str, state: TaintState) -> None:
        self.arena[ref.index].properties[prop] = state


class PropertyTaintTracker:
    """
    Tracks taint from source variables to sink variables through object
    properties, setter/getter methods and ES property accessors.

    A variable is a source when its declared name contains the source
    pattern, and a sink when it contains the sink pattern.
    """

    def __init__(
        self,
        source_pattern: Optional[str] = None,
        sink_pattern: Optional[str] = None,
        verbose: bool = False,
    ):
        """
        Initialize the tracker.

        Args:
            source_pattern: Substring marking source variables
            sink_pattern: Substring marking sink variables
            verbose: Enable verbose output
        """
        self.source_pattern = config.source_pattern if source_pattern is None else source_pattern
        self.sink_pattern = config.sink_pattern if sink_pattern is None else sink_pattern
        self.verbose = verbose

    def analyze(self, statements: Union[Dict[str, Any], Iterable[Dict[str, Any]], None]) -> List[SinkVerdict]:
        """
        Analyze a program and report the taint at each sink.

        Args:
            statements: A Program node, or a list of statement nodes

        Returns:
            Sink verdicts in source order
        """
        if statements is None:
            return []
        if isinstance(statements, dict):
            statements = statements.get("body") or []
        statements = list(statements)

        state = _AnalysisState()
        self._register_classes(statements, state)
        for statement in statements:
            self._execute(statement, state)

        if self.verbose:
            tainted = sum(1 for v in state.verdicts if v.tainted)
            print(f"  {len(state.verdicts)} sinks, {tainted} tainted, {len(state.arena)} instances")
        return state.verdicts

    def _is_source(self, name: str) -> bool:
        return self.source_pattern in name

    def _is_sink(self, name: str) -> bool:
        return self.sink_pattern in name

    def _register_classes(self, statements: List[Dict[str, Any]], state: _AnalysisState) -> None:
        """Record every class declared with a name, superclasses first when known."""
        for statement in statements:
            for node in walk(statement):
                if node.get("type") == "ClassDeclaration":
                    name = (node.get("id") or {}).get("name")
                    if name:
                        self._define_class(name, node, state)

    def _define_class(self, name: str, node: Dict[str, Any], state: _AnalysisState) -> ClassInfo:
        superclass = node.get("superClass") or {}
        parent = state.classes.get(superclass.get("name")) if superclass.get("type") == "Identifier" else None
        info = ClassInfo.from_node(name, node, parent)
        state.classes[name] = info
        if self.verbose:
            shapes = ", ".join(f"{m}={type(s).__name__}" for m, s in info.methods.items())
            print(f"  class {name}: {shapes}")
        return info

    # Statements

    def _execute(self, statement: Dict[str, Any], state: _AnalysisState) -> None:
        stype = statement.get("type")
        if stype == "VariableDeclaration":
            for declarator in statement.get("declarations") or []:
                self._declare(declarator, state)
        elif stype == "ExpressionStatement":
            self._evaluate(statement.get("expression"), state)
        elif stype == "BlockStatement":
            for inner in statement.get("body") or []:
                self._execute(inner, state)
        elif stype in ("ExportNamedDeclaration", "ExportDefaultDeclaration"):
            declaration = statement.get("declaration")
            if isinstance(declaration, dict):
                self._execute(declaration, state)
        # Class declarations were registered up front; other statements
        # (control flow, function declarations) carry no straight-line flow

    def _declare(self, declarator: Dict[str, Any], state: _AnalysisState) -> None:
        target = declarator.get("id") or {}
        init = declarator.get("init")
        name = target.get("name") if target.get("type") == "Identifier" else None

        if name and isinstance(init, dict) and init.get("type") == "ClassExpression":
            self._define_class(name, init, state)
            value: Value = TaintState.CLEAN
        else:
            value = self._evaluate(init, state) if init else TaintState.CLEAN

        if name is None:
            return
        self._bind(name, value, state, SourceLocation.from_node(target))

    def _bind(self, name: str, value: Value, state: _AnalysisState, location: Optional[SourceLocation]) -> None:
        if self._is_source(name):
            value = TaintState.TAINTED
        state.env[name] = value
        if self._is_sink(name):
            verdict = SinkVerdict(name, taint_of(value).is_tainted, location)
            state.verdicts.append(verdict)
            if self.verbose:
                print(f"  sink {name} at {location}: {taint_of(value).value}")

    # Expressions

    def _evaluate(self, node: Optional[Dict[str, Any]], state: _AnalysisState) -> Value:
        if not isinstance(node, dict):
            return TaintState.CLEAN
        ntype = node.get("type")

        if ntype == "Identifier":
            return state.env.get(node.get("name"), TaintState.CLEAN)
        if ntype in ("Literal", "ThisExpression") or ntype in FUNCTION_TYPES or ntype == "ClassExpression":
            return TaintState.CLEAN
        if ntype == "NewExpression":
            return self._evaluate_new(node, state)
        if ntype == "MemberExpression":
            return self._evaluate_member(node, state)
        if ntype == "CallExpression":
            return self._evaluate_call(node, state)
        if ntype == "AssignmentExpression":
            return self._evaluate_assignment(node, state)
        if ntype == "LogicalExpression":
            return self._join(self._evaluate(node.get("left"), state), self._evaluate(node.get("right"), state))
        if ntype == "ConditionalExpression":
            self._evaluate(node.get("test"), state)
            return self._join(
                self._evaluate(node.get("consequent"), state),
                self._evaluate(node.get("alternate"), state),
            )
        if ntype == "SequenceExpression":
            value: Value = TaintState.CLEAN
            for expr in node.get("expressions") or []:
                value = self._evaluate(expr, state)
            return value

        # Not value-preserving: evaluate operands for their effects only
        for child in iter_child_nodes(node):
            self._evaluate(child, state)
        return TaintState.CLEAN

    @staticmethod
    def _join(left: Value, right: Value) -> Value:
        # A tainted operand wins over an instance; otherwise keep the instance
        if taint_of(left).is_tainted or taint_of(right).is_tainted:
            return TaintState.TAINTED
        if isinstance(left, InstanceRef):
            return left
        if isinstance(right, InstanceRef):
            return right
        return TaintState.CLEAN

    def _evaluate_new(self, node: Dict[str, Any], state: _AnalysisState) -> Value:
        args = [self._evaluate(arg, state) for arg in node.get("arguments") or []]
        callee = node.get("callee") or {}
        class_info = state.classes.get(callee.get("name")) if callee.get("type") == "Identifier" else None
        if class_info is None:
            return TaintState.CLEAN

        ref = state.allocate(class_info, SourceLocation.from_node(node))
        constructor = class_info.constructor
        if isinstance(constructor, InitializerShape):
            for prop, index in constructor.fields:
                arg = args[index] if index < len(args) else TaintState.CLEAN
                state.write(ref, prop, taint_of(arg))
        return ref

    def _evaluate_member(self, node: Dict[str, Any], state: _AnalysisState) -> Value:
        receiver = self._evaluate(node.get("object"), state)
        if node.get("computed"):
            self._evaluate(node.get("property"), state)
        prop = get_property_name(node)
        if not isinstance(receiver, InstanceRef) or prop is None:
            return TaintState.CLEAN

        getter = state.arena[receiver.index].class_info.property_getters.get(prop)
        if getter is None:
            return state.read(receiver, prop)
        if isinstance(getter, GetterShape):
            return state.read(receiver, getter.prop)
        return TaintState.CLEAN

    def _evaluate_call(self, node: Dict[str, Any], state: _AnalysisState) -> Value:
        callee = node.get("callee") or {}
        receiver: Value = TaintState.CLEAN
        method = None
        if callee.get("type") == "MemberExpression":
            receiver = self._evaluate(callee.get("object"), state)
            method = get_property_name(callee)
        else:
            self._evaluate(callee, state)
        args = [self._evaluate(arg, state) for arg in node.get("arguments") or []]

        if not isinstance(receiver, InstanceRef) or method is None:
            return TaintState.CLEAN

        shape = state.arena[receiver.index].class_info.methods.get(method)
        if isinstance(shape, SetterShape):
            arg = args[shape.param_index] if shape.param_index < len(args) else TaintState.CLEAN
            state.write(receiver, shape.prop, taint_of(arg))
        elif isinstance(shape, GetterShape):
            return state.read(receiver, shape.prop)
        return TaintState.CLEAN

    def _evaluate_assignment(self, node: Dict[str, Any], state: _AnalysisState) -> Value:
        left = node.get("left") or {}
        compound = node.get("operator") != "="

        if left.get("type") == "MemberExpression":
            receiver = self._evaluate(left.get("object"), state)
            value = self._evaluate(node.get("right"), state)
            prop = get_property_name(left)
            if isinstance(receiver, InstanceRef) and prop is not None:
                self._write_property(receiver, prop, taint_of(value), compound, state)
            return value

        value = self._evaluate(node.get("right"), state)
        if left.get("type") == "Identifier":
            name = left.get("name")
            if compound:
                value = taint_of(state.env.get(name, TaintState.CLEAN)).join(taint_of(value))
            self._bind(name, value, state, SourceLocation.from_node(left))
        return value

    def _write_property(
        self,
        receiver: InstanceRef,
        prop: str,
        taint: TaintState,
        compound: bool,
        state: _AnalysisState,
    ) -> None:
        setter = state.arena[receiver.index].class_info.property_setters.get(prop)
        if setter is not None:
            if not isinstance(setter, SetterShape):
                return
            prop = setter.prop
        if compound:
            taint = state.read(receiver, prop).join(taint)
        state.write(receiver, prop, taint)


def verdict_set(verdicts: Iterable[SinkVerdict]) -> Set[Tuple[str, bool]]:
    """Reduce verdicts to ``{(site_id, is_tainted)}``."""
    return {(v.site_id, v.tainted) for v in verdicts}


def analyze(statements: Union[Dict[str, Any], Iterable[Dict[str, Any]], None]) -> Set[Tuple[str, bool]]:
    """Run the tracker with the configured patterns and return the verdict set."""
    return verdict_set(PropertyTaintTracker().analyze(statements))
