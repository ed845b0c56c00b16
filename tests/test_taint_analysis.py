"""
Tests for property taint tracking through fields and accessors.
"""

import unittest

from js_flow_checker.parser import JavaScriptParser
from js_flow_checker.taint import (
    ClassInfo,
    GetterShape,
    InitializerShape,
    OpaqueShape,
    PropertyTaintTracker,
    SetterShape,
    TaintState,
    analyze,
    classify_method,
    verdict_set,
)


SETTER_JS = """class A {
  setX(v) { this.x = v; }
  getX() { return this.x; }
}

var source = "tainted";
var a1 = new A(), a2 = new A();

a1.setX(source);
var sink1 = a1.x;
var sink2 = a1.getX();

a2.setX("not tainted");
var sink3 = a2.x;
var sink4 = a2.getX();

// semmle-extractor-options: --source-type module
"""


class TestMethodShapes(unittest.TestCase):
    """Test cases for accessor recognition."""

    def setUp(self):
        """Set up test fixtures."""
        self.parser = JavaScriptParser()

    def _class(self, code):
        ast = self.parser.parse_code(code, "test.js")["ast"]
        node = ast["body"][0]
        return ClassInfo.from_node(node["id"]["name"], node)

    def test_setter_and_getter(self):
        """Test the basic setter/getter shapes."""
        info = self._class(SETTER_JS)
        self.assertEqual(info.methods["setX"], SetterShape("x", 0))
        self.assertEqual(info.methods["getX"], GetterShape("x"))

    def test_setter_parameter_index(self):
        """Test that the assigned parameter's position is recorded."""
        info = self._class("class B { set(k, v) { this.value = v; } }")
        self.assertEqual(info.methods["set"], SetterShape("value", 1))

    def test_non_accessor_bodies_are_opaque(self):
        """Test that any other body shape is opaque."""
        info = self._class("""
        class C {
          log(v) { console.log(v); this.x = v; }
          empty() {}
          other() { return this.x.y; }
          fromLocal(v) { var w = v; this.x = w; }
          constant() { this.x = "c"; }
        }
        """)
        for name in ["log", "empty", "other", "fromLocal", "constant"]:
            self.assertIsInstance(info.methods[name], OpaqueShape, name)

    def test_classify_method_directly(self):
        """Test classify_method on a function node."""
        ast = self.parser.parse_code("class D { getY() { return this.y; } }", "test.js")["ast"]
        method = ast["body"][0]["body"]["body"][0]["value"]
        self.assertEqual(classify_method(method), GetterShape("y"))

    def test_constructor_initializer(self):
        """Test constructors made only of field writes."""
        info = self._class("class E { constructor(a, b) { this.first = a; this.second = b; } }")
        self.assertEqual(info.constructor, InitializerShape((("first", 0), ("second", 1))))

    def test_property_accessors(self):
        """Test ES get/set accessors."""
        info = self._class("class F { set x(v) { this._x = v; } get x() { return this._x; } }")
        self.assertEqual(info.property_setters["x"], SetterShape("_x", 0))
        self.assertEqual(info.property_getters["x"], GetterShape("_x"))


class TestPropertyTaintTracker(unittest.TestCase):
    """Test cases for the property taint tracker."""

    def setUp(self):
        """Set up test fixtures."""
        self.parser = JavaScriptParser()
        self.tracker = PropertyTaintTracker(source_pattern="source", sink_pattern="sink")

    def _verdicts(self, code):
        ast = self.parser.parse_code(code, "test.js")["ast"]
        return {(v.name, v.tainted) for v in self.tracker.analyze(ast)}

    def test_taint_is_instance_scoped(self):
        """Test that tainting one instance leaves another clean."""
        self.assertEqual(self._verdicts(SETTER_JS), {
            ("sink1", True),
            ("sink2", True),
            ("sink3", False),
            ("sink4", False),
        })

    def test_sink_locations(self):
        """Test that verdicts carry the sink declaration position."""
        ast = self.parser.parse_code(SETTER_JS, "setter.js")["ast"]
        verdicts = self.tracker.analyze(ast)
        self.assertEqual([v.location.start_line for v in verdicts], [10, 11, 14, 15])

    def test_analysis_is_idempotent(self):
        """Test that re-running gives identical verdicts."""
        ast = self.parser.parse_code(SETTER_JS, "setter.js")["ast"]
        first = self.tracker.analyze(ast)
        second = self.tracker.analyze(ast)
        self.assertEqual(first, second)

    def test_statement_list_input(self):
        """Test that a list of statements is accepted as well as a Program."""
        ast = self.parser.parse_code(SETTER_JS, "setter.js")["ast"]
        self.assertEqual(self.tracker.analyze(ast["body"]), self.tracker.analyze(ast))
        self.assertEqual(self.tracker.analyze(None), [])

    def test_direct_field_write(self):
        """Test flow through a direct field write read back by a getter."""
        code = SETTER_JS.split("var source")[0] + """
        var source = "x";
        var a = new A(), b = new A();
        a.x = source;
        b.x = "clean";
        var sinkA = a.getX();
        var sinkB = b.getX();
        """
        self.assertEqual(self._verdicts(code), {("sinkA", True), ("sinkB", False)})

    def test_strong_update(self):
        """Test that a later clean write replaces earlier taint."""
        code = SETTER_JS.split("var source")[0] + """
        var source = "x";
        var a = new A();
        a.setX(source);
        a.setX("clean");
        var sink = a.x;
        """
        self.assertEqual(self._verdicts(code), {("sink", False)})

    def test_aliasing_shares_instance(self):
        """Test that two variables bound to one instance share its state."""
        code = SETTER_JS.split("var source")[0] + """
        var source = "x";
        var a = new A();
        var alias = a;
        alias.setX(source);
        var sink = a.getX();
        """
        self.assertEqual(self._verdicts(code), {("sink", True)})

    def test_opaque_method_does_not_propagate(self):
        """Test that calls to unrecognized methods are non-propagating."""
        code = """
        class G {
          store(v) { log(v); this.x = v; }
          getX() { return this.x; }
        }
        var source = "x";
        var g = new G();
        g.store(source);
        var sink = g.getX();
        """
        self.assertEqual(self._verdicts(code), {("sink", False)})

    def test_constructor_seeds_fields(self):
        """Test initializer-shaped constructors."""
        code = """
        class H {
          constructor(v) { this.v = v; }
          getV() { return this.v; }
        }
        var source = "x";
        var h1 = new H(source), h2 = new H("y");
        var sink1 = h1.getV();
        var sink2 = h2.v;
        """
        self.assertEqual(self._verdicts(code), {("sink1", True), ("sink2", False)})

    def test_es_property_accessors(self):
        """Test writes and reads through set/get accessors."""
        code = """
        class P {
          set x(v) { this._x = v; }
          get x() { return this._x; }
        }
        var source = "x";
        var p1 = new P(), p2 = new P();
        p1.x = source;
        var sink1 = p1.x;
        var sink2 = p1._x;
        var sink3 = p2.x;
        """
        self.assertEqual(self._verdicts(code), {("sink1", True), ("sink2", True), ("sink3", False)})

    def test_inherited_accessors(self):
        """Test that subclasses inherit accessor shapes."""
        code = SETTER_JS.split("var source")[0] + """
        class B extends A {}
        var source = "x";
        var b = new B();
        b.setX(source);
        var sink = b.getX();
        """
        self.assertEqual(self._verdicts(code), {("sink", True)})

    def test_class_expression(self):
        """Test classes bound with var C = class {...}."""
        code = """
        var C = class { setX(v) { this.x = v; } };
        var source = "x";
        var c = new C();
        c.setX(source);
        var sink = c.x;
        """
        self.assertEqual(self._verdicts(code), {("sink", True)})

    def test_variable_flow_and_joins(self):
        """Test plain variable copies and logical/conditional joins."""
        code = """
        var source = "x";
        var copy = source;
        var sink1 = copy;
        var sink2 = "a" || copy;
        var sink3 = cond ? "a" : "b";
        var sink4 = source + "suffix";
        """
        self.assertEqual(self._verdicts(code), {
            ("sink1", True),
            ("sink2", True),
            ("sink3", False),
            ("sink4", False),
        })

    def test_sink_assignment(self):
        """Test sinks assigned after declaration."""
        code = SETTER_JS.split("var source")[0] + """
        var source = "x";
        var a = new A();
        var sink;
        a.setX(source);
        sink = a.x;
        """
        ast = self.parser.parse_code(code, "test.js")["ast"]
        self.assertEqual(verdict_set(self.tracker.analyze(ast)), {("sink@9:12", False), ("sink@11:8", True)})

    def test_unknown_receiver_is_clean(self):
        """Test reads from values that are not tracked instances."""
        code = """
        var source = "x";
        var sink1 = unknown.x;
        var sink2 = source.length;
        var sink3 = new Unknown(source);
        """
        self.assertEqual(self._verdicts(code), {("sink1", False), ("sink2", False), ("sink3", False)})

    def test_tainted_operand_joins_with_instance(self):
        """Test that || and ?: stay tainted when the other operand is an instance."""
        code = SETTER_JS.split("var source")[0] + """
        var source = "x";
        var a = new A();
        var sink1 = source || a;
        var sink2 = c ? a : source;
        var b = a || "fallback";
        b.setX(source);
        var sink3 = a.getX();
        """
        self.assertEqual(self._verdicts(code), {("sink1", True), ("sink2", True), ("sink3", True)})

    def test_module_code(self):
        """Test sinks exported from ES module code."""
        code = SETTER_JS.split("var source")[0] + """
        import helper from "helper";
        var source = "x";
        var a = new A();
        a.setX(source);
        export var sink = a.getX();
        """
        self.assertEqual(self._verdicts(code), {("sink", True)})

    def test_taint_state_join(self):
        """Test the taint lattice join."""
        self.assertIs(TaintState.CLEAN.join(TaintState.TAINTED), TaintState.TAINTED)
        self.assertIs(TaintState.CLEAN.join(TaintState.CLEAN), TaintState.CLEAN)
        self.assertTrue(TaintState.TAINTED.is_tainted)

    def test_module_level_analyze(self):
        """Test the convenience function with default patterns."""
        ast = self.parser.parse_code(SETTER_JS, "setter.js")["ast"]
        self.assertEqual(analyze(ast), verdict_set(self.tracker.analyze(ast)))
        self.assertIn(("sink1@10:4", True), analyze(ast))


if __name__ == '__main__':
    unittest.main()
