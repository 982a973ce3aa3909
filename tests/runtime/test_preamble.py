"""
Unit tests for the JavaScript runtime preamble.
"""
import json
import os
import sys

import pytest
from py_mini_racer import MiniRacer

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..'))
from ono_core.runtime import RUNTIME_MODULES, get_preamble


@pytest.fixture
def context():
    """A V8 context with the preamble loaded."""
    ctx = MiniRacer()
    ctx.eval(get_preamble())
    yield ctx
    ctx.close()


def dump(context, expression):
    return json.loads(context.eval(f"__ono.dump({expression})"))


class TestPreamble:
    """Tests for assembling the preamble."""

    def test_bridge_comes_first(self):
        preamble = get_preamble()
        assert RUNTIME_MODULES == ['bridge.js', 'jsx_runtime.js']
        assert preamble.index("const __ono") < preamble.index("__ono.runtime =")

    def test_runtime_exports(self, context):
        names = json.loads(context.eval("JSON.stringify(Object.keys(__ono.runtime).sort())"))
        assert names == ["Fragment", "createElement", "h", "jsx", "jsxDEV", "jsxs"]

    def test_globals(self, context):
        assert context.eval("h === __ono.runtime.h && Fragment === __ono.runtime.Fragment") is True

    def test_console_available(self, context):
        context.eval('console.log("ignored")')


class TestElementFactory:
    """Tests for h() and jsx() in V8."""

    def test_h(self, context):
        node = dump(context, 'h("div", { id: "a" }, "x", null, false, ["y", ["z"]])')
        assert node == {"$ono": "vnode", "tag": "div", "props": {"id": "a"}, "children": ["x", "y", "z"]}

    def test_h_null_props(self, context):
        assert dump(context, 'h("br", null)')["props"] == {}

    def test_jsx_children_in_props(self, context):
        node = dump(context, '__ono.runtime.jsx("p", { className: "c", children: ["a", "b"] })')
        assert node["props"] == {"className": "c"}
        assert node["children"] == ["a", "b"]

    def test_jsx_single_child(self, context):
        node = dump(context, '__ono.runtime.jsx("p", { children: "a" })')
        assert node["children"] == ["a"]


class TestMarshalling:
    """Tests for values crossing the bridge."""

    def test_plain_values(self, context):
        assert dump(context, '{ a: 1, b: [true, "s", null], c: undefined }') == \
            {"a": 1, "b": [True, "s", None], "c": None}

    def test_functions_by_reference(self, context):
        context.eval("function Card() {}")
        first = dump(context, 'Card')
        second = dump(context, 'Card')
        assert first == {"$ono": "fn", "id": first["id"], "name": "Card"}
        assert second["id"] == first["id"]

    def test_fragment(self, context):
        assert dump(context, 'Fragment') == {"$ono": "fragment"}

    def test_non_finite_numbers(self, context):
        assert dump(context, '[NaN, Infinity, -Infinity]') == [
            {"$ono": "number", "value": "NaN"},
            {"$ono": "number", "value": "Infinity"},
            {"$ono": "number", "value": "-Infinity"},
        ]

    def test_marker_key_escaped(self, context):
        assert dump(context, '{ $ono: "fn" }') == {"$ono": "object", "value": {"$ono": "fn"}}

    def test_circular_structure(self, context):
        with pytest.raises(Exception, match="circular"):
            context.eval('const loop = {}; loop.self = loop; __ono.dump(loop)')

    def test_call_round_trip(self, context):
        context.eval('function Echo(props) { return h("p", null, props.text, props.child.tag); }; __ono.dump(Echo)')
        ref = dump(context, 'Echo')["id"]
        payload = json.dumps({"text": "hi", "child": {"$ono": "vnode", "tag": "b", "props": {}, "children": []}})
        result = json.loads(context.eval(f"__ono.call({ref}, {json.dumps(payload)})"))
        assert result["children"] == ["hi", "b"]

    def test_call_unknown_component(self, context):
        with pytest.raises(Exception, match="Unknown component"):
            context.eval('__ono.call(999, "{}")')
