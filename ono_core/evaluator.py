"""
Host evaluator - runs a page bundle in an embedded V8 context.

The bundle's exports come back to Python as plain values, VNodes and
JSComponent callables; calling a JSComponent runs the function in the
same V8 context, so the Python renderer can walk trees whose components
are written in JavaScript.
"""
import json
import math
from collections.abc import Mapping

from py_mini_racer import JSEvalException, MiniRacer

from .errors import EvaluationError, MissingDefaultExportError, get_line_context
from .renderer import format_scalar
from .runtime import get_preamble
from .scanner import ModuleScanner, apply_edits
from .vnode import Fragment, VNode

# Package imports a bundle may keep; they are served by the preamble
RUNTIME_SPECIFIERS = ("ono", "ono/jsx-runtime")
RUNTIME_EXPORTS = frozenset({"h", "createElement", "Fragment", "jsx", "jsxs", "jsxDEV"})

MARKER = "$ono"


class JSComponent:
    """A JavaScript function that can be called from Python with a props dict."""

    def __init__(self, evaluator, ref, name=None):
        self.evaluator = evaluator
        self.ref = ref
        self.__name__ = name or "anonymous"

    def __call__(self, props=None):
        return self.evaluator.call(self, props or {})

    def __eq__(self, other):
        if not isinstance(other, JSComponent):
            return NotImplemented
        return self.evaluator is other.evaluator and self.ref == other.ref

    def __hash__(self):
        return hash((id(self.evaluator), self.ref))

    def __repr__(self):
        return f"<JSComponent {self.__name__} #{self.ref}>"


class Evaluator:
    """
    One V8 context with the Ono runtime loaded.

    Use one evaluator per page and close it when the page is rendered:

        with Evaluator() as evaluator:
            exports = evaluator.evaluate(bundle.code, bundle.entry)
            html = render_to_string(resolve_page(exports, bundle.entry))
    """

    def __init__(self, scanner=None):
        self.scanner = scanner or ModuleScanner()
        self._context = MiniRacer()
        try:
            self._context.eval(get_preamble())
        except JSEvalException as e:
            self.close()
            raise EvaluationError(f"Cannot load the Ono runtime: {e}")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def close(self):
        if self._context is not None:
            self._context.close()
            self._context = None

    def prepare(self, code, path=None):
        """
        Turn bundle code into a script V8 can run.

        Top-level `export` statements are stripped and collected into
        `__ono.exports`; imports of the Ono runtime become variables
        bound to the preamble's runtime.
        """
        syntax = self.scanner.scan(code, path)
        edits = []
        bindings = []

        for declaration in syntax.imports:
            edits.append((declaration.start, declaration.end,
                          self._runtime_import(declaration, code, path)))

        for declaration in syntax.exports:
            if declaration.is_reexport:
                raise EvaluationError(
                    f'Unresolved re-export from "{declaration.specifier}"',
                    path=path,
                    line_number=declaration.line,
                    context=get_line_context(code, declaration.line),
                )
            bindings.extend(declaration.bindings)
            edits.append((declaration.start, declaration.end, declaration.replacement))

        record = ", ".join(f"{json.dumps(exported)}: {local}" for exported, local in bindings)
        return f"{apply_edits(code, edits)}\n;__ono.exports = {{{record}}};\nvoid 0;\n"

    def _runtime_import(self, declaration, code, path):
        if declaration.specifier not in RUNTIME_SPECIFIERS:
            raise EvaluationError(
                f'Cannot import "{declaration.specifier}" while rendering',
                path=path,
                line_number=declaration.line,
                context=get_line_context(code, declaration.line),
                suggestion='Only "ono" and "ono/jsx-runtime" are available to pages',
            )

        statements = []
        for local in (declaration.default, declaration.namespace):
            if local:
                statements.append(f"var {local} = __ono.runtime;")
        for imported, local in declaration.named:
            if imported not in RUNTIME_EXPORTS:
                raise EvaluationError(
                    f'"{declaration.specifier}" has no export named "{imported}"',
                    path=path,
                    line_number=declaration.line,
                    context=get_line_context(code, declaration.line),
                )
            statements.append(f"var {local} = __ono.runtime[{json.dumps(imported)}];")
        return " ".join(statements) + "\n" * declaration.text.count("\n")

    def evaluate(self, bundle_code, path=None):
        """
        Run a bundle and return the entry module's exports.

        Raises:
            EvaluationError: If the code throws or imports an unknown package
        """
        script = self.prepare(bundle_code, path)
        self._eval(script, "Evaluation failed: ", path)
        exports = self.decode(json.loads(self._eval("__ono.dump(__ono.exports)", "Cannot read exports: ", path)))
        return exports if isinstance(exports, dict) else {}

    def call(self, component, props):
        """Call a JSComponent with `props` and return the decoded result."""
        payload = json.dumps(self.encode(props))
        result = self._eval(
            f"__ono.call({component.ref}, {json.dumps(payload)})",
            f'Component "{component.__name__}" failed: ',
        )
        return self.decode(json.loads(result))

    def _eval(self, script, prefix, path=None):
        if self._context is None:
            raise EvaluationError("Evaluator is closed", path=path)
        try:
            return self._context.eval(script)
        except JSEvalException as e:
            raise EvaluationError(f"{prefix}{e}", path=path)

    # --- Marshalling ---

    def encode(self, value):
        """Python value -> JSON-ready value for the bridge."""
        if value is Fragment:
            return {MARKER: "fragment"}
        if isinstance(value, JSComponent):
            if value.evaluator is not self:
                raise EvaluationError(f"{value!r} belongs to another page")
            return {MARKER: "fn", "id": value.ref, "name": value.__name__}
        if isinstance(value, VNode):
            return {
                MARKER: "vnode",
                "tag": self.encode(value.tag),
                "props": self.encode(value.props),
                "children": self.encode(value.children),
            }
        if isinstance(value, float) and not math.isfinite(value):
            return {MARKER: "number", "value": format_scalar(value)}
        if value is None or isinstance(value, (bool, int, float, str)):
            return value
        if isinstance(value, Mapping):
            fields = {str(key): self.encode(item) for key, item in value.items()}
            return {MARKER: "object", "value": fields} if MARKER in fields else fields
        if isinstance(value, (list, tuple)):
            return [self.encode(item) for item in value]
        raise EvaluationError(f"Cannot pass {type(value).__name__} to a JavaScript component")

    def decode(self, value):
        """JSON value from the bridge -> Python value."""
        if isinstance(value, list):
            return [self.decode(item) for item in value]
        if not isinstance(value, dict):
            return value

        marker = value.get(MARKER)
        if marker is None:
            return {key: self.decode(item) for key, item in value.items()}
        if marker == "fn":
            return JSComponent(self, value["id"], value.get("name"))
        if marker == "fragment":
            return Fragment
        if marker == "vnode":
            props = self.decode(value.get("props"))
            children = self.decode(value.get("children"))
            return VNode(
                self.decode(value.get("tag")),
                props if isinstance(props, dict) else {},
                children if isinstance(children, list) else [],
            )
        if marker == "number":
            return float(value["value"])
        if marker == "object":
            return {key: self.decode(item) for key, item in value["value"].items()}
        raise EvaluationError(f"Unknown value marker: {marker}")


def resolve_page(exports, path=None):
    """
    The tree to render for a page.

    A callable default export is called with empty props; any other
    non-null default is used as the tree itself.

    Raises:
        MissingDefaultExportError: If there is no usable default export
    """
    default = exports.get("default")
    if default is None:
        raise MissingDefaultExportError(path)
    if callable(default):
        return default({})
    return default
