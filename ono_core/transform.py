"""
Transform adapters turn component syntax into plain `h(...)` calls.

The bundler only relies on `transform(source, filename) -> str`. Imports,
exports and every other statement must come out unchanged.
"""
import json
import threading

from py_mini_racer import JSEvalException, MiniRacer

from .errors import ConfigError, TransformError


class TransformAdapter:
    """Interface of a source transform."""

    def transform(self, source, filename):
        raise NotImplementedError

    def close(self):
        """Release whatever the adapter holds; a closed adapter may be reused."""


class IdentityTransform(TransformAdapter):
    """For modules already written with `h(...)` calls."""

    def transform(self, source, filename):
        return source


class BabelTransform(TransformAdapter):
    """
    Runs the `transform-react-jsx` plugin of @babel/standalone in V8.

    Args:
        script_path: Path to `babel.min.js` from @babel/standalone
        factory: Name of the element factory (`h`)
        fragment: Name of the fragment marker (`Fragment`)

    The script is loaded on first use. One adapter may be shared between
    threads; calls into its V8 context are serialized.
    """

    def __init__(self, script_path, factory="h", fragment="Fragment"):
        self.script_path = script_path
        self.factory = factory
        self.fragment = fragment
        self._context = None
        self._lock = threading.Lock()

    def _load(self):
        try:
            with open(self.script_path, 'r', encoding='utf-8') as f:
                script = f.read()
        except OSError as e:
            raise TransformError(
                f"Cannot load Babel: {e.strerror}",
                path=self.script_path,
                suggestion="Point 'babel_path' in ono.json at @babel/standalone/babel.min.js",
            )
        context = MiniRacer()
        try:
            context.eval(script)
        except JSEvalException as e:
            context.close()
            raise TransformError(f"Cannot load Babel: {e}", path=self.script_path)
        return context

    def options(self, filename):
        return {
            "filename": filename,
            "sourceType": "module",
            "babelrc": False,
            "configFile": False,
            "retainLines": True,
            "plugins": [["transform-react-jsx", {"pragma": self.factory, "pragmaFrag": self.fragment}]],
        }

    def transform(self, source, filename):
        script = (
            f"Babel.transform({json.dumps(source)}, "
            f"{json.dumps(self.options(filename))}).code"
        )
        with self._lock:
            if self._context is None:
                self._context = self._load()
            try:
                return self._context.eval(script)
            except JSEvalException as e:
                raise TransformError(f"JSX transform failed: {e}", path=filename)

    def close(self):
        with self._lock:
            if self._context is not None:
                self._context.close()
                self._context = None


def create_transform(config):
    """Pick the transform adapter named in a BuildConfig."""
    if config.transform == "identity":
        return IdentityTransform()
    if config.transform == "babel":
        if not config.babel_path:
            raise ConfigError(
                "The babel transform needs 'babel_path'",
                suggestion="Download @babel/standalone and set 'babel_path' in ono.json",
            )
        return BabelTransform(config.babel_path, factory=config.jsx_factory, fragment=config.jsx_fragment)
    raise ConfigError(f"Unknown transform: {config.transform}")
