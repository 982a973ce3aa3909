# Ono - Core Build Components
"""
Core modules for the Ono static site generator:
- scanner: Lark-based reader for import/export declarations
- resolver: Dependency graph, topological order, cycle detection
- assets: Content-hashed asset copies and asset import rewriting
- plugins: Ordered hook pipeline, asset loader plugin
- bundler: Scope-isolated single-script bundles
- evaluator: V8 evaluation of bundles (runtime preamble in runtime/)
- renderer: VNode trees to HTML
"""

from .bundler import bundle
from .config import BuildConfig, load_config
from .errors import OnoBuildError
from .evaluator import Evaluator, JSComponent, resolve_page
from .plugins import AssetLoaderPlugin, Plugin, PluginManager, plugin
from .renderer import render_to_string
from .resolver import collect_dependencies, topological_sort
from .scanner import ModuleScanner
from .vnode import Fragment, VNode, h

__all__ = [
    'bundle',
    'BuildConfig',
    'load_config',
    'OnoBuildError',
    'Evaluator',
    'JSComponent',
    'resolve_page',
    'AssetLoaderPlugin',
    'Plugin',
    'PluginManager',
    'plugin',
    'render_to_string',
    'collect_dependencies',
    'topological_sort',
    'ModuleScanner',
    'Fragment',
    'VNode',
    'h',
]
