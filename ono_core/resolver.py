"""
Module resolver.

Builds the dependency graph of an entry file: breadth-first discovery of
the files it imports, then a depth-first topological sort that puts
every dependency before the modules importing it.
"""
import os
from collections import deque

from .assets import is_asset_file
from .errors import CircularDependencyError, SourceNotFoundError
from .models import DependencyResult, Module
from .scanner import ModuleScanner

# Tried, in order, for relative specifiers written without an extension
RESOLVE_EXTENSIONS = ('.jsx', '.js')
INDEX_FILES = ('index.jsx', 'index.js')


def is_local_specifier(specifier):
    return specifier.startswith('.') or os.path.isabs(specifier)


def parse_imports(source, scanner=None):
    """
    Extract the specifiers of all import declarations, in source order.

    Source that still contains JSX is fine; only the declarations at the
    top of the module are read.
    """
    scanner = scanner or ModuleScanner()
    syntax = scanner.scan(source, strict=False)
    return [declaration.specifier for declaration in syntax.imports]


def resolve_specifier(specifier, from_file):
    """
    Resolve an import specifier against the importing file.

    Returns:
        The absolute path for relative and absolute specifiers, None for
        bare (package) specifiers, which are left to the host.
    """
    if os.path.isabs(specifier):
        return specifier
    if not specifier.startswith('.'):
        return None

    path = os.path.normpath(os.path.join(os.path.dirname(os.path.abspath(from_file)), specifier))
    if os.path.splitext(path)[1] or os.path.isfile(path):
        return path

    candidates = [path + ext for ext in RESOLVE_EXTENSIONS]
    candidates += [os.path.join(path, name) for name in INDEX_FILES]
    for candidate in candidates:
        if os.path.isfile(candidate):
            return candidate
    return path


def read_source(path):
    with open(path, 'r', encoding='utf-8') as f:
        return f.read()


def collect_dependencies(entry_file, scanner=None, read=None) -> DependencyResult:
    """
    Collect every module reachable from `entry_file`.

    Args:
        entry_file: Path of the page to build
        scanner: ModuleScanner to reuse (one is created otherwise)
        read: Callable returning the text of a path (defaults to UTF-8 file read)

    Returns:
        DependencyResult with the modules, the code-only graph, the
        topological order (entry last), assets and external specifiers

    Raises:
        SourceNotFoundError: If a reachable file cannot be read
        CircularDependencyError: If the graph has a cycle
    """
    scanner = scanner or ModuleScanner()
    read = read or read_source
    entry = os.path.abspath(entry_file)

    modules = {}
    graph = {}
    assets = []
    externals = []
    referrers = {}
    seen = {entry}
    queue = deque([entry])

    while queue:
        path = queue.popleft()

        if is_asset_file(path):
            modules[path] = Module(path=path, kind="asset")
            assets.append(path)
            continue

        try:
            source = read(path)
        except OSError as e:
            raise SourceNotFoundError(path, referrer=referrers.get(path), reason=e.strerror)

        specifiers = scanner.scan(source, path, strict=False).specifiers
        dependencies = []
        for specifier in specifiers:
            resolved = resolve_specifier(specifier, path)
            if resolved is None:
                if specifier not in externals:
                    externals.append(specifier)
                continue
            if resolved not in seen:
                seen.add(resolved)
                referrers[resolved] = path
                queue.append(resolved)
            if not is_asset_file(resolved) and resolved not in dependencies:
                dependencies.append(resolved)

        modules[path] = Module(path=path, source=source, specifiers=specifiers)
        graph[path] = dependencies

    return DependencyResult(
        entry=entry,
        modules=modules,
        graph=graph,
        order=topological_sort(graph, entry),
        assets=assets,
        externals=externals,
        referrers=referrers,
    )


def topological_sort(graph, entry=None):
    """
    Order the graph so that every module comes after its dependencies.

    Args:
        graph: Mapping of module -> list of modules it imports
        entry: Visited first, so it ends up last when it reaches every node

    Raises:
        CircularDependencyError: With the cyclic path, first module repeated
    """
    order = []
    visited = set()
    visiting = set()

    roots = [entry] if entry is not None else []
    for root in roots + list(graph):
        if root in visited:
            continue

        # Explicit (node, remaining dependencies) stack; deep chains must
        # not hit the interpreter's recursion limit.
        path = [root]
        stack = [(root, iter(graph.get(root, [])))]
        visiting.add(root)

        while stack:
            node, dependencies = stack[-1]
            dependency = next(dependencies, None)

            if dependency is None:
                stack.pop()
                path.pop()
                visiting.discard(node)
                visited.add(node)
                order.append(node)
            elif dependency in visiting:
                raise CircularDependencyError(path[path.index(dependency):] + [dependency])
            elif dependency not in visited:
                visiting.add(dependency)
                path.append(dependency)
                stack.append((dependency, iter(graph.get(dependency, []))))

    return order
