"""
Bundler for Ono pages.

Combines a page and every module it imports into one script:

    import { h } from "ono";                       <- package imports, hoisted

    // components/Card.jsx
    const __ono_m0 = (() => {
    function Card(props) { ... }
    return { "default": Card };
    })();

    // index.jsx                                  <- entry, left at top scope
    const Card = __ono_m0["default"];
    export default function Page() { ... }

Non-entry modules run in their own function scope, so two files can
declare the same top-level names. Imports between modules become lookups
on the record the imported module evaluates to.
"""
import json
import os
import re

from .assets import is_asset_file
from .console import debug_log, warn
from .errors import BundleError, OnoBuildError, TransformError, display_path, get_line_context
from .models import BuildContext, Bundle, ModuleStage
from .plugins import ASSET_LOADER, AssetLoaderPlugin, PluginManager
from .resolver import collect_dependencies, resolve_specifier
from .scanner import ModuleScanner, apply_edits
from .transform import IdentityTransform

MODULE_PREFIX = "__ono_m"
REEXPORT_PREFIX = "__ono_reexport_"

IDENTIFIER = re.compile(r'^[A-Za-z_$][\w$]*$')


def bundle(entry_file, transform=None, plugins=None, output_dir=None, hash_assets=True,
           assets_dir="assets", asset_cache=None, scanner=None, verbose=False, jobs=1) -> Bundle:
    """
    Bundle a page and its dependencies.

    Args:
        entry_file: Page module
        transform: TransformAdapter applied to every module (identity by default)
        plugins: Ordered list of plugins
        output_dir: When given, assets are copied there by the asset loader
        hash_assets: Content hash in asset file names
        assets_dir: Sub directory (and URL prefix) for assets
        asset_cache: AssetCache shared between the pages of one build
        scanner: ModuleScanner to reuse
        verbose: Debug logging
        jobs: Threads used to copy assets

    Returns:
        Bundle whose code evaluates to the page's exports

    Raises:
        OnoBuildError: Any resolve, transform, plugin or link failure.
            Nothing is returned for a failed build.
    """
    scanner = scanner or ModuleScanner()
    transform = transform or IdentityTransform()
    entry = os.path.abspath(entry_file)

    manager = PluginManager(plugins)
    if output_dir is not None and manager.get_plugin(ASSET_LOADER) is None:
        manager.add(AssetLoaderPlugin(
            output_dir,
            hash_assets=hash_assets,
            assets_dir=assets_dir,
            cache=asset_cache,
            jobs=jobs,
            scanner=scanner,
        ))

    context = BuildContext(
        entry=entry,
        output_dir=output_dir,
        assets_dir=assets_dir,
        hash_assets=hash_assets,
        verbose=verbose,
    )

    result = collect_dependencies(entry, scanner=scanner)
    debug_log(f"{display_path(entry)}: {len(result.order)} module(s), {len(result.assets)} asset(s)", verbose)
    result = manager.run_hook("collect_dependencies", result, context)

    linker = _Linker(result, scanner)
    asset_urls = result.asset_urls()
    for path in result.order:
        stage = ModuleStage(
            path=path,
            source=result.modules[path].source,
            is_entry=path == entry,
            asset_urls=asset_urls,
        )
        stage = manager.run_hook("before_transform", stage, context)
        stage = stage.model_copy(update={"transformed": _transform(transform, stage)})
        stage = manager.run_hook("after_transform", stage, context)
        linker.add(stage)
        debug_log(f"Linked {display_path(path)}", verbose)

    output = Bundle(
        entry=entry,
        code=linker.code(),
        modules=list(result.order),
        externals=linker.externals.statements(),
        assets=list(result.manifest),
    )
    return manager.run_hook("after_bundle", output, context)


def _transform(transform, stage):
    try:
        return transform.transform(stage.source, stage.path)
    except OnoBuildError:
        raise
    except Exception as e:
        raise TransformError(f"Transform failed: {e}", path=stage.path) from e


class ExternalImports:
    """
    Package imports hoisted to the top of a bundle.

    Bindings are merged per specifier, so modules importing `h` and
    `{ h, Fragment }` from "ono" share one statement and one `h`.
    """

    def __init__(self):
        self.bindings = {}  # specifier -> [(imported, local)]
        self.locals = {}    # local -> (specifier, imported, importing path)

    def add(self, declaration, path, code):
        bindings = self.bindings.setdefault(declaration.specifier, [])
        found = []
        if declaration.default:
            found.append(("default", declaration.default))
        if declaration.namespace:
            found.append(("*", declaration.namespace))
        found += declaration.named

        for imported, local in found:
            bound = self.locals.get(local)
            if bound is None:
                self.locals[local] = (declaration.specifier, imported, path)
                bindings.append((imported, local))
            elif bound[:2] != (declaration.specifier, imported):
                raise BundleError(
                    f'Package import "{local}" conflicts with the one in {display_path(bound[2])}',
                    path=path,
                    line_number=declaration.line,
                    context=get_line_context(code, declaration.line),
                    suggestion="Both end up at the top of the bundle; import one of them under another name",
                )

    def statements(self):
        statements = []
        for specifier, bindings in self.bindings.items():
            source = json.dumps(specifier)
            default = None
            namespaces = []
            named = []
            for imported, local in bindings:
                if imported == "default" and default is None:
                    default = local
                elif imported == "*":
                    namespaces.append(local)
                else:
                    named.append(local if imported == local else f"{_export_name(imported)} as {local}")

            if default is None and not namespaces and not named:
                statements.append(f"import {source};")
                continue

            clauses = [default] if default else []
            if named:
                clauses.append("{ " + ", ".join(named) + " }")
            elif namespaces:
                clauses.append(f"* as {namespaces.pop(0)}")
            statements.append(f"import {', '.join(clauses)} from {source};")
            # A namespace import cannot share a statement with a named list
            statements += [f"import * as {local} from {source};" for local in namespaces]
        return statements


class _Linker:
    """Rewrites imports/exports of each module and collects the output chunks."""

    def __init__(self, result, scanner):
        self.scanner = scanner
        self.base_dir = os.path.dirname(result.entry)
        self.ids = {path: f"{MODULE_PREFIX}{index}" for index, path in enumerate(result.order)}
        self.syntax = {}
        self.externals = ExternalImports()
        self.chunks = []
        self._reexport_count = 0

    def add(self, stage):
        code = stage.code
        syntax = self.scanner.scan(code, stage.path)
        self.syntax[stage.path] = syntax

        edits = [self._link_import(declaration, stage.path, code) for declaration in syntax.imports]

        if stage.is_entry:
            edits += [self._entry_reexport(declaration, stage.path, code)
                      for declaration in syntax.exports if declaration.is_reexport]
            body = apply_edits(code, edits)
        else:
            fields = []
            for declaration in syntax.exports:
                edits.append(self._module_export(declaration, stage.path, code, fields))
            body = self._wrap(stage.path, apply_edits(code, edits), fields)

        header = os.path.relpath(stage.path, self.base_dir).replace(os.sep, "/")
        self.chunks.append(f"// {header}\n{body}")

    def code(self):
        parts = []
        statements = self.externals.statements()
        if statements:
            parts.append("\n".join(statements))
        parts.extend(self.chunks)
        return "\n\n".join(parts) + "\n"

    def export_names(self, path, seen=None):
        """Names exported by an already linked module, following `export *`."""
        seen = seen if seen is not None else set()
        if path in seen:
            return []
        seen.add(path)

        syntax = self.syntax[path]
        names = list(syntax.export_names)
        for declaration in syntax.exports:
            if declaration.star:
                target = resolve_specifier(declaration.specifier, path)
                if target in self.syntax:
                    names += [n for n in self.export_names(target, seen) if n != "default"]
        return list(dict.fromkeys(names))

    # --- Imports ---

    def _link_import(self, declaration, path, code):
        resolved = resolve_specifier(declaration.specifier, path)

        if resolved is None:
            self.externals.add(declaration, path, code)
            return _edit(declaration, "")

        if is_asset_file(resolved):
            warn(f"{display_path(path)}:{declaration.line}: import of asset "
                 f"\"{declaration.specifier}\" was not rewritten and is dropped")
            return _edit(declaration, "")

        target = self._target(resolved, declaration, path, code)
        bindings = []
        if declaration.namespace:
            bindings.append(f"const {declaration.namespace} = {target};")
        if declaration.default:
            self._check_export(resolved, "default", declaration, path, code)
            bindings.append(f'const {declaration.default} = {target}["default"];')
        for imported, local in declaration.named:
            self._check_export(resolved, imported, declaration, path, code)
            bindings.append(f"const {local} = {target}[{json.dumps(imported)}];")

        # One line, so the lines below keep their numbers
        return _edit(declaration, " ".join(bindings))

    # --- Exports ---

    def _module_export(self, declaration, path, code, fields):
        """Strip an export from a wrapped module and record what it exports."""
        if not declaration.is_reexport:
            fields += [(json.dumps(exported), local) for exported, local in declaration.bindings]
            return _edit(declaration, declaration.replacement)

        resolved, target = self._reexport_target(declaration, path, code)
        if declaration.star:
            fields.append((None, _without_default(target)))
        elif declaration.star_alias:
            fields.append((json.dumps(declaration.star_alias), target))
        else:
            for exported, imported in declaration.reexports:
                self._check_export(resolved, imported, declaration, path, code)
                fields.append((json.dumps(exported), f"{target}[{json.dumps(imported)}]"))
        return _edit(declaration, "")

    def _entry_reexport(self, declaration, path, code):
        """`export { a } from "./x"` in the entry -> local constants plus an export list."""
        resolved, target = self._reexport_target(declaration, path, code)
        if declaration.star:
            pairs = [(name, f"{target}[{json.dumps(name)}]")
                     for name in self.export_names(resolved) if name != "default"]
        elif declaration.star_alias:
            pairs = [(declaration.star_alias, target)]
        else:
            pairs = []
            for exported, imported in declaration.reexports:
                self._check_export(resolved, imported, declaration, path, code)
                pairs.append((exported, f"{target}[{json.dumps(imported)}]"))

        if not pairs:
            return _edit(declaration, "")

        statements = []
        specifiers = []
        for exported, expression in pairs:
            local = f"{REEXPORT_PREFIX}{self._reexport_count}"
            self._reexport_count += 1
            statements.append(f"const {local} = {expression};")
            specifiers.append(f"{local} as {_export_name(exported)}")
        statements.append(f"export {{ {', '.join(specifiers)} }};")
        return _edit(declaration, " ".join(statements))

    def _wrap(self, path, body, fields):
        entries = [f"...{value}" if key is None else f"{key}: {value}" for key, value in fields]
        record = "{ " + ", ".join(entries) + " }" if entries else "{}"
        return f"const {self.ids[path]} = (() => {{\n{body}\nreturn {record};\n}})();"

    # --- Checks ---

    def _target(self, resolved, declaration, path, code):
        if resolved not in self.syntax:
            raise BundleError(
                f'Cannot link "{declaration.specifier}": not part of the dependency graph',
                path=path,
                line_number=declaration.line,
                context=get_line_context(code, declaration.line),
            )
        return self.ids[resolved]

    def _reexport_target(self, declaration, path, code):
        resolved = resolve_specifier(declaration.specifier, path)
        if resolved is None:
            raise BundleError(
                f'Re-exporting from package "{declaration.specifier}" is not supported',
                path=path,
                line_number=declaration.line,
                context=get_line_context(code, declaration.line),
                suggestion="Import the package in the module that uses it",
            )
        if is_asset_file(resolved):
            raise BundleError(
                f'Re-exporting asset "{declaration.specifier}" is not supported',
                path=path,
                line_number=declaration.line,
                context=get_line_context(code, declaration.line),
                suggestion="Import the asset where it is used",
            )
        return resolved, self._target(resolved, declaration, path, code)

    def _check_export(self, resolved, name, declaration, path, code):
        if name not in self.export_names(resolved):
            raise BundleError(
                f'"{display_path(resolved)}" has no export named "{name}"',
                path=path,
                line_number=declaration.line,
                context=get_line_context(code, declaration.line),
            )


def _edit(declaration, replacement):
    """Replace a declaration, padding with newlines to keep the line count."""
    missing = declaration.text.count("\n") - replacement.count("\n")
    return declaration.start, declaration.end, replacement + "\n" * max(missing, 0)


def _without_default(target):
    return f'Object.fromEntries(Object.entries({target}).filter(([k]) => k !== "default"))'


def _export_name(name):
    return name if IDENTIFIER.match(name) else json.dumps(name)
