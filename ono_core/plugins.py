"""
Bundler plugins.

A plugin is an object with a `name` and any of the hook methods below.
Hooks run in plugin order; each receives the record returned by the
previous plugin and the read-only BuildContext, and returns a new record
(`record.model_copy(update=...)`) or None to pass the record on unchanged.

    collect_dependencies(result: DependencyResult, context) - once per build
    before_transform(stage: ModuleStage, context)           - per module
    after_transform(stage: ModuleStage, context)            - per module
    after_bundle(bundle: Bundle, context)                   - once per build
"""
import os
from concurrent.futures import ThreadPoolExecutor

from .assets import AssetCache, copy_asset, replace_asset_imports
from .console import debug_log
from .errors import OnoBuildError, PluginError
from .resolver import resolve_specifier
from .scanner import ModuleScanner

HOOKS = ('collect_dependencies', 'before_transform', 'after_transform', 'after_bundle')

ASSET_LOADER = "asset-loader"


class Plugin:
    """Base class for plugins; every hook defaults to "unchanged"."""
    name = "plugin"

    def collect_dependencies(self, result, context):
        return None

    def before_transform(self, stage, context):
        return None

    def after_transform(self, stage, context):
        return None

    def after_bundle(self, bundle, context):
        return None

    def __repr__(self):
        return f"<{type(self).__name__} {self.name!r}>"


def plugin(name, **hooks):
    """
    Build a plugin from plain functions.

    Example:
        banner = plugin("banner", after_bundle=lambda bundle, context:
                        bundle.model_copy(update={"code": "// hi\\n" + bundle.code}))
    """
    unknown = set(hooks) - set(HOOKS)
    if unknown:
        raise ValueError(f"Unknown plugin hooks: {', '.join(sorted(unknown))}")

    instance = Plugin()
    instance.name = name
    for hook, function in hooks.items():
        setattr(instance, hook, function)
    return instance


class PluginManager:
    """Runs hooks across an ordered list of plugins."""

    def __init__(self, plugins=None):
        self.plugins = list(plugins or [])

    def add(self, plugin):
        self.plugins.append(plugin)

    def get_plugin(self, name):
        for p in self.plugins:
            if p.name == name:
                return p
        return None

    def run_hook(self, hook, record, context):
        """
        Thread `record` through `hook` of every plugin.

        Raises:
            PluginError: If a hook raises a non-build error or returns
                something other than a record of the same type
            OnoBuildError: Build errors raised by hooks propagate unchanged
        """
        if hook not in HOOKS:
            raise ValueError(f"Unknown plugin hook: {hook}")

        for p in self.plugins:
            function = getattr(p, hook, None)
            if function is None:
                continue

            path = getattr(record, 'path', None) or context.entry
            try:
                returned = function(record, context)
            except OnoBuildError:
                raise
            except Exception as e:
                raise PluginError(p.name, hook, e, path=path) from e

            if returned is None:
                continue
            if not isinstance(returned, type(record)):
                raise PluginError(
                    p.name, hook,
                    f"returned {type(returned).__name__}, expected {type(record).__name__}",
                    path=path,
                )
            record = returned

        return record


class AssetLoaderPlugin(Plugin):
    """
    Copies the assets found during dependency collection and rewrites
    `import logo from "./logo.png"` into the asset's public URL.

    Args:
        output_dir: Build output directory
        hash_assets: Content hash in asset file names
        assets_dir: Sub directory (and URL prefix) for assets
        cache: AssetCache shared by the pages of one build
        jobs: Number of threads used to copy assets
    """
    name = ASSET_LOADER

    def __init__(self, output_dir, hash_assets=True, assets_dir="assets", cache=None, jobs=1,
                 scanner=None):
        self.output_dir = output_dir
        self.hash_assets = hash_assets
        self.assets_dir = assets_dir
        self.cache = cache if cache is not None else AssetCache()
        self.jobs = max(1, jobs)
        self.scanner = scanner or ModuleScanner()

    def collect_dependencies(self, result, context):
        if not result.assets:
            return None

        def copy(source_path):
            return self.cache.get_or_copy(source_path, lambda path: copy_asset(
                path,
                self.output_dir,
                hash=self.hash_assets,
                assets_dir=self.assets_dir,
                referrer=result.referrers.get(source_path),
            ))

        if self.jobs > 1 and len(result.assets) > 1:
            with ThreadPoolExecutor(max_workers=self.jobs, thread_name_prefix="ono-assets") as executor:
                manifest = list(executor.map(copy, result.assets))
        else:
            manifest = [copy(path) for path in result.assets]

        for asset in manifest:
            debug_log(f"Asset {os.path.basename(asset.source_path)} -> {asset.public_path}", context.verbose)

        return result.model_copy(update={"manifest": manifest})

    def after_transform(self, stage, context):
        if not stage.asset_urls:
            return None

        # Specifiers are read from the original source; the transform may
        # have reformatted the import lines.
        syntax = self.scanner.scan(stage.source, stage.path, strict=False)
        asset_map = {}
        for declaration in syntax.imports:
            resolved = resolve_specifier(declaration.specifier, stage.path)
            if resolved in stage.asset_urls:
                asset_map[declaration.specifier] = stage.asset_urls[resolved]

        if not asset_map:
            return None
        code = replace_asset_imports(stage.code, asset_map, scanner=self.scanner)
        return stage.model_copy(update={"transformed": code})
