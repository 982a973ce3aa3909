"""
Unit tests for the plugin pipeline.
"""
import os
import tempfile

import pytest
from ono_core.assets import AssetCache
from ono_core.errors import BundleError, PluginError
from ono_core.models import BuildContext, Bundle, DependencyResult, ModuleStage
from ono_core.plugins import ASSET_LOADER, AssetLoaderPlugin, Plugin, PluginManager, plugin


@pytest.fixture
def context():
    return BuildContext(entry="/site/pages/index.js")


def make_bundle(code="x"):
    return Bundle(entry="/site/pages/index.js", code=code)


class TestPluginFactory:
    """Tests for plugin()."""

    def test_named_hooks(self):
        p = plugin("banner", after_bundle=lambda b, c: None)
        assert p.name == "banner"
        assert p.after_bundle(make_bundle(), None) is None
        assert p.before_transform(None, None) is None

    def test_unknown_hook(self):
        with pytest.raises(ValueError, match="after_everything"):
            plugin("bad", after_everything=lambda b, c: None)

    def test_subclass(self, context):
        class Upper(Plugin):
            name = "upper"

            def after_bundle(self, bundle, context):
                return bundle.model_copy(update={"code": bundle.code.upper()})

        manager = PluginManager([Upper()])
        assert manager.run_hook("after_bundle", make_bundle("abc"), context).code == "ABC"
        assert repr(Upper()) == "<Upper 'upper'>"


class TestPluginManager:
    """Tests for PluginManager.run_hook()."""

    def test_no_plugins(self, context):
        record = make_bundle()
        assert PluginManager().run_hook("after_bundle", record, context) is record

    def test_none_means_unchanged(self, context):
        record = make_bundle()
        manager = PluginManager([plugin("noop", after_bundle=lambda b, c: None)])
        assert manager.run_hook("after_bundle", record, context) is record

    def test_plugins_run_in_order(self, context):
        manager = PluginManager([
            plugin("a", after_bundle=lambda b, c: b.model_copy(update={"code": b.code + "a"})),
            plugin("b", after_bundle=lambda b, c: b.model_copy(update={"code": b.code + "b"})),
        ])
        assert manager.run_hook("after_bundle", make_bundle(""), context).code == "ab"

    def test_record_is_not_mutated(self, context):
        record = make_bundle("x")
        manager = PluginManager([plugin("a", after_bundle=lambda b, c: b.model_copy(update={"code": "y"}))])
        manager.run_hook("after_bundle", record, context)
        assert record.code == "x"

    def test_context_is_passed(self, context):
        seen = []
        manager = PluginManager([plugin("spy", after_bundle=lambda b, c: seen.append(c))])
        manager.run_hook("after_bundle", make_bundle(), context)
        assert seen == [context]

    def test_exception_wrapped(self, context):
        def boom(stage, context):
            raise KeyError("missing")

        manager = PluginManager([plugin("boom", before_transform=boom)])
        stage = ModuleStage(path="/site/components/Card.js", source="")
        with pytest.raises(PluginError) as info:
            manager.run_hook("before_transform", stage, context)
        assert info.value.plugin_name == "boom"
        assert info.value.hook == "before_transform"
        assert info.value.path == "/site/components/Card.js"
        assert isinstance(info.value.__cause__, KeyError)

    def test_build_errors_propagate(self, context):
        def strict(bundle, context):
            raise BundleError("nope")

        manager = PluginManager([plugin("strict", after_bundle=strict)])
        with pytest.raises(BundleError):
            manager.run_hook("after_bundle", make_bundle(), context)

    def test_wrong_return_type(self, context):
        manager = PluginManager([plugin("bad", after_bundle=lambda b, c: "code")])
        with pytest.raises(PluginError, match="returned str, expected Bundle"):
            manager.run_hook("after_bundle", make_bundle(), context)

    def test_unknown_hook(self, context):
        with pytest.raises(ValueError):
            PluginManager().run_hook("on_start", make_bundle(), context)

    def test_get_plugin(self):
        loader = AssetLoaderPlugin("/tmp/dist")
        manager = PluginManager([plugin("a")])
        manager.add(loader)
        assert manager.get_plugin(ASSET_LOADER) is loader
        assert manager.get_plugin("missing") is None


class TestAssetLoaderPlugin:
    """Tests for the asset loader plugin."""

    @pytest.fixture
    def site(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            root = os.path.realpath(tmpdir)
            with open(os.path.join(root, "logo.png"), 'wb') as f:
                f.write(b"logo")
            yield root

    def test_copies_assets(self, site, context):
        logo = os.path.join(site, "logo.png")
        page = os.path.join(site, "page.js")
        result = DependencyResult(entry=page, assets=[logo], referrers={logo: page})
        loader = AssetLoaderPlugin(os.path.join(site, "dist"), hash_assets=False)

        updated = loader.collect_dependencies(result, context)

        assert [asset.public_path for asset in updated.manifest] == ["/assets/logo.png"]
        assert updated.asset_urls() == {logo: "/assets/logo.png"}
        assert os.path.isfile(os.path.join(site, "dist", "assets", "logo.png"))

    def test_copies_with_threads(self, site, context):
        for name in ("a.png", "b.png", "c.png"):
            with open(os.path.join(site, name), 'wb') as f:
                f.write(name.encode())
        assets = [os.path.join(site, name) for name in ("a.png", "b.png", "c.png")]
        result = DependencyResult(entry=os.path.join(site, "page.js"), assets=assets)
        loader = AssetLoaderPlugin(os.path.join(site, "dist"), jobs=3)

        updated = loader.collect_dependencies(result, context)

        assert [asset.source_path for asset in updated.manifest] == assets

    def test_no_assets(self, site, context):
        result = DependencyResult(entry=os.path.join(site, "page.js"))
        assert AssetLoaderPlugin(site).collect_dependencies(result, context) is None

    def test_shared_cache(self, site, context):
        logo = os.path.join(site, "logo.png")
        cache = AssetCache()
        result = DependencyResult(entry=os.path.join(site, "page.js"), assets=[logo])
        output = os.path.join(site, "dist")

        AssetLoaderPlugin(output, cache=cache).collect_dependencies(result, context)
        AssetLoaderPlugin(output, cache=cache).collect_dependencies(result, context)

        assert len(cache) == 1

    def test_rewrites_imports(self, site, context):
        page = os.path.join(site, "page.js")
        source = 'import logo from "./logo.png";\nexport default logo;'
        stage = ModuleStage(
            path=page,
            source=source,
            transformed=source,
            asset_urls={os.path.join(site, "logo.png"): "/assets/logo-abc.png"},
        )

        updated = AssetLoaderPlugin(site).after_transform(stage, context)

        assert updated.code == 'const logo = "/assets/logo-abc.png";\nexport default logo;'
        assert updated.source == source

    def test_unrelated_module_untouched(self, site, context):
        stage = ModuleStage(
            path=os.path.join(site, "page.js"),
            source='export default 1;',
            asset_urls={os.path.join(site, "logo.png"): "/assets/logo.png"},
        )
        assert AssetLoaderPlugin(site).after_transform(stage, context) is None
