"""
End-to-end tests for building pages to HTML.
"""
import os
import tempfile

import pytest
from builder import (
    DOCTYPE,
    build_file,
    build_files,
    copy_public_files,
    find_pages,
    output_path_for,
    write_html,
)
from ono_core.assets import generate_file_hash
from ono_core.bundler import bundle
from ono_core.config import BuildConfig
from ono_core.errors import MissingDefaultExportError, SourceNotFoundError
from ono_core.plugins import plugin
from ono_core.result import ErrorKind
from ono_core.transform import IdentityTransform


class ClosingTransform(IdentityTransform):
    """Identity transform that records whether it was closed."""

    def __init__(self):
        self.closed = False

    def close(self):
        self.closed = True


@pytest.fixture
def created_transforms(monkeypatch):
    created = []

    def create(config):
        created.append(ClosingTransform())
        return created[-1]

    monkeypatch.setattr("builder.create_transform", create)
    return created


@pytest.fixture
def site():
    with tempfile.TemporaryDirectory() as tmpdir:
        yield os.path.realpath(tmpdir)


def write(directory, name, content):
    path = os.path.join(directory, name)
    os.makedirs(os.path.dirname(path), exist_ok=True)
    mode = 'wb' if isinstance(content, bytes) else 'w'
    with open(path, mode) as f:
        f.write(content)
    return path


def read(path):
    with open(path, 'r', encoding='utf-8') as f:
        return f.read()


class TestOutputPaths:
    """Tests for output_path_for() and find_pages()."""

    def test_relative_to_pages_dir(self):
        assert output_path_for("/site/pages/blog/post.jsx", "dist", "/site/pages") == \
            os.path.join("dist", "blog", "post.html")

    def test_without_pages_dir(self):
        assert output_path_for("/site/pages/blog/post.js", "dist") == os.path.join("dist", "post.html")

    def test_outside_pages_dir(self):
        assert output_path_for("/elsewhere/about.jsx", "dist", "/site/pages") == \
            os.path.join("dist", "about.html")

    def test_find_pages(self, site):
        write(site, "pages/index.js", "")
        write(site, "pages/blog/post.jsx", "")
        write(site, "pages/notes.txt", "")
        pages = find_pages(os.path.join(site, "pages"))
        assert pages == [
            os.path.join(site, "pages", "index.js"),
            os.path.join(site, "pages", "blog", "post.jsx"),
        ]

    def test_write_html(self, site):
        path = os.path.join(site, "dist", "nested", "index.html")
        write_html(path, "<p>hi</p>")
        assert read(path) == "<p>hi</p>"
        assert os.listdir(os.path.dirname(path)) == ["index.html"]


class TestBuildFile:
    """Tests for build_file()."""

    def test_import_chain(self, site):
        """A page importing B importing C renders all three."""
        write(site, "components/C.js", (
            'import { h } from "ono";\n'
            'export default function C() { return h("span", null, "c"); }\n'
        ))
        write(site, "components/B.js", (
            'import { h } from "ono";\n'
            'import C from "./C.js";\n'
            'export default function B() { return h("div", null, h(C, null)); }\n'
        ))
        page = write(site, "pages/index.js", (
            'import { h } from "ono";\n'
            'import B from "../components/B.js";\n'
            'export default function Page() { return h("main", null, h(B, null)); }\n'
        ))
        config = BuildConfig(output_dir=os.path.join(site, "dist"))

        result = build_file(page, config, pages_dir=os.path.join(site, "pages"))

        assert result.output_path == os.path.join(site, "dist", "index.html")
        assert read(result.output_path) == f"{DOCTYPE}\n<main><div><span>c</span></div></main>"
        assert [os.path.basename(m) for m in result.modules] == ["C.js", "B.js", "index.js"]

    def test_asset_import(self, site):
        logo_bytes = b"\x89PNG\r\n\x1a\n fake image"
        write(site, "pages/logo.png", logo_bytes)
        page = write(site, "pages/index.js", (
            'import { h } from "ono";\n'
            'import logo from "./logo.png";\n'
            'export default function Page() { return h("img", { src: logo, alt: "Logo" }); }\n'
        ))
        output = os.path.join(site, "dist")
        digest = generate_file_hash(logo_bytes)

        bundled = bundle(page, output_dir=output)
        assert f'const logo = "/assets/logo-{digest}.png";' in bundled.code

        result = build_file(page, BuildConfig(output_dir=output))

        assert read(result.output_path) == f'{DOCTYPE}\n<img src="/assets/logo-{digest}.png" alt="Logo" />'
        with open(os.path.join(output, "assets", f"logo-{digest}.png"), 'rb') as f:
            assert f.read() == logo_bytes
        assert [asset.public_path for asset in result.assets] == [f"/assets/logo-{digest}.png"]

    def test_without_doctype(self, site):
        page = write(site, "page.js", 'export default "plain";')
        config = BuildConfig(output_dir=os.path.join(site, "dist"), doctype=False)
        assert read(build_file(page, config).output_path) == "plain"

    def test_props_and_children(self, site):
        page = write(site, "page.js", (
            'import { h, Fragment } from "ono";\n'
            'function Card({ title, children }) {\n'
            '  return h("section", { className: "card" }, h("h2", null, title), children);\n'
            '}\n'
            'export default function Page() {\n'
            '  return h(Fragment, null,\n'
            '    h(Card, { title: "One" }, h("p", null, "first")),\n'
            '    [1, 2].map((n) => h("i", { key: n }, n)),\n'
            '    false && h("b", null, "hidden"),\n'
            '  );\n'
            '}\n'
        ))
        config = BuildConfig(output_dir=os.path.join(site, "dist"), doctype=False)

        html = read(build_file(page, config).output_path)

        assert html == '<section class="card"><h2>One</h2><p>first</p></section><i key="1">1</i><i key="2">2</i>'

    def test_python_side_plugin(self, site):
        page = write(site, "page.js", 'export default "__GREETING__";')
        define = plugin("define", after_transform=lambda stage, context:
                        stage.model_copy(update={"transformed": stage.code.replace("__GREETING__", "hi")}))
        config = BuildConfig(output_dir=os.path.join(site, "dist"), doctype=False)
        assert read(build_file(page, config, plugins=[define]).output_path) == "hi"

    def test_closes_transform_it_created(self, site, created_transforms):
        page = write(site, "page.js", 'export default "x";')
        build_file(page, BuildConfig(output_dir=os.path.join(site, "dist")))
        assert [t.closed for t in created_transforms] == [True]

    def test_closes_transform_on_failure(self, site, created_transforms):
        page = write(site, "page.js", 'import x from "./missing.js";\nexport default x;')
        with pytest.raises(SourceNotFoundError):
            build_file(page, BuildConfig(output_dir=os.path.join(site, "dist")))
        assert created_transforms[0].closed

    def test_leaves_given_transform_open(self, site):
        page = write(site, "page.js", 'export default "x";')
        transform = ClosingTransform()
        build_file(page, BuildConfig(output_dir=os.path.join(site, "dist")), transform=transform)
        assert not transform.closed

    def test_missing_default_export(self, site):
        page = write(site, "page.js", 'export const title = "x";')
        with pytest.raises(MissingDefaultExportError):
            build_file(page, BuildConfig(output_dir=os.path.join(site, "dist")))
        assert not os.path.exists(os.path.join(site, "dist", "page.html"))


class TestBuildFiles:
    """Tests for build_files()."""

    def test_builds_every_page(self, site):
        write(site, "pages/index.js", 'export default "home";')
        write(site, "pages/blog/post.js", 'export default function Post() { return "post"; }')
        config = BuildConfig(output_dir=os.path.join(site, "dist"), doctype=False, jobs=2)

        results = build_files(os.path.join(site, "pages"), config)

        assert all(result.is_ok() for result in results)
        assert read(os.path.join(site, "dist", "index.html")) == "home"
        assert read(os.path.join(site, "dist", "blog", "post.html")) == "post"

    def test_failing_page_does_not_stop_others(self, site):
        write(site, "pages/a.js", 'export default "a";')
        write(site, "pages/b.js", 'export const nothing = 1;')
        write(site, "pages/c.js", 'import x from "./missing.js";\nexport default x;')
        config = BuildConfig(output_dir=os.path.join(site, "dist"))

        results = build_files(os.path.join(site, "pages"), config)

        assert [result.is_ok() for result in results] == [True, False, False]
        assert results[1].error.kind == ErrorKind.MISSING_DEFAULT_EXPORT
        assert results[1].error.path == os.path.join(site, "pages", "b.js")
        assert results[2].error.kind == ErrorKind.SOURCE_NOT_FOUND
        assert os.path.isfile(os.path.join(site, "dist", "a.html"))

    def test_shared_transform_closed_once_after_all_pages(self, site, created_transforms):
        write(site, "pages/a.js", 'export default "a";')
        write(site, "pages/b.js", 'export default "b";')
        config = BuildConfig(output_dir=os.path.join(site, "dist"), jobs=2)

        results = build_files(os.path.join(site, "pages"), config)

        assert all(result.is_ok() for result in results)
        assert len(created_transforms) == 1
        assert created_transforms[0].closed

    def test_shared_asset_copied_once(self, site):
        write(site, "pages/logo.svg", b"<svg/>")
        for name in ("a.js", "b.js"):
            write(site, f"pages/{name}", 'import logo from "./logo.svg";\nexport default logo;')
        config = BuildConfig(output_dir=os.path.join(site, "dist"), doctype=False, jobs=2)

        results = build_files(os.path.join(site, "pages"), config)

        urls = [result.value.assets[0].public_path for result in results]
        assert urls[0] == urls[1]
        assert os.listdir(os.path.join(site, "dist", "assets")) == [os.path.basename(urls[0])]


class TestCopyPublicFiles:
    """Tests for copy_public_files()."""

    def test_copies_tree(self, site):
        write(site, "public/robots.txt", "User-agent: *")
        write(site, "public/img/favicon.ico", b"ico")
        output = os.path.join(site, "dist")

        copied = copy_public_files(os.path.join(site, "public"), output)

        assert sorted(copied) == sorted([
            os.path.join(output, "robots.txt"),
            os.path.join(output, "img", "favicon.ico"),
        ])
        assert read(os.path.join(output, "robots.txt")) == "User-agent: *"

    def test_missing_public_dir(self, site):
        assert copy_public_files(os.path.join(site, "public"), os.path.join(site, "dist")) == []
