"""
Page builder: bundle a page, evaluate it, render it and write the HTML.
"""
import asyncio
import os
import shutil
import tempfile

from ono_core.assets import AssetCache
from ono_core.bundler import bundle
from ono_core.config import BuildConfig
from ono_core.console import debug_log
from ono_core.errors import display_path
from ono_core.evaluator import Evaluator, resolve_page
from ono_core.models import PageResult
from ono_core.renderer import render_to_string
from ono_core.result import BuildFailure, Err, Ok
from ono_core.scanner import ModuleScanner
from ono_core.transform import create_transform

DOCTYPE = "<!DOCTYPE html>"
PAGE_EXTENSIONS = ('.jsx', '.js')


def output_path_for(input_file, output_dir, pages_dir=None):
    """
    pages/blog/post.jsx -> dist/blog/post.html

    Pages outside `pages_dir` (or when there is none) keep their base name.
    """
    source = os.path.abspath(input_file)
    relative = os.path.basename(source)
    if pages_dir:
        candidate = os.path.relpath(source, os.path.abspath(pages_dir))
        if not candidate.startswith(os.pardir):
            relative = candidate
    return os.path.join(output_dir, os.path.splitext(relative)[0] + ".html")


def write_html(path, html):
    """Write `html` to `path` atomically; a failed write leaves no temp file behind."""
    directory = os.path.dirname(os.path.abspath(path))
    os.makedirs(directory, exist_ok=True)
    fd, temp_path = tempfile.mkstemp(prefix=".ono-", suffix=".html", dir=directory)
    try:
        with os.fdopen(fd, 'w', encoding='utf-8') as f:
            f.write(html)
        os.replace(temp_path, path)
    except BaseException:
        if os.path.exists(temp_path):
            os.unlink(temp_path)
        raise


def render_page(bundled, scanner=None):
    """Evaluate a bundle and render its default export to HTML."""
    with Evaluator(scanner=scanner) as evaluator:
        exports = evaluator.evaluate(bundled.code, bundled.entry)
        return render_to_string(resolve_page(exports, bundled.entry))


def build_file(input_file, config=None, pages_dir=None, transform=None, plugins=None,
               asset_cache=None, scanner=None) -> PageResult:
    """
    Build one page.

    Args:
        input_file: Page module
        config: BuildConfig (defaults when omitted)
        pages_dir: Root the output path is made relative to
        transform: TransformAdapter; chosen from the config when omitted
        plugins: Bundler plugins
        asset_cache: AssetCache shared by the pages of one build
        scanner: ModuleScanner to reuse

    Returns:
        PageResult with the written HTML path and copied assets

    Raises:
        OnoBuildError: If the page cannot be bundled, evaluated or rendered
    """
    config = config or BuildConfig()
    scanner = scanner or ModuleScanner()
    owns_transform = transform is None
    transform = transform or create_transform(config)

    try:
        bundled = bundle(
            input_file,
            transform=transform,
            plugins=plugins,
            output_dir=config.output_dir,
            hash_assets=config.hash_assets,
            assets_dir=config.assets_dir,
            asset_cache=asset_cache,
            scanner=scanner,
            verbose=config.verbose,
            jobs=config.jobs,
        )
    finally:
        if owns_transform:
            transform.close()
    debug_log(f"Bundle for {display_path(bundled.entry)}:\n{bundled.code}", config.verbose)

    html = render_page(bundled, scanner=scanner)
    if config.doctype:
        html = f"{DOCTYPE}\n{html}"

    output_path = output_path_for(input_file, config.output_dir, pages_dir)
    write_html(output_path, html)
    debug_log(f"Wrote {display_path(output_path)}", config.verbose)

    return PageResult(
        source_path=bundled.entry,
        output_path=output_path,
        modules=bundled.modules,
        assets=bundled.assets,
    )


def find_pages(pages_dir):
    """All page modules under `pages_dir`, sorted."""
    pages = []
    for root, dirs, files in os.walk(pages_dir):
        dirs.sort()
        for name in sorted(files):
            if name.endswith(PAGE_EXTENSIONS):
                pages.append(os.path.join(root, name))
    return pages


def build_files(pages_dir=None, config=None, transform=None, plugins=None):
    """
    Build every page under `pages_dir` concurrently (up to `config.jobs` at once).

    Returns:
        List of Ok(PageResult) or Err(BuildFailure), one per page in
        path order. A failing page never stops the others.
    """
    config = config or BuildConfig()
    pages_dir = pages_dir or config.pages_dir
    pages = find_pages(pages_dir)
    debug_log(f"Found {len(pages)} page(s) in {pages_dir}", config.verbose)

    owns_transform = transform is None
    transform = transform or create_transform(config)
    scanner = ModuleScanner()
    cache = AssetCache()

    def build_one(page):
        try:
            return Ok(build_file(
                page,
                config=config,
                pages_dir=pages_dir,
                transform=transform,
                plugins=plugins,
                asset_cache=cache,
                scanner=scanner,
            ))
        except Exception as e:
            return Err(BuildFailure.from_exception(e, page))

    async def gather_results():
        semaphore = asyncio.Semaphore(config.jobs)

        async def run(page):
            async with semaphore:
                return await asyncio.to_thread(build_one, page)

        return await asyncio.gather(*(run(page) for page in pages))

    try:
        return list(asyncio.run(gather_results()))
    finally:
        if owns_transform:
            transform.close()


def copy_public_files(public_dir, output_dir):
    """Copy the static files of `public_dir` into `output_dir`; returns the copied paths."""
    copied = []
    if not os.path.isdir(public_dir):
        return copied

    for root, dirs, files in os.walk(public_dir):
        dirs.sort()
        target_dir = os.path.join(output_dir, os.path.relpath(root, public_dir))
        os.makedirs(target_dir, exist_ok=True)
        for name in sorted(files):
            target = os.path.join(target_dir, name)
            shutil.copyfile(os.path.join(root, name), target)
            copied.append(os.path.normpath(target))
    return copied
