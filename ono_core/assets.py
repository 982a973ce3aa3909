"""
Asset pipeline - images, fonts and other files imported by components.

Assets are content addressed: the output name carries a hash of the
file's bytes, so identical files always map to the same URL.
"""
import hashlib
import json
import os
import threading
from concurrent.futures import Future

from .errors import AssetCopyError, SourceNotFoundError
from .models import Asset
from .scanner import ModuleScanner

ASSET_EXTENSIONS = frozenset({
    '.png', '.jpg', '.jpeg', '.gif', '.svg', '.webp', '.avif', '.ico',
    '.woff', '.woff2', '.ttf', '.otf', '.eot',
    '.mp4', '.webm', '.ogg',
    '.mp3', '.wav',
    '.pdf',
})


def is_asset_file(path):
    return os.path.splitext(path)[1].lower() in ASSET_EXTENSIONS


def generate_file_hash(content):
    """First 8 hex characters of the MD5 digest of `content`."""
    if isinstance(content, str):
        content = content.encode('utf-8')
    return hashlib.md5(content, usedforsecurity=False).hexdigest()[:8]


def generate_asset_filename(path, digest):
    """logo.png + a1b2c3d4 -> logo-a1b2c3d4.png"""
    base, ext = os.path.splitext(os.path.basename(path))
    return f"{base}-{digest}{ext}"


def copy_asset(source_path, output_dir, hash=True, assets_dir="assets", referrer=None) -> Asset:
    """
    Copy an asset into `{output_dir}/{assets_dir}/`.

    Args:
        source_path: Absolute path of the asset
        output_dir: Build output directory
        hash: Add the content hash to the file name
        assets_dir: Sub directory (and URL prefix) for assets
        referrer: Module that imported the asset, for error messages

    Returns:
        Asset with the output path and the public URL

    Raises:
        SourceNotFoundError: If the asset does not exist
        AssetCopyError: On any other I/O error
    """
    try:
        with open(source_path, 'rb') as f:
            content = f.read()
    except FileNotFoundError:
        raise SourceNotFoundError(source_path, referrer=referrer, reason="asset not found")
    except OSError as e:
        raise AssetCopyError(f"Cannot read asset: {e.strerror}", path=source_path, referrer=referrer)

    digest = generate_file_hash(content) if hash else ""
    filename = generate_asset_filename(source_path, digest) if hash else os.path.basename(source_path)

    target_dir = os.path.join(output_dir, assets_dir)
    output_path = os.path.join(target_dir, filename)
    try:
        os.makedirs(target_dir, exist_ok=True)
        with open(output_path, 'wb') as f:
            f.write(content)
    except OSError as e:
        raise AssetCopyError(
            f"Cannot write asset to {output_path}: {e.strerror}",
            path=source_path,
            referrer=referrer,
            suggestion="Check that the output directory is writable",
        )

    return Asset(
        source_path=source_path,
        hash=digest,
        output_path=output_path,
        public_path=f"/{assets_dir}/{filename}",
    )


def replace_asset_imports(code, asset_map, scanner=None):
    """
    Turn asset imports into string constants.

    `import logo from "./logo.png"` and
    `import { default as logo } from "./logo.png"` become
    `const logo = "/assets/logo-a1b2c3d4.png";` for every specifier in
    `asset_map`. Other import forms of the same specifier are left alone.
    """
    if not asset_map:
        return code

    scanner = scanner or ModuleScanner()
    syntax = scanner.scan(code, strict=False)

    # Replace from the end so earlier offsets stay valid
    for declaration in reversed(syntax.imports):
        url = asset_map.get(declaration.specifier)
        if url is None or declaration.namespace:
            continue
        if declaration.default and not declaration.named:
            local = declaration.default
        elif declaration.default is None and len(declaration.named) == 1 \
                and declaration.named[0][0] == 'default':
            local = declaration.named[0][1]
        else:
            continue
        # Keep the line count so errors further down point at the right line
        replacement = f"const {local} = {json.dumps(url)};" + "\n" * declaration.text.count("\n")
        code = code[:declaration.start] + replacement + code[declaration.end:]

    return code


class AssetCache:
    """
    Remembers the assets copied during one build.

    The first caller for a source path copies it; any other caller,
    including one on another thread, waits for and reuses that result.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._futures = {}

    def get_or_copy(self, source_path, copy):
        """Return the Asset for `source_path`, calling `copy(source_path)` at most once."""
        key = os.path.abspath(source_path)
        with self._lock:
            future = self._futures.get(key)
            owner = future is None
            if owner:
                future = Future()
                self._futures[key] = future

        if owner:
            try:
                future.set_result(copy(key))
            except BaseException as e:
                future.set_exception(e)
                raise

        return future.result()

    def assets(self):
        """Assets copied successfully so far."""
        with self._lock:
            futures = list(self._futures.values())
        return [f.result() for f in futures if f.done() and f.exception() is None]

    def __contains__(self, source_path):
        return os.path.abspath(source_path) in self._futures

    def __len__(self):
        return len(self._futures)
