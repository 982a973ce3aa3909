import argparse
import json
import os
import sys

from builder import build_file, build_files, copy_public_files
from ono_core.config import DEFAULT_CONFIG_FILE, BuildConfig, load_config
from ono_core.console import log, warn
from ono_core.errors import OnoBuildError, display_path

INIT_FILES = {
    "pages/index.js": '''import { h } from "ono";
import Greeting from "../components/Greeting.js";

export default function Home() {
  return h("html", { lang: "en" },
    h("head", null, h("title", null, "Ono")),
    h("body", null, h(Greeting, { name: "Ono" })),
  );
}
''',
    "components/Greeting.js": '''import { h } from "ono";

export default function Greeting({ name }) {
  return h("h1", { className: "greeting" }, "Hello, ", name, "!");
}
''',
}


def cmd_build(args):
    try:
        config = load_config(
            args.config,
            output_dir=args.output,
            jobs=args.jobs,
            verbose=True if args.verbose else None,
        )
    except OnoBuildError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    source = args.input or config.pages_dir
    failed = 0

    if os.path.isdir(source):
        results = build_files(source, config)
        log(f"{len(results)} page(s) in {source}/")
        for result in results:
            if result.is_ok():
                log(f"  ✓ {display_path(result.value.output_path)}")
            else:
                failed += 1
                print(f"{result.error}", file=sys.stderr)
    elif os.path.isfile(source):
        try:
            page = build_file(source, config)
        except OnoBuildError as e:
            print(f"Error: Build failed:\n{e}", file=sys.stderr)
            sys.exit(1)
        log(f"✓ Built {display_path(page.output_path)}")
    else:
        print(f"Error: '{source}' is neither a file nor directory", file=sys.stderr)
        sys.exit(1)

    copied = copy_public_files(config.public_dir, config.output_dir)
    if copied:
        log(f"Copied {len(copied)} public file(s)")

    if failed:
        warn(f"{failed} page(s) failed")
        sys.exit(1)
    log("✨ Build complete!")


def cmd_init(args):
    log("Initializing project...")
    created = []
    for path, content in INIT_FILES.items():
        if os.path.exists(path):
            warn(f"{path} exists, skipped")
            continue
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            f.write(content)
        created.append(path)

    if not os.path.exists(DEFAULT_CONFIG_FILE):
        with open(DEFAULT_CONFIG_FILE, "w", encoding="utf-8") as f:
            json.dump(BuildConfig().model_dump(exclude_none=True), f, indent=2)
            f.write("\n")
        created.append(DEFAULT_CONFIG_FILE)

    os.makedirs(BuildConfig().public_dir, exist_ok=True)
    log(f"Created {', '.join(created) if created else 'nothing'}")


def main():
    parser = argparse.ArgumentParser(description="Ono static site generator")
    parser.add_argument("--verbose", action="store_true", help="Enable verbose output (sent to stderr)")
    subparsers = parser.add_subparsers(dest="command")

    build = subparsers.add_parser("build", help="Build pages to static HTML")
    build.add_argument("input", nargs="?", help="Page file or directory (default: pages_dir from ono.json)")
    build.add_argument("--output", help="Output directory (default: dist)")
    build.add_argument("--config", help=f"Configuration file (default: {DEFAULT_CONFIG_FILE})")
    build.add_argument("--jobs", type=int, help="Pages built in parallel")

    subparsers.add_parser("init", help="Create a starter project")

    args = parser.parse_args()

    if args.command == "build": cmd_build(args)
    elif args.command == "init": cmd_init(args)
    else: parser.print_help()


if __name__ == "__main__":
    main()
