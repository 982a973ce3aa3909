# Ono Runtime Components
"""
JavaScript runtime loaded into every page's V8 context.

These are real JavaScript files, kept separate so they can be read and
linted as JavaScript, and concatenated into a single preamble string
before a page is evaluated.
"""

import os

# Order matters - jsx_runtime.js registers itself on the bridge object
RUNTIME_MODULES = [
    'bridge.js',       # __ono: value marshalling, component calls
    'jsx_runtime.js',  # h, Fragment, jsx
]


def get_preamble():
    """Read and concatenate the runtime modules into a single preamble string."""
    runtime_dir = os.path.dirname(__file__)

    parts = []
    for module in RUNTIME_MODULES:
        path = os.path.join(runtime_dir, module)
        with open(path, 'r', encoding='utf-8') as f:
            parts.append(f.read())

    return '\n\n'.join(parts)
