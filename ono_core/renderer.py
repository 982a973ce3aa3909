"""
Renderer - converts VNode trees to HTML strings.
"""
import math
import re
from collections.abc import Mapping

from .vnode import Fragment, VNode

VOID_ELEMENTS = frozenset({
    "area", "base", "br", "col", "embed", "hr", "img", "input",
    "link", "meta", "param", "source", "track", "wbr",
})

_ESCAPES = str.maketrans({
    '&': '&amp;',
    '<': '&lt;',
    '>': '&gt;',
    '"': '&quot;',
    "'": '&#039;',
})

# Names that cannot break out of the attribute list
_ATTRIBUTE_NAME = re.compile(r'^[^\s"\'<>/=]+$')


def escape_html(text):
    return str(text).translate(_ESCAPES)


def format_scalar(value):
    """Text of a number or string as the component code would print it."""
    if isinstance(value, float):
        if math.isnan(value):
            return "NaN"
        if math.isinf(value):
            return "Infinity" if value > 0 else "-Infinity"
        if value.is_integer():
            return str(int(value))
    return str(value)


def camel_to_kebab(name):
    return re.sub(r'[A-Z]', lambda m: '-' + m.group(0).lower(), name)


def style_to_string(style):
    if isinstance(style, str):
        return style
    return "; ".join(
        f"{camel_to_kebab(key)}: {format_scalar(value)}"
        for key, value in style.items()
        if value is not None
    )


def render_attributes(props):
    attributes = []
    for key, value in props.items():
        if key in ('children', 'dangerouslySetInnerHTML') or not _ATTRIBUTE_NAME.match(key):
            continue

        name = 'class' if key == 'className' else key
        if key == 'style' and isinstance(value, Mapping):
            value = style_to_string(value)

        if isinstance(value, bool):
            if value:
                attributes.append(name)
        elif isinstance(value, (str, int, float)):
            attributes.append(f'{name}="{escape_html(format_scalar(value))}"')
        # None, mappings, lists and functions have no attribute form

    return ''.join(' ' + attribute for attribute in attributes)


def render_to_string(vnode):
    """
    Render a VNode tree to HTML.

    None and booleans render nothing, so `cond and h(...)` works as a
    child. Unknown shapes also render nothing; exceptions raised by
    components propagate.
    """
    if vnode is None or isinstance(vnode, bool):
        return ""
    if isinstance(vnode, (str, int, float)):
        return escape_html(format_scalar(vnode))
    if not isinstance(vnode, VNode):
        return ""

    tag, props, children = vnode.tag, vnode.props, vnode.children

    if tag is Fragment:
        return "".join(render_to_string(child) for child in children)

    if callable(tag):
        component_props = dict(props)
        if children:
            component_props["children"] = list(children)
        return render_to_string(tag(component_props))

    if not isinstance(tag, str) or not tag:
        return ""

    attributes = render_attributes(props)
    if tag.lower() in VOID_ELEMENTS:
        return f"<{tag}{attributes} />"

    inner_html = props.get('dangerouslySetInnerHTML')
    if isinstance(inner_html, Mapping) and inner_html.get('__html') is not None:
        return f"<{tag}{attributes}>{inner_html['__html']}</{tag}>"

    body = "".join(render_to_string(child) for child in children)
    return f"<{tag}{attributes}>{body}</{tag}>"
