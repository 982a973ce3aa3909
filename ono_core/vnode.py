"""
Virtual nodes: the element trees components return before rendering.
"""


class _FragmentType:
    """Tag of a node whose children render without a wrapping element."""

    def __repr__(self):
        return "Fragment"


Fragment = _FragmentType()


class VNode:
    """An element or component invocation: tag, props and flat children."""
    __slots__ = ('tag', 'props', 'children')

    def __init__(self, tag, props=None, children=None):
        self.tag = tag
        self.props = dict(props or {})
        self.children = list(children or [])

    def __eq__(self, other):
        if not isinstance(other, VNode):
            return NotImplemented
        return (self.tag == other.tag and self.props == other.props
                and self.children == other.children)

    def __repr__(self):
        tag = getattr(self.tag, '__name__', self.tag)
        return f"VNode({tag!r}, {self.props!r}, {self.children!r})"


def flatten_children(children):
    """Flatten nested lists and drop None and booleans."""
    result = []
    for child in children:
        if child is None or isinstance(child, bool):
            continue
        if isinstance(child, (list, tuple)):
            result.extend(flatten_children(child))
        else:
            result.append(child)
    return result


def h(tag, props=None, *children):
    """Create a VNode: h("div", {"className": "card"}, "Hello")"""
    return VNode(tag, props, flatten_children(children))
