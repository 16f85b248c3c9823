"""Vertical stack behavior (racks).

A rack stacks its children top to bottom in y order, locks them in place,
stretches them to the rack's inner width and shrink-wraps its own height
around them. Collapsing a rack hides its children.
"""
from canvas_engine.engine.types import EngineContext, NodeBehavior, NodePatch
from canvas_engine.models.graph import Node

PADDING_X = 15
PADDING_TOP = 50
GAP = 10
# Height of a collapsed child inside a rack
ASSET_HEIGHT = 50
ASSET_EXPANDED_DEFAULT = 200
# Height given to a child that joins with no explicit height
ASSET_JOIN_HEIGHT = 240
DEFAULT_WIDTH = 280


def rack_width(container: Node) -> float:
    if container.style.width is not None:
        return container.style.width
    if container.width is not None:
        return container.width
    return DEFAULT_WIDTH


def content_width(container: Node) -> float:
    return rack_width(container) - PADDING_X * 2


def stacked_height(node: Node) -> float:
    """Height a child occupies in the stack."""
    if node.data.collapsed:
        return ASSET_HEIGHT
    if node.style.height:
        return node.style.height
    # Small measurements are usually stale
    measured = node.measured_height or 0
    if measured > ASSET_HEIGHT + 10:
        return measured
    return ASSET_EXPANDED_DEFAULT


def stack_on_layout(container: Node, children: list[Node], context: EngineContext) -> list[NodePatch]:
    if container.data.collapsed:
        return [NodePatch(id=container.id, patch={"style": {"height": None}})]

    if not children:
        return []

    patches = []
    inner_width = content_width(container)
    current_y = PADDING_TOP

    for child in sorted(children, key=lambda n: n.position.y):
        patches.append(
            NodePatch(
                id=child.id,
                patch={
                    "position": {"x": PADDING_X, "y": current_y},
                    "style": {"width": inner_width},
                    "hidden": False,
                    "draggable": False,
                },
            )
        )
        current_y += stacked_height(child) + GAP

    total_height = current_y + GAP
    patches.append(
        NodePatch(
            id=container.id,
            patch={"height": total_height, "style": {"height": total_height}},
        )
    )
    return patches


def stack_on_collapse(container: Node, is_collapsing: bool, context: EngineContext) -> list[NodePatch]:
    patches = [
        NodePatch(id=child.id, patch={"hidden": is_collapsing})
        for child in context.children_of(container.id)
    ]
    patches.append(
        NodePatch(
            id=container.id,
            patch={
                "data": {"collapsed": is_collapsing},
                "style": {"height": None if is_collapsing else container.style.height},
            },
        )
    )
    return patches


def stack_on_child_add(container: Node, child: Node, context: EngineContext) -> list[NodePatch]:
    return [
        NodePatch(
            id=child.id,
            patch={
                "draggable": False,
                "extent": "parent",
                "style": {
                    "width": content_width(container),
                    "height": child.style.height if child.style.height is not None else ASSET_JOIN_HEIGHT,
                },
                "data": {
                    "handlePosition": "left-right",
                    "originalPosition": {
                        "x": child.position.x - container.position.x,
                        "y": child.position.y - container.position.y,
                    },
                    "enableResize": False,
                    "originalWidth": child.style.width,
                },
            },
        )
    ]


def stack_on_child_remove(container: Node, child: Node, context: EngineContext) -> list[NodePatch]:
    original_position = child.data.get_extra("originalPosition")
    return [
        NodePatch(
            id=child.id,
            patch={
                "draggable": True,
                "extent": None,
                "position": original_position or child.position,
                "height": None,
                "style": {
                    "width": child.data.get_extra("originalWidth"),
                    "height": None,
                },
                "data": {
                    "collapsed": False,
                    "handlePosition": "top-bottom",
                    "enableResize": True,
                },
            },
        )
    ]


VERTICAL_STACK_BEHAVIOR = NodeBehavior(
    on_layout=stack_on_layout,
    on_collapse=stack_on_collapse,
    on_child_add=stack_on_child_add,
    on_child_remove=stack_on_child_remove,
)
