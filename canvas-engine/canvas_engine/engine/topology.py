"""Topology utilities over the parent/child relation.

All functions are pure and total: a ``parent_id`` that names a missing node
makes the node a root, and parent cycles introduced by a bug never hang a
traversal.
"""
import copy
from collections import deque
from typing import Optional

import structlog

from canvas_engine.models.graph import Node, NodeData, NodeStyle, Position

logger = structlog.get_logger()


def sort_topologically(nodes: list[Node]) -> list[Node]:
    """
    Order nodes so every parent precedes its children.

    Roots (no parent, or a parent that does not exist) keep their input
    order and are followed breadth first by their descendants; siblings
    keep their input order too. Nodes caught in a parent cycle cannot be
    reached from any root and are appended at the end unchanged.
    """
    node_ids = {n.id for n in nodes}
    children: dict[str, list[Node]] = {}
    roots: list[Node] = []

    for node in nodes:
        if not node.parent_id or node.parent_id not in node_ids:
            roots.append(node)
        else:
            children.setdefault(node.parent_id, []).append(node)

    result: list[Node] = []
    seen: set[str] = set()
    queue = deque(roots)
    while queue:
        node = queue.popleft()
        if node.id in seen:
            continue
        seen.add(node.id)
        result.append(node)
        queue.extend(children.get(node.id, []))

    if len(result) < len(nodes):
        stranded = [n for n in nodes if n.id not in seen]
        logger.warning(
            "parent_cycle_detected",
            node_ids=[n.id for n in stranded],
        )
        result.extend(stranded)

    return result


def get_descendants(nodes: list[Node], node_id: str) -> list[Node]:
    """All nodes transitively parented under ``node_id``, breadth first."""
    children: dict[str, list[Node]] = {}
    for node in nodes:
        if node.parent_id:
            children.setdefault(node.parent_id, []).append(node)

    descendants: list[Node] = []
    visited = {node_id}
    queue = deque([node_id])
    while queue:
        current = queue.popleft()
        for child in children.get(current, []):
            if child.id in visited:
                continue
            visited.add(child.id)
            descendants.append(child)
            queue.append(child.id)

    return descendants


def compute_depths(nodes: list[Node]) -> dict[str, int]:
    """Distance of every node from its root along ``parent_id`` links."""
    by_id = {n.id: n for n in nodes}
    depths: dict[str, int] = {}

    for node in nodes:
        depth = 0
        visited = {node.id}
        current = node
        while current.parent_id and current.parent_id in by_id:
            if current.parent_id in visited:
                break
            visited.add(current.parent_id)
            current = by_id[current.parent_id]
            depth += 1
        depths[node.id] = depth

    return depths


def get_node_absolute_position(nodes: list[Node], node_id: str) -> Optional[Position]:
    """Canvas-space position of a node, summing offsets up the parent chain."""
    by_id = {n.id: n for n in nodes}
    node = by_id.get(node_id)
    if node is None:
        return None

    x, y = node.position.x, node.position.y
    visited = {node.id}
    parent_id = node.parent_id
    while parent_id and parent_id in by_id and parent_id not in visited:
        visited.add(parent_id)
        parent = by_id[parent_id]
        x += parent.position.x
        y += parent.position.y
        parent_id = parent.parent_id

    return Position(x=x, y=y)


def _box(node: Node) -> tuple[float, float]:
    width = node.measured_width or node.width or node.style.width or 0
    height = node.measured_height or node.height or node.style.height or 0
    return width, height


def is_node_inside_group(node: Node, group: Node, min_ratio: float = 0.2) -> bool:
    """Whether ``node`` overlaps ``group`` by more than ``min_ratio`` of its own area."""
    n_w, n_h = _box(node)
    g_w, g_h = _box(group)
    if not (n_w and n_h and g_w and g_h):
        return False

    n_x, n_y = node.position.x, node.position.y
    g_x, g_y = group.position.x, group.position.y

    x_overlap = max(0, min(n_x + n_w, g_x + g_w) - max(n_x, g_x))
    y_overlap = max(0, min(n_y + n_h, g_y + g_h) - max(n_y, g_y))
    overlap = x_overlap * y_overlap

    return overlap > 0 and overlap > n_w * n_h * min_ratio


def sanitize_node_for_clipboard(node: Node) -> Node:
    """Strip transient state before a node is copied or duplicated."""
    data = copy.deepcopy(node.data.model_dump())
    for key in ("collapsed", "handlePosition", "originalPosition"):
        data.pop(key, None)
    data["collapsed"] = False
    data["handlePosition"] = "top-bottom"

    style = {**node.style.model_dump(), "width": None, "height": None}

    return node.model_copy(
        update={
            "draggable": True,
            "hidden": False,
            "width": None,
            "height": None,
            "style": NodeStyle.model_validate(style),
            "data": NodeData.model_validate(data),
        }
    )
