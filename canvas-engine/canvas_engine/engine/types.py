"""Behavior contract and node patch helpers.

A behavior is a bundle of optional hooks that customize how a node type
takes part in layout and data flow. Hooks never mutate nodes; they return
``NodePatch`` objects that the engine merges. ``style`` and ``data`` are
merged shallowly so one hook's patch cannot erase another's.
"""
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Optional

from canvas_engine.models.graph import Asset, Edge, Node, NodeData, NodeStyle

if TYPE_CHECKING:
    from canvas_engine.ports.types import PortValue

NESTED_KEYS = ("style", "data")

# Patch keys whose change requires a layout pass
GEOMETRY_KEYS = ("position", "width", "height", "measured", "style")
GEOMETRY_DATA_KEYS = ("collapsed", "docked_to", "has_docked_follower")


@dataclass
class NodePatch:
    """Partial update for one node. Keys are Node field names."""

    id: str
    patch: dict = field(default_factory=dict)


@dataclass
class EngineContext:
    """Read access to the current graph, handed to behavior hooks."""

    get_nodes: Callable[[], list[Node]]
    get_node: Callable[[str], Optional[Node]]
    get_asset: Callable[[Optional[str]], Optional[Asset]] = lambda asset_id: None

    def children_of(self, parent_id: str) -> list[Node]:
        return [n for n in self.get_nodes() if n.parent_id == parent_id]


@dataclass
class ConnectionContext:
    """Everything a behavior needs to judge or react to a new edge."""

    source_node: Node
    target_node: Node
    edge: Edge
    source_asset: Optional[Asset] = None
    target_asset: Optional[Asset] = None
    source_port_value: Optional["PortValue"] = None
    engine: Optional[EngineContext] = None


@dataclass
class NodeBehavior:
    """Optional hooks for one node type. ``None`` means not implemented."""

    on_layout: Optional[Callable[[Node, list[Node], EngineContext], list[NodePatch]]] = None
    on_collapse: Optional[Callable[[Node, bool, EngineContext], list[NodePatch]]] = None
    # (node, asset, port_id, context) -> PortValue | None
    resolve_output: Optional[Callable[..., Optional["PortValue"]]] = None
    on_connect: Optional[Callable[[ConnectionContext], Optional[dict]]] = None
    can_connect: Optional[Callable[[ConnectionContext], Optional[str]]] = None
    on_child_add: Optional[Callable[[Node, Node, EngineContext], list[NodePatch]]] = None
    on_child_remove: Optional[Callable[[Node, Node, EngineContext], list[NodePatch]]] = None


def _field_names(model_cls) -> dict[str, str]:
    """Map both alias and field name to the field name."""
    names = {}
    for name, info in model_cls.model_fields.items():
        names[name] = name
        if info.alias:
            names[info.alias] = name
    return names


_NODE_KEYS = _field_names(Node)
_STYLE_KEYS = _field_names(NodeStyle)
_DATA_KEYS = _field_names(NodeData)


def _as_dict(value: Any) -> dict:
    if value is None:
        return {}
    if hasattr(value, "model_dump"):
        return value.model_dump(exclude_unset=True)
    return dict(value)


def _normalize(mapping: dict, names: dict[str, str]) -> dict:
    return {names.get(k, k): v for k, v in mapping.items()}


def normalize_patch(patch: dict) -> dict:
    """Canonicalize camelCase keys to field names, at both levels."""
    result = _normalize(patch, _NODE_KEYS)
    if "style" in result:
        result["style"] = _normalize(_as_dict(result["style"]), _STYLE_KEYS)
    if "data" in result:
        result["data"] = _normalize(_as_dict(result["data"]), _DATA_KEYS)
    return result


def combine_patches(first: dict, second: dict) -> dict:
    """Accumulate two patches for the same node; ``second`` wins per key."""
    first = normalize_patch(first)
    second = normalize_patch(second)
    combined = {**first, **second}
    for key in NESTED_KEYS:
        if key in first or key in second:
            combined[key] = {**first.get(key, {}), **second.get(key, {})}
    return combined


def merge_node(node: Node, patch: dict) -> Node:
    """Return a new node with ``patch`` applied (nested dicts merged shallowly)."""
    if not patch:
        return node
    patch = normalize_patch(patch)
    base = node.model_dump()
    merged = {**base, **{k: v for k, v in patch.items() if k not in NESTED_KEYS}}
    for key in NESTED_KEYS:
        if key in patch:
            merged[key] = {**base[key], **patch[key]}
    return Node.model_validate(merged)


def affects_layout(patch: dict) -> bool:
    """Whether applying ``patch`` can change geometry or docking."""
    patch = normalize_patch(patch)
    if any(key in patch for key in GEOMETRY_KEYS):
        return True
    data = patch.get("data") or {}
    return any(key in data for key in GEOMETRY_DATA_KEYS)
