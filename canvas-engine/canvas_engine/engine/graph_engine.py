"""Graph engine: the primitive instruction set over an injected store.

Every primitive reads a fresh snapshot from the store, builds new node and
edge lists, and writes them back. Updates that touch geometry or docking
re-run layout before the write. Unknown ids are ignored and logged.
"""
from enum import Enum
from typing import Iterable, Optional

import structlog

from canvas_engine.config import Settings, get_settings
from canvas_engine.engine.assets import AssetSystem
from canvas_engine.engine.interaction import InteractionSystem
from canvas_engine.engine.layout import LayoutSystem
from canvas_engine.engine.mutator import GraphMutator
from canvas_engine.engine.topology import (
    get_descendants,
    get_node_absolute_position,
    sort_topologically,
)
from canvas_engine.engine.types import (
    EngineContext,
    NodePatch,
    affects_layout,
    combine_patches,
    merge_node,
)
from canvas_engine.models.graph import Edge, GraphState, Node, Position
from canvas_engine.ports.resolver import state_context
from canvas_engine.registry.nodes import NodeRegistry, get_node_registry
from canvas_engine.store import GraphStore

logger = structlog.get_logger()


class SelectionMode(str, Enum):
    """How ``select_nodes`` combines with the current selection."""
    REPLACE = "replace"
    APPEND = "append"
    TOGGLE = "toggle"


def edge_id_for(
    source: str,
    target: str,
    source_handle: Optional[str] = None,
    target_handle: Optional[str] = None,
) -> str:
    """Deterministic edge id for an endpoint pair."""
    return f"e-{source}-{source_handle or ''}-{target}-{target_handle or ''}"


class GraphEngine:
    """Primitive graph operations plus the layout, asset, mutation and interaction subsystems."""

    def __init__(
        self,
        store: Optional[GraphStore] = None,
        node_registry: Optional[NodeRegistry] = None,
        settings: Optional[Settings] = None,
    ):
        self.store = store or GraphStore()
        self.registry = node_registry or get_node_registry()
        self.settings = settings or get_settings()

        self.layout = LayoutSystem(self)
        self.assets = AssetSystem(self)
        self.mutator = GraphMutator(self)
        self.interaction = InteractionSystem(self)

    @property
    def behaviors(self):
        return self.registry.behaviors

    @property
    def ports(self):
        return self.registry.ports

    @property
    def state(self) -> GraphState:
        return self.store.get_state()

    def set_nodes(self, nodes: list[Node]) -> None:
        self.store.set_nodes(nodes)

    def set_edges(self, edges: list[Edge]) -> None:
        self.store.set_edges(edges)

    def context(self) -> EngineContext:
        return state_context(self.state)

    def get_node(self, node_id: str) -> Optional[Node]:
        return self.state.get_node(node_id)

    # =========================================================================
    # Node updates
    # =========================================================================

    def update_node(self, node_id: str, patch: dict) -> None:
        """Patch one node (``style``/``data`` merged shallowly)."""
        self.update_nodes([NodePatch(id=node_id, patch=patch)])

    def update_nodes(self, updates: Iterable[NodePatch]) -> None:
        """
        Patch several nodes at once.

        Patches for the same id accumulate in order, later keys winning, so
        one hook's partial ``style`` or ``data`` never erases another's.
        """
        state = self.state
        known = {n.id for n in state.nodes}

        accumulated: dict[str, dict] = {}
        for update in updates:
            if update.id not in known:
                logger.warning("node_not_found", node_id=update.id, operation="update")
                continue
            accumulated[update.id] = combine_patches(accumulated.get(update.id, {}), update.patch)

        if not accumulated:
            return

        nodes = [
            merge_node(n, accumulated[n.id]) if n.id in accumulated else n
            for n in state.nodes
        ]
        if any(affects_layout(patch) for patch in accumulated.values()):
            nodes = self.layout.fix_global_layout(nodes)

        self.set_nodes(nodes)

    def apply_patches(self, patches: list[NodePatch]) -> None:
        """Apply behavior hook output."""
        if patches:
            self.update_nodes(patches)

    def move_node(self, node_id: str, position: Position | dict) -> None:
        """Move a node (position is relative to its current parent)."""
        if isinstance(position, Position):
            position = position.model_dump()
        self.update_node(node_id, {"position": position})

    def resize_node(
        self,
        node_id: str,
        width: Optional[float] = None,
        height: Optional[float] = None,
    ) -> None:
        self.update_node(
            node_id,
            {
                "width": width,
                "height": height,
                "style": {"width": width, "height": height},
            },
        )

    def lock_node(self, node_id: str, locked: bool) -> None:
        self.update_node(
            node_id,
            {
                "draggable": not locked,
                "selectable": not locked,
                "connectable": not locked,
                "data": {"locked": locked},
            },
        )

    def set_node_visibility(self, node_id: str, visible: bool) -> None:
        self.update_node(node_id, {"hidden": not visible})

    # =========================================================================
    # Deletion
    # =========================================================================

    def delete_nodes(self, node_ids: Iterable[str]) -> list[str]:
        """
        Delete nodes, their descendants and every edge touching them.

        Returns:
            Ids actually removed
        """
        state = self.state
        to_delete: set[str] = set()
        for node_id in node_ids:
            if state.get_node(node_id) is None:
                logger.warning("node_not_found", node_id=node_id, operation="delete")
                continue
            to_delete.add(node_id)
            to_delete.update(n.id for n in get_descendants(state.nodes, node_id))

        if not to_delete:
            return []

        edges = [e for e in state.edges if e.source not in to_delete and e.target not in to_delete]
        nodes = [n for n in state.nodes if n.id not in to_delete]
        nodes = self.layout.fix_global_layout(nodes)

        self.store.set_graph(nodes, edges)

        logger.info("nodes_deleted", count=len(to_delete))
        return [n.id for n in state.nodes if n.id in to_delete]

    # =========================================================================
    # Selection
    # =========================================================================

    def select_nodes(self, node_ids: Iterable[str], mode: SelectionMode | str = SelectionMode.REPLACE) -> None:
        mode = SelectionMode(mode)
        targets = set(node_ids)

        nodes = []
        for node in self.state.nodes:
            is_target = node.id in targets
            selected = node.selected
            if mode == SelectionMode.REPLACE:
                selected = is_target
            elif mode == SelectionMode.APPEND:
                selected = selected or is_target
            elif is_target:
                selected = not selected

            if selected != node.selected:
                node = node.model_copy(update={"selected": selected})
            nodes.append(node)

        self.set_nodes(nodes)

    def deselect_all(self) -> None:
        self.select_nodes([], SelectionMode.REPLACE)

    # =========================================================================
    # Edges
    # =========================================================================

    def connect_edge(
        self,
        source: str,
        target: str,
        source_handle: Optional[str] = None,
        target_handle: Optional[str] = None,
        edge_type: Optional[str] = None,
        data: Optional[dict] = None,
    ) -> Optional[str]:
        """
        Add an edge between two existing nodes.

        An identical edge (same endpoints and handles) is not added twice.

        Returns:
            The edge id, or None if an endpoint does not exist
        """
        state = self.state
        for node_id in (source, target):
            if state.get_node(node_id) is None:
                logger.warning("node_not_found", node_id=node_id, operation="connect")
                return None

        for edge in state.edges:
            if (
                edge.source == source
                and edge.target == target
                and edge.source_handle == source_handle
                and edge.target_handle == target_handle
            ):
                return edge.id

        edge = Edge(
            id=edge_id_for(source, target, source_handle, target_handle),
            source=source,
            target=target,
            source_handle=source_handle,
            target_handle=target_handle,
            type=edge_type,
            data=data,
        )
        self.set_edges([*state.edges, edge])
        return edge.id

    def connect_output_edge(
        self,
        source: str,
        target: str,
        source_handle: Optional[str] = None,
        target_handle: Optional[str] = None,
    ) -> Optional[str]:
        """Add a product edge from a recipe to a node it produced."""
        return self.connect_edge(
            source,
            target,
            source_handle=source_handle or "product",
            target_handle=target_handle or "input",
            edge_type="output",
            data={"edgeType": "output"},
        )

    def disconnect(self, edge_id: str) -> None:
        edges = [e for e in self.state.edges if e.id != edge_id]
        self.set_edges(edges)

    def get_connected_edges(self, node_id: str) -> list[Edge]:
        return [e for e in self.state.edges if node_id in (e.source, e.target)]

    def clean_node_edges(self, node_id: str) -> None:
        """Remove every edge touching a node."""
        connected = {e.id for e in self.get_connected_edges(node_id)}
        if connected:
            self.set_edges([e for e in self.state.edges if e.id not in connected])

    def incoming_edge(self, node_id: str, target_handle: str) -> Optional[Edge]:
        for edge in self.state.edges:
            if edge.target == node_id and edge.target_handle == target_handle:
                return edge
        return None

    # =========================================================================
    # Hierarchy
    # =========================================================================

    def get_node_absolute_position(self, node_id: str) -> Optional[Position]:
        return get_node_absolute_position(self.state.nodes, node_id)

    def reparent_node(self, node_id: str, new_parent_id: Optional[str]) -> None:
        self.reparent_nodes([node_id], new_parent_id)

    def reparent_nodes(self, node_ids: Iterable[str], new_parent_id: Optional[str]) -> None:
        """
        Move nodes under a new parent (or to the root) keeping their canvas position.

        Per node, patches are collected in order: the old parent's
        ``on_child_remove``, the coordinate transform, then the new parent's
        ``on_child_add``, so container hooks win over the plain transform.
        All patches are applied in one batch before layout and re-sorting.
        """
        state = self.state
        ids = set(node_ids)
        targets = [n for n in state.nodes if n.id in ids]
        if not targets:
            return

        context = self.context()
        new_parent = state.get_node(new_parent_id) if new_parent_id else None
        if new_parent_id and new_parent is None:
            logger.warning("node_not_found", node_id=new_parent_id, operation="reparent")
            new_parent_id = None

        origin = Position()
        if new_parent is not None:
            origin = get_node_absolute_position(state.nodes, new_parent.id) or origin

        accumulated: dict[str, dict] = {}

        def collect(patches: list[NodePatch]) -> None:
            for p in patches:
                accumulated[p.id] = combine_patches(accumulated.get(p.id, {}), p.patch)

        for node in targets:
            if node.parent_id == new_parent_id:
                continue
            if new_parent_id and (
                node.id == new_parent_id
                or new_parent_id in {d.id for d in get_descendants(state.nodes, node.id)}
            ):
                logger.warning("parent_cycle_detected", node_id=node.id, parent_id=new_parent_id)
                continue

            old_parent = state.get_node(node.parent_id)
            if old_parent is not None:
                behavior = self.behaviors.get_by_type(old_parent.type)
                if behavior.on_child_remove:
                    collect(behavior.on_child_remove(old_parent, node, context) or [])

            absolute = get_node_absolute_position(state.nodes, node.id) or node.position
            collect([
                NodePatch(
                    id=node.id,
                    patch={
                        "parent_id": new_parent_id,
                        "position": {"x": absolute.x - origin.x, "y": absolute.y - origin.y},
                        "extent": "parent" if new_parent_id else None,
                    },
                )
            ])

            if new_parent is not None:
                behavior = self.behaviors.get_by_type(new_parent.type)
                if behavior.on_child_add:
                    collect(behavior.on_child_add(new_parent, node, context) or [])

        if not accumulated:
            return

        nodes = [
            merge_node(n, accumulated[n.id]) if n.id in accumulated else n
            for n in state.nodes
        ]
        nodes = self.layout.fix_global_layout(nodes)
        self.set_nodes(sort_topologically(nodes))

        logger.info("nodes_reparented", node_ids=sorted(ids), parent_id=new_parent_id)
