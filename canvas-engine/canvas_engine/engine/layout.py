"""Layout system: container layout and docking propagation.

Layout runs after every structural or geometric mutation, as two ordered
passes over the node list:

1. ``fix_global_layout`` lays out containers bottom-up (deepest first)
   through each behavior's ``on_layout`` hook, over a simulation map, so a
   container always sees its children in their already-settled state.
2. ``fix_docking_layout`` then propagates docking top-down: every follower
   is placed directly beneath its master at the master's width.

Docking reads a master's final geometry, so containers always go first.
Both passes are total: missing masters, missing parents and cycles leave
the affected nodes where they are.
"""
from typing import TYPE_CHECKING, Optional

import structlog

from canvas_engine.config import Settings, get_settings
from canvas_engine.engine.topology import compute_depths
from canvas_engine.engine.types import EngineContext, NodePatch, merge_node
from canvas_engine.models.graph import Node

if TYPE_CHECKING:
    from canvas_engine.engine.graph_engine import GraphEngine

logger = structlog.get_logger()


def _first_set(*values: Optional[float]) -> Optional[float]:
    for value in values:
        if value is not None:
            return value
    return None


def effective_size(node: Node, settings: Optional[Settings] = None) -> tuple[float, float]:
    """
    Visual (width, height) of a docking master.

    A collapsed node is as tall as its rendered header; an expanded one
    prefers its explicit style height over what the renderer measured.
    """
    settings = settings or get_settings()

    if node.data.collapsed:
        height = _first_set(node.measured_height, settings.collapsed_header_height)
    else:
        height = _first_set(
            node.style.height,
            node.measured_height,
            node.height,
            settings.default_node_height,
        )

    width = _first_set(
        node.style.width,
        node.measured_width,
        node.width,
        settings.default_node_width,
    )
    return width, height


class LayoutSystem:
    """Container layout, docking and collapse handling for a GraphEngine."""

    def __init__(self, engine: "GraphEngine"):
        self.engine = engine

    @property
    def settings(self) -> Settings:
        return self.engine.settings

    # =========================================================================
    # Collapse
    # =========================================================================

    def toggle_node_collapse(self, node_id: str) -> None:
        """Flip a node's collapsed state and reflow the graph."""
        state = self.engine.state
        node = state.get_node(node_id)
        if node is None:
            logger.warning("node_not_found", node_id=node_id, operation="toggle_collapse")
            return

        is_collapsing = not node.data.collapsed
        behavior = self.engine.behaviors.get_by_type(node.type)

        if behavior.on_collapse:
            context = self._context(state.nodes)
            patches = behavior.on_collapse(node, is_collapsing, context) or []
        else:
            patches = [self._default_collapse_patch(node, is_collapsing)]

        nodes = self.apply_patches(state.nodes, patches)
        nodes = self.fix_global_layout(nodes)

        logger.info(
            "node_collapse_toggled",
            node_id=node_id,
            node_type=node.type,
            collapsed=is_collapsing,
        )
        self.engine.set_nodes(nodes)

    def _default_collapse_patch(self, node: Node, is_collapsing: bool) -> NodePatch:
        patch: dict = {"data": {"collapsed": is_collapsing}}
        # An expanded node with no explicit height would otherwise render at zero
        if not is_collapsing and node.style.height is None:
            patch["style"] = {"height": self.settings.expanded_default_height}
        return NodePatch(id=node.id, patch=patch)

    # =========================================================================
    # Pass A: containers, bottom-up
    # =========================================================================

    def fix_global_layout(self, nodes: list[Node]) -> list[Node]:
        """Lay out every container deepest first, then run the docking pass."""
        depths = compute_depths(nodes)
        simulation: dict[str, Node] = {n.id: n for n in nodes}
        context = self._simulation_context(simulation)

        # sorted() is stable, so equal depths keep list order
        for node in sorted(nodes, key=lambda n: depths[n.id], reverse=True):
            behavior = self.engine.behaviors.get_by_type(node.type)
            if behavior.on_layout is None:
                continue

            container = simulation[node.id]
            children = [n for n in simulation.values() if n.parent_id == container.id]
            patches = behavior.on_layout(container, children, context) or []

            for patch in patches:
                current = simulation.get(patch.id)
                if current is None:
                    continue
                simulation[patch.id] = merge_node(current, patch.patch)

        return self.fix_docking_layout(list(simulation.values()))

    # =========================================================================
    # Pass B: docking, top-down
    # =========================================================================

    def fix_docking_layout(self, nodes: list[Node]) -> list[Node]:
        """Place every follower beneath its master and recompute follower flags."""
        simulation: dict[str, Node] = {}
        for node in nodes:
            if node.data.has_docked_follower:
                node = merge_node(node, {"data": {"has_docked_follower": False}})
            simulation[node.id] = node

        followers: dict[str, list[str]] = {}
        for node in simulation.values():
            master_id = node.data.docked_to
            if master_id and master_id != node.id and master_id in simulation:
                followers.setdefault(master_id, []).append(node.id)

        if not followers:
            return list(simulation.values())

        # The flag is derived purely from sibling followers
        for master_id, follower_ids in followers.items():
            master = simulation[master_id]
            if any(simulation[f].parent_id == master.parent_id for f in follower_ids):
                simulation[master_id] = merge_node(master, {"data": {"has_docked_follower": True}})

        top_level = [
            master_id
            for master_id in followers
            if not self._is_docked(simulation[master_id], simulation)
        ]
        if not top_level:
            logger.warning("docking_cycle_detected", master_ids=list(followers.keys()))

        for master_id in top_level:
            self._update_followers(master_id, simulation, followers, set())

        return list(simulation.values())

    def _update_followers(
        self,
        master_id: str,
        simulation: dict[str, Node],
        followers: dict[str, list[str]],
        stack: set[str],
    ) -> None:
        if master_id in stack:
            logger.warning("docking_cycle_detected", master_id=master_id)
            return
        stack = stack | {master_id}

        follower_ids = followers.get(master_id)
        if not follower_ids:
            return

        master = simulation[master_id]
        width, height = effective_size(master, self.settings)

        for follower_id in follower_ids:
            follower = simulation[follower_id]
            if follower.parent_id != master.parent_id:
                logger.debug(
                    "cross_parent_dock_ignored",
                    master_id=master_id,
                    follower_id=follower_id,
                )
                continue

            simulation[follower_id] = merge_node(
                follower,
                {
                    "position": {"x": master.position.x, "y": master.position.y + height},
                    "width": width,
                    "style": {"width": width},
                },
            )
            self._update_followers(follower_id, simulation, followers, stack)

    @staticmethod
    def _is_docked(node: Node, simulation: dict[str, Node]) -> bool:
        docked_to = node.data.docked_to
        return bool(docked_to) and docked_to in simulation

    # =========================================================================
    # Helpers
    # =========================================================================

    @staticmethod
    def apply_patches(nodes: list[Node], patches: list[NodePatch]) -> list[Node]:
        """Merge patches into a node list; patches for unknown ids are dropped."""
        by_id = {n.id: n for n in nodes}
        for patch in patches:
            if patch.id in by_id:
                by_id[patch.id] = merge_node(by_id[patch.id], patch.patch)
        return [by_id[n.id] for n in nodes]

    def _context(self, nodes: list[Node]) -> EngineContext:
        by_id = {n.id: n for n in nodes}
        return EngineContext(
            get_nodes=lambda: list(nodes),
            get_node=by_id.get,
            get_asset=self.engine.state.get_asset,
        )

    def _simulation_context(self, simulation: dict[str, Node]) -> EngineContext:
        return EngineContext(
            get_nodes=lambda: list(simulation.values()),
            get_node=simulation.get,
            get_asset=self.engine.state.get_asset,
        )
