"""Interaction system: guarded connections, drag undocking and auto-docking."""
from typing import TYPE_CHECKING, Optional, Union

import structlog

from canvas_engine.engine.layout import effective_size
from canvas_engine.engine.topology import is_node_inside_group
from canvas_engine.engine.types import ConnectionContext
from canvas_engine.models.graph import GraphState, Node, Position
from canvas_engine.ports.resolver import DEFAULT_SOURCE_HANDLE, resolve_port
from canvas_engine.ports.types import ConnectionValidation
from canvas_engine.ports.validator import Connection, validate_connection, would_create_cycle

if TYPE_CHECKING:
    from canvas_engine.engine.graph_engine import GraphEngine

logger = structlog.get_logger()

CYCLE_MESSAGE = "Connection would create a cycle"
CONTAINER_CATEGORY = "Container"


def schemas_match(a: Node, b: Node, state: GraphState) -> bool:
    """Two record nodes match when their schemas declare the same field keys."""
    asset_a = state.asset_for(a)
    asset_b = state.asset_for(b)
    if asset_a is None or asset_b is None:
        return False

    schema_a = asset_a.config.get("schema")
    schema_b = asset_b.config.get("schema")
    if not isinstance(schema_a, list) or not isinstance(schema_b, list):
        return False
    if len(schema_a) != len(schema_b):
        return False

    return asset_a.schema_keys == asset_b.schema_keys


class InteractionSystem:
    """User gestures translated into engine primitives."""

    def __init__(self, engine: "GraphEngine"):
        self.engine = engine

    # =========================================================================
    # Connections
    # =========================================================================

    def connect(self, connection: Union[Connection, dict]) -> ConnectionValidation:
        """
        Create an edge if it is acyclic and valid, then auto-fill the target.

        The target behavior's ``on_connect`` may return a field patch, which
        is written into the target asset's value.
        """
        if isinstance(connection, dict):
            connection = Connection.model_validate(connection)

        state = self.engine.state
        source = state.get_node(connection.source)
        target = state.get_node(connection.target)
        if source is None or target is None:
            return self._reject(connection, "Node not found")

        if would_create_cycle(state.nodes, state.edges, connection):
            return self._reject(connection, CYCLE_MESSAGE)

        result = validate_connection(
            connection,
            state,
            ports=self.engine.ports,
            behaviors=self.engine.behaviors,
        )
        if not result.valid:
            return result

        edge_id = self.engine.connect_edge(
            connection.source,
            connection.target,
            source_handle=connection.source_handle,
            target_handle=connection.target_handle,
        )
        edge = next((e for e in self.engine.state.edges if e.id == edge_id), None)

        behavior = self.engine.behaviors.get_by_type(target.type)
        if edge is not None and behavior.on_connect:
            self._auto_fill(source, target, edge, behavior)

        logger.info(
            "connection_created",
            edge_id=edge_id,
            source=connection.source,
            target=connection.target,
        )
        return result

    def _auto_fill(self, source: Node, target: Node, edge, behavior) -> None:
        state = self.engine.state
        context = self.engine.context()
        source_asset = state.asset_for(source)
        target_asset = state.asset_for(target)

        ctx = ConnectionContext(
            source_node=source,
            target_node=target,
            edge=edge,
            source_asset=source_asset,
            target_asset=target_asset,
            source_port_value=resolve_port(
                source,
                source_asset,
                edge.source_handle or DEFAULT_SOURCE_HANDLE,
                ports=self.engine.ports,
                behaviors=self.engine.behaviors,
                context=context,
            ),
            engine=context,
        )
        field_patch = behavior.on_connect(ctx)
        if not field_patch or target_asset is None:
            return

        current = target_asset.value if isinstance(target_asset.value, dict) else {}
        self.engine.assets.update(target_asset.id, {**current, **field_patch})
        logger.debug("target_auto_filled", node_id=target.id, fields=sorted(field_patch))

    @staticmethod
    def _reject(connection: Connection, message: str) -> ConnectionValidation:
        logger.info(
            "connection_rejected",
            source=connection.source,
            target=connection.target,
            target_handle=connection.target_handle,
            reason=message,
        )
        return ConnectionValidation(valid=False, message=message)

    # =========================================================================
    # Dragging
    # =========================================================================

    def on_node_drag(self, node_id: str, position: Union[Position, dict]) -> bool:
        """
        Move a node during a drag.

        A follower dragged too far from its master's bottom edge, or too far
        sideways, is undocked.

        Returns:
            True if the node was undocked
        """
        node = self.engine.get_node(node_id)
        if node is None:
            logger.warning("node_not_found", node_id=node_id, operation="drag")
            return False

        position = Position.model_validate(position)
        master = self.engine.get_node(node.data.docked_to) if node.data.docked_to else None

        if master is not None:
            threshold = self.engine.settings.undock_threshold
            _, master_height = effective_size(master, self.engine.settings)
            distance = abs(position.y - (master.position.y + master_height))
            x_distance = abs(position.x - master.position.x)

            if distance > threshold or x_distance > threshold:
                self.engine.update_node(
                    node_id,
                    {"position": position.model_dump(), "data": {"docked_to": None}},
                )
                logger.info("node_undocked", node_id=node_id, master_id=master.id)
                return True

        # Plain drag: no layout until the drag stops
        nodes = [
            n.model_copy(update={"position": position}) if n.id == node_id else n
            for n in self.engine.state.nodes
        ]
        self.engine.set_nodes(nodes)
        return False

    def on_node_drag_stop(self, node_id: str) -> Optional[str]:
        """
        Finish a drag: auto-dock onto a matching node, or drop into a container.

        Returns:
            Id of the master or container the node attached to, if any
        """
        node = self.engine.get_node(node_id)
        if node is None:
            logger.warning("node_not_found", node_id=node_id, operation="drag_stop")
            return None

        if self.engine.registry.is_dockable(node.type):
            target = self.find_dock_target(node)
            if target is not None:
                self.dock(node, target)
                return target.id

        if node.parent_id:
            return None

        container = self.find_drop_container(node)
        if container is not None:
            self.engine.reparent_node(node.id, container.id)
            return container.id
        return None

    def find_dock_target(self, node: Node) -> Optional[Node]:
        """Nearest root node of the same kind whose bottom edge meets ``node``'s top."""
        settings = self.engine.settings
        state = self.engine.state
        node_width, _ = effective_size(node, settings)

        best: Optional[Node] = None
        best_distance = float("inf")

        for candidate in state.nodes:
            if (
                candidate.id == node.id
                or candidate.parent_id
                or node.parent_id
                or candidate.data.has_docked_follower
                or not self.engine.registry.is_dockable(candidate.type)
            ):
                continue

            width, height = effective_size(candidate, settings)
            x_overlap = min(node.position.x + node_width, candidate.position.x + width) - max(
                node.position.x, candidate.position.x
            )
            if x_overlap < node_width * settings.dock_min_overlap_ratio:
                continue

            distance = abs(node.position.y - (candidate.position.y + height))
            if distance < settings.dock_threshold and distance < best_distance:
                if schemas_match(node, candidate, state):
                    best = candidate
                    best_distance = distance

        return best

    def dock(self, node: Node, master: Node) -> None:
        """Snap ``node`` beneath ``master`` and link it as a follower."""
        width, height = effective_size(master, self.engine.settings)
        self.engine.update_node(
            node.id,
            {
                "position": {"x": master.position.x, "y": master.position.y + height},
                "width": width,
                "style": {"width": width},
                "data": {"docked_to": master.id},
            },
        )
        logger.info("node_docked", node_id=node.id, master_id=master.id)

    def find_drop_container(self, node: Node) -> Optional[Node]:
        """Topmost root container that ``node`` overlaps enough to join."""
        ratio = self.engine.settings.group_overlap_ratio
        containers = [
            n
            for n in self.engine.state.nodes
            if n.id != node.id and not n.parent_id and self._is_container(n)
        ]
        for container in reversed(containers):
            if is_node_inside_group(node, container, ratio):
                return container
        return None

    def _is_container(self, node: Node) -> bool:
        meta = self.engine.registry.get_meta(node.type)
        return bool(meta and meta.category == CONTAINER_CATEGORY)
