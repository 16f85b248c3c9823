"""Connection validation and cycle detection.

Rejections are returned as ``ConnectionValidation(valid=False, message=...)``
so callers can show them inline; nothing here raises.
"""
from typing import Any, Optional

import structlog

from canvas_engine.engine.behavior_registry import BehaviorRegistry, get_behavior_registry
from canvas_engine.engine.types import ConnectionContext
from canvas_engine.models.graph import CanvasModel, Edge, GraphState, Node
from canvas_engine.ports.registry import PortRegistry, get_port_registry
from canvas_engine.ports.resolver import DEFAULT_SOURCE_HANDLE, resolve_port, state_context
from canvas_engine.ports.types import (
    FIELD_PORT_PREFIX,
    ConnectionValidation,
    PortDataType,
    PortDirection,
    is_type_compatible,
)

logger = structlog.get_logger()

# Handles that carry a whole node rather than a single input field
SEMANTIC_HANDLES = ("origin", "product", "output", "trigger", "array", "reference")


class Connection(CanvasModel):
    """A proposed edge."""

    source: str
    target: str
    source_handle: Optional[str] = None
    target_handle: Optional[str] = None


def is_field_level_input(handle_id: Optional[str]) -> bool:
    """Check if a handle is a field-level input (not semantic)."""
    if not handle_id:
        return False
    if handle_id in SEMANTIC_HANDLES:
        return False
    # field:xxx handles are outputs
    if handle_id.startswith(FIELD_PORT_PREFIX):
        return False
    return True


def is_empty_value(value: Any) -> bool:
    """None, empty string and empty containers count as empty."""
    if value is None:
        return True
    if isinstance(value, (str, list, dict)) and len(value) == 0:
        return True
    return False


def _reject(connection: Connection, message: str) -> ConnectionValidation:
    logger.info(
        "connection_rejected",
        source=connection.source,
        target=connection.target,
        target_handle=connection.target_handle,
        reason=message,
    )
    return ConnectionValidation(valid=False, message=message)


def validate_connection(
    connection: Connection,
    state: GraphState,
    ports: Optional[PortRegistry] = None,
    behaviors: Optional[BehaviorRegistry] = None,
) -> ConnectionValidation:
    """
    Validate a proposed connection before it is created.

    Both nodes must exist. Semantic target handles, and inputs declared
    ``semantic`` in the port registry, then always pass. For field-level
    inputs:
    1. The field must not already have an incoming edge
    2. The source port must resolve to a value
    3. A declared source port ``validator`` must accept that value
    4. A declared target input port must accept the value's data type
    5. A JSON object source must be non-empty, and if it carries the target
       key that entry must be non-empty (unknown keys pass the whole object)
    6. Any other source value must be non-empty
    Finally the target behavior's ``can_connect`` hook may veto.
    """
    ports = ports or get_port_registry()
    behaviors = behaviors or get_behavior_registry()

    source_node = state.get_node(connection.source)
    target_node = state.get_node(connection.target)
    if source_node is None or target_node is None:
        return _reject(connection, "Node not found")

    source_asset = state.asset_for(source_node)
    target_asset = state.asset_for(target_node)
    target_handle = connection.target_handle
    if not is_field_level_input(target_handle):
        return ConnectionValidation(valid=True)

    target_port = ports.get_port(target_node, target_asset, target_handle)
    if target_port is not None and target_port.semantic:
        return ConnectionValidation(valid=True)

    for edge in state.edges:
        if edge.target == connection.target and edge.target_handle == target_handle:
            return _reject(connection, f"Field '{target_handle}' already has a connection")

    source_handle = connection.source_handle or DEFAULT_SOURCE_HANDLE
    context = state_context(state)
    port_value = resolve_port(
        source_node,
        source_asset,
        source_handle,
        ports=ports,
        behaviors=behaviors,
        context=context,
    )
    if port_value is None:
        return _reject(connection, "Source has no value to connect")

    source_port = ports.get_port(source_node, source_asset, source_handle)
    if source_port is not None and source_port.validator and not source_port.validator(port_value):
        return _reject(connection, f"Source port '{source_handle}' rejected its value")

    if target_port is not None and target_port.direction == PortDirection.INPUT:
        if not is_type_compatible(port_value.type, target_port.data_type.value):
            return _reject(
                connection,
                f"Cannot connect {port_value.type} to {target_port.data_type.value} field '{target_handle}'",
            )

    value = port_value.value
    if port_value.type == PortDataType.JSON.value and isinstance(value, dict):
        if not value:
            return _reject(connection, "Source object is empty")
        if target_handle in value and is_empty_value(value[target_handle]):
            return _reject(connection, f"Source field '{target_handle}' is empty")
    elif is_empty_value(value):
        return _reject(connection, "Source value is empty")

    behavior = behaviors.get_by_type(target_node.type)
    if behavior.can_connect:
        conn_ctx = ConnectionContext(
            source_node=source_node,
            target_node=target_node,
            edge=Edge(
                id=f"temp-{connection.source}-{connection.target}",
                source=connection.source,
                target=connection.target,
                source_handle=connection.source_handle,
                target_handle=target_handle,
            ),
            source_asset=source_asset,
            target_asset=target_asset,
            source_port_value=port_value,
            engine=context,
        )
        error = behavior.can_connect(conn_ctx)
        if error:
            return _reject(connection, error)

    return ConnectionValidation(valid=True)


def would_create_cycle(nodes: list[Node], edges: list[Edge], candidate: Connection) -> bool:
    """
    Check if adding ``candidate`` would create a cycle.

    A self-loop is always a cycle. Otherwise walk existing edges depth
    first from the candidate's target; reaching its source means a cycle.
    """
    source, target = candidate.source, candidate.target
    if source == target:
        return True

    outgoing: dict[str, list[str]] = {}
    for edge in edges:
        outgoing.setdefault(edge.source, []).append(edge.target)

    visited: set[str] = set()
    stack = [target]
    while stack:
        node_id = stack.pop()
        if node_id == source:
            return True
        if node_id in visited:
            continue
        visited.add(node_id)
        stack.extend(outgoing.get(node_id, []))

    return False

