"""Port resolution: what value flows out of a port and into a field.

``resolve_port`` dispatches in order:
1. A resolver declared for the exact port (port registry, then the node
   behavior's ``resolve_output``)
2. ``field:<key>`` ports read the key from the asset's structured value
3. Semantic ports return the asset's whole structured value, or its
   scalar ``text``/``url`` content
4. Otherwise None

``resolve_input_value`` is a best-effort heuristic matcher, not a
type-safe mapping: callers that need exact semantics should connect to a
target field whose key exactly matches a source key.
"""
from typing import Any, Optional

import structlog

from canvas_engine.engine.behavior_registry import BehaviorRegistry, get_behavior_registry
from canvas_engine.engine.types import EngineContext
from canvas_engine.models.graph import Asset, Edge, GraphState, Node
from canvas_engine.ports.registry import PortRegistry, get_port_registry
from canvas_engine.ports.types import (
    PortDataType,
    PortDirection,
    PortValue,
    field_key,
    image_value,
    is_field_port,
    json_value,
    port_meta,
    text_value,
    value_type_of,
)

logger = structlog.get_logger()

DEFAULT_SOURCE_HANDLE = "origin"

# Minimum source key length for the fuzzy field-name rules
SUFFIX_MATCH_MIN_LENGTH = 3
CONTAINS_MATCH_MIN_LENGTH = 4


def state_context(state: GraphState) -> EngineContext:
    """Read-only engine context over a graph snapshot."""
    return EngineContext(
        get_nodes=lambda: list(state.nodes),
        get_node=state.get_node,
        get_asset=state.get_asset,
    )


def resolve_port(
    node: Node,
    asset: Optional[Asset],
    port_id: str,
    ports: Optional[PortRegistry] = None,
    behaviors: Optional[BehaviorRegistry] = None,
    context: Optional[EngineContext] = None,
) -> Optional[PortValue]:
    """Resolve the value currently exposed by a node's output port."""
    ports = ports or get_port_registry()
    behaviors = behaviors or get_behavior_registry()

    port = ports.get_port(node, asset, port_id)
    if port and port.direction == PortDirection.OUTPUT and port.resolver:
        return port.resolver(node, asset)

    behavior = behaviors.get_by_type(node.type)
    if behavior.resolve_output:
        resolved = behavior.resolve_output(node, asset, port_id, context)
        if resolved is not None:
            return resolved

    content = asset.value if asset else None
    if not content or not isinstance(content, dict):
        return None

    if is_field_port(port_id):
        key = field_key(port_id)
        values = content.get("values")
        if isinstance(values, dict) and key in values:
            return PortValue(
                type=value_type_of(values[key]),
                value=values[key],
                meta=port_meta(node, port_id),
            )
        if key == "text" and "text" in content:
            return text_value(node, port_id, content["text"])
        return None

    if ":" not in port_id:
        if content.get("values") is not None:
            return json_value(node, port_id, content["values"], schema=content.get("schema"))
        if "text" in content:
            return text_value(node, port_id, content["text"])
        if "url" in content:
            return image_value(node, port_id, content["url"])

    return None


def resolve_edge(
    edge: Edge,
    state: GraphState,
    ports: Optional[PortRegistry] = None,
    behaviors: Optional[BehaviorRegistry] = None,
) -> Optional[PortValue]:
    """Resolve the value flowing through an edge from its source port."""
    source = state.get_node(edge.source)
    if source is None:
        logger.warning("edge_source_missing", edge_id=edge.id, source=edge.source)
        return None

    return resolve_port(
        source,
        state.asset_for(source),
        edge.source_handle or DEFAULT_SOURCE_HANDLE,
        ports=ports,
        behaviors=behaviors,
        context=state_context(state),
    )


def _match_item_field(item: dict, target_key: str) -> Any:
    if target_key in item:
        return item[target_key]

    target_lower = target_key.lower()
    # First key in declaration order wins when several satisfy a rule
    for source_key in item:
        source_lower = source_key.lower()
        if target_lower.endswith(source_lower) and len(source_lower) >= SUFFIX_MATCH_MIN_LENGTH:
            return item[source_key]
        if source_lower in target_lower and len(source_lower) >= CONTAINS_MATCH_MIN_LENGTH:
            return item[source_key]

    for source_key, value in item.items():
        if isinstance(value, str) and source_key != "id":
            return value

    return item


def resolve_input_value(port_value: Optional[PortValue], target_key: str) -> Any:
    """
    Extract the best-matching sub-value of a source value for a target field.

    Arrays use their first item. For an object item the lookup tries an
    exact key, then a source key the target ends with (e.g. ``selectedName``
    <- ``name``) or contains (e.g. ``productType`` <- ``type``), then the
    first string field other than ``id``, and finally the whole item.
    JSON objects use an exact key, else the whole object. Scalars pass
    through unchanged.

    Returns:
        The extracted value, or None if nothing can flow
    """
    if port_value is None:
        return None

    value = port_value.value

    if port_value.type == PortDataType.ARRAY.value and isinstance(value, list):
        if not value:
            return None
        first = value[0]
        if isinstance(first, dict):
            return _match_item_field(first, target_key)
        return first

    if port_value.type == PortDataType.JSON.value and isinstance(value, dict):
        if target_key in value:
            return value[target_key]
        return value

    return value


def collect_input_values(
    node_id: str,
    state: GraphState,
    ports: Optional[PortRegistry] = None,
    behaviors: Optional[BehaviorRegistry] = None,
) -> dict[str, Any]:
    """Collect the value landing on each connected input field of a node."""
    result: dict[str, Any] = {}

    for edge in state.edges:
        if edge.target != node_id or not edge.target_handle:
            continue

        port_value = resolve_edge(edge, state, ports=ports, behaviors=behaviors)
        value = resolve_input_value(port_value, edge.target_handle)
        if value is not None:
            result[edge.target_handle] = value

    return result
