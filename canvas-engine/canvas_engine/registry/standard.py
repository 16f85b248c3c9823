"""Standard behavior for asset nodes (text, form, image, ...).

Supplies the defaults other node types build on:
- ``resolve_output`` returns the whole asset value on ``origin``/``output``
  and a single key on ``field:<key>``
- ``on_collapse`` remembers the expanded height and restores it on expand
"""
from typing import Optional

from canvas_engine.config import get_settings
from canvas_engine.engine.types import EngineContext, NodeBehavior, NodePatch
from canvas_engine.models.graph import Asset, Node
from canvas_engine.ports.types import (
    PortDataType,
    PortValue,
    field_key,
    is_field_port,
    port_meta,
    value_type_of,
)

WHOLE_VALUE_PORTS = ("origin", "output")


def whole_value_type(value) -> str:
    if isinstance(value, list):
        return PortDataType.ARRAY.value
    if isinstance(value, dict):
        return PortDataType.JSON.value
    return PortDataType.TEXT.value


def field_value(node: Node, values, port_id: str) -> Optional[PortValue]:
    """Resolve a ``field:<key>`` port against a dict of values."""
    if not is_field_port(port_id) or not isinstance(values, dict):
        return None
    key = field_key(port_id)
    if key not in values:
        return None
    return PortValue(
        type=value_type_of(values[key]),
        value=values[key],
        meta=port_meta(node, port_id),
    )


def standard_resolve_output(
    node: Node,
    asset: Optional[Asset],
    port_id: str,
    context: Optional[EngineContext] = None,
) -> Optional[PortValue]:
    if asset is None or not asset.value:
        return None

    if port_id in WHOLE_VALUE_PORTS:
        return PortValue(
            type=whole_value_type(asset.value),
            value=asset.value,
            meta=port_meta(node, port_id),
        )

    return field_value(node, asset.value, port_id)


def standard_on_collapse(node: Node, is_collapsing: bool, context: EngineContext) -> list[NodePatch]:
    settings = get_settings()
    data: dict = {"collapsed": is_collapsing}

    if is_collapsing:
        current = node.style.height
        if current is None:
            current = node.measured_height or node.height
        if current is not None and current > settings.collapse_memory_threshold:
            data["expandedHeight"] = current
        height = settings.collapsed_height
    else:
        height = node.data.get_extra("expandedHeight") or settings.expanded_default_height

    return [
        NodePatch(
            id=node.id,
            patch={"height": height, "style": {"height": height}, "data": data},
        )
    ]


STANDARD_BEHAVIOR = NodeBehavior(
    resolve_output=standard_resolve_output,
    on_collapse=standard_on_collapse,
)
