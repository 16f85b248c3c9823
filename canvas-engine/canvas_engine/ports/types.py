"""Port system types.

A port is a named, directional attachment point on a node. Output ports
may carry a resolver that computes the value the port exposes. Identifiers
follow a convention:
- ``field:<key>`` names a per-field output port
- identifiers without ``:`` are semantic ports (``origin``, ``output``, ...)
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional

from canvas_engine.models.graph import Asset, Node

FIELD_PORT_PREFIX = "field:"


class PortDataType(str, Enum):
    """Data types a port can carry."""
    TEXT = "text"
    JSON = "json"
    IMAGE = "image"
    VIDEO = "video"
    ARRAY = "array"
    ANY = "any"


class PortDirection(str, Enum):
    """Port direction."""
    INPUT = "input"
    OUTPUT = "output"


@dataclass
class PortValue:
    """Value exposed by a port."""

    type: str
    value: Any
    schema: Optional[list] = None
    meta: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        result = {"type": self.type, "value": self.value, "meta": self.meta}
        if self.schema is not None:
            result["schema"] = self.schema
        return result


PortResolverFn = Callable[[Node, Optional[Asset]], Optional[PortValue]]


@dataclass
class PortDefinition:
    """Declaration of one port on a node type."""

    id: str
    direction: PortDirection
    data_type: PortDataType = PortDataType.ANY
    label: str = ""
    resolver: Optional[PortResolverFn] = None
    validator: Optional[Callable[[PortValue], bool]] = None
    semantic: bool = False


@dataclass
class NodePortConfig:
    """Static ports plus an optional factory for asset-dependent ports."""

    static: list[PortDefinition] = field(default_factory=list)
    dynamic: Optional[Callable[[Node, Optional[Asset]], list[PortDefinition]]] = None


@dataclass
class ConnectionValidation:
    """Outcome of a connection check."""

    valid: bool
    message: Optional[str] = None

    def to_dict(self) -> dict:
        return {"valid": self.valid, "message": self.message}


def is_field_port(port_id: str) -> bool:
    return port_id.startswith(FIELD_PORT_PREFIX)


def field_key(port_id: str) -> str:
    """Strip the ``field:`` prefix."""
    return port_id[len(FIELD_PORT_PREFIX):] if is_field_port(port_id) else port_id


def value_type_of(value: Any) -> str:
    """``json`` for containers, ``text`` for everything else."""
    if isinstance(value, (dict, list)):
        return PortDataType.JSON.value
    return PortDataType.TEXT.value


def port_meta(node: Node, port_id: str) -> dict:
    return {"nodeId": node.id, "portId": port_id}


def is_type_compatible(source_type: str, target_type: str) -> bool:
    """Check if a source port type can feed a target port type."""
    if target_type == PortDataType.ANY.value:
        return True
    if source_type == target_type:
        return True
    # JSON can be stringified into text
    if source_type == PortDataType.JSON.value and target_type == PortDataType.TEXT.value:
        return True
    return False


def text_value(node: Node, port_id: str, value: Any) -> PortValue:
    return PortValue(type=PortDataType.TEXT.value, value=value, meta=port_meta(node, port_id))


def json_value(node: Node, port_id: str, value: Any, schema: Optional[list] = None) -> PortValue:
    return PortValue(
        type=PortDataType.JSON.value,
        value=value,
        schema=schema,
        meta=port_meta(node, port_id),
    )


def array_value(node: Node, port_id: str, value: list) -> PortValue:
    return PortValue(type=PortDataType.ARRAY.value, value=value, meta=port_meta(node, port_id))


def image_value(node: Node, port_id: str, url: str) -> PortValue:
    return PortValue(type=PortDataType.IMAGE.value, value=url, meta=port_meta(node, port_id))
