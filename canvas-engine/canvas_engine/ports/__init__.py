"""Port system: typed ports, value resolution and connection validation."""
from canvas_engine.ports.registry import PortRegistry, get_port_registry
from canvas_engine.ports.resolver import (
    collect_input_values,
    resolve_edge,
    resolve_input_value,
    resolve_port,
)
from canvas_engine.ports.types import (
    ConnectionValidation,
    NodePortConfig,
    PortDataType,
    PortDefinition,
    PortDirection,
    PortValue,
    is_type_compatible,
)
from canvas_engine.ports.validator import (
    Connection,
    is_field_level_input,
    validate_connection,
    would_create_cycle,
)

__all__ = [
    "Connection",
    "ConnectionValidation",
    "NodePortConfig",
    "PortDataType",
    "PortDefinition",
    "PortDirection",
    "PortRegistry",
    "PortValue",
    "collect_input_values",
    "get_port_registry",
    "is_field_level_input",
    "is_type_compatible",
    "resolve_edge",
    "resolve_input_value",
    "resolve_port",
    "validate_connection",
    "would_create_cycle",
]
