"""Node type registry and the built-in node types."""
from canvas_engine.registry.nodes import (
    AssetSeed,
    CreateContext,
    CreateResult,
    NodeCapabilities,
    NodeDefinition,
    NodeMeta,
    NodeRegistry,
    get_node_registry,
)

__all__ = [
    "AssetSeed",
    "CreateContext",
    "CreateResult",
    "NodeCapabilities",
    "NodeDefinition",
    "NodeMeta",
    "NodeRegistry",
    "get_node_registry",
]
