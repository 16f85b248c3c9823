"""Node type registry.

A ``NodeDefinition`` bundles everything the engine knows about a node type:
display metadata, capabilities, a ``create`` factory for default content,
its port declarations and its behavior. Registering a definition wires the
behavior into a ``BehaviorRegistry`` and the ports into a ``PortRegistry``.
"""
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

import structlog

from canvas_engine.engine.behavior_registry import BehaviorRegistry, get_behavior_registry
from canvas_engine.engine.types import NodeBehavior
from canvas_engine.ports.registry import PortRegistry, get_port_registry
from canvas_engine.ports.types import NodePortConfig

logger = structlog.get_logger()


@dataclass
class CreateContext:
    """Input to a node ``create`` factory."""

    data: Any = None
    schema: Optional[list] = None


@dataclass
class AssetSeed:
    """Default asset content produced by a factory."""

    value_type: str = "record"
    value: Any = None
    config: dict = field(default_factory=dict)
    value_meta: Optional[dict] = None


@dataclass
class CreateResult:
    """Output of a node ``create`` factory."""

    data: dict = field(default_factory=dict)
    asset: Optional[AssetSeed] = None


@dataclass
class NodeMeta:
    """Display metadata."""

    title: str
    category: str = "Asset"
    description: str = ""
    alias: Optional[str] = None
    style: dict = field(default_factory=dict)


@dataclass
class NodeCapabilities:
    collapsible: bool = False
    dockable: bool = False
    is_collection: bool = False


@dataclass
class NodeDefinition:
    """Everything the engine knows about one node type."""

    type: str
    meta: NodeMeta
    capabilities: NodeCapabilities = field(default_factory=NodeCapabilities)
    create: Optional[Callable[[CreateContext], CreateResult]] = None
    ports: Optional[NodePortConfig] = None
    behavior: Optional[NodeBehavior] = None


class NodeRegistry:
    """Registry of node definitions, keyed by type tag and alias."""

    def __init__(
        self,
        behaviors: Optional[BehaviorRegistry] = None,
        ports: Optional[PortRegistry] = None,
    ):
        self.behaviors = behaviors or BehaviorRegistry()
        self.ports = ports or PortRegistry()
        self._definitions: dict[str, NodeDefinition] = {}
        self._aliases: dict[str, str] = {}

    def register(self, definition: NodeDefinition) -> None:
        self._definitions[definition.type] = definition
        if definition.meta.alias:
            self._aliases[definition.meta.alias] = definition.type
        if definition.behavior:
            self.behaviors.register(definition.type, definition.behavior)
        if definition.ports:
            self.ports.register(definition.type, definition.ports)
        logger.debug("node_type_registered", node_type=definition.type)

    def get(self, node_type: Optional[str]) -> Optional[NodeDefinition]:
        """Definition for a type tag; virtual types fall back to their base tag."""
        if not node_type:
            return None
        definition = self._definitions.get(node_type)
        if definition is None and ":" in node_type:
            definition = self._definitions.get(node_type.split(":", 1)[0])
        return definition

    def get_by_alias(self, alias: str) -> Optional[NodeDefinition]:
        node_type = self._aliases.get(alias)
        return self._definitions.get(node_type) if node_type else None

    def resolve(self, type_or_alias: str) -> Optional[NodeDefinition]:
        """Look up by type tag first, then by alias."""
        return self.get(type_or_alias) or self.get_by_alias(type_or_alias)

    def get_meta(self, node_type: str) -> Optional[NodeMeta]:
        definition = self.get(node_type)
        return definition.meta if definition else None

    def get_ports(self, node_type: str) -> Optional[NodePortConfig]:
        definition = self.get(node_type)
        return definition.ports if definition else None

    def get_all_types(self) -> list[str]:
        return list(self._definitions.keys())

    def is_collection(self, node_type: str) -> bool:
        definition = self.get(node_type)
        return bool(definition and definition.capabilities.is_collection)

    def is_dockable(self, node_type: str) -> bool:
        definition = self.get(node_type)
        return bool(definition and definition.capabilities.dockable)


# Singleton instance
_registry = None

def get_node_registry() -> NodeRegistry:
    """Get the shared node registry with the built-in node types registered."""
    global _registry
    if _registry is None:
        from canvas_engine.registry.builtin import register_builtin_nodes

        _registry = NodeRegistry(get_behavior_registry(), get_port_registry())
        register_builtin_nodes(_registry)
    return _registry
