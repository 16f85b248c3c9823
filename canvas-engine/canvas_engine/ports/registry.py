"""Port registry: per node type port declarations."""
from typing import Optional

from canvas_engine.models.graph import Asset, Node
from canvas_engine.ports.types import NodePortConfig, PortDefinition, PortDirection


class PortRegistry:
    """Central registry of static and dynamic ports by node type."""

    def __init__(self):
        self._configs: dict[str, NodePortConfig] = {}

    def register(self, node_type: str, config: NodePortConfig) -> None:
        """Register port configuration for a node type."""
        self._configs[node_type] = config

    def _config_for(self, node_type: str) -> Optional[NodePortConfig]:
        # Virtual types (recipe:xxx) fall back to their base type
        config = self._configs.get(node_type)
        if config is None and ":" in node_type:
            config = self._configs.get(node_type.split(":", 1)[0])
        return config

    def _ports(
        self,
        node: Node,
        asset: Optional[Asset],
        direction: PortDirection,
    ) -> list[PortDefinition]:
        config = self._config_for(node.type)
        if config is None:
            return []

        ports = [p for p in config.static if p.direction == direction]
        if config.dynamic:
            ports.extend(p for p in config.dynamic(node, asset) if p.direction == direction)
        return ports

    def get_output_ports(self, node: Node, asset: Optional[Asset]) -> list[PortDefinition]:
        return self._ports(node, asset, PortDirection.OUTPUT)

    def get_input_ports(self, node: Node, asset: Optional[Asset]) -> list[PortDefinition]:
        return self._ports(node, asset, PortDirection.INPUT)

    def get_port(
        self,
        node: Node,
        asset: Optional[Asset],
        port_id: str,
    ) -> Optional[PortDefinition]:
        """Get a specific port by ID (outputs searched first)."""
        for port in self.get_output_ports(node, asset) + self.get_input_ports(node, asset):
            if port.id == port_id:
                return port
        return None

    def has_config(self, node_type: str) -> bool:
        return node_type in self._configs

    def get_registered_types(self) -> list[str]:
        return list(self._configs.keys())


# Singleton instance
_registry = None

def get_port_registry() -> PortRegistry:
    """Get the shared port registry."""
    global _registry
    if _registry is None:
        _registry = PortRegistry()
    return _registry
