"""Behavior registry: node type tag -> NodeBehavior.

Lookups never fail. Unregistered types get a default behavior whose hooks
are all unset. Virtual types such as ``recipe:summarize`` fall back to the
behavior registered for their base tag (``recipe``).
"""
from typing import Optional

import structlog

from canvas_engine.engine.types import NodeBehavior

logger = structlog.get_logger()

DEFAULT_BEHAVIOR = NodeBehavior()


class BehaviorRegistry:
    """Maps type tags to behaviors."""

    def __init__(self):
        self._behaviors: dict[str, NodeBehavior] = {}

    def register(self, type_tag: str, behavior: NodeBehavior) -> None:
        if type_tag in self._behaviors:
            logger.debug("behavior_replaced", type_tag=type_tag)
        self._behaviors[type_tag] = behavior

    def unregister(self, type_tag: str) -> None:
        self._behaviors.pop(type_tag, None)

    def get(self, type_tag: Optional[str]) -> Optional[NodeBehavior]:
        """Registered behavior for a tag (or its base tag), else None."""
        if not type_tag:
            return None
        behavior = self._behaviors.get(type_tag)
        if behavior is None and ":" in type_tag:
            behavior = self._behaviors.get(type_tag.split(":", 1)[0])
        return behavior

    def get_by_type(self, type_tag: Optional[str]) -> NodeBehavior:
        """Behavior for a tag, falling back to the no-op default."""
        return self.get(type_tag) or DEFAULT_BEHAVIOR

    def has(self, type_tag: str) -> bool:
        return self.get(type_tag) is not None

    def registered_types(self) -> list[str]:
        return list(self._behaviors.keys())


# Singleton instance
_registry = None

def get_behavior_registry() -> BehaviorRegistry:
    """Get the shared behavior registry."""
    global _registry
    if _registry is None:
        _registry = BehaviorRegistry()
    return _registry
