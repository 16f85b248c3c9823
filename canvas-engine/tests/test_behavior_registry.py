"""Tests for the behavior registry."""
import pytest
from canvas_engine.engine.behavior_registry import (
    DEFAULT_BEHAVIOR,
    BehaviorRegistry,
    get_behavior_registry,
)
from canvas_engine.engine.types import NodeBehavior, NodePatch


class TestBehaviorRegistry:
    """Test suite for BehaviorRegistry."""

    @pytest.fixture
    def registry(self):
        """Get a fresh registry instance."""
        return BehaviorRegistry()

    @pytest.fixture
    def behavior(self):
        return NodeBehavior(on_layout=lambda node, children, ctx: [NodePatch(id=node.id)])

    def test_registered_behavior_is_returned(self, registry, behavior):
        registry.register("rack", behavior)

        assert registry.get("rack") is behavior
        assert registry.get_by_type("rack") is behavior
        assert registry.has("rack")

    def test_unregistered_type_gets_default(self, registry):
        assert registry.get("nope") is None
        assert registry.get_by_type("nope") is DEFAULT_BEHAVIOR
        assert registry.get_by_type(None) is DEFAULT_BEHAVIOR

    def test_default_behavior_has_no_hooks(self):
        assert DEFAULT_BEHAVIOR.on_layout is None
        assert DEFAULT_BEHAVIOR.on_collapse is None
        assert DEFAULT_BEHAVIOR.resolve_output is None
        assert DEFAULT_BEHAVIOR.on_connect is None
        assert DEFAULT_BEHAVIOR.can_connect is None

    def test_virtual_type_falls_back_to_base(self, registry, behavior):
        registry.register("recipe", behavior)

        assert registry.get_by_type("recipe:summarize") is behavior

    def test_exact_virtual_registration_wins(self, registry, behavior):
        special = NodeBehavior()
        registry.register("recipe", behavior)
        registry.register("recipe:summarize", special)

        assert registry.get_by_type("recipe:summarize") is special

    def test_register_replaces(self, registry, behavior):
        replacement = NodeBehavior()
        registry.register("rack", behavior)
        registry.register("rack", replacement)

        assert registry.get("rack") is replacement
        assert registry.registered_types() == ["rack"]

    def test_unregister(self, registry, behavior):
        registry.register("rack", behavior)
        registry.unregister("rack")
        registry.unregister("never-registered")

        assert not registry.has("rack")

    def test_shared_registry_is_a_singleton(self):
        assert get_behavior_registry() is get_behavior_registry()
