"""Tests for port resolution.

``resolve_input_value`` is a best-effort heuristic: the cases below pin
down its documented behavior (including the first-match tie-break), not a
type-safe mapping.
"""
import pytest
from canvas_engine.models.graph import Asset, Edge, GraphState, Node
from canvas_engine.ports.resolver import (
    collect_input_values,
    resolve_edge,
    resolve_input_value,
    resolve_port,
    state_context,
)
from canvas_engine.ports.types import PortValue
from canvas_engine.registry.builtin import create_registry


def array(value):
    return PortValue(type="array", value=value)


class TestResolveInputValue:
    """Test suite for resolve_input_value."""

    # =========================================================================
    # Array sources
    # =========================================================================

    def test_suffix_match(self):
        """selectedName <- name"""
        value = array([{"name": "Fox", "type": "Animal"}])

        assert resolve_input_value(value, "selectedName") == "Fox"

    def test_exact_match_wins(self):
        value = array([{"name": "Fox", "selectedName": "Wolf"}])

        assert resolve_input_value(value, "selectedName") == "Wolf"

    def test_contains_match(self):
        value = array([{"id": "1", "type": "Animal"}])

        assert resolve_input_value(value, "typeOfThing") == "Animal"

    def test_short_keys_do_not_fuzzy_match(self):
        # "id" is too short for either fuzzy rule and is skipped by the string fallback
        value = array([{"id": "x1", "label": "Fox"}])

        assert resolve_input_value(value, "userid") == "Fox"

    def test_first_match_in_declaration_order(self):
        """Best-effort: when several keys qualify, the first declared key wins."""
        value = array([{"name": "short", "username": "long"}])

        assert resolve_input_value(value, "mainUsername") == "short"

    def test_falls_back_to_first_string_field(self):
        value = array([{"id": "1", "count": 3, "label": "L"}])

        assert resolve_input_value(value, "zzz") == "L"

    def test_falls_back_to_whole_item(self):
        value = array([{"count": 3}])

        assert resolve_input_value(value, "zzz") == {"count": 3}

    def test_scalar_array_uses_first_item(self):
        assert resolve_input_value(array([1, 2]), "anything") == 1

    def test_empty_array_is_none(self):
        assert resolve_input_value(array([]), "name") is None

    # =========================================================================
    # Other sources
    # =========================================================================

    def test_json_exact_key(self):
        value = PortValue(type="json", value={"name": "Fox", "age": 3})

        assert resolve_input_value(value, "age") == 3

    def test_json_unknown_key_passes_whole_object(self):
        value = PortValue(type="json", value={"name": "Fox"})

        assert resolve_input_value(value, "title") == {"name": "Fox"}

    def test_scalar_passes_through(self):
        assert resolve_input_value(PortValue(type="text", value="hi"), "body") == "hi"

    def test_none_is_none(self):
        assert resolve_input_value(None, "body") is None


class TestResolvePort:
    """Test suite for resolve_port and resolve_edge."""

    @pytest.fixture
    def registry(self):
        return create_registry()

    def resolve(self, registry, node, asset, port_id, state=None):
        return resolve_port(
            node,
            asset,
            port_id,
            ports=registry.ports,
            behaviors=registry.behaviors,
            context=state_context(state) if state else None,
        )

    def test_form_field_port(self, registry):
        node = Node(id="f", type="form", data={"assetId": "a"})
        asset = Asset(id="a", value={"name": "Fox"})

        result = self.resolve(registry, node, asset, "field:name")

        assert result.type == "text"
        assert result.value == "Fox"
        assert result.meta == {"nodeId": "f", "portId": "field:name"}

    def test_form_origin_is_json(self, registry):
        node = Node(id="f", type="form", data={"assetId": "a"})
        asset = Asset(id="a", value={"name": "Fox"})

        result = self.resolve(registry, node, asset, "origin")

        assert result.type == "json"
        assert result.value == {"name": "Fox"}

    def test_static_resolver_takes_priority(self, registry):
        node = Node(id="t", type="text", data={"assetId": "a"})
        asset = Asset(id="a", value_type="text", value="hello")

        result = self.resolve(registry, node, asset, "output")

        assert result.type == "text"
        assert result.value == "hello"

    def test_form_array_collects_docked_chain(self, registry):
        state = GraphState(
            nodes=[
                Node(id="a", type="form", data={"assetId": "x"}),
                Node(id="b", type="form", data={"assetId": "y", "dockedTo": "a"}),
            ],
            assets={"x": Asset(id="x", value={"n": 1}), "y": Asset(id="y", value={"n": 2})},
        )
        node = state.get_node("b")

        result = self.resolve(registry, node, state.asset_for(node), "array", state)

        assert result.type == "array"
        assert result.value == [{"n": 1}, {"n": 2}]

    # =========================================================================
    # Fallback shapes for types without a resolver
    # =========================================================================

    def test_values_shape(self, registry):
        node = Node(id="n", type="legacy")
        schema = [{"key": "a"}]
        asset = Asset(id="a", value={"values": {"a": 1}, "schema": schema})

        whole = self.resolve(registry, node, asset, "origin")
        field = self.resolve(registry, node, asset, "field:a")

        assert whole.type == "json"
        assert whole.value == {"a": 1}
        assert whole.schema == schema
        assert field.value == 1

    def test_falsy_field_value_still_resolves(self, registry):
        node = Node(id="n", type="legacy")
        asset = Asset(id="a", value={"values": {"flag": False}})

        result = self.resolve(registry, node, asset, "field:flag")

        assert result is not None
        assert result.value is False

    def test_text_shape(self, registry):
        node = Node(id="n", type="legacy")
        asset = Asset(id="a", value={"text": "hello"})

        assert self.resolve(registry, node, asset, "origin").value == "hello"
        assert self.resolve(registry, node, asset, "field:text").value == "hello"

    def test_url_shape(self, registry):
        node = Node(id="n", type="legacy")
        asset = Asset(id="a", value={"url": "https://example.com/a.png"})

        result = self.resolve(registry, node, asset, "origin")

        assert result.type == "image"
        assert result.value == "https://example.com/a.png"

    def test_unresolvable_port_is_none(self, registry):
        node = Node(id="n", type="legacy")
        asset = Asset(id="a", value={"values": {"a": 1}})

        assert self.resolve(registry, node, asset, "recipe:thing") is None
        assert self.resolve(registry, node, asset, "field:missing") is None
        assert self.resolve(registry, node, None, "origin") is None

    def test_edge_with_missing_source_is_none(self, registry):
        state = GraphState(nodes=[Node(id="t", type="form")])
        edge = Edge(id="e", source="ghost", target="t")

        assert resolve_edge(edge, state, ports=registry.ports, behaviors=registry.behaviors) is None


class TestCollectInputValues:
    """Test suite for collect_input_values."""

    def test_collects_each_bound_field(self):
        registry = create_registry()
        state = GraphState(
            nodes=[
                Node(id="x", type="form", data={"assetId": "ax"}),
                Node(id="s", type="selector", data={"assetId": "as", "selected": ["1"]}),
                Node(id="y", type="form", data={"assetId": "ay"}),
            ],
            edges=[
                Edge(id="e1", source="x", sourceHandle="origin", target="y", targetHandle="name"),
                Edge(id="e2", source="s", sourceHandle="output", target="y", targetHandle="selectedName"),
                Edge(id="e3", source="x", target="y", targetHandle="origin"),
            ],
            assets={
                "ax": Asset(id="ax", value={"name": "Fox"}),
                "as": Asset(id="as", value_type="array", value=[{"id": "1", "name": "Owl"}]),
                "ay": Asset(id="ay", value={}),
            },
        )

        values = collect_input_values("y", state, ports=registry.ports, behaviors=registry.behaviors)

        assert values["name"] == "Fox"
        assert values["selectedName"] == "Owl"
        assert values["origin"] == {"name": "Fox"}

    def test_node_without_inputs(self):
        state = GraphState(nodes=[Node(id="y", type="form")])

        assert collect_input_values("y", state) == {}
