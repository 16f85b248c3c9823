"""Tests for connection validation and cycle detection."""
import pytest
from canvas_engine.engine.types import NodeBehavior
from canvas_engine.models.graph import Asset, Edge, GraphState, Node
from canvas_engine.ports.types import (
    NodePortConfig,
    PortDataType,
    PortDefinition,
    PortDirection,
    is_type_compatible,
    json_value,
)
from canvas_engine.ports.validator import (
    Connection,
    is_empty_value,
    is_field_level_input,
    validate_connection,
    would_create_cycle,
)
from canvas_engine.registry.builtin import create_registry


def form(node_id, asset_id=None, **data):
    return Node(id=node_id, type="form", data={"assetId": asset_id, **data})


class TestValidateConnection:
    """Test suite for validate_connection."""

    @pytest.fixture
    def registry(self):
        return create_registry()

    def validate(self, registry, connection, state):
        return validate_connection(
            connection,
            state,
            ports=registry.ports,
            behaviors=registry.behaviors,
        )

    def make_state(self, source_value, edges=None):
        return GraphState(
            nodes=[form("X", "ax"), form("Y", "ay")],
            edges=edges or [],
            assets={
                "ax": Asset(id="ax", value=source_value),
                "ay": Asset(id="ay", value={}),
            },
        )

    def test_empty_origin_object_is_rejected(self, registry):
        state = self.make_state({})
        connection = Connection(source="X", sourceHandle="origin", target="Y", targetHandle="name")

        result = self.validate(registry, connection, state)

        assert result.valid is False
        assert result.message == "Source object is empty"

    def test_empty_target_key_is_rejected(self, registry):
        state = self.make_state({"name": ""})
        connection = Connection(source="X", source_handle="origin", target="Y", target_handle="name")

        result = self.validate(registry, connection, state)

        assert result.valid is False
        assert result.message == "Source field 'name' is empty"

    def test_unknown_target_key_passes_whole_object(self, registry):
        state = self.make_state({"title": "Fox"})
        connection = Connection(source="X", source_handle="origin", target="Y", target_handle="name")

        assert self.validate(registry, connection, state).valid is True

    def test_non_empty_source_is_accepted(self, registry):
        state = self.make_state({"name": "Fox"})
        connection = Connection(source="X", source_handle="origin", target="Y", target_handle="name")

        result = self.validate(registry, connection, state)

        assert result.valid is True
        assert result.message is None

    def test_semantic_target_always_passes(self, registry):
        state = self.make_state({})
        connection = Connection(source="X", source_handle="origin", target="Y", target_handle="origin")

        assert self.validate(registry, connection, state).valid is True

    def test_field_already_bound_is_rejected(self, registry):
        edges = [Edge(id="e", source="Z", target="Y", target_handle="name")]
        state = self.make_state({"name": "Fox"}, edges=edges)
        connection = Connection(source="X", source_handle="origin", target="Y", target_handle="name")

        result = self.validate(registry, connection, state)

        assert result.valid is False
        assert result.message == "Field 'name' already has a connection"

    def test_missing_node_is_rejected(self, registry):
        state = self.make_state({"name": "Fox"})
        connection = Connection(source="ghost", target="Y", target_handle="name")

        result = self.validate(registry, connection, state)

        assert result.valid is False
        assert result.message == "Node not found"

    def test_source_without_value_is_rejected(self, registry):
        state = GraphState(nodes=[Node(id="X", type="legacy"), form("Y")])
        connection = Connection(source="X", target="Y", target_handle="name")

        result = self.validate(registry, connection, state)

        assert result.valid is False
        assert result.message == "Source has no value to connect"

    def test_empty_selection_is_rejected(self, registry):
        state = GraphState(
            nodes=[
                Node(id="S", type="selector", data={"assetId": "as", "selected": []}),
                form("Y", "ay"),
            ],
            assets={
                "as": Asset(id="as", value_type="array", value=[{"id": "1", "name": "Fox"}]),
                "ay": Asset(id="ay", value={}),
            },
        )
        connection = Connection(source="S", source_handle="output", target="Y", target_handle="name")

        result = self.validate(registry, connection, state)

        assert result.valid is False
        assert result.message == "Source value is empty"

    def test_can_connect_veto(self):
        registry = create_registry()
        registry.behaviors.register("picky", NodeBehavior(can_connect=lambda ctx: "Nope"))
        state = GraphState(
            nodes=[form("X", "ax"), Node(id="P", type="picky")],
            assets={"ax": Asset(id="ax", value={"name": "Fox"})},
        )
        connection = Connection(source="X", source_handle="origin", target="P", target_handle="name")

        result = self.validate(registry, connection, state)

        assert result.valid is False
        assert result.message == "Nope"


class TestDeclaredPorts:
    """Test suite for validation against registered port declarations."""

    @pytest.fixture
    def registry(self):
        registry = create_registry()
        registry.ports.register(
            "gauge",
            NodePortConfig(
                static=[
                    PortDefinition(id="config", direction=PortDirection.INPUT, data_type=PortDataType.JSON),
                    PortDefinition(id="label", direction=PortDirection.INPUT, data_type=PortDataType.TEXT),
                    PortDefinition(id="feed", direction=PortDirection.INPUT, semantic=True),
                ]
            ),
        )
        registry.ports.register(
            "sensor",
            NodePortConfig(
                static=[
                    PortDefinition(
                        id="reading",
                        direction=PortDirection.OUTPUT,
                        data_type=PortDataType.JSON,
                        resolver=lambda node, asset: json_value(node, "reading", asset.value),
                        validator=lambda port_value: "unit" in port_value.value,
                    ),
                ]
            ),
        )
        return registry

    def validate(self, registry, connection, state):
        return validate_connection(connection, state, ports=registry.ports, behaviors=registry.behaviors)

    def gauge_state(self, source_value):
        return GraphState(
            nodes=[form("X", "ax"), Node(id="G", type="gauge")],
            assets={"ax": Asset(id="ax", value=source_value)},
        )

    def sensor_state(self, reading):
        return GraphState(
            nodes=[Node(id="S", type="sensor", data={"assetId": "as"}), form("Y", "ay")],
            assets={"as": Asset(id="as", value=reading), "ay": Asset(id="ay", value={})},
        )

    def test_incompatible_input_type_is_rejected(self, registry):
        state = self.gauge_state({"name": "Fox"})
        connection = Connection(source="X", source_handle="field:name", target="G", target_handle="config")

        result = self.validate(registry, connection, state)

        assert result.valid is False
        assert result.message == "Cannot connect text to json field 'config'"

    def test_json_source_feeds_text_input(self, registry):
        state = self.gauge_state({"label": "Depth"})
        connection = Connection(source="X", source_handle="origin", target="G", target_handle="label")

        assert self.validate(registry, connection, state).valid is True

    def test_semantic_input_passes_empty_source(self, registry):
        state = self.gauge_state({})
        connection = Connection(source="X", source_handle="origin", target="G", target_handle="feed")

        assert self.validate(registry, connection, state).valid is True

    def test_source_port_validator_rejects(self, registry):
        state = self.sensor_state({"level": 3})
        connection = Connection(source="S", source_handle="reading", target="Y", target_handle="level")

        result = self.validate(registry, connection, state)

        assert result.valid is False
        assert result.message == "Source port 'reading' rejected its value"

    def test_source_port_validator_accepts(self, registry):
        state = self.sensor_state({"level": 3, "unit": "m"})
        connection = Connection(source="S", source_handle="reading", target="Y", target_handle="level")

        assert self.validate(registry, connection, state).valid is True


class TestWouldCreateCycle:
    """Test suite for would_create_cycle."""

    @pytest.fixture
    def nodes(self):
        return [Node(id=i, type="form") for i in ("A", "B", "C")]

    @pytest.fixture
    def edges(self):
        return [
            Edge(id="ab", source="A", target="B"),
            Edge(id="bc", source="B", target="C"),
        ]

    def test_closing_edge_is_a_cycle(self, nodes, edges):
        assert would_create_cycle(nodes, edges, Connection(source="C", target="A")) is True

    def test_forward_edge_is_not_a_cycle(self, nodes, edges):
        assert would_create_cycle(nodes, edges, Connection(source="A", target="C")) is False

    def test_self_loop_is_a_cycle(self, nodes, edges):
        assert would_create_cycle(nodes, edges, Connection(source="B", target="B")) is True

    def test_diamond_terminates(self, nodes):
        edges = [
            Edge(id="1", source="A", target="B"),
            Edge(id="2", source="A", target="C"),
            Edge(id="3", source="B", target="C"),
        ]

        assert would_create_cycle(nodes, edges, Connection(source="A", target="B")) is False


class TestHelpers:
    """Test suite for handle classification and emptiness."""

    @pytest.mark.parametrize("handle", ["origin", "product", "output", "trigger", "array", "reference"])
    def test_semantic_handles(self, handle):
        assert is_field_level_input(handle) is False

    def test_field_output_port_is_not_an_input(self):
        assert is_field_level_input("field:name") is False

    def test_plain_key_is_field_input(self):
        assert is_field_level_input("name") is True

    def test_missing_handle(self):
        assert is_field_level_input(None) is False
        assert is_field_level_input("") is False

    @pytest.mark.parametrize("value", [None, "", [], {}])
    def test_empty_values(self, value):
        assert is_empty_value(value) is True

    @pytest.mark.parametrize("value", [0, False, "x", [0], {"a": None}])
    def test_non_empty_values(self, value):
        assert is_empty_value(value) is False


class TestTypeCompatibility:
    """Test suite for is_type_compatible."""

    @pytest.mark.parametrize(
        "source,target,expected",
        [
            ("text", "any", True),
            ("image", "any", True),
            ("json", "json", True),
            ("json", "text", True),
            ("text", "json", False),
            ("array", "text", False),
        ],
    )
    def test_rules(self, source, target, expected):
        assert is_type_compatible(source, target) is expected


class TestPortRegistry:
    """Test suite for PortRegistry lookups."""

    @pytest.fixture
    def ports(self):
        return create_registry().ports

    def test_static_and_dynamic_ports(self, ports):
        recipe = Node(id="r", type="recipe:summarize")
        asset = Asset(id="a", config={"schema": [{"key": "topic"}]})

        outputs = [p.id for p in ports.get_output_ports(recipe, asset)]
        inputs = [p.id for p in ports.get_input_ports(recipe, asset)]

        assert outputs == ["product", "reference"]
        assert inputs == ["topic"]
        assert ports.get_port(recipe, asset, "topic").direction == PortDirection.INPUT

    def test_unregistered_type_has_no_ports(self, ports):
        node = Node(id="x", type="legacy")

        assert ports.get_output_ports(node, None) == []
        assert ports.get_port(node, None, "origin") is None
