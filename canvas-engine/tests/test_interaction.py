"""Tests for the interaction system: guarded connections, undocking and auto-docking."""
import pytest
from canvas_engine.engine.graph_engine import GraphEngine
from canvas_engine.engine.interaction import CYCLE_MESSAGE, schemas_match
from canvas_engine.models.graph import Asset, GraphState, Node
from canvas_engine.registry.builtin import create_registry
from canvas_engine.store import GraphStore


def form(node_id, asset_id=None, **kwargs):
    return Node(id=node_id, type="form", data={"assetId": asset_id, **kwargs.pop("data", {})}, **kwargs)


def record(asset_id, value=None, keys=None):
    schema = [{"key": k} for k in (keys or [])]
    return Asset(id=asset_id, value=value if value is not None else {}, config={"schema": schema})


def make_engine(nodes, edges=None, assets=None):
    state = GraphState(nodes=nodes, edges=edges or [], assets=assets or {})
    return GraphEngine(GraphStore(state), create_registry())


class TestConnect:
    """Test suite for InteractionSystem.connect."""

    @pytest.fixture
    def engine(self):
        return make_engine(
            [form("X", "ax"), form("Y", "ay"), form("Z", "az")],
            assets={
                "ax": record("ax", {"name": "Fox"}),
                "ay": record("ay"),
                "az": record("az", {"name": "Owl"}),
            },
        )

    def test_auto_fill_writes_target_field(self, engine):
        result = engine.interaction.connect(
            {"source": "X", "sourceHandle": "origin", "target": "Y", "targetHandle": "name"}
        )

        assert result.valid is True
        assert len(engine.state.edges) == 1
        assert engine.state.get_asset("ay").value == {"name": "Fox"}

    def test_semantic_target_is_not_auto_filled(self, engine):
        engine.interaction.connect({"source": "X", "target": "Y", "targetHandle": "origin"})

        assert len(engine.state.edges) == 1
        assert engine.state.get_asset("ay").value == {}

    def test_second_binding_of_a_field_is_rejected(self, engine):
        engine.interaction.connect({"source": "X", "target": "Y", "targetHandle": "name"})

        result = engine.interaction.connect({"source": "Z", "target": "Y", "targetHandle": "name"})

        assert result.valid is False
        assert result.message == "Field 'name' already has a connection"
        assert engine.state.get_asset("ay").value == {"name": "Fox"}

    def test_cycle_is_rejected(self, engine):
        engine.interaction.connect({"source": "X", "target": "Y", "targetHandle": "origin"})
        before = engine.state.edges

        result = engine.interaction.connect({"source": "Y", "target": "X", "targetHandle": "origin"})

        assert result.valid is False
        assert result.message == CYCLE_MESSAGE
        assert engine.state.edges == before

    def test_missing_node_is_rejected(self, engine):
        result = engine.interaction.connect({"source": "ghost", "target": "Y"})

        assert result.valid is False
        assert result.message == "Node not found"

    def test_selection_fills_suffix_matched_field(self):
        engine = make_engine(
            [
                Node(id="S", type="selector", data={"assetId": "as", "selected": ["1"]}),
                form("Y", "ay"),
            ],
            assets={
                "as": Asset(
                    id="as",
                    value_type="array",
                    value=[{"id": "1", "name": "Fox", "type": "Animal"}, {"id": "2", "name": "Owl"}],
                ),
                "ay": record("ay"),
            },
        )

        result = engine.interaction.connect(
            {"source": "S", "sourceHandle": "output", "target": "Y", "targetHandle": "selectedName"}
        )

        assert result.valid is True
        assert engine.state.get_asset("ay").value == {"selectedName": "Fox"}


class TestDragging:
    """Test suite for drag undocking and drag-stop docking."""

    @pytest.fixture
    def docked(self):
        engine = make_engine(
            [
                form("M", "am", position={"x": 0, "y": 0}, style={"width": 250, "height": 200}),
                form("F", "af", data={"dockedTo": "M"}),
            ],
            assets={"am": record("am", keys=["name"]), "af": record("af", keys=["name"])},
        )
        engine.set_nodes(engine.layout.fix_global_layout(engine.state.nodes))
        return engine

    def test_dragging_far_undocks(self, docked):
        undocked = docked.interaction.on_node_drag("F", {"x": 0, "y": 400})
        follower = docked.get_node("F")

        assert undocked is True
        assert follower.data.docked_to is None
        assert (follower.position.x, follower.position.y) == (0, 400)
        assert docked.get_node("M").data.has_docked_follower is False

    def test_small_drag_keeps_dock(self, docked):
        undocked = docked.interaction.on_node_drag("F", {"x": 10, "y": 220})
        follower = docked.get_node("F")

        assert undocked is False
        assert follower.data.docked_to == "M"
        assert (follower.position.x, follower.position.y) == (10, 220)

    def test_drag_stop_keeps_existing_dock(self, docked):
        docked.interaction.on_node_drag("F", {"x": 10, "y": 220})

        # M already has a follower, so it is not offered as a new dock target
        assert docked.interaction.on_node_drag_stop("F") is None
        assert docked.get_node("F").data.docked_to == "M"

    def test_auto_dock_onto_matching_schema(self):
        engine = make_engine(
            [
                form("A", "aa", position={"x": 0, "y": 0}, style={"width": 250, "height": 100}),
                form("B", "ab", position={"x": 5, "y": 120}, style={"width": 250}),
            ],
            assets={"aa": record("aa", keys=["name"]), "ab": record("ab", keys=["name"])},
        )

        master_id = engine.interaction.on_node_drag_stop("B")
        follower = engine.get_node("B")

        assert master_id == "A"
        assert follower.data.docked_to == "A"
        assert (follower.position.x, follower.position.y) == (0, 100)
        assert engine.get_node("A").data.has_docked_follower is True

    def test_no_dock_when_schemas_differ(self):
        engine = make_engine(
            [
                form("A", "aa", position={"x": 0, "y": 0}, style={"width": 250, "height": 100}),
                form("B", "ab", position={"x": 5, "y": 120}, style={"width": 250}),
            ],
            assets={"aa": record("aa", keys=["name"]), "ab": record("ab", keys=["other"])},
        )

        assert engine.interaction.on_node_drag_stop("B") is None
        assert engine.get_node("B").data.docked_to is None

    def test_drop_into_rack(self):
        engine = make_engine([
            Node(id="R", type="rack", position={"x": 0, "y": 0}, measured={"width": 280, "height": 300}),
            Node(id="T", type="text", position={"x": 20, "y": 40}, measured={"width": 200, "height": 100}),
        ])

        container_id = engine.interaction.on_node_drag_stop("T")
        node = engine.get_node("T")

        assert container_id == "R"
        assert node.parent_id == "R"
        assert (node.position.x, node.position.y) == (15, 50)

    def test_drop_outside_containers(self):
        engine = make_engine([
            Node(id="R", type="rack", position={"x": 0, "y": 0}, measured={"width": 280, "height": 300}),
            Node(id="T", type="text", position={"x": 900, "y": 900}, measured={"width": 200, "height": 100}),
        ])

        assert engine.interaction.on_node_drag_stop("T") is None
        assert engine.get_node("T").parent_id is None


class TestSchemasMatch:
    """Test suite for schemas_match."""

    def test_key_order_does_not_matter(self):
        state = GraphState(
            nodes=[form("a", "x"), form("b", "y")],
            assets={"x": record("x", keys=["n", "m"]), "y": record("y", keys=["m", "n"])},
        )

        assert schemas_match(state.get_node("a"), state.get_node("b"), state) is True

    def test_missing_schema(self):
        state = GraphState(
            nodes=[form("a", "x"), form("b", "y")],
            assets={"x": record("x", keys=["n"]), "y": Asset(id="y", value={})},
        )

        assert schemas_match(state.get_node("a"), state.get_node("b"), state) is False
