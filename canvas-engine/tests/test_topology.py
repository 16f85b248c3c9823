"""Tests for the topology utilities.

Validates parent-before-child ordering, descendant collection, absolute
positioning and clipboard sanitizing, including the degenerate cases a bug
could introduce (missing parents, parent cycles).
"""
import pytest
from canvas_engine.engine.topology import (
    compute_depths,
    get_descendants,
    get_node_absolute_position,
    is_node_inside_group,
    sanitize_node_for_clipboard,
    sort_topologically,
)
from canvas_engine.models.graph import Node


def make_node(node_id, parent=None, **kwargs):
    return Node(id=node_id, type="text", parent_id=parent, **kwargs)


class TestSortTopologically:
    """Test suite for sort_topologically."""

    def test_parents_precede_children(self):
        nodes = [make_node("c", parent="a"), make_node("b"), make_node("a")]

        result = sort_topologically(nodes)

        assert [n.id for n in result] == ["b", "a", "c"]

    def test_missing_parent_is_treated_as_root(self):
        nodes = [make_node("x", parent="ghost"), make_node("y", parent="x")]

        result = sort_topologically(nodes)

        assert [n.id for n in result] == ["x", "y"]

    def test_parent_cycle_terminates_and_keeps_every_node(self):
        nodes = [make_node("a", parent="b"), make_node("b", parent="a"), make_node("r")]

        result = sort_topologically(nodes)

        assert [n.id for n in result][0] == "r"
        assert sorted(n.id for n in result) == ["a", "b", "r"]


class TestDescendants:
    """Test suite for get_descendants and compute_depths."""

    @pytest.fixture
    def tree(self):
        return [
            make_node("a"),
            make_node("b", parent="a"),
            make_node("c", parent="b"),
            make_node("d", parent="a"),
            make_node("e"),
        ]

    def test_descendants_are_breadth_first(self, tree):
        result = get_descendants(tree, "a")

        assert [n.id for n in result] == ["b", "d", "c"]

    def test_leaf_has_no_descendants(self, tree):
        assert get_descendants(tree, "e") == []

    def test_unknown_node_has_no_descendants(self, tree):
        assert get_descendants(tree, "missing") == []

    def test_descendants_terminate_on_parent_cycle(self):
        nodes = [make_node("a", parent="b"), make_node("b", parent="a")]

        result = get_descendants(nodes, "a")

        assert [n.id for n in result] == ["b"]

    def test_depths(self, tree):
        depths = compute_depths(tree)

        assert depths == {"a": 0, "b": 1, "c": 2, "d": 1, "e": 0}

    def test_depths_terminate_on_parent_cycle(self):
        nodes = [make_node("a", parent="b"), make_node("b", parent="a")]

        depths = compute_depths(nodes)

        assert set(depths) == {"a", "b"}


class TestGeometryHelpers:
    """Test suite for absolute positions and containment."""

    def test_absolute_position_sums_parent_chain(self):
        nodes = [
            make_node("g", position={"x": 100, "y": 50}),
            make_node("r", parent="g", position={"x": 10, "y": 20}),
            make_node("n", parent="r", position={"x": 1, "y": 2}),
        ]

        position = get_node_absolute_position(nodes, "n")

        assert (position.x, position.y) == (111, 72)

    def test_absolute_position_of_unknown_node_is_none(self):
        assert get_node_absolute_position([make_node("a")], "zzz") is None

    def test_node_inside_group(self):
        group = make_node("g", position={"x": 0, "y": 0}, measured={"width": 400, "height": 300})
        inside = make_node("n", position={"x": 10, "y": 10}, measured={"width": 100, "height": 100})
        outside = make_node("m", position={"x": 1000, "y": 1000}, measured={"width": 100, "height": 100})

        assert is_node_inside_group(inside, group) is True
        assert is_node_inside_group(outside, group) is False

    def test_unmeasured_node_is_never_inside(self):
        group = make_node("g", measured={"width": 400, "height": 300})
        node = make_node("n")

        assert is_node_inside_group(node, group) is False


class TestSanitizeForClipboard:
    """Test suite for sanitize_node_for_clipboard."""

    def test_transient_state_is_stripped(self):
        node = make_node(
            "n",
            draggable=False,
            hidden=True,
            width=120,
            style={"width": 250, "height": 300, "opacity": 0.5},
            data={
                "title": "Card",
                "collapsed": True,
                "handlePosition": "left-right",
                "originalPosition": {"x": 1, "y": 2},
                "assetId": "asset-1",
            },
        )

        clean = sanitize_node_for_clipboard(node)

        assert clean.data.collapsed is False
        assert clean.data.get_extra("handlePosition") == "top-bottom"
        assert clean.data.get_extra("originalPosition") is None
        assert clean.data.asset_id == "asset-1"
        assert clean.data.title == "Card"
        assert clean.style.width is None
        assert clean.style.height is None
        assert clean.width is None
        assert clean.draggable is True
        assert clean.hidden is False

    def test_original_is_untouched(self):
        node = make_node("n", data={"collapsed": True})

        sanitize_node_for_clipboard(node)

        assert node.data.collapsed is True
