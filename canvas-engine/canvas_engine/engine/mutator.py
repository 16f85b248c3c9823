"""Graph mutator: node creation, copying and recipe output materialization.

Node-specific content comes from each definition's ``create`` factory; the
mutator never hardcodes per-type defaults. Every structural change leaves
the node list in parent-before-child order and re-runs layout.
"""
import re
import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Optional, Union

import structlog

from canvas_engine.engine.topology import sanitize_node_for_clipboard, sort_topologically
from canvas_engine.models.graph import Node, NodeData, NodeStyle, Position
from canvas_engine.registry.nodes import CreateContext

if TYPE_CHECKING:
    from canvas_engine.engine.graph_engine import GraphEngine

logger = structlog.get_logger()

PREV_NODE = "$prev"

# Spacing used when placing recipe output relative to its recipe
SPEC_GAP = 100
SPEC_FALLBACK_HEIGHT = 200
SPEC_FALLBACK_WIDTH = 250
DOCKED_FALLBACK_HEIGHT = 120

_TEMPLATE_FIELD = re.compile(r"\{\{(\w+)\}\}")

# A copy never inherits the original's place in a docking chain
UNDOCKED = {"docked_to": None, "has_docked_follower": False}


@dataclass
class NodeSpec:
    """A node to be created, as produced by ``build_nodes_from_config``."""

    type: str
    data: dict = field(default_factory=dict)
    # "below", "right", an explicit Position, or None for the anchor position
    position: Union[str, Position, None] = None
    docked_to: Optional[str] = None
    asset_config: Optional[dict] = None


@dataclass
class OutputConfig:
    """How a recipe's output items become nodes."""

    node: str = "form"
    title: Optional[str] = None
    collapsed: Optional[bool] = None
    config: dict = field(default_factory=dict)


def render_title(template: str, item: Any, index: int) -> str:
    title = template.replace("{{index}}", str(index + 1))
    if not isinstance(item, dict):
        return _TEMPLATE_FIELD.sub("", title)
    return _TEMPLATE_FIELD.sub(lambda m: str(item.get(m.group(1), "")), title)


class GraphMutator:
    """High-level structural edits on top of the engine primitives."""

    def __init__(self, engine: "GraphEngine"):
        self.engine = engine

    @property
    def registry(self):
        return self.engine.registry

    # =========================================================================
    # Creation
    # =========================================================================

    def add_node(
        self,
        node_type: str,
        position: Union[Position, dict],
        title: Optional[str] = None,
        content: Any = None,
        asset_id: Optional[str] = None,
        asset_name: Optional[str] = None,
        value_meta: Optional[dict] = None,
        asset_config: Optional[dict] = None,
        style: Optional[dict] = None,
        docked_to: Optional[str] = None,
        data: Optional[dict] = None,
    ) -> str:
        """
        Create a node (and its asset) and return the node id.

        The asset comes from the type's ``create`` factory unless ``asset_id``
        is given; ``content`` replaces the factory's default value and
        ``asset_config`` is layered over the factory config.
        """
        definition = self.registry.get(node_type)
        if definition is None:
            logger.warning("unknown_node_type", node_type=node_type, operation="add_node")
        meta = definition.meta if definition else None
        name = asset_name or (meta.title if meta else None) or "Node"

        if asset_id is None and definition is not None and definition.create is not None:
            result = definition.create(CreateContext())
            seed = result.asset
            value = content
            if value is None and seed is not None:
                value = seed.value
            asset_id = self.engine.assets.create(
                value_type=seed.value_type if seed else "record",
                value=value if value is not None else "",
                name=name,
                config={**(seed.config if seed else {}), **(asset_config or {})},
                value_meta=value_meta,
            )

        node_data = {
            **(data or {}),
            "title": title or asset_name or (meta.title if meta else "Node"),
            "state": "idle",
            "asset_id": asset_id,
        }
        if docked_to:
            node_data["docked_to"] = docked_to

        node = Node(
            id=str(uuid.uuid4()),
            type=node_type,
            position=Position.model_validate(position),
            data=NodeData.model_validate(node_data),
            style=NodeStyle.model_validate({**(meta.style if meta else {}), **(style or {})}),
        )
        self._append([node])
        return node.id

    def create_node_from_schema(
        self,
        node_type: str,
        schema: list,
        title: Optional[str] = None,
        source_node_id: Optional[str] = None,
    ) -> Optional[str]:
        """Create a form/table/selector node whose asset carries ``schema``."""
        definition = self.registry.resolve(node_type)
        if definition is None or definition.create is None:
            logger.warning("unknown_node_type", node_type=node_type, operation="create_from_schema")
            return None

        settings = self.engine.settings
        position = Position(x=100, y=100)
        source = self.engine.get_node(source_node_id) if source_node_id else None
        if source is not None:
            position = Position(
                x=source.position.x,
                y=source.position.y
                + (source.measured_height or settings.schema_node_fallback_height)
                + settings.schema_node_gap,
            )

        result = definition.create(CreateContext(schema=schema))
        seed = result.asset
        title = title or f"New {definition.meta.title}"
        asset_id = self.engine.assets.create(
            value_type=seed.value_type if seed else "record",
            value=seed.value if seed and seed.value is not None else {},
            name=title,
            config={"schema": schema, **(seed.config if seed else {})},
        )

        node = Node(
            id=str(uuid.uuid4()),
            type=definition.type,
            position=position,
            data=NodeData.model_validate(
                {"title": title, "state": "idle", "asset_id": asset_id, **result.data}
            ),
            style=NodeStyle.model_validate(definition.meta.style),
        )
        self._append([node])
        return node.id

    # =========================================================================
    # Removal and hierarchy
    # =========================================================================

    def remove_node(self, node_id: str) -> None:
        """Delete a node with all its descendants and touching edges."""
        self.engine.delete_nodes([node_id])

    def detach_node(self, node_id: str) -> None:
        """Move a nested node back to the canvas root."""
        node = self.engine.get_node(node_id)
        if node is None or not node.parent_id:
            return
        self.engine.reparent_node(node_id, None)

    def reparent_nodes(self, node_ids: list[str], new_parent_id: Optional[str]) -> None:
        self.engine.reparent_nodes(node_ids, new_parent_id)

    # =========================================================================
    # Copying
    # =========================================================================

    def duplicate_node(self, node_id: str, position: Optional[Union[Position, dict]] = None) -> Optional[str]:
        """Duplicate a node with a deep copy of its asset; the copy becomes the selection."""
        node = self.engine.get_node(node_id)
        if node is None:
            logger.warning("node_not_found", node_id=node_id, operation="duplicate")
            return None

        offset = self.engine.settings.duplicate_offset
        sanitized = sanitize_node_for_clipboard(node)
        asset_id = self.engine.assets.copy(sanitized.data.asset_id) or sanitized.data.asset_id

        if position is None:
            position = Position(x=node.position.x + offset, y=node.position.y + offset)

        duplicate = sanitized.model_copy(
            update={
                "id": str(uuid.uuid4()),
                "position": Position.model_validate(position),
                "selected": True,
                "data": sanitized.data.model_copy(update={"asset_id": asset_id, **UNDOCKED}),
            }
        )
        self.engine.deselect_all()
        self._append([duplicate])
        return duplicate.id

    def create_shortcut(self, node_id: str) -> Optional[str]:
        """Create a reference copy sharing the original's asset."""
        node = self.engine.get_node(node_id)
        if node is None:
            return None

        definition = self.registry.get(node.type)
        if definition is None or definition.create is None:
            return None

        offset = self.engine.settings.duplicate_offset
        sanitized = sanitize_node_for_clipboard(node)
        data = sanitized.data.model_dump()
        data.update({"isReference": True, "originalNodeId": node.id, **UNDOCKED})

        shortcut = sanitized.model_copy(
            update={
                "id": str(uuid.uuid4()),
                "position": Position(x=node.position.x + offset, y=node.position.y + offset),
                "selected": True,
                "data": NodeData.model_validate(data),
            }
        )
        self.engine.deselect_all()
        self._append([shortcut])
        return shortcut.id

    def paste_nodes(self, copied: list[Node]) -> list[str]:
        """
        Paste clipboard nodes with fresh ids and copied assets.

        Parent and dock links survive only if their target was copied as
        well. Nodes whose asset no longer exists get a placeholder text asset.
        """
        if not copied:
            return []

        offset = self.engine.settings.paste_offset
        id_map = {n.id: str(uuid.uuid4()) for n in copied}
        pasted = []

        for node in copied:
            parent_id = id_map.get(node.parent_id) if node.parent_id else None
            docked_to = id_map.get(node.data.docked_to) if node.data.docked_to else None
            sanitized = sanitize_node_for_clipboard(node)

            asset_id = sanitized.data.asset_id
            if asset_id:
                asset_id = self.engine.assets.copy(asset_id) or self.engine.assets.create(
                    value_type="text",
                    value="Content unavailable (Source asset missing)",
                    name="Missing Asset",
                )

            pasted.append(
                sanitized.model_copy(
                    update={
                        "id": id_map[node.id],
                        "parent_id": parent_id,
                        "extent": "parent" if parent_id else None,
                        "selected": True,
                        "position": Position(x=node.position.x + offset, y=node.position.y + offset),
                        "data": sanitized.data.model_copy(
                            update={
                                "asset_id": asset_id,
                                "docked_to": docked_to,
                                "has_docked_follower": False,
                            }
                        ),
                    }
                )
            )

        self.engine.deselect_all()
        self._append(pasted)
        return [n.id for n in pasted]

    # =========================================================================
    # Recipe output
    # =========================================================================

    def build_nodes_from_config(self, items: list, config: OutputConfig) -> list[NodeSpec]:
        """
        Turn recipe output items into node specs.

        Collection types hold every item in a single node. Other types get
        one node per item, docked into a chain beneath the first. Title
        templates understand ``{{count}}``, ``{{index}}`` and item fields.
        """
        if not isinstance(items, list) or not items:
            return []

        definition = self.registry.resolve(config.node or "form")
        if definition is None or definition.create is None:
            logger.warning("unknown_node_type", node_type=config.node, operation="build_from_config")
            return []

        schema = config.config.get("schema")

        if definition.capabilities.is_collection:
            result = definition.create(CreateContext(data=items, schema=schema))
            if config.title:
                title = config.title.replace("{{count}}", str(len(items)))
            else:
                title = f"{definition.meta.title} ({len(items)})"
            return [
                NodeSpec(
                    type=definition.type,
                    data={
                        "title": title,
                        "collapsed": config.collapsed if config.collapsed is not None else False,
                        **result.data,
                        "content": result.asset.value if result.asset else None,
                    },
                    position="below",
                    asset_config=config.config,
                )
            ]

        specs = []
        for index, item in enumerate(items):
            result = definition.create(CreateContext(data=item, schema=schema))
            title = render_title(config.title, item, index) if config.title else f"#{index + 1}"
            specs.append(
                NodeSpec(
                    type=definition.type,
                    data={
                        "title": title,
                        "collapsed": config.collapsed if config.collapsed is not None else True,
                        **result.data,
                        "content": result.asset.value if result.asset else None,
                    },
                    position="below" if index == 0 else None,
                    docked_to=PREV_NODE if index > 0 else None,
                    asset_config=config.config,
                )
            )
        return specs

    def add_nodes_from_specs(self, specs: list[NodeSpec], anchor_id: str) -> list[str]:
        """
        Materialize node specs next to an anchor (usually the recipe node).

        The first node is linked to the anchor's ``product`` port.
        """
        anchor = self.engine.get_node(anchor_id)
        if anchor is None:
            logger.warning("node_not_found", node_id=anchor_id, operation="add_from_specs")
            return []

        created: list[str] = []
        prev_id: Optional[str] = None

        for index, spec in enumerate(specs):
            position = self._spec_position(spec, anchor)

            docked_to = None
            if spec.docked_to == PREV_NODE:
                if prev_id is not None:
                    docked_to = prev_id
                    prev = self.engine.get_node(prev_id)
                    position = Position(
                        x=prev.position.x,
                        y=prev.position.y + (prev.measured_height or DOCKED_FALLBACK_HEIGHT),
                    )
            elif spec.docked_to:
                docked_to = spec.docked_to

            data = dict(spec.data)
            content = data.pop("content", None)
            asset_name = data.pop("asset_name", None)
            title = data.pop("title", None)

            node_id = self.add_node(
                spec.type,
                position,
                title=title,
                content=content,
                asset_name=asset_name,
                asset_config=spec.asset_config,
                docked_to=docked_to,
                data=data,
            )
            if index == 0:
                self.engine.connect_output_edge(anchor_id, node_id, "product", "origin")

            created.append(node_id)
            prev_id = node_id

        return created

    def _spec_position(self, spec: NodeSpec, anchor: Node) -> Position:
        if isinstance(spec.position, Position):
            return spec.position
        if spec.position == "below":
            return Position(
                x=anchor.position.x,
                y=anchor.position.y + (anchor.measured_height or SPEC_FALLBACK_HEIGHT) + SPEC_GAP,
            )
        if spec.position == "right":
            return Position(
                x=anchor.position.x + (anchor.measured_width or SPEC_FALLBACK_WIDTH) + SPEC_GAP,
                y=anchor.position.y,
            )
        return anchor.position.model_copy()

    # =========================================================================
    # Helpers
    # =========================================================================

    def _append(self, nodes: list[Node]) -> None:
        combined = sort_topologically([*self.engine.state.nodes, *nodes])
        self.engine.set_nodes(self.engine.layout.fix_global_layout(combined))
