"""Built-in node types.

Each node type pairs a ``create`` factory with its ports and a behavior
derived from the standard asset behavior. Recipe output can be turned into
any of these through ``GraphMutator.build_nodes_from_config``.
"""
from dataclasses import replace
from enum import Enum
from typing import Optional

from canvas_engine.engine.types import ConnectionContext, EngineContext, NodeBehavior
from canvas_engine.models.graph import Asset, Node
from canvas_engine.ports.resolver import resolve_input_value
from canvas_engine.ports.types import (
    NodePortConfig,
    PortDataType,
    PortDefinition,
    PortDirection,
    PortValue,
    array_value,
    json_value,
    text_value,
)
from canvas_engine.registry.nodes import (
    AssetSeed,
    CreateContext,
    CreateResult,
    NodeCapabilities,
    NodeDefinition,
    NodeMeta,
    NodeRegistry,
)
from canvas_engine.registry.standard import STANDARD_BEHAVIOR, field_value
from canvas_engine.registry.vertical_stack import DEFAULT_WIDTH, VERTICAL_STACK_BEHAVIOR


class NodeType(str, Enum):
    """Built-in node type tags."""
    TEXT = "text"
    FORM = "form"
    RECIPE = "recipe"
    SELECTOR = "selector"
    TABLE = "table"
    IMAGE = "image"
    RACK = "rack"
    GROUP = "group"


DEFAULT_OPTION_SCHEMA = [
    {"key": "label", "label": "Label", "type": "string", "widget": "text"},
    {"key": "description", "label": "Description", "type": "string", "widget": "text"},
]


def auto_fill(skip_handles: tuple[str, ...]):
    """Build an ``on_connect`` hook that copies the incoming value into the target field."""

    def on_connect(ctx: ConnectionContext) -> Optional[dict]:
        target_handle = ctx.edge.target_handle
        if not target_handle or target_handle in skip_handles:
            return None
        value = resolve_input_value(ctx.source_port_value, target_handle)
        return {target_handle: value} if value is not None else None

    return on_connect


# =============================================================================
# TEXT
# =============================================================================

def text_resolve_output(node: Node, asset: Optional[Asset], port_id: str, context=None):
    if port_id in ("output", "origin"):
        return text_value(node, port_id, (asset.value if asset else None) or "")
    return None


def create_text(ctx: CreateContext) -> CreateResult:
    return CreateResult(asset=AssetSeed(value_type="text", value=ctx.data or ""))


TEXT_DEFINITION = NodeDefinition(
    type=NodeType.TEXT.value,
    meta=NodeMeta(
        title="Text",
        description="Text content",
        alias="text",
        style={"width": 250, "height": 200, "minWidth": 200},
    ),
    capabilities=NodeCapabilities(collapsible=True),
    create=create_text,
    ports=NodePortConfig(
        static=[
            PortDefinition(
                id="output",
                direction=PortDirection.OUTPUT,
                data_type=PortDataType.TEXT,
                label="Text Output",
                resolver=lambda node, asset: text_resolve_output(node, asset, "output"),
            )
        ]
    ),
    behavior=replace(STANDARD_BEHAVIOR, resolve_output=text_resolve_output),
)


# =============================================================================
# FORM
# =============================================================================

def docked_chain_values(node: Node, context: Optional[EngineContext]) -> list:
    """Asset values along a docking chain, master first."""
    if context is None:
        return []

    chain = []
    visited = set()
    current = node
    while current is not None and current.id not in visited:
        visited.add(current.id)
        asset = context.get_asset(current.data.asset_id)
        if asset is not None and asset.value:
            chain.insert(0, asset.value)
        current = context.get_node(current.data.docked_to) if current.data.docked_to else None
    return chain


def form_resolve_output(
    node: Node,
    asset: Optional[Asset],
    port_id: str,
    context: Optional[EngineContext] = None,
) -> Optional[PortValue]:
    if asset is None:
        return None

    if port_id in ("output", "origin"):
        return json_value(node, port_id, asset.value or {})

    if port_id == "array":
        chain = docked_chain_values(node, context)
        if not chain and asset.value:
            chain = [asset.value]
        return array_value(node, port_id, chain)

    return field_value(node, asset.value, port_id)


def create_form(ctx: CreateContext) -> CreateResult:
    return CreateResult(
        asset=AssetSeed(
            value_type="record",
            value=ctx.data or {},
            value_meta={},
            config={"schema": ctx.schema or []},
        )
    )


FORM_DEFINITION = NodeDefinition(
    type=NodeType.FORM.value,
    meta=NodeMeta(
        title="Form",
        description="Form data with custom schema",
        alias="form",
        style={"width": 250, "height": 200, "minWidth": 200},
    ),
    capabilities=NodeCapabilities(collapsible=True, dockable=True),
    create=create_form,
    ports=NodePortConfig(
        static=[
            PortDefinition(
                id="output",
                direction=PortDirection.OUTPUT,
                data_type=PortDataType.JSON,
                label="JSON Output",
            ),
            PortDefinition(
                id="array",
                direction=PortDirection.OUTPUT,
                data_type=PortDataType.ARRAY,
                label="Array Output",
                semantic=True,
            ),
        ]
    ),
    behavior=replace(
        STANDARD_BEHAVIOR,
        resolve_output=form_resolve_output,
        on_connect=auto_fill(("origin", "output", "array")),
    ),
)


# =============================================================================
# RECIPE
# =============================================================================

def recipe_resolve_output(
    node: Node,
    asset: Optional[Asset],
    port_id: str,
    context: Optional[EngineContext] = None,
) -> Optional[PortValue]:
    if asset is None or not asset.value or not isinstance(asset.value, dict):
        return None

    values = asset.value
    if port_id in ("reference", "origin"):
        return json_value(node, port_id, values)

    resolved = field_value(node, values, port_id)
    if resolved is not None:
        return resolved

    # Dynamic field ports are addressed by bare key
    if port_id in values:
        return field_value(node, values, f"field:{port_id}")
    return None


def recipe_dynamic_ports(node: Node, asset: Optional[Asset]) -> list[PortDefinition]:
    """One input port per schema field."""
    schema = asset.config.get("schema", []) if asset else []
    ports = []
    for field in schema:
        key = field.get("key") if isinstance(field, dict) else None
        if key:
            ports.append(
                PortDefinition(
                    id=key,
                    direction=PortDirection.INPUT,
                    label=field.get("label") or key,
                )
            )
    return ports


RECIPE_DEFINITION = NodeDefinition(
    type=NodeType.RECIPE.value,
    meta=NodeMeta(title="Recipe", category="Recipe", alias="recipe", style={"width": 300}),
    capabilities=NodeCapabilities(collapsible=True),
    ports=NodePortConfig(
        static=[
            PortDefinition(
                id="product",
                direction=PortDirection.OUTPUT,
                label="Product",
                semantic=True,
            ),
            PortDefinition(
                id="reference",
                direction=PortDirection.OUTPUT,
                data_type=PortDataType.JSON,
                label="Reference",
                semantic=True,
            ),
        ],
        dynamic=recipe_dynamic_ports,
    ),
    behavior=replace(
        STANDARD_BEHAVIOR,
        resolve_output=recipe_resolve_output,
        on_connect=auto_fill(("origin", "product", "output", "trigger", "reference")),
    ),
)


# =============================================================================
# SELECTOR
# =============================================================================

def selector_items(node: Node, asset: Asset) -> tuple[list, list]:
    """(all items, selected ids) from either asset layout."""
    if isinstance(asset.value, list):
        return asset.value, node.data.get_extra("selected") or []
    content = asset.value if isinstance(asset.value, dict) else {}
    return content.get("options") or [], content.get("selected") or []


def selector_resolve_output(
    node: Node,
    asset: Optional[Asset],
    port_id: str,
    context: Optional[EngineContext] = None,
) -> Optional[PortValue]:
    if asset is None or not asset.value:
        return None

    items, selected_ids = selector_items(node, asset)
    selected = [item for item in items if isinstance(item, dict) and item.get("id") in selected_ids]

    if port_id == "output":
        return array_value(node, port_id, selected)
    if port_id == "origin":
        return array_value(node, port_id, items)
    if selected:
        return field_value(node, selected[0], port_id)
    return None


def create_selector(ctx: CreateContext) -> CreateResult:
    items = ctx.data if isinstance(ctx.data, list) else []
    return CreateResult(
        data={"selected": []},
        asset=AssetSeed(
            value_type="array",
            value=[{"id": item.get("id") or f"opt-{i}", **item} for i, item in enumerate(items)],
            config={"mode": "multi", "optionSchema": ctx.schema or DEFAULT_OPTION_SCHEMA},
        ),
    )


SELECTOR_DEFINITION = NodeDefinition(
    type=NodeType.SELECTOR.value,
    meta=NodeMeta(
        title="Selector",
        description="Select items from a list",
        alias="selector",
        style={"width": 280, "height": 300, "minWidth": 200},
    ),
    capabilities=NodeCapabilities(collapsible=True, is_collection=True),
    create=create_selector,
    ports=NodePortConfig(
        static=[
            PortDefinition(
                id="output",
                direction=PortDirection.OUTPUT,
                data_type=PortDataType.ARRAY,
                label="Selected Items",
                resolver=lambda node, asset: selector_resolve_output(node, asset, "output"),
            )
        ]
    ),
    behavior=replace(STANDARD_BEHAVIOR, resolve_output=selector_resolve_output),
)


# =============================================================================
# TABLE
# =============================================================================

def table_resolve_output(
    node: Node,
    asset: Optional[Asset],
    port_id: str,
    context: Optional[EngineContext] = None,
) -> Optional[PortValue]:
    if asset is None or not asset.value:
        return None

    if isinstance(asset.value, list):
        rows = asset.value
    else:
        rows = asset.value.get("rows", []) if isinstance(asset.value, dict) else []

    if port_id in ("output", "origin"):
        return array_value(node, port_id, rows)
    if rows:
        return field_value(node, rows[0], port_id)
    return None


def create_table(ctx: CreateContext) -> CreateResult:
    rows = ctx.data if isinstance(ctx.data, list) else []
    columns = [
        {
            "key": f["key"],
            "label": f.get("label") or f["key"],
            "type": "number" if f.get("type") == "number" else "string",
        }
        for f in (ctx.schema or [])
    ]
    return CreateResult(
        data={"showRowNumbers": True, "allowAddRow": True, "allowDeleteRow": True},
        asset=AssetSeed(value_type="array", value=rows, config={"columns": columns}),
    )


TABLE_DEFINITION = NodeDefinition(
    type=NodeType.TABLE.value,
    meta=NodeMeta(
        title="Table",
        description="Editable data table",
        alias="table",
        style={"width": 360, "height": 250, "minWidth": 250},
    ),
    capabilities=NodeCapabilities(collapsible=True, is_collection=True),
    create=create_table,
    ports=NodePortConfig(
        static=[
            PortDefinition(
                id="output",
                direction=PortDirection.OUTPUT,
                data_type=PortDataType.ARRAY,
                label="Rows",
            )
        ]
    ),
    behavior=replace(STANDARD_BEHAVIOR, resolve_output=table_resolve_output),
)


# =============================================================================
# IMAGE
# =============================================================================

def image_resolve_output(
    node: Node,
    asset: Optional[Asset],
    port_id: str,
    context: Optional[EngineContext] = None,
) -> Optional[PortValue]:
    if port_id not in ("output", "origin"):
        return None
    if asset is None or asset.value_type != "record" or not isinstance(asset.value, dict):
        return None

    value = asset.value
    meta = asset.config.get("meta") or {}
    width = value.get("width")
    height = value.get("height")
    return json_value(
        node,
        port_id,
        {
            "url": value.get("src") or "",
            "width": width if width is not None else meta.get("width"),
            "height": height if height is not None else meta.get("height"),
            "mimeType": value.get("mimeType"),
        },
    )


def create_image(ctx: CreateContext) -> CreateResult:
    value = ctx.data if isinstance(ctx.data, dict) else {"src": ctx.data or ""}
    return CreateResult(asset=AssetSeed(value_type="record", value=value))


IMAGE_DEFINITION = NodeDefinition(
    type=NodeType.IMAGE.value,
    meta=NodeMeta(
        title="Image",
        description="Image asset",
        alias="image",
        style={"width": 300, "height": 300},
    ),
    capabilities=NodeCapabilities(collapsible=True),
    create=create_image,
    ports=NodePortConfig(
        static=[
            PortDefinition(
                id="output",
                direction=PortDirection.OUTPUT,
                data_type=PortDataType.JSON,
                label="Image Output",
            )
        ]
    ),
    behavior=replace(STANDARD_BEHAVIOR, resolve_output=image_resolve_output),
)


# =============================================================================
# CONTAINERS
# =============================================================================

RACK_DEFINITION = NodeDefinition(
    type=NodeType.RACK.value,
    meta=NodeMeta(
        title="Rack",
        category="Container",
        description="Vertical stack of nodes",
        alias="rack",
        style={"width": DEFAULT_WIDTH},
    ),
    capabilities=NodeCapabilities(collapsible=True),
    behavior=VERTICAL_STACK_BEHAVIOR,
)

GROUP_DEFINITION = NodeDefinition(
    type=NodeType.GROUP.value,
    meta=NodeMeta(
        title="Group",
        category="Container",
        description="Free-form group",
        alias="group",
        style={"width": 400, "height": 300},
    ),
    capabilities=NodeCapabilities(collapsible=True),
    behavior=NodeBehavior(),
)


BUILTIN_DEFINITIONS = [
    TEXT_DEFINITION,
    FORM_DEFINITION,
    RECIPE_DEFINITION,
    SELECTOR_DEFINITION,
    TABLE_DEFINITION,
    IMAGE_DEFINITION,
    RACK_DEFINITION,
    GROUP_DEFINITION,
]


def register_builtin_nodes(registry: NodeRegistry) -> NodeRegistry:
    """Register every built-in node type."""
    for definition in BUILTIN_DEFINITIONS:
        registry.register(definition)
    return registry


def create_registry() -> NodeRegistry:
    """A fresh registry (own behavior and port registries) with the built-ins."""
    return register_builtin_nodes(NodeRegistry())
