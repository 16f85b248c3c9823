"""Canvas graph data model.

Nodes, edges and assets are plain serializable records. Field names are
snake_case in Python and camelCase on the wire, so a project file written
by the canvas front end loads unchanged:
- Node geometry is (position, style dimensions, measured dimensions)
- Edges connect a source port to a target port
- Assets carry the content a node displays, keyed by ``node.data.asset_id``

Unknown keys are kept on nodes, edges, styles and node data so they survive
a load/dump round trip.
"""
import time
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class NodeState(str, Enum):
    """Execution state of a node."""
    IDLE = "idle"
    RUNNING = "running"
    SUCCESS = "success"
    ERROR = "error"


class CanvasModel(BaseModel):
    """Base model: camelCase aliases, either spelling accepted on input."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Position(CanvasModel):
    """Position of a node relative to its parent (or the canvas origin)."""

    x: float = 0
    y: float = 0


class Dimensions(CanvasModel):
    """Width/height pair as measured by the renderer."""

    width: Optional[float] = None
    height: Optional[float] = None


class NodeStyle(CanvasModel):
    """Explicit node style. Only the dimensions are interpreted."""

    model_config = ConfigDict(extra="allow")

    width: Optional[float] = None
    height: Optional[float] = None


class NodeData(CanvasModel):
    """Node payload: title, collapse and docking state, asset reference."""

    model_config = ConfigDict(extra="allow")

    title: str = Field("", description="Display title")
    collapsed: bool = Field(False, description="Whether the node is collapsed")
    docked_to: Optional[str] = Field(
        None,
        description="Id of the master this node is docked beneath",
    )
    has_docked_follower: bool = Field(
        False,
        description="Derived by the docking pass, never set by hand",
    )
    asset_id: Optional[str] = Field(None, description="Referenced asset id")
    state: str = Field(NodeState.IDLE.value, description="Execution state")

    def get_extra(self, key: str, default: Any = None) -> Any:
        """Read a key outside the declared fields."""
        return (self.model_extra or {}).get(key, default)


class Node(CanvasModel):
    """A positioned, typed unit on the canvas."""

    model_config = ConfigDict(extra="allow")

    id: str = Field(..., description="Unique node id")
    type: str = Field(..., description="Type tag used for behavior lookup")
    position: Position = Field(default_factory=Position)
    width: Optional[float] = None
    height: Optional[float] = None
    style: NodeStyle = Field(default_factory=NodeStyle)
    measured: Optional[Dimensions] = Field(
        None,
        description="Rendered size, read-only input to the engine",
    )
    parent_id: Optional[str] = Field(
        None,
        description="Containing node; position is relative to it",
    )
    extent: Optional[str] = None
    selected: bool = False
    hidden: bool = False
    draggable: Optional[bool] = None
    selectable: Optional[bool] = None
    connectable: Optional[bool] = None
    data: NodeData = Field(default_factory=NodeData)

    @property
    def measured_width(self) -> Optional[float]:
        return self.measured.width if self.measured else None

    @property
    def measured_height(self) -> Optional[float]:
        return self.measured.height if self.measured else None


class Edge(CanvasModel):
    """A directed connection from a source port to a target port."""

    model_config = ConfigDict(extra="allow")

    id: str
    source: str
    target: str
    source_handle: Optional[str] = None
    target_handle: Optional[str] = None
    type: Optional[str] = None
    data: Optional[dict[str, Any]] = None


class FieldDefinition(CanvasModel):
    """One field of a record schema (stored in ``asset.config['schema']``)."""

    model_config = ConfigDict(extra="allow")

    key: str = Field(..., description="Field key in the record value")
    type: str = Field("string", description="Field value type")
    label: Optional[str] = None
    widget: Optional[str] = None
    required: bool = False
    hidden: bool = False
    default_value: Optional[Any] = None


def now_ms() -> int:
    return int(time.time() * 1000)


class AssetSys(CanvasModel):
    """System metadata of an asset."""

    name: str = "New Asset"
    created_at: int = Field(default_factory=now_ms)
    updated_at: int = Field(default_factory=now_ms)
    source: str = "user"


class Asset(CanvasModel):
    """Content-bearing record referenced by ``node.data.asset_id``."""

    model_config = ConfigDict(extra="allow")

    id: str
    value_type: str = Field("record", description="text, record, array, ...")
    value: Any = None
    value_meta: Optional[dict[str, Any]] = None
    config: dict[str, Any] = Field(default_factory=dict)
    sys: AssetSys = Field(default_factory=AssetSys)

    @property
    def schema_keys(self) -> list[str]:
        """Sorted field keys of the record schema, if any."""
        schema = self.config.get("schema") or []
        keys = []
        for field in schema:
            if isinstance(field, dict):
                keys.append(field.get("key"))
            else:
                keys.append(getattr(field, "key", None))
        return sorted(k for k in keys if k is not None)


class GraphState(CanvasModel):
    """Snapshot of the canonical graph: nodes, edges and assets."""

    nodes: list[Node] = Field(default_factory=list)
    edges: list[Edge] = Field(default_factory=list)
    assets: dict[str, Asset] = Field(default_factory=dict)

    def get_node(self, node_id: Optional[str]) -> Optional[Node]:
        """Get a node by its ID."""
        if node_id is None:
            return None
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def get_asset(self, asset_id: Optional[str]) -> Optional[Asset]:
        """Get an asset by its ID."""
        if asset_id is None:
            return None
        return self.assets.get(asset_id)

    def asset_for(self, node: Node) -> Optional[Asset]:
        """Get the asset a node references."""
        return self.get_asset(node.data.asset_id)
