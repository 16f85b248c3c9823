"""Graph API endpoints - stateless operations over a posted graph snapshot."""
from typing import Any, Optional

import structlog
from fastapi import APIRouter, HTTPException
from pydantic import Field

from canvas_engine.engine.graph_engine import GraphEngine
from canvas_engine.engine.types import NodePatch
from canvas_engine.models.graph import CanvasModel, GraphState
from canvas_engine.ports.resolver import collect_input_values, resolve_port, state_context
from canvas_engine.ports.validator import Connection, validate_connection, would_create_cycle
from canvas_engine.store import GraphStore

logger = structlog.get_logger()

router = APIRouter()


class GraphRequest(CanvasModel):
    """Request body carrying a graph snapshot."""

    graph: GraphState = Field(..., description="Current nodes, edges and assets")


class GraphResponse(CanvasModel):
    """Graph snapshot after the operation."""

    graph: GraphState


class CollapseRequest(GraphRequest):
    node_id: str = Field(..., description="Node to collapse or expand")


class DeleteRequest(GraphRequest):
    node_ids: list[str] = Field(..., description="Nodes to delete with their descendants")


class NodeUpdate(CanvasModel):
    id: str
    patch: dict[str, Any] = Field(default_factory=dict)


class UpdateRequest(GraphRequest):
    updates: list[NodeUpdate] = Field(..., description="Partial node updates, applied in order")


class ConnectionRequest(GraphRequest):
    connection: Connection


class ValidationResponse(CanvasModel):
    valid: bool
    message: Optional[str] = None


class ConnectResponse(ValidationResponse):
    graph: GraphState


class ResolvePortRequest(GraphRequest):
    node_id: str
    port_id: str = Field("origin", description="Output port to resolve")


class PortValueResponse(CanvasModel):
    value: Optional[dict[str, Any]] = Field(
        None,
        description="Resolved port value, or null if the port has none",
    )


class InputValuesResponse(CanvasModel):
    values: dict[str, Any]


def _engine(graph: GraphState) -> GraphEngine:
    return GraphEngine(GraphStore(graph))


def _require_node(graph: GraphState, node_id: str) -> None:
    if graph.get_node(node_id) is None:
        raise HTTPException(status_code=404, detail=f"Node not found: {node_id}")


@router.post("/layout", response_model=GraphResponse)
async def run_layout(request: GraphRequest) -> GraphResponse:
    """Run container layout and the docking pass over the whole graph."""
    logger.info("layout_request", node_count=len(request.graph.nodes))

    try:
        engine = _engine(request.graph)
        engine.set_nodes(engine.layout.fix_global_layout(engine.state.nodes))
        return GraphResponse(graph=engine.state)

    except Exception as e:
        logger.error("layout_error", error=str(e))
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/nodes/collapse", response_model=GraphResponse)
async def toggle_collapse(request: CollapseRequest) -> GraphResponse:
    """Toggle a node's collapsed state and reflow the graph."""
    _require_node(request.graph, request.node_id)

    try:
        engine = _engine(request.graph)
        engine.layout.toggle_node_collapse(request.node_id)
        return GraphResponse(graph=engine.state)

    except Exception as e:
        logger.error("collapse_error", node_id=request.node_id, error=str(e))
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/nodes/delete", response_model=GraphResponse)
async def delete_nodes(request: DeleteRequest) -> GraphResponse:
    """
    Delete nodes.

    Deletion cascades to every descendant and removes every edge touching
    the deleted set. Unknown ids are ignored.
    """
    try:
        engine = _engine(request.graph)
        engine.delete_nodes(request.node_ids)
        return GraphResponse(graph=engine.state)

    except Exception as e:
        logger.error("delete_error", error=str(e))
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/nodes/update", response_model=GraphResponse)
async def update_nodes(request: UpdateRequest) -> GraphResponse:
    """Apply partial node updates; geometry changes re-run layout."""
    try:
        engine = _engine(request.graph)
        engine.update_nodes([NodePatch(id=u.id, patch=u.patch) for u in request.updates])
        return GraphResponse(graph=engine.state)

    except Exception as e:
        logger.error("update_error", error=str(e))
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/connections/validate", response_model=ValidationResponse)
async def check_connection(request: ConnectionRequest) -> ValidationResponse:
    """Check a proposed connection without creating it."""
    graph = request.graph
    connection = request.connection

    try:
        if would_create_cycle(graph.nodes, graph.edges, connection):
            return ValidationResponse(valid=False, message="Connection would create a cycle")

        engine = _engine(graph)
        result = validate_connection(
            connection,
            graph,
            ports=engine.ports,
            behaviors=engine.behaviors,
        )
        return ValidationResponse(**result.to_dict())

    except Exception as e:
        logger.error("validate_connection_error", error=str(e))
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/connections", response_model=ConnectResponse)
async def create_connection(request: ConnectionRequest) -> ConnectResponse:
    """Create a connection and let the target auto-fill the bound field."""
    try:
        engine = _engine(request.graph)
        result = engine.interaction.connect(request.connection)
        return ConnectResponse(valid=result.valid, message=result.message, graph=engine.state)

    except Exception as e:
        logger.error("connect_error", error=str(e))
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/ports/resolve", response_model=PortValueResponse)
async def resolve_port_value(request: ResolvePortRequest) -> PortValueResponse:
    """Resolve the value a node currently exposes on an output port."""
    _require_node(request.graph, request.node_id)

    try:
        engine = _engine(request.graph)
        node = engine.get_node(request.node_id)
        value = resolve_port(
            node,
            engine.state.asset_for(node),
            request.port_id,
            ports=engine.ports,
            behaviors=engine.behaviors,
            context=state_context(engine.state),
        )
        return PortValueResponse(value=value.to_dict() if value else None)

    except Exception as e:
        logger.error("resolve_port_error", node_id=request.node_id, error=str(e))
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/nodes/{node_id}/inputs", response_model=InputValuesResponse)
async def node_inputs(node_id: str, request: GraphRequest) -> InputValuesResponse:
    """Collect the value arriving on each connected input field of a node."""
    _require_node(request.graph, node_id)

    try:
        engine = _engine(request.graph)
        values = collect_input_values(
            node_id,
            engine.state,
            ports=engine.ports,
            behaviors=engine.behaviors,
        )
        return InputValuesResponse(values=values)

    except Exception as e:
        logger.error("collect_inputs_error", node_id=node_id, error=str(e))
        raise HTTPException(status_code=500, detail=str(e))
