"""Pydantic models for the canvas graph engine."""
from canvas_engine.models.graph import (
    Asset,
    AssetSys,
    Dimensions,
    Edge,
    FieldDefinition,
    GraphState,
    Node,
    NodeData,
    NodeState,
    NodeStyle,
    Position,
)
from canvas_engine.models.project import (
    Project,
    ProjectGraph,
    ProjectMeta,
    Viewport,
    dump_project,
    load_project,
)

__all__ = [
    "Asset",
    "AssetSys",
    "Dimensions",
    "Edge",
    "FieldDefinition",
    "GraphState",
    "Node",
    "NodeData",
    "NodeState",
    "NodeStyle",
    "Position",
    "Project",
    "ProjectGraph",
    "ProjectMeta",
    "Viewport",
    "dump_project",
    "load_project",
]
