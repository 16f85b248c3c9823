"""Persisted project file shape.

A project file wraps the graph snapshot with metadata, the viewport and
per-project settings. Node and edge records round-trip through it unchanged.
"""
from typing import Any, Optional
from uuid import uuid4

from pydantic import Field

from canvas_engine.models.graph import Asset, CanvasModel, Edge, GraphState, Node

PROJECT_VERSION = "1.0.0"


class ProjectMeta(CanvasModel):
    """Project metadata."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    name: str = "Untitled Project"
    description: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    thumbnail: Optional[str] = None


class Viewport(CanvasModel):
    """Canvas pan/zoom."""

    x: float = 0
    y: float = 0
    zoom: float = 1


class ProjectGraph(CanvasModel):
    """Graph section of a project file."""

    nodes: list[Node] = Field(default_factory=list)
    edges: list[Edge] = Field(default_factory=list)


class Project(CanvasModel):
    """A complete project file."""

    version: str = PROJECT_VERSION
    meta: ProjectMeta = Field(default_factory=ProjectMeta)
    viewport: Viewport = Field(default_factory=Viewport)
    graph: ProjectGraph = Field(default_factory=ProjectGraph)
    assets: dict[str, Asset] = Field(default_factory=dict)
    settings: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_state(cls, state: GraphState, **kwargs) -> "Project":
        """Build a project around a graph snapshot."""
        return cls(
            graph=ProjectGraph(nodes=state.nodes, edges=state.edges),
            assets=state.assets,
            **kwargs,
        )

    def to_state(self) -> GraphState:
        """Extract the graph snapshot."""
        return GraphState(
            nodes=list(self.graph.nodes),
            edges=list(self.graph.edges),
            assets=dict(self.assets),
        )


def load_project(payload: dict) -> Project:
    """Parse a project file payload."""
    return Project.model_validate(payload)


def dump_project(project: Project) -> dict:
    """Serialize a project to its JSON shape (camelCase, nulls dropped)."""
    return project.model_dump(mode="json", by_alias=True, exclude_none=True)
