"""In-memory graph store.

The engine never mutates state in place. It reads a snapshot with
``get_state()`` and replaces whole collections with ``set_nodes`` /
``set_edges`` / ``set_assets`` (or ``set_graph`` for nodes and edges at
once). Subscribers are called after every replace.
"""
from typing import Callable, Optional

from canvas_engine.models.graph import Asset, Edge, GraphState, Node

Listener = Callable[[GraphState], None]


class GraphStore:
    """Holds the canonical nodes, edges and assets."""

    def __init__(self, state: Optional[GraphState] = None):
        self._state = state or GraphState()
        self._listeners: list[Listener] = []

    def get_state(self) -> GraphState:
        return self._state

    def set_nodes(self, nodes: list[Node]) -> None:
        self._replace(nodes=list(nodes))

    def set_edges(self, edges: list[Edge]) -> None:
        self._replace(edges=list(edges))

    def set_assets(self, assets: dict[str, Asset]) -> None:
        self._replace(assets=dict(assets))

    def set_graph(self, nodes: list[Node], edges: list[Edge]) -> None:
        """Replace nodes and edges together with a single notification."""
        self._replace(nodes=list(nodes), edges=list(edges))

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a change listener. Returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _replace(self, **changes) -> None:
        self._state = self._state.model_copy(update=changes)
        for listener in list(self._listeners):
            listener(self._state)
