"""API route modules."""
from canvas_engine.api import graph

__all__ = ["graph"]
