"""Seed demo: a small research canvas.

This script drives the engine the way the canvas front end does:

1. Creates a recipe node with a two-field input schema
2. Materializes the recipe's output items as a docked chain of forms
3. Drops a text note into a rack
4. Connects a selector to a form so the selected item auto-fills a field
5. Collapses the head of the chain and shows the followers moving up

The resulting project file is written to ``output/seed_project.json``.
"""

import json
from pathlib import Path

from canvas_engine.engine.graph_engine import GraphEngine
from canvas_engine.engine.mutator import OutputConfig
from canvas_engine.models.project import Project, ProjectMeta, dump_project

RECIPE_SCHEMA = [
    {"key": "topic", "label": "Topic"},
    {"key": "audience", "label": "Audience"},
]

# Items a recipe run would return
RECIPE_OUTPUT = [
    {"name": "Red fox", "habitat": "Forest edge"},
    {"name": "Snowy owl", "habitat": "Tundra"},
    {"name": "Otter", "habitat": "Rivers"},
]

ANIMALS = [
    {"name": "Badger", "type": "Mammal"},
    {"name": "Heron", "type": "Bird"},
]


def print_nodes(engine: GraphEngine, title: str):
    print(title)
    print("-" * 40)
    for node in engine.state.nodes:
        docked = f" docked to {node.data.docked_to[:8]}" if node.data.docked_to else ""
        parent = f" in {node.parent_id[:8]}" if node.parent_id else ""
        print(
            f"  - {node.data.title or node.type:<16} "
            f"({node.position.x:>6.0f}, {node.position.y:>6.0f}){docked}{parent}"
        )
    print()


def run_seed_demo() -> Project:
    """Build the demo canvas and return it as a project."""

    print("=" * 60)
    print("Canvas Graph Engine - Seed Demo")
    print("=" * 60)
    print()

    engine = GraphEngine()
    mutator = engine.mutator

    # Recipe and its output chain
    recipe_asset_id = engine.assets.create(
        value_type="record",
        value={"topic": "Animals", "audience": "Kids"},
        name="Find animals",
        config={"schema": RECIPE_SCHEMA},
    )
    recipe_id = mutator.add_node("recipe", {"x": 0, "y": 0}, title="Find animals", asset_id=recipe_asset_id)
    specs = mutator.build_nodes_from_config(
        RECIPE_OUTPUT,
        OutputConfig(node="form", title="{{index}}. {{name}}", collapsed=False),
    )
    chain = mutator.add_nodes_from_specs(specs, recipe_id)

    # A rack holding a note
    rack_id = mutator.add_node("rack", {"x": 400, "y": 0}, title="Notes")
    note_id = mutator.add_node("text", {"x": 420, "y": 60}, title="Idea", content="Compare habitats")
    engine.reparent_node(note_id, rack_id)

    # Selector feeding a form
    selector_id = mutator.create_node_from_schema("selector", [], title="Pick one")
    engine.assets.update(
        engine.get_node(selector_id).data.asset_id,
        [{"id": f"opt-{i}", **item} for i, item in enumerate(ANIMALS)],
    )
    engine.update_node(selector_id, {"data": {"selected": ["opt-1"]}})
    form_id = mutator.create_node_from_schema(
        "form",
        [{"key": "selectedName", "label": "Selected"}],
        title="Chosen animal",
        source_node_id=selector_id,
    )
    result = engine.interaction.connect(
        {
            "source": selector_id,
            "sourceHandle": "output",
            "target": form_id,
            "targetHandle": "selectedName",
        }
    )
    print(f"🔗 Connection valid: {result.valid}")
    print(f"   Auto-filled value: {engine.state.asset_for(engine.get_node(form_id)).value}")
    print()

    print_nodes(engine, "📊 Canvas after creation:")

    engine.layout.toggle_node_collapse(chain[0])
    print_nodes(engine, "📊 Canvas after collapsing the first output node:")

    project = Project.from_state(engine.state, meta=ProjectMeta(name="Seed demo"))

    output_dir = Path(__file__).parent / "output"
    output_dir.mkdir(exist_ok=True)
    project_path = output_dir / "seed_project.json"
    with open(project_path, "w") as f:
        json.dump(dump_project(project), f, indent=2)
    print(f"💾 Project saved to: {project_path}")

    print()
    print("=" * 60)
    print("Seed demo completed successfully!")
    print("=" * 60)

    return project


if __name__ == "__main__":
    run_seed_demo()
