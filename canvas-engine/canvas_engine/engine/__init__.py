"""Graph engine: layout, mutation, interaction and asset subsystems."""
