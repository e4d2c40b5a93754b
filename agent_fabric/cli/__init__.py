"""Command-line interface for agent-fabric."""
