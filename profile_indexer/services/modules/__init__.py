"""Module registry, dispatch and execution."""
