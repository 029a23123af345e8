"""Layer snapshots."""
