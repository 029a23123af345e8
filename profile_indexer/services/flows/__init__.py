"""Flow definitions, orchestration and status."""
