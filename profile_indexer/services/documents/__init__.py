"""Document store."""
