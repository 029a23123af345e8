"""Pydantic and dataclass contracts shared across services."""
