"""Prompt builders for the AI-backed steps."""
