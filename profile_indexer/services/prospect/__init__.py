"""Prospect search fanout into persons."""
