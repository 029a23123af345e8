"""Claim ledger, document and flow pipeline for people profiles."""
__version__ = "0.1.0"
