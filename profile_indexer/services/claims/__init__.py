"""Claims ledger."""
