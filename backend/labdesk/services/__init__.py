"""Core booking, stock ledger, catalogue and alert services."""
