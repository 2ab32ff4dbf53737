"""Ledger collaborators by chain family."""
