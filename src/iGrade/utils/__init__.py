"""Shared helpers (logging, JSON persistence)."""
