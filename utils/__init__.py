"""Shared helpers: layered option overrides and result writers."""
