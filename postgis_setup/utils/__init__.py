"""Helpers for running the PostgreSQL client utilities."""
