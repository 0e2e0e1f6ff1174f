"""Persistence and workflow services."""
