"""Pydantic data models for Limnl."""
