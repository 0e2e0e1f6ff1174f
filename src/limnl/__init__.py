"""Limnl: dream and mind-dump journaling with optional LLM enrichment."""

__version__ = "0.3.0"
