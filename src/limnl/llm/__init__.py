"""LLM provider access, prompt building and response parsing."""
