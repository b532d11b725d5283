"""LLM provider interfaces."""
