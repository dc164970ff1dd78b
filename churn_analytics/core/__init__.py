"""Core engine modules: logging and exceptions."""
