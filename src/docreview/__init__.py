"""Staged LLM quality analysis of long-form documents."""

__version__ = "0.1.0"
