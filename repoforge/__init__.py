"""RepoForge: generate standards-compliant project repositories with a local LLM."""

__version__ = "0.1.0"
