"""Knowledge-base adapters."""

from .solvr import SolvrKnowledgeClient

__all__ = ["SolvrKnowledgeClient"]
