"""
RAG Memory - project-scoped memory records with semantic search

Backend functions a hosting application calls to store decisions, code
patterns and progress notes, and to retrieve the most relevant ones later.
"""

__version__ = "1.0.0"
