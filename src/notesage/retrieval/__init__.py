"""Similarity ranking and context assembly."""
