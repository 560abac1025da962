"""Documind — grounded documentation chat assistant."""
