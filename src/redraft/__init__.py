"""Redraft - iterative AI-assisted rewriting of markdown documents."""

__version__ = "0.1.0"
