"""Pydantic data models for Redraft."""
