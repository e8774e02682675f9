"""Markdown document structure helpers."""

from redraft.document.sections import Section, parse_sections, replace_section_content, resolve_section

__all__ = ["Section", "parse_sections", "replace_section_content", "resolve_section"]
