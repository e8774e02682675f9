"""Markdown section parser.

Sections are derived from ATX headings (`#` through `######`). A section runs
from its heading line to the line before the next heading of any level, or to
the end of the document. Text before the first heading belongs to no section.

Section ids (`section-<i>`) are positional and only valid for the parse pass
that produced them. Re-parse after every document change; to find "the same"
section in a changed document, use resolve_section (heading text + ordinal).
"""

import re
from dataclasses import dataclass
from typing import Optional

HEADING_PATTERN = re.compile(r"^(#{1,6})\s+(\S.*?)\s*$")


@dataclass(frozen=True)
class Section:
    """Structural section of a markdown document.

    Attributes:
        id: Synthetic key scoped to one parse pass ("section-0", "section-1", ...)
        title: Heading text without the leading #'s
        level: Heading level (1-6)
        start_line: 0-based index of the heading line
        end_line: 0-based index of the section's last line (inclusive)
        content: Lines start_line..end_line joined with newlines
    """

    id: str
    title: str
    level: int
    start_line: int
    end_line: int
    content: str


def parse_sections(document: str) -> list[Section]:
    """Parse a markdown document into ordered, contiguous sections.

    Single linear pass over the lines; no state survives between calls.

    Args:
        document: Raw document text

    Returns:
        Sections ordered by start_line. Empty if the document has no headings.

    Examples:
        >>> [s.title for s in parse_sections("# Intro\\ntext\\n# Body\\nmore")]
        ['Intro', 'Body']
    """
    lines = document.split("\n")
    headings: list[tuple[int, int, str]] = []

    for index, line in enumerate(lines):
        match = HEADING_PATTERN.match(line)
        if match:
            headings.append((index, len(match.group(1)), match.group(2)))

    sections = []
    for i, (start_line, level, title) in enumerate(headings):
        if i + 1 < len(headings):
            end_line = headings[i + 1][0] - 1
        else:
            end_line = len(lines) - 1

        sections.append(
            Section(
                id=f"section-{i}",
                title=title,
                level=level,
                start_line=start_line,
                end_line=end_line,
                content="\n".join(lines[start_line:end_line + 1]),
            )
        )

    return sections


def replace_section_content(document: str, section: Section, new_content: str) -> str:
    """Splice new text in place of a section's lines.

    The section must come from parsing this exact document; stale sections
    splice at the wrong lines.
    """
    lines = document.split("\n")
    before = lines[:section.start_line]
    after = lines[section.end_line + 1:]
    return "\n".join(before + [new_content] + after)


def resolve_section(document: str, title: str, ordinal: int = 0) -> Optional[Section]:
    """Find a section by heading text in the current document.

    Args:
        document: Current document text
        title: Heading text to match exactly
        ordinal: Which match to return when several headings share the title

    Returns:
        The matching section from a fresh parse, or None
    """
    matches = [s for s in parse_sections(document) if s.title == title]
    if 0 <= ordinal < len(matches):
        return matches[ordinal]
    return None
