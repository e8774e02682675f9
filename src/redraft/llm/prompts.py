"""Prompt templates and builders for document edits and chat.

All builders are pure and deterministic: identical inputs give byte-identical
prompts. The full document is always embedded verbatim; only target previews
are shortened.

Static text is dedented before the document is interpolated, so indentation
inside the document is never touched.
"""

from textwrap import dedent
from typing import Optional, Sequence

from redraft.models.edit_request import EditTarget, HistoryTurn

PREVIEW_LIMIT = 200
ELLIPSIS = "..."

EDIT_SYSTEM_PROMPT = (
    "You are an essay editing assistant. Return only the edited text with no additional commentary."
)

CHAT_SYSTEM_PROMPT = dedent("""
    You are a helpful writing assistant. The user is working on an essay and wants to discuss it
    with you. Answer questions, give feedback, suggest improvements, and have a natural
    conversation. Do NOT return a full edited document; respond conversationally.
""").strip()

_EDIT_PREAMBLE = dedent("""
    You are an expert essay editor. Apply the editing instructions and return ONLY the complete
    edited document. Do not include explanations, markdown code fences, or any other
    commentary. Output the raw edited document only.
""").strip()


def preview_text(content: str, limit: int = PREVIEW_LIMIT) -> str:
    """Shorten target content to at most `limit` characters plus an ellipsis."""
    if len(content) > limit:
        return content[:limit] + ELLIPSIS
    return content


def _render_target(index: int, target: EditTarget) -> str:
    """Render one numbered target entry (1-indexed)."""
    if target.type == "section":
        type_label = f'Section "{target.label}"'
    else:
        type_label = f"Selected text: {target.label}"

    quoted = preview_text(target.content).replace("\n", "\n   > ")
    entry = f"{index}. {type_label}:\n   > {quoted}"

    if target.instruction.strip():
        entry += f"\n   Additional instruction: {target.instruction}"

    return entry


def build_edit_prompt(
    full_content: str,
    instruction: Optional[str] = None,
    targets: Optional[Sequence[EditTarget]] = None,
) -> str:
    """Build the prompt for an edit request.

    Without targets this is the whole-document form; with targets it is the
    multi-target form, where the model is asked to merge every change into a
    single complete document.

    Args:
        full_content: Entire document, embedded unmodified
        instruction: Whole-document instruction, or the overall instruction
            applied to every target
        targets: Section/selection targets, rendered as a numbered list

    Returns:
        Prompt string
    """
    if not targets:
        return (
            f"{_EDIT_PREAMBLE}\n\n"
            f"Here is the full document:\n\n"
            f"{full_content}\n\n"
            f"Instruction: {instruction or ''}\n\n"
            f"Return the complete edited document:"
        )

    target_list = "\n\n".join(
        _render_target(i, target) for i, target in enumerate(targets, start=1)
    )

    if instruction and instruction.strip():
        directive = (
            f"Overall instruction: {instruction}\n\n"
            f"Apply the overall instruction to each of the following targets. "
            f"If a target has an additional instruction, apply that as well:"
        )
    else:
        directive = "Apply each target's additional instruction to that target:"

    return (
        f"{_EDIT_PREAMBLE}\n\n"
        f"Here is the full document:\n\n"
        f"{full_content}\n\n"
        f"{directive}\n\n"
        f"{target_list}\n\n"
        f"Return the complete edited document with all changes applied:"
    )


def build_chat_prompt(
    full_content: str,
    message: str,
    history: Optional[Sequence[HistoryTurn]] = None,
) -> str:
    """Build the prompt for a conversational turn.

    Prior turns are replayed in order, labelled by role, before the new
    message. No output-format restrictions are added.
    """
    parts = [f"Here is the essay the user is working on:\n\n---\n{full_content}\n---"]

    if history:
        parts.append("Conversation so far:")
        for turn in history:
            label = "User" if turn.role == "user" else "Assistant"
            parts.append(f"{label}: {turn.content}")

    parts.append(f"User: {message}")
    return "\n\n".join(parts)
