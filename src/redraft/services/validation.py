"""Synchronous validation of edit/chat requests."""

from redraft.models.edit_request import EditRequest
from redraft.services.exceptions import EditRequestError


def validate_edit_request(request: EditRequest) -> None:
    """Reject requests that cannot be turned into a prompt.

    Rules:
    - full_content is required for every request
    - chat mode needs a non-empty message (instruction)
    - edit mode needs an edit_level
    - whole-document edits need an instruction
    - section/selection edits need a non-empty target list, and at least one
      of the overall instruction or a per-target instruction

    Raises:
        EditRequestError: With a message naming the missing field
    """
    if not request.full_content:
        raise EditRequestError("Missing required field: fullContent")

    if request.mode == "chat":
        if not (request.instruction or "").strip():
            raise EditRequestError("Missing message for chat")
        return

    if not request.edit_level:
        raise EditRequestError("Missing required field: editLevel")

    if request.edit_level in ("whole", "chat"):
        if not (request.instruction or "").strip():
            raise EditRequestError("Missing instruction for whole-document editing")
        return

    if not request.targets:
        raise EditRequestError("Missing targets for section/selection editing")

    has_overall = bool((request.instruction or "").strip())
    has_per_target = any(t.instruction.strip() for t in request.targets)
    if not (has_overall or has_per_target):
        raise EditRequestError("Missing instruction for section/selection editing")
