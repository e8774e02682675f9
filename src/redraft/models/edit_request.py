"""Pydantic models for edit/chat requests and their targets."""

import uuid
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from redraft.models.config import ModelId


EditLevel = Literal["whole", "section", "selection", "chat"]
EditMode = Literal["edit", "chat"]

SELECTION_LABEL_LENGTH = 40


class _WireModel(BaseModel):
    """Base for models exchanged as camelCase JSON."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    def to_wire(self) -> dict:
        """Serialize with wire aliases, dropping unset optional fields."""
        return self.model_dump(by_alias=True, exclude_none=True)


class EditTarget(_WireModel):
    """
    One scoped unit of a multi-target edit.

    Section targets snapshot the section's title and content when added; they
    are not re-read when the document changes. Selection targets record the
    character offsets at capture time and are never re-validated.
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))

    type: Literal["section", "selection"] = Field(
        ...,
        description="Target kind"
    )

    label: str = Field(..., description="Display label (section title or quoted preview)")

    content: str = Field(..., description="Text captured when the target was added")

    instruction: str = Field(default="", description="Per-target instruction, may be empty")

    section_id: Optional[str] = Field(default=None, description="Section id at capture time")

    start: Optional[int] = Field(default=None, alias="from", description="Selection start offset")

    end: Optional[int] = Field(default=None, alias="to", description="Selection end offset")

    @classmethod
    def for_selection(cls, text: str, start: int, end: int) -> "EditTarget":
        """Build a selection target with a quoted, single-line preview label."""
        preview = text[:SELECTION_LABEL_LENGTH].replace("\n", " ")
        if len(text) > SELECTION_LABEL_LENGTH:
            preview += "..."
        return cls(
            type="selection",
            label=f'"{preview}"',
            content=text,
            start=start,
            end=end,
        )


class HistoryTurn(_WireModel):
    """Prior conversation turn replayed to the model in chat mode."""

    role: Literal["user", "assistant"]
    content: str


class EditRequest(_WireModel):
    """
    Unit of work submitted to the streaming transport.

    Fields only enforce shape. Semantic checks (missing document, missing
    instruction, empty target list) live in validate_edit_request.
    """

    full_content: str = Field(default="", description="Entire document text")

    edit_level: Optional[EditLevel] = Field(default=None, description="Edit scope")

    model: ModelId = Field(default="sonnet", description="Model selector")

    mode: EditMode = Field(default="edit", description="edit or chat")

    instruction: Optional[str] = Field(default=None, description="Overall instruction or chat message")

    targets: Optional[List[EditTarget]] = Field(default=None, description="Targets for section/selection scope")

    history: Optional[List[HistoryTurn]] = Field(default=None, description="Prior turns, chat mode only")
