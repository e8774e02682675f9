"""Headless editing session: document buffer, targets, pending edit, history.

EditSession wires the section parser, the orchestrator and a version backend
around one mutable document. A completed edit never touches the document
directly; it becomes the pending edit until accept_edit() or reject_edit().
"""

from typing import List, Optional

from redraft.client.orchestrator import EditOrchestrator
from redraft.client.transport import EditTransport, StreamResult
from redraft.client.versions import VersionBackend
from redraft.document.sections import Section, parse_sections
from redraft.models.config import ModelId
from redraft.models.edit_request import EditLevel, EditRequest, EditTarget
from redraft.models.version import VersionMeta
from redraft.utils.diff import unified_diff
from redraft.utils.hashing import content_hash
from redraft.utils.logging import get_logger

logger = get_logger(__name__)


class EditSession:
    """One user's editing session over a single document."""

    def __init__(
        self,
        content: str,
        transport: EditTransport,
        versions: VersionBackend,
        model: ModelId = "sonnet",
        edit_level: EditLevel = "whole",
    ):
        self.content = content
        self.model = model
        self.edit_level = edit_level
        self.versions = versions
        self.targets: List[EditTarget] = []
        self.pending_edit: Optional[str] = None
        self.browsing: Optional[tuple[str, str]] = None  # (version id, content)
        self.orchestrator = EditOrchestrator(transport, on_edit_complete=self._on_edit_complete)

    @property
    def sections(self) -> List[Section]:
        return parse_sections(self.content)

    @property
    def content_hash(self) -> str:
        return content_hash(self.content)

    @property
    def messages(self):
        return self.orchestrator.messages

    # --- targets ---

    def toggle_section_target(self, section_id: str) -> Optional[EditTarget]:
        """Add a section target, or remove it if already selected.

        Returns:
            The new target, or None when it was removed or the id is unknown
        """
        existing = next((t for t in self.targets if t.section_id == section_id), None)
        if existing is not None:
            self.targets.remove(existing)
            return None

        section = next((s for s in self.sections if s.id == section_id), None)
        if section is None:
            return None

        target = EditTarget(
            type="section",
            label=section.title,
            content=section.content,
            section_id=section.id,
        )
        self.targets.append(target)
        return target

    def add_selection_target(self, start: int, end: int) -> Optional[EditTarget]:
        """Add the text between two character offsets as a target."""
        text = self.content[start:end]
        if not text:
            return None
        target = EditTarget.for_selection(text, start, end)
        self.targets.append(target)
        return target

    def remove_target(self, target_id: str) -> None:
        self.targets = [t for t in self.targets if t.id != target_id]

    def update_target_instruction(self, target_id: str, instruction: str) -> None:
        self.targets = [
            t.model_copy(update={"instruction": instruction}) if t.id == target_id else t
            for t in self.targets
        ]

    # --- requests ---

    async def send_instruction(self, instruction: str) -> StreamResult:
        """Whole-document edit, or a chat turn when edit_level is "chat"."""
        is_chat = self.edit_level == "chat"
        return await self.orchestrator.send(
            EditRequest(
                full_content=self.content,
                edit_level="whole",
                model=self.model,
                mode="chat" if is_chat else "edit",
                instruction=instruction,
            )
        )

    async def send_targets(self, overall_instruction: str) -> StreamResult:
        """Multi-target edit over the current section/selection targets."""
        return await self.orchestrator.send(
            EditRequest(
                full_content=self.content,
                edit_level=self.edit_level,
                model=self.model,
                mode="edit",
                instruction=overall_instruction.strip(),
                targets=list(self.targets),
            )
        )

    async def cancel(self) -> None:
        await self.orchestrator.cancel()

    # --- pending edit ---

    def _on_edit_complete(self, result: str) -> None:
        self.pending_edit = result
        self.browsing = None

    def pending_diff(self) -> str:
        if self.pending_edit is None:
            return ""
        return unified_diff(self.content, self.pending_edit)

    def accept_edit(self) -> bool:
        """Replace the document with the pending edit and reset targets."""
        if self.pending_edit is None:
            return False
        self.content = self.pending_edit
        self.pending_edit = None
        self.browsing = None
        self.targets = []
        logger.info("edit_accepted", hash=self.content_hash)
        return True

    def reject_edit(self) -> None:
        self.pending_edit = None
        self.browsing = None

    # --- versions ---

    async def save_version(self) -> Optional[VersionMeta]:
        """Snapshot the document; None if it matches the latest version."""
        return await self.versions.save(self.content)

    async def list_versions(self) -> List[VersionMeta]:
        return await self.versions.list()

    async def browse_version(self, version_id: str) -> str:
        """Load a version for comparison; returns its diff against the document."""
        content = await self.versions.get_content(version_id)
        self.browsing = (version_id, content)
        self.pending_edit = None
        return unified_diff(content, self.content, before_label=version_id, after_label="current")

    async def restore_version(self, version_id: str) -> None:
        """Replace the document with a saved version."""
        self.content = await self.versions.get_content(version_id)
        self.browsing = None
        self.pending_edit = None
        logger.info("version_restored", version_id=version_id, hash=self.content_hash)

    async def clear_versions(self) -> None:
        await self.versions.clear()
