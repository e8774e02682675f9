"""Version store manifest models."""

from pydantic import BaseModel, Field


class VersionMeta(BaseModel):
    """Public metadata for a snapshot (content excluded)."""

    id: str = Field(..., description="Opaque unique identifier")

    label: str = Field(..., description="Sequential human label, e.g. 'Version 3'")

    timestamp: int = Field(..., description="Creation time in epoch milliseconds")

    hash: str = Field(..., description="Advisory content hash (16 hex chars)")

    model_config = {"frozen": True}


class VersionEntry(VersionMeta):
    """Manifest record: public metadata plus the snapshot's storage key."""

    filename: str = Field(..., description="Snapshot file name inside the versions directory")

    def to_meta(self) -> VersionMeta:
        """Project to the public metadata (drops the storage key)."""
        return VersionMeta(id=self.id, label=self.label, timestamp=self.timestamp, hash=self.hash)
