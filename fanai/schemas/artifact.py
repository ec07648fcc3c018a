"""
Artifact Metadata Schema
JSON sidecar stored next to each artifact image.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field


class ArtifactStatus(str, Enum):
    """Commit state of a two-phase artifact write."""
    PENDING = "pending"
    COMMITTED = "committed"


class ArtifactMetadata(BaseModel):
    """
    Sidecar record. Field names on the wire are camelCase.

    Sidecars written before the two-phase commit carry no status and are read
    as committed; they name the artifact "generationId" and may omit
    "dateFolder".
    """
    user_id: str = Field(alias="userId")
    artifact_id: str = Field(alias="artifactId")
    date_folder: Optional[str] = Field(default=None, alias="dateFolder")
    template_slug: Optional[str] = Field(default=None, alias="templateSlug")
    celebrity_slug: Optional[str] = Field(default=None, alias="celebritySlug")
    timestamp: Optional[str] = None
    status: ArtifactStatus = ArtifactStatus.COMMITTED

    class Config:
        populate_by_name = True
        extra = "ignore"

    @classmethod
    def from_sidecar(cls, data: dict) -> "ArtifactMetadata":
        """Parse a sidecar, accepting the legacy field names."""
        data = dict(data)
        if "artifactId" not in data and "generationId" in data:
            data["artifactId"] = data["generationId"]
        data.setdefault("templateSlug", data.get("template"))
        data.setdefault("celebritySlug", data.get("celebrity"))
        return cls.model_validate(data)

    def resolved_date_folder(self) -> Optional[str]:
        """Stored dateFolder, or one derived from the timestamp; None if neither is usable."""
        if self.date_folder:
            return self.date_folder
        if self.timestamp:
            try:
                return datetime.fromisoformat(self.timestamp.replace("Z", "+00:00")).strftime("%Y-%m-%d")
            except ValueError:
                return None
        return None

    def to_json_bytes(self) -> bytes:
        return self.model_dump_json(by_alias=True, indent=2).encode("utf-8")
