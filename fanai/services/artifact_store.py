"""
Artifact Store
Persists generated images with a JSON sidecar into the date-partitioned tree
of the blob store, and finds them again without knowing the write date.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, List, Optional

from fanai.core.errors import ArtifactNotFound, BlobNotFound, RotationRequired
from fanai.schemas.artifact import ArtifactMetadata, ArtifactStatus
from fanai.services.blob_store import BlobStoreClient, StorageTarget, StorageTargetRegistry
from fanai.services.partitioning import (
    artifact_image_path,
    artifact_metadata_path,
    artifact_url,
    candidate_date_folders,
    date_folder,
)

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class StoredArtifact:
    """Where an artifact ended up."""
    user_id: str
    artifact_id: str
    date_folder: str
    target: StorageTarget
    image_path: str
    metadata_path: str

    @property
    def url(self) -> str:
        return artifact_url(self.user_id, self.artifact_id)


class ArtifactStore:
    """Write and read path of the artifact partitioning scheme."""

    def __init__(
        self,
        blob_store: BlobStoreClient,
        registry: StorageTargetRegistry,
        lookback_days: int = 7,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.blob_store = blob_store
        self.registry = registry
        self.lookback_days = lookback_days
        self.clock = clock

    # ===== Write path =====

    async def store_artifact(
        self,
        user_id: str,
        artifact_id: str,
        image_bytes: bytes,
        template_slug: Optional[str] = None,
        celebrity_slug: Optional[str] = None,
    ) -> StoredArtifact:
        """
        Write image and sidecar under one date folder.

        The date folder is computed once, from the time of this call. If the
        active repository refuses the write, storage rotates to a new
        repository and the whole write is repeated there once.
        """
        timestamp = self.clock()
        metadata = ArtifactMetadata(
            user_id=user_id,
            artifact_id=artifact_id,
            date_folder=date_folder(timestamp),
            template_slug=template_slug,
            celebrity_slug=celebrity_slug,
            timestamp=timestamp.isoformat(),
        )

        target = self.registry.active
        try:
            return await self._write(target, metadata, image_bytes)
        except RotationRequired as e:
            logger.warning(f"[Artifacts] {target} refused write ({e.status_code}); rotating")
            target = await self.registry.rotate(self.blob_store, target)
            return await self._write(target, metadata, image_bytes)

    async def _write(self, target: StorageTarget, metadata: ArtifactMetadata, image_bytes: bytes) -> StoredArtifact:
        folder = metadata.date_folder
        meta_path = artifact_metadata_path(metadata.user_id, folder, metadata.artifact_id)
        image_path = artifact_image_path(metadata.user_id, folder, metadata.artifact_id)

        # Phase 1: announce the write; readers ignore pending sidecars
        pending = metadata.model_copy(update={"status": ArtifactStatus.PENDING})
        meta_revision = await self.blob_store.put(
            target, meta_path, pending.to_json_bytes(),
            f"Add generation metadata: {metadata.artifact_id}",
        )

        await self.blob_store.put(
            target, image_path, image_bytes, f"Add generation: {metadata.artifact_id}"
        )

        # Phase 2: flip the sidecar to committed
        committed = metadata.model_copy(update={"status": ArtifactStatus.COMMITTED})
        await self.blob_store.put(
            target, meta_path, committed.to_json_bytes(),
            f"Commit generation: {metadata.artifact_id}",
            expected_revision=meta_revision,
        )

        logger.info(f"[Artifacts] Stored {image_path} in {target}")
        return StoredArtifact(
            user_id=metadata.user_id,
            artifact_id=metadata.artifact_id,
            date_folder=folder,
            target=target,
            image_path=image_path,
            metadata_path=meta_path,
        )

    # ===== Read path =====

    async def fetch_artifact(self, user_id: str, artifact_id: str) -> bytes:
        """
        Return the image bytes of an artifact given only user and artifact id.

        Raises:
            ArtifactNotFound: not reachable within the lookback window of any
                known storage target
        """
        folders = candidate_date_folders(self.clock(), self.lookback_days)
        for target in self.registry.targets():
            content = await self._find_in_target(target, user_id, artifact_id, folders)
            if content is not None:
                return content
        raise ArtifactNotFound(
            f"Generation image not found: {user_id}/{artifact_id}",
            {"searched_folders": folders},
        )

    async def _find_in_target(
        self, target: StorageTarget, user_id: str, artifact_id: str, folders: List[str]
    ) -> Optional[bytes]:
        # 1. Committed sidecar tells the real folder
        for folder in folders:
            try:
                blob = await self.blob_store.get(target, artifact_metadata_path(user_id, folder, artifact_id))
            except BlobNotFound:
                continue
            try:
                metadata = ArtifactMetadata.from_sidecar(blob.json())
            except (TypeError, ValueError) as e:
                logger.warning(f"[Artifacts] Corrupt sidecar for {artifact_id} in {folder}: {e}")
                continue
            if metadata.status is not ArtifactStatus.COMMITTED:
                logger.info(f"[Artifacts] Ignoring uncommitted sidecar for {artifact_id} in {folder}")
                continue

            stored_folder = metadata.resolved_date_folder() or folder
            try:
                blob = await self.blob_store.get(target, artifact_image_path(user_id, stored_folder, artifact_id))
                return blob.content
            except BlobNotFound:
                logger.warning(f"[Artifacts] Sidecar for {artifact_id} points at missing image in {stored_folder}")
                break

        # 2. Probe the image itself in every candidate folder
        for folder in folders:
            try:
                blob = await self.blob_store.get(target, artifact_image_path(user_id, folder, artifact_id))
            except BlobNotFound:
                continue
            logger.info(f"[Artifacts] Found {artifact_id} by image probe in {folder}")
            return blob.content

        return None
