"""
Reference Data Service
Celebrity and template datasets read from the blob store through the metadata cache.

An empty list served after a failed load means "temporarily unavailable", not
"truly empty": lookups raise UpstreamUnavailable instead of reporting a miss.
Admin writes read the collection straight from the store.

Datasets live in the primary repository. Celebrity images follow the active
storage target and rotate with it when a repository refuses writes.
"""

import json
import logging
from typing import Any, Dict, List, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError as PydanticValidationError

from fanai.core.errors import (
    BlobConflict,
    BlobNotFound,
    NotFoundError,
    RotationRequired,
    UpstreamUnavailable,
)
from fanai.schemas.reference import Celebrity, Template
from fanai.services.blob_store import BlobStoreClient, StorageTarget, StorageTargetRegistry
from fanai.services.metadata_cache import MetadataCache

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

CELEBRITIES_KEY = "celebrities_json"
TEMPLATES_KEY = "templates_json"
CELEBRITIES_PATH = "celebrities/celebrities.json"
TEMPLATES_PATH = "templates/templates.json"


def celebrity_image_path(slug: str) -> str:
    return f"celebs/{slug}.jpg"


def celebrity_image_url(slug: str) -> str:
    """Externally addressable proxy URL of a celebrity image."""
    return f"/api/celebrities/{slug}/image"


def parse_dataset(raw: Any, model: Type[M], path: str) -> List[M]:
    """Validate every entry, skipping malformed ones."""
    if not isinstance(raw, list):
        raise ValueError(f"{path} must contain a JSON array")
    items = []
    for index, entry in enumerate(raw):
        try:
            items.append(model.model_validate(entry))
        except PydanticValidationError as e:
            logger.warning(f"[Reference] Skipping entry {index} of {path}: {e.error_count()} errors")
    return items


class ReferenceDataService:
    """Read-mostly access to celebrities and templates."""

    MAX_WRITE_ATTEMPTS = 3

    def __init__(
        self,
        blob_store: BlobStoreClient,
        target: StorageTarget,
        cache: MetadataCache,
        celebrity_ttl: int = 86400,
        template_ttl: int = 43200,
        registry: Optional[StorageTargetRegistry] = None,
    ):
        self.blob_store = blob_store
        self.target = target
        self.cache = cache
        self.registry = registry
        self.celebrity_ttl = celebrity_ttl
        self.template_ttl = template_ttl

    async def _load(self, path: str, model: Type[M]) -> List[M]:
        try:
            blob = await self.blob_store.get(self.target, path)
        except BlobNotFound:
            logger.warning(f"[Reference] {path} not found in {self.target} - please create it")
            return []
        return parse_dataset(blob.json(), model, path)

    # ===== Celebrities =====

    async def list_celebrities(self) -> List[Celebrity]:
        return await self.cache.get_or_load(
            CELEBRITIES_KEY,
            lambda: self._load(CELEBRITIES_PATH, Celebrity),
            self.celebrity_ttl,
        )

    def _check_available(self, key: str):
        if self.cache.is_degraded(key):
            raise UpstreamUnavailable(
                "Reference data temporarily unavailable, please retry", {"dataset": key}
            )

    async def get_celebrity_by_slug(self, slug: str) -> Optional[Celebrity]:
        """
        Raises:
            UpstreamUnavailable: the dataset could not be loaded
        """
        for celebrity in await self.list_celebrities():
            if celebrity.slug == slug:
                return celebrity
        self._check_available(CELEBRITIES_KEY)
        return None

    async def search_celebrities(self, query: str) -> List[Celebrity]:
        """Case-insensitive match on name or profession."""
        needle = query.lower()
        return [
            c for c in await self.list_celebrities()
            if needle in c.name.lower() or needle in c.profession.lower()
        ]

    def _image_targets(self) -> List[StorageTarget]:
        """Targets that may hold celebrity images, newest first."""
        targets = self.registry.targets() if self.registry else []
        if self.target not in targets:
            targets.append(self.target)
        return targets

    async def get_celebrity_image(self, slug: str) -> bytes:
        for target in self._image_targets():
            try:
                blob = await self.blob_store.get(target, celebrity_image_path(slug))
            except BlobNotFound:
                continue
            return blob.content
        raise NotFoundError(f"Celebrity image not found: {slug}")

    async def _put_image(self, target: StorageTarget, path: str, image_bytes: bytes, name: str):
        try:
            revision = (await self.blob_store.get(target, path)).revision
        except BlobNotFound:
            revision = None
        await self.blob_store.put(target, path, image_bytes, f"Add celebrity image: {name}", revision)

    async def upsert_celebrity(
        self,
        slug: str,
        name: str,
        profession: str,
        image_bytes: bytes,
        description: Optional[str] = None,
        category: Optional[str] = None,
    ) -> Celebrity:
        """
        Store a celebrity image and add or replace its entry in the collection.

        The image goes to the active storage target; a refused write rotates
        to a new repository and is repeated there once. The collection is
        read with its revision and written back against it; a concurrent edit
        causes a re-read and another attempt.

        Raises:
            UpstreamUnavailable: the primary repository refuses the collection
                write, or the image write is refused and no registry is set
        """
        image_path = celebrity_image_path(slug)
        target = self.registry.active if self.registry else self.target
        try:
            await self._put_image(target, image_path, image_bytes, name)
        except RotationRequired as e:
            if self.registry is None:
                raise UpstreamUnavailable(f"Celebrity image write refused by {target}: {e.message}") from e
            logger.warning(f"[Reference] {target} refused celebrity image ({e.status_code}); rotating")
            target = await self.registry.rotate(self.blob_store, target)
            await self._put_image(target, image_path, image_bytes, name)

        celebrity = Celebrity(
            name=name,
            slug=slug,
            profession=profession,
            image=celebrity_image_url(slug),
            description=description,
            category=category,
        )

        for attempt in range(1, self.MAX_WRITE_ATTEMPTS + 1):
            try:
                blob = await self.blob_store.get(self.target, CELEBRITIES_PATH)
                entries: List[Dict[str, Any]] = blob.json()
                revision: Optional[str] = blob.revision
            except BlobNotFound:
                entries, revision = [], None

            entries = [e for e in entries if e.get("slug") != slug]
            entries.append(celebrity.model_dump(exclude_none=True))
            content = json.dumps(entries, indent=2).encode("utf-8")
            try:
                await self.blob_store.put(
                    self.target,
                    CELEBRITIES_PATH,
                    content,
                    f"Update celebrities.json: Add {name}",
                    revision,
                )
                break
            except BlobConflict:
                if attempt == self.MAX_WRITE_ATTEMPTS:
                    raise
                logger.info(f"[Reference] celebrities.json changed concurrently, retrying ({attempt})")
            except RotationRequired as e:
                raise UpstreamUnavailable(
                    f"Primary repository refuses reference data writes: {e.message}",
                    {"path": CELEBRITIES_PATH, "status_code": e.status_code},
                ) from e

        self.cache.invalidate(CELEBRITIES_KEY)
        logger.info(f"[Reference] Upserted celebrity {slug}")
        return celebrity

    # ===== Templates =====

    async def list_templates(self) -> List[Template]:
        return await self.cache.get_or_load(
            TEMPLATES_KEY,
            lambda: self._load(TEMPLATES_PATH, Template),
            self.template_ttl,
        )

    async def get_template_by_slug(self, slug: str) -> Optional[Template]:
        for template in await self.list_templates():
            if template.slug == slug:
                return template
        self._check_available(TEMPLATES_KEY)
        return None

    # ===== Cache control =====

    async def sync(self) -> dict:
        """Drop all cached datasets and reload them."""
        self.cache.flush()
        celebrities = await self.list_celebrities()
        templates = await self.list_templates()
        return {
            "stats": {"celebrities": len(celebrities), "templates": len(templates)},
            "cacheStats": self.cache.stats(),
        }
