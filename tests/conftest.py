"""Shared fixtures: temporary SQLite, local blob store, fake Gemini, frozen clock."""

import asyncio
import io
import json
from datetime import datetime, timedelta, timezone

import pytest
from PIL import Image

from fanai.core.database import create_session_factory, init_db
from fanai.services.blob_store import LocalBlobStore, StorageTarget, StorageTargetRegistry
from fanai.services.gemini_image import ImageAnalysis
from fanai.services.metadata_cache import MetadataCache
from fanai.services.reference_data import TEMPLATES_PATH, ReferenceDataService

PRIMARY = StorageTarget("acme", "fan-ai-celebs", "main")

TEMPLATES = [
    {
        "name": "Red Carpet",
        "slug": "red-carpet",
        "prompt": "{{celeb_name}} and the user on a red carpet, {{celeb_name}} smiling",
    },
]


def make_image(width=300, height=400, color=(200, 40, 40), fmt="PNG") -> bytes:
    image = Image.new("RGB", (width, height), color)
    out = io.BytesIO()
    image.save(out, format=fmt)
    return out.getvalue()


class FrozenClock:
    def __init__(self, moment: datetime):
        self.moment = moment

    def __call__(self) -> datetime:
        return self.moment

    def advance(self, **kwargs):
        self.moment += timedelta(**kwargs)


class FakeGemini:
    """Stands in for GeminiImageService without network access."""

    client = None

    def __init__(self, is_valid=True, reason=None, delay=0.0):
        self.is_valid = is_valid
        self.reason = reason
        self.delay = delay
        self.analyzed = []
        self.described = []

    async def analyze_image(self, image_path):
        self.analyzed.append(image_path)
        return ImageAnalysis(is_valid=self.is_valid, reason=self.reason)

    async def describe_composite(self, user_image, celeb_image, prompt):
        if self.delay:
            await asyncio.sleep(self.delay)
        self.described.append(prompt)
        return "Two people side by side"


@pytest.fixture
def blob_store(tmp_path):
    return LocalBlobStore(str(tmp_path / "blobs"))


@pytest.fixture
def registry(tmp_path):
    return StorageTargetRegistry(str(tmp_path / "targets.json"), PRIMARY, "fan-ai-celebs")


@pytest.fixture
def clock():
    return FrozenClock(datetime(2024, 3, 10, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def session_factory(tmp_path):
    factory = create_session_factory(f"sqlite:///{tmp_path / 'fanai.db'}")
    init_db(factory.kw["bind"])
    return factory


@pytest.fixture
def reference(blob_store):
    """Reference data with one template and one celebrity seeded."""
    service = ReferenceDataService(blob_store, PRIMARY, MetadataCache())

    async def seed():
        await blob_store.put(PRIMARY, TEMPLATES_PATH, json.dumps(TEMPLATES).encode("utf-8"), "Seed templates")
        await service.upsert_celebrity(
            slug="jane-star",
            name="Jane Star",
            profession="Actor",
            image_bytes=make_image(300, 300, (40, 40, 200), fmt="JPEG"),
        )

    asyncio.run(seed())
    return service
