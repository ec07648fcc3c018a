"""
Service Container
Builds every service once, from settings, for the application lifespan.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from fanai.core.config import Settings
from fanai.core.database import make_engine
from fanai.services.accounts import SqlCampaignCounter, SqlCreditLedger, SqlJobStatusSink
from fanai.services.artifact_store import ArtifactStore
from fanai.services.blob_store import (
    BlobStoreClient,
    GitHubBlobStore,
    LocalBlobStore,
    StorageTarget,
    StorageTargetRegistry,
)
from fanai.services.gemini_image import GeminiImageService
from fanai.services.generation import GenerationOrchestrator
from fanai.services.metadata_cache import MetadataCache
from fanai.services.reference_data import ReferenceDataService
from fanai.services.storage import StorageService
from fanai.services.synthesis import SynthesisEngine
from fanai.workers.runner import BackgroundRunner

logger = logging.getLogger(__name__)


@dataclass
class Services:
    settings: Settings
    engine: Engine
    session_factory: sessionmaker
    blob_store: BlobStoreClient
    registry: StorageTargetRegistry
    cache: MetadataCache
    reference: ReferenceDataService
    artifacts: ArtifactStore
    storage: StorageService
    gemini: GeminiImageService
    synthesis: SynthesisEngine
    credits: SqlCreditLedger
    jobs: SqlJobStatusSink
    campaigns: SqlCampaignCounter
    runner: BackgroundRunner
    generation: GenerationOrchestrator

    async def close(self):
        await self.runner.drain(timeout=self.settings.JOB_TIMEOUT_GENERATION)
        await self.blob_store.close()
        self.engine.dispose()


def build_blob_store(settings: Settings) -> BlobStoreClient:
    backend = settings.BLOB_STORE_BACKEND.lower()
    if backend == "github":
        logger.info(f"[Container] Using GitHub blob store at {settings.GITHUB_API_URL}")
        return GitHubBlobStore(settings.GITHUB_TOKEN, settings.GITHUB_API_URL)
    if backend == "local":
        logger.info(f"[Container] Using local blob store at {settings.LOCAL_BLOB_PATH}")
        return LocalBlobStore(settings.LOCAL_BLOB_PATH)
    raise ValueError(f"Unknown BLOB_STORE_BACKEND: {settings.BLOB_STORE_BACKEND}")


def build_services(
    settings: Settings,
    blob_store: Optional[BlobStoreClient] = None,
    gemini: Optional[GeminiImageService] = None,
) -> Services:
    """Wire the service graph. blob_store and gemini may be injected."""
    engine = make_engine(settings.DATABASE_URL)
    session_factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    blob_store = blob_store or build_blob_store(settings)
    primary = StorageTarget(settings.GITHUB_OWNER, settings.GITHUB_REPO, settings.GITHUB_BRANCH)
    registry = StorageTargetRegistry(settings.STORAGE_TARGET_FILE, primary, settings.GITHUB_REPO_PREFIX)

    cache = MetadataCache()
    # Reference datasets are pinned to the primary repository; images and artifacts rotate
    reference = ReferenceDataService(
        blob_store,
        primary,
        cache,
        celebrity_ttl=settings.CELEBRITY_CACHE_TTL,
        template_ttl=settings.TEMPLATE_CACHE_TTL,
        registry=registry,
    )
    artifacts = ArtifactStore(blob_store, registry, lookback_days=settings.ARTIFACT_LOOKBACK_DAYS)
    storage = StorageService(settings.LOCAL_STORAGE_PATH)

    gemini = gemini or GeminiImageService(
        api_key=settings.GEMINI_API_KEY,
        model=settings.GEMINI_VISION_MODEL,
        timeout=settings.GEMINI_TIMEOUT,
    )
    synthesis = SynthesisEngine(gemini, settings.COMPOSITE_TARGET_HEIGHT, settings.COMPOSITE_GAP)

    credits = SqlCreditLedger(session_factory)
    jobs = SqlJobStatusSink(session_factory)
    campaigns = SqlCampaignCounter(session_factory)
    runner = BackgroundRunner()

    generation = GenerationOrchestrator(
        credits=credits,
        jobs=jobs,
        campaigns=campaigns,
        reference=reference,
        storage=storage,
        gemini=gemini,
        synthesis=synthesis,
        artifacts=artifacts,
        runner=runner,
        max_upload_bytes=settings.MAX_UPLOAD_BYTES,
        job_timeout=settings.JOB_TIMEOUT_GENERATION,
        trim_threshold=settings.TRIM_THRESHOLD,
        watermark_text=settings.WATERMARK_TEXT,
    )

    return Services(
        settings=settings,
        engine=engine,
        session_factory=session_factory,
        blob_store=blob_store,
        registry=registry,
        cache=cache,
        reference=reference,
        artifacts=artifacts,
        storage=storage,
        gemini=gemini,
        synthesis=synthesis,
        credits=credits,
        jobs=jobs,
        campaigns=campaigns,
        runner=runner,
        generation=generation,
    )
