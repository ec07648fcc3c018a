# Services package - business logic and external integrations
from fanai.services.blob_store import GitHubBlobStore, LocalBlobStore, StorageTarget, StorageTargetRegistry
from fanai.services.metadata_cache import MetadataCache
from fanai.services.reference_data import ReferenceDataService
from fanai.services.artifact_store import ArtifactStore
from fanai.services.gemini_image import GeminiImageService
from fanai.services.synthesis import SynthesisEngine
from fanai.services.storage import StorageService
from fanai.services.generation import GenerationOrchestrator
from fanai.services.container import Services, build_services

__all__ = [
    "GitHubBlobStore",
    "LocalBlobStore",
    "StorageTarget",
    "StorageTargetRegistry",
    "MetadataCache",
    "ReferenceDataService",
    "ArtifactStore",
    "GeminiImageService",
    "SynthesisEngine",
    "StorageService",
    "GenerationOrchestrator",
    "Services",
    "build_services",
]
