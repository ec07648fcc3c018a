# Pydantic schemas package
from fanai.schemas.generation import (
    GenerationStatus, TRANSITIONS, GenerateResponse, GenerationResponse
)
from fanai.schemas.reference import Celebrity, Template, CELEB_NAME_PLACEHOLDER
from fanai.schemas.artifact import ArtifactStatus, ArtifactMetadata

__all__ = [
    "GenerationStatus", "TRANSITIONS", "GenerateResponse", "GenerationResponse",
    "Celebrity", "Template", "CELEB_NAME_PLACEHOLDER",
    "ArtifactStatus", "ArtifactMetadata",
]
