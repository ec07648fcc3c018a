"""
Generation Schemas
Pydantic models for generation job API responses.
"""

from datetime import datetime
from typing import Optional
from enum import Enum
from pydantic import BaseModel, Field


class GenerationStatus(str, Enum):
    """Generation job status."""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


# Allowed forward transitions; terminal states have none.
# pending -> failed covers a job whose processing mark could not be written.
TRANSITIONS = {
    GenerationStatus.PENDING: {GenerationStatus.PROCESSING, GenerationStatus.FAILED},
    GenerationStatus.PROCESSING: {GenerationStatus.COMPLETED, GenerationStatus.FAILED},
    GenerationStatus.COMPLETED: set(),
    GenerationStatus.FAILED: set(),
}


class GenerateResponse(BaseModel):
    """Schema for an accepted generation request."""
    generation_id: str = Field(serialization_alias="generationId")


class GenerationResponse(BaseModel):
    """Schema for a generation job as polled by the UI."""
    id: str
    user_id: str
    celebrity_slug: str
    template_slug: str
    campaign_id: Optional[str]
    source_image_url: Optional[str]
    result_image_url: Optional[str]
    status: GenerationStatus
    error_message: Optional[str]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
