"""
Generation API Routes
Accepts photo uploads and reports generation job status.
"""

from typing import List, Optional
from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status

from fanai.api.deps import get_current_user_id, get_services
from fanai.schemas.generation import GenerateResponse, GenerationResponse
from fanai.services.container import Services

router = APIRouter()


@router.post("/generate", response_model=GenerateResponse)
async def generate_image(
    photo: UploadFile = File(...),
    celebritySlug: str = Form(...),
    templateSlug: str = Form(...),
    campaignId: Optional[str] = Form(None),
    user_id: str = Depends(get_current_user_id),
    services: Services = Depends(get_services),
):
    """
    Start a celebrity photo generation.

    Returns immediately with the generation id; poll /api/generations/{id}.
    """
    image_bytes = await photo.read()
    generation_id = await services.generation.submit_generation(
        user_id=user_id,
        image_bytes=image_bytes,
        celebrity_slug=celebritySlug,
        template_slug=templateSlug,
        campaign_id=campaignId or None,
    )
    return GenerateResponse(generation_id=generation_id)


@router.get("/generations", response_model=List[GenerationResponse])
async def list_generations(
    user_id: str = Depends(get_current_user_id),
    services: Services = Depends(get_services),
):
    """Caller's generations, newest first."""
    return services.jobs.list_jobs(user_id)


@router.get("/generations/{generation_id}", response_model=GenerationResponse)
async def get_generation(
    generation_id: str,
    user_id: str = Depends(get_current_user_id),
    services: Services = Depends(get_services),
):
    generation = services.jobs.get_job(generation_id)

    if not generation:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Generation not found"
        )

    if generation.user_id != user_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied"
        )

    return generation
