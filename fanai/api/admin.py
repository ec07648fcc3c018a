"""
Admin API Routes
Celebrity uploads, credit grants and reference cache control.
"""

from typing import Optional
from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status
from pydantic import BaseModel, Field

from fanai.api.deps import get_services, require_admin
from fanai.schemas.reference import Celebrity
from fanai.services.container import Services

router = APIRouter(dependencies=[Depends(require_admin)])


class CreditGrant(BaseModel):
    user_id: str = Field(alias="userId")
    amount: int = Field(gt=0)
    email: Optional[str] = None


@router.post("/celebrities", response_model=Celebrity, status_code=status.HTTP_201_CREATED)
async def upsert_celebrity(
    name: str = Form(...),
    slug: str = Form(...),
    profession: str = Form(...),
    description: Optional[str] = Form(None),
    category: Optional[str] = Form(None),
    image: UploadFile = File(...),
    services: Services = Depends(get_services),
):
    """Add a celebrity, or replace the one with the same slug."""
    image_bytes = await image.read()
    if not image_bytes:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Celebrity image is required"
        )
    return await services.reference.upsert_celebrity(
        slug=slug,
        name=name,
        profession=profession,
        image_bytes=image_bytes,
        description=description,
        category=category,
    )


@router.post("/credits")
async def grant_credits(grant: CreditGrant, services: Services = Depends(get_services)):
    total = services.credits.grant_credits(grant.user_id, grant.amount, grant.email)
    return {"userId": grant.user_id, "credits": total}


@router.post("/sync")
async def sync_reference_data(services: Services = Depends(get_services)):
    """Flush the reference cache and reload both datasets."""
    result = await services.reference.sync()
    return {"message": "Cache flushed and reloaded", **result}


@router.get("/cache")
async def cache_stats(services: Services = Depends(get_services)):
    return services.cache.stats()
