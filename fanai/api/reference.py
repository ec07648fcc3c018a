"""
Reference Data API Routes
Public read access to celebrities and templates.
"""

from typing import List
from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from fanai.api.deps import get_services
from fanai.schemas.reference import Celebrity, Template
from fanai.services.container import Services

router = APIRouter()


@router.get("/celebrities", response_model=List[Celebrity])
async def list_celebrities(services: Services = Depends(get_services)):
    return await services.reference.list_celebrities()


@router.get("/celebrities/search", response_model=List[Celebrity])
async def search_celebrities(
    q: str = Query("", description="Matches name or profession"),
    services: Services = Depends(get_services),
):
    if not q.strip():
        return []
    return await services.reference.search_celebrities(q.strip())


@router.get("/celebrities/{slug}", response_model=Celebrity)
async def get_celebrity(slug: str, services: Services = Depends(get_services)):
    celebrity = await services.reference.get_celebrity_by_slug(slug)
    if not celebrity:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Celebrity not found"
        )
    return celebrity


@router.get("/celebrities/{slug}/image")
async def get_celebrity_image(slug: str, services: Services = Depends(get_services)):
    """Proxy the celebrity image from the blob store."""
    content = await services.reference.get_celebrity_image(slug)
    return Response(
        content=content,
        media_type="image/jpeg",
        headers={"Cache-Control": "public, max-age=86400"},
    )


@router.get("/templates", response_model=List[Template])
async def list_templates(services: Services = Depends(get_services)):
    return await services.reference.list_templates()


@router.get("/templates/{slug}", response_model=Template)
async def get_template(slug: str, services: Services = Depends(get_services)):
    template = await services.reference.get_template_by_slug(slug)
    if not template:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Template not found"
        )
    return template
