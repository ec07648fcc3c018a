"""
Artifact API Routes
Serves stored generation images by user and artifact id.
"""

from fastapi import APIRouter, Depends, Response

from fanai.api.deps import get_services
from fanai.services.container import Services

router = APIRouter()

# Artifacts never change once committed
IMMUTABLE_CACHE = "public, max-age=31536000, immutable"


@router.get("/artifact/{user_id}/{artifact_id}")
async def get_artifact(
    user_id: str,
    artifact_id: str,
    services: Services = Depends(get_services),
):
    """Proxy the image from the blob store. 404 when outside the lookup window."""
    content = await services.generation.fetch_artifact(user_id, artifact_id)
    return Response(
        content=content,
        media_type="image/png",
        headers={"Cache-Control": IMMUTABLE_CACHE},
    )
