# Database models package
from fanai.models.user import User
from fanai.models.generation import Generation
from fanai.models.campaign import Campaign

__all__ = [
    "User",
    "Generation",
    "Campaign",
]
