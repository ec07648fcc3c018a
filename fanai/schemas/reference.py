"""
Reference Dataset Schemas
Celebrity and template entries as authored in the blob store JSON files.

Unknown fields are kept so a rewrite of the collection does not drop them.
"""

from typing import List, Optional
from pydantic import BaseModel

CELEB_NAME_PLACEHOLDER = "{{celeb_name}}"


class Celebrity(BaseModel):
    """Entry of celebrities/celebrities.json."""
    name: str
    slug: str
    profession: str
    image: str
    description: Optional[str] = None
    category: Optional[str] = None

    class Config:
        extra = "allow"


class Template(BaseModel):
    """Entry of templates/templates.json."""
    name: str
    slug: str
    prompt: str
    description: str = ""
    category: str = ""
    tags: List[str] = []
    sample: Optional[str] = None

    class Config:
        extra = "allow"

    def render_prompt(self, celeb_name: str) -> str:
        """Substitute every celebrity-name placeholder."""
        return self.prompt.replace(CELEB_NAME_PLACEHOLDER, celeb_name)
