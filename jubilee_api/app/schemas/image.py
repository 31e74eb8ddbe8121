"""
Pydantic models for site images managed from the admin panel.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel
from pydantic.alias_generators import to_camel


class ImageCategory(str, Enum):
    """Fixed page sections an image can be shown in."""

    HOME_ANNOUNCEMENT = "home_announcement"
    HOME_MEMORIES = "home_memories"
    MEMORIES_PAGE = "memories_page"


VALID_CATEGORIES = [c.value for c in ImageCategory]


class ImageRead(BaseModel):
    id: int
    url: str
    category: ImageCategory
    created_at: datetime

    model_config = {
        "from_attributes": True,
        "alias_generator": to_camel,
        "populate_by_name": True,
    }
