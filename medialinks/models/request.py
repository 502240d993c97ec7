from enum import Enum
from pydantic import BaseModel, Field, validator

class Service(str, Enum):
    YOUTUBE = "youtube"
    INSTAGRAM = "instagram"

    @classmethod
    def parse(cls, value: str) -> "Service":
        """Case-insensitive lookup; raises ValueError for unknown services"""
        return cls(value.strip().lower())

class MediaRequest(BaseModel):
    url: str = Field(..., description="YouTube or Instagram URL (a raw YouTube video id is accepted too)")
    service: str = Field(..., description="Platform discriminator: youtube or instagram")

    @validator('url', 'service')
    def require_non_blank(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("must not be empty")
        return v
