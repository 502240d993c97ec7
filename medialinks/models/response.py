from typing import List

from pydantic import BaseModel, Field


class DownloadLink(BaseModel):
    """Single direct media URL with a human-readable label"""
    quality: str
    url: str


class MediaResult(BaseModel):
    """Normalized response returned for every service"""
    thumbnail: str
    title: str
    author: str
    links: List[DownloadLink] = Field(..., min_length=1)


class ErrorResponse(BaseModel):
    error: str
