from pydantic import BaseModel
from typing import List, Optional
from medialinks.models.request import Service
from medialinks.models.response import DownloadLink

class MediaDraft(BaseModel):
    """Extractor output before defaults are applied (separated from HTTP concerns)"""
    service: Service
    title: Optional[str] = None
    author: Optional[str] = None
    thumbnail: Optional[str] = None
    links: List[DownloadLink] = []
