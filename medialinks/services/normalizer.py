from typing import Dict, Optional, Tuple

from medialinks.core.errors import NoMediaFound
from medialinks.models.internal import MediaDraft
from medialinks.models.request import Service
from medialinks.models.response import DownloadLink, MediaResult

PLACEHOLDER_THUMBNAIL = "https://placehold.co/160x160/ef4444/white?text=Reel"

# (title, author) used when the upstream gave nothing usable
DEFAULT_LABELS: Dict[Service, Tuple[str, str]] = {
    Service.YOUTUBE: ("YouTube Video", "YouTube Channel"),
    Service.INSTAGRAM: ("Instagram Reel", "Instagram User"),
}


def _text(value: Optional[str], default: str) -> str:
    value = (value or "").strip()
    return value or default


def normalize(draft: MediaDraft) -> MediaResult:
    """
    Map an extractor draft to the public result.
    Pure: the same draft always yields an equal MediaResult.
    """
    links = [
        DownloadLink(quality=_text(link.quality, "Download"), url=link.url.strip())
        for link in draft.links
        if link.url and link.url.strip()
    ]
    if not links:
        raise NoMediaFound(key="error.no_links")

    default_title, default_author = DEFAULT_LABELS[draft.service]
    return MediaResult(
        thumbnail=_text(draft.thumbnail, PLACEHOLDER_THUMBNAIL),
        title=_text(draft.title, default_title),
        author=_text(draft.author, default_author),
        links=links,
    )
