import logging
import re
from typing import Any, Dict, List, Optional, Protocol
from urllib.parse import parse_qs, urlparse

from medialinks.core.errors import InvalidInput, NoMediaFound
from medialinks.models.internal import MediaDraft
from medialinks.models.request import Service
from medialinks.models.response import DownloadLink

logger = logging.getLogger(__name__)

# A bare video id, e.g. "dQw4w9WgXcQ"
RAW_ID_RE = re.compile(r"^[A-Za-z0-9_-]{11}$")
ID_CHARS_RE = re.compile(r"^[A-Za-z0-9_-]+$")

SHORT_HOSTS = {"youtu.be", "www.youtu.be"}
WATCH_HOSTS = {
    "youtube.com",
    "www.youtube.com",
    "m.youtube.com",
    "music.youtube.com",
    "youtube-nocookie.com",
    "www.youtube-nocookie.com",
}
ID_PATH_PREFIXES = {"embed", "shorts", "live", "v"}
DIRECT_PROTOCOLS = {"http", "https"}


class YouTubeSource(Protocol):
    async def fetch(self, video_id: str) -> Dict[str, Any]:
        ...


def resolve_video_id(url: str) -> Optional[str]:
    """
    Resolve a video id from a raw id, a youtu.be short link, a watch URL
    (?v=) or an /embed/, /shorts/, /live/, /v/ path. Returns None otherwise.
    """
    value = (url or "").strip()
    if not value:
        return None
    if RAW_ID_RE.match(value):
        return value

    if "://" not in value:
        value = f"https://{value}"
    try:
        parsed = urlparse(value)
    except ValueError:
        return None

    host = (parsed.hostname or "").lower()
    parts = [p for p in parsed.path.split("/") if p]
    candidate = None

    if host in SHORT_HOSTS:
        candidate = parts[0] if parts else None
    elif host in WATCH_HOSTS:
        candidate = parse_qs(parsed.query).get("v", [None])[0]
        if not candidate and len(parts) >= 2 and parts[0] in ID_PATH_PREFIXES:
            candidate = parts[1]

    if candidate and ID_CHARS_RE.match(candidate):
        return candidate
    return None


def _is_direct(f: Dict[str, Any]) -> bool:
    return bool(f.get("url")) and (f.get("protocol") or "https") in DIRECT_PROTOCOLS

def _has_video(f: Dict[str, Any]) -> bool:
    return f.get("vcodec") not in (None, "none")

def _has_audio(f: Dict[str, Any]) -> bool:
    return f.get("acodec") not in (None, "none")


def select_video_rendition(formats: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Highest combined video+audio rendition; video-only is never substituted"""
    candidates = [f for f in formats if _is_direct(f) and _has_video(f) and _has_audio(f)]
    if not candidates:
        return None
    return max(candidates, key=lambda f: (f.get("height") or 0, f.get("tbr") or 0))


def select_audio_rendition(formats: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Highest bitrate audio-only rendition"""
    candidates = [f for f in formats if _is_direct(f) and _has_audio(f) and not _has_video(f)]
    if not candidates:
        return None
    return max(candidates, key=lambda f: f.get("abr") or f.get("tbr") or 0)


def pick_thumbnail(info: Dict[str, Any]) -> Optional[str]:
    """
    Largest thumbnail. yt-dlp orders thumbnails by preference, not size,
    so dimensions win when present and the last entry is only a fallback.
    """
    thumbnails = [t for t in info.get("thumbnails") or [] if t.get("url")]
    if not thumbnails:
        return info.get("thumbnail")

    sized = [t for t in thumbnails if t.get("width") and t.get("height")]
    if sized:
        return max(sized, key=lambda t: t["width"] * t["height"])["url"]
    return thumbnails[-1]["url"]


def video_label(f: Dict[str, Any]) -> str:
    height = f.get("height")
    return f"{height}p (Video)" if height else "Video"

def audio_label(f: Dict[str, Any]) -> str:
    bitrate = f.get("abr") or f.get("tbr")
    return f"MP3 ({round(bitrate)}kbps)" if bitrate else "MP3"


class YouTubeExtractor:
    """Resolve the id, query the upstream once, pick [video, audio] links"""

    service = Service.YOUTUBE

    def __init__(self, source: YouTubeSource):
        self.source = source

    async def extract(self, url: str) -> MediaDraft:
        video_id = resolve_video_id(url)
        if not video_id:
            raise InvalidInput(key="error.youtube_invalid_url")

        info = await self.source.fetch(video_id)
        formats = info.get("formats") or []

        links = []
        video = select_video_rendition(formats)
        if video:
            links.append(DownloadLink(quality=video_label(video), url=video["url"]))
        audio = select_audio_rendition(formats)
        if audio:
            links.append(DownloadLink(quality=audio_label(audio), url=audio["url"]))

        if not links:
            # live streams and premieres only expose manifests
            raise NoMediaFound(key="error.youtube_no_formats")

        logger.info(f"YouTube {video_id}: {len(formats)} formats, {len(links)} selected")

        return MediaDraft(
            service=self.service,
            title=info.get("title"),
            author=info.get("uploader") or info.get("channel"),
            thumbnail=pick_thumbnail(info),
            links=links,
        )
