from typing import Any, Dict, List

import httpx
import pytest

from medialinks.api.download import get_registry
from medialinks.main import app


class StubYouTubeSource:
    """Stands in for yt-dlp: returns a canned info dict and records ids"""

    def __init__(self, info: Dict[str, Any]):
        self.info = info
        self.calls: List[str] = []

    async def fetch(self, video_id: str) -> Dict[str, Any]:
        self.calls.append(video_id)
        return self.info


@pytest.fixture
def anyio_backend():
    return 'asyncio'


@pytest.fixture
def api_client():
    """AsyncClient bound to the ASGI app (no network)"""
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test")


@pytest.fixture
def use_registry():
    """Install a registry for the duration of one test"""
    def install(registry):
        app.dependency_overrides[get_registry] = lambda: registry
        return registry

    yield install
    app.dependency_overrides.pop(get_registry, None)


@pytest.fixture
def youtube_info():
    return {
        "id": "dQw4w9WgXcQ",
        "title": "Never Gonna Give You Up",
        "uploader": "Rick Astley",
        "thumbnails": [
            {"url": "https://i.ytimg.com/vi/dQw4w9WgXcQ/default.jpg", "width": 120, "height": 90},
            {"url": "https://i.ytimg.com/vi/dQw4w9WgXcQ/maxresdefault.jpg", "width": 1280, "height": 720},
            {"url": "https://i.ytimg.com/vi/dQw4w9WgXcQ/hqdefault.jpg", "width": 480, "height": 360},
        ],
        "formats": [
            {
                "format_id": "22",
                "url": "https://rr1.googlevideo.com/videoplayback?itag=22",
                "protocol": "https",
                "height": 720,
                "vcodec": "avc1.64001F",
                "acodec": "mp4a.40.2",
            },
            {
                "format_id": "140",
                "url": "https://rr1.googlevideo.com/videoplayback?itag=140",
                "protocol": "https",
                "vcodec": "none",
                "acodec": "mp4a.40.2",
                "abr": 128,
            },
        ],
    }
