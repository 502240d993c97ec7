import logging
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple
from urllib.parse import urlparse, urlunparse

from medialinks.config.settings import InstagramConfig
from medialinks.core.errors import (
    InvalidInput,
    NoMediaFound,
    ParseFailure,
    UpstreamBlocked,
    UpstreamUnreachable,
)
from medialinks.models.internal import MediaDraft
from medialinks.models.request import Service
from medialinks.models.response import DownloadLink
from medialinks.services.scraper import Page, PageScraper, dig
from medialinks.utils.http_client import UpstreamClient
from medialinks.utils.locale import safe_url_for_log

logger = logging.getLogger(__name__)

DEFAULT_QUALITY = "HD Video"
LOGIN_PATH = "/accounts/login"
BLOCKING_STATUSES = {401, 403, 429}

Attempt = Callable[[Page], Optional[str]]


def clean_instagram_url(url: str) -> str:
    """Drop tracking query/fragment; only instagram.com hosts are fetched"""
    value = (url or "").strip()
    if "://" not in value:
        value = f"https://{value}"
    try:
        parsed = urlparse(value)
    except ValueError:
        raise InvalidInput(key="error.instagram_invalid_url")

    host = (parsed.hostname or "").lower()
    if parsed.scheme not in ("http", "https") or not (host == "instagram.com" or host.endswith(".instagram.com")):
        raise InvalidInput(key="error.instagram_invalid_url")
    if not parsed.path.strip("/"):
        raise InvalidInput(key="error.instagram_invalid_url")

    return urlunparse(("https", parsed.netloc, parsed.path, "", "", ""))


def first_hit(attempts: Sequence[Tuple[str, Attempt]], page: Page) -> Optional[str]:
    """Run attempts in order and return the first non-empty result"""
    for name, attempt in attempts:
        value = attempt(page)
        if value:
            logger.info(f"Instagram video URL located by {name}")
            return value
        logger.debug(f"Instagram attempt {name} found nothing")
    return None


class InstagramScrapeExtractor:
    """Fetch the public page once and run the extraction chain over it"""

    service = Service.INSTAGRAM

    def __init__(self, client: UpstreamClient, scraper: Optional[PageScraper] = None):
        self.client = client
        self.scraper = scraper or PageScraper()
        self.attempts: List[Tuple[str, Attempt]] = [
            ("meta_tag", self.scraper.meta_video),
            ("structured_data", self.scraper.structured_data_video),
            ("raw_scan", self.scraper.raw_video),
        ]

    async def fetch_page(self, page_url: str) -> str:
        response = await self.client.get(
            page_url,
            upstream="Instagram",
            headers=self.client.browser_headers(page_url),
        )

        if not response.is_success:
            raise UpstreamUnreachable(key="error.instagram_status", status=response.status_code)
        if response.url.path.startswith(LOGIN_PATH):
            raise UpstreamBlocked(key="error.instagram_login_redirect")

        return response.text

    async def extract(self, url: str) -> MediaDraft:
        page_url = clean_instagram_url(url)
        logger.info(f"Scraping {safe_url_for_log(page_url)}")

        page = self.scraper.parse(await self.fetch_page(page_url))
        video_url = first_hit(self.attempts, page)
        if not video_url:
            raise NoMediaFound(key="error.instagram_not_found")

        details = self.scraper.details(page)
        return MediaDraft(
            service=self.service,
            title=details["title"],
            author=details["author"],
            thumbnail=details["thumbnail"],
            links=[DownloadLink(quality=DEFAULT_QUALITY, url=video_url)],
        )


def _media_entries(payload: Dict[str, Any]) -> List[Dict[str, Any]]:
    for key in ("medias", "media"):
        entries = payload.get(key)
        if isinstance(entries, list):
            return [e for e in entries if isinstance(e, dict)]
    return []


def _from_items(payload: Dict[str, Any]) -> Optional[MediaDraft]:
    """Instagram's own items[] shape, passed through by some API providers"""
    item = dig(payload, ("items", 0))
    if not isinstance(item, dict):
        return None
    video_url = dig(item, ("video_versions", 0, "url"))
    if not video_url:
        return None
    return MediaDraft(
        service=Service.INSTAGRAM,
        title=dig(item, ("caption", "text")),
        author=dig(item, ("user", "username")),
        thumbnail=dig(item, ("image_versions2", "candidates", 0, "url")),
        links=[DownloadLink(quality=DEFAULT_QUALITY, url=video_url)],
    )


def parse_api_payload(payload: Any) -> Optional[MediaDraft]:
    """
    Map a third-party API response to a draft.

    The body is seen both flat and nested under a "data" envelope;
    the first media entry whose type is video wins.
    """
    if isinstance(payload, dict) and isinstance(payload.get("data"), dict):
        payload = payload["data"]
    if not isinstance(payload, dict):
        return None

    for entry in _media_entries(payload):
        if str(entry.get("type", "")).lower() != "video" or not entry.get("url"):
            continue
        owner = payload.get("owner") if isinstance(payload.get("owner"), dict) else {}
        return MediaDraft(
            service=Service.INSTAGRAM,
            title=payload.get("title") or payload.get("caption"),
            author=payload.get("author") or payload.get("username") or owner.get("username"),
            thumbnail=payload.get("thumbnail") or entry.get("thumbnail"),
            links=[DownloadLink(quality=str(entry.get("quality") or DEFAULT_QUALITY), url=entry["url"])],
        )

    return _from_items(payload)


def _upstream_message(payload: Any) -> Optional[str]:
    if isinstance(payload, dict):
        for key in ("message", "error", "detail"):
            value = payload.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()[:200]
    return None


class InstagramApiExtractor:
    """Delegate to a RapidAPI provider with one authenticated request"""

    service = Service.INSTAGRAM

    def __init__(self, client: UpstreamClient, instagram_config: InstagramConfig):
        self.client = client
        self.config = instagram_config

    def endpoint(self) -> str:
        path = self.config.rapidapi_path
        if not path.startswith("/"):
            path = f"/{path}"
        return f"https://{self.config.rapidapi_host}{path}"

    async def extract(self, url: str) -> MediaDraft:
        page_url = clean_instagram_url(url)
        logger.info(f"Querying Instagram API for {safe_url_for_log(page_url)}")

        response = await self.client.get(
            self.endpoint(),
            upstream="Instagram API",
            params={"url": page_url},
            headers={
                "X-RapidAPI-Key": self.config.rapidapi_key.get_secret_value(),
                "X-RapidAPI-Host": self.config.rapidapi_host,
            },
        )

        try:
            payload = response.json()
        except ValueError:
            payload = None

        if not response.is_success:
            if response.status_code in BLOCKING_STATUSES:
                raise UpstreamBlocked(key="error.instagram_api_blocked", status=response.status_code)
            raise UpstreamUnreachable(
                _upstream_message(payload),
                key="error.instagram_api_status",
                status=response.status_code,
            )

        if payload is None:
            raise ParseFailure(key="error.instagram_api_not_json")

        draft = parse_api_payload(payload)
        if draft is None:
            raise NoMediaFound(key="error.instagram_api_no_video")
        return draft
