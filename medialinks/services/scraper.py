import json
import logging
import re
from typing import Any, Dict, Iterable, NamedTuple, Optional

from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

STRUCTURED_SCRIPT_TYPES = ["application/json", "application/ld+json"]
RAW_VIDEO_URL_RE = re.compile(r'"video_url"\s*:\s*"((?:[^"\\]|\\.)*)"', re.IGNORECASE)
USERNAME_RE = re.compile(r'"username"\s*:\s*"((?:[^"\\]|\\.)*)"', re.IGNORECASE)

# Known locations of the video URL inside Instagram's embedded JSON.
# They move between page revisions; extend rather than replace.
VIDEO_URL_PATHS = (
    ("props", "pageProps", "media", "video_url"),
    ("props", "pageProps", "post", "video_url"),
    ("graphql", "shortcode_media", "video_url"),
    ("items", 0, "video_versions", 0, "url"),
    ("video", "contentUrl"),
)


class Page(NamedTuple):
    """Fetched page text and its parsed tree"""
    text: str
    soup: BeautifulSoup


def dig(data: Any, path: Iterable) -> Any:
    """Follow dict keys / list indexes; None as soon as a step is missing"""
    for step in path:
        if isinstance(step, int):
            if not isinstance(data, list) or len(data) <= step:
                return None
        elif not isinstance(data, dict):
            return None
        data = data[step] if isinstance(step, int) else data.get(step)
        if data is None:
            return None
    return data


def decode_json_string(raw: str) -> str:
    """Undo JSON string escapes (\\u0026, \\/) of a value cut out of page text"""
    try:
        return json.loads(f'"{raw}"')
    except json.JSONDecodeError:
        return raw.replace("\\u0026", "&").replace("\\/", "/")


def meta_content(soup: BeautifulSoup, key: str) -> Optional[str]:
    """content of <meta property=key> (or name=key); entities already decoded by the parser"""
    tag = soup.find("meta", attrs={"property": key}) or soup.find("meta", attrs={"name": key})
    if not tag:
        return None
    value = (tag.get("content") or "").strip()
    return value or None


class PageScraper:
    """
    Extraction over a public Instagram page.

    The page is parsed once by ``parse``; every other method is pure:
    it takes the parsed page and returns a value or None.
    Network access stays with the caller.
    """

    def parse(self, text: str) -> Page:
        return Page(text=text, soup=BeautifulSoup(text, "html.parser"))

    def meta_video(self, page: Page) -> Optional[str]:
        """og:video meta tag, falling back to og:video:secure_url"""
        return meta_content(page.soup, "og:video") or meta_content(page.soup, "og:video:secure_url")

    def structured_data_video(self, page: Page) -> Optional[str]:
        """Probe each embedded JSON script block at the known paths"""
        for tag in page.soup.find_all("script", type=STRUCTURED_SCRIPT_TYPES):
            try:
                data = json.loads(tag.string or "")
            except json.JSONDecodeError as e:
                logger.debug(f"Skipping unparsable JSON block: {e.msg}")
                continue
            for candidate in data if isinstance(data, list) else [data]:
                for path in VIDEO_URL_PATHS:
                    value = dig(candidate, path)
                    if isinstance(value, str) and value:
                        return value
        return None

    def raw_video(self, page: Page) -> Optional[str]:
        """Last resort: any "video_url" field anywhere in the page text"""
        match = RAW_VIDEO_URL_RE.search(page.text)
        if match and match.group(1):
            return decode_json_string(match.group(1))
        return None

    def details(self, page: Page) -> Dict[str, Optional[str]]:
        """Best-effort title/thumbnail/author; missing values stay None"""
        username = USERNAME_RE.search(page.text)
        return {
            "title": meta_content(page.soup, "og:title"),
            "thumbnail": meta_content(page.soup, "og:image"),
            "author": decode_json_string(username.group(1)) if username and username.group(1) else None,
        }
