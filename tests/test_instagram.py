import asyncio
import json

import httpx
import pytest

from medialinks.config.settings import Config, HttpConfig, InstagramConfig
from medialinks.core.errors import InvalidInput, NoMediaFound, ParseFailure, UpstreamBlocked, UpstreamUnreachable
from medialinks.services.instagram import (
    InstagramApiExtractor,
    InstagramScrapeExtractor,
    clean_instagram_url,
    parse_api_payload,
)
from medialinks.services.scraper import PageScraper
from medialinks.utils.http_client import UpstreamClient, build_http_client

REEL_URL = "https://www.instagram.com/reel/Cabc123/?igsh=tracking"

META_PAGE = """
<html><head>
<meta property="og:title" content="Sunset &amp; waves" />
<meta property="og:image" content="https://scontent.cdninstagram.com/thumb.jpg?a=1&amp;b=2" />
<meta property="og:video" content="https://scontent.cdninstagram.com/video.mp4?efg=1&amp;oh=2" />
</head><body><script>{"owner":{"username":"surfer_joe"}}</script></body></html>
"""

STRUCTURED_PAGE = """
<html><head><meta property="og:title" content="Structured" /></head><body>
<script type="application/json" data-sjs>{not json at all</script>
<script type="application/json" data-sjs>{"props": {"pageProps": {"post": {"video_url": "https://cdn.example/structured.mp4"}}}}</script>
</body></html>
"""

RAW_PAGE = """
<html><body><script>window.__data = {"shortcode_media":{"video_url":"https:\\/\\/cdn.example\\/raw.mp4?a=1\\u0026b=2","owner":{"username":"raw_user"}}};</script></body></html>
"""

EMPTY_PAGE = """
<html><head><meta property="og:title" content="Photo post" /></head>
<body><script type="application/json">{"broken": </script></body></html>
"""


class RecordingScraper(PageScraper):
    def __init__(self):
        self.calls = []

    def meta_video(self, page):
        self.calls.append("meta_tag")
        return super().meta_video(page)

    def structured_data_video(self, page):
        self.calls.append("structured_data")
        return super().structured_data_video(page)

    def raw_video(self, page):
        self.calls.append("raw_scan")
        return super().raw_video(page)


def parsed(text):
    return PageScraper().parse(text)


def html_upstream(page, status_code=200, requests=None):
    def handler(request):
        if requests is not None:
            requests.append(request)
        return httpx.Response(status_code, text=page, headers={"Content-Type": "text/html"})
    return httpx.MockTransport(handler)


def test_clean_instagram_url_drops_tracking():
    assert clean_instagram_url(REEL_URL) == "https://www.instagram.com/reel/Cabc123/"
    assert clean_instagram_url("instagram.com/p/Cxyz/#frag") == "https://instagram.com/p/Cxyz/"


@pytest.mark.parametrize("url", [
    "https://example.com/reel/Cabc123/",
    "https://notinstagram.com/reel/Cabc123/",
    "https://www.instagram.com/",
    "ftp://www.instagram.com/reel/Cabc123/",
])
def test_clean_instagram_url_rejects_other_hosts(url):
    with pytest.raises(InvalidInput):
        clean_instagram_url(url)


def test_scraper_meta_tag_decodes_entities():
    assert PageScraper().meta_video(parsed(META_PAGE)) == "https://scontent.cdninstagram.com/video.mp4?efg=1&oh=2"


def test_scraper_structured_data_skips_broken_blocks():
    assert PageScraper().structured_data_video(parsed(STRUCTURED_PAGE)) == "https://cdn.example/structured.mp4"


def test_scraper_structured_data_items_shape():
    page = '<script type="application/json">{"items": [{"video_versions": [{"url": "https://cdn.example/items.mp4"}]}]}</script>'
    assert PageScraper().structured_data_video(parsed(page)) == "https://cdn.example/items.mp4"


def test_scraper_raw_scan_decodes_escapes():
    assert PageScraper().raw_video(parsed(RAW_PAGE)) == "https://cdn.example/raw.mp4?a=1&b=2"


def test_scraper_details():
    assert PageScraper().details(parsed(META_PAGE)) == {
        "title": "Sunset & waves",
        "thumbnail": "https://scontent.cdninstagram.com/thumb.jpg?a=1&b=2",
        "author": "surfer_joe",
    }
    assert PageScraper().details(parsed("<html></html>")) == {"title": None, "thumbnail": None, "author": None}


@pytest.mark.parametrize("tag", [
    '<meta content="https://cdn.example/v.mp4" property="og:video" />',
    "<meta data-rh='true' property='og:video' content='https://cdn.example/v.mp4'>",
    '<META PROPERTY="og:video" CONTENT="https://cdn.example/v.mp4">',
    '<meta property="og:video:secure_url" content="https://cdn.example/v.mp4" />',
])
def test_scraper_meta_tag_ignores_attribute_order(tag):
    assert PageScraper().meta_video(parsed(f"<html><head>{tag}</head></html>")) == "https://cdn.example/v.mp4"


def test_scraper_details_ignore_attribute_order():
    page = (
        '<head><meta content="Reordered" property="og:title">'
        '<meta content="https://cdn.example/t.jpg?a=1&amp;b=2" property="og:image"></head>'
    )
    assert PageScraper().details(parsed(page))["title"] == "Reordered"
    assert PageScraper().details(parsed(page))["thumbnail"] == "https://cdn.example/t.jpg?a=1&b=2"


def test_scraper_structured_data_with_attributes_before_type():
    page = (
        '<script data-sjs nonce="x" type="application/json">'
        '{"graphql": {"shortcode_media": {"video_url": "https://cdn.example/graphql.mp4"}}}</script>'
    )
    assert PageScraper().structured_data_video(parsed(page)) == "https://cdn.example/graphql.mp4"


def test_scraper_structured_data_ld_json():
    page = (
        '<script type="application/ld+json">'
        '[{"@type": "VideoObject", "video": {"contentUrl": "https://cdn.example/ld.mp4"}}]</script>'
    )
    assert PageScraper().structured_data_video(parsed(page)) == "https://cdn.example/ld.mp4"


def test_scraper_ignores_script_blocks_of_other_types():
    page = '<script type="text/javascript">{"graphql": {"shortcode_media": {"video_url": "https://x"}}}</script>'
    assert PageScraper().structured_data_video(parsed(page)) is None


@pytest.mark.asyncio
async def test_meta_tag_hit_stops_the_chain_after_one_fetch():
    requests = []
    scraper = RecordingScraper()
    async with build_http_client(Config(), transport=html_upstream(META_PAGE, requests=requests)) as client:
        extractor = InstagramScrapeExtractor(UpstreamClient(client, HttpConfig()), scraper)
        draft = await extractor.extract(REEL_URL)

    assert scraper.calls == ["meta_tag"]
    assert len(requests) == 1
    assert str(requests[0].url) == "https://www.instagram.com/reel/Cabc123/"
    assert requests[0].headers["User-Agent"].startswith("Mozilla/5.0")
    assert draft.links[0].url == "https://scontent.cdninstagram.com/video.mp4?efg=1&oh=2"
    assert draft.links[0].quality == "HD Video"
    assert draft.title == "Sunset & waves"
    assert draft.author == "surfer_joe"


@pytest.mark.asyncio
async def test_chain_falls_through_to_structured_data():
    scraper = RecordingScraper()
    async with build_http_client(Config(), transport=html_upstream(STRUCTURED_PAGE)) as client:
        draft = await InstagramScrapeExtractor(UpstreamClient(client, HttpConfig()), scraper).extract(REEL_URL)
    assert scraper.calls == ["meta_tag", "structured_data"]
    assert draft.links[0].url == "https://cdn.example/structured.mp4"


@pytest.mark.asyncio
async def test_chain_falls_through_to_raw_scan():
    scraper = RecordingScraper()
    async with build_http_client(Config(), transport=html_upstream(RAW_PAGE)) as client:
        draft = await InstagramScrapeExtractor(UpstreamClient(client, HttpConfig()), scraper).extract(REEL_URL)
    assert scraper.calls == ["meta_tag", "structured_data", "raw_scan"]
    assert draft.links[0].url == "https://cdn.example/raw.mp4?a=1&b=2"
    assert draft.author == "raw_user"


@pytest.mark.asyncio
async def test_exhausted_chain_reports_aggregate_message():
    scraper = RecordingScraper()
    async with build_http_client(Config(), transport=html_upstream(EMPTY_PAGE)) as client:
        with pytest.raises(NoMediaFound) as excinfo:
            await InstagramScrapeExtractor(UpstreamClient(client, HttpConfig()), scraper).extract(REEL_URL)
    assert scraper.calls == ["meta_tag", "structured_data", "raw_scan"]
    message = str(excinfo.value)
    assert message.startswith("Could not find video URL using any method.")
    assert "private or deleted" in message


@pytest.mark.asyncio
async def test_non_success_status_is_fatal():
    scraper = RecordingScraper()
    async with build_http_client(Config(), transport=html_upstream("gone", status_code=404)) as client:
        with pytest.raises(UpstreamUnreachable) as excinfo:
            await InstagramScrapeExtractor(UpstreamClient(client, HttpConfig()), scraper).extract(REEL_URL)
    assert "Status: 404" in str(excinfo.value)
    assert scraper.calls == []


@pytest.mark.asyncio
async def test_login_redirect_is_blocking():
    def handler(request):
        if request.url.path.startswith("/accounts/login"):
            return httpx.Response(200, text="<html>Log in</html>")
        return httpx.Response(302, headers={"Location": "https://www.instagram.com/accounts/login/?next=/reel/Cabc123/"})

    async with build_http_client(Config(), transport=httpx.MockTransport(handler)) as client:
        with pytest.raises(UpstreamBlocked) as excinfo:
            await InstagramScrapeExtractor(UpstreamClient(client, HttpConfig())).extract(REEL_URL)
    assert "login page" in str(excinfo.value)


@pytest.mark.asyncio
async def test_timeout_is_fatal():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    async with build_http_client(Config(), transport=httpx.MockTransport(handler)) as client:
        with pytest.raises(UpstreamUnreachable) as excinfo:
            await InstagramScrapeExtractor(UpstreamClient(client, HttpConfig(timeout_seconds=3))).extract(REEL_URL)
    assert "Instagram did not respond within 3" in str(excinfo.value)


@pytest.mark.asyncio
async def test_slow_upstream_is_bounded_end_to_end():
    async def drip():
        yield b"<html>"
        for _ in range(50):
            await asyncio.sleep(0.02)
            yield b" "

    def handler(request):
        return httpx.Response(200, content=drip(), headers={"Content-Type": "text/html"})

    async with build_http_client(Config(), transport=httpx.MockTransport(handler)) as client:
        with pytest.raises(UpstreamUnreachable) as excinfo:
            await InstagramScrapeExtractor(UpstreamClient(client, HttpConfig(timeout_seconds=0.2))).extract(REEL_URL)
    assert "Instagram did not respond within 0.2" in str(excinfo.value)


@pytest.mark.asyncio
async def test_unresponsive_upstream_is_bounded():
    async def handler(request):
        await asyncio.sleep(5)
        return httpx.Response(200, text=META_PAGE)

    async with build_http_client(Config(), transport=httpx.MockTransport(handler)) as client:
        with pytest.raises(UpstreamUnreachable) as excinfo:
            await InstagramScrapeExtractor(UpstreamClient(client, HttpConfig(timeout_seconds=0.1))).extract(REEL_URL)
    assert "did not respond" in str(excinfo.value)


def rapidapi_config():
    return InstagramConfig(
        upstream="rapidapi",
        rapidapi_key="secret-key",
        rapidapi_host="instagram-api.example.p.rapidapi.com",
        rapidapi_path="/media",
    )


def json_upstream(payload, status_code=200, requests=None):
    def handler(request):
        if requests is not None:
            requests.append(request)
        return httpx.Response(status_code, json=payload)
    return httpx.MockTransport(handler)


def test_rapidapi_requires_credentials():
    with pytest.raises(ValueError):
        InstagramConfig(upstream="rapidapi")


def test_parse_flat_payload_picks_first_video():
    draft = parse_api_payload({
        "title": "Flat",
        "author": "flat_user",
        "medias": [
            {"type": "image", "url": "https://cdn.example/cover.jpg"},
            {"type": "video", "url": "https://cdn.example/first.mp4", "quality": "720p"},
            {"type": "video", "url": "https://cdn.example/second.mp4"},
        ],
    })
    assert draft.links[0].url == "https://cdn.example/first.mp4"
    assert draft.links[0].quality == "720p"
    assert draft.author == "flat_user"


def test_parse_enveloped_payload():
    draft = parse_api_payload({
        "status": "ok",
        "data": {"media": [{"type": "Video", "url": "https://cdn.example/nested.mp4"}], "owner": {"username": "nested"}},
    })
    assert draft.links[0].url == "https://cdn.example/nested.mp4"
    assert draft.author == "nested"


def test_parse_items_payload():
    draft = parse_api_payload({"items": [{
        "video_versions": [{"url": "https://cdn.example/items.mp4"}],
        "image_versions2": {"candidates": [{"url": "https://cdn.example/items.jpg"}]},
        "caption": {"text": "Caption"},
        "user": {"username": "items_user"},
    }]})
    assert draft.links[0].url == "https://cdn.example/items.mp4"
    assert (draft.title, draft.author, draft.thumbnail) == ("Caption", "items_user", "https://cdn.example/items.jpg")


def test_parse_payload_without_video():
    assert parse_api_payload({"medias": [{"type": "image", "url": "x"}]}) is None
    assert parse_api_payload(["unexpected"]) is None


@pytest.mark.asyncio
async def test_api_extractor_sends_key_and_host_once():
    requests = []
    payload = {"data": {"medias": [{"type": "video", "url": "https://cdn.example/v.mp4"}]}}
    async with build_http_client(Config(), transport=json_upstream(payload, requests=requests)) as client:
        draft = await InstagramApiExtractor(UpstreamClient(client, HttpConfig()), rapidapi_config()).extract(REEL_URL)

    assert len(requests) == 1
    request = requests[0]
    assert request.url.host == "instagram-api.example.p.rapidapi.com"
    assert request.url.path == "/media"
    assert request.url.params["url"] == "https://www.instagram.com/reel/Cabc123/"
    assert request.headers["X-RapidAPI-Key"] == "secret-key"
    assert request.headers["X-RapidAPI-Host"] == "instagram-api.example.p.rapidapi.com"
    assert draft.links[0].url == "https://cdn.example/v.mp4"


@pytest.mark.asyncio
async def test_api_extractor_non_json_is_login_redirect():
    transport = httpx.MockTransport(lambda request: httpx.Response(200, text="<html>login</html>"))
    async with build_http_client(Config(), transport=transport) as client:
        with pytest.raises(ParseFailure) as excinfo:
            await InstagramApiExtractor(UpstreamClient(client, HttpConfig()), rapidapi_config()).extract(REEL_URL)
    assert "login or interstitial" in str(excinfo.value)


@pytest.mark.asyncio
async def test_api_extractor_prefers_upstream_error_message():
    transport = json_upstream({"message": "Media not found"}, status_code=404)
    async with build_http_client(Config(), transport=transport) as client:
        with pytest.raises(UpstreamUnreachable) as excinfo:
            await InstagramApiExtractor(UpstreamClient(client, HttpConfig()), rapidapi_config()).extract(REEL_URL)
    assert str(excinfo.value) == "Media not found"


@pytest.mark.asyncio
async def test_api_extractor_quota_is_blocking_and_hides_key():
    transport = json_upstream({"message": "You have exceeded the rate limit"}, status_code=429)
    async with build_http_client(Config(), transport=transport) as client:
        with pytest.raises(UpstreamBlocked) as excinfo:
            await InstagramApiExtractor(UpstreamClient(client, HttpConfig()), rapidapi_config()).extract(REEL_URL)
    assert "Status: 429" in str(excinfo.value)
    assert "secret-key" not in str(excinfo.value)


@pytest.mark.asyncio
async def test_api_extractor_without_video():
    transport = json_upstream({"medias": [{"type": "image", "url": "https://cdn.example/p.jpg"}]})
    async with build_http_client(Config(), transport=transport) as client:
        with pytest.raises(NoMediaFound):
            await InstagramApiExtractor(UpstreamClient(client, HttpConfig()), rapidapi_config()).extract(REEL_URL)


def test_api_key_is_not_exposed_in_config_repr():
    assert "secret-key" not in repr(rapidapi_config())
    assert json.dumps(rapidapi_config().model_dump(mode="json")).count("secret-key") == 0
