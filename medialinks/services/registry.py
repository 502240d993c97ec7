from typing import Dict, Protocol

from medialinks.config.settings import Config
from medialinks.core.errors import UnsupportedService
from medialinks.models.internal import MediaDraft
from medialinks.models.request import Service
from medialinks.services.instagram import InstagramApiExtractor, InstagramScrapeExtractor
from medialinks.services.youtube import YouTubeExtractor
from medialinks.services.ytdlp import YtDlpSource
from medialinks.utils.http_client import UpstreamClient


class Extractor(Protocol):
    async def extract(self, url: str) -> MediaDraft:
        ...


class ExtractorRegistry:
    """Maps the request's service discriminator to an extractor"""

    def __init__(self, extractors: Dict[Service, Extractor]):
        self._extractors = dict(extractors)

    @classmethod
    def from_config(cls, config: Config, client: UpstreamClient) -> "ExtractorRegistry":
        if config.instagram.upstream == "rapidapi":
            instagram: Extractor = InstagramApiExtractor(client, config.instagram)
        else:
            instagram = InstagramScrapeExtractor(client)

        return cls({
            Service.YOUTUBE: YouTubeExtractor(YtDlpSource(config.youtube)),
            Service.INSTAGRAM: instagram,
        })

    def get(self, service: str) -> Extractor:
        try:
            return self._extractors[Service.parse(service)]
        except (ValueError, KeyError):
            raise UnsupportedService()
