from typing import AsyncIterator

from fastapi import APIRouter, Depends, Request

from medialinks.config.settings import Config, get_config
from medialinks.core.errors import MediaError, ProcessingFailed
from medialinks.core.logging import log_error, log_info, log_warning
from medialinks.models.request import MediaRequest
from medialinks.models.response import ErrorResponse, MediaResult
from medialinks.services.normalizer import normalize
from medialinks.services.registry import ExtractorRegistry
from medialinks.utils.http_client import UpstreamClient, build_http_client
from medialinks.utils.locale import safe_url_for_log

router = APIRouter()

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    405: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


async def get_registry(config: Config = Depends(get_config)) -> AsyncIterator[ExtractorRegistry]:
    """One HTTP client per request, closed once the response is built"""
    async with build_http_client(config) as client:
        yield ExtractorRegistry.from_config(config, UpstreamClient(client, config.http))


@router.post("/download-video", response_model=MediaResult, responses=ERROR_RESPONSES)
@router.post("/.netlify/functions/download-video", response_model=MediaResult, include_in_schema=False)
async def download_video(
    request: Request,
    media_request: MediaRequest,
    registry: ExtractorRegistry = Depends(get_registry),
):
    """Resolve a YouTube or Instagram URL into normalized download links"""
    extractor = registry.get(media_request.service)
    service = media_request.service.lower()

    log_info(request, f"Resolving {service} link {safe_url_for_log(media_request.url)}")

    try:
        draft = await extractor.extract(media_request.url)
        result = normalize(draft)
    except MediaError as e:
        # 4xx is caller input, not an upstream failure
        log = log_warning if e.status_code < 500 else log_error
        log(request, f"{service} extraction failed ({type(e).__name__}): {e}")
        raise
    except Exception as e:
        log_error(request, f"Unexpected {service} error: {e!r}", exc_info=True)
        raise ProcessingFailed(str(e) or None) from e

    log_info(request, f"Resolved {len(result.links)} link(s) for '{result.title}'")
    return result
