from typing import Any, Optional, Tuple

from medialinks.i18n import i18n


class MediaError(Exception):
    """
    Base class for every failure surfaced to the caller.

    Each subclass owns its HTTP status and a default catalogue key.
    A raw ``detail`` (usually the upstream's own message) takes precedence
    over the catalogue text when rendering.
    """
    status_code = 500
    key = "error.processing_failed"

    def __init__(self, detail: Optional[str] = None, *, key: Optional[str] = None, **params: Any):
        if key:
            self.key = key
        self.detail = detail
        self.params = params
        super().__init__(detail or self.render())

    def render(self, locale: Optional[str] = None) -> str:
        if self.detail:
            return self.detail
        return i18n.get(self.key, locale, **self.params)


class InvalidInput(MediaError):
    status_code = 400
    key = "error.missing_fields"


class UnsupportedService(MediaError):
    status_code = 400
    key = "error.invalid_service"


class MethodNotAllowed(MediaError):
    status_code = 405
    key = "error.method_not_allowed"


class UpstreamUnreachable(MediaError):
    key = "error.upstream_unreachable"


class UpstreamBlocked(MediaError):
    """The upstream answered with an explicit anti-automation signal"""
    key = "error.youtube_blocked"


class NoMediaFound(MediaError):
    key = "error.no_links"


class ParseFailure(MediaError):
    key = "error.parse_failed"


class ProcessingFailed(MediaError):
    pass


def classify(exc: BaseException, locale: Optional[str] = None) -> Tuple[int, str]:
    """Map any failure to (status_code, user-facing message)"""
    if isinstance(exc, MediaError):
        return exc.status_code, exc.render(locale)
    message = str(exc).strip()
    return 500, message or i18n.get("error.processing_failed", locale)
