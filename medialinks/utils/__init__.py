from .locale import get_locale, safe_url_for_log
from .http_client import UpstreamClient, build_http_client

__all__ = ["UpstreamClient", "build_http_client", "get_locale", "safe_url_for_log"]
