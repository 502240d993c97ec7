from .internal import MediaDraft
from .request import MediaRequest, Service
from .response import DownloadLink, ErrorResponse, MediaResult

__all__ = ["DownloadLink", "ErrorResponse", "MediaDraft", "MediaRequest", "MediaResult", "Service"]
