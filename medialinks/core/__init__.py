from .errors import (
    MediaError,
    InvalidInput,
    UnsupportedService,
    MethodNotAllowed,
    UpstreamUnreachable,
    UpstreamBlocked,
    NoMediaFound,
    ParseFailure,
    ProcessingFailed,
    classify,
)

__all__ = [
    "InvalidInput",
    "MediaError",
    "MethodNotAllowed",
    "NoMediaFound",
    "ParseFailure",
    "ProcessingFailed",
    "UnsupportedService",
    "UpstreamBlocked",
    "UpstreamUnreachable",
    "classify",
]
