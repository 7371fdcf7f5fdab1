"""Public shared HTTP API for credlease packages."""

from .client import HttpClient, decode_json
from .errors import (
    HttpClientError,
    HttpError,
    HttpJsonDecodeError,
    HttpRequestError,
    HttpStatusError,
    HttpTimeoutError,
)

__all__ = [
    "HttpClient",
    "HttpClientError",
    "HttpError",
    "HttpJsonDecodeError",
    "HttpRequestError",
    "HttpStatusError",
    "HttpTimeoutError",
    "decode_json",
]
