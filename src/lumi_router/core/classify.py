# src/lumi_router/core/classify.py
from __future__ import annotations
import re
from enum import Enum
from typing import Optional

import requests

from lumi_router.core.errors import ConfigError, QuotaError, UpstreamError


class FailureKind(str, Enum):
    quota = "quota"
    config = "config"
    upstream = "upstream"


# Lower-cased substrings seen in provider rate-limit errors
QUOTA_MARKERS = (
    "quota",
    "rate limit",
    "rate_limit",
    "ratelimit",
    "resource_exhausted",
    "resource exhausted",
    "too many requests",
)

# A bare status code in SDK error text, e.g. "[429 Too Many Requests]".
# Whole-word only: addresses like 0x7f4291c3d0 must not match.
_QUOTA_STATUS = re.compile(r"\b429\b")


def _status_of(exc: BaseException) -> Optional[int]:
    status = getattr(exc, "status_code", None)
    if isinstance(status, int):
        return status
    # requests.HTTPError carries the response instead
    resp: Optional[requests.Response] = getattr(exc, "response", None)
    code = getattr(resp, "status_code", None)
    if isinstance(code, int):
        return code
    return None


def classify_failure(exc: BaseException) -> FailureKind:
    """
    Decide what a failed attempt means for routing.

    HTTP status wins when present (429 -> quota, anything else -> upstream).
    Only errors without a status fall through to message sniffing.
    """
    if isinstance(exc, ConfigError):
        return FailureKind.config
    if isinstance(exc, QuotaError):
        return FailureKind.quota

    status = _status_of(exc)
    if status is not None:
        return FailureKind.quota if status == 429 else FailureKind.upstream

    if isinstance(exc, UpstreamError):
        return FailureKind.upstream

    text = str(exc).lower()
    if any(marker in text for marker in QUOTA_MARKERS) or _QUOTA_STATUS.search(text):
        return FailureKind.quota
    return FailureKind.upstream
