"""Error-text classification and retry-hint parsing.

Providers surface failures as free text (exception strings, proxy error
bodies), so classification is pattern matching over that text. All
functions here are pure and never raise; ``None`` is accepted everywhere
and classifies as nothing.
"""

from __future__ import annotations

import math
import re
from typing import Optional

from model_failover.shared.types import ErrorKind

_RATE_LIMIT_RE = re.compile(
    r"\b429\b"
    r"|rate[\s_-]?limit"
    r"|resource[\s_-]?exhausted"
    r"|too many requests"
    r"|insufficient[\s_-]quota"
    r"|quota[\s\w']{0,40}?(?:exceeded|exhausted|reached)"
    r"|(?:exceeded|exhausted|out of)[\s\w]{0,20}?quota"
    r"|\b(?:daily|usage) limit",
    re.IGNORECASE,
)

_AUTH_RE = re.compile(
    r"\b401\b"
    r"|unauthori[sz]ed"
    r"|missing[\s_-]scopes?"
    r"|insufficient[\s_-]scopes?"
    r"|invalid[\s_-](?:api[\s_-]?)?key"
    r"|invalid[\s_-]x-api-key",
    re.IGNORECASE,
)

# Proxies that refuse requests for a while and then recover on their own
_TRANSIENT_PROXIES = ("copilot-proxy",)

_UNAVAILABLE_RE = re.compile(
    r"cooldown"
    r"|cooling down"
    r"|temporarily unavailable"
    r"|service unavailable"
    + "".join(f"|{re.escape(p)}" for p in _TRANSIENT_PROXIES),
    re.IGNORECASE,
)

# "in 4m30s", "in 30s", "in 1.5h", "in 2 hours", "in 2 minutes and 30 seconds"
_UNIT_SEP = r"(?:\s*,|\s+and)?\s*"
_IN_DURATION_RE = re.compile(
    r"\bin\s+(?=\d)"
    r"(?:(?P<h>\d+(?:\.\d+)?)\s*h(?:ours?|rs?)?(?![a-z])" + _UNIT_SEP + r")?"
    r"(?:(?P<m>\d+(?:\.\d+)?)\s*m(?!s)(?:in(?:ute)?s?)?(?![a-z])" + _UNIT_SEP + r")?"
    r"(?:(?P<s>\d+(?:\.\d+)?)\s*s(?:ec(?:ond)?s?)?(?![a-z]))?",
    re.IGNORECASE,
)

# "after 60 seconds", "Retry after 5s"
_AFTER_SECONDS_RE = re.compile(
    r"\bafter\s+(?P<s>\d+(?:\.\d+)?)\s*(?:s|secs?|seconds?)\b",
    re.IGNORECASE,
)


def is_rate_limit_like(text: Optional[str]) -> bool:
    """HTTP 429, rate limit, resource exhausted, quota exhaustion, too many requests."""
    if not text:
        return False
    return _RATE_LIMIT_RE.search(text) is not None


def is_auth_or_scope_like(text: Optional[str]) -> bool:
    """HTTP 401, missing scopes, invalid API key. Never true for rate-limit text."""
    if not text or is_rate_limit_like(text):
        return False
    return _AUTH_RE.search(text) is not None


def is_temporarily_unavailable_like(text: Optional[str]) -> bool:
    if not text:
        return False
    return _UNAVAILABLE_RE.search(text) is not None


def classify_error(text: Optional[str]) -> ErrorKind:
    """Collapse the predicates into one category (rate limit > auth > unavailable)."""
    if is_rate_limit_like(text):
        return "rate_limit"
    if is_auth_or_scope_like(text):
        return "auth"
    if is_temporarily_unavailable_like(text):
        return "unavailable"
    return "unknown"


def parse_wait_time(text: Optional[str]) -> Optional[int]:
    """Extract an explicit server-given wait from error text, in seconds.

    Returns ``None`` when the text carries no timing phrase. Callers must
    not treat ``None`` as zero.
    """
    if not text:
        return None

    for match in _IN_DURATION_RE.finditer(text):
        hours, minutes, seconds = match.group("h"), match.group("m"), match.group("s")
        if hours is None and minutes is None and seconds is None:
            continue
        total = 0.0
        if hours:
            total += float(hours) * 3600
        if minutes:
            total += float(minutes) * 60
        if seconds:
            total += float(seconds)
        return math.ceil(total)

    match = _AFTER_SECONDS_RE.search(text)
    if match:
        return math.ceil(float(match.group("s")))
    return None
