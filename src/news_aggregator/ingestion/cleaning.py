"""Text, URL and timestamp normalization utilities."""

from __future__ import annotations

import hashlib
import re
import unicodedata
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime
from urllib.parse import urlparse

_NON_SLUG_RE = re.compile(r"[^a-z0-9]+")
_WHITESPACE_RE = re.compile(r"\s")


def slugify(value: str | None) -> str:
    """URL-safe lowercase slug: ASCII letters and digits joined by single dashes."""

    if not value:
        return ""
    ascii_value = unicodedata.normalize("NFKD", value).encode("ascii", "ignore").decode("ascii")
    return _NON_SLUG_RE.sub("-", ascii_value.lower()).strip("-")


def parse_published_at(value: object) -> datetime | None:
    """Parse a provider timestamp into aware UTC, or None if it is unusable."""

    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if not text:
            return None
        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            try:
                parsed = parsedate_to_datetime(text)
            except (TypeError, ValueError, IndexError):
                return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def is_valid_url(value: str | None) -> bool:
    """True for absolute URLs with scheme and host and no embedded whitespace."""

    if not value or _WHITESPACE_RE.search(value):
        return False
    try:
        parsed = urlparse(value)
    except ValueError:
        return False
    return bool(parsed.scheme) and bool(parsed.netloc)


def url_hash(url: str) -> str:
    """Stable md5 of the URL, used as external id for providers without ids."""

    return hashlib.md5(url.encode("utf-8"), usedforsecurity=False).hexdigest()  # noqa: S324
